# 리뷰 서비스 레이어
# - 작성 (스타일당 사용자 1개, 삭제된 리뷰는 되살림), 수정(작성자만), 삭제(soft delete)
# - 투표/투표 취소, 신고, 크리에이터 답글
# - 통계, 목록/검색, 모더레이션(상태 변경, 일괄 처리)

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from ..core.config import settings
from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..core.locks import KeyedLock
from ..domain import review as domain
from ..domain.account import Account
from ..domain.base import utcnow
from ..domain.enums import STAFF_ROLES, ReviewStatus, StyleStatus
from ..domain.review import Review, StyleStats
from ..repositories.review_repository import ReviewRepository
from ..repositories.style_repository import StyleRepository

logger = logging.getLogger(__name__)

ALL_STATUSES = tuple(ReviewStatus)


def _is_staff(actor: Optional[Account]) -> bool:
    return actor is not None and actor.account_status.role in STAFF_ROLES


def _ensure_staff(actor: Account) -> None:
    if not _is_staff(actor):
        raise AuthorizationError("Moderator or admin role required")


def _parse_status(value) -> ReviewStatus:
    try:
        return ReviewStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in ReviewStatus)
        raise ValidationError(f"Status must be one of: {allowed}", "status")


def _check_sort(sort: str) -> None:
    if sort not in domain.REVIEW_SORTS:
        raise ValidationError(f"Sort must be one of: {', '.join(domain.REVIEW_SORTS)}", "sort")


class ReviewService:
    def __init__(self, repo: ReviewRepository, styles: StyleRepository, locks: KeyedLock, accounts=None):
        self.repo = repo
        self.styles = styles
        self.locks = locks
        # 포인트 지급과 작성자 요약 조회용 (AccountService)
        self.accounts = accounts

    # ---- 내부 유틸 ----

    async def require(self, review_id: str) -> Review:
        review = await self.repo.get(review_id)
        if review is None or review.is_deleted:
            raise NotFoundError("Review", review_id)
        return review

    async def _require_style(self, style_id: str):
        style = await self.styles.get(style_id)
        if style is None or style.status == StyleStatus.ARCHIVED:
            raise NotFoundError("Hijab style", style_id)
        return style

    async def _mutate(self, review_id: str, change) -> Review:
        async with self.locks.hold(f"review:{review_id}"):
            review = await self.require(review_id)
            updated = change(review)
            if updated is not review:
                await self.repo.save(updated)
            return updated

    # ---- 작성 / 수정 / 삭제 ----

    async def submit(self, style_id: str, actor: Account, content: Dict) -> Review:
        """
        리뷰를 작성합니다.

        같은 (스타일, 사용자) 쌍에 살아 있는 리뷰가 있으면 ConflictError,
        soft delete된 리뷰가 있으면 그 문서를 새 내용으로 되살립니다 (수정 이력 유지).
        포인트는 처음 작성할 때만 지급합니다.
        """
        domain.validate_content(content)
        await self._require_style(style_id)
        now = utcnow()

        async with self.locks.hold(f"review-pair:{style_id}:{actor.id}"):
            existing = await self.repo.get_for_pair(style_id, actor.id)
            if existing is not None and not existing.is_deleted:
                raise ConflictError("You have already reviewed this style")

            if existing is not None:
                async with self.locks.hold(f"review:{existing.id}"):
                    revived = domain.revive(
                        existing,
                        content,
                        now,
                        history_limit=settings.REVIEW_EDIT_HISTORY_LIMIT,
                        require_approval=settings.REVIEWS_REQUIRE_APPROVAL,
                    )
                    await self.repo.save(revived)
                logger.info(f"[ReviewService] 삭제된 리뷰 재작성: id={revived.id}, style={style_id}, user={actor.id}")
                return revived

            review = domain.new_review(
                style_id, actor.id, content, now, require_approval=settings.REVIEWS_REQUIRE_APPROVAL
            )
            created = await self.repo.create(review)

        logger.info(
            f"[ReviewService] 리뷰 작성: id={created.id}, style={style_id}, user={actor.id}, "
            f"status={created.status.value}"
        )
        if self.accounts is not None:
            # 다른 문서에 대한 두 번째 쓰기 (원자적이지 않음)
            await self.accounts.reward_activity(actor.id, settings.POINTS_PER_REVIEW)
        return created

    async def update(self, review_id: str, actor: Account, changes: Dict) -> Review:
        def edit(review: Review) -> Review:
            if review.user_id != actor.id:
                raise AuthorizationError("You can only edit your own reviews")
            return domain.apply_edit(review, changes, utcnow(), history_limit=settings.REVIEW_EDIT_HISTORY_LIMIT)

        updated = await self._mutate(review_id, edit)
        logger.info(f"[ReviewService] 리뷰 수정: id={review_id}, 이력 {len(updated.edit_history)}건")
        return updated

    async def delete(self, review_id: str, actor: Account) -> None:
        def remove(review: Review) -> Review:
            if review.user_id != actor.id and not _is_staff(actor):
                raise AuthorizationError("You can only delete your own reviews")
            return domain.soft_delete(review, utcnow())

        await self._mutate(review_id, remove)
        logger.info(f"[ReviewService] 리뷰 삭제(soft): id={review_id}, by={actor.id}")

    # ---- 투표 / 신고 / 답글 ----

    async def vote(self, review_id: str, actor: Account, vote_type) -> Review:
        def apply(review: Review) -> Review:
            if review.user_id == actor.id:
                raise AuthorizationError("You cannot vote on your own review")
            # helpful/unhelpful 이외의 값은 저장 없이 무시
            return domain.cast_vote(review, actor.id, vote_type)

        return await self._mutate(review_id, apply)

    async def remove_vote(self, review_id: str, actor: Account) -> Review:
        return await self._mutate(review_id, lambda r: domain.remove_vote(r, actor.id))

    async def flag(self, review_id: str, actor: Account, reason, description: str = None) -> Review:
        def apply(review: Review) -> Review:
            return domain.flag(
                review, actor.id, reason, utcnow(), description, threshold=settings.REVIEW_FLAG_THRESHOLD
            )

        updated = await self._mutate(review_id, apply)
        logger.info(f"[ReviewService] 리뷰 신고: id={review_id}, 누적 {len(updated.flag_reports)}건")
        if updated.status == ReviewStatus.FLAGGED and len(updated.flag_reports) == settings.REVIEW_FLAG_THRESHOLD:
            logger.warning(f"[ReviewService] 신고 누적으로 Flagged 전환: id={review_id}")
        return updated

    async def respond(self, review_id: str, actor: Account, text: str) -> Review:
        review = await self.require(review_id)
        style = await self.styles.get(review.style_id)
        is_creator = style is not None and style.created_by == actor.id
        if not (is_creator or _is_staff(actor)):
            raise AuthorizationError("Only the style creator or a moderator can respond to reviews")
        return await self._mutate(review_id, lambda r: domain.set_creator_response(r, actor.id, text, utcnow()))

    # ---- 조회 ----

    async def get(self, review_id: str, viewer: Optional[Account] = None) -> Review:
        review = await self.require(review_id)
        if review.status != ReviewStatus.PUBLISHED:
            if viewer is None or (viewer.id != review.user_id and not _is_staff(viewer)):
                raise NotFoundError("Review", review_id)
        return review

    async def stats(self, style_id: str) -> StyleStats:
        if await self.styles.get(style_id) is None:
            raise NotFoundError("Hijab style", style_id)
        return domain.compute_style_stats(await self.repo.published_for_style(style_id))

    async def find_for_style(
        self,
        style_id: str,
        sort: str = "newest",
        page: int = 1,
        limit: int = 10,
        status=ReviewStatus.PUBLISHED,
        viewer: Optional[Account] = None,
    ) -> Tuple[List[Review], int]:
        _check_sort(sort)
        status = _parse_status(status)
        if status != ReviewStatus.PUBLISHED and not _is_staff(viewer):
            raise AuthorizationError("Only moderators can list unpublished reviews")
        return await self.repo.find_for_style(style_id, status, sort, (page - 1) * limit, limit)

    async def find_for_user(
        self,
        user_id: str,
        sort: str = "newest",
        page: int = 1,
        limit: int = 10,
        viewer: Optional[Account] = None,
    ) -> Tuple[List[Review], int]:
        _check_sort(sort)
        # 본인과 운영진은 대기/숨김 리뷰까지 볼 수 있음
        is_owner = viewer is not None and viewer.id == user_id
        statuses = ALL_STATUSES if is_owner or _is_staff(viewer) else (ReviewStatus.PUBLISHED,)
        return await self.repo.find_for_user(user_id, statuses, sort, (page - 1) * limit, limit)

    async def helpful(self, limit: int = 10) -> List[Review]:
        return await self.repo.find_helpful(limit)

    async def search(
        self,
        query: str,
        style_id: str = None,
        user_id: str = None,
        min_rating: float = None,
        max_rating: float = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[Review], int]:
        if not query or not query.strip():
            raise ValidationError("Search query is required", "q")
        if min_rating is not None and max_rating is not None and min_rating > max_rating:
            raise ValidationError("minRating cannot be greater than maxRating", "minRating")
        return await self.repo.search(
            query.strip(), style_id, user_id, min_rating, max_rating, (page - 1) * limit, limit
        )

    async def can_review(self, style_id: str, user_id: str) -> Dict:
        style = await self.styles.get(style_id)
        if style is None:
            raise NotFoundError("Hijab style", style_id)
        if style.status == StyleStatus.ARCHIVED:
            return {"can_review": False, "reason": "This style is no longer available"}
        existing = await self.repo.get_for_pair(style_id, user_id)
        if existing is not None and not existing.is_deleted:
            return {"can_review": False, "reason": "You have already reviewed this style", "review_id": existing.id}
        return {"can_review": True}

    async def authors(self, reviews: Iterable[Review]) -> Dict[str, Account]:
        if self.accounts is None:
            return {}
        return await self.accounts.by_ids(r.user_id for r in reviews)

    # ---- 모더레이션 ----

    async def set_status(self, review_id: str, actor: Account, status) -> Review:
        _ensure_staff(actor)
        target = _parse_status(status)
        updated = await self._mutate(review_id, lambda r: domain.moderate(r, target, utcnow()))
        logger.info(f"[ReviewService] 리뷰 상태 변경: id={review_id}, status={target.value}, by={actor.id}")
        return updated

    async def bulk_update_status(self, review_ids: List[str], actor: Account, status) -> Dict[str, int]:
        """여러 리뷰의 상태를 바꾸고 결과 건수(updated / not_found / skipped)를 반환합니다."""
        _ensure_staff(actor)
        target = _parse_status(status)
        result = {"updated": 0, "not_found": 0, "skipped": 0}
        unchanged = set()

        def move(r: Review) -> Review:
            moved = domain.moderate(r, target, utcnow())
            if moved is r:
                unchanged.add(r.id)
            return moved

        for review_id in dict.fromkeys(review_ids):
            try:
                await self._mutate(review_id, move)
                # 이미 목표 상태인 리뷰는 skipped
                result["skipped" if review_id in unchanged else "updated"] += 1
            except NotFoundError:
                result["not_found"] += 1
            except ValidationError:
                # 허용되지 않는 상태 전이
                result["skipped"] += 1
        logger.info(f"[ReviewService] 일괄 상태 변경({target.value}) by={actor.id}: {result}")
        return result

    async def bulk_delete(self, review_ids: List[str], actor: Account) -> Dict[str, int]:
        _ensure_staff(actor)
        result = {"deleted": 0, "not_found": 0}
        for review_id in dict.fromkeys(review_ids):
            try:
                await self._mutate(review_id, lambda r: domain.soft_delete(r, utcnow()))
                result["deleted"] += 1
            except NotFoundError:
                result["not_found"] += 1
        logger.info(f"[ReviewService] 일괄 삭제(soft) by={actor.id}: {result}")
        return result
