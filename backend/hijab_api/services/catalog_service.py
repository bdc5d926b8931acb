# 카탈로그(스타일) 서비스 레이어
# - 스타일 생성/수정/보관(archive), 슬러그 중복 체크
# - 좋아요, 조회수 (조회수는 응답 후 백그라운드에서 원자적 증가)
# - 목록/검색/유사/인기/추천/자동완성/필터 옵션 조회

import logging
from typing import Dict, List, Optional, Tuple

from ..core.config import settings
from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..core.locks import KeyedLock
from ..domain import catalog as domain
from ..domain.account import Account
from ..domain.base import utcnow
from ..domain.catalog import SearchFilters, Style
from ..domain.enums import STAFF_ROLES, Role, StyleStatus
from ..repositories.style_repository import StyleRepository

logger = logging.getLogger(__name__)

SUGGESTION_MIN_LENGTH = 2


def _is_staff(actor: Account) -> bool:
    return actor.account_status.role in STAFF_ROLES


class CatalogService:
    def __init__(self, repo: StyleRepository, locks: KeyedLock, accounts=None):
        self.repo = repo
        self.locks = locks
        # 스타일 작성 포인트 지급용 (AccountService)
        self.accounts = accounts

    async def require(self, style_id: str) -> Style:
        style = await self.repo.get(style_id)
        if style is None:
            raise NotFoundError("Hijab style", style_id)
        return style

    async def _ensure_slug_free(self, slug: str, own_id: Optional[str] = None) -> None:
        existing = await self.repo.get_by_slug(slug)
        if existing is not None and existing.id != own_id:
            raise ConflictError("A style with this name already exists")

    def _ensure_can_edit(self, style: Style, actor: Account) -> None:
        if style.created_by != actor.id and not _is_staff(actor):
            raise AuthorizationError("Only the creator or a moderator can modify this style")

    # ---- 생성 / 수정 / 보관 ----

    async def create(self, actor: Account, data: Dict) -> Style:
        style = domain.build_style(data, actor.id, utcnow())
        await self._ensure_slug_free(style.slug)
        created = await self.repo.create(style)
        logger.info(f"[CatalogService] 스타일 생성: id={created.id}, slug={created.slug}, creator={actor.id}")

        if self.accounts is not None and settings.POINTS_PER_STYLE > 0:
            # 다른 문서에 대한 두 번째 쓰기 (원자적이지 않음)
            await self.accounts.reward_activity(actor.id, settings.POINTS_PER_STYLE)
        return created

    async def update(self, style_id: str, actor: Account, patch: Dict) -> Style:
        async with self.locks.hold(f"style:{style_id}"):
            style = await self.require(style_id)
            self._ensure_can_edit(style, actor)
            updated = domain.apply_style_patch(style, patch, utcnow())
            if updated.slug != style.slug:
                await self._ensure_slug_free(updated.slug, own_id=style.id)
            await self.repo.save_changes(style, updated)
        logger.info(f"[CatalogService] 스타일 수정: id={style_id}, fields={sorted(patch)}")
        return updated

    async def archive(self, style_id: str, actor: Account) -> Style:
        async with self.locks.hold(f"style:{style_id}"):
            style = await self.require(style_id)
            self._ensure_can_edit(style, actor)
            archived = domain.archive(style, utcnow())
            await self.repo.save_changes(style, archived)
        logger.info(f"[CatalogService] 스타일 보관 처리: id={style_id}, by={actor.id}")
        return archived

    # ---- 카운터 ----

    async def toggle_like(self, style_id: str, action: str = "like") -> Style:
        # "unlike"만 감소, 그 외 값은 모두 증가
        # 문서 단위 원자적 $inc (조회수 증가와 같은 방식이므로 잠금 불필요)
        await self.require(style_id)
        await self.repo.adjust_likes(style_id, -1 if action == "unlike" else 1)
        return await self.require(style_id)

    async def increment_views(self, style_id: str) -> None:
        """응답 이후 BackgroundTasks로 실행. 실패는 로그만 남기고 호출자에게 전파하지 않음"""
        try:
            await self.repo.increment_views(style_id)
        except Exception as e:
            logger.warning(f"[CatalogService] 조회수 증가 실패: id={style_id}, {e}")

    async def reset_views(self, style_id: str, actor: Account) -> Style:
        if actor.account_status.role != Role.ADMIN:
            raise AuthorizationError("Only administrators can reset view counts")
        async with self.locks.hold(f"style:{style_id}"):
            style = await self.require(style_id)
            updated = domain.reset_views(style, utcnow())
            await self.repo.save_changes(style, updated)
        logger.info(f"[CatalogService] 조회수 초기화: id={style_id}, by={actor.id}")
        return updated

    # ---- 조회 ----

    async def get(self, style_id: str, viewer: Optional[Account] = None) -> Style:
        style = await self.require(style_id)
        # 게시되지 않은 스타일은 작성자와 운영진만 볼 수 있음
        if style.status != StyleStatus.PUBLISHED:
            allowed = viewer is not None and (viewer.id == style.created_by or _is_staff(viewer))
            if not allowed:
                raise NotFoundError("Hijab style", style_id)
        return style

    async def list_styles(
        self,
        query: Optional[str] = None,
        filters: SearchFilters = None,
        sort: str = "newest",
        page: int = 1,
        limit: int = None,
        viewer: Optional[Account] = None,
    ) -> Tuple[List[Style], int]:
        filters = filters or SearchFilters()
        if filters.status != StyleStatus.PUBLISHED:
            # 초안/보관 목록은 운영진 또는 자기 스타일로 한정
            own = viewer is not None and filters.created_by == viewer.id
            if not (own or (viewer is not None and _is_staff(viewer))):
                raise AuthorizationError("Only moderators can list unpublished styles")
        if sort not in domain.STYLE_SORTS:
            raise ValidationError(f"Sort must be one of: {', '.join(domain.STYLE_SORTS)}", "sort")
        limit = limit or settings.DEFAULT_PAGE_SIZE
        return await self.repo.find_page(query, filters, sort, (page - 1) * limit, limit)

    async def similar(self, style_id: str, limit: int = 6) -> List[Style]:
        reference = await self.require(style_id)
        return await self.repo.find_similar(reference, limit)

    async def popular(self, limit: int = 10) -> List[Style]:
        return await self.repo.popular(limit)

    async def featured(self) -> List[Style]:
        return await self.repo.popular(settings.FEATURED_LIMIT, min_likes=settings.FEATURED_MIN_LIKES)

    async def suggestions(self, query: Optional[str], limit: int = 10) -> List[Style]:
        if not query or len(query.strip()) < SUGGESTION_MIN_LENGTH:
            return []
        return await self.repo.suggestions(query, limit)

    async def filter_options(self) -> Dict[str, list]:
        return await self.repo.filter_options()
