# 리뷰 라우터
# - 스타일별/사용자별 목록, 도움순 리더보드, 검색, 통계, 작성 가능 여부
# - 작성/수정/삭제, 투표, 신고, 크리에이터 답글
# - 모더레이션: 상태 변경, 일괄 상태 변경, 일괄 삭제

from typing import Iterable, List, Optional

from fastapi import APIRouter, Depends, Query, status

from ...domain.account import Account
from ...domain.enums import STAFF_ROLES
from ...domain.review import Review
from ...schemas.common import ok, paginate
from ...schemas.review_schema import (
    BulkDeleteRequest,
    BulkStatusRequest,
    FlagRequest,
    ResponseRequest,
    ReviewCreate,
    ReviewUpdate,
    StatusRequest,
    VoteRequest,
    review_content,
    review_out,
    stats_out,
)
from ...services.review_service import ReviewService
from ..deps import get_current_user, get_optional_user, get_review_service, require_roles

router = APIRouter(prefix="/reviews", tags=["reviews"])

staff_only = require_roles(*STAFF_ROLES)


def _can_see_history(review: Review, viewer: Optional[Account]) -> bool:
    if viewer is None:
        return False
    return viewer.id == review.user_id or viewer.account_status.role in STAFF_ROLES


async def _render(reviews: Iterable[Review], service: ReviewService, viewer: Optional[Account]) -> List:
    reviews = list(reviews)
    authors = await service.authors(reviews)
    return [review_out(r, authors, viewer, _can_see_history(r, viewer)) for r in reviews]


async def _render_one(review: Review, service: ReviewService, viewer: Optional[Account]):
    return (await _render([review], service, viewer))[0]

# ---- 목록 / 조회 ----

@router.get("/style/{style_id}", summary="스타일의 리뷰 목록")
async def reviews_for_style(
    style_id: str,
    sort: str = "newest",
    review_status: str = Query(default="Published", alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    viewer: Optional[Account] = Depends(get_optional_user),
    service: ReviewService = Depends(get_review_service),
):
    reviews, total = await service.find_for_style(style_id, sort, page, limit, review_status, viewer)
    return ok(await _render(reviews, service, viewer), pagination=paginate(page, limit, total))


@router.post("/style/{style_id}", status_code=status.HTTP_201_CREATED, summary="리뷰 작성")
async def create_review(
    style_id: str,
    payload: ReviewCreate,
    user: Account = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    review = await service.submit(style_id, user, review_content(payload))
    return ok(await _render_one(review, service, user), message="Review submitted successfully")


@router.get("/user/{user_id}", summary="사용자의 리뷰 목록")
async def reviews_for_user(
    user_id: str,
    sort: str = "newest",
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    viewer: Optional[Account] = Depends(get_optional_user),
    service: ReviewService = Depends(get_review_service),
):
    reviews, total = await service.find_for_user(user_id, sort, page, limit, viewer)
    return ok(await _render(reviews, service, viewer), pagination=paginate(page, limit, total))


@router.get("/helpful", summary="도움돼요 상위 리뷰")
async def helpful_reviews(
    limit: int = Query(default=10, ge=1, le=50),
    viewer: Optional[Account] = Depends(get_optional_user),
    service: ReviewService = Depends(get_review_service),
):
    return ok(await _render(await service.helpful(limit), service, viewer))


@router.get("/search", summary="리뷰 검색 (본문/제목)")
async def search_reviews(
    q: str = Query(default="", max_length=100),
    style_id: Optional[str] = Query(default=None, alias="styleId"),
    user_id: Optional[str] = Query(default=None, alias="userId"),
    min_rating: Optional[float] = Query(default=None, alias="minRating", ge=1, le=5),
    max_rating: Optional[float] = Query(default=None, alias="maxRating", ge=1, le=5),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    viewer: Optional[Account] = Depends(get_optional_user),
    service: ReviewService = Depends(get_review_service),
):
    reviews, total = await service.search(q, style_id, user_id, min_rating, max_rating, page, limit)
    return ok(await _render(reviews, service, viewer), pagination=paginate(page, limit, total))


@router.get("/stats/{style_id}", summary="스타일 리뷰 통계")
async def style_stats(style_id: str, service: ReviewService = Depends(get_review_service)):
    return ok(stats_out(await service.stats(style_id)))


@router.get("/can-review/{style_id}", summary="리뷰 작성 가능 여부")
async def can_review(
    style_id: str,
    user: Account = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    result = await service.can_review(style_id, user.id)
    return ok({
        "canReview": result["can_review"],
        "reason": result.get("reason"),
        "reviewId": result.get("review_id"),
    })

# ---- 모더레이션 (일괄) ----

@router.put("/bulk-update", summary="리뷰 상태 일괄 변경 (운영진)")
async def bulk_update(
    payload: BulkStatusRequest,
    user: Account = Depends(staff_only),
    service: ReviewService = Depends(get_review_service),
):
    result = await service.bulk_update_status(payload.review_ids, user, payload.status)
    return ok({"updated": result["updated"], "notFound": result["not_found"], "skipped": result["skipped"]})


@router.post("/bulk-delete", summary="리뷰 일괄 삭제 (운영진, soft delete)")
async def bulk_delete(
    payload: BulkDeleteRequest,
    user: Account = Depends(staff_only),
    service: ReviewService = Depends(get_review_service),
):
    result = await service.bulk_delete(payload.review_ids, user)
    return ok({"deleted": result["deleted"], "notFound": result["not_found"]})

# ---- 단건 ----

@router.get("/{review_id}", summary="리뷰 상세")
async def get_review(
    review_id: str,
    viewer: Optional[Account] = Depends(get_optional_user),
    service: ReviewService = Depends(get_review_service),
):
    return ok(await _render_one(await service.get(review_id, viewer), service, viewer))


@router.put("/{review_id}", summary="리뷰 수정 (작성자만)")
async def update_review(
    review_id: str,
    payload: ReviewUpdate,
    user: Account = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    review = await service.update(review_id, user, review_content(payload))
    return ok(await _render_one(review, service, user), message="Review updated successfully")


@router.delete("/{review_id}", summary="리뷰 삭제 (작성자 또는 운영진)")
async def delete_review(
    review_id: str,
    user: Account = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    await service.delete(review_id, user)
    return ok(message="Review deleted successfully")


@router.post("/{review_id}/vote", summary="도움돼요 / 별로예요 투표")
async def vote_review(
    review_id: str,
    payload: VoteRequest,
    user: Account = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    review = await service.vote(review_id, user, payload.vote_type)
    return ok({
        "helpfulVotes": review.helpful_votes,
        "unhelpfulVotes": review.unhelpful_votes,
    }, message="Vote recorded")


@router.delete("/{review_id}/vote", summary="투표 취소")
async def remove_vote(
    review_id: str,
    user: Account = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    review = await service.remove_vote(review_id, user)
    return ok({
        "helpfulVotes": review.helpful_votes,
        "unhelpfulVotes": review.unhelpful_votes,
    }, message="Vote removed")


@router.post("/{review_id}/flag", summary="리뷰 신고")
async def flag_review(
    review_id: str,
    payload: FlagRequest,
    user: Account = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    await service.flag(review_id, user, payload.reason, payload.description)
    return ok(message="Review reported. Thank you for helping keep the community safe.")


@router.post("/{review_id}/response", summary="크리에이터 답글 (스타일 작성자 또는 운영진)")
async def respond_to_review(
    review_id: str,
    payload: ResponseRequest,
    user: Account = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    review = await service.respond(review_id, user, payload.text)
    return ok(await _render_one(review, service, user), message="Response added successfully")


@router.put("/{review_id}/status", summary="리뷰 상태 변경 (운영진)")
async def set_review_status(
    review_id: str,
    payload: StatusRequest,
    user: Account = Depends(staff_only),
    service: ReviewService = Depends(get_review_service),
):
    review = await service.set_status(review_id, user, payload.status)
    return ok(await _render_one(review, service, user), message="Review status updated")
