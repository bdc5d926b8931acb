# 스타일 라우터
# - 목록(필터/정렬/페이지), 인기/추천, 자동완성, 필터 옵션
# - 상세 (상위 리뷰 5개 + 통계, 조회수는 응답 후 백그라운드에서 증가)
# - 생성/수정/보관, 좋아요, 조회수 초기화(관리자)

from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from ...core.config import settings
from ...core.exceptions import ValidationError
from ...domain.account import Account
from ...domain.catalog import SearchFilters, Style
from ...domain.enums import Difficulty, FaceShape, Occasion, StyleStatus
from ...schemas.common import ok, paginate
from ...schemas.review_schema import review_out, stats_out
from ...schemas.style_schema import (
    FilterOptionsOut,
    LikeRequest,
    StyleCreate,
    StyleDetailOut,
    StyleUpdate,
    SuggestionOut,
    style_out,
)
from ...services.account_service import AccountService
from ...services.catalog_service import CatalogService
from ...services.review_service import ReviewService
from ..deps import (
    get_account_service,
    get_catalog_service,
    get_current_user,
    get_optional_user,
    get_review_service,
)

router = APIRouter(prefix="/styles", tags=["styles"])


def _split(value: Optional[str]) -> List[str]:
    return [v.strip() for v in value.split(",") if v.strip()] if value else []


def _occasions(value: Optional[str]):
    try:
        return tuple(Occasion(o) for o in _split(value))
    except ValueError:
        allowed = ", ".join(o.value for o in Occasion)
        raise ValidationError(f"Occasions must be any of: {allowed}", "occasions")


async def _with_creators(styles: List[Style], accounts: AccountService):
    creators = await accounts.by_ids(s.created_by for s in styles)
    return [style_out(s, creators) for s in styles]


@router.get("", summary="스타일 목록 (검색/필터/정렬/페이지)")
async def list_styles(
    search: Optional[str] = Query(default=None, max_length=100),
    difficulty: Optional[Difficulty] = None,
    occasions: Optional[str] = Query(default=None, description="쉼표로 구분 (하나라도 포함되면 일치)"),
    face_shape: Optional[FaceShape] = Query(default=None, alias="faceShape"),
    created_by: Optional[str] = Query(default=None, alias="createdBy"),
    style_status: StyleStatus = Query(default=StyleStatus.PUBLISHED, alias="status"),
    sort: str = "newest",
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    viewer: Optional[Account] = Depends(get_optional_user),
    service: CatalogService = Depends(get_catalog_service),
    accounts: AccountService = Depends(get_account_service),
):
    filters = SearchFilters(
        difficulty=difficulty,
        occasions=_occasions(occasions),
        face_shape=face_shape,
        created_by=created_by,
        status=style_status,
    )
    styles, total = await service.list_styles(search, filters, sort, page, limit, viewer=viewer)
    return ok(await _with_creators(styles, accounts), pagination=paginate(page, limit, total))


@router.get("/popular", summary="인기 스타일 (좋아요, 조회수 순)")
async def popular_styles(
    limit: int = Query(default=10, ge=1, le=50),
    service: CatalogService = Depends(get_catalog_service),
    accounts: AccountService = Depends(get_account_service),
):
    return ok(await _with_creators(await service.popular(limit), accounts))


@router.get("/featured", summary="추천 스타일 (좋아요 50개 이상 상위 6개)")
async def featured_styles(
    service: CatalogService = Depends(get_catalog_service),
    accounts: AccountService = Depends(get_account_service),
):
    return ok(await _with_creators(await service.featured(), accounts))


@router.get("/search/suggestions", summary="검색어 자동완성 (이름/태그)")
async def search_suggestions(
    q: Optional[str] = Query(default=None, max_length=100),
    service: CatalogService = Depends(get_catalog_service),
):
    styles = await service.suggestions(q)
    return ok([SuggestionOut(id=s.id, name=s.name, slug=s.slug) for s in styles])


@router.get("/filters/options", summary="필터 옵션 (게시된 스타일 기준)")
async def filter_options(service: CatalogService = Depends(get_catalog_service)):
    return ok(FilterOptionsOut(**await service.filter_options()))


@router.get("/{style_id}", summary="스타일 상세")
async def get_style(
    style_id: str,
    background_tasks: BackgroundTasks,
    include_reviews: bool = Query(default=True, alias="includeReviews"),
    viewer: Optional[Account] = Depends(get_optional_user),
    service: CatalogService = Depends(get_catalog_service),
    reviews: ReviewService = Depends(get_review_service),
    accounts: AccountService = Depends(get_account_service),
):
    style = await service.get(style_id, viewer)
    # 조회수 증가는 응답을 막지 않음
    background_tasks.add_task(service.increment_views, style_id)

    detail = {"style": (await _with_creators([style], accounts))[0]}
    if include_reviews:
        top, _ = await reviews.find_for_style(style_id, sort="helpful", limit=5)
        authors = await reviews.authors(top)
        detail["reviews"] = [review_out(r, authors, viewer) for r in top]
        detail["review_stats"] = stats_out(await reviews.stats(style_id))
    return ok(StyleDetailOut(**detail))


@router.get("/{style_id}/similar", summary="유사 스타일")
async def similar_styles(
    style_id: str,
    limit: int = Query(default=6, ge=1, le=50),
    service: CatalogService = Depends(get_catalog_service),
    accounts: AccountService = Depends(get_account_service),
):
    return ok(await _with_creators(await service.similar(style_id, limit), accounts))


@router.post("", status_code=status.HTTP_201_CREATED, summary="스타일 생성")
async def create_style(
    payload: StyleCreate,
    user: Account = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    style = await service.create(user, payload.model_dump())
    return ok(style_out(style, {user.id: user}), message="Hijab style created successfully")


@router.put("/{style_id}", summary="스타일 수정 (작성자 또는 운영진)")
async def update_style(
    style_id: str,
    payload: StyleUpdate,
    user: Account = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    style = await service.update(style_id, user, payload.model_dump(exclude_unset=True))
    return ok(style_out(style), message="Hijab style updated successfully")


@router.delete("/{style_id}", summary="스타일 삭제 (Archived로 보관 처리)")
async def archive_style(
    style_id: str,
    user: Account = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    await service.archive(style_id, user)
    return ok(message="Hijab style deleted successfully")


@router.post("/{style_id}/like", summary="좋아요 / 좋아요 취소")
async def like_style(
    style_id: str,
    payload: Optional[LikeRequest] = None,
    user: Account = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    action = payload.action if payload else "toggle"
    style = await service.toggle_like(style_id, action)
    message = "Style unliked" if action == "unlike" else "Style liked"
    return ok({"likes": style.likes}, message=message)


@router.post("/{style_id}/views/reset", summary="조회수 초기화 (관리자)")
async def reset_views(
    style_id: str,
    user: Account = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    style = await service.reset_views(style_id, user)
    return ok({"views": style.views}, message="View count reset")
