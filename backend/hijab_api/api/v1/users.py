# 사용자 라우터
# - 내 프로필 조회/수정, 비밀번호 변경
# - 사용자 검색/인기 사용자/공개 프로필, 팔로우
# - 즐겨찾기/북마크/컬렉션
# - 관리자: 포인트 지급, 정지/해제, 권한 변경

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...domain.account import Account
from ...domain.enums import Role
from ...schemas.common import ok
from ...schemas.user_schema import (
    ChangePasswordRequest,
    CollectionCreate,
    PointsRequest,
    RoleRequest,
    SuspendRequest,
    UserUpdate,
    profile_patch,
    user_private,
    user_public,
)
from ...services.account_service import AccountService
from ..deps import get_account_service, get_current_user, get_optional_user, require_roles

router = APIRouter(prefix="/users", tags=["users"])

admin_only = require_roles(Role.ADMIN)

# ---- 내 계정 ----

@router.get("/me", summary="내 프로필")
async def get_me(user: Account = Depends(get_current_user), service: AccountService = Depends(get_account_service)):
    return ok(user_private(user, await service.profile_counts(user)))


@router.patch("/me", summary="내 프로필 수정 (부분 수정)")
async def update_me(
    payload: UserUpdate,
    user: Account = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    updated = await service.update_profile(user.id, profile_patch(payload))
    return ok(user_private(updated, await service.profile_counts(updated)), message="Profile updated")


@router.post("/me/password", summary="비밀번호 변경 (모든 세션 종료)")
async def change_password(
    payload: ChangePasswordRequest,
    user: Account = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    await service.change_password(user.id, payload.current_password, payload.new_password)
    return ok(message="Password changed. Please log in again.")


@router.post("/me/favorites/{style_id}", summary="즐겨찾기 추가")
async def add_favorite(
    style_id: str, user: Account = Depends(get_current_user), service: AccountService = Depends(get_account_service)
):
    updated = await service.add_favorite(user.id, style_id)
    return ok(user_private(updated).collections, message="Added to favorites")


@router.delete("/me/favorites/{style_id}", summary="즐겨찾기 삭제")
async def remove_favorite(
    style_id: str, user: Account = Depends(get_current_user), service: AccountService = Depends(get_account_service)
):
    updated = await service.remove_favorite(user.id, style_id)
    return ok(user_private(updated).collections, message="Removed from favorites")


@router.post("/me/bookmarks/{style_id}", summary="북마크 추가")
async def add_bookmark(
    style_id: str, user: Account = Depends(get_current_user), service: AccountService = Depends(get_account_service)
):
    updated = await service.add_bookmark(user.id, style_id)
    return ok(user_private(updated).collections, message="Bookmarked")


@router.delete("/me/bookmarks/{style_id}", summary="북마크 삭제")
async def remove_bookmark(
    style_id: str, user: Account = Depends(get_current_user), service: AccountService = Depends(get_account_service)
):
    updated = await service.remove_bookmark(user.id, style_id)
    return ok(user_private(updated).collections, message="Bookmark removed")


@router.post("/me/collections", status_code=201, summary="컬렉션 생성")
async def create_collection(
    payload: CollectionCreate,
    user: Account = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    updated = await service.create_collection(user.id, payload.name, payload.description, payload.is_public)
    return ok(user_private(updated).collections, message="Collection created")


@router.post("/me/collections/{name}/styles/{style_id}", summary="컬렉션에 스타일 추가")
async def add_to_collection(
    name: str,
    style_id: str,
    user: Account = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    updated = await service.add_to_collection(user.id, name, style_id)
    return ok(user_private(updated).collections)


@router.delete("/me/collections/{name}/styles/{style_id}", summary="컬렉션에서 스타일 제거")
async def remove_from_collection(
    name: str,
    style_id: str,
    user: Account = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    updated = await service.remove_from_collection(user.id, name, style_id)
    return ok(user_private(updated).collections)

# ---- 공개 조회 ----

@router.get("/search", summary="사용자 검색 (이름/소개)")
async def search_users(
    q: Optional[str] = Query(default=None, max_length=100),
    limit: int = Query(default=20, ge=1, le=50),
    service: AccountService = Depends(get_account_service),
):
    users = await service.search(q, limit)
    return ok([user_public(u) for u in users])


@router.get("/trending", summary="포인트 상위 사용자")
async def trending_users(
    limit: int = Query(default=10, ge=1, le=50),
    service: AccountService = Depends(get_account_service),
):
    users = await service.trending(limit)
    return ok([user_public(u) for u in users])


@router.get("/{user_id}", summary="공개 프로필")
async def get_user(
    user_id: str,
    viewer: Optional[Account] = Depends(get_optional_user),
    service: AccountService = Depends(get_account_service),
):
    account = await service.public_profile(user_id, viewer)
    return ok(user_public(account, await service.profile_counts(account)))


@router.post("/{user_id}/follow", summary="팔로우")
async def follow_user(
    user_id: str, user: Account = Depends(get_current_user), service: AccountService = Depends(get_account_service)
):
    await service.follow(user.id, user_id)
    return ok(message="User followed")


@router.delete("/{user_id}/follow", summary="언팔로우")
async def unfollow_user(
    user_id: str, user: Account = Depends(get_current_user), service: AccountService = Depends(get_account_service)
):
    await service.unfollow(user.id, user_id)
    return ok(message="User unfollowed")

# ---- 관리자 ----

@router.post("/{user_id}/points", summary="포인트 지급 (관리자)")
async def award_points(
    user_id: str,
    payload: PointsRequest,
    admin: Account = Depends(admin_only),
    service: AccountService = Depends(get_account_service),
):
    account = await service.award_points(user_id, payload.points)
    return ok({"points": account.achievements.points, "level": account.achievements.level})


@router.post("/{user_id}/suspend", summary="계정 정지 (관리자)")
async def suspend_user(
    user_id: str,
    payload: SuspendRequest,
    admin: Account = Depends(admin_only),
    service: AccountService = Depends(get_account_service),
):
    await service.suspend(user_id, payload.until, payload.reason)
    return ok(message="User suspended")


@router.post("/{user_id}/reactivate", summary="계정 정지 해제 (관리자)")
async def reactivate_user(
    user_id: str, admin: Account = Depends(admin_only), service: AccountService = Depends(get_account_service)
):
    await service.reactivate(user_id)
    return ok(message="User reactivated")


@router.post("/{user_id}/role", summary="권한 변경 (관리자)")
async def change_role(
    user_id: str,
    payload: RoleRequest,
    admin: Account = Depends(admin_only),
    service: AccountService = Depends(get_account_service),
):
    account = await service.change_role(user_id, payload.role)
    return ok({"role": account.account_status.role}, message="Role updated")
