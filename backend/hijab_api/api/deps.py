# 라우터 공통 의존성
# - DB 핸들/락은 main.py에서 app.state에 한 번 생성된 것을 사용
# - 저장소 → 서비스 조립, 현재 사용자(Bearer JWT + 살아 있는 세션) 확인, 역할 검사

from typing import Optional

from fastapi import Depends, Request

from ..core.database import Database
from ..core.exceptions import AuthenticationError, AuthorizationError
from ..core.locks import KeyedLock
from ..core.security import decode_token, oauth2_scheme
from ..domain.account import Account
from ..domain.enums import Role
from ..repositories.review_repository import ReviewRepository
from ..repositories.style_repository import StyleRepository
from ..repositories.user_repository import UserRepository
from ..services.account_service import AccountService
from ..services.catalog_service import CatalogService
from ..services.mail_service import AccountMailer
from ..services.review_service import ReviewService


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_locks(request: Request) -> KeyedLock:
    return request.app.state.locks


def get_user_repository(database: Database = Depends(get_database)) -> UserRepository:
    return UserRepository(database)


def get_style_repository(database: Database = Depends(get_database)) -> StyleRepository:
    return StyleRepository(database)


def get_review_repository(database: Database = Depends(get_database)) -> ReviewRepository:
    return ReviewRepository(database)


def get_mailer() -> AccountMailer:
    return AccountMailer()


def get_account_service(
    users: UserRepository = Depends(get_user_repository),
    styles: StyleRepository = Depends(get_style_repository),
    reviews: ReviewRepository = Depends(get_review_repository),
    locks: KeyedLock = Depends(get_locks),
    mailer: AccountMailer = Depends(get_mailer),
) -> AccountService:
    return AccountService(users, locks, mailer=mailer, styles=styles, reviews=reviews)


def get_catalog_service(
    styles: StyleRepository = Depends(get_style_repository),
    locks: KeyedLock = Depends(get_locks),
    accounts: AccountService = Depends(get_account_service),
) -> CatalogService:
    return CatalogService(styles, locks, accounts=accounts)


def get_review_service(
    reviews: ReviewRepository = Depends(get_review_repository),
    styles: StyleRepository = Depends(get_style_repository),
    locks: KeyedLock = Depends(get_locks),
    accounts: AccountService = Depends(get_account_service),
) -> ReviewService:
    return ReviewService(reviews, styles, locks, accounts=accounts)


async def get_token_payload(token: Optional[str] = Depends(oauth2_scheme)) -> dict:
    if not token:
        raise AuthenticationError("Not authenticated")
    return decode_token(token, expected_type="access")


async def get_current_user(
    payload: dict = Depends(get_token_payload),
    accounts: AccountService = Depends(get_account_service),
) -> Account:
    return await accounts.resolve_session(payload["sub"], payload.get("sid"))


async def get_optional_user(
    token: Optional[str] = Depends(oauth2_scheme),
    accounts: AccountService = Depends(get_account_service),
) -> Optional[Account]:
    # 공개 API에서 로그인 여부에 따라 응답이 달라지는 경우 (토큰이 잘못되어도 익명으로 처리)
    if not token:
        return None
    try:
        payload = decode_token(token, expected_type="access")
        return await accounts.resolve_session(payload["sub"], payload.get("sid"))
    except AuthenticationError:
        return None


def require_roles(*roles: Role):
    async def checker(user: Account = Depends(get_current_user)) -> Account:
        if user.account_status.role not in roles:
            raise AuthorizationError(f"Requires one of the roles: {', '.join(r.value for r in roles)}")
        return user
    return checker
