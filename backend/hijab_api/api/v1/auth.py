# 인증 라우터
# - 회원가입/로그인/토큰 갱신/로그아웃: POST /api/v1/auth/...
# - 이메일 인증, 비밀번호 재설정
# - 내 정보: GET /api/v1/auth/me

from fastapi import APIRouter, Depends, Request, status

from ...domain.account import Account
from ...schemas.common import ok
from ...schemas.user_schema import (
    EmailRequest,
    LoginRequest,
    RefreshRequest,
    ResetPasswordRequest,
    TokenRequest,
    UserCreate,
    user_private,
)
from ...services.account_service import AccountService
from ..deps import get_account_service, get_current_user, get_token_payload

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED, summary="회원가입 (이메일 중복 체크, 인증 메일 발송)")
async def register(payload: UserCreate, service: AccountService = Depends(get_account_service)):
    user = await service.register(payload.name, payload.email, payload.password)
    return ok(user_private(user), message="Registration successful. Please verify your email.")


@router.post("/login", summary="로그인 (JWT Access/Refresh 토큰 발급)")
async def login(payload: LoginRequest, request: Request, service: AccountService = Depends(get_account_service)):
    user, tokens = await service.login(
        payload.email,
        payload.password,
        device=payload.device,
        ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    return ok({"user": user_private(user), "tokens": tokens}, message="Login successful")


@router.post("/refresh", summary="Refresh 토큰으로 새 토큰 발급")
async def refresh(payload: RefreshRequest, service: AccountService = Depends(get_account_service)):
    tokens = await service.refresh(payload.refresh_token)
    return ok(tokens)


@router.post("/logout", summary="현재 세션 종료")
async def logout(
    token_payload: dict = Depends(get_token_payload),
    user: Account = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    await service.logout(user.id, token_payload["sid"])
    return ok(message="Logged out")


@router.post("/verify-email", summary="이메일 인증")
async def verify_email(payload: TokenRequest, service: AccountService = Depends(get_account_service)):
    await service.verify_email(payload.token)
    return ok(message="Email verified successfully")


@router.post("/resend-verification", summary="인증 메일 재발송")
async def resend_verification(
    user: Account = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    await service.resend_verification(user.id)
    return ok(message="Verification email sent")


@router.post("/forgot-password", summary="비밀번호 재설정 메일 요청 (계정 존재 여부와 무관하게 같은 응답)")
async def forgot_password(payload: EmailRequest, service: AccountService = Depends(get_account_service)):
    await service.request_password_reset(payload.email)
    return ok(message="If an account exists for this email, a reset link has been sent")


@router.post("/reset-password", summary="비밀번호 재설정 (모든 세션 종료)")
async def reset_password(payload: ResetPasswordRequest, service: AccountService = Depends(get_account_service)):
    await service.reset_password(payload.token, payload.password)
    return ok(message="Password has been reset. Please log in again.")


@router.get("/me", summary="내 정보")
async def me(user: Account = Depends(get_current_user), service: AccountService = Depends(get_account_service)):
    counts = await service.profile_counts(user)
    return ok(user_private(user, counts))
