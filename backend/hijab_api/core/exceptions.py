# 커스텀 예외 클래스 정의
# - 서비스/도메인 레이어는 HTTP를 모르고 이 예외들만 발생시킵니다.
# - API 레이어의 예외 핸들러가 각 예외를 상태 코드와 응답 봉투로 변환합니다.

import logging
from typing import List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class HijabServiceError(Exception):
    """서비스 전체 예외의 기본 클래스

    모든 도메인 예외는 이 클래스를 상속합니다.
    try-except 블록에서 서비스 예외만 골라 잡을 수 있습니다.

    Attributes:
        message: 호출자에게 노출되는 메시지
        errors: 필드 단위 에러 목록 (있는 경우)
    """
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(message)


class ValidationError(HijabServiceError):
    """입력 값이 형식이나 범위를 벗어났을 때 발생하는 예외

    Attributes:
        field_name: 검증 실패한 필드 이름 (있는 경우)
    """
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, field_name: str = None, errors: Optional[List[str]] = None):
        self.field_name = field_name
        if errors is None and field_name:
            errors = [f"{field_name}: {message}"]
        super().__init__(message, errors)


class NotFoundError(HijabServiceError):
    """존재하지 않는 id를 조회했을 때 발생하는 예외"""
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, resource_id: str = None):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found")


class AuthenticationError(HijabServiceError):
    """토큰이 없거나 잘못되었거나 만료되었을 때, 또는 로그인 실패 시 발생하는 예외"""
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(message)


class AuthorizationError(HijabServiceError):
    """요청한 사용자에게 권한이 없을 때 발생하는 예외 (예: 다른 사람의 리뷰 수정)"""
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "You are not allowed to perform this action"):
        super().__init__(message)


class ConflictError(HijabServiceError):
    """유일성 제약 위반 (중복 리뷰, 중복 슬러그/이메일 등)"""
    status_code = status.HTTP_409_CONFLICT


class UnexpectedError(HijabServiceError):
    """저장소/인프라 장애

    상세 내용은 서버 로그에만 남기고, 호출자에게는 일반 메시지만 전달합니다.
    """
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str = ""):
        self.detail = detail
        super().__init__("An unexpected error occurred")


def _envelope(message: str, errors: Optional[List[str]] = None) -> dict:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return body


async def service_error_handler(request: Request, exc: HijabServiceError) -> JSONResponse:
    if isinstance(exc, UnexpectedError):
        logger.error(f"[API] {request.method} {request.url.path} 실패: {exc.detail}")
    headers = None
    if isinstance(exc, AuthenticationError):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=exc.status_code, content=_envelope(exc.message, exc.errors), headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # 요청 본문/쿼리 검증 실패를 필드 단위 메시지로 변환
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc) or "request"
        errors.append(f"{field}: {err.get('msg', 'Invalid value')}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_envelope("Validation error", errors),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"[API] {request.method} {request.url.path} 처리 중 예상치 못한 오류: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_envelope("An unexpected error occurred"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HijabServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
