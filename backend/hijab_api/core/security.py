# 보안/인증 유틸리티
# - 비밀번호 해싱/검증 (bcrypt)
# - JWT 토큰 생성/검증
# - 이메일 인증/비밀번호 재설정용 일회성 토큰 생성 및 단방향 해시

from datetime import datetime, timedelta, timezone
import hashlib
import hmac
import secrets
from typing import Tuple

from fastapi.security import OAuth2PasswordBearer
from passlib.context import CryptContext
import jwt

from .config import settings
from .exceptions import AuthenticationError

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)
# auto_error=False: 토큰이 없을 때 FastAPI 기본 응답 대신 우리 예외(AuthenticationError)로 처리
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)

# 존재하지 않는 이메일로 로그인할 때도 해시 검증 시간을 맞추기 위한 더미 해시
_DUMMY_HASH = pwd_context.hash("timing-equalizer-Passw0rd")

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)

def burn_password_check(plain_password: str) -> None:
    pwd_context.verify(plain_password, _DUMMY_HASH)

def create_token(subject: dict, expires_delta: timedelta) -> str:
    now = datetime.now(tz=timezone.utc)
    payload = {
        "exp": now + expires_delta,
        "iat": now,
        "nbf": now,
        **subject,
    }
    token = jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    return token

def create_access_token(user_id: str, session_id: str = None) -> str:
    return create_token(
        {"sub": str(user_id), "sid": session_id, "type": "access"},
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )

def create_refresh_token(user_id: str, session_id: str = None) -> str:
    return create_token(
        {"sub": str(user_id), "sid": session_id, "type": "refresh"},
        timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )

def decode_token(token: str, expected_type: str = "access") -> dict:
    # 서명/만료 검증 후 토큰 타입과 subject를 확인
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except jwt.PyJWTError:
        raise AuthenticationError()
    if payload.get("type") != expected_type or not payload.get("sub"):
        raise AuthenticationError()
    return payload

# ---- 일회성 토큰 (이메일 인증 / 비밀번호 재설정) ----

def hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()

def generate_one_time_token() -> Tuple[str, str]:
    """
    원본 토큰과 그 SHA-256 해시를 함께 반환합니다.

    원본은 메일로만 전달하고, DB에는 해시만 저장합니다.
    DB가 유출되어도 해시로는 토큰을 복원할 수 없습니다.
    """
    raw = secrets.token_hex(32)
    return raw, hash_token(raw)

def token_hash_matches(raw_token: str, stored_hash: str) -> bool:
    if not raw_token or not stored_hash:
        return False
    return hmac.compare_digest(hash_token(raw_token), stored_hash)

def new_session_id() -> str:
    return secrets.token_urlsafe(16)
