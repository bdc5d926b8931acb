# 설정 모듈
# - .env 값들을 한 곳에서 관리
# - 기본값을 제공하여 로컬 실행 편의성 확보

from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path
from pydantic import Field

# 프로젝트 루트 디렉토리 경로 찾기
# 이 파일은 backend/hijab_api/core/config.py에 있으므로 3단계 상위가 프로젝트 루트입니다.
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
ENV_FILE_PATH = PROJECT_ROOT / ".env"

class Settings(BaseSettings):
    APP_NAME: str = "hijab-gallery"
    ENV: str = "dev"
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    MONGODB_URI: str = "mongodb://localhost:27017/hijab_gallery"
    MONGODB_TIMEOUT_MS: int = 5000

    JWT_SECRET_KEY: str = Field(..., description="JWT 토큰 서명에 사용되는 비밀키. 반드시 강력한 랜덤 문자열로 설정하세요.")
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # bcrypt cost factor. 테스트에서는 4로 낮춰 속도를 확보합니다.
    BCRYPT_ROUNDS: int = 12

    # 로그인 잠금 정책
    LOGIN_MAX_ATTEMPTS: int = 5
    LOGIN_LOCK_MINUTES: int = 120
    # 계정당 동시에 유지되는 세션 수 (초과 시 가장 오래된 세션부터 제거)
    MAX_SESSIONS: int = 10

    # 이메일 인증 / 비밀번호 재설정 토큰 유효기간
    EMAIL_VERIFICATION_EXPIRE_HOURS: int = 24
    PASSWORD_RESET_EXPIRE_MINUTES: int = 10
    FRONTEND_URL: str = "http://localhost:5173"

    CORS_ALLOW_ORIGINS: str = "http://localhost:5173,http://localhost:3000"

    # 리뷰 정책
    REVIEWS_REQUIRE_APPROVAL: bool = False
    REVIEW_FLAG_THRESHOLD: int = 3
    REVIEW_EDIT_HISTORY_LIMIT: int = 50

    # 게이미피케이션 포인트
    POINTS_PER_REVIEW: int = 10
    POINTS_PER_STYLE: int = 20

    # 카탈로그
    FEATURED_MIN_LIKES: int = 50
    FEATURED_LIMIT: int = 6
    DEFAULT_PAGE_SIZE: int = 12
    MAX_PAGE_SIZE: int = 100

    REDIS_URL: str = "redis://localhost:6379/0"
    TIMEZONE: str = "UTC"

    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM: str = "Hijab Gallery <noreply@example.com>"
    SMTP_TLS: bool = True

    model_config = SettingsConfigDict(
        # env_file에 절대 경로를 지정하면 backend 디렉토리에서 실행해도
        # 프로젝트 루트의 .env 파일을 찾을 수 있습니다.
        env_file=str(ENV_FILE_PATH) if ENV_FILE_PATH.exists() else ".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

settings = Settings()
