# FastAPI 진입점
# - DB 핸들(Database)과 문서 단위 락(KeyedLock)을 명시적으로 생성해 app.state에 보관
# - 시작 시 MongoDB 연결, 종료 시 연결 해제
# - 예외 핸들러, CORS, 라우터 등록
# - Celery는 별도 프로세스로 동작 (tasks/account_tasks.py 참고)

import logging
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.v1.auth import router as auth_router
from .api.v1.reviews import router as reviews_router
from .api.v1.styles import router as styles_router
from .api.v1.users import router as users_router
from .core.config import settings
from .core.database import Database
from .core.exceptions import register_exception_handlers
from .core.locks import KeyedLock
from .models.documents import DOCUMENT_MODELS

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"

# FastAPI 애플리케이션 인스턴스 생성
app = FastAPI(
    title="Hijab Gallery API",
    description="히잡 스타일 카탈로그 & 리뷰 서비스",
    version=APP_VERSION,
)

# CORS 허용 도메인 세팅
origins = [o.strip() for o in settings.CORS_ALLOW_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.state.database = Database(settings.MONGODB_URI, DOCUMENT_MODELS, settings.MONGODB_TIMEOUT_MS)
app.state.locks = KeyedLock()


@app.on_event("startup")
async def app_init():
    try:
        await app.state.database.connect()
    except Exception as e:
        # 연결 실패 시에도 서버는 시작됩니다 (헬스체크에서 상태 확인 가능, DB 호출은 500 응답)
        logger.error(f"[Startup] MongoDB 연결 실패: {e}")
        logger.info(f"[Startup] MongoDB URI를 확인하세요: {settings.MONGODB_URI}")


@app.on_event("shutdown")
async def app_shutdown():
    await app.state.database.close()


# 간단한 헬스체크
@app.get("/")
async def root():
    return {"ok": True, "app": settings.APP_NAME, "time": datetime.now(tz=timezone.utc).isoformat()}


@app.get("/health")
async def health_check():
    return {
        "status": "ok",
        "app": settings.APP_NAME,
        "version": APP_VERSION,
        "database": "connected" if app.state.database.connected else "disconnected",
    }


# API v1 라우터 등록
app.include_router(auth_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")
app.include_router(styles_router, prefix="/api/v1")
app.include_router(reviews_router, prefix="/api/v1")
