# MongoDB 연결 핸들
# - main.py에서 명시적으로 생성하고, 앱 시작 시 connect(), 종료 시 close() 합니다.
# - 모든 저장소(repository)는 이 핸들을 주입받아 사용합니다.

import logging
from typing import List, Optional, Type

from beanie import Document, init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from .exceptions import UnexpectedError
from .retry import storage_retry

logger = logging.getLogger(__name__)


class Database:
    def __init__(self, uri: str, document_models: List[Type[Document]], timeout_ms: int = 5000):
        self.uri = uri
        self.document_models = document_models
        self.timeout_ms = timeout_ms
        self.client: Optional[AsyncIOMotorClient] = None
        self.connected = False

    @storage_retry
    async def _ping(self) -> None:
        await self.client.admin.command("ping")

    async def connect(self) -> None:
        # tz_aware=True: DB에서 읽은 datetime도 UTC aware로 받아 비교 연산이 안전해집니다.
        self.client = AsyncIOMotorClient(self.uri, serverSelectionTimeoutMS=self.timeout_ms, tz_aware=True)
        await self._ping()
        db = self.client.get_default_database()
        await init_beanie(database=db, document_models=self.document_models)
        self.connected = True
        logger.info(f"[Database] MongoDB 연결 성공: {db.name}")

    async def close(self) -> None:
        if self.client is not None:
            self.client.close()
            logger.info("[Database] MongoDB 연결 종료")
        self.client = None
        self.connected = False

    def ensure_connected(self) -> None:
        if not self.connected:
            raise UnexpectedError("MongoDB is not connected")
