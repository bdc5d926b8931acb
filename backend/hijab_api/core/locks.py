# 문서 단위 락
# - 투표/신고/좋아요처럼 "읽기 → 계산 → 쓰기"를 하는 작업은 같은 문서에 대해 직렬화되어야 합니다.
# - 단일 프로세스(uvicorn worker 1개) 기준의 asyncio 락입니다.

import asyncio
from contextlib import asynccontextmanager
from typing import Dict


class KeyedLock:
    """키(예: "review:<id>")마다 하나의 asyncio.Lock을 관리합니다.

    아무도 기다리지 않는 락은 해제 시점에 정리하여 딕셔너리가 무한히 커지지 않게 합니다.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str):
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)
