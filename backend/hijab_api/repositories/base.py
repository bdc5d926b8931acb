# 저장소 공통 레이어
# - Beanie Document ⇄ 도메인 스냅샷 변환
# - pymongo 예외를 서비스 예외로 변환 (중복 키 → ConflictError, 그 외 → UnexpectedError)

import logging
from contextlib import asynccontextmanager
from typing import Generic, List, Optional, Type, TypeVar

from beanie import Document, PydanticObjectId
from beanie.exceptions import DocumentNotFound
from beanie.operators import Set
from bson.errors import InvalidId
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..core.database import Database
from ..core.exceptions import ConflictError, NotFoundError, UnexpectedError
from ..domain.base import Snapshot, changed_fields

logger = logging.getLogger(__name__)

DocumentT = TypeVar("DocumentT", bound=Document)
SnapshotT = TypeVar("SnapshotT", bound=Snapshot)


def to_object_id(value: str) -> Optional[PydanticObjectId]:
    try:
        return PydanticObjectId(value)
    except (InvalidId, TypeError):
        return None


class BaseRepository(Generic[DocumentT, SnapshotT]):
    document_model: Type[DocumentT]
    snapshot_model: Type[SnapshotT]
    # 중복 키 오류 시 사용자에게 보여줄 메시지
    conflict_message: str = "Resource already exists"
    resource_name: str = "Resource"

    def __init__(self, database: Database):
        self.database = database

    def to_snapshot(self, document: DocumentT) -> SnapshotT:
        data = document.model_dump(exclude={"id", "revision_id"})
        return self.snapshot_model.model_validate({**data, "id": str(document.id)})

    def to_document(self, snapshot: SnapshotT) -> DocumentT:
        data = snapshot.model_dump(exclude={"id"})
        document = self.document_model(**data)
        if snapshot.id:
            document.id = PydanticObjectId(snapshot.id)
        return document

    @asynccontextmanager
    async def _storage(self, action: str):
        # 모든 DB 호출은 이 컨텍스트 안에서 실행
        self.database.ensure_connected()
        try:
            yield
        except DuplicateKeyError as e:
            logger.info(f"[{type(self).__name__}] {action}: 중복 키 {e.details}")
            raise ConflictError(self.conflict_message)
        except DocumentNotFound:
            raise NotFoundError(self.resource_name)
        except PyMongoError as e:
            logger.error(f"[{type(self).__name__}] {action} 실패: {e}", exc_info=True)
            raise UnexpectedError(f"{action}: {e}")

    async def get(self, entity_id: str) -> Optional[SnapshotT]:
        oid = to_object_id(entity_id)
        if oid is None:
            return None
        async with self._storage("get"):
            document = await self.document_model.get(oid)
        return self.to_snapshot(document) if document else None

    async def get_many(self, entity_ids: List[str]) -> List[SnapshotT]:
        oids = [oid for oid in (to_object_id(i) for i in entity_ids) if oid is not None]
        if not oids:
            return []
        async with self._storage("get_many"):
            documents = await self.document_model.find({"_id": {"$in": oids}}).to_list()
        return [self.to_snapshot(d) for d in documents]

    async def create(self, snapshot: SnapshotT) -> SnapshotT:
        async with self._storage("create"):
            document = self.to_document(snapshot)
            await document.insert()
        return self.to_snapshot(document)

    async def save(self, snapshot: SnapshotT) -> SnapshotT:
        # 스냅샷 전체를 문서 하나로 교체 저장 (단일 문서 원자적 쓰기)
        async with self._storage("save"):
            document = self.to_document(snapshot)
            await document.replace()
        return snapshot

    async def save_changes(self, before: SnapshotT, after: SnapshotT) -> SnapshotT:
        # 바뀐 필드만 $set (다른 경로의 $inc 결과를 오래된 값으로 덮어쓰지 않음)
        changed = changed_fields(before, after)
        if not changed:
            return after
        data = self.to_document(after).model_dump(include=changed)
        async with self._storage("save_changes"):
            await self.document_model.find_one({"_id": PydanticObjectId(after.id)}).update(Set(data))
        return after
