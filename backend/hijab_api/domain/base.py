# 도메인 스냅샷 공통 베이스
# - 도메인 함수는 스냅샷을 받아 새 스냅샷을 반환합니다 (입력은 절대 수정하지 않음).
# - 저장은 repository가 별도로 수행합니다.

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict


class Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=False)


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def as_utc(value: datetime) -> datetime:
    # naive datetime은 UTC로 간주
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def changed_fields(before: Snapshot, after: Snapshot) -> set:
    return {
        name for name in type(after).model_fields
        if name != "id" and getattr(before, name) != getattr(after, name)
    }
