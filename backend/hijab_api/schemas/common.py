# 공통 응답 스키마
# - 모든 응답은 {success, data?, message?, errors?} 봉투 형식
# - JSON 키는 camelCase (요청은 camelCase/snake_case 모두 허용)

import math
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class Pagination(ApiModel):
    current_page: int
    total_pages: int
    total_count: int
    limit: int
    has_next: bool
    has_prev: bool


def paginate(page: int, limit: int, total: int) -> Pagination:
    total_pages = math.ceil(total / limit) if limit else 0
    return Pagination(
        current_page=page,
        total_pages=total_pages,
        total_count=total,
        limit=limit,
        has_next=page < total_pages,
        has_prev=page > 1,
    )


def ok(data: Any = None, message: Optional[str] = None, pagination: Optional[Pagination] = None) -> dict:
    body = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    if pagination is not None:
        body["pagination"] = pagination
    return body
