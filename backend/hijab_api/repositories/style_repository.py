# 스타일 저장소 레이어
# - 목록/검색/유사/인기/추천 조회
# - 조회수는 문서 단위 원자적 $inc로 증가

import re
from typing import Dict, List, Optional, Tuple

from beanie.operators import Inc
from pymongo import DESCENDING

from ..domain.catalog import STYLE_SORTS, SearchFilters, Style, search_filter, similar_filter
from ..domain.enums import StyleStatus
from ..models.style import HijabStyle
from .base import BaseRepository, to_object_id

TEXT_SCORE_SORT = [("score", {"$meta": "textScore"})]

class StyleRepository(BaseRepository[HijabStyle, Style]):
    document_model = HijabStyle
    snapshot_model = Style
    conflict_message = "A style with this name already exists"
    resource_name = "Hijab style"

    async def get_by_slug(self, slug: str) -> Optional[Style]:
        async with self._storage("get_by_slug"):
            style = await HijabStyle.find_one({"slug": slug})
        return self.to_snapshot(style) if style else None

    async def find_page(
        self,
        query: Optional[str],
        filters: SearchFilters,
        sort: str = "newest",
        skip: int = 0,
        limit: int = 12,
    ) -> Tuple[List[Style], int]:
        mongo_filter = search_filter(query, filters)
        # 검색어가 있으면 텍스트 관련도 순, 없으면 요청된 정렬
        order = TEXT_SCORE_SORT if "$text" in mongo_filter else STYLE_SORTS.get(sort, STYLE_SORTS["newest"])
        async with self._storage("list"):
            total = await HijabStyle.find(mongo_filter).count()
            styles = await HijabStyle.find(mongo_filter).sort(order).skip(skip).limit(limit).to_list()
        return [self.to_snapshot(s) for s in styles], total

    async def find_similar(self, reference: Style, limit: int) -> List[Style]:
        mongo_filter = {**similar_filter(reference), "_id": {"$ne": to_object_id(reference.id)}}
        async with self._storage("find_similar"):
            styles = await (
                HijabStyle.find(mongo_filter)
                .sort([("likes", DESCENDING), ("views", DESCENDING)])
                .limit(limit)
                .to_list()
            )
        return [self.to_snapshot(s) for s in styles]

    async def popular(self, limit: int = 10, min_likes: int = 0) -> List[Style]:
        mongo_filter = {"status": StyleStatus.PUBLISHED.value}
        if min_likes:
            mongo_filter["likes"] = {"$gte": min_likes}
        async with self._storage("popular"):
            styles = await (
                HijabStyle.find(mongo_filter)
                .sort([("likes", DESCENDING), ("views", DESCENDING)])
                .limit(limit)
                .to_list()
            )
        return [self.to_snapshot(s) for s in styles]

    async def suggestions(self, query: str, limit: int = 10) -> List[Style]:
        # 사용자 입력은 정규식 특수문자를 이스케이프해서 리터럴로 검색
        pattern = {"$regex": re.escape(query.strip()), "$options": "i"}
        mongo_filter = {
            "status": StyleStatus.PUBLISHED.value,
            "$or": [{"name": pattern}, {"tags": pattern}],
        }
        async with self._storage("suggestions"):
            styles = await HijabStyle.find(mongo_filter).limit(limit).to_list()
        return [self.to_snapshot(s) for s in styles]

    async def filter_options(self, tag_limit: int = 20) -> Dict[str, list]:
        published = {"status": StyleStatus.PUBLISHED.value}
        async with self._storage("filter_options"):
            collection = HijabStyle.get_motor_collection()
            difficulties = await collection.distinct("difficulty", published)
            occasions = await collection.distinct("occasions", published)
            face_shapes = await collection.distinct("suitable_face_shapes", published)
            tags = await collection.distinct("tags", published)
        return {
            "difficulties": [d for d in difficulties if d],
            "occasions": [o for o in occasions if o],
            "face_shapes": [f for f in face_shapes if f],
            "tags": [t for t in tags if t][:tag_limit],
        }

    async def adjust_likes(self, style_id: str, delta: int) -> None:
        oid = to_object_id(style_id)
        if oid is None:
            return
        mongo_filter = {"_id": oid}
        if delta < 0:
            # 0 아래로 내려가지 않도록 조건부 감소
            mongo_filter["likes"] = {"$gt": 0}
        async with self._storage("adjust_likes"):
            await HijabStyle.find_one(mongo_filter).update(Inc({HijabStyle.likes: delta}))

    async def increment_views(self, style_id: str) -> None:
        oid = to_object_id(style_id)
        if oid is None:
            return
        async with self._storage("increment_views"):
            await HijabStyle.find_one(HijabStyle.id == oid).update(Inc({HijabStyle.views: 1}))

    async def count_by_creator(self, user_id: str) -> int:
        async with self._storage("count_by_creator"):
            return await HijabStyle.find({"created_by": user_id, "status": {"$ne": StyleStatus.ARCHIVED.value}}).count()
