# 리뷰 저장소 레이어
# - 스타일별/사용자별 목록, 도움순 랭킹, 텍스트 검색
# - soft delete된 리뷰(deleted_at 존재)는 목록/통계에서 항상 제외

from typing import Iterable, List, Optional, Tuple

from pymongo import DESCENDING

from ..domain.enums import ReviewStatus
from ..domain.review import REVIEW_SORTS, Review
from ..models.review import Review as ReviewDocument
from .base import BaseRepository

LIVE = {"deleted_at": None}

class ReviewRepository(BaseRepository[ReviewDocument, Review]):
    document_model = ReviewDocument
    snapshot_model = Review
    conflict_message = "You have already reviewed this style"
    resource_name = "Review"

    async def get_for_pair(self, style_id: str, user_id: str) -> Optional[Review]:
        # soft delete된 리뷰도 포함해서 조회 (재작성 시 되살리기 위해)
        async with self._storage("get_for_pair"):
            review = await ReviewDocument.find_one({"style_id": style_id, "user_id": user_id})
        return self.to_snapshot(review) if review else None

    async def _page(self, mongo_filter: dict, sort, skip: int, limit: int) -> Tuple[List[Review], int]:
        async with self._storage("page"):
            total = await ReviewDocument.find(mongo_filter).count()
            reviews = await ReviewDocument.find(mongo_filter).sort(sort).skip(skip).limit(limit).to_list()
        return [self.to_snapshot(r) for r in reviews], total

    async def find_for_style(
        self,
        style_id: str,
        status: ReviewStatus = ReviewStatus.PUBLISHED,
        sort: str = "newest",
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Review], int]:
        mongo_filter = {**LIVE, "style_id": style_id, "status": status.value}
        return await self._page(mongo_filter, REVIEW_SORTS.get(sort, REVIEW_SORTS["newest"]), skip, limit)

    async def find_for_user(
        self,
        user_id: str,
        statuses: Iterable[ReviewStatus] = (ReviewStatus.PUBLISHED,),
        sort: str = "newest",
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Review], int]:
        mongo_filter = {**LIVE, "user_id": user_id, "status": {"$in": [s.value for s in statuses]}}
        return await self._page(mongo_filter, REVIEW_SORTS.get(sort, REVIEW_SORTS["newest"]), skip, limit)

    async def published_for_style(self, style_id: str) -> List[Review]:
        mongo_filter = {**LIVE, "style_id": style_id, "status": ReviewStatus.PUBLISHED.value}
        async with self._storage("published_for_style"):
            reviews = await ReviewDocument.find(mongo_filter).to_list()
        return [self.to_snapshot(r) for r in reviews]

    async def find_helpful(self, limit: int = 5) -> List[Review]:
        mongo_filter = {**LIVE, "status": ReviewStatus.PUBLISHED.value}
        async with self._storage("find_helpful"):
            reviews = await (
                ReviewDocument.find(mongo_filter)
                .sort([("helpful_votes", DESCENDING), ("rating", DESCENDING)])
                .limit(limit)
                .to_list()
            )
        return [self.to_snapshot(r) for r in reviews]

    async def search(
        self,
        query: str,
        style_id: Optional[str] = None,
        user_id: Optional[str] = None,
        min_rating: Optional[float] = None,
        max_rating: Optional[float] = None,
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Review], int]:
        mongo_filter = {**LIVE, "status": ReviewStatus.PUBLISHED.value, "$text": {"$search": query}}
        if style_id:
            mongo_filter["style_id"] = style_id
        if user_id:
            mongo_filter["user_id"] = user_id
        rating = {}
        if min_rating is not None:
            rating["$gte"] = min_rating
        if max_rating is not None:
            rating["$lte"] = max_rating
        if rating:
            mongo_filter["rating"] = rating
        return await self._page(mongo_filter, [("score", {"$meta": "textScore"})], skip, limit)

    async def count_by_user(self, user_id: str) -> int:
        async with self._storage("count_by_user"):
            return await ReviewDocument.find({**LIVE, "user_id": user_id, "status": ReviewStatus.PUBLISHED.value}).count()
