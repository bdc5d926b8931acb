# Review 모델 (Beanie Document)
# - (style_id, user_id) 복합 unique 인덱스: 사용자당 스타일 하나에 리뷰 1개
# - 본문/제목 텍스트 인덱스 (리뷰 검색용)

from datetime import datetime
from typing import List, Optional

from beanie import Document
from pydantic import Field
from pymongo import ASCENDING, DESCENDING, TEXT, IndexModel

from ..domain.base import utcnow
from ..domain.enums import ReviewStatus
from ..domain.review import (
    CreatorResponse,
    DetailedRating,
    EditHistoryEntry,
    FlagReport,
    ReviewImage,
    UserExperience,
    Voter,
)

class Review(Document):
    style_id: str
    user_id: str
    text: str
    rating: float
    detailed_rating: DetailedRating = Field(default_factory=DetailedRating)
    title: Optional[str] = None
    user_experience: UserExperience = Field(default_factory=UserExperience)
    images: List[ReviewImage] = Field(default_factory=list)
    helpful_votes: int = 0
    unhelpful_votes: int = 0
    voters: List[Voter] = Field(default_factory=list)
    status: ReviewStatus = ReviewStatus.PUBLISHED
    flag_reports: List[FlagReport] = Field(default_factory=list)
    creator_response: Optional[CreatorResponse] = None
    is_verified: bool = False
    edit_history: List[EditHistoryEntry] = Field(default_factory=list)
    deleted_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    class Settings:
        name = "reviews"
        indexes = [
            IndexModel([("style_id", ASCENDING), ("user_id", ASCENDING)], unique=True, name="one_review_per_user"),
            IndexModel([("style_id", ASCENDING), ("status", ASCENDING), ("created_at", DESCENDING)]),
            IndexModel([("user_id", ASCENDING), ("created_at", DESCENDING)]),
            IndexModel([("rating", DESCENDING), ("helpful_votes", DESCENDING)]),
            IndexModel([("status", ASCENDING), ("created_at", DESCENDING)]),
            IndexModel([("text", TEXT), ("title", TEXT)], name="review_text"),
        ]
