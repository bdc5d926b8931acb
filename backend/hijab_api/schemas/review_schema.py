# 리뷰 요청·응답 스키마
# - 범위 검증(글자 수, 0.5 단위 평점 등)은 도메인에서 필드 단위 메시지로 처리

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field

from ..domain.account import Account
from ..domain.enums import DifficultyFeedback, ReviewStatus, VoteType
from ..domain.review import Review, StyleStats, find_vote, helpfulness_ratio, helpfulness_score
from .common import ApiModel
from .user_schema import UserSummary


class DetailedRatingIn(ApiModel):
    ease_of_following: Optional[float] = None
    style_appearance: Optional[float] = None
    instruction_clarity: Optional[float] = None


class UserExperienceIn(ApiModel):
    difficulty_level: Optional[DifficultyFeedback] = None
    time_spent: Optional[int] = None
    would_recommend: Optional[bool] = None


class ReviewImageIn(ApiModel):
    url: str
    caption: Optional[str] = None


class ReviewCreate(ApiModel):
    text: str
    rating: float
    title: Optional[str] = None
    detailed_rating: Optional[DetailedRatingIn] = None
    user_experience: Optional[UserExperienceIn] = None
    images: Optional[List[ReviewImageIn]] = None


class ReviewUpdate(ApiModel):
    text: Optional[str] = None
    rating: Optional[float] = None
    title: Optional[str] = None
    detailed_rating: Optional[DetailedRatingIn] = None
    user_experience: Optional[UserExperienceIn] = None
    images: Optional[List[ReviewImageIn]] = None


def review_content(payload: ApiModel) -> Dict:
    return payload.model_dump(exclude_unset=True, exclude_none=True)


class VoteRequest(ApiModel):
    vote_type: str


class FlagRequest(ApiModel):
    reason: str
    description: Optional[str] = Field(default=None, max_length=500)


class ResponseRequest(ApiModel):
    text: str


class StatusRequest(ApiModel):
    status: str


class BulkStatusRequest(ApiModel):
    review_ids: List[str] = Field(min_length=1, max_length=100)
    status: str


class BulkDeleteRequest(ApiModel):
    review_ids: List[str] = Field(min_length=1, max_length=100)


class DetailedRatingOut(ApiModel):
    ease_of_following: Optional[float] = None
    style_appearance: Optional[float] = None
    instruction_clarity: Optional[float] = None


class UserExperienceOut(ApiModel):
    difficulty_level: Optional[DifficultyFeedback] = None
    time_spent: Optional[int] = None
    would_recommend: bool = True


class ReviewImageOut(ApiModel):
    url: str
    caption: Optional[str] = None


class CreatorResponseOut(ApiModel):
    text: str
    responded_at: datetime
    responded_by: str


class EditHistoryOut(ApiModel):
    edited_at: datetime
    previous_text: str
    previous_rating: float


class ReviewOut(ApiModel):
    id: str
    style_id: str
    user_id: str
    user: Optional[UserSummary] = None
    title: Optional[str] = None
    text: str
    rating: float
    detailed_rating: DetailedRatingOut
    user_experience: UserExperienceOut
    images: List[ReviewImageOut] = []
    helpful_votes: int
    unhelpful_votes: int
    helpfulness_score: int = 0
    helpfulness_ratio: float = 0.0
    my_vote: Optional[VoteType] = None
    status: ReviewStatus
    flag_count: int = 0
    creator_response: Optional[CreatorResponseOut] = None
    is_verified: bool = False
    is_edited: bool = False
    edit_history: Optional[List[EditHistoryOut]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StyleStatsOut(ApiModel):
    average_rating: float
    total_reviews: int
    recommendation_rate: float
    rating_breakdown: Dict[int, int]


def review_out(
    review: Review,
    authors: Dict[str, Account] = None,
    viewer: Optional[Account] = None,
    include_history: bool = False,
) -> ReviewOut:
    author = (authors or {}).get(review.user_id)
    vote = find_vote(review, viewer.id) if viewer is not None else None
    return ReviewOut(
        id=review.id,
        style_id=review.style_id,
        user_id=review.user_id,
        user=UserSummary.from_account(author) if author is not None else None,
        title=review.title,
        text=review.text,
        rating=review.rating,
        detailed_rating=DetailedRatingOut.model_validate(review.detailed_rating),
        user_experience=UserExperienceOut.model_validate(review.user_experience),
        images=[ReviewImageOut.model_validate(i) for i in review.images],
        helpful_votes=review.helpful_votes,
        unhelpful_votes=review.unhelpful_votes,
        helpfulness_score=helpfulness_score(review),
        helpfulness_ratio=helpfulness_ratio(review),
        my_vote=vote.vote if vote is not None else None,
        status=review.status,
        flag_count=len(review.flag_reports),
        creator_response=(
            CreatorResponseOut.model_validate(review.creator_response) if review.creator_response else None
        ),
        is_verified=review.is_verified,
        is_edited=bool(review.edit_history),
        edit_history=[EditHistoryOut.model_validate(e) for e in review.edit_history] if include_history else None,
        created_at=review.created_at,
        updated_at=review.updated_at,
    )


def stats_out(stats: StyleStats) -> StyleStatsOut:
    return StyleStatsOut.model_validate(stats)
