# 스타일 요청·응답 스키마

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field

from ..domain.account import Account
from ..domain.catalog import Style
from ..domain.enums import Difficulty, FaceShape, Occasion, StyleStatus
from .common import ApiModel
from .review_schema import ReviewOut, StyleStatsOut
from .user_schema import UserSummary


class RequiredItemIn(ApiModel):
    item: str = Field(min_length=1, max_length=100)
    quantity: int = Field(default=1, ge=1)


class InstructionStepIn(ApiModel):
    step: int = Field(ge=1)
    description: str = Field(min_length=1, max_length=500)
    image: Optional[str] = None


class StyleCreate(ApiModel):
    name: str
    image: str
    additional_images: List[str] = []
    description: Optional[str] = None
    difficulty: Difficulty = Difficulty.BEGINNER
    occasions: List[Occasion] = []
    suitable_face_shapes: List[FaceShape] = []
    required_items: List[RequiredItemIn] = []
    instructions: List[InstructionStepIn] = []
    tags: List[str] = []
    status: StyleStatus = StyleStatus.PUBLISHED


class StyleUpdate(ApiModel):
    name: Optional[str] = None
    image: Optional[str] = None
    additional_images: Optional[List[str]] = None
    description: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    occasions: Optional[List[Occasion]] = None
    suitable_face_shapes: Optional[List[FaceShape]] = None
    required_items: Optional[List[RequiredItemIn]] = None
    instructions: Optional[List[InstructionStepIn]] = None
    tags: Optional[List[str]] = None
    status: Optional[StyleStatus] = None


class LikeRequest(ApiModel):
    # "unlike"만 감소, 그 외("like", "toggle" 등)는 증가
    action: str = "toggle"


class RequiredItemOut(ApiModel):
    item: str
    quantity: int


class InstructionStepOut(ApiModel):
    step: int
    description: str
    image: Optional[str] = None


class StyleOut(ApiModel):
    id: str
    name: str
    slug: str
    image: str
    additional_images: List[str] = []
    description: Optional[str] = None
    difficulty: Difficulty
    occasions: List[Occasion] = []
    suitable_face_shapes: List[FaceShape] = []
    required_items: List[RequiredItemOut] = []
    instructions: List[InstructionStepOut] = []
    likes: int
    views: int
    tags: List[str] = []
    status: StyleStatus
    created_by: Optional[str] = None
    creator: Optional[UserSummary] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SuggestionOut(ApiModel):
    id: str
    name: str
    slug: str


class StyleDetailOut(ApiModel):
    style: StyleOut
    reviews: List[ReviewOut] = []
    review_stats: Optional[StyleStatsOut] = None


class FilterOptionsOut(ApiModel):
    difficulties: List[str] = []
    occasions: List[str] = []
    face_shapes: List[str] = []
    tags: List[str] = []


def style_out(style: Style, creators: Dict[str, Account] = None) -> StyleOut:
    out = StyleOut.model_validate(style)
    creator = (creators or {}).get(style.created_by)
    if creator is not None:
        out = out.model_copy(update={"creator": UserSummary.from_account(creator)})
    return out
