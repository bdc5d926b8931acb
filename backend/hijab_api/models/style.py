# HijabStyle 모델 (Beanie Document)
# - slug는 unique 인덱스
# - 이름/설명/태그 텍스트 인덱스 (검색용)

from datetime import datetime
from typing import List, Optional

from beanie import Document, Indexed
from pydantic import Field
from pymongo import ASCENDING, DESCENDING, TEXT, IndexModel

from ..domain.base import utcnow
from ..domain.catalog import InstructionStep, RequiredItem
from ..domain.enums import Difficulty, FaceShape, Occasion, StyleStatus

class HijabStyle(Document):
    name: str
    image: str
    additional_images: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    difficulty: Difficulty = Difficulty.BEGINNER
    occasions: List[Occasion] = Field(default_factory=list)
    suitable_face_shapes: List[FaceShape] = Field(default_factory=list)
    required_items: List[RequiredItem] = Field(default_factory=list)
    instructions: List[InstructionStep] = Field(default_factory=list)
    likes: int = 0
    views: int = 0
    created_by: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    status: StyleStatus = StyleStatus.PUBLISHED
    slug: Indexed(str, unique=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    class Settings:
        name = "hijab_styles"
        indexes = [
            IndexModel([("name", TEXT), ("description", TEXT), ("tags", TEXT)], name="style_text"),
            IndexModel([("difficulty", ASCENDING), ("occasions", ASCENDING)]),
            IndexModel([("status", ASCENDING), ("created_at", DESCENDING)]),
            IndexModel([("status", ASCENDING), ("likes", DESCENDING), ("views", DESCENDING)]),
            IndexModel([("created_by", ASCENDING)]),
        ]
