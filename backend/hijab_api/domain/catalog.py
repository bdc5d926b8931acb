# 카탈로그 도메인 (순수 함수)
# - 슬러그 생성, 좋아요/조회수 카운터
# - 유사 스타일 판정/정렬, 검색·목록 조회용 Mongo 필터 생성

import re
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import ValidationError
from .base import Snapshot
from .enums import Difficulty, FaceShape, Occasion, StyleStatus

IMAGE_URL_PATTERN = re.compile(r"^https?://.+\.(jpg|jpeg|png|webp|gif)$", re.IGNORECASE)
_NON_ALNUM = re.compile(r"[^a-z0-9]+")

# 목록 정렬 키 → (필드, 방향) 목록. 1 = 오름차순, -1 = 내림차순
STYLE_SORTS = {
    "newest": [("created_at", -1)],
    "oldest": [("created_at", 1)],
    "popular": [("likes", -1), ("views", -1)],
    "name": [("name", 1)],
    "difficulty": [("difficulty", 1), ("name", 1)],
}


class RequiredItem(Snapshot):
    item: str
    quantity: int = 1


class InstructionStep(Snapshot):
    step: int
    description: str
    image: Optional[str] = None


class Style(Snapshot):
    id: Optional[str] = None
    name: str
    image: str
    additional_images: Tuple[str, ...] = ()
    description: Optional[str] = None
    difficulty: Difficulty = Difficulty.BEGINNER
    occasions: Tuple[Occasion, ...] = ()
    suitable_face_shapes: Tuple[FaceShape, ...] = ()
    required_items: Tuple[RequiredItem, ...] = ()
    instructions: Tuple[InstructionStep, ...] = ()
    likes: int = 0
    views: int = 0
    created_by: Optional[str] = None
    tags: Tuple[str, ...] = ()
    status: StyleStatus = StyleStatus.PUBLISHED
    slug: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SearchFilters(Snapshot):
    difficulty: Optional[Difficulty] = None
    occasions: Tuple[Occasion, ...] = ()
    face_shape: Optional[FaceShape] = None
    created_by: Optional[str] = None
    status: StyleStatus = StyleStatus.PUBLISHED


def slugify(name: str) -> str:
    """
    이름을 URL 슬러그로 변환합니다.

    소문자로 바꾼 뒤 영숫자가 아닌 문자 묶음을 하이픈 하나로 바꾸고, 앞뒤 하이픈을 제거합니다.
    "Classic Wrap!!" → "classic-wrap"
    """
    return _NON_ALNUM.sub("-", name.lower()).strip("-")


def is_valid_image_url(url: str) -> bool:
    return bool(url) and bool(IMAGE_URL_PATTERN.match(url))


def normalize_tags(tags: Iterable[str]) -> Tuple[str, ...]:
    seen = []
    for tag in tags:
        tag = tag.strip().lower()
        if tag and tag not in seen:
            seen.append(tag)
    return tuple(seen)


def _validate(style: Style) -> None:
    errors = []
    if not style.name or not style.name.strip():
        errors.append("name: Style name is required")
    elif len(style.name) > 100:
        errors.append("name: Name cannot exceed 100 characters")
    elif not style.slug:
        errors.append("name: Name must contain at least one letter or digit")
    if not is_valid_image_url(style.image):
        errors.append("image: Valid image URL is required")
    for url in style.additional_images:
        if not is_valid_image_url(url):
            errors.append("additional_images: Please provide valid image URLs")
            break
    for step in style.instructions:
        if step.image and not is_valid_image_url(step.image):
            errors.append("instructions: Please provide a valid image URL")
            break
    if style.description and len(style.description) > 500:
        errors.append("description: Description cannot exceed 500 characters")
    if any(item.quantity < 1 for item in style.required_items):
        errors.append("required_items: Quantity must be at least 1")
    if errors:
        raise ValidationError("Validation error", errors=errors)


def _ordered_steps(steps: Iterable[InstructionStep]) -> Tuple[InstructionStep, ...]:
    return tuple(sorted(steps, key=lambda s: s.step))


def _to_style(data: Dict) -> Style:
    # 타입 오류(예: name에 null)는 필드별 메시지를 담은 ValidationError로 변환
    try:
        return Style.model_validate(data)
    except PydanticValidationError as e:
        errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise ValidationError("Validation error", errors=errors)


def build_style(data: Dict, creator_id: Optional[str], now: datetime) -> Style:
    """새 스타일을 만들고 검증합니다. 신규 레코드이므로 슬러그는 항상 생성됩니다."""
    fields = dict(data)
    fields["name"] = (fields.get("name") or "").strip()
    fields["tags"] = normalize_tags(fields.get("tags") or ())
    fields.pop("likes", None)
    fields.pop("views", None)
    style = _to_style({
        **fields,
        "created_by": creator_id,
        "slug": slugify(fields["name"]),
        "created_at": now,
        "updated_at": now,
    })
    style = style.model_copy(update={"instructions": _ordered_steps(style.instructions)})
    _validate(style)
    return style


def apply_style_patch(style: Style, patch: Dict, now: datetime) -> Style:
    """
    부분 수정을 적용합니다.

    슬러그는 이름이 실제로 바뀐 경우에만 다시 생성합니다.
    좋아요/조회수/작성자는 patch로 바꿀 수 없습니다.
    """
    blocked = {"id", "likes", "views", "created_by", "slug", "created_at", "updated_at"}
    changes = {k: v for k, v in patch.items() if k not in blocked}
    if "name" in changes and changes["name"] is not None:
        changes["name"] = changes["name"].strip()
    if "tags" in changes and changes["tags"] is not None:
        changes["tags"] = normalize_tags(changes["tags"])

    merged = _to_style({**style.model_dump(), **changes, "updated_at": now})
    if merged.name != style.name:
        merged = merged.model_copy(update={"slug": slugify(merged.name)})
    merged = merged.model_copy(update={"instructions": _ordered_steps(merged.instructions)})
    _validate(merged)
    return merged


def archive(style: Style, now: datetime) -> Style:
    return style.model_copy(update={"status": StyleStatus.ARCHIVED, "updated_at": now})


def toggle_like(style: Style, increment: bool = True) -> Style:
    # 이미 0인 상태에서 취소 요청이 와도 0 아래로 내려가지 않음
    likes = max(0, style.likes + (1 if increment else -1))
    return style.model_copy(update={"likes": likes})


def increment_views(style: Style) -> Style:
    return style.model_copy(update={"views": style.views + 1})


def reset_views(style: Style, now: datetime) -> Style:
    return style.model_copy(update={"views": 0, "updated_at": now})


# ---- 유사 스타일 ----

def is_similar(candidate: Style, reference: Style) -> bool:
    if candidate.id == reference.id or candidate.status != StyleStatus.PUBLISHED:
        return False
    return (
        candidate.difficulty == reference.difficulty
        or bool(set(candidate.occasions) & set(reference.occasions))
        or bool(set(candidate.tags) & set(reference.tags))
        or bool(set(candidate.suitable_face_shapes) & set(reference.suitable_face_shapes))
    )


def popularity_key(style: Style):
    return (-style.likes, -style.views)


def rank_similar(candidates: Iterable[Style], reference: Style, limit: int) -> List[Style]:
    matches = [c for c in candidates if is_similar(c, reference)]
    return sorted(matches, key=popularity_key)[:limit]


def similar_filter(reference: Style) -> Dict:
    # rank_similar와 같은 조건을 Mongo 쿼리로 표현 (자기 자신 제외 조건은 repository가 ObjectId로 추가)
    def values(items):
        return [getattr(v, "value", v) for v in items]

    return {
        "status": StyleStatus.PUBLISHED.value,
        "$or": [
            {"difficulty": reference.difficulty.value},
            {"occasions": {"$in": values(reference.occasions)}},
            {"tags": {"$in": list(reference.tags)}},
            {"suitable_face_shapes": {"$in": values(reference.suitable_face_shapes)}},
        ],
    }


# ---- 검색 / 목록 ----

def search_filter(query: Optional[str], filters: SearchFilters) -> Dict:
    """
    검색어와 필터를 AND로 결합한 Mongo 필터를 만듭니다.

    검색어가 있으면 텍스트 인덱스($text)를 사용하고, 정렬은 호출 측에서 관련도 점수로 합니다.
    """
    mongo_filter = {"status": filters.status.value}
    if query and query.strip():
        mongo_filter["$text"] = {"$search": query.strip()}
    if filters.difficulty:
        mongo_filter["difficulty"] = filters.difficulty.value
    if filters.occasions:
        mongo_filter["occasions"] = {"$in": [o.value for o in filters.occasions]}
    if filters.face_shape:
        mongo_filter["suitable_face_shapes"] = filters.face_shape.value
    if filters.created_by:
        mongo_filter["created_by"] = filters.created_by
    return mongo_filter


def matches_filters(style: Style, filters: SearchFilters) -> bool:
    if style.status != filters.status:
        return False
    if filters.difficulty and style.difficulty != filters.difficulty:
        return False
    if filters.occasions and not set(style.occasions) & set(filters.occasions):
        return False
    if filters.face_shape and filters.face_shape not in style.suitable_face_shapes:
        return False
    if filters.created_by and style.created_by != filters.created_by:
        return False
    return True


def sort_styles(styles: Iterable[Style], sort: str) -> List[Style]:
    # 정렬 키를 뒤에서부터 안정 정렬로 적용 (Mongo의 다중 키 정렬과 같은 결과)
    ordered = list(styles)
    for field, direction in reversed(STYLE_SORTS.get(sort, STYLE_SORTS["newest"])):
        ordered.sort(key=lambda s: _sort_value(getattr(s, field)), reverse=direction < 0)
    return ordered


def _sort_value(value):
    return getattr(value, "value", value)
