# 리뷰 도메인 (순수 함수)
# - 작성/수정 검증, 수정 이력(edit history)
# - 도움돼요/별로예요 투표, 신고(flag)와 자동 Flagged 전환
# - 크리에이터 답글, 모더레이션 상태 전이
# - 스타일별 통계, 정렬

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import Field

from ..core.exceptions import ConflictError, ValidationError
from .base import Snapshot
from .catalog import is_valid_image_url
from .enums import DifficultyFeedback, FlagReason, ReviewStatus, VoteType

TEXT_MIN_LENGTH = 10
TEXT_MAX_LENGTH = 1000
TITLE_MAX_LENGTH = 100
RESPONSE_MAX_LENGTH = 500
CAPTION_MAX_LENGTH = 200
FLAG_THRESHOLD = 3

# 정렬 키 → (필드, 방향) 목록. 1차 키 다음에 최신순이 동점 처리 기준
REVIEW_SORTS = {
    "newest": [("created_at", -1)],
    "oldest": [("created_at", 1)],
    "highest": [("rating", -1), ("created_at", -1)],
    "lowest": [("rating", 1), ("created_at", -1)],
    "helpful": [("helpful_votes", -1), ("created_at", -1)],
}

# 모더레이터가 수동으로 바꿀 수 있는 상태 전이
# Published → Flagged 는 신고 누적으로만 일어나므로 여기에 없음
MODERATION_TRANSITIONS = {
    ReviewStatus.PENDING: {ReviewStatus.PUBLISHED, ReviewStatus.HIDDEN},
    ReviewStatus.PUBLISHED: {ReviewStatus.HIDDEN},
    ReviewStatus.FLAGGED: {ReviewStatus.HIDDEN, ReviewStatus.PUBLISHED},
    ReviewStatus.HIDDEN: {ReviewStatus.PUBLISHED},
}


class DetailedRating(Snapshot):
    ease_of_following: Optional[float] = None
    style_appearance: Optional[float] = None
    instruction_clarity: Optional[float] = None


class UserExperience(Snapshot):
    difficulty_level: Optional[DifficultyFeedback] = None
    time_spent: Optional[int] = None
    would_recommend: bool = True


class ReviewImage(Snapshot):
    url: str
    caption: Optional[str] = None


class Voter(Snapshot):
    user_id: str
    vote: VoteType


class FlagReport(Snapshot):
    reported_by: str
    reason: FlagReason
    description: Optional[str] = None
    reported_at: datetime


class CreatorResponse(Snapshot):
    text: str
    responded_at: datetime
    responded_by: str


class EditHistoryEntry(Snapshot):
    edited_at: datetime
    previous_text: str
    previous_rating: float


class Review(Snapshot):
    id: Optional[str] = None
    style_id: str
    user_id: str
    text: str
    rating: float
    detailed_rating: DetailedRating = Field(default_factory=DetailedRating)
    title: Optional[str] = None
    user_experience: UserExperience = Field(default_factory=UserExperience)
    images: Tuple[ReviewImage, ...] = ()
    helpful_votes: int = 0
    unhelpful_votes: int = 0
    voters: Tuple[Voter, ...] = ()
    status: ReviewStatus = ReviewStatus.PUBLISHED
    flag_reports: Tuple[FlagReport, ...] = ()
    creator_response: Optional[CreatorResponse] = None
    is_verified: bool = False
    edit_history: Tuple[EditHistoryEntry, ...] = ()
    deleted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_new(self) -> bool:
        return self.id is None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class StyleStats(Snapshot):
    average_rating: float = 0.0
    total_reviews: int = 0
    recommendation_rate: float = 0.0
    rating_breakdown: Dict[int, int] = Field(default_factory=lambda: {5: 0, 4: 0, 3: 0, 2: 0, 1: 0})


# ---- 검증 ----

def _is_half_step(value: float) -> bool:
    return float(value * 2).is_integer()


def rating_errors(value, field: str, required: bool = True) -> List[str]:
    if value is None:
        return [f"{field}: Rating is required"] if required else []
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return [f"{field}: Rating must be a number"]
    if value < 1 or value > 5:
        return [f"{field}: Rating must be between 1 and 5"]
    if not _is_half_step(value):
        return [f"{field}: Rating must be in increments of 0.5"]
    return []


def content_errors(content: Dict, partial: bool = False) -> List[str]:
    """리뷰 본문/평점/부가 정보 검증. partial=True면 들어온 필드만 검사합니다."""
    errors = []
    if not partial or "text" in content:
        text = (content.get("text") or "").strip()
        if len(text) < TEXT_MIN_LENGTH:
            errors.append(f"text: Review must be at least {TEXT_MIN_LENGTH} characters long")
        elif len(text) > TEXT_MAX_LENGTH:
            errors.append(f"text: Review cannot exceed {TEXT_MAX_LENGTH} characters")
    if not partial or "rating" in content:
        errors.extend(rating_errors(content.get("rating"), "rating"))

    detailed = content.get("detailed_rating") or {}
    for key in ("ease_of_following", "style_appearance", "instruction_clarity"):
        errors.extend(rating_errors(detailed.get(key), f"detailed_rating.{key}", required=False))

    title = content.get("title")
    if title and len(title.strip()) > TITLE_MAX_LENGTH:
        errors.append(f"title: Review title cannot exceed {TITLE_MAX_LENGTH} characters")

    experience = content.get("user_experience") or {}
    time_spent = experience.get("time_spent")
    if time_spent is not None and not 1 <= time_spent <= 240:
        errors.append("user_experience.time_spent: Time spent must be between 1 and 240 minutes")

    for image in content.get("images") or ():
        if not is_valid_image_url(image.get("url")):
            errors.append("images: Please provide a valid image URL")
            break
        if image.get("caption") and len(image["caption"]) > CAPTION_MAX_LENGTH:
            errors.append(f"images: Caption cannot exceed {CAPTION_MAX_LENGTH} characters")
            break
    return errors


def validate_content(content: Dict, partial: bool = False) -> None:
    errors = content_errors(content, partial)
    if errors:
        raise ValidationError("Validation error", errors=errors)


def _normalized(content: Dict) -> Dict:
    fields = {k: v for k, v in content.items() if v is not None or k == "title"}
    if "text" in fields:
        fields["text"] = fields["text"].strip()
    if fields.get("title") is not None:
        fields["title"] = fields["title"].strip() or None
    if "rating" in fields:
        fields["rating"] = float(fields["rating"])
    return fields


# ---- 작성 / 수정 ----

def new_review(style_id: str, user_id: str, content: Dict, now: datetime, require_approval: bool = False) -> Review:
    validate_content(content)
    status = ReviewStatus.PENDING if require_approval else ReviewStatus.PUBLISHED
    return Review.model_validate({
        **_normalized(content),
        "style_id": style_id,
        "user_id": user_id,
        "status": status,
        "created_at": now,
        "updated_at": now,
    })


def _push_history(history: Tuple[EditHistoryEntry, ...], entry: EditHistoryEntry, limit: Optional[int]):
    history = history + (entry,)
    if limit is not None and limit > 0 and len(history) > limit:
        # 보존 한도를 넘으면 가장 오래된 이력부터 버림
        history = history[-limit:]
    return history


def apply_edit(review: Review, changes: Dict, now: datetime, history_limit: Optional[int] = None) -> Review:
    """
    리뷰 수정을 적용합니다.

    저장된(신규가 아닌) 리뷰의 본문이나 평점이 실제로 바뀌면, 새 값을 적용하기 전에
    {수정 시각, 이전 본문, 이전 평점}을 이력에 추가합니다. 다른 필드 변경은 이력을 남기지 않습니다.
    """
    validate_content(changes, partial=True)
    fields = _normalized(changes)
    allowed = {"text", "rating", "detailed_rating", "title", "user_experience", "images"}
    fields = {k: v for k, v in fields.items() if k in allowed}
    # 하위 객체는 기존 값과 병합 (일부 항목만 보내도 나머지는 유지)
    for nested in ("detailed_rating", "user_experience"):
        if isinstance(fields.get(nested), dict):
            fields[nested] = {**getattr(review, nested).model_dump(), **fields[nested]}

    content_changed = (
        ("text" in fields and fields["text"] != review.text)
        or ("rating" in fields and fields["rating"] != review.rating)
    )
    history = review.edit_history
    if content_changed and not review.is_new:
        entry = EditHistoryEntry(edited_at=now, previous_text=review.text, previous_rating=review.rating)
        history = _push_history(history, entry, history_limit)

    return Review.model_validate({
        **review.model_dump(),
        **fields,
        "edit_history": history,
        "updated_at": now,
    })


def revive(review: Review, content: Dict, now: datetime, history_limit: Optional[int] = None,
           require_approval: bool = False) -> Review:
    """삭제(soft delete)된 리뷰를 같은 (스타일, 사용자) 쌍으로 다시 작성하는 경우"""
    validate_content(content)
    edited = apply_edit(review, content, now, history_limit)
    return edited.model_copy(update={
        "deleted_at": None,
        "status": ReviewStatus.PENDING if require_approval else ReviewStatus.PUBLISHED,
        "helpful_votes": 0,
        "unhelpful_votes": 0,
        "voters": (),
        "flag_reports": (),
        "creator_response": None,
    })


def soft_delete(review: Review, now: datetime) -> Review:
    return review.model_copy(update={"deleted_at": now, "status": ReviewStatus.HIDDEN, "updated_at": now})


# ---- 투표 ----

def _counter_field(vote: VoteType) -> str:
    return "helpful_votes" if vote == VoteType.HELPFUL else "unhelpful_votes"


def find_vote(review: Review, user_id: str) -> Optional[Voter]:
    return next((v for v in review.voters if v.user_id == user_id), None)


def remove_vote(review: Review, user_id: str) -> Review:
    existing = find_vote(review, user_id)
    if existing is None:
        return review
    field = _counter_field(existing.vote)
    return review.model_copy(update={
        field: max(0, getattr(review, field) - 1),
        "voters": tuple(v for v in review.voters if v.user_id != user_id),
    })


def parse_vote_type(vote_type) -> Optional[VoteType]:
    try:
        return VoteType(vote_type)
    except ValueError:
        return None


def cast_vote(review: Review, user_id: str, vote_type) -> Review:
    """
    사용자 투표를 반영합니다.

    같은 사용자의 기존 투표를 먼저 제거(카운터 감소)한 뒤 새 투표를 더하므로,
    한 사용자는 항상 최대 1개의 투표만 가집니다.
    helpful/unhelpful 이외의 값은 아무 것도 바꾸지 않습니다.
    """
    vote = parse_vote_type(vote_type)
    if vote is None:
        return review
    review = remove_vote(review, user_id)
    field = _counter_field(vote)
    return review.model_copy(update={
        field: getattr(review, field) + 1,
        "voters": review.voters + (Voter(user_id=user_id, vote=vote),),
    })


def helpfulness_score(review: Review) -> int:
    return review.helpful_votes - review.unhelpful_votes


def helpfulness_ratio(review: Review) -> float:
    total = review.helpful_votes + review.unhelpful_votes
    if total == 0:
        return 0.0
    return _round1(review.helpful_votes / total * 100)


# ---- 신고 / 모더레이션 ----

def flag(
    review: Review,
    reporter_id: str,
    reason,
    now: datetime,
    description: str = None,
    threshold: int = FLAG_THRESHOLD,
) -> Review:
    try:
        reason = FlagReason(reason)
    except ValueError:
        allowed = ", ".join(r.value for r in FlagReason)
        raise ValidationError(f"Reason must be one of: {allowed}", "reason")
    if any(r.reported_by == reporter_id for r in review.flag_reports):
        raise ConflictError("You have already reported this review")

    report = FlagReport(reported_by=reporter_id, reason=reason, description=description, reported_at=now)
    reports = review.flag_reports + (report,)
    status = review.status
    # 신고가 기준치에 도달하면 Published → Flagged (되돌아가지 않음)
    if len(reports) >= threshold and status == ReviewStatus.PUBLISHED:
        status = ReviewStatus.FLAGGED
    return review.model_copy(update={"flag_reports": reports, "status": status, "updated_at": now})


def set_creator_response(review: Review, responder_id: str, text: str, now: datetime) -> Review:
    text = (text or "").strip()
    if not text:
        raise ValidationError("Response text is required", "text")
    if len(text) > RESPONSE_MAX_LENGTH:
        raise ValidationError(f"Response cannot exceed {RESPONSE_MAX_LENGTH} characters", "text")
    response = CreatorResponse(text=text, responded_at=now, responded_by=responder_id)
    return review.model_copy(update={"creator_response": response, "updated_at": now})


def can_transition(current: ReviewStatus, target: ReviewStatus) -> bool:
    return target in MODERATION_TRANSITIONS.get(current, set())


def moderate(review: Review, target, now: datetime) -> Review:
    try:
        target = ReviewStatus(target)
    except ValueError:
        raise ValidationError("Unknown review status", "status")
    if review.status == target:
        return review
    if not can_transition(review.status, target):
        raise ValidationError(
            f"Cannot change review status from {review.status.value} to {target.value}", "status"
        )
    return review.model_copy(update={"status": target, "updated_at": now})


# ---- 통계 / 정렬 ----

def _round1(value: float) -> float:
    # 반올림(half-up): 4.25 → 4.3
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def is_countable(review: Review) -> bool:
    return review.status == ReviewStatus.PUBLISHED and not review.is_deleted


def compute_style_stats(reviews: Iterable[Review]) -> StyleStats:
    """
    Published 리뷰만으로 평균 평점, 리뷰 수, 추천 비율(%), 정수 구간별 분포를 계산합니다.

    0.5 단위 평점은 내림한 정수 구간에 들어갑니다 (4.5 → 4).
    """
    published = [r for r in reviews if is_countable(r)]
    breakdown = {5: 0, 4: 0, 3: 0, 2: 0, 1: 0}
    if not published:
        return StyleStats(rating_breakdown=breakdown)

    for review in published:
        bucket = min(5, max(1, int(review.rating)))
        breakdown[bucket] += 1

    total = len(published)
    average = sum(r.rating for r in published) / total
    recommended = sum(1 for r in published if r.user_experience.would_recommend)
    return StyleStats(
        average_rating=_round1(average),
        total_reviews=total,
        recommendation_rate=_round1(recommended / total * 100),
        rating_breakdown=breakdown,
    )


def sort_reviews(reviews: Iterable[Review], sort: str) -> List[Review]:
    ordered = list(reviews)
    for field, direction in reversed(REVIEW_SORTS.get(sort, REVIEW_SORTS["newest"])):
        ordered.sort(key=lambda r: getattr(r, field), reverse=direction < 0)
    return ordered
