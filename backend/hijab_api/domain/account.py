# 계정 도메인 (순수 함수)
# - 로그인 실패 카운트/잠금, 이메일 인증·비밀번호 재설정 토큰, 세션
# - 팔로우, 즐겨찾기/북마크/컬렉션, 포인트·레벨·연속 접속(streak)
# - I/O 없음: 모든 함수는 새 Account 스냅샷을 반환합니다.

import re
from datetime import date, datetime, timedelta
from typing import Dict, Optional, Tuple

from pydantic import Field

from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..core.security import generate_one_time_token, token_hash_matches
from .base import Snapshot, as_utc
from .enums import (
    ExperienceLevel,
    FaceShape,
    Gender,
    Language,
    Occasion,
    ProfileVisibility,
    Role,
    SkinTone,
    Theme,
)

MAX_LOGIN_ATTEMPTS = 5
LOCK_DURATION = timedelta(hours=2)
EMAIL_VERIFICATION_TTL = timedelta(hours=24)
PASSWORD_RESET_TTL = timedelta(minutes=10)
POINTS_PER_LEVEL = 100

_PASSWORD_RULE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d).+$")


# ---- 스냅샷 타입 ----

class Location(Snapshot):
    country: Optional[str] = None
    city: Optional[str] = None
    timezone: Optional[str] = None


class Profile(Snapshot):
    avatar: Optional[str] = None
    bio: Optional[str] = None
    location: Location = Field(default_factory=Location)
    date_of_birth: Optional[datetime] = None
    gender: Optional[Gender] = None


class HijabPreferences(Snapshot):
    experience_level: ExperienceLevel = ExperienceLevel.BEGINNER
    favorite_styles: Tuple[str, ...] = ()
    face_shape: Optional[FaceShape] = None
    preferred_occasions: Tuple[Occasion, ...] = ()
    skin_tone: Optional[SkinTone] = None
    preferred_colors: Tuple[str, ...] = ()


class EmailNotifications(Snapshot):
    new_styles: bool = True
    reviews: bool = True
    followers: bool = True
    newsletter: bool = False


class Privacy(Snapshot):
    profile_visibility: ProfileVisibility = ProfileVisibility.PUBLIC
    show_email: bool = False
    show_location: bool = True


class UserSettings(Snapshot):
    email_notifications: EmailNotifications = Field(default_factory=EmailNotifications)
    privacy: Privacy = Field(default_factory=Privacy)
    language: Language = Language.EN
    theme: Theme = Theme.LIGHT


class FollowEntry(Snapshot):
    user_id: str
    followed_at: datetime


class SocialLinks(Snapshot):
    instagram: Optional[str] = None
    youtube: Optional[str] = None
    tiktok: Optional[str] = None
    pinterest: Optional[str] = None


class Social(Snapshot):
    followers: Tuple[FollowEntry, ...] = ()
    following: Tuple[FollowEntry, ...] = ()
    social_links: SocialLinks = Field(default_factory=SocialLinks)


class Activity(Snapshot):
    last_active: Optional[datetime] = None
    login_count: int = 0


class SavedStyle(Snapshot):
    style_id: str
    saved_at: datetime


class CustomCollection(Snapshot):
    name: str
    description: Optional[str] = None
    styles: Tuple[str, ...] = ()
    is_public: bool = False
    created_at: datetime


class Collections(Snapshot):
    favorites: Tuple[SavedStyle, ...] = ()
    bookmarks: Tuple[SavedStyle, ...] = ()
    custom_collections: Tuple[CustomCollection, ...] = ()


class Badge(Snapshot):
    name: str
    icon: Optional[str] = None
    description: Optional[str] = None
    earned_at: datetime


class Streak(Snapshot):
    days: int = 0
    last_active_date: Optional[datetime] = None


class Achievements(Snapshot):
    badges: Tuple[Badge, ...] = ()
    points: int = 0
    level: int = 1
    streak: Streak = Field(default_factory=Streak)


class AccountStatus(Snapshot):
    is_active: bool = True
    is_verified: bool = False
    is_premium: bool = False
    premium_expires_at: Optional[datetime] = None
    role: Role = Role.USER
    suspended_until: Optional[datetime] = None
    suspension_reason: Optional[str] = None


class OneTimeToken(Snapshot):
    # 원본 토큰은 저장하지 않고 SHA-256 해시만 보관
    token_hash: Optional[str] = None
    expires_at: Optional[datetime] = None


class LoginAttempts(Snapshot):
    count: int = 0
    locked_until: Optional[datetime] = None


class Session(Snapshot):
    session_id: str
    device: Optional[str] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime
    last_used: datetime


class SecurityState(Snapshot):
    login_attempts: LoginAttempts = Field(default_factory=LoginAttempts)
    sessions: Tuple[Session, ...] = ()


class Account(Snapshot):
    id: Optional[str] = None
    name: str
    email: str
    hashed_password: str = Field(repr=False)
    profile: Profile = Field(default_factory=Profile)
    preferences: HijabPreferences = Field(default_factory=HijabPreferences)
    user_settings: UserSettings = Field(default_factory=UserSettings)
    social: Social = Field(default_factory=Social)
    activity: Activity = Field(default_factory=Activity)
    collections: Collections = Field(default_factory=Collections)
    achievements: Achievements = Field(default_factory=Achievements)
    account_status: AccountStatus = Field(default_factory=AccountStatus)
    email_verification: OneTimeToken = Field(default_factory=OneTimeToken)
    password_reset: OneTimeToken = Field(default_factory=OneTimeToken)
    security: SecurityState = Field(default_factory=SecurityState, repr=False)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def _replace(model: Snapshot, **changes) -> Snapshot:
    return model.model_copy(update=changes)


# ---- 입력 검증 ----

def normalize_email(email: str) -> str:
    return email.strip().lower()


def validate_password(password: str) -> None:
    if len(password) < 8:
        raise ValidationError("Password must be at least 8 characters", "password")
    # bcrypt는 72바이트 이후를 무시하므로 그 이상은 거부
    if len(password.encode("utf-8")) > 72:
        raise ValidationError("Password cannot exceed 72 bytes", "password")
    if not _PASSWORD_RULE.match(password):
        raise ValidationError(
            "Password must contain at least one uppercase letter, one lowercase letter, and one number",
            "password",
        )


def new_account(name: str, email: str, hashed_password: str, now: datetime) -> Account:
    account = Account(
        name=name.strip(),
        email=normalize_email(email),
        hashed_password=hashed_password,
        created_at=now,
        updated_at=now,
    )
    return touch_activity(account, now)


# ---- 로그인 잠금 ----

def is_locked(account: Account, now: datetime) -> bool:
    locked_until = as_utc(account.security.login_attempts.locked_until)
    return locked_until is not None and locked_until > now


def is_suspended(account: Account, now: datetime) -> bool:
    status = account.account_status
    if not status.is_active:
        return True
    until = as_utc(status.suspended_until)
    return until is not None and until > now


def record_failed_login(
    account: Account,
    now: datetime,
    max_attempts: int = MAX_LOGIN_ATTEMPTS,
    lock_duration: timedelta = LOCK_DURATION,
) -> Account:
    attempts = account.security.login_attempts
    locked_until = as_utc(attempts.locked_until)

    if locked_until is not None and locked_until < now:
        # 잠금이 만료된 상태에서 다시 실패하면 1회부터 새로 센다
        attempts = LoginAttempts(count=1, locked_until=None)
    else:
        count = attempts.count + 1
        if count >= max_attempts and not is_locked(account, now):
            locked_until = now + lock_duration
        attempts = LoginAttempts(count=count, locked_until=locked_until)

    security = _replace(account.security, login_attempts=attempts)
    return _replace(account, security=security, updated_at=now)


def record_successful_login(account: Account, now: datetime) -> Account:
    security = _replace(account.security, login_attempts=LoginAttempts())
    activity = _replace(account.activity, login_count=account.activity.login_count + 1)
    account = _replace(account, security=security, activity=activity, updated_at=now)
    return touch_activity(account, now)


def touch_activity(account: Account, now: datetime) -> Account:
    """
    활동 시각을 갱신하면서 연속 접속일(streak)을 계산합니다.

    - 마지막 활동과 같은 날(UTC): 일수 변화 없음
    - 마지막 활동으로부터 24시간 이내: 일수 + 1
    - 그 외: 1로 초기화
    """
    streak = account.achievements.streak
    last = as_utc(streak.last_active_date)

    if last is not None and last.date() == now.date():
        days = streak.days
    elif last is not None and now - last <= timedelta(hours=24):
        days = streak.days + 1
    else:
        days = 1

    achievements = _replace(account.achievements, streak=Streak(days=days, last_active_date=now))
    activity = _replace(account.activity, last_active=now)
    return _replace(account, achievements=achievements, activity=activity, updated_at=now)


# ---- 세션 ----

def open_session(
    account: Account,
    session_id: str,
    now: datetime,
    max_sessions: int,
    device: str = None,
    ip: str = None,
    user_agent: str = None,
) -> Account:
    session = Session(
        session_id=session_id,
        device=device,
        ip=ip,
        user_agent=user_agent,
        created_at=now,
        last_used=now,
    )
    sessions = (account.security.sessions + (session,))[-max_sessions:]
    return _replace(account, security=_replace(account.security, sessions=sessions))


def has_session(account: Account, session_id: str) -> bool:
    return any(s.session_id == session_id for s in account.security.sessions)


def touch_session(account: Account, session_id: str, now: datetime) -> Account:
    sessions = tuple(
        _replace(s, last_used=now) if s.session_id == session_id else s
        for s in account.security.sessions
    )
    return _replace(account, security=_replace(account.security, sessions=sessions))


def close_session(account: Account, session_id: str) -> Account:
    sessions = tuple(s for s in account.security.sessions if s.session_id != session_id)
    return _replace(account, security=_replace(account.security, sessions=sessions))


def revoke_all_sessions(account: Account) -> Account:
    return _replace(account, security=_replace(account.security, sessions=()))


def prune_sessions(account: Account, idle_before: datetime) -> Account:
    sessions = tuple(s for s in account.security.sessions if as_utc(s.last_used) >= idle_before)
    return _replace(account, security=_replace(account.security, sessions=sessions))


# ---- 일회성 토큰 ----

def issue_email_verification_token(
    account: Account, now: datetime, ttl: timedelta = EMAIL_VERIFICATION_TTL
) -> Tuple[Account, str]:
    raw, digest = generate_one_time_token()
    token = OneTimeToken(token_hash=digest, expires_at=now + ttl)
    return _replace(account, email_verification=token, updated_at=now), raw


def issue_password_reset_token(
    account: Account, now: datetime, ttl: timedelta = PASSWORD_RESET_TTL
) -> Tuple[Account, str]:
    raw, digest = generate_one_time_token()
    token = OneTimeToken(token_hash=digest, expires_at=now + ttl)
    return _replace(account, password_reset=token, updated_at=now), raw


def token_is_valid(token: OneTimeToken, raw_token: str, now: datetime) -> bool:
    expires_at = as_utc(token.expires_at)
    if expires_at is None or expires_at <= now:
        return False
    return token_hash_matches(raw_token, token.token_hash)


def mark_email_verified(account: Account, now: datetime) -> Account:
    status = _replace(account.account_status, is_verified=True)
    return _replace(account, account_status=status, email_verification=OneTimeToken(), updated_at=now)


def set_password_hash(account: Account, hashed_password: str, now: datetime) -> Account:
    # 비밀번호 변경 시 잠금 상태와 기존 세션, 재설정 토큰을 모두 정리
    security = SecurityState()
    return _replace(
        account,
        hashed_password=hashed_password,
        security=security,
        password_reset=OneTimeToken(),
        updated_at=now,
    )


def clear_expired_tokens(account: Account, now: datetime) -> Account:
    changes = {}
    for field in ("email_verification", "password_reset"):
        token = getattr(account, field)
        expires_at = as_utc(token.expires_at)
        if expires_at is not None and expires_at <= now:
            changes[field] = OneTimeToken()
    return _replace(account, **changes) if changes else account


# ---- 소셜 그래프 ----

def _without_user(entries: Tuple[FollowEntry, ...], user_id: str) -> Tuple[FollowEntry, ...]:
    return tuple(e for e in entries if e.user_id != user_id)


def is_following(account: Account, user_id: str) -> bool:
    return any(e.user_id == user_id for e in account.social.following)


def follow(account: Account, target_id: str, now: datetime) -> Account:
    if target_id == account.id:
        raise ValidationError("You cannot follow yourself", "userId")
    if is_following(account, target_id):
        return account
    following = account.social.following + (FollowEntry(user_id=target_id, followed_at=now),)
    return _replace(account, social=_replace(account.social, following=following), updated_at=now)


def unfollow(account: Account, target_id: str, now: datetime) -> Account:
    if not is_following(account, target_id):
        return account
    following = _without_user(account.social.following, target_id)
    return _replace(account, social=_replace(account.social, following=following), updated_at=now)


def add_follower(account: Account, follower_id: str, now: datetime) -> Account:
    if any(e.user_id == follower_id for e in account.social.followers):
        return account
    followers = account.social.followers + (FollowEntry(user_id=follower_id, followed_at=now),)
    return _replace(account, social=_replace(account.social, followers=followers), updated_at=now)


def remove_follower(account: Account, follower_id: str, now: datetime) -> Account:
    followers = _without_user(account.social.followers, follower_id)
    if len(followers) == len(account.social.followers):
        return account
    return _replace(account, social=_replace(account.social, followers=followers), updated_at=now)


# ---- 컬렉션 ----

def _saved_contains(entries: Tuple[SavedStyle, ...], style_id: str) -> bool:
    return any(e.style_id == style_id for e in entries)


def _add_saved(account: Account, field: str, style_id: str, now: datetime) -> Account:
    entries = getattr(account.collections, field)
    if _saved_contains(entries, style_id):
        return account
    updated = entries + (SavedStyle(style_id=style_id, saved_at=now),)
    return _replace(account, collections=_replace(account.collections, **{field: updated}), updated_at=now)


def _remove_saved(account: Account, field: str, style_id: str, now: datetime) -> Account:
    entries = getattr(account.collections, field)
    if not _saved_contains(entries, style_id):
        return account
    updated = tuple(e for e in entries if e.style_id != style_id)
    return _replace(account, collections=_replace(account.collections, **{field: updated}), updated_at=now)


def add_favorite(account: Account, style_id: str, now: datetime) -> Account:
    return _add_saved(account, "favorites", style_id, now)


def remove_favorite(account: Account, style_id: str, now: datetime) -> Account:
    return _remove_saved(account, "favorites", style_id, now)


def add_bookmark(account: Account, style_id: str, now: datetime) -> Account:
    return _add_saved(account, "bookmarks", style_id, now)


def remove_bookmark(account: Account, style_id: str, now: datetime) -> Account:
    return _remove_saved(account, "bookmarks", style_id, now)


def create_collection(
    account: Account, name: str, now: datetime, description: str = None, is_public: bool = False
) -> Account:
    name = name.strip()
    if not name:
        raise ValidationError("Collection name is required", "name")
    if any(c.name == name for c in account.collections.custom_collections):
        raise ConflictError(f"Collection '{name}' already exists")
    collection = CustomCollection(name=name, description=description, is_public=is_public, created_at=now)
    collections = account.collections.custom_collections + (collection,)
    return _replace(
        account,
        collections=_replace(account.collections, custom_collections=collections),
        updated_at=now,
    )


def _update_collection(account: Account, name: str, update, now: datetime) -> Account:
    found = False
    collections = []
    for collection in account.collections.custom_collections:
        if collection.name == name:
            found = True
            collection = update(collection)
        collections.append(collection)
    if not found:
        raise NotFoundError("Collection", name)
    return _replace(
        account,
        collections=_replace(account.collections, custom_collections=tuple(collections)),
        updated_at=now,
    )


def add_to_collection(account: Account, name: str, style_id: str, now: datetime) -> Account:
    def update(collection: CustomCollection) -> CustomCollection:
        if style_id in collection.styles:
            return collection
        return _replace(collection, styles=collection.styles + (style_id,))
    return _update_collection(account, name, update, now)


def remove_from_collection(account: Account, name: str, style_id: str, now: datetime) -> Account:
    def update(collection: CustomCollection) -> CustomCollection:
        return _replace(collection, styles=tuple(s for s in collection.styles if s != style_id))
    return _update_collection(account, name, update, now)


# ---- 게이미피케이션 ----

def level_for(points: int) -> int:
    return points // POINTS_PER_LEVEL + 1


def award_points(account: Account, amount: int, now: datetime) -> Account:
    if amount <= 0:
        raise ValidationError("Points must be a positive number", "points")
    points = account.achievements.points + amount
    # 레벨은 절대 내려가지 않음
    level = max(account.achievements.level, level_for(points))
    achievements = _replace(account.achievements, points=points, level=level)
    return _replace(account, achievements=achievements, updated_at=now)


def add_badge(account: Account, name: str, now: datetime, icon: str = None, description: str = None) -> Account:
    if any(b.name == name for b in account.achievements.badges):
        return account
    badge = Badge(name=name, icon=icon, description=description, earned_at=now)
    achievements = _replace(account.achievements, badges=account.achievements.badges + (badge,))
    return _replace(account, achievements=achievements, updated_at=now)


# ---- 계정 상태 / 프로필 ----

def suspend(account: Account, until: datetime, reason: str, now: datetime) -> Account:
    status = _replace(account.account_status, suspended_until=until, suspension_reason=reason)
    return _replace(revoke_all_sessions(account), account_status=status, updated_at=now)


def reactivate(account: Account, now: datetime) -> Account:
    status = _replace(account.account_status, is_active=True, suspended_until=None, suspension_reason=None)
    return _replace(account, account_status=status, updated_at=now)


def change_role(account: Account, role: Role, now: datetime) -> Account:
    return _replace(account, account_status=_replace(account.account_status, role=role), updated_at=now)


def apply_profile_patch(account: Account, patch: Dict, now: datetime) -> Account:
    """
    부분 수정(patch)을 적용합니다. 하위 객체는 기존 값과 병합 후 다시 검증합니다.

    비밀번호/보안 관련 필드는 여기서 절대 바뀌지 않습니다.
    """
    changes = {"updated_at": now}
    if patch.get("name") is not None:
        changes["name"] = patch["name"].strip()
    if patch.get("profile") is not None:
        merged = {**account.profile.model_dump(), **patch["profile"]}
        if isinstance(patch["profile"].get("location"), dict):
            merged["location"] = {**account.profile.location.model_dump(), **patch["profile"]["location"]}
        changes["profile"] = Profile.model_validate(merged)
    if patch.get("preferences") is not None:
        changes["preferences"] = HijabPreferences.model_validate(
            {**account.preferences.model_dump(), **patch["preferences"]}
        )
    if patch.get("settings") is not None:
        current = account.user_settings.model_dump()
        incoming = patch["settings"]
        for nested in ("email_notifications", "privacy"):
            if isinstance(incoming.get(nested), dict):
                incoming = {**incoming, nested: {**current[nested], **incoming[nested]}}
        changes["user_settings"] = UserSettings.model_validate({**current, **incoming})
    if patch.get("social_links") is not None:
        links = SocialLinks.model_validate({**account.social.social_links.model_dump(), **patch["social_links"]})
        changes["social"] = _replace(account.social, social_links=links)
    return _replace(account, **changes)


def age_of(account: Account, today: date) -> Optional[int]:
    born = account.profile.date_of_birth
    if born is None:
        return None
    age = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        age -= 1
    return age
