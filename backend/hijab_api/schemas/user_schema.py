# 사용자/인증 요청·응답 스키마 (Pydantic 모델)
# - 비밀번호 해시, 토큰 해시, 세션, 로그인 실패 카운트는 어떤 응답에도 포함되지 않음

from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import EmailStr, Field, field_validator

from ..domain.account import Account
from ..domain.catalog import is_valid_image_url
from ..domain.enums import (
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
from .common import ApiModel

# ---- 인증 ----

class UserCreate(ApiModel):
    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str


class LoginRequest(ApiModel):
    email: EmailStr
    password: str
    device: Optional[str] = Field(default=None, max_length=100)


class TokenPair(ApiModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshRequest(ApiModel):
    refresh_token: str


class TokenRequest(ApiModel):
    token: str


class EmailRequest(ApiModel):
    email: EmailStr


class ResetPasswordRequest(ApiModel):
    token: str
    password: str


class ChangePasswordRequest(ApiModel):
    current_password: str
    new_password: str

# ---- 프로필 수정 (부분 수정: 보낸 필드만 반영) ----

class LocationIn(ApiModel):
    country: Optional[str] = Field(default=None, max_length=100)
    city: Optional[str] = Field(default=None, max_length=100)
    timezone: Optional[str] = Field(default=None, max_length=50)


class ProfileIn(ApiModel):
    avatar: Optional[str] = None
    bio: Optional[str] = Field(default=None, max_length=500)
    location: Optional[LocationIn] = None
    date_of_birth: Optional[datetime] = None
    gender: Optional[Gender] = None

    @field_validator("avatar")
    @classmethod
    def _avatar_url(cls, value):
        if value and not is_valid_image_url(value):
            raise ValueError("Please provide a valid image URL")
        return value

    @field_validator("date_of_birth")
    @classmethod
    def _age_range(cls, value):
        if value is None:
            return value
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        today = datetime.now(tz=timezone.utc).date()
        age = today.year - value.year - ((today.month, today.day) < (value.month, value.day))
        if not 13 <= age <= 120:
            raise ValueError("Age must be between 13 and 120")
        return value


class PreferencesIn(ApiModel):
    experience_level: Optional[ExperienceLevel] = None
    favorite_styles: Optional[List[str]] = None
    face_shape: Optional[FaceShape] = None
    preferred_occasions: Optional[List[Occasion]] = None
    skin_tone: Optional[SkinTone] = None
    preferred_colors: Optional[List[str]] = None


class EmailNotificationsIn(ApiModel):
    new_styles: Optional[bool] = None
    reviews: Optional[bool] = None
    followers: Optional[bool] = None
    newsletter: Optional[bool] = None


class PrivacyIn(ApiModel):
    profile_visibility: Optional[ProfileVisibility] = None
    show_email: Optional[bool] = None
    show_location: Optional[bool] = None


class SettingsIn(ApiModel):
    email_notifications: Optional[EmailNotificationsIn] = None
    privacy: Optional[PrivacyIn] = None
    language: Optional[Language] = None
    theme: Optional[Theme] = None


class SocialLinksIn(ApiModel):
    instagram: Optional[str] = None
    youtube: Optional[str] = None
    tiktok: Optional[str] = None
    pinterest: Optional[str] = None


class UserUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    profile: Optional[ProfileIn] = None
    preferences: Optional[PreferencesIn] = None
    settings: Optional[SettingsIn] = None
    social_links: Optional[SocialLinksIn] = None


def profile_patch(payload: UserUpdate) -> Dict:
    # 보낸 필드만, None 값은 제외하고 전달 (None으로 기존 값을 지우지 않음)
    return payload.model_dump(exclude_unset=True, exclude_none=True)

# ---- 컬렉션 / 관리자 ----

class CollectionCreate(ApiModel):
    name: str = Field(min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, max_length=200)
    is_public: bool = False


class PointsRequest(ApiModel):
    points: int = Field(gt=0)


class SuspendRequest(ApiModel):
    until: datetime
    reason: str = Field(min_length=1, max_length=500)


class RoleRequest(ApiModel):
    role: Role

# ---- 응답 ----

class LocationOut(ApiModel):
    country: Optional[str] = None
    city: Optional[str] = None
    timezone: Optional[str] = None


class ProfileOut(ApiModel):
    avatar: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[LocationOut] = None
    gender: Optional[Gender] = None


class PreferencesOut(ApiModel):
    experience_level: ExperienceLevel
    favorite_styles: List[str] = []
    face_shape: Optional[FaceShape] = None
    preferred_occasions: List[Occasion] = []
    skin_tone: Optional[SkinTone] = None
    preferred_colors: List[str] = []


class SocialLinksOut(ApiModel):
    instagram: Optional[str] = None
    youtube: Optional[str] = None
    tiktok: Optional[str] = None
    pinterest: Optional[str] = None


class BadgeOut(ApiModel):
    name: str
    icon: Optional[str] = None
    description: Optional[str] = None
    earned_at: datetime


class StreakOut(ApiModel):
    days: int
    last_active_date: Optional[datetime] = None


class AchievementsOut(ApiModel):
    badges: List[BadgeOut] = []
    points: int
    level: int
    streak: StreakOut


class EmailNotificationsOut(ApiModel):
    new_styles: bool
    reviews: bool
    followers: bool
    newsletter: bool


class PrivacyOut(ApiModel):
    profile_visibility: ProfileVisibility
    show_email: bool
    show_location: bool


class SettingsOut(ApiModel):
    email_notifications: EmailNotificationsOut
    privacy: PrivacyOut
    language: Language
    theme: Theme


class SavedStyleOut(ApiModel):
    style_id: str
    saved_at: datetime


class CustomCollectionOut(ApiModel):
    name: str
    description: Optional[str] = None
    styles: List[str] = []
    is_public: bool
    created_at: datetime


class CollectionsOut(ApiModel):
    favorites: List[SavedStyleOut] = []
    bookmarks: List[SavedStyleOut] = []
    custom_collections: List[CustomCollectionOut] = []


class UserSummary(ApiModel):
    id: str
    name: str
    avatar: Optional[str] = None
    bio: Optional[str] = None
    level: int = 1

    @classmethod
    def from_account(cls, account: Account) -> "UserSummary":
        return cls(
            id=account.id,
            name=account.name,
            avatar=account.profile.avatar,
            bio=account.profile.bio,
            level=account.achievements.level,
        )


class UserPublic(ApiModel):
    id: str
    name: str
    email: Optional[str] = None
    profile: ProfileOut
    preferences: PreferencesOut
    social_links: SocialLinksOut
    achievements: AchievementsOut
    role: Role
    is_verified: bool
    followers_count: int = 0
    following_count: int = 0
    total_reviews: int = 0
    total_styles: int = 0
    age: Optional[int] = None
    created_at: Optional[datetime] = None


class UserPrivate(UserPublic):
    user_settings: SettingsOut = Field(serialization_alias="settings")
    collections: CollectionsOut
    following: List[str] = []
    login_count: int = 0
    last_active: Optional[datetime] = None
    is_premium: bool = False


def _public_fields(account: Account, counts: Dict) -> Dict:
    profile = ProfileOut.model_validate(account.profile)
    if not account.user_settings.privacy.show_location:
        profile = profile.model_copy(update={"location": None})
    return {
        "id": account.id,
        "name": account.name,
        "email": account.email if account.user_settings.privacy.show_email else None,
        "profile": profile,
        "preferences": PreferencesOut.model_validate(account.preferences),
        "social_links": SocialLinksOut.model_validate(account.social.social_links),
        "achievements": AchievementsOut.model_validate(account.achievements),
        "role": account.account_status.role,
        "is_verified": account.account_status.is_verified,
        "created_at": account.created_at,
        **(counts or {}),
    }


def user_public(account: Account, counts: Dict = None) -> UserPublic:
    return UserPublic(**_public_fields(account, counts))


def user_private(account: Account, counts: Dict = None) -> UserPrivate:
    fields = _public_fields(account, counts)
    fields["email"] = account.email
    fields["profile"] = ProfileOut.model_validate(account.profile)
    return UserPrivate(
        **fields,
        user_settings=SettingsOut.model_validate(account.user_settings),
        collections=CollectionsOut.model_validate(account.collections),
        following=[e.user_id for e in account.social.following],
        login_count=account.activity.login_count,
        last_active=account.activity.last_active,
        is_premium=account.account_status.is_premium,
    )
