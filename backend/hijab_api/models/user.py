# User 도메인 모델 (Beanie Document)
# - 하위 객체 타입은 domain/account.py의 스냅샷 타입을 그대로 사용
# - 이메일은 unique 인덱스 (소문자로 정규화되어 저장됨)

from datetime import datetime
from typing import Optional

from beanie import Document, Indexed
from pydantic import EmailStr, Field
from pymongo import ASCENDING, DESCENDING, TEXT, IndexModel

from ..domain.account import (
    AccountStatus,
    Achievements,
    Activity,
    Collections,
    HijabPreferences,
    OneTimeToken,
    Profile,
    SecurityState,
    Social,
    UserSettings,
)
from ..domain.base import utcnow

class User(Document):
    name: str
    email: Indexed(EmailStr, unique=True)  # 중복 방지 인덱스
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
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    class Settings:
        name = "users"  # 컬렉션명
        indexes = [
            IndexModel([("account_status.role", ASCENDING)]),
            IndexModel([("activity.last_active", DESCENDING)]),
            IndexModel([("achievements.points", DESCENDING)]),
            # 토큰 해시로 계정을 찾는 인증/재설정 흐름용
            IndexModel([("email_verification.token_hash", ASCENDING)], sparse=True),
            IndexModel([("password_reset.token_hash", ASCENDING)], sparse=True),
            IndexModel([("name", TEXT), ("profile.bio", TEXT)], name="user_text"),
        ]
