# 사용자 저장소 레이어
# - 데이터 접근(조회/생성/저장)만 담당 (서비스 로직 분리)

from datetime import datetime
from typing import List, Optional

from pymongo import DESCENDING

from ..domain.account import Account
from ..domain.enums import ProfileVisibility
from ..models.user import User
from .base import BaseRepository

class UserRepository(BaseRepository[User, Account]):
    document_model = User
    snapshot_model = Account
    conflict_message = "Email already registered"
    resource_name = "User"

    async def get_by_email(self, email: str) -> Optional[Account]:
        async with self._storage("get_by_email"):
            user = await User.find_one({"email": email})
        return self.to_snapshot(user) if user else None

    async def get_by_verification_hash(self, token_hash: str) -> Optional[Account]:
        async with self._storage("get_by_verification_hash"):
            user = await User.find_one({"email_verification.token_hash": token_hash})
        return self.to_snapshot(user) if user else None

    async def get_by_reset_hash(self, token_hash: str) -> Optional[Account]:
        async with self._storage("get_by_reset_hash"):
            user = await User.find_one({"password_reset.token_hash": token_hash})
        return self.to_snapshot(user) if user else None

    async def search(self, query: Optional[str], limit: int = 20) -> List[Account]:
        # 비활성 계정과 비공개 프로필은 검색 결과에서 제외
        mongo_filter = {
            "account_status.is_active": True,
            "user_settings.privacy.profile_visibility": {"$ne": ProfileVisibility.PRIVATE.value},
        }
        if query:
            mongo_filter["$text"] = {"$search": query}
        async with self._storage("search"):
            users = await User.find(mongo_filter).sort([("achievements.points", DESCENDING)]).limit(limit).to_list()
        return [self.to_snapshot(u) for u in users]

    async def trending(self, limit: int = 10) -> List[Account]:
        mongo_filter = {
            "account_status.is_active": True,
            "user_settings.privacy.profile_visibility": ProfileVisibility.PUBLIC.value,
        }
        async with self._storage("trending"):
            users = await User.find(mongo_filter).sort([("achievements.points", DESCENDING)]).limit(limit).to_list()
        return [self.to_snapshot(u) for u in users]

    async def purge_expired_security_state(self, now: datetime, idle_before: datetime) -> int:
        """
        만료된 토큰 해시와 유휴 세션을 조건부 업데이트($set / $pull)로 정리합니다.

        만료 조건을 필터에 그대로 넣기 때문에 다른 프로세스가 그 사이에 발급한 토큰이나
        새로 연 세션, 로그인 실패 기록은 건드리지 않습니다. 정리 대상 계정 수를 반환합니다.
        """
        def expired(field: str) -> dict:
            return {f"{field}.expires_at": {"$lte": now}}

        idle = {"security.sessions.last_used": {"$lt": idle_before}}
        async with self._storage("purge_expired_security_state"):
            affected = await User.find({"$or": [expired("email_verification"), expired("password_reset"), idle]}).count()
            for field in ("email_verification", "password_reset"):
                await User.find(expired(field)).update(
                    {"$set": {f"{field}.token_hash": None, f"{field}.expires_at": None}}
                )
            await User.find(idle).update({"$pull": {"security.sessions": {"last_used": {"$lt": idle_before}}}})
        return affected
