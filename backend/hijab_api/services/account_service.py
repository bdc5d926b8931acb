# 계정 서비스 레이어
# - 회원가입 (비밀번호 정책, 이메일 중복 체크, 인증 메일)
# - 로그인 (잠금/정지 확인, 실패 카운트, 세션 + JWT 토큰 발급), 토큰 갱신, 로그아웃
# - 이메일 인증, 비밀번호 재설정/변경
# - 팔로우, 즐겨찾기/북마크/컬렉션, 포인트, 관리자용 계정 관리

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from ..core.config import settings
from ..core.exceptions import AuthenticationError, AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..core.locks import KeyedLock
from ..core.security import (
    burn_password_check,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    hash_token,
    new_session_id,
    verify_password,
)
from ..domain import account as domain
from ..domain.account import Account
from ..domain.base import as_utc, utcnow
from ..domain.enums import STAFF_ROLES, ProfileVisibility, Role
from ..repositories.review_repository import ReviewRepository
from ..repositories.style_repository import StyleRepository
from ..repositories.user_repository import UserRepository
from ..schemas.user_schema import TokenPair

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"


class AccountService:
    def __init__(
        self,
        repo: UserRepository,
        locks: KeyedLock,
        mailer=None,
        styles: Optional[StyleRepository] = None,
        reviews: Optional[ReviewRepository] = None,
    ):
        self.repo = repo
        self.locks = locks
        self.mailer = mailer
        self.styles = styles
        self.reviews = reviews

    # ---- 내부 유틸 ----

    async def require(self, user_id: str) -> Account:
        account = await self.repo.get(user_id)
        if account is None:
            raise NotFoundError("User", user_id)
        return account

    async def _mutate(self, user_id: str, change: Callable[[Account], Account]) -> Account:
        # 같은 계정에 대한 "읽기 → 계산 → 저장"은 락 안에서 직렬화
        async with self.locks.hold(f"user:{user_id}"):
            account = await self.require(user_id)
            updated = change(account)
            if updated is not account:
                await self.repo.save(updated)
            return updated

    async def _require_style(self, style_id: str) -> None:
        if self.styles is not None and await self.styles.get(style_id) is None:
            raise NotFoundError("Hijab style", style_id)

    def _tokens(self, account: Account, session_id: str) -> TokenPair:
        return TokenPair(
            access_token=create_access_token(account.id, session_id),
            refresh_token=create_refresh_token(account.id, session_id),
        )

    # ---- 회원가입 / 로그인 ----

    async def register(self, name: str, email: str, password: str) -> Account:
        name = (name or "").strip()
        if not 2 <= len(name) <= 50:
            raise ValidationError("Name must be between 2 and 50 characters", "name")
        domain.validate_password(password)

        email = domain.normalize_email(email)
        if await self.repo.get_by_email(email):
            raise ConflictError("Email already registered")

        now = utcnow()
        account = domain.new_account(name, email, get_password_hash(password), now)
        account, raw_token = domain.issue_email_verification_token(
            account, now, timedelta(hours=settings.EMAIL_VERIFICATION_EXPIRE_HOURS)
        )
        created = await self.repo.create(account)
        logger.info(f"[AccountService] 회원가입 완료: user_id={created.id}")

        if self.mailer is not None:
            self.mailer.send_verification(created, raw_token)
        return created

    async def authenticate(self, email: str, password: str) -> Account:
        """
        이메일/비밀번호를 검증하고 계정을 반환합니다.

        실패 사유(없는 이메일, 잠금, 정지, 비밀번호 불일치)는 모두 같은 메시지로 응답합니다.
        비밀번호 불일치만 실패 카운트를 올립니다.
        """
        account = await self.repo.get_by_email(domain.normalize_email(email or ""))
        if account is None:
            burn_password_check(password)
            raise AuthenticationError(INVALID_CREDENTIALS)

        now = utcnow()
        if domain.is_locked(account, now):
            logger.warning(f"[AccountService] 잠긴 계정 로그인 시도: user_id={account.id}")
            raise AuthenticationError(INVALID_CREDENTIALS)
        if domain.is_suspended(account, now):
            logger.warning(f"[AccountService] 정지된 계정 로그인 시도: user_id={account.id}")
            raise AuthenticationError(INVALID_CREDENTIALS)

        if not verify_password(password, account.hashed_password):
            updated = await self._mutate(
                account.id,
                lambda a: domain.record_failed_login(
                    a,
                    now,
                    max_attempts=settings.LOGIN_MAX_ATTEMPTS,
                    lock_duration=timedelta(minutes=settings.LOGIN_LOCK_MINUTES),
                ),
            )
            attempts = updated.security.login_attempts
            logger.warning(f"[AccountService] 로그인 실패: user_id={account.id}, 누적 {attempts.count}회")
            if domain.is_locked(updated, now):
                logger.warning(f"[AccountService] 계정 잠금: user_id={account.id}, until={attempts.locked_until}")
            raise AuthenticationError(INVALID_CREDENTIALS)
        return account

    async def login(
        self,
        email: str,
        password: str,
        device: str = None,
        ip: str = None,
        user_agent: str = None,
    ) -> Tuple[Account, TokenPair]:
        account = await self.authenticate(email, password)
        session_id = new_session_id()
        now = utcnow()

        def start(a: Account) -> Account:
            a = domain.record_successful_login(a, now)
            return domain.open_session(a, session_id, now, settings.MAX_SESSIONS, device, ip, user_agent)

        account = await self._mutate(account.id, start)
        logger.info(f"[AccountService] 로그인 성공: user_id={account.id}")
        return account, self._tokens(account, session_id)

    async def resolve_session(self, user_id: str, session_id: Optional[str]) -> Account:
        # 토큰의 sid가 아직 살아 있는 세션인지 확인 (로그아웃/비밀번호 변경 시 무효화)
        account = await self.repo.get(user_id)
        if account is None or not session_id or not domain.has_session(account, session_id):
            raise AuthenticationError("Session has expired or was revoked")
        if domain.is_suspended(account, utcnow()):
            raise AuthenticationError("Account is suspended")
        return account

    async def refresh(self, refresh_token: str) -> TokenPair:
        payload = decode_token(refresh_token, expected_type="refresh")
        account = await self.resolve_session(payload["sub"], payload.get("sid"))
        now = utcnow()
        account = await self._mutate(
            account.id,
            lambda a: domain.touch_activity(domain.touch_session(a, payload["sid"], now), now),
        )
        return self._tokens(account, payload["sid"])

    async def logout(self, user_id: str, session_id: str) -> None:
        await self._mutate(user_id, lambda a: domain.close_session(a, session_id))
        logger.info(f"[AccountService] 로그아웃: user_id={user_id}")

    # ---- 이메일 인증 / 비밀번호 ----

    async def verify_email(self, raw_token: str) -> Account:
        invalid = ValidationError("Invalid or expired verification token", "token")
        account = await self.repo.get_by_verification_hash(hash_token(raw_token or ""))
        if account is None:
            raise invalid
        now = utcnow()

        def verify(a: Account) -> Account:
            if not domain.token_is_valid(a.email_verification, raw_token, now):
                raise invalid
            return domain.mark_email_verified(a, now)

        account = await self._mutate(account.id, verify)
        logger.info(f"[AccountService] 이메일 인증 완료: user_id={account.id}")
        return account

    async def resend_verification(self, user_id: str) -> None:
        now = utcnow()
        issued = {}

        def issue(a: Account) -> Account:
            if a.account_status.is_verified:
                raise ValidationError("Email is already verified", "email")
            a, issued["token"] = domain.issue_email_verification_token(
                a, now, timedelta(hours=settings.EMAIL_VERIFICATION_EXPIRE_HOURS)
            )
            return a

        account = await self._mutate(user_id, issue)
        if self.mailer is not None:
            self.mailer.send_verification(account, issued["token"])

    async def request_password_reset(self, email: str) -> None:
        # 이메일 존재 여부를 호출자에게 드러내지 않음 (항상 성공 응답)
        account = await self.repo.get_by_email(domain.normalize_email(email or ""))
        if account is None or domain.is_suspended(account, utcnow()):
            logger.info("[AccountService] 비밀번호 재설정 요청: 대상 계정 없음 또는 비활성")
            return

        now = utcnow()
        issued = {}

        def issue(a: Account) -> Account:
            a, issued["token"] = domain.issue_password_reset_token(
                a, now, timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES)
            )
            return a

        account = await self._mutate(account.id, issue)
        logger.info(f"[AccountService] 비밀번호 재설정 토큰 발급: user_id={account.id}")
        if self.mailer is not None:
            self.mailer.send_password_reset(account, issued["token"])

    async def reset_password(self, raw_token: str, new_password: str) -> None:
        domain.validate_password(new_password)
        invalid = ValidationError("Invalid or expired reset token", "token")
        account = await self.repo.get_by_reset_hash(hash_token(raw_token or ""))
        if account is None:
            raise invalid
        now = utcnow()
        hashed = get_password_hash(new_password)

        def reset(a: Account) -> Account:
            if not domain.token_is_valid(a.password_reset, raw_token, now):
                raise invalid
            return domain.set_password_hash(a, hashed, now)

        await self._mutate(account.id, reset)
        logger.info(f"[AccountService] 비밀번호 재설정 완료 (모든 세션 종료): user_id={account.id}")

    async def change_password(self, user_id: str, current_password: str, new_password: str) -> None:
        account = await self.require(user_id)
        if not verify_password(current_password, account.hashed_password):
            raise ValidationError("Current password is incorrect", "current_password")
        domain.validate_password(new_password)
        hashed = get_password_hash(new_password)
        await self._mutate(user_id, lambda a: domain.set_password_hash(a, hashed, utcnow()))
        logger.info(f"[AccountService] 비밀번호 변경 완료 (모든 세션 종료): user_id={user_id}")

    # ---- 프로필 ----

    async def profile_counts(self, account: Account, today: date = None) -> Dict[str, Optional[int]]:
        """저장하지 않고 조회 시점에 계산하는 파생 값"""
        total_reviews = await self.reviews.count_by_user(account.id) if self.reviews else 0
        total_styles = await self.styles.count_by_creator(account.id) if self.styles else 0
        return {
            "followers_count": len(account.social.followers),
            "following_count": len(account.social.following),
            "age": domain.age_of(account, today or utcnow().date()),
            "total_reviews": total_reviews,
            "total_styles": total_styles,
        }

    async def public_profile(self, user_id: str, viewer: Optional[Account] = None) -> Account:
        account = await self.require(user_id)
        if not account.account_status.is_active:
            raise NotFoundError("User", user_id)
        is_self = viewer is not None and viewer.id == account.id
        is_staff = viewer is not None and viewer.account_status.role in STAFF_ROLES
        visibility = account.user_settings.privacy.profile_visibility
        if visibility == ProfileVisibility.PRIVATE and not (is_self or is_staff):
            raise AuthorizationError("This profile is private")
        if visibility == ProfileVisibility.FRIENDS and not (is_self or is_staff):
            if viewer is None or not domain.is_following(account, viewer.id):
                raise AuthorizationError("This profile is only visible to people the user follows")
        return account

    async def update_profile(self, user_id: str, patch: Dict) -> Account:
        def apply(a: Account) -> Account:
            try:
                return domain.apply_profile_patch(a, patch, utcnow())
            except PydanticValidationError as e:
                errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
                raise ValidationError("Validation error", errors=errors)

        account = await self._mutate(user_id, apply)
        logger.info(f"[AccountService] 프로필 수정: user_id={user_id}, fields={sorted(patch)}")
        return account

    async def by_ids(self, user_ids) -> Dict[str, Account]:
        # 리뷰 작성자/스타일 작성자 요약 정보를 한 번의 조회로 채우기 위함
        unique_ids = list({i for i in user_ids if i})
        return {a.id: a for a in await self.repo.get_many(unique_ids)}

    async def search(self, query: Optional[str], limit: int = 20) -> List[Account]:
        return await self.repo.search(query, limit)

    async def trending(self, limit: int = 10) -> List[Account]:
        return await self.repo.trending(limit)

    # ---- 팔로우 ----

    async def follow(self, user_id: str, target_id: str) -> Account:
        if user_id == target_id:
            raise ValidationError("You cannot follow yourself", "user_id")
        await self.require(target_id)
        now = utcnow()
        account = await self._mutate(user_id, lambda a: domain.follow(a, target_id, now))
        # 두 번째 쓰기 (원자적이지 않음)
        await self._mutate(target_id, lambda a: domain.add_follower(a, user_id, now))
        logger.info(f"[AccountService] 팔로우: {user_id} -> {target_id}")
        return account

    async def unfollow(self, user_id: str, target_id: str) -> Account:
        await self.require(target_id)
        now = utcnow()
        account = await self._mutate(user_id, lambda a: domain.unfollow(a, target_id, now))
        await self._mutate(target_id, lambda a: domain.remove_follower(a, user_id, now))
        logger.info(f"[AccountService] 언팔로우: {user_id} -> {target_id}")
        return account

    # ---- 즐겨찾기 / 북마크 / 컬렉션 ----

    async def add_favorite(self, user_id: str, style_id: str) -> Account:
        await self._require_style(style_id)
        return await self._mutate(user_id, lambda a: domain.add_favorite(a, style_id, utcnow()))

    async def remove_favorite(self, user_id: str, style_id: str) -> Account:
        return await self._mutate(user_id, lambda a: domain.remove_favorite(a, style_id, utcnow()))

    async def add_bookmark(self, user_id: str, style_id: str) -> Account:
        await self._require_style(style_id)
        return await self._mutate(user_id, lambda a: domain.add_bookmark(a, style_id, utcnow()))

    async def remove_bookmark(self, user_id: str, style_id: str) -> Account:
        return await self._mutate(user_id, lambda a: domain.remove_bookmark(a, style_id, utcnow()))

    async def create_collection(
        self, user_id: str, name: str, description: str = None, is_public: bool = False
    ) -> Account:
        return await self._mutate(
            user_id, lambda a: domain.create_collection(a, name, utcnow(), description, is_public)
        )

    async def add_to_collection(self, user_id: str, name: str, style_id: str) -> Account:
        await self._require_style(style_id)
        return await self._mutate(user_id, lambda a: domain.add_to_collection(a, name, style_id, utcnow()))

    async def remove_from_collection(self, user_id: str, name: str, style_id: str) -> Account:
        return await self._mutate(user_id, lambda a: domain.remove_from_collection(a, name, style_id, utcnow()))

    # ---- 포인트 / 관리자 ----

    async def award_points(self, user_id: str, amount: int) -> Account:
        account = await self._mutate(user_id, lambda a: domain.award_points(a, amount, utcnow()))
        logger.info(
            f"[AccountService] 포인트 지급: user_id={user_id}, +{amount} "
            f"(total={account.achievements.points}, level={account.achievements.level})"
        )
        return account

    async def reward_activity(self, user_id: str, points: int) -> Account:
        """리뷰/스타일 작성 같은 활동에 대한 포인트 지급 + 활동 시각 갱신"""
        now = utcnow()

        def reward(a: Account) -> Account:
            a = domain.touch_activity(a, now)
            return domain.award_points(a, points, now) if points > 0 else a

        return await self._mutate(user_id, reward)

    async def suspend(self, user_id: str, until: datetime, reason: str) -> Account:
        now = utcnow()
        if as_utc(until) <= now:
            raise ValidationError("Suspension end must be in the future", "until")
        account = await self._mutate(user_id, lambda a: domain.suspend(a, as_utc(until), reason, now))
        logger.warning(f"[AccountService] 계정 정지: user_id={user_id}, until={until}, reason={reason}")
        return account

    async def reactivate(self, user_id: str) -> Account:
        account = await self._mutate(user_id, lambda a: domain.reactivate(a, utcnow()))
        logger.info(f"[AccountService] 계정 정지 해제: user_id={user_id}")
        return account

    async def change_role(self, user_id: str, role: Role) -> Account:
        account = await self._mutate(user_id, lambda a: domain.change_role(a, Role(role), utcnow()))
        logger.info(f"[AccountService] 권한 변경: user_id={user_id}, role={account.account_status.role.value}")
        return account

    # ---- 정기 정리 ----

    async def purge_expired_security_state(self, idle_days: int = 30) -> int:
        now = utcnow()
        # Celery 워커에서도 실행되므로 잠금 대신 저장소의 조건부 업데이트로 정리
        cleaned = await self.repo.purge_expired_security_state(now, now - timedelta(days=idle_days))
        logger.info(f"[AccountService] 만료 토큰/유휴 세션 정리: {cleaned}개 계정")
        return cleaned
