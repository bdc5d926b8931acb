# 계정 메일 서비스
# - 이메일 인증 / 비밀번호 재설정 링크를 만들어 Celery 작업 큐에 넘김
# - 실제 SMTP 발송은 워커(tasks/account_tasks.py)가 담당

import logging

from kombu.exceptions import OperationalError

from ..core.config import settings
from ..domain.account import Account
from ..tasks.account_tasks import send_account_email

logger = logging.getLogger(__name__)


class AccountMailer:
    def __init__(self, frontend_url: str = None):
        self.frontend_url = (frontend_url or settings.FRONTEND_URL).rstrip("/")

    def _enqueue(self, to_email: str, subject: str, body: str) -> None:
        # 브로커(Redis)가 내려가 있어도 요청 자체는 실패시키지 않음 (재발송 API로 복구 가능)
        try:
            send_account_email.delay(to_email, subject, body)
        except OperationalError as e:
            logger.error(f"[AccountMailer] 메일 작업 등록 실패 ({subject}): {e}")

    def send_verification(self, account: Account, raw_token: str) -> None:
        link = f"{self.frontend_url}/verify-email?token={raw_token}"
        body = (
            f"Hi {account.name},\n\n"
            f"Please verify your email address by opening the link below.\n"
            f"{link}\n\n"
            f"This link expires in {settings.EMAIL_VERIFICATION_EXPIRE_HOURS} hours."
        )
        self._enqueue(account.email, "[Hijab Gallery] Verify your email", body)

    def send_password_reset(self, account: Account, raw_token: str) -> None:
        link = f"{self.frontend_url}/reset-password?token={raw_token}"
        body = (
            f"Hi {account.name},\n\n"
            f"We received a request to reset your password.\n"
            f"{link}\n\n"
            f"This link expires in {settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes. "
            f"If you did not request this, you can ignore this email."
        )
        self._enqueue(account.email, "[Hijab Gallery] Reset your password", body)
