# Celery 작업 & 스케줄
# - 계정 메일 발송 (이메일 인증 / 비밀번호 재설정 링크)
# - 매일 새벽 3시: 만료된 토큰 해시와 오래 사용하지 않은 세션 정리

import asyncio
import logging
import smtplib
from email.mime.text import MIMEText

from celery import Celery
from celery.schedules import crontab

from ..core.config import settings
from ..core.retry import smtp_retry

logger = logging.getLogger(__name__)

# Celery 앱 초기화
celery_app = Celery("account_tasks", broker=settings.REDIS_URL, backend=settings.REDIS_URL)
celery_app.conf.timezone = settings.TIMEZONE

# 이 기간 동안 사용되지 않은 세션은 정리 대상
SESSION_IDLE_DAYS = 30


def _close(server: smtplib.SMTP):
    # 이미 끊긴 연결이면 quit 대신 소켓만 정리 (원래 예외가 가려지지 않도록)
    try:
        server.quit()
    except smtplib.SMTPServerDisconnected:
        server.close()


@smtp_retry
def _send_email(to_email: str, subject: str, body: str):
    msg = MIMEText(body, "plain", "utf-8")
    msg["Subject"] = subject
    msg["From"] = settings.SMTP_FROM
    msg["To"] = to_email

    server = smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT)
    try:
        if settings.SMTP_TLS:
            server.starttls()
        if settings.SMTP_USER and settings.SMTP_PASSWORD:
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        server.sendmail(settings.SMTP_FROM, [to_email], msg.as_string())
    finally:
        _close(server)


@celery_app.on_after_configure.connect
def setup_periodic_tasks(sender, **kwargs):
    sender.add_periodic_task(
        crontab(hour=3, minute=0),
        purge_expired_security_state.s(),
        name="purge_expired_security_state_daily",
    )


@celery_app.task
def send_account_email(to_email: str, subject: str, body: str):
    _send_email(to_email, subject, body)
    logger.info(f"[AccountTasks] 메일 발송 완료: {subject}")


@celery_app.task
def purge_expired_security_state() -> int:
    # Celery는 동기 함수이므로, 내부에서 asyncio 루프 실행
    from ..core.database import Database
    from ..core.locks import KeyedLock
    from ..models.documents import DOCUMENT_MODELS
    from ..repositories.user_repository import UserRepository
    from ..services.account_service import AccountService

    async def _run() -> int:
        database = Database(settings.MONGODB_URI, DOCUMENT_MODELS, settings.MONGODB_TIMEOUT_MS)
        await database.connect()
        try:
            service = AccountService(UserRepository(database), KeyedLock(), mailer=None)
            return await service.purge_expired_security_state(idle_days=SESSION_IDLE_DAYS)
        finally:
            await database.close()

    cleaned = asyncio.run(_run())
    logger.info(f"[AccountTasks] 보안 상태 정리 완료: {cleaned}개 계정")
    return cleaned
