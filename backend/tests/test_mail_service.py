# 메일 작업 등록/발송 테스트 (Redis, SMTP를 모킹)
import smtplib
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from kombu.exceptions import OperationalError
from tenacity import stop_after_attempt

from hijab_api.domain.account import new_account
from hijab_api.services.mail_service import AccountMailer
from hijab_api.tasks import account_tasks

ACCOUNT = new_account("Amina", "amina@example.com", "hashed", datetime(2026, 3, 1, tzinfo=timezone.utc))


@patch("hijab_api.services.mail_service.send_account_email")
def test_verification_link_is_enqueued(mock_task):
    AccountMailer("https://hijab.example.com/").send_verification(ACCOUNT, "raw-token")
    to_email, subject, body = mock_task.delay.call_args.args
    assert to_email == "amina@example.com"
    assert "Verify" in subject
    assert "https://hijab.example.com/verify-email?token=raw-token" in body


@patch("hijab_api.services.mail_service.send_account_email")
def test_reset_link_is_enqueued(mock_task):
    AccountMailer("https://hijab.example.com").send_password_reset(ACCOUNT, "raw-token")
    body = mock_task.delay.call_args.args[2]
    assert "https://hijab.example.com/reset-password?token=raw-token" in body


@patch("hijab_api.services.mail_service.send_account_email")
def test_broker_outage_does_not_fail_the_request(mock_task):
    mock_task.delay.side_effect = OperationalError("redis down")
    AccountMailer().send_verification(ACCOUNT, "raw-token")
    mock_task.delay.assert_called_once()


@patch("hijab_api.tasks.account_tasks.smtplib.SMTP")
def test_send_email_uses_tls_and_quits(mock_smtp):
    server = MagicMock()
    mock_smtp.return_value = server
    account_tasks._send_email("amina@example.com", "Hello", "Body")
    server.sendmail.assert_called_once()
    assert server.sendmail.call_args.args[1] == ["amina@example.com"]
    server.quit.assert_called_once()


@patch("hijab_api.tasks.account_tasks.smtplib.SMTP")
def test_dropped_connection_keeps_the_original_error(mock_smtp):
    server = MagicMock()
    server.starttls.side_effect = smtplib.SMTPNotSupportedError("STARTTLS extension not supported")
    server.quit.side_effect = smtplib.SMTPServerDisconnected("please run connect() first")
    mock_smtp.return_value = server

    send_once = account_tasks._send_email.retry_with(stop=stop_after_attempt(1))
    with pytest.raises(smtplib.SMTPNotSupportedError):
        send_once("amina@example.com", "Hello", "Body")
    server.close.assert_called_once()
