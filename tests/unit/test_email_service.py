"""
Unit tests for app/services/email_service.py.

Covered:
- build_contact_message: headers and body
- send_contact_email: incomplete settings, SMTP login and send, SMTP failure
"""

import smtplib
import pytest
from unittest.mock import MagicMock, patch

from app.services.email_service import (
    EmailNotConfiguredError,
    EmailSendError,
    build_contact_message,
    send_contact_email,
)

pytestmark = pytest.mark.unit


@pytest.fixture
def smtp_settings():
    with patch.multiple(
        "app.services.email_service.settings",
        SMTP_HOST="smtp.test",
        SMTP_PORT=465,
        SMTP_USER="forms@fitnessflow.test",
        SMTP_PASSWORD="secret",
        CONTACT_RECIPIENT="hello@fitnessflow.test",
    ):
        yield


def test_build_contact_message_sets_reply_to(smtp_settings):
    msg = build_contact_message("Marta", "marta@example.com", "Hello there, team!")

    assert msg["To"] == "hello@fitnessflow.test"
    assert msg["Reply-To"] == "marta@example.com"
    assert msg["Subject"] == "New contact form message from Marta"
    assert "forms@fitnessflow.test" in msg["From"]
    assert "Hello there, team!" in msg.get_content()


@pytest.mark.asyncio
async def test_send_without_settings_raises():
    with patch("app.services.email_service.settings.SMTP_PASSWORD", ""):
        with pytest.raises(EmailNotConfiguredError):
            await send_contact_email("Marta", "marta@example.com", "Hello there, team!")


@pytest.mark.asyncio
async def test_send_logs_in_and_sends(smtp_settings):
    smtp = MagicMock()
    with patch("app.services.email_service.smtplib.SMTP_SSL") as smtp_cls:
        smtp_cls.return_value.__enter__.return_value = smtp
        await send_contact_email("Marta", "marta@example.com", "Hello there, team!")

    smtp_cls.assert_called_once_with("smtp.test", 465, timeout=15)
    smtp.login.assert_called_once_with("forms@fitnessflow.test", "secret")
    sent = smtp.send_message.call_args.args[0]
    assert sent["Reply-To"] == "marta@example.com"


@pytest.mark.asyncio
async def test_send_failure_raises_email_send_error(smtp_settings):
    smtp = MagicMock()
    smtp.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")
    with patch("app.services.email_service.smtplib.SMTP_SSL") as smtp_cls:
        smtp_cls.return_value.__enter__.return_value = smtp
        with pytest.raises(EmailSendError):
            await send_contact_email("Marta", "marta@example.com", "Hello there, team!")
