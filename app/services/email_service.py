import asyncio
import logging
import smtplib
from email.message import EmailMessage

from app.core.config import settings

logger = logging.getLogger(__name__)


class EmailNotConfiguredError(Exception):
    pass


class EmailSendError(Exception):
    pass


def _is_configured() -> bool:
    return bool(settings.SMTP_HOST and settings.SMTP_USER and settings.SMTP_PASSWORD and settings.CONTACT_RECIPIENT)


def build_contact_message(name: str, email: str, message: str) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = f"New contact form message from {name}"
    msg["From"] = f"Fitness Flow Contact Form <{settings.SMTP_USER}>"
    msg["To"] = settings.CONTACT_RECIPIENT
    msg["Reply-To"] = email
    msg.set_content(f"Name: {name}\nEmail: {email}\n\nMessage:\n{message}\n")
    return msg


def _send(msg: EmailMessage) -> None:
    with smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT, timeout=15) as smtp:
        smtp.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        smtp.send_message(msg)


async def send_contact_email(name: str, email: str, message: str) -> None:
    if not _is_configured():
        raise EmailNotConfiguredError("SMTP settings are incomplete")

    msg = build_contact_message(name, email, message)
    try:
        await asyncio.to_thread(_send, msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Could not send contact email from %s: %s", email, e)
        raise EmailSendError(str(e)) from e
    logger.info("Contact email sent from %s", email)
