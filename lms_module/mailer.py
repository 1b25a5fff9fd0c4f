"""Best-effort e-mail copies of leave notifications.

With no SMTP credentials configured the message is only logged. Delivery
failures never reach the caller.
"""
import logging
import smtplib
from collections.abc import Iterable
from email.mime.text import MIMEText

from .config import settings

logger = logging.getLogger(__name__)


class MailDispatchError(Exception):
    pass


def smtp_configured() -> bool:
    return bool(settings.smtp_host and settings.smtp_username and settings.smtp_password)


def send_email(*, recipient_email: str, subject: str, body: str) -> None:
    msg = MIMEText(body)
    msg["Subject"] = subject
    msg["From"] = settings.mail_from
    msg["To"] = recipient_email

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=15) as server:
            server.starttls()
            server.login(settings.smtp_username, settings.smtp_password)
            server.sendmail(settings.mail_from, [recipient_email], msg.as_string())
    except (smtplib.SMTPException, OSError) as exc:
        raise MailDispatchError(f"Failed to send email: {exc}") from exc


def mail_users(recipients: Iterable[str | None], *, subject: str, body: str) -> int:
    """Send one message per distinct address; returns how many went out."""
    addresses = sorted({r for r in recipients if r})
    if not smtp_configured():
        logger.info("SMTP not configured, skipping email %r to %d recipient(s)", subject, len(addresses))
        return 0
    sent = 0
    for address in addresses:
        try:
            send_email(recipient_email=address, subject=subject, body=body)
        except MailDispatchError:
            logger.exception("Email %r to %s failed", subject, address)
            continue
        sent += 1
    return sent
