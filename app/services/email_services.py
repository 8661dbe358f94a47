import logging
import smtplib
from email.mime.text import MIMEText

from app.config import settings

logger = logging.getLogger(__name__)


def send_email(to_email: str, subject: str, body: str) -> None:
    msg = MIMEText(body)
    msg["Subject"] = subject
    msg["From"] = settings.FROM_EMAIL or settings.SMTP_USER
    msg["To"] = to_email

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as server:
        server.starttls()
        server.login(settings.SMTP_USER, settings.SMTP_PASS)
        server.send_message(msg)


def notify_mentor_request(to_email: str | None, mentor_name: str, requester_name: str, message: str | None) -> bool:
    """Tell a mentor about a new request. Runs as a background task and never raises."""
    if not settings.MENTOR_REQUEST_NOTIFICATIONS_ENABLED:
        logger.debug("Mentor request notifications disabled by configuration.")
        return False
    if not to_email or not settings.SMTP_HOST:
        logger.info("Skipping mentor request email; no recipient or SMTP host configured.")
        return False

    body = (
        f"Hello {mentor_name},\n\n"
        f"{requester_name} would like you to mentor them.\n\n"
        f"Message:\n{message or '(no message)'}\n\n"
        "Sign in to accept or decline the request."
    )
    try:
        send_email(to_email, "New mentorship request", body)
    except (smtplib.SMTPException, OSError):
        logger.exception("Failed to send mentor request email to %s", to_email)
        return False
    logger.info("Mentor request email sent to %s", to_email)
    return True
