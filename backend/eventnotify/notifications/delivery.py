"""Email delivery of queued notifications.

A DeliveryWorker repeatedly claims the oldest eligible notification, sends it
by email and marks it processed, all inside one transaction. The SMTP
password may be stored encrypted using Fernet (AES-128-CBC) derived from
SECRET_KEY.
"""

import base64
import hashlib
import logging
import smtplib
import threading
from collections.abc import Callable
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate, make_msgid
from typing import Protocol

from cryptography.fernet import Fernet
from sqlalchemy.orm import Session

from ..config import settings
from ..database.base import SessionLocal
from ..integrations.cache import CacheService
from .exceptions import DeliveryError
from .models import NotificationKind
from .schemas import AttachmentContent, PendingNotification
from .service import get_pending_notification, mark_notification_processed, record_delivery_error
from .store import get_notification_attachment

logger = logging.getLogger(__name__)


# ── Credential encryption ─────────────────────────────────────────────


def _derive_fernet_key(secret: str) -> bytes:
    """Derive a Fernet key from the app SECRET_KEY using SHA-256."""
    digest = hashlib.sha256(secret.encode()).digest()
    return base64.urlsafe_b64encode(digest)


def encrypt_value(plaintext: str) -> str:
    """Encrypt a string value using the app's SECRET_KEY."""
    f = Fernet(_derive_fernet_key(settings.secret_key))
    return f.encrypt(plaintext.encode()).decode()


def decrypt_value(ciphertext: str) -> str:
    """Decrypt a string value using the app's SECRET_KEY."""
    f = Fernet(_derive_fernet_key(settings.secret_key))
    return f.decrypt(ciphertext.encode()).decode()


# ── Email building ─────────────────────────────────────────────────────

_STATIC_SUBJECTS = {
    NotificationKind.COMMUNITY_TEAM_INVITATION: "You have been invited to join a community team",
    NotificationKind.EMAIL_VERIFICATION: "Verify your email address",
    NotificationKind.EVENT_CANCELED: "Event canceled",
    NotificationKind.EVENT_PUBLISHED: "New event published",
    NotificationKind.EVENT_REMINDER: "Event reminder",
    NotificationKind.EVENT_RESCHEDULED: "Event rescheduled",
    NotificationKind.EVENT_WELCOME: "Welcome to the event",
    NotificationKind.GROUP_TEAM_INVITATION: "You have been invited to join a group team",
    NotificationKind.GROUP_WELCOME: "Welcome to the group",
    NotificationKind.SESSION_PROPOSAL_CO_SPEAKER_INVITATION: "You have been invited to co-present a session",
    NotificationKind.SPEAKER_WELCOME: "You're speaking at an event",
}


def notification_subject(kind: str, data: dict) -> str:
    """Subject line for a notification. Raises KeyError when the payload lacks a needed field."""
    kind = NotificationKind(kind)
    if kind == NotificationKind.CFS_SUBMISSION_UPDATED:
        return f"Submission update: {data['event']['name']}"
    if kind == NotificationKind.EVENT_CUSTOM:
        return data.get("subject") or f"{data['event']['group_name']}: {data['event']['name']}"
    if kind == NotificationKind.GROUP_CUSTOM:
        return data.get("subject") or data["group"]["name"]
    if kind == NotificationKind.EVENT_REMINDER and "event" in data:
        return f"Reminder: {data['event']['name']}"
    return _STATIC_SUBJECTS[kind]


def _notification_body(data: dict) -> str:
    parts = []
    if data.get("body"):
        parts.append(str(data["body"]))
    if data.get("link"):
        parts.append(str(data["link"]))
    parts.append("--\nThis message was sent automatically, please do not reply.")
    return "\n\n".join(parts) + "\n"


def build_message(
    notification: PendingNotification,
    attachments: list[AttachmentContent],
    from_address: str,
    from_name: str,
) -> MIMEMultipart:
    """Build the email for a notification with its attachments."""
    if notification.template_data is None:
        raise DeliveryError("missing template data", is_permanent=True)
    try:
        subject = notification_subject(notification.kind, notification.template_data)
    except (KeyError, TypeError, ValueError) as exc:
        raise DeliveryError(f"invalid template data: {exc}", is_permanent=True) from exc

    msg = MIMEMultipart("mixed")
    msg["From"] = formataddr((from_name, from_address))
    msg["To"] = notification.email
    msg["Date"] = formatdate(localtime=True)
    msg["Message-ID"] = make_msgid(domain=from_address.split("@")[-1] if "@" in from_address else "local")
    msg["Subject"] = subject
    msg.attach(MIMEText(_notification_body(notification.template_data), "plain", "utf-8"))

    for attachment in attachments:
        maintype, _, subtype = attachment.content_type.partition("/")
        part = MIMEBase(maintype or "application", subtype or "octet-stream")
        part.set_payload(attachment.data)
        encoders.encode_base64(part)
        part.add_header("Content-Disposition", "attachment", filename=attachment.file_name)
        msg.attach(part)

    return msg


# ── Email sending ──────────────────────────────────────────────────────


class EmailSender(Protocol):
    """Email transport interface."""

    def send(self, message: MIMEMultipart) -> None: ...


def _is_permanent_reply(*codes: int) -> bool:
    """5xx replies are permanent; 4xx (greylisting, full mailbox) are worth retrying."""
    return bool(codes) and all(code >= 500 for code in codes)


class SmtpEmailSender:
    """SMTP with STARTTLS. 5xx rejections are permanent errors, everything else transient."""

    def __init__(self, host: str, port: int, username: str, password: str, timeout: float = 15) -> None:
        self._host = host
        self._port = port
        self._username = username
        # Fernet tokens start with 'gAAAAA'
        self._password = decrypt_value(password) if password.startswith("gAAAAA") else password
        self._timeout = timeout

    def send(self, message: MIMEMultipart) -> None:
        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
                server.ehlo()
                server.starttls()
                server.ehlo()
                if self._username:
                    server.login(self._username, self._password)
                server.send_message(message)
        except smtplib.SMTPRecipientsRefused as exc:
            codes = [code for code, _ in exc.recipients.values()]
            raise DeliveryError(str(exc), is_permanent=_is_permanent_reply(*codes)) from exc
        except (smtplib.SMTPSenderRefused, smtplib.SMTPDataError) as exc:
            raise DeliveryError(str(exc), is_permanent=_is_permanent_reply(exc.smtp_code)) from exc
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(str(exc) or exc.__class__.__name__) from exc


def create_email_sender() -> EmailSender | None:
    """SMTP sender from settings, or None when SMTP is not configured."""
    if not settings.smtp_host or not settings.email_from_address:
        return None
    return SmtpEmailSender(settings.smtp_host, settings.smtp_port, settings.smtp_user, settings.smtp_password)


# ── Worker ─────────────────────────────────────────────────────────────


class DeliveryWorker:
    """Delivers pending notifications one at a time."""

    def __init__(
        self,
        email_sender: EmailSender,
        session_factory: Callable[[], Session] = SessionLocal,
        cache: CacheService | None = None,
        from_address: str | None = None,
        from_name: str | None = None,
        rcpts_whitelist: list[str] | None = None,
        pause_on_none: float | None = None,
        pause_on_error: float | None = None,
    ) -> None:
        self.email_sender = email_sender
        self.session_factory = session_factory
        self.cache = cache
        self.from_address = from_address if from_address is not None else settings.email_from_address
        self.from_name = from_name if from_name is not None else settings.email_from_name
        self.rcpts_whitelist = rcpts_whitelist
        self.pause_on_none = pause_on_none if pause_on_none is not None else settings.notifications_pause_on_none
        self.pause_on_error = pause_on_error if pause_on_error is not None else settings.notifications_pause_on_error

    def _recipient_allowed(self, address: str) -> bool:
        if self.rcpts_whitelist is None:
            return True
        # An empty whitelist allows nobody
        return address in self.rcpts_whitelist

    def _send(self, db: Session, notification: PendingNotification) -> None:
        attachments = [
            get_notification_attachment(db, attachment_id, self.cache)
            for attachment_id in notification.attachment_ids or []
        ]
        message = build_message(notification, attachments, self.from_address, self.from_name)

        if not self._recipient_allowed(notification.email):
            logger.warning("Email recipient %s not allowed, skipping send", notification.email)
            return
        self.email_sender.send(message)

    def deliver_notification(self) -> bool:
        """Deliver one pending notification. Returns False when the queue is empty.

        Transient delivery errors are recorded on the notification, committed,
        and re-raised so the caller can pause.
        """
        db = self.session_factory()
        try:
            notification = get_pending_notification(db)
            if notification is None:
                db.rollback()
                return False

            try:
                self._send(db, notification)
            except DeliveryError as exc:
                if not exc.is_permanent:
                    record_delivery_error(db, notification.notification_id, str(exc))
                    db.commit()
                    raise
                logger.error("Notification %s failed permanently: %s", notification.notification_id, exc)
                mark_notification_processed(db, notification.notification_id, str(exc))
            else:
                mark_notification_processed(db, notification.notification_id)
                logger.info("Delivered %s notification %s", notification.kind, notification.notification_id)

            db.commit()
            return True
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def run(self, stop: threading.Event) -> None:
        """Deliver until ``stop`` is set, pausing when idle or after an error."""
        while not stop.is_set():
            try:
                delivered = self.deliver_notification()
            except Exception:
                logger.exception("Error delivering notification")
                stop.wait(self.pause_on_error)
                continue
            if not delivered:
                stop.wait(self.pause_on_none)
