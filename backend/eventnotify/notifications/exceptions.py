"""Notification errors."""


class NotificationError(Exception):
    """Base class for notification errors."""


class UnknownNotificationKind(NotificationError, ValueError):
    """Raised when enqueueing a kind outside NotificationKind. Nothing is persisted."""

    def __init__(self, kind: str):
        super().__init__(f"unknown notification kind: {kind!r}")
        self.kind = kind


class AttachmentNotFound(NotificationError, LookupError):
    def __init__(self, attachment_id):
        super().__init__(f"attachment {attachment_id} not found")
        self.attachment_id = attachment_id


class DeliveryError(NotificationError):
    """Raised by email senders.

    Permanent errors (bad recipient, rejected message) mark the notification
    processed with the error; transient ones leave it pending.
    """

    def __init__(self, message: str, is_permanent: bool = False):
        super().__init__(message)
        self.is_permanent = is_permanent
