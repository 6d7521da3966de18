"""Customer notification senders."""

from app.services.notifications.logging_sender import LoggingNotificationSender
from app.services.notifications.smtp_sender import SmtpNotificationSender

__all__ = ["LoggingNotificationSender", "SmtpNotificationSender"]
