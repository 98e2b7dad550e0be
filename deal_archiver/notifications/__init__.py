"""Operator notifications."""

from deal_archiver.notifications.email import (
    AUTH_METHODS,
    Notification,
    Notifier,
    SmtpNotifier,
)
from deal_archiver.notifications.messages import (
    FAILURE_SUBJECT,
    SUCCESS_SUBJECT,
    archived_notification,
    error_notification,
    probe_notification,
)

__all__ = [
    "AUTH_METHODS",
    "Notification",
    "Notifier",
    "SmtpNotifier",
    "SUCCESS_SUBJECT",
    "FAILURE_SUBJECT",
    "archived_notification",
    "error_notification",
    "probe_notification",
]
