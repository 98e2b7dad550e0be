"""Notification texts for record outcomes."""

from __future__ import annotations

from deal_archiver.notifications.email import Notification

SUCCESS_SUBJECT = "Deal Archived Successfully"
FAILURE_SUBJECT = "Deal Archive Error"


def archived_notification(record_id: str, file: str) -> Notification:
    """Notification for a record the service archived."""
    return Notification(
        subject=SUCCESS_SUBJECT,
        body=f"Deal ID: {record_id}\nArchive File: {file}",
    )


def error_notification(record_id: str, error: str) -> Notification:
    """Notification for a record whose archive attempt failed."""
    return Notification(
        subject=FAILURE_SUBJECT,
        body=f"Deal ID: {record_id}\nError: {error}",
    )


def probe_notification() -> Notification:
    """Notification sent by the ``notify-test`` command."""
    return Notification(
        subject="Deal Archiver Test",
        body="This is a test message from the deal archiver.",
    )
