"""File-backed NotificationSink.

Notification records go to ``notifications.json``.  Emails are not
delivered from here: they are queued in ``outbox.json`` for whatever
mail transport the deployment runs.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import structlog

from stockkeeper.domain.model.alert import Notification
from stockkeeper.domain.repository.notification_sink import NotificationSink
from stockkeeper.infrastructure.persistence.json_file import JsonFile

logger = structlog.get_logger(__name__)


class JsonNotificationSink(NotificationSink):

    def __init__(self, notifications_path: Path, outbox_path: Path) -> None:
        self._notifications = JsonFile(notifications_path)
        self._outbox = JsonFile(outbox_path)

    def create_alert(self, notification: Notification) -> None:
        with self._notifications.locked():
            records = self._notifications.load()
            records.append(
                {
                    "id": notification.id,
                    "type": notification.type,
                    "title": notification.title,
                    "message": notification.message,
                    "severity": notification.severity,
                    "data": notification.data,
                    "read": notification.read,
                    "created_at": notification.created_at.isoformat(),
                    "expires_at": notification.expires_at.isoformat(),
                }
            )
            self._notifications.persist(records)

    def send_email(self, recipients: list[str], subject: str, body: str) -> None:
        with self._outbox.locked():
            records = self._outbox.load()
            records.append(
                {
                    "to": list(recipients),
                    "subject": subject,
                    "body": body,
                    "queued_at": datetime.now(timezone.utc).isoformat(),
                }
            )
            self._outbox.persist(records)
        logger.info("Email queued", recipients=len(recipients), subject=subject)
