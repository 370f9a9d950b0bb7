"""Outbound port for alert notifications and emails.

Delivery is fire-and-forget from the domain's point of view: callers log
failures and carry on.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from stockkeeper.domain.model.alert import Notification


class NotificationSink(ABC):

    @abstractmethod
    def create_alert(self, notification: Notification) -> None:
        """Persist a notification record."""

    @abstractmethod
    def send_email(self, recipients: list[str], subject: str, body: str) -> None:
        """Hand an email to the delivery collaborator."""
