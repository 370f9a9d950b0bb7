"""Low-stock alerts and the notification records they produce.

Alerts are derived data: they are recomputed from product state on every
scan and are never a source of truth.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from uuid import uuid4

from stockkeeper.domain.model.value_objects import StockThresholds

NOTIFICATION_TTL = timedelta(days=7)


class AlertLevel(Enum):
    LOW = "low"
    CRITICAL = "critical"
    OUT_OF_STOCK = "out_of_stock"


# Levels that warrant an email, not just a notification record
URGENT_LEVELS = frozenset({AlertLevel.CRITICAL, AlertLevel.OUT_OF_STOCK})

_SEVERITY = {
    AlertLevel.OUT_OF_STOCK: "critical",
    AlertLevel.CRITICAL: "high",
    AlertLevel.LOW: "medium",
}

_NOTIFICATION_TYPE = {
    AlertLevel.OUT_OF_STOCK: "out_of_stock",
    AlertLevel.CRITICAL: "critical_stock",
    AlertLevel.LOW: "low_stock",
}


def classify_stock_level(
    available: int, thresholds: StockThresholds, low_override: int | None = None
) -> AlertLevel | None:
    """Map an available-stock figure to an alert level (None = healthy)."""
    low = thresholds.low if low_override is None else low_override
    if available <= 0:
        return AlertLevel.OUT_OF_STOCK
    if available <= thresholds.critical:
        return AlertLevel.CRITICAL
    if available <= low:
        return AlertLevel.LOW
    return None


@dataclass(frozen=True)
class LowStockAlert:
    product_id: str
    sku: str
    product_name: str
    current_stock: int  # available stock at scan time
    threshold: int
    level: AlertLevel
    last_movement_at: datetime | None = None

    @property
    def is_urgent(self) -> bool:
        return self.level in URGENT_LEVELS

    @property
    def severity(self) -> str:
        return _SEVERITY[self.level]


@dataclass(frozen=True)
class AlertStats:
    total_alerts: int
    low_stock: int
    critical_alerts: int
    out_of_stock: int

    @staticmethod
    def from_alerts(alerts: list[LowStockAlert]) -> AlertStats:
        return AlertStats(
            total_alerts=len(alerts),
            low_stock=sum(1 for a in alerts if a.level is AlertLevel.LOW),
            critical_alerts=sum(1 for a in alerts if a.level is AlertLevel.CRITICAL),
            out_of_stock=sum(1 for a in alerts if a.level is AlertLevel.OUT_OF_STOCK),
        )


@dataclass(frozen=True)
class Notification:
    """A persisted notification record handed to the notification sink."""

    type: str
    title: str
    message: str
    severity: str
    data: str  # JSON-encoded alert
    created_at: datetime
    expires_at: datetime
    read: bool = False
    id: str = field(default_factory=lambda: uuid4().hex)

    @staticmethod
    def for_alert(alert: LowStockAlert, now: datetime | None = None) -> Notification:
        now = now or datetime.now(timezone.utc)
        payload = asdict(alert)
        payload["level"] = alert.level.value
        payload["last_movement_at"] = (
            alert.last_movement_at.isoformat() if alert.last_movement_at else None
        )
        return Notification(
            type=_NOTIFICATION_TYPE[alert.level],
            title=f"Low stock alert: {alert.product_name}",
            message=(
                f"{alert.product_name} ({alert.sku}) reached {alert.level.value} level. "
                f"Available: {alert.current_stock}, threshold: {alert.threshold}"
            ),
            severity=alert.severity,
            data=json.dumps(payload),
            created_at=now,
            expires_at=now + NOTIFICATION_TTL,
        )
