"""Domain service: low-stock alerting.

Reads the stock store (never writes it) and pushes notification records
and emails to the NotificationSink.  Delivery failures are logged and
swallowed: alerting must never break a scan or an order flow.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

import structlog

from stockkeeper.domain.exceptions import DomainException
from stockkeeper.domain.model.alert import (
    AlertLevel,
    AlertStats,
    LowStockAlert,
    Notification,
    classify_stock_level,
)
from stockkeeper.domain.model.movement import InventoryMovement
from stockkeeper.domain.model.product import Product
from stockkeeper.domain.model.value_objects import StockThresholds
from stockkeeper.domain.repository.movement_ledger import MovementLedger
from stockkeeper.domain.repository.notification_sink import NotificationSink
from stockkeeper.domain.repository.stock_store import StockStore

logger = structlog.get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AlertMonitor:

    def __init__(
        self,
        stock_store: StockStore,
        ledger: MovementLedger,
        sink: NotificationSink,
        thresholds: StockThresholds | None = None,
        notification_emails: list[str] | None = None,
        notifications_enabled: bool = True,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._stock_store = stock_store
        self._ledger = ledger
        self._sink = sink
        self._thresholds = thresholds or StockThresholds()
        self._emails = list(notification_emails or [])
        self._enabled = notifications_enabled
        self._clock = clock

    def check_low_stock_alerts(self) -> list[LowStockAlert]:
        """Classify every product's available stock; healthy ones are skipped."""
        alerts: list[LowStockAlert] = []
        for product in self._stock_store.list_products():
            alert = self._evaluate(product)
            if alert is not None:
                alerts.append(alert)
        return alerts

    def check_product(self, product_id: str) -> LowStockAlert | None:
        product = self._stock_store.get_product(product_id)
        if product is None:
            return None
        return self._evaluate(product)

    def get_alert_stats(self) -> AlertStats:
        return AlertStats.from_alerts(self.check_low_stock_alerts())

    def create_stock_alert(self, alert: LowStockAlert) -> bool:
        """Persist a notification record for *alert*; False if that failed."""
        if not self._enabled:
            return False
        notification = Notification.for_alert(alert, now=self._clock())
        try:
            self._sink.create_alert(notification)
        except DomainException as exc:
            logger.error(
                "Failed to create stock alert",
                product_id=alert.product_id,
                level=alert.level.value,
                error=str(exc),
            )
            return False
        logger.info(
            "Stock alert created",
            product_id=alert.product_id,
            level=alert.level.value,
            available=alert.current_stock,
        )
        return True

    def send_critical_alert_emails(self, alerts: list[LowStockAlert]) -> int:
        """Email the critical and out-of-stock alerts; returns how many were sent."""
        urgent = [a for a in alerts if a.is_urgent]
        if not urgent or not self._enabled or not self._emails:
            return 0

        subject = f"Critical stock alert: {len(urgent)} product(s) need restocking"
        try:
            self._sink.send_email(self._emails, subject, render_alert_email(urgent))
        except DomainException as exc:
            logger.error(
                "Failed to send critical stock alert email",
                alerts=len(urgent),
                error=str(exc),
            )
            return 0
        logger.info("Critical stock alert email sent", alerts=len(urgent))
        return len(urgent)

    def run(self) -> list[LowStockAlert]:
        """One full monitoring pass: scan, record every alert, email urgent ones."""
        alerts = self.check_low_stock_alerts()
        for alert in alerts:
            self.create_stock_alert(alert)
        self.send_critical_alert_emails(alerts)
        return alerts

    def on_movement(self, movement: InventoryMovement) -> None:
        """Movement listener: re-check the product a movement just touched.

        A notification is recorded only when the movement moved the product
        into a different alert level; emails are batched by ``run()``.
        """
        product = self._stock_store.get_product(movement.product_id)
        if product is None:
            return
        alert = self._evaluate(product)
        if alert is None:
            return
        previous = classify_stock_level(
            movement.stock_before - movement.reserved_before,
            self._thresholds,
            product.low_stock_threshold,
        )
        if previous is alert.level:
            return
        self.create_stock_alert(alert)

    def _evaluate(self, product: Product) -> LowStockAlert | None:
        level = classify_stock_level(
            product.available_stock, self._thresholds, product.low_stock_threshold
        )
        if level is None:
            return None
        last = self._ledger.last_for_product(product.id)
        return LowStockAlert(
            product_id=product.id,
            sku=product.sku,
            product_name=product.name,
            current_stock=product.available_stock,
            threshold=self._threshold_for(level, product),
            level=level,
            last_movement_at=last.created_at if last else None,
        )

    def _threshold_for(self, level: AlertLevel, product: Product) -> int:
        if level is AlertLevel.OUT_OF_STOCK:
            return 0
        if level is AlertLevel.CRITICAL:
            return self._thresholds.critical
        if product.low_stock_threshold is not None:
            return product.low_stock_threshold
        return self._thresholds.low


def render_alert_email(alerts: list[LowStockAlert]) -> str:
    lines = ["The following products need restocking:", ""]
    for alert in alerts:
        status = "OUT OF STOCK" if alert.level is AlertLevel.OUT_OF_STOCK else "CRITICAL"
        lines.append(
            f"- {alert.product_name} ({alert.sku}): {status}, "
            f"available {alert.current_stock}, threshold {alert.threshold}"
        )
    lines += ["", "Please restock these products."]
    return "\n".join(lines)
