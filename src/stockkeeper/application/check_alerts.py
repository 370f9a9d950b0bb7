"""Application service: Low-stock alert check use case."""

from __future__ import annotations

from dataclasses import dataclass

from stockkeeper.domain.model.alert import AlertStats, LowStockAlert
from stockkeeper.domain.service.alert_monitor import AlertMonitor


@dataclass(frozen=True)
class AlertReport:
    alerts: list[LowStockAlert]
    stats: AlertStats


class CheckAlertsHandler:

    def __init__(self, monitor: AlertMonitor) -> None:
        self._monitor = monitor

    def handle(self, notify: bool = False) -> AlertReport:
        """Scan stock levels; with *notify*, record alerts and email urgent ones."""
        if notify:
            alerts = self._monitor.run()
        else:
            alerts = self._monitor.check_low_stock_alerts()
        return AlertReport(alerts=alerts, stats=AlertStats.from_alerts(alerts))
