"""Composition root — wires concrete implementations to domain interfaces.

This is the only place in the codebase that knows about *all* layers.
Every other module depends only on abstractions.  Each factory is cached
so that every caller in the process shares one set of stores and one
set of per-product and per-order locks.
"""

from __future__ import annotations

from functools import lru_cache

from stockkeeper.domain.service.alert_monitor import AlertMonitor
from stockkeeper.domain.service.inventory_service import InventoryService
from stockkeeper.domain.service.order_state_machine import OrderStateMachine
from stockkeeper.domain.service.reservation_manager import ReservationManager
from stockkeeper.infrastructure.config import Settings
from stockkeeper.infrastructure.notifications.json_notification_sink import (
    JsonNotificationSink,
)
from stockkeeper.infrastructure.persistence.json_movement_ledger import (
    JsonMovementLedger,
)
from stockkeeper.infrastructure.persistence.json_order_repository import (
    JsonOrderRepository,
)
from stockkeeper.infrastructure.persistence.json_reservation_repository import (
    JsonReservationRepository,
)
from stockkeeper.infrastructure.persistence.json_stock_store import JsonStockStore


@lru_cache(maxsize=1)
def settings() -> Settings:
    return Settings.from_env()


@lru_cache(maxsize=1)
def stock_store() -> JsonStockStore:
    return JsonStockStore(settings().data_dir / "products.json")


@lru_cache(maxsize=1)
def movement_ledger() -> JsonMovementLedger:
    return JsonMovementLedger(settings().data_dir / "movements.json")


@lru_cache(maxsize=1)
def reservation_repository() -> JsonReservationRepository:
    return JsonReservationRepository(settings().data_dir / "reservations.json")


@lru_cache(maxsize=1)
def order_repository() -> JsonOrderRepository:
    return JsonOrderRepository(settings().data_dir / "orders.json")


@lru_cache(maxsize=1)
def notification_sink() -> JsonNotificationSink:
    data_dir = settings().data_dir
    return JsonNotificationSink(data_dir / "notifications.json", data_dir / "outbox.json")


@lru_cache(maxsize=1)
def alert_monitor() -> AlertMonitor:
    cfg = settings()
    return AlertMonitor(
        stock_store(),
        movement_ledger(),
        notification_sink(),
        thresholds=cfg.thresholds,
        notification_emails=cfg.notification_emails,
        notifications_enabled=cfg.notifications_enabled,
    )


@lru_cache(maxsize=1)
def reservation_manager() -> ReservationManager:
    return ReservationManager(
        stock_store(),
        movement_ledger(),
        reservation_repository(),
        max_attempts=settings().conflict_retry_attempts,
        listeners=[alert_monitor().on_movement],
    )


@lru_cache(maxsize=1)
def inventory_service() -> InventoryService:
    return InventoryService(reservation_manager())


@lru_cache(maxsize=1)
def order_state_machine() -> OrderStateMachine:
    return OrderStateMachine(order_repository(), inventory_service())


_FACTORIES = (
    settings,
    stock_store,
    movement_ledger,
    reservation_repository,
    order_repository,
    notification_sink,
    alert_monitor,
    reservation_manager,
    inventory_service,
    order_state_machine,
)


def reset() -> None:
    """Drop every cached instance; the next call re-reads the environment."""
    for factory in _FACTORIES:
        factory.cache_clear()
