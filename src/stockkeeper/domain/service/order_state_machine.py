"""Domain service: OrderStateMachine.

Every status move is looked up in an explicit transition table that names
its inventory side effect.  The side effect runs first; only when it has
succeeded does the order advance, append its timeline entry and get
persisted.  A failing side effect leaves the order exactly as it was.

    pending ──► processing ──► shipped ──► delivered ──► returned
       │             │             │
       └─────────────┴─────────────┴──► cancelled
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime, timezone

import structlog

from stockkeeper.domain.exceptions import (
    DomainException,
    EntityNotFoundError,
    InvalidTransitionError,
)
from stockkeeper.domain.model.movement import SYSTEM_ACTOR
from stockkeeper.domain.model.order import Order, OrderItem, OrderStatus
from stockkeeper.domain.model.reservation import Reservation
from stockkeeper.domain.model.value_objects import Quantity
from stockkeeper.domain.repository.order_repository import OrderRepository
from stockkeeper.domain.service.inventory_service import InventoryService
from stockkeeper.domain.service.keyed_lock import KeyedLock

logger = structlog.get_logger(__name__)

InventoryAction = Callable[[InventoryService, Order, str], object]


def _reserve(inventory: InventoryService, order: Order, actor: str) -> object:
    return inventory.validate_and_reserve(order.items, order.id, actor)


def _finalize(inventory: InventoryService, order: Order, actor: str) -> object:
    return inventory.finalize_order_delivery(order.items, order.id, actor)


def _release(inventory: InventoryService, order: Order, actor: str) -> object:
    failures = inventory.release_reservations(order.items, order.id, actor)
    if failures:
        # the caller still goes ahead; stuck holds are left for reconciliation
        logger.error(
            "Reservations left unreleased",
            order_id=order.id,
            products=sorted(failures),
        )
    return failures


def _restock(inventory: InventoryService, order: Order, actor: str) -> object:
    return inventory.restock_returned_items(order.items, order.id, actor)


TRANSITIONS: dict[tuple[OrderStatus, OrderStatus], InventoryAction | None] = {
    (OrderStatus.PENDING, OrderStatus.PROCESSING): _reserve,
    (OrderStatus.PROCESSING, OrderStatus.SHIPPED): None,
    (OrderStatus.SHIPPED, OrderStatus.DELIVERED): _finalize,
    (OrderStatus.PENDING, OrderStatus.CANCELLED): _release,
    (OrderStatus.PROCESSING, OrderStatus.CANCELLED): _release,
    (OrderStatus.SHIPPED, OrderStatus.CANCELLED): _release,
    (OrderStatus.DELIVERED, OrderStatus.RETURNED): _restock,
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OrderStateMachine:

    def __init__(
        self,
        order_repo: OrderRepository,
        inventory: InventoryService,
        locks: KeyedLock | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._order_repo = order_repo
        self._inventory = inventory
        self._locks = locks or KeyedLock()
        self._clock = clock

    def start(
        self,
        order: Order,
        note: str | None = None,
        actor: str = SYSTEM_ACTOR,
    ) -> Order:
        """Move a brand-new pending order into processing.

        The order is persisted only if every item could be reserved, so a
        failed creation leaves no trace besides the compensated ledger rows.
        If the order itself cannot be saved, its reservations are released
        again before the error propagates.
        """
        with self._locks.hold(order.id):
            return self._transition(
                order, OrderStatus.PROCESSING, note, actor, undo=_release
            )

    def release_orphan(
        self,
        order_id: int,
        held: Sequence[Reservation],
        actor: str = SYSTEM_ACTOR,
    ) -> dict[str, str]:
        """Release reservations left behind by an order that was never saved."""
        with self._locks.hold(order_id):
            if self._order_repo.get_by_id(order_id) is not None:
                raise InvalidTransitionError(
                    f"Order #{order_id} exists; cancel it instead"
                )
            items = [
                OrderItem(r.product_id, r.product_id, Quantity(r.quantity))
                for r in held
                if r.order_id == order_id
            ]
            failures = self._inventory.release_reservations(items, order_id, actor)
        logger.warning(
            "Released reservations of unsaved order",
            order_id=order_id,
            products=sorted(item.product_id for item in items),
            failed=sorted(failures),
        )
        return failures

    def update_status(
        self,
        order_id: int,
        new_status: OrderStatus,
        note: str | None = None,
        actor: str = SYSTEM_ACTOR,
        expected_status: OrderStatus | None = None,
    ) -> Order:
        """Apply a status change to a persisted order.

        With *expected_status*, the change only happens if the order is
        still in that status once the order lock is held.
        """
        with self._locks.hold(order_id):
            order = self._order_repo.get_by_id(order_id)
            if order is None:
                raise EntityNotFoundError(f"Order #{order_id} not found")
            if expected_status is not None and order.status is not expected_status:
                raise InvalidTransitionError(
                    f"Order #{order_id} is {order.status.value}, "
                    f"expected {expected_status.value}"
                )
            return self._transition(order, new_status, note, actor)

    def _transition(
        self,
        order: Order,
        new_status: OrderStatus,
        note: str | None,
        actor: str,
        undo: InventoryAction | None = None,
    ) -> Order:
        order.ensure_can_transition(new_status)
        previous = order.status

        action = TRANSITIONS.get((previous, new_status))
        if action is not None:
            try:
                action(self._inventory, order, actor)
            except DomainException as exc:
                logger.warning(
                    "Order transition aborted",
                    order_id=order.id,
                    from_status=previous.value,
                    to_status=new_status.value,
                    error=str(exc),
                )
                raise

        order.advance(new_status, note=note, actor=actor, at=self._clock())
        try:
            self._order_repo.save(order)
        except DomainException as exc:
            logger.error(
                "Order could not be saved after inventory change",
                order_id=order.id,
                to_status=new_status.value,
                compensated=undo is not None,
                error=str(exc),
            )
            if undo is not None:
                undo(self._inventory, order, actor)
            raise
        logger.info(
            "Order status changed",
            order_id=order.id,
            from_status=previous.value,
            to_status=new_status.value,
            actor=actor,
        )
        return order
