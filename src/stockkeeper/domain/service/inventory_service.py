"""Domain service: whole-order inventory orchestration.

No multi-row transaction is assumed, so multi-item reservation is a saga:
each successful ``reserve`` records its compensating ``release`` in a
CompensationLog, and any failure unwinds the log in reverse order.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from functools import partial

import structlog

from stockkeeper.domain.exceptions import (
    DomainException,
    EntityNotFoundError,
    InsufficientStockError,
    PartialFinalizationError,
    StockShortfall,
    StockValidationError,
)
from stockkeeper.domain.model.movement import SYSTEM_ACTOR, InventoryMovement
from stockkeeper.domain.model.order import OrderItem
from stockkeeper.domain.service.compensation import CompensationLog
from stockkeeper.domain.service.reservation_manager import ReservationManager

logger = structlog.get_logger(__name__)


class InventoryService:

    def __init__(self, manager: ReservationManager) -> None:
        self._manager = manager

    def validate_and_reserve(
        self,
        items: Sequence[OrderItem],
        order_id: int,
        actor: str = SYSTEM_ACTOR,
    ) -> list[InventoryMovement]:
        """Reserve every item of an order, or none of them.

        Shortfalls are collected rather than short-circuited: once one item
        fails, the remaining items are only probed so the caller learns
        everything that is unavailable.  Any failure releases the items
        reserved by this call, newest first.
        """
        compensation = CompensationLog(f"reserve order #{order_id}")
        shortfalls: list[StockShortfall] = []
        movements: list[InventoryMovement] = []

        try:
            for item in items:
                qty = item.quantity.value
                if shortfalls:
                    shortfall = self._manager.check_availability(
                        item.product_id, qty, item.product_name
                    )
                    if shortfall is not None:
                        shortfalls.append(shortfall)
                    continue

                try:
                    movement = self._manager.reserve(
                        item.product_id, qty, order_id, actor
                    )
                except InsufficientStockError as exc:
                    shortfalls.append(
                        StockShortfall(
                            item.product_id, item.product_name, qty, exc.available
                        )
                    )
                    continue
                except EntityNotFoundError:
                    shortfalls.append(
                        StockShortfall(
                            item.product_id, item.product_name, qty, 0, "unknown product"
                        )
                    )
                    continue

                # None means the hold predates this call; it is not ours to undo
                if movement is not None:
                    movements.append(movement)
                    compensation.record(
                        f"release {item.product_id}",
                        partial(
                            self._manager.release, item.product_id, qty, order_id, actor
                        ),
                    )
        except Exception:
            compensation.compensate()
            raise

        if shortfalls:
            compensation.compensate()
            logger.info(
                "Order reservation rejected",
                order_id=order_id,
                shortfalls=[s.product_id for s in shortfalls],
            )
            raise StockValidationError(order_id, shortfalls)

        compensation.commit()
        return movements

    def finalize_order_delivery(
        self,
        items: Sequence[OrderItem],
        order_id: int,
        actor: str = SYSTEM_ACTOR,
    ) -> list[InventoryMovement]:
        """Deduct every item's reserved stock permanently.

        Best-effort: a failing item is logged and the loop continues, then
        PartialFinalizationError reports the torn state.  Re-running is
        safe; items already finalized are skipped.
        """
        return self._each_item(
            items,
            order_id,
            lambda item: self._manager.finalize(
                item.product_id, item.quantity.value, order_id, actor
            ),
            operation="finalize",
        )

    def release_reservations(
        self,
        items: Sequence[OrderItem],
        order_id: int,
        actor: str = SYSTEM_ACTOR,
    ) -> dict[str, str]:
        """Release every item's reservation; never raises for a single item.

        Returns product id -> error message for items that could not be
        released so the caller can report them.
        """
        failures: dict[str, str] = {}
        for item in items:
            try:
                self._manager.release(
                    item.product_id, item.quantity.value, order_id, actor
                )
            except DomainException as exc:
                failures[item.product_id] = str(exc)
                logger.error(
                    "Failed to release reservation",
                    product_id=item.product_id,
                    order_id=order_id,
                    error=str(exc),
                )
        return failures

    def restock_returned_items(
        self,
        items: Sequence[OrderItem],
        order_id: int,
        actor: str = SYSTEM_ACTOR,
    ) -> list[InventoryMovement]:
        """Return the delivered units of a returned order to stock."""
        return self._each_item(
            items,
            order_id,
            lambda item: self._manager.restock_return(
                item.product_id, item.quantity.value, order_id, actor
            ),
            operation="return",
        )

    # --- Internal helpers -----------------------------------------------------

    @staticmethod
    def _each_item(
        items: Sequence[OrderItem],
        order_id: int,
        step: Callable[[OrderItem], InventoryMovement | None],
        operation: str,
    ) -> list[InventoryMovement]:
        movements: list[InventoryMovement] = []
        completed: list[str] = []
        failed: dict[str, str] = {}

        for item in items:
            try:
                movement = step(item)
            except DomainException as exc:
                failed[item.product_id] = str(exc)
                logger.error(
                    f"Failed to {operation} item",
                    product_id=item.product_id,
                    order_id=order_id,
                    error=str(exc),
                )
                continue
            completed.append(item.product_id)
            if movement is not None:
                movements.append(movement)

        if failed:
            raise PartialFinalizationError(order_id, completed, failed, operation)
        return movements
