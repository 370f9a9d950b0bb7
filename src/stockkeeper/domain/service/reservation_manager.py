"""Domain service: ReservationManager.

The only component allowed to change a product's ``current_stock`` or
``reserved_stock``.  Every mutation is a single atomic step per product:

1. a per-product lock serializes callers in this process, so a second
   reservation always sees the first one's effect before computing
   ``available``;
2. the write itself is a compare-and-swap on the product ``version``,
   retried (with tenacity) when a writer outside this process got there
   first.

Calls for different products take different locks and never wait on
each other.  Per order/product Reservation records make release and
finalize exactly-once: repeats are no-ops, never a second credit.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone
from typing import TypeVar

import structlog
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random,
)

from stockkeeper.domain.exceptions import (
    ConcurrencyConflictError,
    EntityNotFoundError,
    PersistenceError,
    StockShortfall,
    ValidationError,
)
from stockkeeper.domain.model.movement import (
    SYSTEM_ACTOR,
    InventoryMovement,
    MovementType,
)
from stockkeeper.domain.model.product import Product
from stockkeeper.domain.model.reservation import Reservation, ReservationState
from stockkeeper.domain.repository.movement_ledger import MovementLedger
from stockkeeper.domain.repository.reservation_repository import (
    ReservationRepository,
)
from stockkeeper.domain.repository.stock_store import StockStore
from stockkeeper.domain.service.keyed_lock import KeyedLock

logger = structlog.get_logger(__name__)

T = TypeVar("T")
MovementListener = Callable[[InventoryMovement], None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _log_conflict(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Concurrent stock update detected, retrying",
        attempt=retry_state.attempt_number,
        error=str(exc),
    )


class ReservationManager:

    def __init__(
        self,
        stock_store: StockStore,
        ledger: MovementLedger,
        reservations: ReservationRepository,
        locks: KeyedLock | None = None,
        max_attempts: int = 3,
        clock: Callable[[], datetime] = _utc_now,
        listeners: list[MovementListener] | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValidationError("max_attempts must be at least 1")
        self._stock_store = stock_store
        self._ledger = ledger
        self._reservations = reservations
        self._locks = locks or KeyedLock()
        self._max_attempts = max_attempts
        self._clock = clock
        self._listeners: list[MovementListener] = list(listeners or [])

    def add_listener(self, listener: MovementListener) -> None:
        """Register a callback invoked with every new movement."""
        self._listeners.append(listener)

    # --- Reservation protocol -------------------------------------------------

    def reserve(
        self,
        product_id: str,
        quantity: int,
        order_id: int,
        actor: str = SYSTEM_ACTOR,
    ) -> InventoryMovement | None:
        """Hold *quantity* units of a product for an order.

        Raises InsufficientStockError (with no change) when the product
        cannot cover the request.  Repeating an identical reservation is a
        no-op and returns None.
        """
        _require_positive(quantity, "Reservation")
        with self._locks.hold(product_id):
            existing = self._reservations.get(order_id, product_id)
            if existing is not None:
                if existing.is_held and existing.quantity == quantity:
                    logger.info(
                        "Reservation already held",
                        product_id=product_id,
                        order_id=order_id,
                        quantity=quantity,
                    )
                    return None
                raise ValidationError(
                    f"Order #{order_id} already has a {existing.state.value} "
                    f"reservation of {existing.quantity} for product '{product_id}'"
                )

            def hold(product: Product) -> int:
                product.reserve(quantity)
                return quantity

            movement = self._mutate(
                product_id, MovementType.RESERVE, order_id, actor, hold
            )
            self._save_reservation(
                Reservation(
                    order_id=order_id,
                    product_id=product_id,
                    quantity=quantity,
                    reserved_at=movement.created_at,
                    updated_at=movement.created_at,
                )
            )

        logger.info(
            "Stock reserved",
            product_id=product_id,
            order_id=order_id,
            quantity=quantity,
            available=movement.available_after,
        )
        self._notify(movement)
        return movement

    def release(
        self,
        product_id: str,
        quantity: int,
        order_id: int,
        actor: str = SYSTEM_ACTOR,
    ) -> InventoryMovement | None:
        """Undo an order's reservation, returning the units to the pool.

        Releasing twice, or releasing something never reserved, is a safe
        no-op that returns None.
        """
        _require_positive(quantity, "Release")
        with self._locks.hold(product_id):
            reservation = self._reservations.get(order_id, product_id)
            if reservation is None or reservation.state is ReservationState.RELEASED:
                logger.info(
                    "Nothing to release",
                    product_id=product_id,
                    order_id=order_id,
                    state=reservation.state.value if reservation else None,
                )
                return None
            self._require_held(reservation, quantity, "release")

            movement = self._mutate(
                product_id,
                MovementType.UNRESERVE,
                order_id,
                actor,
                lambda product: -self._release_units(product, quantity, order_id),
            )
            reservation.mark_released(movement.created_at)
            self._save_reservation(reservation)

        logger.info(
            "Reservation released",
            product_id=product_id,
            order_id=order_id,
            quantity=quantity,
        )
        self._notify(movement)
        return movement

    def finalize(
        self,
        product_id: str,
        quantity: int,
        order_id: int,
        actor: str = SYSTEM_ACTOR,
    ) -> InventoryMovement | None:
        """Turn an order's reservation into a permanent stock deduction.

        Release and deduction happen in one write and produce one SALE
        movement.  Finalizing twice is a no-op that returns None.
        """
        _require_positive(quantity, "Finalize")
        with self._locks.hold(product_id):
            reservation = self._reservations.get(order_id, product_id)
            if reservation is None:
                raise ValidationError(
                    f"No reservation held for order #{order_id} / product '{product_id}'"
                )
            if reservation.state is ReservationState.FINALIZED:
                logger.info(
                    "Reservation already finalized",
                    product_id=product_id,
                    order_id=order_id,
                )
                return None
            self._require_held(reservation, quantity, "finalize")

            def deduct(product: Product) -> int:
                released = product.finalize(quantity)
                self._warn_if_clamped(product.id, order_id, quantity, released)
                return -quantity

            movement = self._mutate(
                product_id, MovementType.SALE, order_id, actor, deduct
            )
            reservation.mark_finalized(movement.created_at)
            self._save_reservation(reservation)

        logger.info(
            "Reservation finalized",
            product_id=product_id,
            order_id=order_id,
            quantity=quantity,
            stock=movement.stock_after,
        )
        self._notify(movement)
        return movement

    def restock_return(
        self,
        product_id: str,
        quantity: int,
        order_id: int,
        actor: str = SYSTEM_ACTOR,
    ) -> InventoryMovement | None:
        """Put the units of a delivered-then-returned order back in stock."""
        _require_positive(quantity, "Return")
        with self._locks.hold(product_id):
            reservation = self._reservations.get(order_id, product_id)
            if reservation is not None and reservation.state is ReservationState.RETURNED:
                logger.info(
                    "Return already restocked",
                    product_id=product_id,
                    order_id=order_id,
                )
                return None
            if reservation is None or reservation.state is not ReservationState.FINALIZED:
                raise ValidationError(
                    f"Order #{order_id} has no delivered units of product "
                    f"'{product_id}' to return"
                )
            if reservation.quantity != quantity:
                raise ValidationError(
                    f"Return of {quantity} does not match the {reservation.quantity} "
                    f"delivered for order #{order_id} / product '{product_id}'"
                )

            def put_back(product: Product) -> int:
                product.restock(quantity)
                return quantity

            movement = self._mutate(
                product_id, MovementType.RETURN, order_id, actor, put_back
            )
            reservation.mark_returned(movement.created_at)
            self._save_reservation(reservation)

        self._notify(movement)
        return movement

    def adjust(
        self,
        product_id: str,
        quantity_change: int,
        reason: str,
        actor: str = SYSTEM_ACTOR,
    ) -> InventoryMovement:
        """Manually correct a product's stock on hand (not tied to an order)."""
        if not reason or not reason.strip():
            raise ValidationError("An adjustment needs a reason")

        def correct(product: Product) -> int:
            product.adjust(quantity_change)
            return quantity_change

        with self._locks.hold(product_id):
            movement = self._mutate(
                product_id,
                MovementType.ADJUSTMENT,
                None,
                actor,
                correct,
                note=reason.strip(),
            )

        logger.info(
            "Stock adjusted",
            product_id=product_id,
            change=quantity_change,
            stock=movement.stock_after,
            actor=actor,
        )
        self._notify(movement)
        return movement

    # --- Queries --------------------------------------------------------------

    def check_availability(
        self, product_id: str, quantity: int, product_name: str | None = None
    ) -> StockShortfall | None:
        """Return the shortfall for a hypothetical reservation, without holding."""
        product = self._stock_store.get_product(product_id)
        if product is None:
            return StockShortfall(
                product_id, product_name or product_id, quantity, 0, "unknown product"
            )
        if product.available_stock < quantity:
            return StockShortfall(
                product_id,
                product_name or product.name,
                quantity,
                product.available_stock,
            )
        return None

    # --- Internal helpers -----------------------------------------------------

    def _mutate(
        self,
        product_id: str,
        movement_type: MovementType,
        order_id: int | None,
        actor: str,
        change: Callable[[Product], int],
        note: str = "",
    ) -> InventoryMovement:
        """Read, apply *change*, compare-and-swap, then append the movement.

        Must be called with the product's lock held.  *change* mutates the
        working copy and returns the signed quantity for the ledger.
        """

        def attempt() -> tuple[Product, Product, int]:
            before = self._load(product_id)
            working = replace(before)
            quantity_change = change(working)
            updated = self._stock_store.update_product(
                product_id,
                {
                    "current_stock": working.current_stock,
                    "reserved_stock": working.reserved_stock,
                },
                expected_version=before.version,
            )
            return before, updated, quantity_change

        before, updated, quantity_change = self._retrying(attempt)
        movement = InventoryMovement.between(
            movement_type,
            before,
            updated,
            quantity_change,
            order_id,
            actor=actor,
            note=note,
            created_at=self._clock(),
        )
        try:
            self._ledger.append(movement)
        except PersistenceError as exc:
            logger.error(
                "Stock counters written but ledger append failed",
                product_id=product_id,
                order_id=order_id,
                type=movement_type.value,
                error=str(exc),
            )
            raise
        return movement

    def _retrying(self, fn: Callable[[], T]) -> T:
        retryer = Retrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_random(min=0, max=0.05),
            retry=retry_if_exception_type(ConcurrencyConflictError),
            before_sleep=_log_conflict,
            reraise=True,
        )
        return retryer(fn)

    def _load(self, product_id: str) -> Product:
        product = self._stock_store.get_product(product_id)
        if product is None:
            raise EntityNotFoundError(f"Product '{product_id}' not found")
        return product

    def _release_units(self, product: Product, quantity: int, order_id: int) -> int:
        released = product.release(quantity)
        self._warn_if_clamped(product.id, order_id, quantity, released)
        return released

    @staticmethod
    def _warn_if_clamped(
        product_id: str, order_id: int, requested: int, released: int
    ) -> None:
        if released < requested:
            # counters and reservation records disagree: likely a double release
            logger.warning(
                "Reserved stock clamped at zero",
                product_id=product_id,
                order_id=order_id,
                requested=requested,
                released=released,
            )

    @staticmethod
    def _require_held(reservation: Reservation, quantity: int, verb: str) -> None:
        if not reservation.is_held:
            raise ValidationError(
                f"Cannot {verb} order #{reservation.order_id} / product "
                f"'{reservation.product_id}': reservation is {reservation.state.value}"
            )
        if reservation.quantity != quantity:
            raise ValidationError(
                f"Cannot {verb} {quantity} of product '{reservation.product_id}' "
                f"(order #{reservation.order_id} reserved {reservation.quantity})"
            )

    def _save_reservation(self, reservation: Reservation) -> None:
        try:
            self._reservations.save(reservation)
        except PersistenceError as exc:
            logger.error(
                "Stock counters written but reservation record not saved",
                product_id=reservation.product_id,
                order_id=reservation.order_id,
                state=reservation.state.value,
                error=str(exc),
            )
            raise

    def _notify(self, movement: InventoryMovement) -> None:
        for listener in list(self._listeners):
            try:
                listener(movement)
            except Exception:
                logger.exception(
                    "Movement listener failed",
                    product_id=movement.product_id,
                    movement_id=movement.id,
                )


def _require_positive(quantity: int, label: str) -> None:
    if quantity <= 0:
        raise ValidationError(f"{label} quantity must be positive")
