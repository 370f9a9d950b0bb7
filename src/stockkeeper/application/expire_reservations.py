"""Application service: Expire stale reservations.

Orders stuck in ``processing`` hold reserved stock indefinitely.  This
sweep, meant to be run periodically (cron, scheduler), cancels every
processing order whose reservations are older than the TTL.  Going
through the state machine means the normal cancellation path releases
the stock and stamps the timeline, so order status and counters never
disagree.  Shipped orders are left alone: their goods are in transit.
Stale holds whose order was never saved are released directly.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import structlog

from stockkeeper.domain.exceptions import DomainException
from stockkeeper.domain.model.order import OrderStatus
from stockkeeper.domain.model.reservation import Reservation, ReservationState
from stockkeeper.domain.repository.order_repository import OrderRepository
from stockkeeper.domain.repository.reservation_repository import (
    ReservationRepository,
)
from stockkeeper.domain.service.order_state_machine import OrderStateMachine

logger = structlog.get_logger(__name__)

SWEEPER_ACTOR = "reservation-sweeper"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ExpireReservationsHandler:

    def __init__(
        self,
        reservations: ReservationRepository,
        order_repo: OrderRepository,
        state_machine: OrderStateMachine,
        ttl: timedelta,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._reservations = reservations
        self._order_repo = order_repo
        self._state_machine = state_machine
        self._ttl = ttl
        self._clock = clock

    def handle(self) -> list[int]:
        """Cancel stale processing orders and free holds of unsaved ones.

        Returns the ids of the orders whose reservations expired.
        """
        cutoff = self._clock() - self._ttl
        stale = [
            r
            for r in self._reservations.list_by_state(ReservationState.RESERVED)
            if r.reserved_at <= cutoff
        ]
        stale_orders = sorted({r.order_id for r in stale})
        logger.info(
            "Checking for stale reservations",
            cutoff=cutoff.isoformat(),
            candidates=len(stale_orders),
        )

        expired: list[int] = []
        for order_id in stale_orders:
            order = self._order_repo.get_by_id(order_id)
            if order is None:
                if self._release_orphan(order_id, stale):
                    expired.append(order_id)
                continue
            if order.status is not OrderStatus.PROCESSING:
                continue
            try:
                self._state_machine.update_status(
                    order_id,
                    OrderStatus.CANCELLED,
                    note=f"Reservation expired after {self._ttl}",
                    actor=SWEEPER_ACTOR,
                    expected_status=OrderStatus.PROCESSING,
                )
            except DomainException as exc:
                logger.warning(
                    "Failed to expire reservation",
                    order_id=order_id,
                    error=str(exc),
                )
                continue
            expired.append(order_id)

        logger.info("Stale reservation cleanup complete", expired_count=len(expired))
        return expired

    def _release_orphan(self, order_id: int, stale: list[Reservation]) -> bool:
        try:
            failures = self._state_machine.release_orphan(
                order_id, stale, actor=SWEEPER_ACTOR
            )
        except DomainException as exc:
            logger.warning(
                "Failed to release orphaned reservation",
                order_id=order_id,
                error=str(exc),
            )
            return False
        return not failures
