"""Reservation — per order/product record of a stock hold.

This is what makes release and finalize exactly-once: the counters alone
cannot tell a first release from a second one, the record can.

    RESERVED ──► RELEASED
        │
        └──────► FINALIZED ──► RETURNED
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from stockkeeper.domain.exceptions import ValidationError


class ReservationState(Enum):
    RESERVED = "reserved"
    RELEASED = "released"
    FINALIZED = "finalized"
    RETURNED = "returned"


@dataclass
class Reservation:

    order_id: int
    product_id: str
    quantity: int
    reserved_at: datetime
    state: ReservationState = ReservationState.RESERVED
    updated_at: datetime | None = None

    @property
    def key(self) -> tuple[int, str]:
        return (self.order_id, self.product_id)

    @property
    def is_held(self) -> bool:
        return self.state is ReservationState.RESERVED

    def mark_released(self, at: datetime) -> None:
        self._move(ReservationState.RESERVED, ReservationState.RELEASED, at)

    def mark_finalized(self, at: datetime) -> None:
        self._move(ReservationState.RESERVED, ReservationState.FINALIZED, at)

    def mark_returned(self, at: datetime) -> None:
        self._move(ReservationState.FINALIZED, ReservationState.RETURNED, at)

    def _move(
        self, expected: ReservationState, target: ReservationState, at: datetime
    ) -> None:
        if self.state is not expected:
            raise ValidationError(
                f"Reservation for order #{self.order_id} / product "
                f"'{self.product_id}' is {self.state.value}, cannot mark {target.value}"
            )
        self.state = target
        self.updated_at = at
