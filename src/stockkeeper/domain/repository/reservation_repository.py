"""Abstract repository for per order/product Reservation records."""

from __future__ import annotations

from abc import ABC, abstractmethod

from stockkeeper.domain.model.reservation import Reservation, ReservationState


class ReservationRepository(ABC):

    @abstractmethod
    def get(self, order_id: int, product_id: str) -> Reservation | None:
        """Return the reservation for this order/product pair, or None."""

    @abstractmethod
    def save(self, reservation: Reservation) -> None:
        """Persist a new or updated reservation."""

    @abstractmethod
    def list_for_order(self, order_id: int) -> list[Reservation]:
        """Return every reservation made for an order."""

    @abstractmethod
    def list_by_state(self, state: ReservationState) -> list[Reservation]:
        """Return every reservation currently in *state*."""
