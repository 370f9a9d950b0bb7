"""Application service: Manual stock adjustment use case."""

from __future__ import annotations

from stockkeeper.application.dto import MovementDTO, movement_to_dto
from stockkeeper.domain.service.reservation_manager import ReservationManager


class AdjustStockHandler:

    def __init__(self, manager: ReservationManager) -> None:
        self._manager = manager

    def handle(
        self, product_id: str, quantity_change: int, reason: str, actor: str
    ) -> MovementDTO:
        """Correct stock on hand; recorded as an ``adjustment`` movement."""
        movement = self._manager.adjust(product_id, quantity_change, reason, actor)
        return movement_to_dto(movement)
