"""Application service: Stock movement history (query)."""

from __future__ import annotations

from datetime import datetime

from stockkeeper.application.dto import MovementDTO, movement_to_dto
from stockkeeper.domain.exceptions import EntityNotFoundError, ValidationError
from stockkeeper.domain.model.movement import MovementFilter, MovementType
from stockkeeper.domain.repository.movement_ledger import MovementLedger
from stockkeeper.domain.repository.stock_store import StockStore


def parse_movement_type(raw: str) -> MovementType:
    try:
        return MovementType(raw.strip().lower())
    except ValueError:
        valid = ", ".join(t.value for t in MovementType)
        raise ValidationError(f"Unknown movement type '{raw}'. Valid: {valid}")


class ShowMovementsHandler:

    def __init__(self, stock_store: StockStore, ledger: MovementLedger) -> None:
        self._stock_store = stock_store
        self._ledger = ledger

    def handle(
        self,
        product_id: str | None = None,
        order_id: int | None = None,
        movement_type: str | None = None,
        actor: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
    ) -> list[MovementDTO]:
        """Ledger rows matching every given criterion, oldest first."""
        if product_id is not None and self._stock_store.get_product(product_id) is None:
            raise EntityNotFoundError(f"Product not found: '{product_id}'")
        if since is not None and until is not None and since > until:
            raise ValidationError("'since' must not be after 'until'")
        if limit is not None and limit < 1:
            raise ValidationError("Limit must be at least 1")

        filters = MovementFilter(
            product_id=product_id,
            order_id=order_id,
            type=parse_movement_type(movement_type) if movement_type else None,
            actor=actor,
            since=since,
            until=until,
        )
        return [movement_to_dto(m) for m in self._ledger.query(filters, limit=limit)]
