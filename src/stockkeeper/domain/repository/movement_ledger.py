"""Abstract append-only ledger of InventoryMovement rows."""

from __future__ import annotations

from abc import ABC, abstractmethod

from stockkeeper.domain.model.movement import InventoryMovement, MovementFilter


class MovementLedger(ABC):

    @abstractmethod
    def append(self, movement: InventoryMovement) -> InventoryMovement:
        """Record a movement. Rows are never updated or deleted."""

    @abstractmethod
    def list_all(self) -> list[InventoryMovement]:
        """Return every movement, oldest first."""

    @abstractmethod
    def list_for_product(self, product_id: str) -> list[InventoryMovement]:
        """Return a product's movements, oldest first."""

    @abstractmethod
    def list_for_order(self, order_id: int) -> list[InventoryMovement]:
        """Return an order's movements, oldest first."""

    def query(
        self, filters: MovementFilter, limit: int | None = None
    ) -> list[InventoryMovement]:
        """Movements matching *filters*, oldest first.

        With *limit*, only the most recent *limit* matches are returned.
        """
        if filters.product_id is not None:
            candidates = self.list_for_product(filters.product_id)
        elif filters.order_id is not None:
            candidates = self.list_for_order(filters.order_id)
        else:
            candidates = self.list_all()
        matches = [m for m in candidates if filters.matches(m)]
        if limit is not None:
            matches = matches[-limit:] if limit > 0 else []
        return matches

    def last_for_product(self, product_id: str) -> InventoryMovement | None:
        movements = self.list_for_product(product_id)
        return movements[-1] if movements else None
