"""JSON-file-backed implementation of MovementLedger (append-only)."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from stockkeeper.domain.model.movement import InventoryMovement, MovementType
from stockkeeper.domain.repository.movement_ledger import MovementLedger
from stockkeeper.infrastructure.persistence.json_file import JsonFile


class JsonMovementLedger(MovementLedger):

    def __init__(self, file_path: Path) -> None:
        self._file = JsonFile(file_path)

    def append(self, movement: InventoryMovement) -> InventoryMovement:
        with self._file.locked():
            records = self._file.load()
            records.append(self._to_raw(movement))
            self._file.persist(records)
        return movement

    def list_all(self) -> list[InventoryMovement]:
        return [self._to_domain(raw) for raw in self._file.load()]

    def list_for_product(self, product_id: str) -> list[InventoryMovement]:
        return [
            self._to_domain(raw)
            for raw in self._file.load()
            if raw["product_id"] == product_id
        ]

    def list_for_order(self, order_id: int) -> list[InventoryMovement]:
        return [
            self._to_domain(raw)
            for raw in self._file.load()
            if raw["order_id"] == order_id
        ]

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(m: InventoryMovement) -> dict:
        return {
            "id": m.id,
            "product_id": m.product_id,
            "order_id": m.order_id,
            "type": m.type.value,
            "quantity_change": m.quantity_change,
            "stock_before": m.stock_before,
            "stock_after": m.stock_after,
            "reserved_before": m.reserved_before,
            "reserved_after": m.reserved_after,
            "actor": m.actor,
            "note": m.note,
            "created_at": m.created_at.isoformat(),
        }

    @staticmethod
    def _to_domain(raw: dict) -> InventoryMovement:
        return InventoryMovement(
            id=raw["id"],
            product_id=raw["product_id"],
            order_id=raw["order_id"],
            type=MovementType(raw["type"]),
            quantity_change=raw["quantity_change"],
            stock_before=raw["stock_before"],
            stock_after=raw["stock_after"],
            reserved_before=raw["reserved_before"],
            reserved_after=raw["reserved_after"],
            actor=raw.get("actor", "system"),
            note=raw.get("note", ""),
            created_at=datetime.fromisoformat(raw["created_at"]),
        )
