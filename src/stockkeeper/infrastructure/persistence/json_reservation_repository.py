"""JSON-file-backed implementation of ReservationRepository."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from stockkeeper.domain.model.reservation import Reservation, ReservationState
from stockkeeper.domain.repository.reservation_repository import (
    ReservationRepository,
)
from stockkeeper.infrastructure.persistence.json_file import JsonFile


class JsonReservationRepository(ReservationRepository):

    def __init__(self, file_path: Path) -> None:
        self._file = JsonFile(file_path)

    def get(self, order_id: int, product_id: str) -> Reservation | None:
        for raw in self._file.load():
            if raw["order_id"] == order_id and raw["product_id"] == product_id:
                return self._to_domain(raw)
        return None

    def save(self, reservation: Reservation) -> None:
        with self._file.locked():
            records = self._file.load()
            for i, raw in enumerate(records):
                if (raw["order_id"], raw["product_id"]) == reservation.key:
                    records[i] = self._to_raw(reservation)
                    break
            else:
                records.append(self._to_raw(reservation))
            self._file.persist(records)

    def list_for_order(self, order_id: int) -> list[Reservation]:
        return [self._to_domain(r) for r in self._file.load() if r["order_id"] == order_id]

    def list_by_state(self, state: ReservationState) -> list[Reservation]:
        return [self._to_domain(r) for r in self._file.load() if r["state"] == state.value]

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(r: Reservation) -> dict:
        return {
            "order_id": r.order_id,
            "product_id": r.product_id,
            "quantity": r.quantity,
            "state": r.state.value,
            "reserved_at": r.reserved_at.isoformat(),
            "updated_at": r.updated_at.isoformat() if r.updated_at else None,
        }

    @staticmethod
    def _to_domain(raw: dict) -> Reservation:
        return Reservation(
            order_id=raw["order_id"],
            product_id=raw["product_id"],
            quantity=raw["quantity"],
            state=ReservationState(raw["state"]),
            reserved_at=datetime.fromisoformat(raw["reserved_at"]),
            updated_at=(
                datetime.fromisoformat(raw["updated_at"]) if raw.get("updated_at") else None
            ),
        )
