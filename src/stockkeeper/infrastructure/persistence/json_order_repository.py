"""JSON-file-backed implementation of OrderRepository."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from stockkeeper.domain.model.order import (
    FulfillmentStatus,
    Order,
    OrderItem,
    OrderStatus,
    TimelineEntry,
)
from stockkeeper.domain.model.value_objects import Quantity
from stockkeeper.domain.repository.order_repository import OrderRepository
from stockkeeper.infrastructure.persistence.json_file import JsonFile

_STAMPS = ("processed_at", "shipped_at", "delivered_at", "cancelled_at", "returned_at")


class JsonOrderRepository(OrderRepository):

    def __init__(self, file_path: Path) -> None:
        self._file = JsonFile(file_path)
        # ids handed out but not necessarily saved (failed creations)
        self._sequence = JsonFile(file_path.with_name(file_path.stem + "_sequence.json"))

    # --- OrderRepository interface --------------------------------------------

    def next_id(self) -> int:
        with self._sequence.locked(), self._file.locked():
            state = self._sequence.load()
            last = state[0]["last_id"] if state else 0
            highest = max((o["id"] for o in self._file.load()), default=0)
            allocated = max(highest, last) + 1
            self._sequence.persist([{"last_id": allocated}])
            return allocated

    def get_by_id(self, order_id: int) -> Order | None:
        for raw in self._file.load():
            if raw["id"] == order_id:
                return self._to_domain(raw)
        return None

    def list_all(self) -> list[Order]:
        return [self._to_domain(raw) for raw in self._file.load()]

    def save(self, order: Order) -> None:
        with self._file.locked():
            orders = self._file.load()

            # Upsert: replace if exists, otherwise append
            for i, raw in enumerate(orders):
                if raw["id"] == order.id:
                    orders[i] = self._to_raw(order)
                    break
            else:
                orders.append(self._to_raw(order))

            self._file.persist(orders)

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(order: Order) -> dict:
        raw = {
            "id": order.id,
            "customer_name": order.customer_name,
            "status": order.status.value,
            "fulfillment_status": order.fulfillment_status.value,
            "created_at": order.created_at.isoformat(),
            "items": [
                {
                    "product_id": item.product_id,
                    "product_name": item.product_name,
                    "quantity": item.quantity.value,
                }
                for item in order.items
            ],
            "timeline": [
                {
                    "status": entry.status.value,
                    "timestamp": entry.timestamp.isoformat(),
                    "note": entry.note,
                    "actor": entry.actor,
                }
                for entry in order.timeline
            ],
        }
        for stamp in _STAMPS:
            value = getattr(order, stamp)
            raw[stamp] = value.isoformat() if value else None
        return raw

    @staticmethod
    def _to_domain(raw: dict) -> Order:
        stamps = {
            stamp: datetime.fromisoformat(raw[stamp]) if raw.get(stamp) else None
            for stamp in _STAMPS
        }
        return Order(
            id=raw["id"],
            customer_name=raw["customer_name"],
            items=[
                OrderItem(
                    product_id=i["product_id"],
                    product_name=i["product_name"],
                    quantity=Quantity(i["quantity"]),
                )
                for i in raw["items"]
            ],
            status=OrderStatus(raw["status"]),
            fulfillment_status=FulfillmentStatus(
                raw.get("fulfillment_status", FulfillmentStatus.UNFULFILLED.value)
            ),
            timeline=[
                TimelineEntry(
                    status=OrderStatus(e["status"]),
                    timestamp=datetime.fromisoformat(e["timestamp"]),
                    note=e["note"],
                    actor=e.get("actor", "system"),
                )
                for e in raw.get("timeline", [])
            ],
            created_at=datetime.fromisoformat(raw["created_at"]),
            **stamps,
        )
