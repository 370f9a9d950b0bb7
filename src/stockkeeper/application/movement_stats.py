"""Application service: Movement statistics over the whole ledger."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from stockkeeper.application.dto import (
    MovementStatsDTO,
    ProductActivityDTO,
    movement_to_dto,
)
from stockkeeper.domain.model.movement import InventoryMovement, MovementType
from stockkeeper.domain.repository.movement_ledger import MovementLedger
from stockkeeper.domain.repository.stock_store import StockStore

TOP_PRODUCTS = 10
LARGE_MOVEMENT = 10
RECENT_LARGE_LIMIT = 10


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MovementStatsHandler:

    def __init__(
        self,
        stock_store: StockStore,
        ledger: MovementLedger,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._stock_store = stock_store
        self._ledger = ledger
        self._clock = clock

    def handle(self, top: int = TOP_PRODUCTS) -> MovementStatsDTO:
        """Activity counts, sale and return totals, and the busiest products.

        "Today" starts at midnight UTC; the week and month windows are the
        last 7 and 30 days.
        """
        movements = self._ledger.list_all()
        now = self._clock()
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

        def since(start: datetime) -> int:
            return sum(1 for m in movements if m.created_at >= start)

        return MovementStatsDTO(
            total_movements=len(movements),
            movements_today=since(midnight),
            movements_this_week=since(now - timedelta(days=7)),
            movements_this_month=since(now - timedelta(days=30)),
            sales_total=sum(
                -m.quantity_change for m in movements if m.type is MovementType.SALE
            ),
            returns_total=sum(
                m.quantity_change for m in movements if m.type is MovementType.RETURN
            ),
            adjustments_total=sum(
                1 for m in movements if m.type is MovementType.ADJUSTMENT
            ),
            top_moving_products=self._top_moving(movements, top),
            recent_large_movements=[
                movement_to_dto(m)
                for m in reversed(movements)
                if abs(m.quantity_change) >= LARGE_MOVEMENT
            ][:RECENT_LARGE_LIMIT],
        )

    def _top_moving(
        self, movements: list[InventoryMovement], top: int
    ) -> list[ProductActivityDTO]:
        counts: dict[str, int] = {}
        net: dict[str, int] = {}
        for m in movements:
            counts[m.product_id] = counts.get(m.product_id, 0) + 1
            net[m.product_id] = net.get(m.product_id, 0) + m.stock_delta

        names = {p.id: p.name for p in self._stock_store.list_products()}
        ranked = sorted(counts, key=lambda pid: (-counts[pid], pid))[:top]
        return [
            ProductActivityDTO(
                product_id=pid,
                product_name=names.get(pid, pid),
                movement_count=counts[pid],
                net_change=net[pid],
            )
            for pid in ranked
        ]
