"""InventoryMovement — one immutable row of the stock ledger.

The ledger is the audit trail: every operation that changes a product's
counters appends exactly one movement, and movements are never updated
or deleted.  Product counters are a cache of the ledger's net effect.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from stockkeeper.domain.model.product import Product

SYSTEM_ACTOR = "system"


class MovementType(Enum):
    RESERVE = "reserve"
    UNRESERVE = "unreserve"
    SALE = "sale"
    RETURN = "return"
    ADJUSTMENT = "adjustment"


@dataclass(frozen=True)
class InventoryMovement:
    """A single stock-affecting event.

    ``quantity_change`` is signed and refers to the counter the movement
    targets: ``reserved_stock`` for RESERVE/UNRESERVE, ``current_stock``
    for SALE/RETURN/ADJUSTMENT.  Both counters are snapshotted either way.
    """

    product_id: str
    order_id: int | None
    type: MovementType
    quantity_change: int
    stock_before: int
    stock_after: int
    reserved_before: int
    reserved_after: int
    actor: str = SYSTEM_ACTOR
    note: str = ""
    id: str = field(default_factory=lambda: uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def available_after(self) -> int:
        return self.stock_after - self.reserved_after

    @staticmethod
    def between(
        type: MovementType,
        before: Product,
        after: Product,
        quantity_change: int,
        order_id: int | None,
        actor: str = SYSTEM_ACTOR,
        note: str = "",
        created_at: datetime | None = None,
    ) -> InventoryMovement:
        """Build a movement from the product state on either side of a write."""
        return InventoryMovement(
            product_id=after.id,
            order_id=order_id,
            type=type,
            quantity_change=quantity_change,
            stock_before=before.current_stock,
            stock_after=after.current_stock,
            reserved_before=before.reserved_stock,
            reserved_after=after.reserved_stock,
            actor=actor,
            note=note,
            created_at=created_at or datetime.now(timezone.utc),
        )

    @property
    def stock_delta(self) -> int:
        """Net change to ``current_stock``; zero for RESERVE/UNRESERVE."""
        return self.stock_after - self.stock_before


@dataclass(frozen=True)
class MovementFilter:
    """Criteria for a ledger query; unset fields match everything.

    ``since`` and ``until`` are both inclusive.
    """

    product_id: str | None = None
    order_id: int | None = None
    type: MovementType | None = None
    actor: str | None = None
    since: datetime | None = None
    until: datetime | None = None

    def matches(self, movement: InventoryMovement) -> bool:
        if self.product_id is not None and movement.product_id != self.product_id:
            return False
        if self.order_id is not None and movement.order_id != self.order_id:
            return False
        if self.type is not None and movement.type is not self.type:
            return False
        if self.actor is not None and movement.actor != self.actor:
            return False
        if self.since is not None and movement.created_at < self.since:
            return False
        if self.until is not None and movement.created_at > self.until:
            return False
        return True
