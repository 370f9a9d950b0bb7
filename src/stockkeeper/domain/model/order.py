"""Order aggregate — status lifecycle and timeline.

The Order owns its line items and its timeline.  It knows which status
moves are legal and which fields each move stamps; the inventory side
effects of a move are coordinated by the OrderStateMachine domain service.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from stockkeeper.domain.exceptions import InvalidTransitionError, ValidationError
from stockkeeper.domain.model.movement import SYSTEM_ACTOR
from stockkeeper.domain.model.value_objects import Quantity


class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class FulfillmentStatus(Enum):
    UNFULFILLED = "unfulfilled"
    PARTIAL = "partial"
    FULFILLED = "fulfilled"


ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.RETURNED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.RETURNED: frozenset(),
}

# Statuses in which the order's items hold reserved (not yet deducted) stock
HOLDING_STATUSES = frozenset({OrderStatus.PROCESSING, OrderStatus.SHIPPED})

MAX_LINE_ITEMS = 50


@dataclass(frozen=True)
class OrderItem:
    """A product/quantity pair with the product name captured at order time."""

    product_id: str
    product_name: str
    quantity: Quantity


@dataclass(frozen=True)
class TimelineEntry:
    status: OrderStatus
    timestamp: datetime
    note: str
    actor: str = SYSTEM_ACTOR


@dataclass
class Order:
    """Aggregate root for customer orders.

    Use the ``Order.create()`` factory for new orders — it enforces all
    business rules.  The ``__init__`` is intentionally simple so the
    repository can reconstitute persisted orders without re-validating.
    """

    id: int
    customer_name: str
    items: list[OrderItem]
    status: OrderStatus = OrderStatus.PENDING
    fulfillment_status: FulfillmentStatus = FulfillmentStatus.UNFULFILLED
    timeline: list[TimelineEntry] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    processed_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    returned_at: datetime | None = None

    # --- Factory (used for NEW orders only) -----------------------------------

    @staticmethod
    def create(
        order_id: int,
        customer_name: str,
        items: list[OrderItem],
        actor: str = SYSTEM_ACTOR,
        now: datetime | None = None,
    ) -> Order:
        """Create a new pending order, enforcing all invariants."""
        if not customer_name or not customer_name.strip():
            raise ValidationError("Customer name is required")

        if not items:
            raise ValidationError("Order must contain at least one item")

        if len(items) > MAX_LINE_ITEMS:
            raise ValidationError(f"Maximum {MAX_LINE_ITEMS} items per order")

        seen: set[str] = set()
        for item in items:
            if item.product_id in seen:
                raise ValidationError(
                    f"Product '{item.product_id}' appears more than once in the order"
                )
            seen.add(item.product_id)

        created_at = now or datetime.now(timezone.utc)
        order = Order(
            id=order_id,
            customer_name=customer_name.strip(),
            items=list(items),
            created_at=created_at,
        )
        order.timeline.append(
            TimelineEntry(OrderStatus.PENDING, created_at, "Order created", actor)
        )
        return order

    # --- State transitions ----------------------------------------------------

    def can_transition_to(self, new_status: OrderStatus) -> bool:
        return new_status in ALLOWED_TRANSITIONS[self.status]

    def ensure_can_transition(self, new_status: OrderStatus) -> None:
        if not self.can_transition_to(new_status):
            raise InvalidTransitionError(
                f"Cannot move order #{self.id} from {self.status.value} "
                f"to {new_status.value}"
            )

    def advance(
        self,
        new_status: OrderStatus,
        note: str | None = None,
        actor: str = SYSTEM_ACTOR,
        at: datetime | None = None,
    ) -> TimelineEntry:
        """Move to *new_status*, stamp its fields and append a timeline entry.

        Inventory effects of the move must already have succeeded; this
        method only records the outcome.
        """
        self.ensure_can_transition(new_status)
        at = at or datetime.now(timezone.utc)

        if new_status is OrderStatus.PROCESSING:
            self.processed_at = at
        elif new_status is OrderStatus.SHIPPED:
            self.fulfillment_status = FulfillmentStatus.PARTIAL
            self.shipped_at = at
        elif new_status is OrderStatus.DELIVERED:
            self.fulfillment_status = FulfillmentStatus.FULFILLED
            self.delivered_at = at
        elif new_status is OrderStatus.CANCELLED:
            self.cancelled_at = at
        elif new_status is OrderStatus.RETURNED:
            self.returned_at = at

        self.status = new_status
        entry = TimelineEntry(
            status=new_status,
            timestamp=at,
            note=note or f"Order marked as {new_status.value}",
            actor=actor,
        )
        self.timeline.append(entry)
        return entry

    # --- Computed properties --------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self.status]

    @property
    def holds_reservation(self) -> bool:
        return self.status in HOLDING_STATUSES

    @property
    def total_units(self) -> int:
        return sum(item.quantity.value for item in self.items)
