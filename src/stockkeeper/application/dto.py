"""Data Transfer Objects — plain containers that cross layer boundaries.

DTOs carry data between the CLI and application layers without
exposing domain internals to the outside world.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from stockkeeper.domain.model.movement import InventoryMovement
from stockkeeper.domain.model.order import Order

_TIME_FORMAT = "%Y-%m-%d %H:%M UTC"


@dataclass(frozen=True)
class OrderItemSpec:
    """Input: what the customer asked for (product id + quantity)."""

    product_id: str
    quantity: int


@dataclass(frozen=True)
class OrderItemDTO:
    product_id: str
    product_name: str
    quantity: int


@dataclass(frozen=True)
class TimelineEntryDTO:
    status: str
    timestamp: str
    note: str
    actor: str


@dataclass(frozen=True)
class OrderDTO:
    """Output: a complete order as displayed to the user."""

    id: int
    customer_name: str
    status: str
    fulfillment_status: str
    items: list[OrderItemDTO]
    timeline: list[TimelineEntryDTO]
    created_at: str
    total_units: int
    holds_stock: bool
    is_final: bool


@dataclass(frozen=True)
class InventoryLineDTO:
    product_id: str
    sku: str
    product_name: str
    stock: int
    reserved: int
    available: int


@dataclass(frozen=True)
class MovementDTO:
    created_at: str
    product_id: str
    type: str
    order_id: int | None
    quantity_change: int
    stock_after: int
    reserved_after: int
    actor: str
    note: str


def format_timestamp(moment: datetime) -> str:
    return moment.strftime(_TIME_FORMAT)


def order_to_dto(order: Order) -> OrderDTO:
    return OrderDTO(
        id=order.id,
        customer_name=order.customer_name,
        status=order.status.value,
        fulfillment_status=order.fulfillment_status.value,
        items=[
            OrderItemDTO(
                product_id=item.product_id,
                product_name=item.product_name,
                quantity=item.quantity.value,
            )
            for item in order.items
        ],
        timeline=[
            TimelineEntryDTO(
                status=entry.status.value,
                timestamp=format_timestamp(entry.timestamp),
                note=entry.note,
                actor=entry.actor,
            )
            for entry in order.timeline
        ],
        created_at=format_timestamp(order.created_at),
        total_units=order.total_units,
        holds_stock=order.holds_reservation,
        is_final=order.is_terminal,
    )


def movement_to_dto(movement: InventoryMovement) -> MovementDTO:
    return MovementDTO(
        created_at=format_timestamp(movement.created_at),
        product_id=movement.product_id,
        type=movement.type.value,
        order_id=movement.order_id,
        quantity_change=movement.quantity_change,
        stock_after=movement.stock_after,
        reserved_after=movement.reserved_after,
        actor=movement.actor,
        note=movement.note,
    )


@dataclass(frozen=True)
class ProductActivityDTO:
    product_id: str
    product_name: str
    movement_count: int
    net_change: int


@dataclass(frozen=True)
class MovementStatsDTO:
    total_movements: int
    movements_today: int
    movements_this_week: int
    movements_this_month: int
    sales_total: int
    returns_total: int
    adjustments_total: int
    top_moving_products: list[ProductActivityDTO]
    recent_large_movements: list[MovementDTO]


@dataclass(frozen=True)
class MovementSummaryDTO:
    since: str
    until: str
    total_in: int
    total_out: int
    net_change: int
    movements_by_type: dict[str, int]
