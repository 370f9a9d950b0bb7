"""CLI commands for the Order aggregate."""

from __future__ import annotations

import click

from stockkeeper.application.create_order import CreateOrderHandler
from stockkeeper.application.dto import OrderDTO, OrderItemSpec
from stockkeeper.application.show_order import ShowOrderHandler
from stockkeeper.application.update_order_status import UpdateOrderStatusHandler
from stockkeeper.domain.exceptions import DomainException, StockValidationError
from stockkeeper.domain.model.order import OrderStatus
from stockkeeper.infrastructure.bootstrap import (
    order_repository,
    order_state_machine,
    stock_store,
)


def _parse_items(raw: str) -> list[OrderItemSpec]:
    """Parse 'P1:3,P2:5' into OrderItemSpec list."""
    specs: list[OrderItemSpec] = []
    for pair in raw.split(","):
        pair = pair.strip()
        if ":" not in pair:
            raise click.BadParameter(
                f"Invalid item format '{pair}'. Expected 'ProductId:Quantity'."
            )
        product_id, qty_str = pair.rsplit(":", 1)
        try:
            qty = int(qty_str)
        except ValueError:
            raise click.BadParameter(
                f"Invalid quantity '{qty_str}' for product '{product_id}'."
            )
        specs.append(OrderItemSpec(product_id=product_id.strip(), quantity=qty))
    return specs


def _fail(exc: DomainException) -> click.ClickException:
    if isinstance(exc, StockValidationError):
        lines = [f"Order cannot be fulfilled, {len(exc.shortfalls)} item(s) short:"]
        lines += [f"  - {s}" for s in exc.shortfalls]
        return click.ClickException("\n".join(lines))
    return click.ClickException(str(exc))


def _display_order(dto: OrderDTO) -> None:
    click.echo(f"Order #{dto.id}  (status={dto.status}, fulfillment={dto.fulfillment_status})")
    click.echo(f"Customer: {dto.customer_name}")
    click.echo(f"Created:  {dto.created_at}")
    click.echo()
    click.echo(f"  {'Product ID':<12} {'Product':<20} {'Qty':>5}")
    click.echo(f"  {'-'*39}")
    for item in dto.items:
        click.echo(f"  {item.product_id:<12} {item.product_name:<20} {item.quantity:>5}")
    click.echo(f"  {'Total units':<33} {dto.total_units:>5}")
    if dto.holds_stock:
        click.echo("  Stock is reserved for this order.")
    click.echo()
    click.echo("Timeline:")
    for entry in dto.timeline:
        click.echo(f"  {entry.timestamp}  {entry.status:<11} {entry.note}  ({entry.actor})")
    if dto.is_final:
        click.echo("  (final status, no further changes)")


@click.command("create")
@click.option("--customer", required=True, help="Customer name.")
@click.option("--items", required=True, help="Items as 'ProductId:Qty,ProductId:Qty'.")
@click.option("--actor", default="cli", show_default=True, help="Who placed the order.")
def order_create(customer: str, items: str, actor: str) -> None:
    """Create an order and reserve its stock."""
    specs = _parse_items(items)

    handler = CreateOrderHandler(
        order_repo=order_repository(),
        stock_store=stock_store(),
        state_machine=order_state_machine(),
    )

    try:
        dto = handler.handle(customer_name=customer, item_specs=specs, actor=actor)
    except DomainException as exc:
        raise _fail(exc)

    click.echo(f"Order #{dto.id} created  (status={dto.status})")
    _display_order(dto)


@click.command("show")
@click.option("--id", "order_id", required=True, type=int, help="Order ID to display.")
def order_show(order_id: int) -> None:
    """Show details and timeline of an existing order."""
    handler = ShowOrderHandler(order_repo=order_repository())

    try:
        dto = handler.handle(order_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _display_order(dto)


@click.command("status")
@click.option("--id", "order_id", required=True, type=int, help="Order ID.")
@click.option(
    "--to",
    "new_status",
    required=True,
    type=click.Choice([s.value for s in OrderStatus], case_sensitive=False),
    help="Target status.",
)
@click.option("--note", default=None, help="Timeline note.")
@click.option("--actor", default="cli", show_default=True, help="Who made the change.")
def order_status(order_id: int, new_status: str, note: str | None, actor: str) -> None:
    """Move an order to a new status (runs its inventory side effect)."""
    handler = UpdateOrderStatusHandler(state_machine=order_state_machine())

    try:
        dto = handler.handle(order_id, new_status, note=note, actor=actor)
    except DomainException as exc:
        raise _fail(exc)

    click.echo(f"Order #{dto.id} is now {dto.status}.")
