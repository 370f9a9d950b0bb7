"""CLI commands for inventory levels and the movement ledger."""

from __future__ import annotations

from datetime import datetime, timezone

import click

from stockkeeper.application.adjust_stock import AdjustStockHandler
from stockkeeper.application.movement_stats import MovementStatsHandler
from stockkeeper.application.movement_summary import MovementSummaryHandler
from stockkeeper.application.show_inventory import ShowInventoryHandler
from stockkeeper.application.show_movements import ShowMovementsHandler
from stockkeeper.domain.exceptions import DomainException
from stockkeeper.domain.model.movement import MovementType
from stockkeeper.infrastructure.bootstrap import (
    movement_ledger,
    reservation_manager,
    stock_store,
)


_DATES = click.DateTime(formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M"])


def _utc(moment: datetime | None) -> datetime | None:
    """Dates on the command line are UTC."""
    if moment is None or moment.tzinfo is not None:
        return moment
    return moment.replace(tzinfo=timezone.utc)


@click.command("show")
def inventory_show() -> None:
    """Show current stock, reserved and available quantities."""
    handler = ShowInventoryHandler(stock_store=stock_store())
    lines = handler.handle()

    if not lines:
        click.echo("No inventory records found.")
        return

    click.echo(
        f"{'ID':<12} {'Product':<20} {'Stock':>8} {'Reserved':>10} {'Available':>10}"
    )
    click.echo("-" * 64)
    for line in lines:
        click.echo(
            f"{line.product_id:<12} {line.product_name:<20} "
            f"{line.stock:>8} {line.reserved:>10} {line.available:>10}"
        )


@click.command("adjust")
@click.option("--product", "product_id", required=True, help="Product ID.")
@click.option("--change", required=True, type=int, help="Signed stock change, e.g. 10 or -3.")
@click.option("--reason", required=True, help="Why the stock is being corrected.")
@click.option("--actor", default="cli", show_default=True, help="Who made the change.")
def inventory_adjust(product_id: str, change: int, reason: str, actor: str) -> None:
    """Correct stock on hand (receiving, shrinkage, recount)."""
    handler = AdjustStockHandler(manager=reservation_manager())

    try:
        movement = handler.handle(product_id, change, reason, actor)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(
        f"Stock for '{product_id}' adjusted by {movement.quantity_change:+d} "
        f"(now {movement.stock_after})"
    )


@click.command("history")
@click.option("--product", "product_id", default=None, help="Only this product.")
@click.option("--order", "order_id", type=int, default=None, help="Only this order.")
@click.option(
    "--type",
    "movement_type",
    type=click.Choice([t.value for t in MovementType]),
    default=None,
    help="Only this movement type.",
)
@click.option("--actor", default=None, help="Only movements made by this actor.")
@click.option("--since", type=_DATES, default=None, help="From this time (UTC), inclusive.")
@click.option("--until", type=_DATES, default=None, help="Up to this time (UTC), inclusive.")
@click.option("--limit", type=int, default=None, help="Show only the most recent N rows.")
def inventory_history(
    product_id: str | None,
    order_id: int | None,
    movement_type: str | None,
    actor: str | None,
    since: datetime | None,
    until: datetime | None,
    limit: int | None,
) -> None:
    """Show the movement ledger, oldest first."""
    handler = ShowMovementsHandler(stock_store=stock_store(), ledger=movement_ledger())

    try:
        movements = handler.handle(
            product_id=product_id,
            order_id=order_id,
            movement_type=movement_type,
            actor=actor,
            since=_utc(since),
            until=_utc(until),
            limit=limit,
        )
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if not movements:
        if product_id is not None:
            click.echo(f"No movements recorded for '{product_id}'.")
        else:
            click.echo("No movements match.")
        return

    click.echo(
        f"{'When':<22} {'Product':<10} {'Type':<12} {'Order':>6} {'Change':>7} "
        f"{'Stock':>6} {'Rsvd':>6}  Actor"
    )
    click.echo("-" * 85)
    for m in movements:
        order = "-" if m.order_id is None else f"#{m.order_id}"
        click.echo(
            f"{m.created_at:<22} {m.product_id:<10} {m.type:<12} {order:>6} "
            f"{m.quantity_change:>+7d} {m.stock_after:>6} {m.reserved_after:>6}  {m.actor}"
        )


@click.command("stats")
@click.option("--top", type=int, default=10, show_default=True, help="How many products to rank.")
def inventory_stats(top: int) -> None:
    """Show movement activity and the busiest products."""
    stats = MovementStatsHandler(stock_store=stock_store(), ledger=movement_ledger()).handle(
        top=top
    )

    click.echo(f"Movements:      {stats.total_movements} total")
    click.echo(
        f"                {stats.movements_today} today, "
        f"{stats.movements_this_week} this week, {stats.movements_this_month} this month"
    )
    click.echo(f"Units sold:     {stats.sales_total}")
    click.echo(f"Units returned: {stats.returns_total}")
    click.echo(f"Adjustments:    {stats.adjustments_total}")

    if stats.top_moving_products:
        click.echo()
        click.echo("Top moving products:")
        click.echo(f"  {'ID':<12} {'Product':<20} {'Moves':>6} {'Net':>6}")
        for p in stats.top_moving_products:
            click.echo(
                f"  {p.product_id:<12} {p.product_name:<20} "
                f"{p.movement_count:>6} {p.net_change:>+6d}"
            )

    if stats.recent_large_movements:
        click.echo()
        click.echo("Recent large movements:")
        for m in stats.recent_large_movements:
            click.echo(f"  {m.created_at}  {m.product_id:<10} {m.type:<12} {m.quantity_change:>+6d}")


@click.command("summary")
@click.option("--since", type=_DATES, required=True, help="From this time (UTC), inclusive.")
@click.option("--until", type=_DATES, default=None, help="Up to this time (UTC); defaults to now.")
def inventory_summary(since: datetime, until: datetime | None) -> None:
    """Show units in and out of stock over a period."""
    end = _utc(until) or datetime.now(timezone.utc)

    try:
        summary = MovementSummaryHandler(ledger=movement_ledger()).handle(_utc(since), end)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"From {summary.since} to {summary.until}")
    click.echo(f"  In:  {summary.total_in}")
    click.echo(f"  Out: {summary.total_out}")
    click.echo(f"  Net: {summary.net_change:+d}")
    if summary.movements_by_type:
        click.echo("By type:")
        for kind, count in summary.movements_by_type.items():
            click.echo(f"  {kind:<12} {count:>5}")
