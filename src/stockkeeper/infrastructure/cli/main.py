import click

from stockkeeper.infrastructure.bootstrap import settings
from stockkeeper.infrastructure.cli.alert_commands import alerts_check
from stockkeeper.infrastructure.cli.inventory_commands import (
    inventory_adjust,
    inventory_history,
    inventory_show,
    inventory_stats,
    inventory_summary,
)
from stockkeeper.infrastructure.cli.order_commands import (
    order_create,
    order_show,
    order_status,
)
from stockkeeper.infrastructure.cli.product_commands import product_add, product_list
from stockkeeper.infrastructure.cli.reservation_commands import reservations_expire
from stockkeeper.infrastructure.logging_config import configure_logging


@click.group()
def cli() -> None:
    """Stockkeeper — inventory reservation and order fulfillment ledger"""
    cfg = settings()
    configure_logging(cfg.log_level, cfg.log_format)


@cli.group()
def order() -> None:
    """Manage orders."""


@cli.group()
def product() -> None:
    """Manage products."""


@cli.group()
def inventory() -> None:
    """Inspect and correct stock levels."""


@cli.group()
def alerts() -> None:
    """Low-stock alerting."""


@cli.group()
def reservations() -> None:
    """Maintain stock reservations."""


# Register subcommands
order.add_command(order_create)
order.add_command(order_show)
order.add_command(order_status)
product.add_command(product_add)
product.add_command(product_list)
inventory.add_command(inventory_adjust)
inventory.add_command(inventory_history)
inventory.add_command(inventory_show)
inventory.add_command(inventory_stats)
inventory.add_command(inventory_summary)
alerts.add_command(alerts_check)
reservations.add_command(reservations_expire)
