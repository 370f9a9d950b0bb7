"""CLI commands for the product catalog."""

from __future__ import annotations

import click

from stockkeeper.application.add_product import AddProductHandler
from stockkeeper.domain.exceptions import DomainException
from stockkeeper.infrastructure.bootstrap import reservation_manager, stock_store


@click.command("add")
@click.option("--id", "product_id", required=True, help="Product ID.")
@click.option("--sku", required=True, help="Stock keeping unit.")
@click.option("--name", required=True, help="Product name.")
@click.option("--stock", default=0, show_default=True, type=int, help="Opening stock.")
@click.option("--threshold", type=int, default=None, help="Per-product low-stock threshold.")
@click.option("--actor", default="cli", show_default=True, help="Who received the stock.")
def product_add(
    product_id: str, sku: str, name: str, stock: int, threshold: int | None, actor: str
) -> None:
    """Add a new product with its opening stock."""
    handler = AddProductHandler(stock_store=stock_store(), manager=reservation_manager())

    try:
        product = handler.handle(
            product_id=product_id,
            sku=sku,
            name=name,
            stock=stock,
            low_stock_threshold=threshold,
            actor=actor,
        )
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Product '{product.id}' ({product.sku}) added with {product.current_stock} in stock")


@click.command("list")
def product_list() -> None:
    """List all products in the catalog."""
    products = stock_store().list_products()

    if not products:
        click.echo("No products found.")
        return

    click.echo(f"{'ID':<12} {'SKU':<12} {'Name':<20} {'Threshold':>10}")
    click.echo("-" * 57)
    for p in products:
        threshold = "-" if p.low_stock_threshold is None else str(p.low_stock_threshold)
        click.echo(f"{p.id:<12} {p.sku:<12} {p.name:<20} {threshold:>10}")
