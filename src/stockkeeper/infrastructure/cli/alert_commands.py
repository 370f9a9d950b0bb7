"""CLI commands for low-stock alerting."""

from __future__ import annotations

import click

from stockkeeper.application.check_alerts import CheckAlertsHandler
from stockkeeper.domain.exceptions import DomainException
from stockkeeper.infrastructure.bootstrap import alert_monitor


@click.command("check")
@click.option(
    "--notify",
    is_flag=True,
    default=False,
    help="Record alert notifications and email critical ones.",
)
def alerts_check(notify: bool) -> None:
    """Scan every product for low, critical and out-of-stock levels."""
    handler = CheckAlertsHandler(monitor=alert_monitor())

    try:
        report = handler.handle(notify=notify)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if not report.alerts:
        click.echo("All products are above their stock thresholds.")
        return

    click.echo(f"{'ID':<12} {'Product':<20} {'Available':>10} {'Threshold':>10}  Level")
    click.echo("-" * 68)
    for alert in report.alerts:
        click.echo(
            f"{alert.product_id:<12} {alert.product_name:<20} "
            f"{alert.current_stock:>10} {alert.threshold:>10}  {alert.level.value}"
        )
    stats = report.stats
    click.echo()
    click.echo(
        f"{stats.total_alerts} alert(s): {stats.low_stock} low, "
        f"{stats.critical_alerts} critical, {stats.out_of_stock} out of stock"
    )
