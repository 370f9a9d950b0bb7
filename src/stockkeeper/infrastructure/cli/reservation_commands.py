"""CLI commands for reservation maintenance."""

from __future__ import annotations

import click

from stockkeeper.application.expire_reservations import ExpireReservationsHandler
from stockkeeper.domain.exceptions import DomainException
from stockkeeper.infrastructure.bootstrap import (
    order_repository,
    order_state_machine,
    reservation_repository,
    settings,
)


@click.command("expire")
def reservations_expire() -> None:
    """Cancel processing orders whose reservations outlived the TTL."""
    handler = ExpireReservationsHandler(
        reservations=reservation_repository(),
        order_repo=order_repository(),
        state_machine=order_state_machine(),
        ttl=settings().reservation_ttl,
    )

    try:
        expired = handler.handle()
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if not expired:
        click.echo("No stale reservations found.")
        return
    click.echo(f"Expired {len(expired)} order(s): " + ", ".join(f"#{i}" for i in expired))
