"""Application service: Incoming/outgoing stock summary for a period."""

from __future__ import annotations

from datetime import datetime

from stockkeeper.application.dto import MovementSummaryDTO, format_timestamp
from stockkeeper.domain.exceptions import ValidationError
from stockkeeper.domain.model.movement import MovementFilter
from stockkeeper.domain.repository.movement_ledger import MovementLedger


class MovementSummaryHandler:

    def __init__(self, ledger: MovementLedger) -> None:
        self._ledger = ledger

    def handle(self, since: datetime, until: datetime) -> MovementSummaryDTO:
        """Units in and out of stock on hand between *since* and *until*.

        Reservations move no units in or out, so they only show up in
        ``movements_by_type``.
        """
        if since > until:
            raise ValidationError("'since' must not be after 'until'")

        movements = self._ledger.query(MovementFilter(since=since, until=until))
        total_in = sum(m.stock_delta for m in movements if m.stock_delta > 0)
        total_out = sum(-m.stock_delta for m in movements if m.stock_delta < 0)
        by_type: dict[str, int] = {}
        for m in movements:
            by_type[m.type.value] = by_type.get(m.type.value, 0) + 1

        return MovementSummaryDTO(
            since=format_timestamp(since),
            until=format_timestamp(until),
            total_in=total_in,
            total_out=total_out,
            net_change=total_in - total_out,
            movements_by_type=dict(sorted(by_type.items())),
        )
