"""Integration tests for movement statistics and period summaries."""

from dataclasses import replace
from datetime import timedelta

import pytest

from stockkeeper.application.movement_stats import MovementStatsHandler
from stockkeeper.application.movement_summary import MovementSummaryHandler
from stockkeeper.domain.exceptions import ValidationError
from tests.fakes import T0, build_system, make_product


def _backdate(system, days):
    """Move every movement so far to *days* before it happened."""
    system.ledger.movements[:] = [
        replace(m, created_at=m.created_at - timedelta(days=days))
        for m in system.ledger.movements
    ]


def _busy_system():
    system = build_system(
        make_product("P1", stock=30, name="Widget"),
        make_product("P2", stock=10, name="Gadget"),
    )
    system.manager.reserve("P1", 12, order_id=1)
    system.manager.finalize("P1", 12, order_id=1)
    system.manager.restock_return("P1", 12, order_id=1)
    system.manager.adjust("P2", -3, reason="Damaged")
    return system


class TestMovementStats:

    def test_totals(self):
        system = _busy_system()

        stats = MovementStatsHandler(system.stock, system.ledger, clock=lambda: T0).handle()

        assert stats.total_movements == 4
        assert stats.movements_today == 4
        assert stats.sales_total == 12
        assert stats.returns_total == 12
        assert stats.adjustments_total == 1

    def test_top_moving_products(self):
        system = _busy_system()

        stats = MovementStatsHandler(system.stock, system.ledger, clock=lambda: T0).handle()

        top = stats.top_moving_products
        assert [(p.product_id, p.product_name, p.movement_count) for p in top] == [
            ("P1", "Widget", 3),
            ("P2", "Gadget", 1),
        ]
        assert top[0].net_change == 0
        assert top[1].net_change == -3

    def test_large_movements_newest_first(self):
        system = _busy_system()

        stats = MovementStatsHandler(system.stock, system.ledger, clock=lambda: T0).handle()

        assert [m.type for m in stats.recent_large_movements] == [
            "return",
            "sale",
            "reserve",
        ]

    def test_windows(self):
        system = _busy_system()
        _backdate(system, days=10)
        system.manager.adjust("P2", 1, reason="Recount")

        stats = MovementStatsHandler(system.stock, system.ledger, clock=lambda: T0).handle()

        assert stats.movements_today == 1
        assert stats.movements_this_week == 1
        assert stats.movements_this_month == 5


class TestMovementSummary:

    def test_in_and_out_of_stock(self):
        system = _busy_system()

        summary = MovementSummaryHandler(system.ledger).handle(
            T0 - timedelta(days=1), T0 + timedelta(days=1)
        )

        assert summary.total_in == 12
        assert summary.total_out == 15
        assert summary.net_change == -3
        assert summary.movements_by_type == {
            "adjustment": 1,
            "reserve": 1,
            "return": 1,
            "sale": 1,
        }

    def test_outside_the_period_is_ignored(self):
        system = _busy_system()
        _backdate(system, days=10)

        summary = MovementSummaryHandler(system.ledger).handle(
            T0 - timedelta(days=1), T0
        )

        assert (summary.total_in, summary.total_out) == (0, 0)
        assert summary.movements_by_type == {}

    def test_reversed_period_rejected(self):
        system = build_system()
        with pytest.raises(ValidationError):
            MovementSummaryHandler(system.ledger).handle(T0, T0 - timedelta(days=1))
