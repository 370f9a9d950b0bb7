"""Unit tests for low-stock classification and alert delivery."""

import json

import pytest
from structlog.testing import capture_logs

from stockkeeper.domain.model.alert import AlertLevel, classify_stock_level
from stockkeeper.domain.model.value_objects import StockThresholds
from tests.fakes import T0, build_system, make_product

THRESHOLDS = StockThresholds(low=5, critical=2)


class TestClassification:

    @pytest.mark.parametrize(
        "available, expected",
        [
            (0, AlertLevel.OUT_OF_STOCK),
            (1, AlertLevel.CRITICAL),
            (2, AlertLevel.CRITICAL),
            (3, AlertLevel.LOW),
            (5, AlertLevel.LOW),
            (6, None),
        ],
    )
    def test_boundaries(self, available, expected):
        assert classify_stock_level(available, THRESHOLDS) is expected

    def test_per_product_low_override(self):
        assert classify_stock_level(8, THRESHOLDS, low_override=10) is AlertLevel.LOW
        assert classify_stock_level(4, THRESHOLDS, low_override=3) is None


class TestAlertLevels:

    def test_levels_follow_available_stock(self):
        system = build_system(
            make_product("LOW", stock=3),
            make_product("OUT", stock=0),
            make_product("OK", stock=8),
        )

        alerts = {a.product_id: a for a in system.monitor.check_low_stock_alerts()}

        assert set(alerts) == {"LOW", "OUT"}
        assert alerts["LOW"].level is AlertLevel.LOW
        assert alerts["LOW"].threshold == 5
        assert alerts["OUT"].level is AlertLevel.OUT_OF_STOCK
        assert alerts["OUT"].threshold == 0

    def test_reserved_stock_counts_against_availability(self):
        system = build_system(make_product("P1", stock=10, reserved=9))
        [alert] = system.monitor.check_low_stock_alerts()
        assert alert.level is AlertLevel.CRITICAL
        assert alert.current_stock == 1

    def test_stats(self):
        system = build_system(
            make_product("A", stock=4),
            make_product("B", stock=1),
            make_product("C", stock=0),
            make_product("D", stock=50),
        )
        stats = system.monitor.get_alert_stats()
        assert (stats.total_alerts, stats.low_stock, stats.critical_alerts, stats.out_of_stock) == (
            3,
            1,
            1,
            1,
        )


class TestCreateStockAlert:

    def test_persists_notification(self):
        system = build_system(make_product("P1", stock=0, name="Widget"))
        [alert] = system.monitor.check_low_stock_alerts()

        assert system.monitor.create_stock_alert(alert) is True

        [note] = system.sink.notifications
        assert note.type == "out_of_stock"
        assert note.severity == "critical"
        assert "Widget" in note.title
        assert note.created_at == T0
        assert json.loads(note.data)["level"] == "out_of_stock"

    def test_sink_failure_is_logged_not_raised(self):
        system = build_system(make_product("P1", stock=0))
        system.sink.fail = True
        [alert] = system.monitor.check_low_stock_alerts()

        with capture_logs() as logs:
            assert system.monitor.create_stock_alert(alert) is False
        assert any(e["event"] == "Failed to create stock alert" for e in logs)


class TestCriticalEmails:

    def test_only_urgent_alerts_are_emailed(self):
        system = build_system(
            make_product("LOW", stock=4),
            make_product("CRIT", stock=1),
            make_product("OUT", stock=0),
            emails=["ops@example.com"],
        )
        alerts = system.monitor.check_low_stock_alerts()

        assert system.monitor.send_critical_alert_emails(alerts) == 2

        [(recipients, subject, body)] = system.sink.emails
        assert recipients == ["ops@example.com"]
        assert subject == "Critical stock alert: 2 product(s) need restocking"
        assert "OUT OF STOCK" in body
        assert "Product LOW" not in body

    def test_no_recipients_sends_nothing(self):
        system = build_system(make_product("OUT", stock=0))
        alerts = system.monitor.check_low_stock_alerts()
        assert system.monitor.send_critical_alert_emails(alerts) == 0
        assert system.sink.emails == []

    def test_email_failure_is_not_fatal(self):
        system = build_system(make_product("OUT", stock=0), emails=["ops@example.com"])
        system.sink.fail = True

        alerts = system.monitor.run()

        assert len(alerts) == 1
        assert system.monitor.send_critical_alert_emails(alerts) == 0


class TestMovementListener:

    def test_reservation_triggers_alert_record(self):
        system = build_system(make_product("P1", stock=6))
        system.manager.add_listener(system.monitor.on_movement)

        system.manager.reserve("P1", 5, order_id=1)

        [note] = system.sink.notifications
        assert note.type == "critical_stock"
        assert system.sink.emails == []

    def test_repeat_movements_at_same_level_record_once(self):
        system = build_system(make_product("P1", stock=10))
        system.manager.add_listener(system.monitor.on_movement)

        system.manager.reserve("P1", 6, order_id=1)
        system.manager.reserve("P1", 1, order_id=2)
        system.manager.release("P1", 1, order_id=2)

        assert [n.type for n in system.sink.notifications] == ["low_stock"]

    def test_level_change_records_again(self):
        system = build_system(make_product("P1", stock=10))
        system.manager.add_listener(system.monitor.on_movement)

        system.manager.reserve("P1", 6, order_id=1)
        system.manager.reserve("P1", 3, order_id=2)
        system.manager.reserve("P1", 1, order_id=3)

        assert [n.type for n in system.sink.notifications] == [
            "low_stock",
            "critical_stock",
            "out_of_stock",
        ]

    def test_healthy_product_records_nothing(self):
        system = build_system(make_product("P1", stock=50))
        system.manager.add_listener(system.monitor.on_movement)

        system.manager.reserve("P1", 5, order_id=1)

        assert system.sink.notifications == []

    def test_last_movement_time_is_reported(self):
        system = build_system(make_product("P1", stock=6))
        system.manager.reserve("P1", 3, order_id=1)

        alert = system.monitor.check_product("P1")
        assert alert.last_movement_at == T0
