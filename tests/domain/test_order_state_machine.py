"""Unit tests for the OrderStateMachine and its inventory side effects."""

import pytest
from structlog.testing import capture_logs

from stockkeeper.domain.exceptions import (
    EntityNotFoundError,
    InvalidTransitionError,
    PartialFinalizationError,
    PersistenceError,
    StockValidationError,
)
from stockkeeper.domain.model.movement import MovementType
from stockkeeper.domain.model.reservation import ReservationState
from stockkeeper.domain.model.order import (
    ALLOWED_TRANSITIONS,
    FulfillmentStatus,
    Order,
    OrderStatus,
)
from stockkeeper.domain.service.order_state_machine import TRANSITIONS
from tests.fakes import T0, build_system, make_items, make_product


def _start(system, *specs, order_id=1) -> Order:
    order = Order.create(order_id, "Alice", make_items(*specs), now=T0)
    return system.state_machine.start(order, note="Stock reserved")


def _advance(system, order_id, *statuses):
    for status in statuses:
        system.state_machine.update_status(order_id, status)
    return system.orders.get_by_id(order_id)


class TestTransitionTable:

    def test_table_matches_allowed_transitions(self):
        allowed = {
            (src, dst) for src, targets in ALLOWED_TRANSITIONS.items() for dst in targets
        }
        assert set(TRANSITIONS) == allowed

    def test_shipping_has_no_inventory_action(self):
        assert TRANSITIONS[(OrderStatus.PROCESSING, OrderStatus.SHIPPED)] is None


class TestStart:

    def test_start_reserves_and_persists(self):
        system = build_system(make_product("P1", stock=10))

        order = _start(system, ("P1", 6))

        assert order.status is OrderStatus.PROCESSING
        assert order.processed_at == T0
        assert system.product("P1").reserved_stock == 6
        stored = system.orders.get_by_id(1)
        assert [e.status for e in stored.timeline] == [
            OrderStatus.PENDING,
            OrderStatus.PROCESSING,
        ]
        assert stored.timeline[-1].note == "Stock reserved"

    def test_failed_reservation_persists_nothing(self):
        system = build_system(make_product("P1", stock=10), make_product("P2", stock=1))

        with capture_logs() as logs:
            with pytest.raises(StockValidationError):
                _start(system, ("P1", 6), ("P2", 2))

        assert system.orders.get_by_id(1) is None
        assert system.product("P1").reserved_stock == 0
        assert any(e["event"] == "Order transition aborted" for e in logs)

    def test_unsaved_order_releases_its_reservations(self):
        system = build_system(make_product("P1", stock=10), make_product("P2", stock=5))
        system.orders.fail_saves = True

        with capture_logs() as logs:
            with pytest.raises(PersistenceError):
                _start(system, ("P1", 6), ("P2", 2))

        assert system.orders.get_by_id(1) is None
        assert system.product("P1").reserved_stock == 0
        assert system.product("P2").available_stock == 5
        assert [m.type for m in system.ledger.list_for_product("P1")] == [
            MovementType.RESERVE,
            MovementType.UNRESERVE,
        ]
        assert {r.state for r in system.reservations.list_for_order(1)} == {
            ReservationState.RELEASED
        }
        [failed] = [
            e for e in logs if e["event"] == "Order could not be saved after inventory change"
        ]
        assert failed["compensated"] is True


class TestReleaseOrphan:

    def test_releases_holds_of_unsaved_order(self):
        system = build_system(make_product("P1", stock=10))
        system.manager.reserve("P1", 4, order_id=9)

        failures = system.state_machine.release_orphan(
            9, system.reservations.list_for_order(9)
        )

        assert failures == {}
        assert system.product("P1").reserved_stock == 0

    def test_refuses_saved_order(self):
        system = build_system(make_product("P1", stock=10))
        _start(system, ("P1", 4))

        with pytest.raises(InvalidTransitionError, match="cancel it instead"):
            system.state_machine.release_orphan(1, system.reservations.list_for_order(1))

        assert system.product("P1").reserved_stock == 4


class TestLifecycle:

    def test_delivery_turns_hold_into_deduction(self):
        system = build_system(make_product("P1", stock=10))
        _start(system, ("P1", 6))

        order = _advance(system, 1, OrderStatus.SHIPPED)
        assert order.fulfillment_status is FulfillmentStatus.PARTIAL
        assert system.product("P1").reserved_stock == 6

        order = _advance(system, 1, OrderStatus.DELIVERED)
        p = system.product("P1")
        assert (p.current_stock, p.reserved_stock, p.available_stock) == (4, 0, 4)
        assert order.fulfillment_status is FulfillmentStatus.FULFILLED
        assert order.delivered_at == T0

    @pytest.mark.parametrize(
        "path",
        [
            [],
            [OrderStatus.SHIPPED],
        ],
    )
    def test_cancel_releases_held_stock(self, path):
        system = build_system(make_product("P1", stock=10))
        _start(system, ("P1", 6))

        order = _advance(system, 1, *path, OrderStatus.CANCELLED)

        assert order.status is OrderStatus.CANCELLED
        assert order.cancelled_at == T0
        assert system.product("P1").available_stock == 10

    def test_cancel_pending_order_has_nothing_to_release(self):
        system = build_system(make_product("P1", stock=10))
        system.orders.save(Order.create(1, "Alice", make_items(("P1", 2)), now=T0))

        order = _advance(system, 1, OrderStatus.CANCELLED)

        assert order.status is OrderStatus.CANCELLED
        assert system.ledger.movements == []

    def test_return_restocks_delivered_units(self):
        system = build_system(make_product("P1", stock=10))
        _start(system, ("P1", 6))

        order = _advance(
            system, 1, OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.RETURNED
        )

        assert order.status is OrderStatus.RETURNED
        assert order.returned_at == T0
        assert system.product("P1").current_stock == 10
        types = [m.type for m in system.ledger.list_for_order(1)]
        assert types == [MovementType.RESERVE, MovementType.SALE, MovementType.RETURN]

    def test_one_timeline_entry_per_transition(self):
        system = build_system(make_product("P1", stock=10))
        _start(system, ("P1", 1))

        order = _advance(system, 1, OrderStatus.SHIPPED, OrderStatus.DELIVERED)

        assert [e.status.value for e in order.timeline] == [
            "pending",
            "processing",
            "shipped",
            "delivered",
        ]


    def test_failed_save_after_cancel_can_be_retried(self):
        system = build_system(make_product("P1", stock=10))
        _start(system, ("P1", 6))
        system.orders.fail_saves = True

        with pytest.raises(PersistenceError):
            system.state_machine.update_status(1, OrderStatus.CANCELLED)

        assert system.orders.get_by_id(1).status is OrderStatus.PROCESSING
        assert system.product("P1").reserved_stock == 0

        system.orders.fail_saves = False
        order = system.state_machine.update_status(1, OrderStatus.CANCELLED)

        assert order.status is OrderStatus.CANCELLED
        assert system.product("P1").available_stock == 10
        assert len(system.ledger.list_for_product("P1")) == 2


class TestRejectedTransitions:

    def test_unknown_order(self):
        system = build_system()
        with pytest.raises(EntityNotFoundError, match="#42"):
            system.state_machine.update_status(42, OrderStatus.SHIPPED)

    def test_illegal_transition_leaves_order_untouched(self):
        system = build_system(make_product("P1", stock=10))
        _start(system, ("P1", 2))

        with pytest.raises(InvalidTransitionError):
            system.state_machine.update_status(1, OrderStatus.DELIVERED)

        order = system.orders.get_by_id(1)
        assert order.status is OrderStatus.PROCESSING
        assert len(order.timeline) == 2
        assert system.product("P1").current_stock == 10

    def test_cannot_leave_terminal_status(self):
        system = build_system(make_product("P1", stock=10))
        _start(system, ("P1", 2))
        _advance(system, 1, OrderStatus.CANCELLED)

        with pytest.raises(InvalidTransitionError):
            system.state_machine.update_status(1, OrderStatus.PROCESSING)
        assert system.product("P1").reserved_stock == 0

    def test_failed_inventory_action_does_not_advance(self):
        system = build_system(make_product("P1", stock=10))
        _start(system, ("P1", 6))
        _advance(system, 1, OrderStatus.SHIPPED)
        # stock vanished behind the ledger's back: finalize cannot deduct 6
        system.stock.update_product("P1", {"current_stock": 3, "reserved_stock": 3})

        with pytest.raises(PartialFinalizationError):
            system.state_machine.update_status(1, OrderStatus.DELIVERED)

        order = system.orders.get_by_id(1)
        assert order.status is OrderStatus.SHIPPED
        assert order.delivered_at is None
        assert [e.status for e in order.timeline][-1] is OrderStatus.SHIPPED

    def test_expected_status_guard(self):
        system = build_system(make_product("P1", stock=10))
        _start(system, ("P1", 2))
        _advance(system, 1, OrderStatus.SHIPPED)

        with pytest.raises(InvalidTransitionError, match="expected processing"):
            system.state_machine.update_status(
                1, OrderStatus.CANCELLED, expected_status=OrderStatus.PROCESSING
            )
        assert system.orders.get_by_id(1).status is OrderStatus.SHIPPED
