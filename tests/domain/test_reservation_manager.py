"""Unit tests for the ReservationManager reserve/release/finalize protocol."""

import pytest
from structlog.testing import capture_logs

from stockkeeper.domain.exceptions import (
    ConcurrencyConflictError,
    EntityNotFoundError,
    InsufficientStockError,
    ValidationError,
)
from stockkeeper.domain.model.movement import MovementType
from stockkeeper.domain.model.reservation import ReservationState
from stockkeeper.domain.service.reservation_manager import ReservationManager
from tests.fakes import (
    T0,
    ConflictingStockStore,
    FakeMovementLedger,
    FakeReservationRepository,
    build_system,
    make_product,
)


class TestReserve:

    def test_reserve_appends_snapshot_movement(self):
        system = build_system(make_product("P1", stock=10))

        movement = system.manager.reserve("P1", 6, order_id=1, actor="alice")

        assert system.product("P1").reserved_stock == 6
        assert movement.type is MovementType.RESERVE
        assert movement.quantity_change == 6
        assert (movement.stock_before, movement.stock_after) == (10, 10)
        assert (movement.reserved_before, movement.reserved_after) == (0, 6)
        assert movement.actor == "alice"
        assert movement.created_at == T0
        assert system.ledger.movements == [movement]

    def test_records_reservation(self):
        system = build_system(make_product("P1", stock=10))
        system.manager.reserve("P1", 6, order_id=1)

        reservation = system.reservations.get(1, "P1")
        assert reservation.state is ReservationState.RESERVED
        assert reservation.quantity == 6
        assert reservation.reserved_at == T0

    def test_insufficient_changes_nothing(self):
        system = build_system(make_product("P1", stock=3))

        with pytest.raises(InsufficientStockError) as exc_info:
            system.manager.reserve("P1", 5, order_id=1)

        assert exc_info.value.shortfall == 2
        assert system.product("P1").reserved_stock == 0
        assert system.ledger.movements == []
        assert system.reservations.get(1, "P1") is None

    def test_unknown_product(self):
        system = build_system()
        with pytest.raises(EntityNotFoundError):
            system.manager.reserve("NOPE", 1, order_id=1)

    def test_non_positive_quantity_rejected(self):
        system = build_system(make_product("P1", stock=3))
        with pytest.raises(ValidationError, match="positive"):
            system.manager.reserve("P1", 0, order_id=1)

    def test_repeat_reservation_is_noop(self):
        system = build_system(make_product("P1", stock=10))
        system.manager.reserve("P1", 4, order_id=1)

        assert system.manager.reserve("P1", 4, order_id=1) is None
        assert system.product("P1").reserved_stock == 4
        assert len(system.ledger.movements) == 1

    def test_conflicting_reservation_rejected(self):
        system = build_system(make_product("P1", stock=10))
        system.manager.reserve("P1", 4, order_id=1)

        with pytest.raises(ValidationError, match="already has a reserved"):
            system.manager.reserve("P1", 5, order_id=1)


class TestReleasedStockIsReusable:

    def test_rejected_order_succeeds_after_release(self):
        system = build_system(make_product("P1", stock=10))

        system.manager.reserve("P1", 6, order_id=1)
        assert system.product("P1").available_stock == 4

        with pytest.raises(InsufficientStockError) as exc_info:
            system.manager.reserve("P1", 5, order_id=2)
        assert exc_info.value.shortfall == 1
        assert system.product("P1").reserved_stock == 6

        system.manager.release("P1", 6, order_id=1)
        assert system.product("P1").available_stock == 10

        system.manager.reserve("P1", 5, order_id=2)
        assert system.product("P1").available_stock == 5


class TestRelease:

    def test_release_appends_unreserve(self):
        system = build_system(make_product("P1", stock=10))
        system.manager.reserve("P1", 6, order_id=1)

        movement = system.manager.release("P1", 6, order_id=1)

        assert movement.type is MovementType.UNRESERVE
        assert movement.quantity_change == -6
        assert system.reservations.get(1, "P1").state is ReservationState.RELEASED

    def test_double_release_is_noop(self):
        system = build_system(make_product("P1", stock=10))
        system.manager.reserve("P1", 6, order_id=1)
        system.manager.reserve("P1", 2, order_id=2)
        system.manager.release("P1", 6, order_id=1)

        assert system.manager.release("P1", 6, order_id=1) is None
        # order 2's hold is untouched
        assert system.product("P1").reserved_stock == 2
        assert len(system.ledger.movements) == 3

    def test_release_without_reservation_is_noop(self):
        system = build_system(make_product("P1", stock=10, reserved=3))
        assert system.manager.release("P1", 3, order_id=9) is None
        assert system.product("P1").reserved_stock == 3

    def test_release_after_finalize_rejected(self):
        system = build_system(make_product("P1", stock=10))
        system.manager.reserve("P1", 6, order_id=1)
        system.manager.finalize("P1", 6, order_id=1)

        with pytest.raises(ValidationError, match="reservation is finalized"):
            system.manager.release("P1", 6, order_id=1)
        assert system.product("P1").current_stock == 4

    def test_quantity_mismatch_rejected(self):
        system = build_system(make_product("P1", stock=10))
        system.manager.reserve("P1", 6, order_id=1)
        with pytest.raises(ValidationError, match="reserved 6"):
            system.manager.release("P1", 4, order_id=1)

    def test_clamp_logs_warning(self):
        system = build_system(make_product("P1", stock=10))
        system.manager.reserve("P1", 6, order_id=1)
        # counters drift away from the reservation record
        system.stock.update_product("P1", {"reserved_stock": 2})

        with capture_logs() as logs:
            movement = system.manager.release("P1", 6, order_id=1)

        assert system.product("P1").reserved_stock == 0
        assert movement.quantity_change == -2
        warnings = [e for e in logs if e["event"] == "Reserved stock clamped at zero"]
        assert warnings and warnings[0]["log_level"] == "warning"


class TestFinalize:

    def test_finalize_deducts_and_clears_hold(self):
        system = build_system(make_product("P1", stock=10))
        system.manager.reserve("P1", 6, order_id=1)

        movement = system.manager.finalize("P1", 6, order_id=1)

        p = system.product("P1")
        assert (p.current_stock, p.reserved_stock, p.available_stock) == (4, 0, 4)
        assert movement.type is MovementType.SALE
        assert movement.quantity_change == -6
        assert system.reservations.get(1, "P1").state is ReservationState.FINALIZED

    def test_double_finalize_is_noop(self):
        system = build_system(make_product("P1", stock=10))
        system.manager.reserve("P1", 6, order_id=1)
        system.manager.finalize("P1", 6, order_id=1)

        assert system.manager.finalize("P1", 6, order_id=1) is None
        assert system.product("P1").current_stock == 4

    def test_finalize_after_release_rejected(self):
        system = build_system(make_product("P1", stock=10))
        system.manager.reserve("P1", 6, order_id=1)
        system.manager.release("P1", 6, order_id=1)

        with pytest.raises(ValidationError, match="reservation is released"):
            system.manager.finalize("P1", 6, order_id=1)
        assert system.product("P1").current_stock == 10

    def test_finalize_without_reservation_rejected(self):
        system = build_system(make_product("P1", stock=10))
        with pytest.raises(ValidationError, match="No reservation"):
            system.manager.finalize("P1", 1, order_id=1)


class TestRestockReturn:

    def test_return_puts_stock_back(self):
        system = build_system(make_product("P1", stock=10))
        system.manager.reserve("P1", 6, order_id=1)
        system.manager.finalize("P1", 6, order_id=1)

        movement = system.manager.restock_return("P1", 6, order_id=1)

        assert movement.type is MovementType.RETURN
        assert movement.quantity_change == 6
        assert system.product("P1").current_stock == 10
        assert system.reservations.get(1, "P1").state is ReservationState.RETURNED
        assert system.manager.restock_return("P1", 6, order_id=1) is None

    def test_return_requires_finalized_units(self):
        system = build_system(make_product("P1", stock=10))
        system.manager.reserve("P1", 6, order_id=1)
        with pytest.raises(ValidationError, match="no delivered units"):
            system.manager.restock_return("P1", 6, order_id=1)


class TestAdjust:

    def test_adjustment_movement_has_no_order(self):
        system = build_system(make_product("P1", stock=10))

        movement = system.manager.adjust("P1", -3, reason="Damaged in warehouse", actor="bob")

        assert movement.type is MovementType.ADJUSTMENT
        assert movement.order_id is None
        assert movement.note == "Damaged in warehouse"
        assert system.product("P1").current_stock == 7

    def test_reason_required(self):
        system = build_system(make_product("P1", stock=10))
        with pytest.raises(ValidationError, match="reason"):
            system.manager.adjust("P1", 5, reason=" ")


class TestOptimisticRetry:

    def test_retries_lost_update(self):
        store = ConflictingStockStore([make_product("P1", stock=10)], conflicts=2)
        manager = ReservationManager(
            store, FakeMovementLedger(), FakeReservationRepository(), max_attempts=3
        )

        with capture_logs() as logs:
            manager.reserve("P1", 4, order_id=1)

        assert store.get_product("P1").reserved_stock == 4
        retries = [e for e in logs if e["event"] == "Concurrent stock update detected, retrying"]
        assert len(retries) == 2

    def test_gives_up_after_max_attempts(self):
        store = ConflictingStockStore([make_product("P1", stock=10)], conflicts=5)
        reservations = FakeReservationRepository()
        manager = ReservationManager(
            store, FakeMovementLedger(), reservations, max_attempts=2
        )

        with pytest.raises(ConcurrencyConflictError):
            manager.reserve("P1", 4, order_id=1)
        assert store.get_product("P1").reserved_stock == 0
        assert reservations.get(1, "P1") is None


class TestAvailability:

    def test_shortfall_reported(self):
        system = build_system(make_product("P1", stock=3, name="Widget"))
        shortfall = system.manager.check_availability("P1", 5)
        assert shortfall.available == 3
        assert shortfall.missing == 2
        assert shortfall.product_name == "Widget"

    def test_enough_stock(self):
        system = build_system(make_product("P1", stock=3))
        assert system.manager.check_availability("P1", 3) is None

    def test_unknown_product(self):
        system = build_system()
        shortfall = system.manager.check_availability("X", 1, "Mystery")
        assert shortfall.reason == "unknown product"


class TestListeners:

    def test_listener_sees_every_movement(self):
        system = build_system(make_product("P1", stock=10))
        seen = []
        system.manager.add_listener(seen.append)

        system.manager.reserve("P1", 2, order_id=1)
        system.manager.release("P1", 2, order_id=1)

        assert [m.type for m in seen] == [MovementType.RESERVE, MovementType.UNRESERVE]

    def test_failing_listener_does_not_break_reservation(self):
        system = build_system(make_product("P1", stock=10))

        def broken(movement):
            raise RuntimeError("boom")

        system.manager.add_listener(broken)
        with capture_logs() as logs:
            system.manager.reserve("P1", 2, order_id=1)

        assert system.product("P1").reserved_stock == 2
        assert any(e["event"] == "Movement listener failed" for e in logs)
