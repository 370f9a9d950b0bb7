"""Application service: Update Order Status use case."""

from __future__ import annotations

from stockkeeper.application.dto import OrderDTO, order_to_dto
from stockkeeper.domain.exceptions import ValidationError
from stockkeeper.domain.model.movement import SYSTEM_ACTOR
from stockkeeper.domain.model.order import OrderStatus
from stockkeeper.domain.service.order_state_machine import OrderStateMachine


def parse_status(raw: str) -> OrderStatus:
    try:
        return OrderStatus(raw.strip().lower())
    except ValueError as exc:
        valid = ", ".join(s.value for s in OrderStatus)
        raise ValidationError(f"Unknown order status '{raw}' (expected one of: {valid})") from exc


class UpdateOrderStatusHandler:

    def __init__(self, state_machine: OrderStateMachine) -> None:
        self._state_machine = state_machine

    def handle(
        self,
        order_id: int,
        new_status: str | OrderStatus,
        note: str | None = None,
        actor: str = SYSTEM_ACTOR,
    ) -> OrderDTO:
        """Move an order to *new_status*, running its inventory side effect.

        If the side effect fails the status does not change and the
        domain error propagates to the caller.
        """
        status = new_status if isinstance(new_status, OrderStatus) else parse_status(new_status)
        order = self._state_machine.update_status(order_id, status, note=note, actor=actor)
        return order_to_dto(order)
