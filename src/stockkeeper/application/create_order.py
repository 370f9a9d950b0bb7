"""Application service: Create Order use case.

Builds a pending order from the requested products and hands it to the
state machine, which reserves stock for every item and only then
persists the order in ``processing``.  Creation is all-or-nothing: on any
shortfall the caller gets a StockValidationError listing every
unavailable item and no order is stored.
"""

from __future__ import annotations

from stockkeeper.application.dto import OrderDTO, OrderItemSpec, order_to_dto
from stockkeeper.domain.exceptions import EntityNotFoundError
from stockkeeper.domain.model.movement import SYSTEM_ACTOR
from stockkeeper.domain.model.order import Order, OrderItem
from stockkeeper.domain.model.value_objects import Quantity
from stockkeeper.domain.repository.order_repository import OrderRepository
from stockkeeper.domain.repository.stock_store import StockStore
from stockkeeper.domain.service.order_state_machine import OrderStateMachine


class CreateOrderHandler:

    def __init__(
        self,
        order_repo: OrderRepository,
        stock_store: StockStore,
        state_machine: OrderStateMachine,
    ) -> None:
        self._order_repo = order_repo
        self._stock_store = stock_store
        self._state_machine = state_machine

    def handle(
        self,
        customer_name: str,
        item_specs: list[OrderItemSpec],
        actor: str = SYSTEM_ACTOR,
    ) -> OrderDTO:
        """Create an order and reserve its stock.

        Steps:
        1. Resolve each product id (fail if not found) and snapshot its name.
        2. Let the Order aggregate validate all business rules.
        3. Transition pending -> processing (reserves stock, then persists).
        """
        items: list[OrderItem] = []
        for spec in item_specs:
            product = self._stock_store.get_product(spec.product_id)
            if product is None:
                raise EntityNotFoundError(f"Product not found: '{spec.product_id}'")
            items.append(
                OrderItem(
                    product_id=product.id,
                    product_name=product.name,
                    quantity=Quantity(spec.quantity),
                )
            )

        order = Order.create(
            order_id=self._order_repo.next_id(),
            customer_name=customer_name,
            items=items,
            actor=actor,
        )
        self._state_machine.start(order, note="Stock reserved", actor=actor)
        return order_to_dto(order)
