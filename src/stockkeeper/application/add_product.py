"""Application service: Add Product use case."""

from __future__ import annotations

from stockkeeper.domain.exceptions import ValidationError
from stockkeeper.domain.model.movement import SYSTEM_ACTOR
from stockkeeper.domain.model.product import Product
from stockkeeper.domain.repository.stock_store import StockStore
from stockkeeper.domain.service.reservation_manager import ReservationManager

OPENING_STOCK_REASON = "Opening stock"


class AddProductHandler:

    def __init__(self, stock_store: StockStore, manager: ReservationManager) -> None:
        self._stock_store = stock_store
        self._manager = manager

    def handle(
        self,
        product_id: str,
        sku: str,
        name: str,
        stock: int = 0,
        low_stock_threshold: int | None = None,
        actor: str = SYSTEM_ACTOR,
    ) -> Product:
        """Register a product with its opening stock.

        The product starts empty and the opening stock is booked as an
        adjustment, so replaying the ledger reproduces ``current_stock``.
        """
        if not product_id or not product_id.strip():
            raise ValidationError("Product id is required")
        if not name or not name.strip():
            raise ValidationError("Product name is required")
        if not sku or not sku.strip():
            raise ValidationError("Product SKU is required")
        if stock < 0:
            raise ValidationError("Opening stock cannot be negative")
        if low_stock_threshold is not None and low_stock_threshold < 0:
            raise ValidationError("Low stock threshold cannot be negative")

        product = Product(
            id=product_id.strip(),
            sku=sku.strip(),
            name=name.strip(),
            current_stock=0,
            low_stock_threshold=low_stock_threshold,
        )
        self._stock_store.add_product(product)
        if stock > 0:
            self._manager.adjust(product.id, stock, OPENING_STOCK_REASON, actor)
        return self._stock_store.get_product(product.id)
