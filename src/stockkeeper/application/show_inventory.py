"""Application service: Show Inventory use case (query)."""

from __future__ import annotations

from stockkeeper.application.dto import InventoryLineDTO
from stockkeeper.domain.repository.stock_store import StockStore


class ShowInventoryHandler:

    def __init__(self, stock_store: StockStore) -> None:
        self._stock_store = stock_store

    def handle(self) -> list[InventoryLineDTO]:
        products = sorted(self._stock_store.list_products(), key=lambda p: p.id)
        return [
            InventoryLineDTO(
                product_id=p.id,
                sku=p.sku,
                product_name=p.name,
                stock=p.current_stock,
                reserved=p.reserved_stock,
                available=p.available_stock,
            )
            for p in products
        ]
