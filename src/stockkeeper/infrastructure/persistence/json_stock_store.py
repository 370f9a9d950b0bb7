"""JSON-file-backed implementation of StockStore.

``update_product`` is a compare-and-swap on the product's ``version``
performed under the file lock, so it is atomic across threads and
processes.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from stockkeeper.domain.exceptions import (
    ConcurrencyConflictError,
    EntityNotFoundError,
    ValidationError,
)
from stockkeeper.domain.model.product import Product
from stockkeeper.domain.repository.stock_store import StockStore
from stockkeeper.infrastructure.persistence.json_file import JsonFile

_PATCHABLE = frozenset({"current_stock", "reserved_stock", "name", "low_stock_threshold"})


class JsonStockStore(StockStore):

    def __init__(self, file_path: Path) -> None:
        self._file = JsonFile(file_path)

    # --- StockStore interface -------------------------------------------------

    def get_product(self, product_id: str) -> Product | None:
        for raw in self._file.load():
            if raw["id"] == product_id:
                return self._to_domain(raw)
        return None

    def list_products(self) -> list[Product]:
        return [self._to_domain(raw) for raw in self._file.load()]

    def add_product(self, product: Product) -> None:
        with self._file.locked():
            records = self._file.load()
            if any(raw["id"] == product.id for raw in records):
                raise ValidationError(f"Product '{product.id}' already exists")
            if any(raw["sku"] == product.sku for raw in records):
                raise ValidationError(f"SKU '{product.sku}' already in use")
            records.append(self._to_raw(product))
            self._file.persist(records)

    def update_product(
        self,
        product_id: str,
        patch: dict[str, Any],
        expected_version: int | None = None,
    ) -> Product:
        unknown = set(patch) - _PATCHABLE
        if unknown:
            raise ValidationError(f"Cannot patch product fields: {sorted(unknown)}")

        with self._file.locked():
            records = self._file.load()
            for i, raw in enumerate(records):
                if raw["id"] != product_id:
                    continue
                current = raw.get("version", 0)
                if expected_version is not None and current != expected_version:
                    raise ConcurrencyConflictError(product_id, expected_version, current)
                updated = self._to_domain({**raw, **patch, "version": current + 1})
                records[i] = self._to_raw(updated)
                self._file.persist(records)
                return updated
        raise EntityNotFoundError(f"Product '{product_id}' not found")

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(product: Product) -> dict:
        return {
            "id": product.id,
            "sku": product.sku,
            "name": product.name,
            "current_stock": product.current_stock,
            "reserved_stock": product.reserved_stock,
            "version": product.version,
            "low_stock_threshold": product.low_stock_threshold,
        }

    @staticmethod
    def _to_domain(raw: dict) -> Product:
        return Product(
            id=raw["id"],
            sku=raw["sku"],
            name=raw["name"],
            current_stock=raw["current_stock"],
            reserved_stock=raw.get("reserved_stock", 0),
            version=raw.get("version", 0),
            low_stock_threshold=raw.get("low_stock_threshold"),
        )
