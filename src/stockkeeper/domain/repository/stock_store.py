"""Abstract store for Product stock counters.

Defined in the domain layer so the domain never depends on
infrastructure. Concrete implementations (JSON, SQL, in-memory)
live in the infrastructure layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from stockkeeper.domain.model.product import Product


class StockStore(ABC):

    @abstractmethod
    def get_product(self, product_id: str) -> Product | None:
        """Return a detached copy of the product, or None."""

    @abstractmethod
    def list_products(self) -> list[Product]:
        """Return every product."""

    @abstractmethod
    def add_product(self, product: Product) -> None:
        """Register a new product (ValidationError if the id is taken)."""

    @abstractmethod
    def update_product(
        self,
        product_id: str,
        patch: dict[str, Any],
        expected_version: int | None = None,
    ) -> Product:
        """Apply *patch* atomically and return the updated product.

        If *expected_version* is given and the stored version differs,
        raise ConcurrencyConflictError without writing.  Every successful
        write bumps ``version`` by one.
        """
