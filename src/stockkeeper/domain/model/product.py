"""Product aggregate — the per-product stock counter pair.

``current_stock`` counts physically owned units; ``reserved_stock`` counts
units promised to open orders.  The methods below only compute the new
counters: persisting them (with the optimistic ``version`` check) is the
ReservationManager's job, and nothing else may call them.
"""

from __future__ import annotations

from dataclasses import dataclass

from stockkeeper.domain.exceptions import InsufficientStockError, ValidationError


@dataclass
class Product:
    """Aggregate root for stock tracking.

    Invariants:
    - ``current_stock`` and ``reserved_stock`` are never negative
    - ``reserved_stock`` never exceeds ``current_stock``
    """

    id: str
    sku: str
    name: str
    current_stock: int
    reserved_stock: int = 0
    version: int = 0
    low_stock_threshold: int | None = None  # overrides the global threshold

    def __post_init__(self) -> None:
        self.check_invariants()

    @property
    def available_stock(self) -> int:
        return self.current_stock - self.reserved_stock

    def check_invariants(self) -> None:
        if self.current_stock < 0:
            raise ValidationError(f"Stock of {self.name} cannot be negative")
        if self.reserved_stock < 0:
            raise ValidationError(f"Reserved stock of {self.name} cannot be negative")
        if self.reserved_stock > self.current_stock:
            raise ValidationError(
                f"Reserved stock of {self.name} ({self.reserved_stock}) "
                f"exceeds stock on hand ({self.current_stock})"
            )

    def reserve(self, quantity: int) -> None:
        """Hold *quantity* units for an order.

        Raises InsufficientStockError (and changes nothing) if fewer than
        *quantity* units are available.
        """
        _require_positive(quantity, "Reservation")
        if quantity > self.available_stock:
            raise InsufficientStockError(self.id, self.available_stock, quantity)
        self.reserved_stock += quantity

    def release(self, quantity: int) -> int:
        """Drop a reservation, clamping ``reserved_stock`` at zero.

        Returns the number of units actually released; anything less than
        *quantity* means the counter had already been released elsewhere.
        """
        _require_positive(quantity, "Release")
        released = min(quantity, self.reserved_stock)
        self.reserved_stock -= released
        return released

    def finalize(self, quantity: int) -> int:
        """Convert a reservation into a permanent deduction.

        Both counters drop by *quantity*; returns the released amount as
        ``release()`` does.
        """
        _require_positive(quantity, "Finalize")
        if quantity > self.current_stock:
            raise ValidationError(
                f"Cannot deduct {quantity} of {self.name} "
                f"(only {self.current_stock} on hand)"
            )
        released = self.release(quantity)
        self.current_stock -= quantity
        return released

    def restock(self, quantity: int) -> None:
        """Put returned units back on the shelf."""
        _require_positive(quantity, "Restock")
        self.current_stock += quantity

    def adjust(self, quantity_change: int) -> None:
        """Apply a manual stock correction (positive or negative)."""
        if quantity_change == 0:
            raise ValidationError("Adjustment must change the stock level")
        new_stock = self.current_stock + quantity_change
        if new_stock < self.reserved_stock:
            raise ValidationError(
                f"Adjustment would leave {self.name} with {new_stock} on hand "
                f"but {self.reserved_stock} reserved"
            )
        self.current_stock = new_stock


def _require_positive(quantity: int, label: str) -> None:
    if quantity <= 0:
        raise ValidationError(f"{label} quantity must be positive")
