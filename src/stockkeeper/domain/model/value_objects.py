"""Value Objects shared across the domain.

Value Objects are immutable and compared by value, not identity.
They encapsulate validation so invalid values can never exist.
"""

from __future__ import annotations

from dataclasses import dataclass

from stockkeeper.domain.exceptions import ValidationError


@dataclass(frozen=True)
class Quantity:
    """A positive integer number of units on an order line."""

    value: int

    def __post_init__(self) -> None:
        # bool is an int subclass; True is not a quantity
        if not isinstance(self.value, int) or isinstance(self.value, bool):
            raise ValidationError(
                f"Quantity must be an integer, got {type(self.value).__name__}"
            )
        if self.value <= 0:
            raise ValidationError("Quantity must be positive")

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class StockThresholds:
    """Alerting thresholds applied to available stock.

    ``critical`` must sit strictly below ``low``; zero is the implicit
    out-of-stock threshold and needs no configuration.
    """

    low: int = 5
    critical: int = 2

    def __post_init__(self) -> None:
        if self.critical < 0 or self.low < 0:
            raise ValidationError("Stock thresholds cannot be negative")
        if self.critical >= self.low:
            raise ValidationError(
                f"Critical threshold ({self.critical}) must be below "
                f"low threshold ({self.low})"
            )
