"""Domain-level exceptions.

All business rule violations are expressed as subclasses of DomainException
so the CLI layer can catch them uniformly and display user-friendly messages.
"""

from __future__ import annotations

from dataclasses import dataclass


class DomainException(Exception):
    """Base class for all domain errors."""


class ValidationError(DomainException):
    """A business rule or invariant was violated."""


class EntityNotFoundError(DomainException):
    """A requested entity does not exist."""


class InvalidTransitionError(ValidationError):
    """An order was asked to move to a status it cannot reach."""


class InsufficientStockError(DomainException):
    """A single product cannot cover the requested quantity."""

    def __init__(self, product_id: str, available: int, requested: int) -> None:
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product '{product_id}' "
            f"(requested {requested}, available {available})"
        )

    @property
    def shortfall(self) -> int:
        return self.requested - self.available


@dataclass(frozen=True)
class StockShortfall:
    """One line of a failed order reservation."""

    product_id: str
    product_name: str
    requested: int
    available: int
    reason: str = "insufficient stock"

    @property
    def missing(self) -> int:
        return max(self.requested - self.available, 0)

    def __str__(self) -> str:
        return (
            f"{self.product_name} ({self.product_id}): requested {self.requested}, "
            f"available {self.available} [{self.reason}]"
        )


class StockValidationError(DomainException):
    """Aggregate failure listing every item an order could not reserve."""

    def __init__(self, order_id: int, shortfalls: list[StockShortfall]) -> None:
        self.order_id = order_id
        self.shortfalls = list(shortfalls)
        lines = "; ".join(str(s) for s in self.shortfalls)
        super().__init__(f"Stock validation failed for order #{order_id}: {lines}")


class ConcurrencyConflictError(DomainException):
    """A product changed between read and write (lost update detected)."""

    def __init__(
        self, product_id: str, expected_version: int, actual_version: int
    ) -> None:
        self.product_id = product_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Product '{product_id}' was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )


class PersistenceError(DomainException):
    """The backing store could not be read or written."""


class PartialFinalizationError(DomainException):
    """Some items of an order were processed and others were not.

    The order is in a torn state; retrying the same transition is safe
    because finalize and restock are idempotent per order/product pair.
    """

    def __init__(
        self,
        order_id: int,
        completed: list[str],
        failed: dict[str, str],
        operation: str = "finalize",
    ) -> None:
        self.order_id = order_id
        self.completed = list(completed)
        self.failed = dict(failed)
        self.operation = operation
        details = ", ".join(f"{pid}: {err}" for pid, err in self.failed.items())
        super().__init__(
            f"Could not {operation} {len(self.failed)} item(s) of order #{order_id} "
            f"({len(self.completed)} succeeded): {details}"
        )
