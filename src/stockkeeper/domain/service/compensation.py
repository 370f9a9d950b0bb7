"""CompensationLog — a minimal saga transaction log.

Each successful step registers the action that undoes it.  If a later
step fails, ``compensate()`` runs the recorded actions newest-first.
Compensation is best-effort: a failing undo is logged and the remaining
undos still run.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog

from stockkeeper.domain.exceptions import DomainException

logger = structlog.get_logger(__name__)


class CompensationLog:

    def __init__(self, label: str) -> None:
        self._label = label
        self._steps: list[tuple[str, Callable[[], Any]]] = []

    def __len__(self) -> int:
        return len(self._steps)

    def record(self, description: str, undo: Callable[[], Any]) -> None:
        self._steps.append((description, undo))

    def commit(self) -> None:
        """Forget the recorded undos; the saga completed."""
        self._steps.clear()

    def compensate(self) -> dict[str, str]:
        """Run every recorded undo in reverse order.

        Returns a mapping of step description to error message for undos
        that failed.
        """
        failures: dict[str, str] = {}
        if not self._steps:
            return failures

        logger.warning(
            "Compensating partially applied operation",
            saga=self._label,
            steps=len(self._steps),
        )
        while self._steps:
            description, undo = self._steps.pop()
            try:
                undo()
            except DomainException as exc:
                failures[description] = str(exc)
                logger.error(
                    "Compensation step failed",
                    saga=self._label,
                    step=description,
                    error=str(exc),
                )
        return failures
