"""Runtime settings, read from ``STOCKKEEPER_*`` environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

from stockkeeper.domain.exceptions import ValidationError
from stockkeeper.domain.model.value_objects import StockThresholds

# Resolve data directory relative to the project root.
# When installed in editable mode the project root is the repo root.
DEFAULT_DATA_DIR = Path(__file__).resolve().parents[3] / "data"

_PREFIX = "STOCKKEEPER_"
_LOG_FORMATS = ("console", "json")


def _bool(val: str) -> bool:
    return val.strip().lower() in ("1", "true", "yes", "on")


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValidationError(f"{_PREFIX}{name} must be an integer, got {raw!r}") from exc


@dataclass
class Settings:
    """Stock ledger configuration"""

    data_dir: Path = DEFAULT_DATA_DIR

    # Alerting
    low_stock_threshold: int = 5
    critical_stock_threshold: int = 2
    notifications_enabled: bool = True
    notification_emails: list[str] = field(default_factory=list)

    # Reservations
    reservation_ttl_minutes: int = 24 * 60
    conflict_retry_attempts: int = 3

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"

    def __post_init__(self) -> None:
        # StockThresholds validates the pair
        self.thresholds
        if self.reservation_ttl_minutes <= 0:
            raise ValidationError("Reservation TTL must be positive")
        if self.conflict_retry_attempts < 1:
            raise ValidationError("Conflict retry attempts must be at least 1")
        if self.log_format not in _LOG_FORMATS:
            raise ValidationError(
                f"Log format must be one of {', '.join(_LOG_FORMATS)}, got {self.log_format!r}"
            )

    @property
    def thresholds(self) -> StockThresholds:
        return StockThresholds(
            low=self.low_stock_threshold, critical=self.critical_stock_threshold
        )

    @property
    def reservation_ttl(self) -> timedelta:
        return timedelta(minutes=self.reservation_ttl_minutes)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> Settings:
        """Load settings from environment variables"""
        env = os.environ if env is None else env
        emails = env.get(_PREFIX + "NOTIFICATION_EMAILS", "")
        return cls(
            data_dir=Path(env.get(_PREFIX + "DATA_DIR") or DEFAULT_DATA_DIR),
            low_stock_threshold=_int(env, "LOW_STOCK_THRESHOLD", 5),
            critical_stock_threshold=_int(env, "CRITICAL_STOCK_THRESHOLD", 2),
            notifications_enabled=_bool(env.get(_PREFIX + "NOTIFICATIONS_ENABLED", "true")),
            notification_emails=[e.strip() for e in emails.split(",") if e.strip()],
            reservation_ttl_minutes=_int(env, "RESERVATION_TTL_MINUTES", 24 * 60),
            conflict_retry_attempts=_int(env, "CONFLICT_RETRY_ATTEMPTS", 3),
            log_level=env.get(_PREFIX + "LOG_LEVEL", "INFO").upper(),
            log_format=env.get(_PREFIX + "LOG_FORMAT", "console").lower(),
        )
