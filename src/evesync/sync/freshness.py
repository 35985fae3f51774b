"""
Freshness Policy.

Decides whether cached data is recent and complete enough to skip a
remote refetch. Max age and remote timeout are defaults that every call
can override.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional, Union

from ..core.constants import DEFAULT_MAX_AGE_SECONDS, DEFAULT_TIMEOUT_MS

if TYPE_CHECKING:
    from ..core.config import SyncSettings
    from ..models.records import MarketType

Timestamp = Union[datetime, int, float]


def to_epoch(value: Timestamp) -> float:
    """Unix seconds for a datetime (naive values are UTC) or a number."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    return float(value)


def needs_refetch(
    last_updated_at: Optional[Timestamp],
    max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS,
    has_complete_data: bool = True,
    now: Optional[Timestamp] = None,
) -> bool:
    """
    Check whether data must be fetched again.

    Returns False only when the data is complete and younger than
    ``max_age_seconds``. Data exactly ``max_age_seconds`` old is stale.

    Args:
        last_updated_at: When the data was last stored (None = never)
        max_age_seconds: Maximum acceptable age
        has_complete_data: Whether every required field is present
        now: Current time (default: time.time())
    """
    if not has_complete_data or last_updated_at is None:
        return True
    current = time.time() if now is None else to_epoch(now)
    return (current - to_epoch(last_updated_at)) >= max_age_seconds


@dataclass(frozen=True)
class FetchOptions:
    """Resolved per-call fetch options."""

    max_age_seconds: int
    timeout_ms: int


@dataclass(frozen=True)
class FreshnessPolicy:
    """Freshness defaults plus per-call override resolution."""

    max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    @classmethod
    def from_settings(cls, settings: SyncSettings) -> FreshnessPolicy:
        return cls(max_age_seconds=settings.max_age_seconds, timeout_ms=settings.timeout_ms)

    def resolve(
        self,
        max_age_seconds: Optional[int] = None,
        timeout_ms: Optional[int] = None,
    ) -> FetchOptions:
        return FetchOptions(
            max_age_seconds=self.max_age_seconds if max_age_seconds is None else max_age_seconds,
            timeout_ms=self.timeout_ms if timeout_ms is None else timeout_ms,
        )

    def market_type_needs_refetch(
        self,
        market_type: MarketType,
        max_age_seconds: Optional[int] = None,
        now: Optional[Timestamp] = None,
    ) -> bool:
        """History, sell orders and buy orders are all required."""
        return needs_refetch(
            market_type.updated_at,
            self.resolve(max_age_seconds=max_age_seconds).max_age_seconds,
            has_complete_data=market_type.has_complete_data,
            now=now,
        )
