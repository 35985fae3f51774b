"""Market reference data lookups."""

from .groups import (
    MarketGroupPathLookup,
    RemoteMarketGroupPathLookup,
    StaticMarketGroupPathLookup,
)

__all__ = [
    "MarketGroupPathLookup",
    "RemoteMarketGroupPathLookup",
    "StaticMarketGroupPathLookup",
]
