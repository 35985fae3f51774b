"""
Market Group Path Lookup.

Resolves a market group to its root-first ancestry path, ending with the
group itself:

    >>> lookup = StaticMarketGroupPathLookup({4: None, 1031: 4, 18: 1031})
    >>> await lookup(18)
    [4, 1031, 18]
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Optional, Protocol

from ..core.logging import get_logger

if TYPE_CHECKING:
    from ..core.client import RemoteFetch

logger = get_logger(__name__)


class MarketGroupPathLookup(Protocol):
    async def __call__(self, group_id: int) -> list[int]: ...


def _walk(group_id: int, parent_of: Any) -> list[int]:
    path = [group_id]
    seen = {group_id}
    current = parent_of(group_id)
    while current is not None:
        if current in seen:
            raise ValueError(f"Market group cycle at {current} while resolving {group_id}")
        seen.add(current)
        path.append(current)
        current = parent_of(current)
    path.reverse()
    return path


class StaticMarketGroupPathLookup:
    """Lookup over a known ``{group_id: parent_group_id}`` map."""

    def __init__(self, parents: Mapping[int, Optional[int]]) -> None:
        self.parents = dict(parents)

    async def __call__(self, group_id: int) -> list[int]:
        return _walk(group_id, self.parents.get)


class RemoteMarketGroupPathLookup:
    """
    Lookup that walks ``parent_group_id`` links through the remote API.

    Parent links are memoized, so sibling types share fetches.
    """

    def __init__(self, remote: RemoteFetch, timeout_ms: Optional[int] = None) -> None:
        self.remote = remote
        self.timeout_ms = timeout_ms
        self._parents: dict[int, Optional[int]] = {}

    async def _parent_of(self, group_id: int) -> Optional[int]:
        if group_id not in self._parents:
            payload = await self.remote.fetch(
                "market:Group", {"marketGroupID": group_id}, timeout_ms=self.timeout_ms
            )
            parent = payload.get("parent_group_id") if isinstance(payload, dict) else None
            self._parents[group_id] = int(parent) if parent is not None else None
        return self._parents[group_id]

    async def __call__(self, group_id: int) -> list[int]:
        current: Optional[int] = group_id
        while current is not None and current not in self._parents:
            current = await self._parent_of(current)
        return _walk(group_id, self._parents.get)
