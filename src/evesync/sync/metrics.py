"""
Market Metrics Calculator.

Best bid / best ask over an unsorted order book:

- buy: highest buy-order price
- sell: lowest sell-order price
- spread: sell - buy
- margin: spread as a percentage of buy

Only price decides; ties may resolve to any order. Depth-weighted prices
(e.g. top 5% of volume) are not computed.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, ConfigDict

from ..core.logging import get_logger

if TYPE_CHECKING:
    from ..market.groups import MarketGroupPathLookup
    from ..models.records import MarketType
    from ..store.protocol import RecordStore

logger = get_logger(__name__)


class MarketSummary(BaseModel):
    """Derived metrics for one market snapshot. buy/sell are None when that side is empty."""

    model_config = ConfigDict(frozen=True)

    buy: Optional[float] = None
    sell: Optional[float] = None
    spread: float = 0.0
    margin: float = 0.0


def calculate_summary(
    sell_orders: Optional[Sequence[Mapping[str, Any]]],
    buy_orders: Optional[Sequence[Mapping[str, Any]]],
) -> MarketSummary:
    """
    Compute buy/sell/spread/margin from raw order lists.

    Example:
        >>> calculate_summary([{"price": 15}, {"price": 20}], [{"price": 10}, {"price": 12}])
        MarketSummary(buy=12.0, sell=15.0, spread=3.0, margin=25.0)
    """
    buy = max(float(order["price"]) for order in buy_orders) if buy_orders else None
    sell = min(float(order["price"]) for order in sell_orders) if sell_orders else None

    spread = 0.0
    margin = 0.0
    if buy is not None and sell is not None:
        spread = sell - buy
        if buy != 0:
            margin = (spread / buy) * 100.0

    return MarketSummary(buy=buy, sell=sell, spread=spread, margin=margin)


class MarketMetricsCalculator:
    """
    Computes a market type's metrics, resolves its market group path and
    persists both in a single save.
    """

    def __init__(
        self,
        store: RecordStore,
        group_lookup: Optional[MarketGroupPathLookup] = None,
    ) -> None:
        self.store = store
        self.group_lookup = group_lookup

    async def summarize(self, market_type: MarketType) -> MarketType:
        summary = calculate_summary(market_type.sell_orders, market_type.buy_orders)

        changes: dict[str, Any] = {"spread": summary.spread, "margin": summary.margin}
        # An empty side keeps whatever price was stored before
        if summary.buy is not None:
            changes["buy"] = summary.buy
        if summary.sell is not None:
            changes["sell"] = summary.sell

        if self.group_lookup is not None and market_type.market_group_id is not None:
            changes["market_group_id_path"] = await self.group_lookup(
                market_type.market_group_id
            )

        logger.debug(
            "Market %s/%s: buy=%s sell=%s spread=%.2f margin=%.2f",
            market_type.region_id,
            market_type.type_id,
            summary.buy,
            summary.sell,
            summary.spread,
            summary.margin,
        )
        return await self.store.save(market_type.patch(**changes))
