"""Core pool components."""

from dex_simulation.core.events import (
    ArbitrageOpportunityDetected,
    EventBus,
    PriceChanged,
    TradeExecuted,
)
from dex_simulation.core.pool import LiquidityPool, LpUser, PoolSnapshot
from dex_simulation.core.prices import MarketPrice, MarketStatus, PriceChangeEvent, Volatility
from dex_simulation.core.swap import SwapEngine, SwapQuote
from dex_simulation.core.trade import (
    ArbitrageCheckResult,
    ArbitrageDirection,
    ArbitrageOpportunity,
    Asset,
    PoolReserves,
    PriceInfo,
    Trade,
    TradeResult,
)

__all__ = [
    "ArbitrageCheckResult",
    "ArbitrageDirection",
    "ArbitrageOpportunity",
    "ArbitrageOpportunityDetected",
    "Asset",
    "EventBus",
    "LiquidityPool",
    "LpUser",
    "MarketPrice",
    "MarketStatus",
    "PoolReserves",
    "PoolSnapshot",
    "PriceChangeEvent",
    "PriceChanged",
    "PriceInfo",
    "SwapEngine",
    "SwapQuote",
    "Trade",
    "TradeExecuted",
    "TradeResult",
    "Volatility",
]
