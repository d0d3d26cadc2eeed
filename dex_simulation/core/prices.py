"""Market price and volatility data classes."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from dex_simulation.core.trade import ArbitrageOpportunity


@dataclass(frozen=True)
class Volatility:
    """Rolling price volatility, in percent."""
    eth: float = 0.0
    btc: float = 0.0
    overall: float = 0.0


@dataclass(frozen=True)
class MarketPrice:
    """External reference prices (USD) and their ETH/BTC ratio."""
    eth: float
    btc: float
    ratio: float  # eth / btc
    timestamp: datetime

    @property
    def reference_rate(self) -> float:
        """BTC price over ETH price, compared against the pool's btc/eth reserve ratio."""
        return self.btc / self.eth


@dataclass(frozen=True)
class PriceChange:
    eth: float  # Percent
    btc: float  # Percent


@dataclass(frozen=True)
class PriceChangeEvent:
    """One random-walk step of the reference market."""
    event_id: str
    timestamp: datetime
    previous_price: MarketPrice
    current_price: MarketPrice
    change: PriceChange
    volatility: Volatility


@dataclass(frozen=True)
class MarketStatus:
    current_price: MarketPrice
    volatility: Volatility
    arbitrage_opportunity: Optional[ArbitrageOpportunity]
    last_update: datetime
