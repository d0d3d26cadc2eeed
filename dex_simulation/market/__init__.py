"""Reference market, trading and arbitrage components."""

from dex_simulation.market.price_oracle import PriceOracle
from dex_simulation.market.coordinator import TradeCoordinator
from dex_simulation.market.arbitrage import ArbitrageMonitor

__all__ = [
    "PriceOracle",
    "TradeCoordinator",
    "ArbitrageMonitor",
]
