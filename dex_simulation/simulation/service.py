"""Coordinating service that owns the pool, the market and the event bus."""

import logging
import threading
from typing import Optional, Union

import numpy as np

from dex_simulation.config import DEFAULT_SETTINGS, SimulationSettings
from dex_simulation.core.events import EventBus, PriceChanged
from dex_simulation.core.pool import LiquidityPool, PoolSnapshot
from dex_simulation.core.prices import MarketPrice, MarketStatus, PriceChangeEvent
from dex_simulation.core.swap import SwapEngine
from dex_simulation.core.trade import (
    ArbitrageCheckResult,
    ArbitrageOpportunity,
    Asset,
    TradeResult,
    utc_now,
)
from dex_simulation.market.arbitrage import ArbitrageMonitor
from dex_simulation.market.coordinator import TradeCoordinator
from dex_simulation.market.price_oracle import PriceOracle

logger = logging.getLogger(__name__)


class DexSimulation:
    """The engine's operation surface.

    Builds every component around one shared random generator and one
    event bus, and serializes all operations behind a single lock so a
    quote and its commit never interleave with another caller.
    """

    def __init__(
        self,
        settings: Optional[SimulationSettings] = None,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None,
    ):
        self.settings = settings or DEFAULT_SETTINGS
        if rng is None:
            rng = np.random.default_rng(self.settings.seed if seed is None else seed)
        self.rng = rng
        self.events = EventBus()
        self._lock = threading.RLock()
        self.monitor: Optional[ArbitrageMonitor] = None
        self._build()
        self.events.subscribe(PriceChanged, self._on_price_changed)

    def _build(self) -> None:
        if self.monitor is not None:
            self.monitor.close()
        self.pool = LiquidityPool(settings=self.settings.pool, rng=self.rng)
        self.oracle = PriceOracle(settings=self.settings.market, rng=self.rng, events=self.events)
        self.coordinator = TradeCoordinator(
            self.pool,
            self.events,
            engine=SwapEngine(),
            settings=self.settings.trading,
            rng=self.rng,
        )
        self.monitor = ArbitrageMonitor(
            self.oracle,
            self.pool,
            self.coordinator,
            self.events,
            threshold=self.settings.market.arbitrage_threshold,
        )

    def reset(self, seed: Optional[int] = None) -> None:
        """Discard pool and market state; reseed when a seed is given."""
        with self._lock:
            if seed is not None:
                self.rng = np.random.default_rng(seed)
            self._build()

    def _on_price_changed(self, event: PriceChanged) -> None:
        self.pool.update_volatility(event.event.volatility)

    # Pool

    def init_liquidity(self) -> PoolSnapshot:
        with self._lock:
            pool = self.settings.pool
            self.pool.initialize(pool.initial_eth, pool.initial_btc, pool.initial_user_count)
            self.pool.update_volatility(self.oracle.get_volatility())
            return self.pool.snapshot()

    def get_pool(self) -> PoolSnapshot:
        with self._lock:
            return self.pool.get_pool()

    def add_random_user(self) -> PoolSnapshot:
        with self._lock:
            self.pool.add_user()
            return self.pool.snapshot()

    def remove_random_user(self) -> PoolSnapshot:
        with self._lock:
            self.pool.remove_user()
            return self.pool.snapshot()

    # Market

    def get_current_price(self) -> MarketPrice:
        with self._lock:
            return self.oracle.get_current_price()

    def simulate_price_change(self) -> PriceChangeEvent:
        with self._lock:
            return self.oracle.simulate_price_change()

    def get_market_status(self) -> MarketStatus:
        """Current price and volatility, with any divergence against the live pool.

        Detection here is read-only: nothing is published or traded.
        """
        with self._lock:
            opportunity = None
            if self.pool.initialized:
                opportunity = self.monitor.find_opportunity(self.pool.eth_reserve, self.pool.btc_reserve)
            return MarketStatus(
                current_price=self.oracle.get_current_price(),
                volatility=self.oracle.get_volatility(),
                arbitrage_opportunity=opportunity,
                last_update=utc_now(),
            )

    def check_and_emit_arbitrage_opportunity(
        self,
        pool_eth: Optional[float] = None,
        pool_btc: Optional[float] = None,
    ) -> Optional[ArbitrageOpportunity]:
        """Publish an opportunity for the given (or live) reserves, if any."""
        with self._lock:
            if pool_eth is None or pool_btc is None:
                pool = self.pool.get_pool()
                pool_eth, pool_btc = pool.eth_reserve, pool.btc_reserve
            return self.monitor.check_and_emit_arbitrage_opportunity(pool_eth, pool_btc)

    # Trading

    def execute_trade(
        self,
        from_asset: Union[Asset, str],
        to_asset: Union[Asset, str],
        trade_ratio: float,
    ) -> TradeResult:
        with self._lock:
            return self.coordinator.execute_trade(from_asset, to_asset, trade_ratio)

    def execute_random_trade(self) -> TradeResult:
        with self._lock:
            return self.coordinator.execute_random_trade()

    def execute_arbitrage_trade_manually(self, opportunity: ArbitrageOpportunity) -> TradeResult:
        with self._lock:
            return self.coordinator.execute_arbitrage_trade(opportunity)

    def check_and_execute_arbitrage(self) -> ArbitrageCheckResult:
        with self._lock:
            return self.monitor.check_and_execute_arbitrage()
