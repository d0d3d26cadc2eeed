"""Detection and correction of pool/market price divergence."""

import logging
from typing import Optional

from dex_simulation.core.errors import InvalidTrade, SimulationError
from dex_simulation.core.events import ArbitrageOpportunityDetected, EventBus
from dex_simulation.core.pool import LiquidityPool
from dex_simulation.core.trade import (
    ArbitrageCheckResult,
    ArbitrageDirection,
    ArbitrageOpportunity,
    TradeResult,
    utc_now,
)
from dex_simulation.market.coordinator import TradeCoordinator
from dex_simulation.market.price_oracle import PriceOracle

logger = logging.getLogger(__name__)


class ArbitrageMonitor:
    """Compares the pool's BTC-per-ETH price with the reference market.

    A gap of at least `threshold` percent of the market price is an
    opportunity. Published opportunities are corrected immediately by a
    single trade inside the same dispatch; the correction never triggers a
    second published opportunity within that dispatch chain, so any further
    convergence takes an explicit re-check by the caller.
    """

    def __init__(
        self,
        oracle: PriceOracle,
        pool: LiquidityPool,
        coordinator: TradeCoordinator,
        events: EventBus,
        threshold: float = 5.0,
    ):
        self.oracle = oracle
        self.pool = pool
        self.coordinator = coordinator
        self.events = events
        self.threshold = threshold
        self.last_correction: Optional[TradeResult] = None
        self._opportunity_counter = 0
        self._corrected_dispatch: Optional[int] = None
        self._correction_error: Optional[SimulationError] = None
        events.subscribe(ArbitrageOpportunityDetected, self._on_opportunity)

    def close(self) -> None:
        """Stop reacting to published opportunities."""
        self.events.unsubscribe(ArbitrageOpportunityDetected, self._on_opportunity)

    def measure(self, pool_eth: float, pool_btc: float) -> tuple[float, float, float]:
        """Return (pool_price, market_price, percentage gap).

        Raises:
            InvalidTrade: either reserve is not positive
        """
        if not (pool_eth > 0 and pool_btc > 0):
            raise InvalidTrade(f"pool reserves must be > 0, got eth={pool_eth} btc={pool_btc}")
        pool_price = pool_btc / pool_eth
        market_price = self.oracle.get_current_price().reference_rate
        percentage = abs(pool_price - market_price) / market_price * 100
        return pool_price, market_price, percentage

    def find_opportunity(
        self,
        pool_eth: float,
        pool_btc: float,
        id_prefix: str = "arbitrage",
    ) -> Optional[ArbitrageOpportunity]:
        """Detect a divergence without publishing or trading.

        The id is the one the opportunity would take if acted on now; only
        the emitting and executing paths consume it.
        """
        pool_price, market_price, percentage = self.measure(pool_eth, pool_btc)
        if percentage < self.threshold:
            return None

        if pool_price > market_price:
            direction = ArbitrageDirection.BUY_ETH_SELL_BTC
        else:
            direction = ArbitrageDirection.BUY_BTC_SELL_ETH

        return ArbitrageOpportunity(
            id=f"{id_prefix}_{self._opportunity_counter + 1}",
            timestamp=utc_now(),
            pool_price=pool_price,
            market_price=market_price,
            difference=abs(pool_price - market_price),
            percentage=percentage,
            direction=direction,
        )

    def check_and_emit_arbitrage_opportunity(
        self,
        pool_eth: float,
        pool_btc: float,
    ) -> Optional[ArbitrageOpportunity]:
        """Detect a divergence and publish it for correction.

        Raises:
            InvalidTrade: either reserve is not positive
            SimulationError: the corrective trade failed (the pool is unchanged)
        """
        opportunity = self.find_opportunity(pool_eth, pool_btc)
        if opportunity is None:
            return None
        self._opportunity_counter += 1

        logger.info(
            f"Arbitrage opportunity {opportunity.id}: {opportunity.percentage:.2f}% gap, "
            f"{opportunity.direction.value}"
        )
        if self._already_corrected():
            logger.debug(f"Not publishing {opportunity.id}: already corrected in this dispatch")
            return opportunity

        self._correction_error = None
        self.events.publish(ArbitrageOpportunityDetected(opportunity))
        error, self._correction_error = self._correction_error, None
        if error is not None:
            raise error
        return opportunity

    def _already_corrected(self) -> bool:
        return self.events.dispatching and self._corrected_dispatch == self.events.dispatch_id

    def _on_opportunity(self, event: ArbitrageOpportunityDetected) -> None:
        self._corrected_dispatch = self.events.dispatch_id
        try:
            self.last_correction = self.coordinator.execute_arbitrage_trade(event.opportunity)
        except SimulationError as e:
            logger.warning(f"Corrective trade for {event.opportunity.id} failed: {e}")
            self._correction_error = e

    def check_and_execute_arbitrage(self) -> ArbitrageCheckResult:
        """Check the live pool and, on a divergence, correct it directly."""
        pool = self.pool.get_pool()
        opportunity = self.find_opportunity(pool.eth_reserve, pool.btc_reserve, "manual_arbitrage")
        if opportunity is None:
            _, _, percentage = self.measure(pool.eth_reserve, pool.btc_reserve)
            return ArbitrageCheckResult(
                message=(
                    f"No arbitrage opportunity. Current gap: {percentage:.2f}% "
                    f"(minimum {self.threshold:.2f}%)"
                )
            )
        self._opportunity_counter += 1

        trade = self.coordinator.execute_arbitrage_trade(opportunity)
        return ArbitrageCheckResult(
            message=f"Arbitrage trade executed. Gap: {opportunity.percentage:.2f}%",
            opportunity=opportunity,
            trade=trade,
        )
