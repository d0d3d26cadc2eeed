"""Trade orchestration: fee, quote, commit, publish."""

import logging
from typing import Optional, Union

import numpy as np

from dex_simulation.config import TradeSettings
from dex_simulation.core.events import EventBus, TradeExecuted
from dex_simulation.core.pool import LiquidityPool
from dex_simulation.core.swap import SwapEngine
from dex_simulation.core.trade import (
    AMOUNT_DECIMALS,
    ArbitrageDirection,
    ArbitrageOpportunity,
    Asset,
    PriceInfo,
    Trade,
    TradeResult,
    utc_now,
)

logger = logging.getLogger(__name__)

AssetLike = Union[Asset, str]


class TradeCoordinator:
    """Executes trades against the pool one at a time.

    Every successful call publishes exactly one TradeExecuted event before
    returning. A failing call leaves the pool untouched and publishes nothing.
    """

    def __init__(
        self,
        pool: LiquidityPool,
        events: EventBus,
        engine: Optional[SwapEngine] = None,
        settings: Optional[TradeSettings] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.pool = pool
        self.events = events
        self.engine = engine or SwapEngine()
        self.settings = settings or TradeSettings()
        self.rng = rng if rng is not None else np.random.default_rng()
        self._trade_counter = 0

    @property
    def trade_count(self) -> int:
        return self._trade_counter

    def execute_trade(
        self,
        from_asset: AssetLike,
        to_asset: AssetLike,
        trade_ratio: float,
    ) -> TradeResult:
        """Swap `trade_ratio` of the `from_asset` reserve into `to_asset`."""
        return self._execute(Asset.parse(from_asset), Asset.parse(to_asset), trade_ratio, "trade")

    def execute_random_trade(self) -> TradeResult:
        """Trade a uniform random fraction of a reserve in a random direction."""
        from_asset = Asset.ETH if self.rng.random() < 0.5 else Asset.BTC
        ratio = float(self.rng.uniform(self.settings.random_ratio_min, self.settings.random_ratio_max))
        return self._execute(from_asset, from_asset.other, ratio, "trade")

    def execute_arbitrage_trade(self, opportunity: ArbitrageOpportunity) -> TradeResult:
        """Trade against the pool in the direction that closes the price gap.

        Size is percentage/1000 of the input reserve, clipped to the
        configured arbitrage ratio bounds.
        """
        ratio = min(
            self.settings.arbitrage_ratio_max,
            max(self.settings.arbitrage_ratio_min, opportunity.percentage / 1000),
        )
        if opportunity.direction is ArbitrageDirection.BUY_ETH_SELL_BTC:
            from_asset, to_asset = Asset.ETH, Asset.BTC
        else:
            from_asset, to_asset = Asset.BTC, Asset.ETH

        result = self._execute(from_asset, to_asset, ratio, "arbitrage")
        logger.info(
            f"Arbitrage trade {result.trade.id}: {from_asset.value} {result.trade.amount_in:.3f} -> "
            f"{to_asset.value} {result.trade.amount_out:.3f} for a {opportunity.percentage:.2f}% gap"
        )
        return result

    def _execute(
        self,
        from_asset: Asset,
        to_asset: Asset,
        trade_ratio: float,
        id_prefix: str,
    ) -> TradeResult:
        before = self.pool.get_pool()
        amount_in = trade_ratio * before.reserve_of(from_asset)

        self.pool.calculate_fee(amount_in)
        quote = self.engine.quote(from_asset, to_asset, amount_in, self.pool.snapshot())
        after = self.pool.apply_swap(quote)

        self._trade_counter += 1
        trade_id = f"{id_prefix}_{self._trade_counter}"
        trade = Trade(
            id=trade_id,
            from_asset=from_asset,
            to_asset=to_asset,
            amount_in=quote.amount_in,
            amount_out=quote.amount_out,
            fee=quote.fee,
            slippage=quote.slippage,
            price_impact=quote.price_impact,
            timestamp=utc_now(),
        )
        pool_before = before.reserves
        pool_after = after.reserves

        logger.debug(
            f"{trade_id}: {quote.amount_in} {from_asset.value} -> {quote.amount_out} {to_asset.value} "
            f"(fee {quote.fee}, slippage {quote.slippage}%)"
        )
        self.events.publish(
            TradeExecuted(
                trade_id=trade_id,
                from_asset=from_asset,
                to_asset=to_asset,
                amount_in=trade.amount_in,
                amount_out=trade.amount_out,
                fee=trade.fee,
                slippage=trade.slippage,
                price_impact=trade.price_impact,
                pool_before=pool_before,
                pool_after=pool_after,
            )
        )

        actual_rate = quote.amount_out / quote.amount_in if quote.amount_in else 0.0
        return TradeResult(
            trade=trade,
            pool_before=pool_before,
            pool_after=pool_after,
            price_info=PriceInfo(
                expected_rate=quote.expected_price,
                actual_rate=round(actual_rate, AMOUNT_DECIMALS),
                slippage=quote.slippage,
            ),
        )
