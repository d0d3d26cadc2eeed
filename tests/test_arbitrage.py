"""Arbitrage detection and correction tests.

Standard pool price is 30 BTC per ETH; the engine fixtures pin the
market rate so each case has a known gap:
- 33: pool too cheap in BTC terms, 9.09% gap, correct by selling BTC in
- 27: pool too expensive, 11.1% gap, correct by selling ETH in
- 30.6: 1.96% gap, below the 5% threshold
"""

import pytest

from dex_simulation.core.errors import InsufficientLiquidity, InvalidTrade
from dex_simulation.core.events import ArbitrageOpportunityDetected, TradeExecuted
from dex_simulation.core.trade import ArbitrageDirection, Asset
from tests.fixtures.pool_fixtures import create_engine, price_gap


def _check(engine):
    pool = engine.pool.get_pool()
    return engine.monitor.check_and_emit_arbitrage_opportunity(pool.eth_reserve, pool.btc_reserve)


class TestDetection:
    """find_opportunity and measure."""

    def test_market_above_pool(self, diverged_engine):
        opportunity = diverged_engine.monitor.find_opportunity(1000.0, 30000.0)

        assert opportunity is not None
        assert opportunity.pool_price == pytest.approx(30.0)
        assert opportunity.market_price == pytest.approx(33.0)
        assert opportunity.difference == pytest.approx(3.0)
        assert opportunity.percentage == pytest.approx(9.0909, abs=1e-4)
        assert opportunity.direction is ArbitrageDirection.BUY_BTC_SELL_ETH

    def test_market_below_pool(self):
        engine = create_engine(market_rate=27.0)
        opportunity = engine.monitor.find_opportunity(1000.0, 30000.0)

        assert opportunity.percentage == pytest.approx(100 / 9, abs=1e-6)
        assert opportunity.direction is ArbitrageDirection.BUY_ETH_SELL_BTC

    def test_small_gap_ignored(self):
        engine = create_engine(market_rate=30.6)
        assert engine.monitor.find_opportunity(1000.0, 30000.0) is None

    def test_gap_exactly_at_threshold_counts(self):
        engine = create_engine(market_rate=30.0, threshold=0.0)
        opportunity = engine.monitor.find_opportunity(1000.0, 30000.0)
        assert opportunity is not None
        assert opportunity.percentage == 0.0

    def test_custom_threshold(self):
        engine = create_engine(market_rate=33.0, threshold=10.0)
        assert engine.monitor.find_opportunity(1000.0, 30000.0) is None

    def test_find_previews_next_id(self, diverged_engine):
        first = diverged_engine.monitor.find_opportunity(1000.0, 30000.0)
        second = diverged_engine.monitor.find_opportunity(1000.0, 30000.0, "manual_arbitrage")
        assert first.id == "arbitrage_1"
        assert second.id == "manual_arbitrage_1"

    def test_ids_consumed_only_when_acted_on(self, diverged_engine):
        for _ in range(3):
            diverged_engine.monitor.find_opportunity(1000.0, 30000.0)
        assert _check(diverged_engine).id == "arbitrage_1"
        assert diverged_engine.monitor.check_and_execute_arbitrage().opportunity.id == "manual_arbitrage_2"

    @pytest.mark.parametrize("pool_eth,pool_btc", [
        (0.0, 30000.0),
        (1000.0, 0.0),
        (-1000.0, 30000.0),
        (1000.0, -30000.0),
    ])
    def test_non_positive_reserves_rejected(self, diverged_engine, capture, pool_eth, pool_btc):
        trades = capture(diverged_engine.events, TradeExecuted)
        before = diverged_engine.pool.get_pool()

        with pytest.raises(InvalidTrade):
            diverged_engine.monitor.check_and_emit_arbitrage_opportunity(pool_eth, pool_btc)

        assert trades == []
        assert diverged_engine.pool.get_pool() == before

    def test_find_does_not_trade(self, diverged_engine, capture):
        trades = capture(diverged_engine.events, TradeExecuted)
        before = diverged_engine.pool.get_pool()

        diverged_engine.monitor.find_opportunity(1000.0, 30000.0)

        assert trades == []
        assert diverged_engine.pool.get_pool() == before


class TestEmitAndCorrect:
    """check_and_emit_arbitrage_opportunity with the built-in corrector."""

    def test_no_opportunity_publishes_nothing(self, engine, capture):
        published = capture(engine.events, ArbitrageOpportunityDetected)
        assert _check(engine) is None
        assert published == []
        assert engine.coordinator.trade_count == 0

    def test_opportunity_corrected_once(self, diverged_engine, capture):
        published = capture(diverged_engine.events, ArbitrageOpportunityDetected)
        trades = capture(diverged_engine.events, TradeExecuted)

        opportunity = _check(diverged_engine)

        assert [p.opportunity for p in published] == [opportunity]
        assert len(trades) == 1
        assert trades[0].trade_id.startswith("arbitrage_")
        assert trades[0].from_asset is Asset.BTC
        assert trades[0].to_asset is Asset.ETH

    def test_correction_narrows_gap(self, diverged_engine):
        before = diverged_engine.pool.get_pool()
        _check(diverged_engine)
        after = diverged_engine.pool.get_pool()

        assert after.spot_price > before.spot_price
        assert price_gap(after, 33.0) < price_gap(before, 33.0)

    def test_correction_from_expensive_pool(self):
        engine = create_engine(market_rate=27.0)
        before = engine.pool.get_pool()
        _check(engine)
        after = engine.pool.get_pool()

        assert after.eth_reserve > before.eth_reserve
        assert price_gap(after, 27.0) < price_gap(before, 27.0)

    def test_correction_size(self, diverged_engine):
        _check(diverged_engine)
        trade = diverged_engine.monitor.last_correction.trade
        # 9.09% / 1000 clips up to 1% of the 30000 BTC reserve
        assert trade.amount_in == pytest.approx(300.0)

    def test_correction_preserves_k_invariant(self, diverged_engine):
        _check(diverged_engine)
        pool = diverged_engine.pool.get_pool()
        assert pool.eth_reserve * pool.btc_reserve == pytest.approx(30_000_000.0, rel=1e-9)

    def test_failed_correction_surfaces_typed_error(self, diverged_engine, capture, monkeypatch):
        trades = capture(diverged_engine.events, TradeExecuted)
        before = diverged_engine.pool.get_pool()

        def reject(opportunity):
            raise InsufficientLiquidity("no depth")

        monkeypatch.setattr(diverged_engine.coordinator, "execute_arbitrage_trade", reject)

        with pytest.raises(InsufficientLiquidity, match="no depth"):
            _check(diverged_engine)

        assert trades == []
        assert diverged_engine.pool.get_pool() == before
        assert diverged_engine.monitor.last_correction is None


class TestRecursionGuard:
    """A correction never cascades into further published opportunities."""

    def test_observer_recheck_does_not_publish(self, diverged_engine, capture):
        engine = diverged_engine
        published = capture(engine.events, ArbitrageOpportunityDetected)
        trades = capture(engine.events, TradeExecuted)
        rechecks = []

        def recheck(event):
            after = event.pool_after
            rechecks.append(engine.monitor.check_and_emit_arbitrage_opportunity(after.eth, after.btc))

        engine.events.subscribe(TradeExecuted, recheck)

        _check(engine)

        assert len(published) == 1
        assert len(trades) == 1
        # The gap is still above threshold, so the re-check sees it but stays silent
        assert len(rechecks) == 1 and rechecks[0] is not None

    def test_explicit_recheck_corrects_again(self, diverged_engine, capture):
        trades = capture(diverged_engine.events, TradeExecuted)

        _check(diverged_engine)
        gap_after_first = price_gap(diverged_engine.pool.get_pool(), 33.0)
        _check(diverged_engine)
        gap_after_second = price_gap(diverged_engine.pool.get_pool(), 33.0)

        assert len(trades) == 2
        assert gap_after_second < gap_after_first

    def test_repeated_checks_converge(self, diverged_engine):
        for _ in range(20):
            if _check(diverged_engine) is None:
                break
        assert price_gap(diverged_engine.pool.get_pool(), 33.0) < 5.0

    def test_close_stops_correction(self, diverged_engine, capture):
        trades = capture(diverged_engine.events, TradeExecuted)
        diverged_engine.monitor.close()

        assert _check(diverged_engine) is not None
        assert trades == []


class TestCheckAndExecute:
    """check_and_execute_arbitrage."""

    def test_no_opportunity_message(self, engine):
        result = engine.monitor.check_and_execute_arbitrage()

        assert not result.executed
        assert result.opportunity is None
        assert result.message == "No arbitrage opportunity. Current gap: 0.00% (minimum 5.00%)"

    def test_executes_directly(self, diverged_engine, capture):
        published = capture(diverged_engine.events, ArbitrageOpportunityDetected)
        trades = capture(diverged_engine.events, TradeExecuted)

        result = diverged_engine.monitor.check_and_execute_arbitrage()

        assert result.executed
        assert result.message == "Arbitrage trade executed. Gap: 9.09%"
        assert result.opportunity.id.startswith("manual_arbitrage_")
        assert published == []
        assert [t.trade_id for t in trades] == [result.trade.trade.id]
