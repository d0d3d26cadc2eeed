"""Reference market tests: bounded moves, history, rolling volatility."""

import numpy as np
import pytest

from dex_simulation.config import MarketSettings
from dex_simulation.core.events import EventBus, PriceChanged
from dex_simulation.core.prices import Volatility
from dex_simulation.market.price_oracle import PriceOracle
from tests.fixtures.pool_fixtures import create_oracle


@pytest.fixture
def oracle(fixed_seed) -> PriceOracle:
    return create_oracle(seed=fixed_seed)


class TestInitialState:

    def test_initial_prices(self, oracle):
        price = oracle.get_current_price()
        assert price.eth == 2000.0
        assert price.btc == 60000.0
        assert price.ratio == pytest.approx(2000.0 / 60000.0)
        assert price.reference_rate == pytest.approx(30.0)

    def test_initial_volatility_is_zero(self, oracle):
        assert oracle.get_volatility() == Volatility()
        assert len(oracle.history) == 1


class TestPriceSteps:
    """simulate_price_change."""

    def test_moves_bounded_by_max_step(self, oracle):
        for _ in range(200):
            event = oracle.simulate_price_change()
            previous, current = event.previous_price, event.current_price
            assert abs(current.eth / previous.eth - 1) <= 0.05 + 1e-12
            assert abs(current.btc / previous.btc - 1) <= 0.05 + 1e-12
            assert abs(event.change.eth) <= 5.0 + 1e-9
            assert abs(event.change.btc) <= 5.0 + 1e-9

    def test_ratio_tracks_prices(self, oracle):
        for _ in range(20):
            price = oracle.simulate_price_change().current_price
            assert price.ratio == pytest.approx(price.eth / price.btc)

    def test_event_ids_increase(self, oracle):
        ids = [oracle.simulate_price_change().event_id for _ in range(3)]
        assert ids == ["price_change_1", "price_change_2", "price_change_3"]

    def test_event_links_previous_and_current(self, oracle):
        first = oracle.simulate_price_change()
        second = oracle.simulate_price_change()
        assert second.previous_price == first.current_price
        assert oracle.get_current_price() == second.current_price

    def test_history_capped(self):
        oracle = PriceOracle(settings=MarketSettings(history_size=10), rng=np.random.default_rng(1))
        for _ in range(25):
            oracle.simulate_price_change()
        history = oracle.history
        assert len(history) == 10
        assert history[-1] == oracle.get_current_price()

    def test_publishes_price_changed(self, fixed_seed):
        events = EventBus()
        received = []
        events.subscribe(PriceChanged, received.append)
        oracle = create_oracle(seed=fixed_seed, events=events)

        event = oracle.simulate_price_change()

        assert [r.event for r in received] == [event]

    def test_same_seed_same_path(self):
        a = create_oracle(seed=3)
        b = create_oracle(seed=3)
        path_a = [a.simulate_price_change().current_price.eth for _ in range(10)]
        path_b = [b.simulate_price_change().current_price.eth for _ in range(10)]
        assert path_a == path_b

    def test_zero_step_freezes_prices(self):
        oracle = PriceOracle(settings=MarketSettings(max_step=0.0), rng=np.random.default_rng(0))
        event = oracle.simulate_price_change()
        assert event.current_price.eth == 2000.0
        assert event.volatility.overall == 0.0


class TestVolatility:
    """Rolling mean absolute percentage move."""

    def test_volatility_matches_history(self, oracle):
        for _ in range(5):
            oracle.simulate_price_change()
        history = oracle.history
        eth = np.array([p.eth for p in history])
        expected = float(np.mean(np.abs(np.diff(eth) / eth[:-1]))) * 100

        volatility = oracle.get_volatility()
        assert volatility.eth == pytest.approx(expected)
        assert volatility.overall == pytest.approx((volatility.eth + volatility.btc) / 2)

    def test_volatility_uses_window(self):
        settings = MarketSettings(volatility_window=3)
        oracle = PriceOracle(settings=settings, rng=np.random.default_rng(5))
        changes = [oracle.simulate_price_change().change.eth for _ in range(10)]

        expected = np.mean(np.abs(changes[-3:]))
        assert oracle.get_volatility().eth == pytest.approx(expected)

    def test_volatility_bounded_by_max_step(self, oracle):
        for _ in range(50):
            volatility = oracle.simulate_price_change().volatility
            assert 0.0 <= volatility.overall <= 5.0 + 1e-9


class TestReset:

    def test_reset_restores_initial_prices(self, oracle):
        for _ in range(5):
            oracle.simulate_price_change()
        oracle.reset()

        assert oracle.get_current_price().eth == 2000.0
        assert oracle.get_volatility() == Volatility()
        assert len(oracle.history) == 1

    def test_reset_with_new_rng(self):
        oracle = create_oracle(seed=1)
        oracle.reset(np.random.default_rng(9))
        fresh = create_oracle(seed=9)
        assert (
            oracle.simulate_price_change().current_price.eth
            == fresh.simulate_price_change().current_price.eth
        )
