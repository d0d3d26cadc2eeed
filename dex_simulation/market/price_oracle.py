"""Synthetic reference market: a bounded random walk with rolling volatility."""

import logging
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Optional

import numpy as np

from dex_simulation.config import MarketSettings
from dex_simulation.core.events import EventBus, PriceChanged
from dex_simulation.core.prices import MarketPrice, PriceChange, PriceChangeEvent, Volatility
from dex_simulation.core.trade import utc_now

logger = logging.getLogger(__name__)


@dataclass
class PriceOracle:
    """External ETH and BTC prices driven by independent uniform moves.

    Each step multiplies each price by (1 + u) with u ~ U(-max_step, max_step).
    Volatility per asset is the mean absolute percentage move over the last
    `volatility_window` steps; `overall` is the mean of the two.
    """
    settings: MarketSettings = field(default_factory=MarketSettings)
    rng: np.random.Generator = field(default_factory=np.random.default_rng)
    events: Optional[EventBus] = None

    def __post_init__(self) -> None:
        self._event_counter = 0
        self._set_initial_state()

    def _set_initial_state(self) -> None:
        eth = self.settings.initial_eth_price
        btc = self.settings.initial_btc_price
        self._current = MarketPrice(eth=eth, btc=btc, ratio=eth / btc, timestamp=utc_now())
        self._history: deque[MarketPrice] = deque([self._current], maxlen=self.settings.history_size)
        self._volatility = Volatility()

    def reset(self, rng: Optional[np.random.Generator] = None) -> None:
        """Return to the initial prices, optionally with a new random source."""
        if rng is not None:
            self.rng = rng
        self._set_initial_state()

    def get_current_price(self) -> MarketPrice:
        return self._current

    @property
    def history(self) -> list[MarketPrice]:
        return list(self._history)

    def get_volatility(self) -> Volatility:
        return self._volatility

    def simulate_price_change(self) -> PriceChangeEvent:
        """Advance the market one step and publish the change."""
        previous = self._current
        eth_change = float(self.rng.uniform(-self.settings.max_step, self.settings.max_step))
        btc_change = float(self.rng.uniform(-self.settings.max_step, self.settings.max_step))

        eth = previous.eth * (1 + eth_change)
        btc = previous.btc * (1 + btc_change)
        self._current = replace(previous, eth=eth, btc=btc, ratio=eth / btc, timestamp=utc_now())
        self._history.append(self._current)
        self._volatility = self._rolling_volatility()

        self._event_counter += 1
        event = PriceChangeEvent(
            event_id=f"price_change_{self._event_counter}",
            timestamp=self._current.timestamp,
            previous_price=previous,
            current_price=self._current,
            change=PriceChange(eth=eth_change * 100, btc=btc_change * 100),
            volatility=self._volatility,
        )
        logger.debug(
            f"Market moved: ETH {event.change.eth:+.2f}%, BTC {event.change.btc:+.2f}%, "
            f"volatility {self._volatility.overall:.4f}%"
        )

        if self.events is not None:
            self.events.publish(PriceChanged(event))
        return event

    def _rolling_volatility(self) -> Volatility:
        window = list(self._history)[-(self.settings.volatility_window + 1):]
        if len(window) < 2:
            return Volatility()
        eth = np.array([p.eth for p in window])
        btc = np.array([p.btc for p in window])
        eth_vol = float(np.mean(np.abs(np.diff(eth) / eth[:-1]))) * 100
        btc_vol = float(np.mean(np.abs(np.diff(btc) / btc[:-1]))) * 100
        return Volatility(eth=eth_vol, btc=btc_vol, overall=(eth_vol + btc_vol) / 2)
