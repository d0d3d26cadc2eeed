"""In-process event bus and the events published on it."""

import logging
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Any, Callable

from dex_simulation.core.prices import PriceChangeEvent
from dex_simulation.core.trade import ArbitrageOpportunity, Asset, PoolReserves

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


@dataclass(frozen=True)
class TradeExecuted:
    """Published once for every committed swap."""
    trade_id: str
    from_asset: Asset
    to_asset: Asset
    amount_in: float
    amount_out: float
    fee: float
    slippage: float
    price_impact: float
    pool_before: PoolReserves
    pool_after: PoolReserves


@dataclass(frozen=True)
class ArbitrageOpportunityDetected:
    opportunity: ArbitrageOpportunity


@dataclass(frozen=True)
class PriceChanged:
    event: PriceChangeEvent


class EventBus:
    """Synchronous publish/subscribe registry keyed by event class.

    Handlers run in registration order. An event published from inside a
    handler is queued and delivered once the current event has reached all
    of its handlers, so delivery order always equals publish order. The
    outermost `publish` call returns only after the queue is empty.

    A failing handler is logged and skipped. The remaining handlers and
    queued events are still delivered, and the exception never reaches the
    publisher, whose state change has already happened.
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = defaultdict(list)
        self._queue: deque = deque()
        self._dispatching = False
        self._dispatch_id = 0

    @property
    def dispatching(self) -> bool:
        """True while a publish call is draining the queue."""
        return self._dispatching

    @property
    def dispatch_id(self) -> int:
        """Sequence number of the current (or most recent) outermost publish."""
        return self._dispatch_id

    def subscribe(self, event_type: type, handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: type, handler: Handler) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def subscriber_count(self, event_type: type) -> int:
        return len(self._handlers.get(event_type, []))

    def publish(self, event: Any) -> None:
        """Deliver an event to every handler registered for its class."""
        self._queue.append(event)
        if self._dispatching:
            return

        self._dispatching = True
        self._dispatch_id += 1
        try:
            while self._queue:
                current = self._queue.popleft()
                handlers = list(self._handlers.get(type(current), []))
                logger.debug(f"Dispatching {type(current).__name__} to {len(handlers)} handler(s)")
                for handler in handlers:
                    try:
                        handler(current)
                    except Exception as e:
                        logger.exception(f"Handler for {type(current).__name__} failed: {e}")
        finally:
            self._queue.clear()
            self._dispatching = False
