"""Pytest configuration and shared fixtures for engine tests.

This module provides:
- Shared fixtures for seeded pools, oracles and wired engines
- Pytest markers for test categorization
- Event capture helpers
"""

from typing import Callable

import numpy as np
import pytest

from dex_simulation.core.events import EventBus
from dex_simulation.core.pool import LiquidityPool
from dex_simulation.simulation.service import DexSimulation
from tests.fixtures.pool_fixtures import Engine, create_engine, create_pool


# ============================================================================
# Pytest Hooks
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "invariant: Pool invariant tests (k, share sum, fee bounds)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests spanning multiple components"
    )


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on location and name."""
    for item in items:
        if "invariant" in item.name:
            item.add_marker(pytest.mark.invariant)

        if any(keyword in item.nodeid for keyword in ["service", "runner", "arbitrage", "cli"]):
            item.add_marker(pytest.mark.integration)


# ============================================================================
# Seed Fixtures
# ============================================================================


@pytest.fixture
def fixed_seed() -> int:
    """Fixed random seed for deterministic tests.

    Returns:
        42
    """
    return 42


@pytest.fixture
def rng(fixed_seed) -> np.random.Generator:
    """Seeded numpy generator."""
    return np.random.default_rng(fixed_seed)


# ============================================================================
# Engine Fixtures
# ============================================================================


@pytest.fixture
def pool(fixed_seed) -> LiquidityPool:
    """Standard initialized pool.

    Returns:
        1000 ETH / 30000 BTC pool with 10 LPs and k = 30,000,000
    """
    return create_pool(seed=fixed_seed)


@pytest.fixture
def engine(fixed_seed) -> Engine:
    """Standard pool wired against a market with no divergence (rate 30)."""
    return create_engine(market_rate=30.0, seed=fixed_seed)


@pytest.fixture
def diverged_engine(fixed_seed) -> Engine:
    """Standard pool against a market at 33 BTC per ETH (a 9.09% gap)."""
    return create_engine(market_rate=33.0, seed=fixed_seed)


@pytest.fixture
def simulation(fixed_seed) -> DexSimulation:
    """Seeded simulation service with an initialized pool."""
    sim = DexSimulation(seed=fixed_seed)
    sim.init_liquidity()
    return sim


# ============================================================================
# Event Capture
# ============================================================================


@pytest.fixture
def capture() -> Callable[[EventBus, type], list]:
    """Subscribe a recorder to a bus.

    Returns:
        Function (bus, event_type) -> list that fills as events arrive.

    Example:
        >>> def test_publishes(engine, capture):
        ...     trades = capture(engine.events, TradeExecuted)
        ...     engine.coordinator.execute_random_trade()
        ...     assert len(trades) == 1
    """

    def subscribe(bus: EventBus, event_type: type) -> list:
        received: list = []
        bus.subscribe(event_type, received.append)
        return received

    return subscribe
