"""Test fixtures for pool and market testing."""

from tests.fixtures.pool_fixtures import (
    Engine,
    STANDARD_BTC,
    STANDARD_ETH,
    STANDARD_K,
    STANDARD_USERS,
    create_engine,
    create_oracle,
    create_pool,
    grow_pool,
    make_opportunity,
    price_gap,
    relative_k_error,
    share_total,
)

__all__ = [
    "Engine",
    "STANDARD_BTC",
    "STANDARD_ETH",
    "STANDARD_K",
    "STANDARD_USERS",
    "create_engine",
    "create_oracle",
    "create_pool",
    "grow_pool",
    "make_opportunity",
    "price_gap",
    "relative_k_error",
    "share_total",
]
