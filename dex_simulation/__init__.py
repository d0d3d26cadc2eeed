"""Constant-product DEX pool simulation with an external reference market."""

from dex_simulation.core.errors import (
    BelowMinimum,
    CapacityExceeded,
    InsufficientLiquidity,
    InvalidConfiguration,
    InvalidTrade,
    PoolNotInitialized,
    SimulationError,
)
from dex_simulation.core.trade import ArbitrageDirection, ArbitrageOpportunity, Asset, Trade, TradeResult
from dex_simulation.simulation.service import DexSimulation

__all__ = [
    "ArbitrageDirection",
    "ArbitrageOpportunity",
    "Asset",
    "BelowMinimum",
    "CapacityExceeded",
    "DexSimulation",
    "InsufficientLiquidity",
    "InvalidConfiguration",
    "InvalidTrade",
    "PoolNotInitialized",
    "SimulationError",
    "Trade",
    "TradeResult",
]
