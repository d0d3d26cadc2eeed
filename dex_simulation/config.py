"""Shared configuration for the pool, the reference market and trading."""

import os
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional

from dex_simulation.core.errors import InvalidConfiguration


@dataclass(frozen=True)
class PoolSettings:
    initial_eth: float = 1000.0
    initial_btc: float = 30000.0
    initial_user_count: int = 10
    min_users: int = 10
    max_users: int = 30
    # Largest deposit a single new LP may add, as a fraction of reserves
    # (1.5 / min_users, so only outlier draws are clipped)
    max_deposit_fraction: float = 0.15
    base_fee_rate: float = 0.003
    min_fee_rate: float = 0.0005
    max_fee_rate: float = 0.01
    # Volatility of 1% raises the volatility component by 2%
    volatility_multiplier: float = 2.0
    size_weight: float = 0.6
    volatility_weight: float = 0.4
    # Governance tokens minted per unit of fee
    token_generation_rate: float = 10.0
    initial_tokens_per_share: float = 100.0

    def __post_init__(self) -> None:
        if self.initial_eth <= 0 or self.initial_btc <= 0:
            raise InvalidConfiguration(
                f"initial reserves must be > 0, got eth={self.initial_eth} btc={self.initial_btc}"
            )
        if not 1 <= self.min_users <= self.max_users:
            raise InvalidConfiguration(
                f"need 1 <= min_users <= max_users, got {self.min_users}, {self.max_users}"
            )
        if not 0 < self.max_deposit_fraction <= 1:
            raise InvalidConfiguration(
                f"max_deposit_fraction must be in (0, 1], got {self.max_deposit_fraction}"
            )
        if not 0 <= self.min_fee_rate <= self.base_fee_rate <= self.max_fee_rate < 1:
            raise InvalidConfiguration(
                "need 0 <= min_fee_rate <= base_fee_rate <= max_fee_rate < 1, got "
                f"{self.min_fee_rate}, {self.base_fee_rate}, {self.max_fee_rate}"
            )


@dataclass(frozen=True)
class MarketSettings:
    initial_eth_price: float = 2000.0
    initial_btc_price: float = 60000.0
    max_step: float = 0.05         # Largest per-step move (+/- 5%)
    history_size: int = 100
    volatility_window: int = 20    # Returns used for rolling volatility
    arbitrage_threshold: float = 5.0  # Percent

    def __post_init__(self) -> None:
        if self.initial_eth_price <= 0 or self.initial_btc_price <= 0:
            raise InvalidConfiguration("initial market prices must be > 0")
        if not 0 <= self.max_step < 1:
            raise InvalidConfiguration(f"max_step must be in [0, 1), got {self.max_step}")
        if self.history_size < 2 or self.volatility_window < 1:
            raise InvalidConfiguration("history_size must be >= 2 and volatility_window >= 1")
        if self.arbitrage_threshold < 0:
            raise InvalidConfiguration(
                f"arbitrage_threshold must be >= 0, got {self.arbitrage_threshold}"
            )


@dataclass(frozen=True)
class TradeSettings:
    random_ratio_min: float = 0.01
    random_ratio_max: float = 0.06
    arbitrage_ratio_min: float = 0.01
    arbitrage_ratio_max: float = 0.03

    def __post_init__(self) -> None:
        if not 0 < self.random_ratio_min <= self.random_ratio_max < 1:
            raise InvalidConfiguration("random trade ratios must satisfy 0 < min <= max < 1")
        if not 0 < self.arbitrage_ratio_min <= self.arbitrage_ratio_max < 1:
            raise InvalidConfiguration("arbitrage trade ratios must satisfy 0 < min <= max < 1")


@dataclass(frozen=True)
class SimulationSettings:
    pool: PoolSettings = field(default_factory=PoolSettings)
    market: MarketSettings = field(default_factory=MarketSettings)
    trading: TradeSettings = field(default_factory=TradeSettings)
    seed: Optional[int] = None


DEFAULT_SETTINGS = SimulationSettings()


def _env_number(env: Mapping[str, str], name: str, cast):
    raw = env.get(name)
    if raw is None or raw == "":
        return None
    try:
        return cast(raw)
    except ValueError:
        raise InvalidConfiguration(f"{name} must be a number, got {raw!r}") from None


def load_settings(
    base: SimulationSettings = DEFAULT_SETTINGS,
    env: Optional[Mapping[str, str]] = None,
) -> SimulationSettings:
    """Apply DEX_SIM_* environment overrides on top of `base`."""
    env = os.environ if env is None else env

    pool = base.pool
    initial_eth = _env_number(env, "DEX_SIM_INITIAL_ETH", float)
    initial_btc = _env_number(env, "DEX_SIM_INITIAL_BTC", float)
    user_count = _env_number(env, "DEX_SIM_USER_COUNT", int)
    if initial_eth is not None:
        pool = replace(pool, initial_eth=initial_eth)
    if initial_btc is not None:
        pool = replace(pool, initial_btc=initial_btc)
    if user_count is not None:
        pool = replace(pool, initial_user_count=user_count)

    market = base.market
    threshold = _env_number(env, "DEX_SIM_ARBITRAGE_THRESHOLD", float)
    if threshold is not None:
        market = replace(market, arbitrage_threshold=threshold)

    seed = _env_number(env, "DEX_SIM_SEED", int)
    return replace(
        base,
        pool=pool,
        market=market,
        seed=base.seed if seed is None else seed,
    )
