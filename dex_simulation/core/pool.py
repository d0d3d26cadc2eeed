"""Constant product liquidity pool with LP share accounting and dynamic fees."""

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import TYPE_CHECKING, Optional

import numpy as np

from dex_simulation.config import PoolSettings
from dex_simulation.core.errors import (
    BelowMinimum,
    CapacityExceeded,
    InvalidConfiguration,
    InvariantViolation,
    PoolNotInitialized,
)
from dex_simulation.core.prices import Volatility
from dex_simulation.core.trade import Asset, PoolReserves, utc_now

if TYPE_CHECKING:
    from dex_simulation.core.swap import SwapQuote

logger = logging.getLogger(__name__)

SHARE_TOLERANCE = 1e-9
K_TOLERANCE = 1e-9  # Relative


@dataclass(frozen=True)
class LpUser:
    """A liquidity provider's ledger entry."""
    id: int
    eth_deposit: float
    btc_deposit: float
    share: float = 0.0
    earned_eth: float = 0.0
    earned_btc: float = 0.0
    governance_tokens: float = 0.0

    def value_in_eth(self, eth_per_btc: float) -> float:
        """Deposit value in ETH at the given spot rate."""
        return self.eth_deposit + self.btc_deposit * eth_per_btc


@dataclass(frozen=True)
class PoolSnapshot:
    """Immutable view of the pool at a point in time."""
    eth_reserve: float
    btc_reserve: float
    k: float
    fee_rate: float
    users: tuple[LpUser, ...]
    initial_pool_value: float
    current_pool_value: float
    pool_size_ratio: float
    volatility: Volatility
    last_volatility_update: datetime
    accumulated_fee_eth: float
    accumulated_fee_btc: float

    @property
    def user_count(self) -> int:
        return len(self.users)

    @property
    def spot_price(self) -> float:
        """BTC per ETH before fees."""
        if self.eth_reserve == 0:
            return 0.0
        return self.btc_reserve / self.eth_reserve

    @property
    def reserves(self) -> PoolReserves:
        return PoolReserves(eth=self.eth_reserve, btc=self.btc_reserve, k=self.k)

    def reserve_of(self, asset: Asset) -> float:
        return self.eth_reserve if asset is Asset.ETH else self.btc_reserve

    @property
    def total_share(self) -> float:
        return math.fsum(u.share for u in self.users)


def pool_value(eth_reserve: float, btc_reserve: float) -> float:
    """Pool value denominated in ETH at the pool's own spot price."""
    return eth_reserve + btc_reserve * (eth_reserve / btc_reserve)


def dynamic_fee_rate(
    pool_size_ratio: float,
    overall_volatility: float,
    settings: PoolSettings,
) -> float:
    """Fee rate from pool size drift and market volatility.

    Both components start at 1.0 (ratio 1, no volatility) and only grow:
    the size component with |ratio - 1|, the volatility component with
    overall volatility (percent). The blend scales the base rate and is
    clipped to [min_fee_rate, max_fee_rate].
    """
    size_multiplier = 1.0 + abs(pool_size_ratio - 1.0)
    volatility_multiplier = 1.0 + (max(overall_volatility, 0.0) / 100.0) * settings.volatility_multiplier
    combined = (
        size_multiplier * settings.size_weight
        + volatility_multiplier * settings.volatility_weight
    )
    rate = settings.base_fee_rate * combined
    return max(settings.min_fee_rate, min(settings.max_fee_rate, rate))


@dataclass
class LiquidityPool:
    """ETH/BTC constant product pool owned by a set of LPs.

    Swap fees are skimmed from the input and kept outside the reserves,
    so ordinary swaps leave k = eth * btc unchanged. k is only recomputed
    when an LP joins or leaves. LP shares are each member's deposit value
    at the current spot price over the sum of all deposit values.
    """
    settings: PoolSettings = field(default_factory=PoolSettings)
    rng: np.random.Generator = field(default_factory=np.random.default_rng)
    eth_reserve: float = field(default=0.0, init=False)
    btc_reserve: float = field(default=0.0, init=False)
    k: float = field(default=0.0, init=False)
    fee_rate: float = field(default=0.0, init=False)
    initial_pool_value: float = field(default=0.0, init=False)
    current_pool_value: float = field(default=0.0, init=False)
    pool_size_ratio: float = field(default=1.0, init=False)
    volatility: Volatility = field(default_factory=Volatility, init=False)
    last_volatility_update: datetime = field(default_factory=utc_now, init=False)
    accumulated_fee_eth: float = field(default=0.0, init=False)
    accumulated_fee_btc: float = field(default=0.0, init=False)
    _users: list[LpUser] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        self.fee_rate = self.settings.base_fee_rate

    @property
    def initialized(self) -> bool:
        return bool(self._users)

    @property
    def user_count(self) -> int:
        return len(self._users)

    @property
    def spot_price(self) -> float:
        """BTC per ETH before fees."""
        if self.eth_reserve == 0:
            return 0.0
        return self.btc_reserve / self.eth_reserve

    def initialize(
        self,
        total_eth: Optional[float] = None,
        total_btc: Optional[float] = None,
        user_count: Optional[int] = None,
    ) -> PoolSnapshot:
        """Seed the pool from `user_count` synthetic LPs.

        Each of the first n-1 users takes a random fraction (up to 80%) of
        the weight still unassigned; the last user takes the remainder.
        The same weight splits both assets, so shares equal the weights.
        """
        total_eth = self.settings.initial_eth if total_eth is None else total_eth
        total_btc = self.settings.initial_btc if total_btc is None else total_btc
        user_count = self.settings.initial_user_count if user_count is None else user_count

        if user_count < 1:
            raise InvalidConfiguration(f"user_count must be >= 1, got {user_count}")
        if total_eth <= 0 or total_btc <= 0:
            raise InvalidConfiguration(
                f"pool totals must be > 0, got eth={total_eth} btc={total_btc}"
            )

        weights = self._draw_weights(user_count)
        self._users = [
            LpUser(id=i + 1, eth_deposit=total_eth * w, btc_deposit=total_btc * w)
            for i, w in enumerate(weights)
        ]
        self.eth_reserve = float(total_eth)
        self.btc_reserve = float(total_btc)
        self.k = self.eth_reserve * self.btc_reserve
        self.accumulated_fee_eth = 0.0
        self.accumulated_fee_btc = 0.0
        self.volatility = Volatility()
        self.last_volatility_update = utc_now()

        self._recalculate_shares()
        self._users = [
            replace(u, governance_tokens=u.share * self.settings.initial_tokens_per_share)
            for u in self._users
        ]

        self.initial_pool_value = pool_value(self.eth_reserve, self.btc_reserve)
        self._refresh_fee_rate()
        self._check_invariants()

        logger.info(
            f"Pool initialized: {self.eth_reserve} ETH / {self.btc_reserve} BTC, "
            f"{user_count} users, k={self.k}"
        )
        return self.snapshot()

    def _draw_weights(self, n: int) -> list[float]:
        weights = []
        remaining = 1.0
        for _ in range(n - 1):
            w = float(self.rng.random()) * remaining * 0.8
            weights.append(w)
            remaining -= w
        weights.append(remaining)
        return weights

    def get_pool(self) -> PoolSnapshot:
        self._require_initialized()
        return self.snapshot()

    def snapshot(self) -> PoolSnapshot:
        return PoolSnapshot(
            eth_reserve=self.eth_reserve,
            btc_reserve=self.btc_reserve,
            k=self.k,
            fee_rate=self.fee_rate,
            users=tuple(self._users),
            initial_pool_value=self.initial_pool_value,
            current_pool_value=self.current_pool_value,
            pool_size_ratio=self.pool_size_ratio,
            volatility=self.volatility,
            last_volatility_update=self.last_volatility_update,
            accumulated_fee_eth=self.accumulated_fee_eth,
            accumulated_fee_btc=self.accumulated_fee_btc,
        )

    def add_user(self) -> LpUser:
        """Admit one LP with a deposit near the average holding.

        The deposit is a uniform(0.5, 1.5) multiple of 1/n of the reserves,
        capped at `max_deposit_fraction`, paid in the current reserve ratio
        so the spot price does not move.
        """
        self._require_initialized()
        n = len(self._users)
        if n >= self.settings.max_users:
            raise CapacityExceeded(f"pool already has the maximum of {self.settings.max_users} users")

        fraction = min(float(self.rng.uniform(0.5, 1.5)) / n, self.settings.max_deposit_fraction)
        eth = self.eth_reserve * fraction
        btc = self.btc_reserve * fraction
        user = LpUser(id=max(u.id for u in self._users) + 1, eth_deposit=eth, btc_deposit=btc)

        self._users.append(user)
        self.eth_reserve += eth
        self.btc_reserve += btc
        self.k = self.eth_reserve * self.btc_reserve
        self._recalculate_shares()
        self._refresh_fee_rate()
        self._check_invariants()

        added = self._users[-1]
        logger.info(f"LP {added.id} joined with {eth:.6f} ETH / {btc:.6f} BTC ({len(self._users)} users)")
        return added

    def remove_user(self) -> LpUser:
        """Remove a uniformly chosen LP, who withdraws their share of both reserves."""
        self._require_initialized()
        n = len(self._users)
        if n <= self.settings.min_users:
            raise BelowMinimum(f"pool is at the minimum of {self.settings.min_users} users")

        index = int(self.rng.integers(n))
        user = self._users[index]
        eth_out = self.eth_reserve * user.share
        btc_out = self.btc_reserve * user.share

        del self._users[index]
        self.eth_reserve -= eth_out
        self.btc_reserve -= btc_out
        self.k = self.eth_reserve * self.btc_reserve
        self._recalculate_shares()
        self._refresh_fee_rate()
        self._check_invariants()

        logger.info(
            f"LP {user.id} left with {eth_out:.6f} ETH / {btc_out:.6f} BTC ({len(self._users)} users)"
        )
        return user

    def calculate_fee(self, amount_in: float) -> float:
        """Refresh the fee rate and return the fee on `amount_in`."""
        self._require_initialized()
        return amount_in * self._refresh_fee_rate()

    def refresh_fee_rate(self) -> float:
        self._require_initialized()
        return self._refresh_fee_rate()

    def update_volatility(self, volatility: Volatility) -> None:
        """Store the market's rolling volatility and reprice the fee."""
        self.volatility = volatility
        self.last_volatility_update = utc_now()
        if self.initialized:
            self._refresh_fee_rate()
            logger.debug(
                f"Fee rate {self.fee_rate * 100:.3f}% after volatility update "
                f"(overall {volatility.overall:.4f}%)"
            )

    def apply_swap(self, quote: "SwapQuote") -> PoolSnapshot:
        """Commit a quoted swap and pay its fee out to the LPs.

        The fee goes to the accumulated fee bucket of the input asset and is
        credited to each LP's earnings by share, together with governance
        tokens at `token_generation_rate` per unit of fee.
        """
        self._require_initialized()
        new_eth, new_btc = quote.new_reserves()
        if new_eth <= 0 or new_btc <= 0:
            raise InvariantViolation(f"swap would leave reserves at {new_eth}, {new_btc}")
        if abs(new_eth * new_btc - self.k) > K_TOLERANCE * self.k:
            raise InvariantViolation(
                f"swap moves k from {self.k} to {new_eth * new_btc}"
            )

        self.eth_reserve = new_eth
        self.btc_reserve = new_btc

        fee = quote.fee_charged
        if quote.from_asset is Asset.ETH:
            self.accumulated_fee_eth += fee
        else:
            self.accumulated_fee_btc += fee
        self._distribute_fee(fee, quote.from_asset)

        self._recalculate_shares()
        self._refresh_fee_rate()
        self._check_invariants()
        return self.snapshot()

    def _distribute_fee(self, fee: float, asset: Asset) -> None:
        tokens = fee * self.settings.token_generation_rate
        updated = []
        for user in self._users:
            user_fee = fee * user.share
            if asset is Asset.ETH:
                user = replace(user, earned_eth=user.earned_eth + user_fee)
            else:
                user = replace(user, earned_btc=user.earned_btc + user_fee)
            updated.append(replace(user, governance_tokens=user.governance_tokens + tokens * user.share))
        self._users = updated

    def _recalculate_shares(self) -> None:
        eth_per_btc = self.eth_reserve / self.btc_reserve
        values = [u.value_in_eth(eth_per_btc) for u in self._users]
        total = math.fsum(values)
        if total <= 0:
            raise InvariantViolation("LP deposits have no value")
        self._users = [replace(u, share=v / total) for u, v in zip(self._users, values)]

    def _refresh_fee_rate(self) -> float:
        self.current_pool_value = pool_value(self.eth_reserve, self.btc_reserve)
        self.pool_size_ratio = self.current_pool_value / self.initial_pool_value
        self.fee_rate = dynamic_fee_rate(self.pool_size_ratio, self.volatility.overall, self.settings)
        return self.fee_rate

    def _require_initialized(self) -> None:
        if not self._users:
            raise PoolNotInitialized("Pool not initialized. Call initialize() first.")

    def _check_invariants(self) -> None:
        if self.eth_reserve < 0 or self.btc_reserve < 0:
            raise InvariantViolation(f"negative reserves: {self.eth_reserve}, {self.btc_reserve}")
        total_share = math.fsum(u.share for u in self._users)
        if abs(total_share - 1.0) > SHARE_TOLERANCE:
            raise InvariantViolation(f"shares sum to {total_share}")
        if not self.settings.min_fee_rate <= self.fee_rate <= self.settings.max_fee_rate:
            raise InvariantViolation(f"fee rate {self.fee_rate} out of bounds")
