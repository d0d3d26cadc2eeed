"""Trade and arbitrage data classes."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

from dex_simulation.core.errors import InvalidTrade

AMOUNT_DECIMALS = 6   # Amounts, prices and rates
PERCENT_DECIMALS = 4  # Slippage, price impact, percentages


class Asset(Enum):
    """The two assets held by the pool."""
    ETH = "ETH"
    BTC = "BTC"

    @classmethod
    def parse(cls, value: Union["Asset", str]) -> "Asset":
        """Accept an Asset or its symbol (case-insensitive)."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise InvalidTrade(f"unknown asset: {value!r}") from None

    @property
    def other(self) -> "Asset":
        return Asset.BTC if self is Asset.ETH else Asset.ETH


class ArbitrageDirection(Enum):
    """Correction direction, named from the pool's side of the trade."""
    BUY_ETH_SELL_BTC = "buy_eth_sell_btc"  # Pool takes ETH in, pays BTC out
    BUY_BTC_SELL_ETH = "buy_btc_sell_eth"  # Pool takes BTC in, pays ETH out


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PoolReserves:
    """Reserve pair and invariant at a point in time."""
    eth: float
    btc: float
    k: float

    def reserve_of(self, asset: Asset) -> float:
        return self.eth if asset is Asset.ETH else self.btc


@dataclass(frozen=True)
class Trade:
    """An executed swap against the pool.

    `amount_in` is the gross input (fee included); `fee` is charged in the
    input asset and held outside the reserves.
    """
    id: str
    from_asset: Asset
    to_asset: Asset
    amount_in: float
    amount_out: float
    fee: float
    slippage: float      # Percent
    price_impact: float  # Percent
    timestamp: datetime

    def __post_init__(self) -> None:
        if self.from_asset is self.to_asset:
            raise InvalidTrade(f"from and to must differ, got {self.from_asset.value} twice")

    @property
    def effective_rate(self) -> float:
        """Output received per unit of gross input."""
        if self.amount_in == 0:
            return 0.0
        return self.amount_out / self.amount_in


@dataclass(frozen=True)
class PriceInfo:
    expected_rate: float
    actual_rate: float
    slippage: float


@dataclass(frozen=True)
class TradeResult:
    """Result bundle returned for every executed trade."""
    trade: Trade
    pool_before: PoolReserves
    pool_after: PoolReserves
    price_info: PriceInfo


@dataclass(frozen=True)
class ArbitrageOpportunity:
    """A divergence between the pool price and the market price.

    Prices are BTC per ETH. `percentage` is the gap relative to the
    market price, in percent.
    """
    id: str
    timestamp: datetime
    pool_price: float
    market_price: float
    difference: float
    percentage: float
    direction: ArbitrageDirection


@dataclass(frozen=True)
class ArbitrageCheckResult:
    """Outcome of an on-demand arbitrage check."""
    message: str
    opportunity: Optional[ArbitrageOpportunity] = None
    trade: Optional[TradeResult] = None

    @property
    def executed(self) -> bool:
        return self.trade is not None
