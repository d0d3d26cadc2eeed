"""Constant product swap quoting."""

from dataclasses import dataclass

from dex_simulation.core.errors import InsufficientLiquidity, InvalidTrade
from dex_simulation.core.pool import PoolSnapshot
from dex_simulation.core.trade import AMOUNT_DECIMALS, PERCENT_DECIMALS, Asset


@dataclass(frozen=True)
class SwapQuote:
    """A priced swap and the reserves it would leave behind.

    Reported figures are rounded; the post-trade reserves are not, so
    committing the quote keeps k exact up to float rounding.
    """
    from_asset: Asset
    to_asset: Asset
    amount_in: float       # Gross, fee included
    fee: float             # Reported, rounded
    fee_charged: float     # Unrounded fee kept out of the reserves and paid to LPs
    fee_rate: float
    amount_in_net: float
    amount_out: float
    expected_price: float  # Pre-trade reserve_out / reserve_in
    actual_price: float    # amount_out / amount_in_net
    slippage: float        # Percent
    price_impact: float    # Percent
    reserve_in_after: float
    reserve_out_after: float

    def new_reserves(self) -> tuple[float, float]:
        """Post-trade (eth, btc) reserves."""
        if self.from_asset is Asset.ETH:
            return self.reserve_in_after, self.reserve_out_after
        return self.reserve_out_after, self.reserve_in_after


class SwapEngine:
    """Quotes swaps against a pool snapshot without touching the pool.

    Fee-on-input model: the fee is taken off the gross input first and only
    the net amount enters the reserves.
        (reserve_in + net) * (reserve_out - amount_out) = k
    """

    def quote(
        self,
        from_asset: Asset,
        to_asset: Asset,
        amount_in: float,
        pool: PoolSnapshot,
    ) -> SwapQuote:
        """Quote `amount_in` of `from_asset` for `to_asset`.

        Uses `pool.fee_rate`, which the pool refreshes in `calculate_fee`
        immediately before a trade.

        Raises:
            InvalidTrade: from and to are the same asset
            InsufficientLiquidity: net input is not positive, or the
                output would empty the out-reserve
        """
        if from_asset is to_asset:
            raise InvalidTrade(f"cannot swap {from_asset.value} for itself")

        reserve_in = pool.reserve_of(from_asset)
        reserve_out = pool.reserve_of(to_asset)
        k = pool.k

        fee = amount_in * pool.fee_rate
        net = amount_in - fee
        if net <= 0:
            raise InsufficientLiquidity(f"net input must be > 0, got {net}")

        new_reserve_in = reserve_in + net
        new_reserve_out = k / new_reserve_in
        amount_out = reserve_out - new_reserve_out
        if amount_out >= reserve_out or new_reserve_out <= 0:
            raise InsufficientLiquidity(
                f"output {amount_out} would drain the {to_asset.value} reserve of {reserve_out}"
            )

        expected_price = reserve_out / reserve_in
        actual_price = amount_out / net
        slippage = abs(actual_price - expected_price) / expected_price * 100
        price_impact = net / reserve_in * 100

        return SwapQuote(
            from_asset=from_asset,
            to_asset=to_asset,
            amount_in=round(amount_in, AMOUNT_DECIMALS),
            fee=round(fee, AMOUNT_DECIMALS),
            fee_charged=fee,
            fee_rate=round(pool.fee_rate, AMOUNT_DECIMALS),
            amount_in_net=round(net, AMOUNT_DECIMALS),
            amount_out=round(amount_out, AMOUNT_DECIMALS),
            expected_price=round(expected_price, AMOUNT_DECIMALS),
            actual_price=round(actual_price, AMOUNT_DECIMALS),
            slippage=round(slippage, PERCENT_DECIMALS),
            price_impact=round(price_impact, PERCENT_DECIMALS),
            reserve_in_after=new_reserve_in,
            reserve_out_after=new_reserve_out,
        )
