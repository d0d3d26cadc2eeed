"""Summary statistics for simulation runs."""

from typing import Dict

import numpy as np

from dex_simulation.core.trade import Asset
from dex_simulation.simulation.runner import RunResult


def summarize(result: RunResult) -> Dict:
    """Aggregate a run into a flat dict of headline numbers."""
    executed = result.executed
    final = result.final_pool

    volume = {Asset.ETH: 0.0, Asset.BTC: 0.0}
    fees = {Asset.ETH: 0.0, Asset.BTC: 0.0}
    for event in executed:
        volume[event.from_asset] += event.amount_in
        fees[event.from_asset] += event.fee

    slippages = [event.slippage for event in executed]
    gaps = [
        abs(s.pool_price - s.market_price) / s.market_price * 100
        for s in result.steps
    ]

    return {
        'steps': len(result.steps),
        'trades': len(executed),
        'arbitrage_trades': sum(1 for e in executed if e.trade_id.startswith("arbitrage_")),
        'volume_eth': volume[Asset.ETH],
        'volume_btc': volume[Asset.BTC],
        'fees_eth': fees[Asset.ETH],
        'fees_btc': fees[Asset.BTC],
        'mean_slippage': float(np.mean(slippages)) if slippages else 0.0,
        'max_slippage': max(slippages) if slippages else 0.0,
        'mean_price_gap': float(np.mean(gaps)) if gaps else 0.0,
        'final_eth_reserve': final.eth_reserve,
        'final_btc_reserve': final.btc_reserve,
        'final_fee_rate': final.fee_rate,
        'final_user_count': final.user_count,
        'total_governance_tokens': sum(u.governance_tokens for u in final.users),
        'k_drift': abs(final.eth_reserve * final.btc_reserve - final.k) / final.k,
    }


def format_summary(summary: Dict) -> str:
    """Render a summary dict as aligned text lines."""
    width = max(len(key) for key in summary)
    lines = []
    for key, value in summary.items():
        if isinstance(value, float):
            lines.append(f"{key:<{width}}  {value:,.6f}")
        else:
            lines.append(f"{key:<{width}}  {value}")
    return "\n".join(lines)
