"""Multi-step simulation runs over the engine's operation surface."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from dex_simulation.config import SimulationSettings
from dex_simulation.core.errors import BelowMinimum, CapacityExceeded, InvalidConfiguration
from dex_simulation.core.events import TradeExecuted
from dex_simulation.core.pool import PoolSnapshot
from dex_simulation.core.trade import ArbitrageOpportunity, TradeResult
from dex_simulation.simulation.service import DexSimulation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunConfig:
    """Shape of a simulation run."""
    n_steps: int = 100
    retail_trades_per_step: int = 2
    auto_arbitrage: bool = True
    add_user_prob: float = 0.1
    remove_user_prob: float = 0.1

    def __post_init__(self) -> None:
        if self.n_steps < 1:
            raise InvalidConfiguration(f"n_steps must be >= 1, got {self.n_steps}")
        if self.retail_trades_per_step < 0:
            raise InvalidConfiguration(
                f"retail_trades_per_step must be >= 0, got {self.retail_trades_per_step}"
            )
        if self.add_user_prob < 0 or self.remove_user_prob < 0 or self.add_user_prob + self.remove_user_prob > 1:
            raise InvalidConfiguration("LP churn probabilities must be >= 0 and sum to at most 1")


@dataclass
class StepRecord:
    """What happened during one step."""
    step: int
    market_price: float  # Reference BTC/ETH rate
    pool_price: float    # Pool BTC/ETH spot
    fee_rate: float
    user_count: int
    trades: list[TradeResult] = field(default_factory=list)
    arbitrage: Optional[ArbitrageOpportunity] = None


@dataclass
class RunResult:
    seed: Optional[int]
    initial_pool: PoolSnapshot
    final_pool: PoolSnapshot
    steps: list[StepRecord]
    executed: list[TradeExecuted]

    @property
    def arbitrage_count(self) -> int:
        return sum(1 for s in self.steps if s.arbitrage is not None)


class SimulationRunner:
    """Drives a DexSimulation through repeated market steps.

    Each step moves the reference market, sends random retail trades to the
    pool, lets the arbitrage monitor correct any divergence, and sometimes
    admits or removes an LP.
    """

    def __init__(
        self,
        config: Optional[RunConfig] = None,
        settings: Optional[SimulationSettings] = None,
    ):
        self.config = config or RunConfig()
        self.settings = settings

    def run(self, seed: Optional[int] = None) -> RunResult:
        sim = DexSimulation(settings=self.settings, seed=seed)
        executed: list[TradeExecuted] = []
        sim.events.subscribe(TradeExecuted, executed.append)

        initial_pool = sim.init_liquidity()
        steps = [self._step(sim, i) for i in range(self.config.n_steps)]
        final_pool = sim.get_pool()

        logger.info(
            f"Run finished: {self.config.n_steps} steps, {len(executed)} trades, "
            f"{sum(1 for s in steps if s.arbitrage is not None)} arbitrage corrections"
        )
        return RunResult(
            seed=seed,
            initial_pool=initial_pool,
            final_pool=final_pool,
            steps=steps,
            executed=executed,
        )

    def _step(self, sim: DexSimulation, step: int) -> StepRecord:
        sim.simulate_price_change()
        trades = [sim.execute_random_trade() for _ in range(self.config.retail_trades_per_step)]

        arbitrage = None
        if self.config.auto_arbitrage:
            arbitrage = sim.check_and_emit_arbitrage_opportunity()
            if arbitrage is not None and sim.monitor.last_correction is not None:
                trades.append(sim.monitor.last_correction)

        self._maybe_churn(sim)

        pool = sim.get_pool()
        return StepRecord(
            step=step,
            market_price=sim.get_current_price().reference_rate,
            pool_price=pool.spot_price,
            fee_rate=pool.fee_rate,
            user_count=pool.user_count,
            trades=trades,
            arbitrage=arbitrage,
        )

    def _maybe_churn(self, sim: DexSimulation) -> None:
        draw = float(sim.rng.random())
        try:
            if draw < self.config.add_user_prob:
                sim.add_random_user()
            elif draw < self.config.add_user_prob + self.config.remove_user_prob:
                sim.remove_random_user()
        except (CapacityExceeded, BelowMinimum) as e:
            logger.debug(f"LP churn skipped: {e}")
