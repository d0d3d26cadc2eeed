"""Command-line interface for running DEX pool simulations."""

import argparse
import logging
import sys
from dataclasses import replace
from typing import Optional

from dex_simulation.config import load_settings
from dex_simulation.core.errors import SimulationError
from dex_simulation.simulation.runner import RunConfig, SimulationRunner
from dex_simulation.simulation.service import DexSimulation
from dex_simulation.simulation.stats import format_summary, summarize


def run_command(args: argparse.Namespace) -> int:
    """Run a multi-step simulation and print its summary."""
    settings = load_settings()
    if args.threshold is not None:
        settings = replace(settings, market=replace(settings.market, arbitrage_threshold=args.threshold))
    seed = args.seed if args.seed is not None else settings.seed

    config = RunConfig(
        n_steps=args.steps,
        retail_trades_per_step=args.trades_per_step,
        auto_arbitrage=not args.no_arbitrage,
        add_user_prob=args.add_user_prob,
        remove_user_prob=args.remove_user_prob,
    )

    print(f"Running {config.n_steps} steps (seed={seed})...")
    result = SimulationRunner(config=config, settings=settings).run(seed=seed)
    print()
    print(format_summary(summarize(result)))
    return 0


def status_command(args: argparse.Namespace) -> int:
    """Initialize a fresh pool and print pool and market status."""
    settings = load_settings()
    sim = DexSimulation(settings=settings, seed=args.seed)
    pool = sim.init_liquidity()
    status = sim.get_market_status()

    print(f"Pool: {pool.eth_reserve:,.6f} ETH / {pool.btc_reserve:,.6f} BTC (k={pool.k:,.2f})")
    print(f"Fee rate: {pool.fee_rate * 100:.3f}%   LPs: {pool.user_count}")
    for user in pool.users:
        print(f"  LP {user.id:>2}  share {user.share * 100:6.2f}%  tokens {user.governance_tokens:8.2f}")
    price = status.current_price
    print(f"Market: ETH ${price.eth:,.2f}  BTC ${price.btc:,.2f}  rate {price.reference_rate:.4f}")
    if status.arbitrage_opportunity is None:
        print("No arbitrage opportunity")
    else:
        opp = status.arbitrage_opportunity
        print(f"Arbitrage opportunity: {opp.percentage:.2f}% ({opp.direction.value})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="DEX pool simulation - constant product pool against a synthetic market",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dex-sim run --steps 500 --seed 7
  dex-sim run --steps 200 --trades-per-step 4 --no-arbitrage
  dex-sim status
        """,
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Run a multi-step simulation and print a summary")
    run_parser.add_argument("--steps", type=int, default=100, help="Market steps to simulate")
    run_parser.add_argument("--seed", type=int, default=None, help="Random seed (defaults to DEX_SIM_SEED)")
    run_parser.add_argument(
        "--trades-per-step",
        type=int,
        default=2,
        help="Random retail trades per step",
    )
    run_parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Arbitrage threshold in percent (defaults to shared config)",
    )
    run_parser.add_argument("--add-user-prob", type=float, default=0.1, help="Chance per step of a new LP")
    run_parser.add_argument("--remove-user-prob", type=float, default=0.1, help="Chance per step of an LP leaving")
    run_parser.add_argument(
        "--no-arbitrage",
        action="store_true",
        help="Disable automatic arbitrage correction",
    )
    run_parser.set_defaults(func=run_command)

    status_parser = subparsers.add_parser("status", help="Show a freshly initialized pool and the market")
    status_parser.add_argument("--seed", type=int, default=None, help="Random seed")
    status_parser.set_defaults(func=status_command)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 1

    try:
        return args.func(args)
    except SimulationError as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
