"""Simulation service, multi-step runs and run statistics."""

from dex_simulation.simulation.service import DexSimulation
from dex_simulation.simulation.runner import RunConfig, RunResult, SimulationRunner, StepRecord
from dex_simulation.simulation.stats import format_summary, summarize

__all__ = [
    "DexSimulation",
    "RunConfig",
    "RunResult",
    "SimulationRunner",
    "StepRecord",
    "format_summary",
    "summarize",
]
