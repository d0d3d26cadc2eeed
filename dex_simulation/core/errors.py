"""Error kinds raised by the simulation engine."""


class SimulationError(Exception):
    """Base class for all engine failures."""


class InvalidConfiguration(SimulationError, ValueError):
    """Initialization or settings parameters are out of range."""


class CapacityExceeded(SimulationError):
    """The LP membership is already at its maximum."""


class BelowMinimum(SimulationError):
    """Removing a member would take the LP membership below its floor."""


class InsufficientLiquidity(SimulationError):
    """A swap would drain or invert a reserve, or its net input is not positive."""


class InvalidTrade(SimulationError, ValueError):
    """A trade request names the same asset twice, an unknown asset, or non-positive reserves."""


class PoolNotInitialized(SimulationError, RuntimeError):
    """A pool operation was called before the pool was initialized."""


class InvariantViolation(SimulationError):
    """Pool state failed an internal consistency check."""
