"""Job management and simulation results."""

from .manager import JobManager
from .results import SimulationResult

__all__ = ["JobManager", "SimulationResult"]
