"""SEM simulation orchestration and image formation.

Drives an external, stateful Monte-Carlo electron scattering engine one job
at a time, turns its float output into 8-bit rasters, and exports them with
the run parameters embedded.
"""

__version__ = "0.1.0"

__all__ = [
    "cli",
    "core",
    "engine",
    "imaging",
    "materials",
    "simulation",
]
