"""Result of one simulation job: parameters, scatter grid, and raster."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ..core.grid import ScatterGrid
from ..core.parameters import ParameterSet
from ..imaging.export import export_raster
from ..imaging.formation import RasterImage


@dataclass(frozen=True)
class SimulationResult:
    """One completed job.

    Attributes:
        params: Parameters the job ran with
        scatter: Raw scattering output copied from the engine
        raster: 8-bit image formed from the engine's rendered grid
        rendered_shape: (width, height) of the rendered grid before any downscale
    """

    params: ParameterSet
    scatter: ScatterGrid
    raster: RasterImage
    rendered_shape: tuple[int, int]

    @property
    def width(self) -> int:
        return self.raster.width

    @property
    def height(self) -> int:
        return self.raster.height

    @property
    def downscaled(self) -> bool:
        return (self.raster.width, self.raster.height) != self.rendered_shape

    def save(self, path: str | Path, fmt: str | None = None) -> Path:
        """Export the raster with the job's parameters embedded."""
        return export_raster(self.raster, self.params, path, fmt=fmt)


__all__ = ["SimulationResult"]
