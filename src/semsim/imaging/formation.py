"""Image formation: float grid -> calibrated 8-bit raster.

Pipeline per value: min/max normalization, gamma correction, scaling to
[0, 255] with round-half-up, optional lookup-table remap. Rasters larger
than the display ceiling on either axis are downscaled by nearest-neighbor
sampling, preserving aspect ratio.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from ..core.config import MAX_RASTER_DIM, MIN_RASTER_DIM, FormationConfig, LutName
from ..core.errors import FormationError
from ..core.grid import ScatterGrid
from ..core.logging import get_logger
from ..core.types import ByteBuffer, GridLike, Lut

logger = get_logger(__name__)

LUT_SIZE = 256


@dataclass(frozen=True)
class RasterImage:
    """Row-major 8-bit grayscale buffer.

    Attributes:
        buffer: ``width * height`` bytes, row-major
        width: Columns
        height: Rows
    """

    buffer: bytes
    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise FormationError(f"Raster dimensions must be positive, got {self.width}x{self.height}")
        if len(self.buffer) != self.width * self.height:
            raise FormationError(
                f"Raster buffer holds {len(self.buffer)} bytes, expected {self.width}x{self.height}"
            )

    @classmethod
    def from_array(cls, array: ByteBuffer) -> RasterImage:
        """Copy a (height, width) uint8 array into a raster."""
        if array.ndim != 2:
            raise FormationError(f"Expected a 2-D array, got shape {array.shape}")
        height, width = array.shape
        return cls(buffer=np.ascontiguousarray(array, dtype=np.uint8).tobytes(), width=width, height=height)

    def as_array(self) -> ByteBuffer:
        """Read-only (height, width) view of the buffer."""
        return np.frombuffer(self.buffer, dtype=np.uint8).reshape(self.height, self.width)


def identity_lut() -> Lut:
    """LUT that leaves every byte unchanged."""
    return np.arange(LUT_SIZE, dtype=np.uint8)


def inverted_lut() -> Lut:
    """LUT mapping b -> 255 - b."""
    return np.arange(LUT_SIZE - 1, -1, -1, dtype=np.uint8)


def lut_from_name(name: LutName | str | None) -> Lut | None:
    """Resolve a named LUT from config; ``None`` means no remap."""
    if name is None:
        return None
    name = LutName(name)
    if name == LutName.INVERTED:
        return inverted_lut()
    return identity_lut()


def _check_lut(lut: Lut) -> Lut:
    table = np.asarray(lut)
    if table.shape != (LUT_SIZE,):
        raise FormationError(f"Lookup table must have {LUT_SIZE} entries, got shape {table.shape}")
    if table.dtype != np.uint8:
        if np.any(table < 0) or np.any(table > 255):
            raise FormationError("Lookup table entries must lie in [0, 255]")
        table = table.astype(np.uint8)
    return table


def downscaled_shape(rows: int, cols: int, max_dim: int, min_dim: int) -> tuple[int, int]:
    """Target (rows, cols) for a raster; unchanged when within ``max_dim``.

    The larger side becomes ``max_dim``; the smaller side keeps the aspect
    ratio (rounded half up) and is at least ``min_dim``, or its original
    size if that is smaller still.
    """
    if rows <= max_dim and cols <= max_dim:
        return rows, cols

    def scale(small: int, large: int) -> int:
        side = (2 * small * max_dim + large) // (2 * large)
        return max(side, min(min_dim, small))

    if rows >= cols:
        return max_dim, scale(cols, rows)
    return scale(rows, cols), max_dim


def _resample_nearest(pixels: ByteBuffer, new_rows: int, new_cols: int) -> ByteBuffer:
    rows, cols = pixels.shape
    row_idx = (np.arange(new_rows, dtype=np.int64) * rows) // new_rows
    col_idx = (np.arange(new_cols, dtype=np.int64) * cols) // new_cols
    return pixels[np.ix_(row_idx, col_idx)]


def to_grayscale(values: np.ndarray, gamma: float) -> ByteBuffer:
    """Map float values to bytes: normalize, gamma-correct, scale, round.

    A constant grid (max == min) maps entirely to 0. NaN values are
    ignored when finding the range and map to 0.
    """
    if not (gamma > 0 and math.isfinite(gamma)):
        raise FormationError(f"Gamma must be finite and greater than zero, got {gamma}")

    with np.errstate(invalid="ignore", over="ignore"):
        present = values[~np.isnan(values)]
        if present.size:
            lo, hi = present.min(), present.max()
        else:
            lo = hi = 0.0
        span = hi - lo

        if span > 0:
            normalized = (values - lo) / span
        else:
            normalized = np.zeros_like(values)

        corrected = np.power(normalized, 1.0 / gamma)
        scaled = np.floor(corrected * 255.0 + 0.5)
        scaled = np.where(np.isnan(scaled), 0.0, scaled)

    return np.clip(scaled, 0.0, 255.0).astype(np.uint8)


def form_raster(
    grid: ScatterGrid | GridLike,
    gamma: float = 1.0,
    lut: Lut | None = None,
    *,
    max_dim: int = MAX_RASTER_DIM,
    min_dim: int = MIN_RASTER_DIM,
) -> RasterImage:
    """Convert a float grid into an 8-bit raster.

    Args:
        grid: ScatterGrid, or any 2-D array/tensor (rows, cols)
        gamma: Gamma correction factor (> 0); 1.0 is linear
        lut: Optional 256-entry byte remap, applied after scaling
        max_dim: Largest allowed side; bigger rasters are downscaled
        min_dim: Smallest short side after downscaling

    Returns:
        RasterImage with width = cols and height = rows (or the downscaled shape)

    Raises:
        FormationError: gamma <= 0 or malformed lookup table
    """
    if not isinstance(grid, ScatterGrid):
        try:
            grid = ScatterGrid.from_array(grid)
        except ValueError as exc:
            raise FormationError(str(exc)) from exc

    table = _check_lut(lut) if lut is not None else None

    pixels = to_grayscale(grid.values, gamma)
    if table is not None:
        pixels = table[pixels]
    pixels = pixels.reshape(grid.rows, grid.cols)

    new_rows, new_cols = downscaled_shape(grid.rows, grid.cols, max_dim, min_dim)
    if (new_rows, new_cols) != (grid.rows, grid.cols):
        logger.warning(
            "Raster downscaled to fit display limits",
            {
                "from": [grid.rows, grid.cols],
                "to": [new_rows, new_cols],
                "max_dim": max_dim,
            },
        )
        pixels = _resample_nearest(pixels, new_rows, new_cols)

    return RasterImage.from_array(pixels)


def form_raster_with(grid: ScatterGrid | GridLike, config: FormationConfig) -> RasterImage:
    """``form_raster`` driven by a FormationConfig."""
    return form_raster(
        grid,
        gamma=config.gamma,
        lut=lut_from_name(config.lut),
        max_dim=config.max_dim,
        min_dim=config.min_dim,
    )


__all__ = [
    "LUT_SIZE",
    "RasterImage",
    "identity_lut",
    "inverted_lut",
    "lut_from_name",
    "downscaled_shape",
    "to_grayscale",
    "form_raster",
    "form_raster_with",
]
