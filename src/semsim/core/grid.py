"""Raw floating-point grids produced by the engine."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import torch

from .types import FloatBuffer, GridLike


@dataclass(frozen=True)
class ScatterGrid:
    """Row-major float64 matrix copied out of engine memory.

    Attributes:
        values: Flat, read-only array of length ``rows * cols``
        rows: Number of rows (> 0)
        cols: Number of columns (> 0)
    """

    values: FloatBuffer
    rows: int
    cols: int

    def __post_init__(self) -> None:
        if self.rows <= 0 or self.cols <= 0:
            raise ValueError(f"Grid dimensions must be positive, got {self.rows}x{self.cols}")
        if self.values.ndim != 1 or self.values.size != self.rows * self.cols:
            raise ValueError(
                f"Grid holds {self.values.size} values, expected {self.rows}x{self.cols}"
            )

    @classmethod
    def from_array(cls, data: GridLike) -> ScatterGrid:
        """Copy a 2-D array or tensor into a new grid."""
        if isinstance(data, torch.Tensor):
            data = data.detach().cpu().numpy()
        array = np.array(data, dtype=np.float64)
        if array.ndim != 2:
            raise ValueError(f"Expected a 2-D array, got shape {array.shape}")
        rows, cols = array.shape
        values = array.reshape(-1)
        values.flags.writeable = False
        return cls(values=values, rows=rows, cols=cols)

    @property
    def shape(self) -> tuple[int, int]:
        return (self.rows, self.cols)

    def as_array(self) -> FloatBuffer:
        """Read-only (rows, cols) view."""
        return self.values.reshape(self.rows, self.cols)


__all__ = ["ScatterGrid"]
