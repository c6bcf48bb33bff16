"""Type definitions and aliases for the simulation pipeline."""

from typing import Any, Union

import numpy as np
import numpy.typing as npt
import torch

Tensor = torch.Tensor

# Raw engine output, float64, row-major
FloatBuffer = npt.NDArray[np.float64]
# 8-bit raster data, row-major
ByteBuffer = npt.NDArray[np.uint8]
# 256-entry byte-to-byte remap table
Lut = npt.NDArray[np.uint8]

# Anything form_raster can treat as a 2-D grid
GridLike = Union[FloatBuffer, Tensor, Any]

# Engine init arguments: (energy, p2, p3, p4)
EngineArgs = tuple[float | int, float | int, float | int, float | int]

__all__ = [
    "Tensor",
    "FloatBuffer",
    "ByteBuffer",
    "Lut",
    "GridLike",
    "EngineArgs",
]
