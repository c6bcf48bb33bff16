"""Unit conversion utilities.

Angles are carried in radians internally, lengths in the unit named by
the field (``_nm``, ``_mm``).
"""

import math


def deg_to_rad(value: float | int) -> float:
    """Convert degrees to radians."""
    return float(value) * math.pi / 180.0


def rad_to_deg(value: float | int) -> float:
    """Convert radians to degrees."""
    return float(value) * 180.0 / math.pi


__all__ = [
    "deg_to_rad",
    "rad_to_deg",
]
