"""In-process Monte-Carlo stand-in for the native engine.

Produces plausible scatter and image data with torch so the pipeline can
run without the native library. It mimics the native engine's contract,
including its hazards: ``init`` overwrites whatever the previous job left
behind, and getters return ``(None, 0, 0)`` until ``run`` has completed.

The models are deliberately simple:

- probe: lateral spread from the Kanaya-Okayama range, image contrast from
  the backscatter coefficient of the material plus an edge-brightened
  particle, with Poisson shot noise.
- transmission: Gaussian multiple-scattering angles whose width grows with
  sqrt(thickness) and falls with energy.
"""

from __future__ import annotations

import math

import numpy as np
import torch

from ..core.errors import EngineError
from ..core.logging import get_logger
from ..core.parameters import CalibrationMode
from ..materials import Material, get_preset_material
from .base import RawBuffer

logger = get_logger(__name__)

# Electrons histogrammed per torch call
CHUNK = 1 << 20
# Reference thickness and energy for the transmission angular model
REF_THICKNESS_NM = 100.0
REF_ENERGY_KEV = 10.0


def kanaya_okayama_range_um(energy_kev: float, material: Material) -> float:
    """Electron range in micrometers (Kanaya-Okayama)."""
    return (
        0.0276
        * material.atomic_mass_u
        * energy_kev**1.67
        / (material.atomic_number**0.889 * material.density_g_cm3)
    )


def backscatter_coefficient(atomic_number: int) -> float:
    """Backscatter yield eta(Z), Reuter's polynomial fit."""
    z = float(atomic_number)
    return -0.0254 + 0.016 * z - 1.86e-4 * z**2 + 8.3e-7 * z**3


def _histogram2d(
    x: torch.Tensor, y: torch.Tensor, bins: int, half_width: float
) -> torch.Tensor:
    ix = torch.floor((x + half_width) / (2.0 * half_width) * bins).long()
    iy = torch.floor((y + half_width) / (2.0 * half_width) * bins).long()
    keep = (ix >= 0) & (ix < bins) & (iy >= 0) & (iy < bins)
    flat = iy[keep] * bins + ix[keep]
    return torch.bincount(flat, minlength=bins * bins).reshape(bins, bins).to(torch.float64)


class SyntheticEngine:
    """Torch-backed engine backend.

    Args:
        mode: Calibration mode whose ``init`` argument order is accepted
        material: Specimen material (defaults to Copper)
        seed: Seed for the torch generator, re-applied on every run
        scatter_bins: Side length of the scatter grid
        detector_bins: Side length of the transmission detector image
    """

    def __init__(
        self,
        mode: CalibrationMode = CalibrationMode.PROBE,
        material: Material | None = None,
        seed: int = 1337,
        scatter_bins: int = 64,
        detector_bins: int = 256,
    ):
        self.mode = mode
        self.material = material or get_preset_material("Copper")
        self.seed = seed
        self.scatter_bins = scatter_bins
        self.detector_bins = detector_bins
        self._args: tuple[float, float, float, float] | None = None
        self._scatter: np.ndarray | None = None
        self._image: np.ndarray | None = None

    def init(self, energy: float, p2: float | int, p3: float | int, p4: float | int) -> None:
        self._args = (float(energy), float(p2), float(p3), float(p4))
        self._scatter = None
        self._image = None

    def run(self) -> None:
        if self._args is None:
            raise EngineError("run() called before init()")
        gen = torch.Generator().manual_seed(self.seed)
        if self.mode == CalibrationMode.PROBE:
            scatter, image = self._run_probe(gen, *self._args)
        else:
            scatter, image = self._run_transmission(gen, *self._args)
        self._scatter = scatter.numpy()
        self._image = image.numpy()

    def get_scatter_data(self) -> RawBuffer:
        if self._scatter is None:
            return None, 0, 0
        rows, cols = self._scatter.shape
        return self._scatter.reshape(-1), rows, cols

    def get_image_data(self) -> RawBuffer:
        if self._image is None:
            return None, 0, 0
        height, width = self._image.shape
        return self._image.reshape(-1), width, height

    def _run_probe(
        self,
        gen: torch.Generator,
        energy_kev: float,
        current_na: float,
        resolution: float,
        distance_mm: float,
    ) -> tuple[torch.Tensor, torch.Tensor]:
        res = int(resolution)
        range_um = kanaya_okayama_range_um(energy_kev, self.material)
        n_electrons = int(min(max(current_na * 2000.0, 1000.0), 200_000.0))

        # Lateral landing positions inside the interaction volume
        xy = torch.randn(n_electrons, 2, generator=gen, dtype=torch.float64) * (range_um / 2.0)
        scatter = _histogram2d(xy[:, 0], xy[:, 1], self.scatter_bins, range_um)

        # Particle on a flat substrate; apparent size shrinks with working distance
        coords = torch.linspace(-1.0, 1.0, res, dtype=torch.float64)
        yy, xx = torch.meshgrid(coords, coords, indexing="ij")
        radius = 0.6 * min(1.0, 10.0 / distance_mm)
        height = torch.clamp(1.0 - (xx**2 + yy**2) / radius**2, min=0.0).sqrt()
        if res > 1:
            gy, gx = torch.gradient(height)
            slope = torch.sqrt(gx**2 + gy**2) * res / 2.0
        else:
            slope = torch.zeros_like(height)
        contrast = 1.0 + 2.0 * torch.clamp(slope, max=3.0)

        eta = max(backscatter_coefficient(self.material.atomic_number), 1e-3)
        dose = current_na * 50.0
        image = torch.poisson(dose * eta * contrast, generator=gen)

        logger.debug(
            "Synthetic probe run",
            {"range_um": range_um, "electrons": n_electrons, "resolution": res},
        )
        return scatter, image

    def _run_transmission(
        self,
        gen: torch.Generator,
        energy_kev: float,
        thickness_nm: float,
        angle_stddev_rad: float,
        num_electrons: float,
    ) -> tuple[torch.Tensor, torch.Tensor]:
        sigma = angle_stddev_rad * math.sqrt(thickness_nm / REF_THICKNESS_NM)
        sigma *= math.sqrt(REF_ENERGY_KEV / energy_kev)
        # A zero spread still needs a finite histogram window
        half_width = 4.0 * sigma if sigma > 0 else 1e-3

        scatter = torch.zeros(self.scatter_bins, self.scatter_bins, dtype=torch.float64)
        image = torch.zeros(self.detector_bins, self.detector_bins, dtype=torch.float64)
        remaining = int(num_electrons)
        while remaining > 0:
            n = min(remaining, CHUNK)
            theta = torch.randn(n, 2, generator=gen, dtype=torch.float64) * sigma
            scatter += _histogram2d(theta[:, 0], theta[:, 1], self.scatter_bins, half_width)
            image += _histogram2d(
                theta[:, 0], theta[:, 1], self.detector_bins, 0.75 * half_width
            )
            remaining -= n

        logger.debug(
            "Synthetic transmission run",
            {"sigma_rad": sigma, "electrons": int(num_electrons)},
        )
        return scatter, image


__all__ = [
    "SyntheticEngine",
    "kanaya_okayama_range_um",
    "backscatter_coefficient",
]
