import os
import random
import threading
import time

import numpy as np
import pytest
import torch

from semsim.core.parameters import CalibrationMode, ProbeParameters, TransmissionParameters


def pytest_configure(config: pytest.Config) -> None:  # noqa: ARG001
    config.addinivalue_line("markers", "slow: marks tests that run the synthetic engine at size")


@pytest.fixture(autouse=True)
def seed_rng() -> None:
    random.seed(0)
    np.random.seed(0)
    torch.manual_seed(0)
    os.environ["PYTHONHASHSEED"] = "0"


class ScriptedEngine:
    """Engine double with global, overwritable state.

    The scatter grid is filled with the energy of the job currently
    configured, so a result can be matched to the parameters that made it.
    ``overlaps`` counts engine sequences that started before the previous
    one finished fetching.
    """

    def __init__(
        self,
        mode: CalibrationMode = CalibrationMode.PROBE,
        scatter_shape: tuple[int, int] = (2, 3),
        image: np.ndarray | None = None,
        run_delay: float = 0.0,
    ):
        self.mode = mode
        self.scatter_shape = scatter_shape
        self.image = image if image is not None else np.array([[0.0, 255.0], [128.0, 64.0]])
        self.run_delay = run_delay
        self.calls: list[tuple[str, float]] = []
        self.overlaps = 0
        self._energy: float | None = None
        self._busy = False
        self._scatter: np.ndarray | None = None
        self._guard = threading.Lock()

    def init(self, energy, p2, p3, p4) -> None:
        with self._guard:
            if self._busy:
                self.overlaps += 1
            self._busy = True
        self._energy = energy
        self._scatter = None
        self.calls.append(("init", energy))

    def run(self) -> None:
        energy = self._energy
        if self.run_delay:
            time.sleep(self.run_delay)
        self._scatter = np.full(self.scatter_shape, energy, dtype=np.float64)
        self.calls.append(("run", energy))

    def get_scatter_data(self):
        rows, cols = self._scatter.shape
        return self._scatter.reshape(-1), rows, cols

    def get_image_data(self):
        height, width = self.image.shape
        with self._guard:
            self._busy = False
        return self.image.reshape(-1), width, height


class NullBufferEngine(ScriptedEngine):
    """Reports a null scatter buffer."""

    def get_scatter_data(self):
        return None, 2, 3


class BadDimsEngine(ScriptedEngine):
    """Reports non-positive image dimensions."""

    def get_image_data(self):
        return np.zeros(4), 0, 4


@pytest.fixture()
def scripted_engine() -> ScriptedEngine:
    return ScriptedEngine()


@pytest.fixture()
def probe_params() -> ProbeParameters:
    return ProbeParameters(energy_kev=15.0, current_na=1.0, resolution=64, distance_mm=10.0)


@pytest.fixture()
def transmission_params() -> TransmissionParameters:
    return TransmissionParameters(
        energy_kev=15.0, thickness_nm=100.0, angle_stddev_rad=0.5, num_electrons=50_000
    )
