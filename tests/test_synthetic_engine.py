"""Test the torch-backed synthetic engine."""

from __future__ import annotations

import numpy as np
import pytest

from semsim.core.config import EngineConfig
from semsim.core.errors import EngineError
from semsim.core.parameters import CalibrationMode
from semsim.engine import EngineBackend, EngineClient, SyntheticEngine, create_backend
from semsim.engine.synthetic import backscatter_coefficient, kanaya_okayama_range_um
from semsim.materials import get_preset_material


def test_protocol():
    assert isinstance(SyntheticEngine(), EngineBackend)


def test_getters_empty_before_run(probe_params):
    engine = SyntheticEngine()
    assert engine.get_scatter_data() == (None, 0, 0)
    engine.init(*probe_params.engine_args())
    assert engine.get_image_data() == (None, 0, 0)


def test_run_before_init():
    with pytest.raises(EngineError):
        SyntheticEngine().run()


def test_probe_shapes(probe_params):
    engine = SyntheticEngine(scatter_bins=32)
    engine.init(*probe_params.engine_args())
    engine.run()

    scatter, rows, cols = engine.get_scatter_data()
    image, width, height = engine.get_image_data()
    assert (rows, cols) == (32, 32)
    assert scatter.size == 32 * 32
    assert (width, height) == (64, 64)
    assert image.size == 64 * 64
    assert scatter.sum() > 0


@pytest.mark.slow
def test_transmission_shapes(transmission_params):
    engine = SyntheticEngine(mode=CalibrationMode.TRANSMISSION, scatter_bins=16, detector_bins=48)
    engine.init(*transmission_params.engine_args())
    engine.run()

    scatter, rows, cols = engine.get_scatter_data()
    _, width, height = engine.get_image_data()
    assert (rows, cols) == (16, 16)
    assert (width, height) == (48, 48)
    # Nearly every electron lands inside a 4-sigma window
    assert scatter.sum() > 0.99 * transmission_params.num_electrons


def test_zero_angle_spread(transmission_params):
    params = transmission_params.model_copy(update={"angle_stddev_rad": 0.0})
    engine = SyntheticEngine(mode=CalibrationMode.TRANSMISSION, scatter_bins=8)
    engine.init(*params.engine_args())
    engine.run()
    scatter, _, _ = engine.get_scatter_data()
    assert np.count_nonzero(scatter) == 1


def test_runs_are_deterministic(probe_params):
    engine = SyntheticEngine(seed=7)
    engine.init(*probe_params.engine_args())
    engine.run()
    first = engine.get_image_data()[0].copy()
    engine.run()
    np.testing.assert_array_equal(first, engine.get_image_data()[0])


def test_init_discards_previous_results(probe_params):
    engine = SyntheticEngine()
    engine.init(*probe_params.engine_args())
    engine.run()
    engine.init(*probe_params.engine_args())
    assert engine.get_scatter_data() == (None, 0, 0)


def test_physics_helpers():
    copper = get_preset_material("Copper")
    carbon = get_preset_material("Carbon")
    assert 0.25 < backscatter_coefficient(29) < 0.35
    assert backscatter_coefficient(6) < backscatter_coefficient(29)
    assert kanaya_okayama_range_um(20.0, carbon) > kanaya_okayama_range_um(20.0, copper)
    assert kanaya_okayama_range_um(20.0, copper) > kanaya_okayama_range_um(10.0, copper)


def test_create_backend_from_config(probe_params):
    backend = create_backend(EngineConfig(material="Silicon", seed=3))
    assert isinstance(backend, SyntheticEngine)
    assert backend.material.name == "Silicon"

    client = EngineClient(backend)
    client.initialize(probe_params)
    client.execute()
    assert client.fetch_scatter_grid().shape == (64, 64)
