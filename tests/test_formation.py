"""Test conversion of float grids into 8-bit rasters."""

from __future__ import annotations

import numpy as np
import pytest
import torch

from semsim.core.config import FormationConfig, LutName
from semsim.core.errors import FormationError
from semsim.core.grid import ScatterGrid
from semsim.imaging.formation import (
    RasterImage,
    downscaled_shape,
    form_raster,
    form_raster_with,
    identity_lut,
    inverted_lut,
    lut_from_name,
)


def test_basic_mapping():
    raster = form_raster(np.array([[0.0, 255.0], [128.0, 64.0]]))
    assert (raster.width, raster.height) == (2, 2)
    assert raster.buffer == bytes([0, 255, 128, 64])


def test_width_is_columns():
    raster = form_raster(np.arange(6, dtype=float).reshape(2, 3))
    assert (raster.width, raster.height) == (3, 2)
    assert raster.as_array()[0, 0] == 0
    assert raster.as_array()[1, 2] == 255


def test_rounds_half_up():
    # Midpoint lands exactly on 127.5
    assert list(form_raster(np.array([[0.0, 1.0, 2.0]])).buffer) == [0, 128, 255]


def test_constant_grid_maps_to_zero():
    raster = form_raster(np.full((3, 4), 7.25))
    assert raster.buffer == bytes(12)


def test_monotonic_at_linear_gamma():
    values = np.sort(np.random.default_rng(1).normal(size=100)).reshape(10, 10)
    pixels = np.frombuffer(form_raster(values).buffer, dtype=np.uint8)
    assert np.all(np.diff(pixels.astype(int)) >= 0)
    assert pixels[0] == 0
    assert pixels[-1] == 255


def test_gamma_brightens_midtones():
    grid = np.array([[0.0, 0.25, 1.0]])
    linear = form_raster(grid).buffer
    corrected = form_raster(grid, gamma=2.0).buffer
    assert linear[1] == 64
    assert abs(corrected[1] - 128) <= 1
    assert (corrected[0], corrected[2]) == (0, 255)


@pytest.mark.parametrize("gamma", [0.0, -1.0, float("nan"), float("inf")])
def test_invalid_gamma(gamma):
    with pytest.raises(FormationError, match="Gamma"):
        form_raster(np.ones((2, 2)), gamma=gamma)


def test_lut_applied_after_scaling():
    grid = np.array([[0.0, 255.0], [128.0, 64.0]])
    raster = form_raster(grid, lut=inverted_lut())
    assert raster.buffer == bytes([255, 0, 127, 191])
    assert form_raster(grid, lut=identity_lut()).buffer == bytes([0, 255, 128, 64])


def test_bad_lut():
    with pytest.raises(FormationError, match="256 entries"):
        form_raster(np.ones((2, 2)), lut=np.arange(10))
    with pytest.raises(FormationError, match=r"\[0, 255\]"):
        form_raster(np.ones((2, 2)), lut=np.arange(256) + 1)


def test_lut_from_name():
    assert lut_from_name(None) is None
    assert lut_from_name("inverted")[0] == 255
    np.testing.assert_array_equal(lut_from_name(LutName.IDENTITY), identity_lut())


def test_nan_values():
    grid = np.array([[np.nan, 0.0], [10.0, 5.0]])
    assert form_raster(grid).buffer == bytes([0, 0, 255, 128])

    all_nan = form_raster(np.full((2, 2), np.nan))
    assert all_nan.buffer == bytes(4)


def test_accepts_tensor_and_grid():
    tensor = torch.tensor([[0.0, 255.0], [128.0, 64.0]], dtype=torch.float64)
    grid = ScatterGrid.from_array(tensor)
    assert form_raster(tensor).buffer == form_raster(grid).buffer


def test_rejects_non_2d():
    with pytest.raises(FormationError):
        form_raster(np.ones(4))


def test_deterministic():
    values = np.random.default_rng(5).random((17, 9))
    assert form_raster(values, gamma=1.7).buffer == form_raster(values, gamma=1.7).buffer


def test_no_downscale_within_limit():
    assert downscaled_shape(100, 50, max_dim=100, min_dim=16) == (100, 50)


def test_downscale_preserves_aspect():
    rows, cols = downscaled_shape(40, 10, max_dim=8, min_dim=1)
    assert rows == 8
    assert abs(cols - 2) <= 1

    rows, cols = downscaled_shape(3000, 20000, max_dim=16384, min_dim=16)
    assert cols == 16384
    assert abs(rows - round(3000 * 16384 / 20000)) <= 1


def test_downscale_short_side_floor():
    assert downscaled_shape(10, 1000, max_dim=100, min_dim=16) == (10, 100)
    assert downscaled_shape(100, 1000, max_dim=100, min_dim=16) == (16, 100)


def test_downscaled_raster():
    grid = np.tile(np.arange(40, dtype=float)[:, None], (1, 10))
    raster = form_raster(grid, max_dim=8, min_dim=1)
    assert raster.height == 8
    assert abs(raster.width - 2) <= 1
    column = raster.as_array()[:, 0]
    assert np.all(np.diff(column.astype(int)) >= 0)


def test_form_raster_with_config():
    config = FormationConfig(gamma=1.0, lut=LutName.INVERTED, max_dim=16, min_dim=1)
    raster = form_raster_with(np.zeros((1, 32)) + np.arange(32), config)
    assert (raster.width, raster.height) == (16, 1)
    assert raster.buffer[0] == 255


def test_raster_image_validation():
    with pytest.raises(FormationError):
        RasterImage(buffer=bytes(5), width=2, height=2)
    with pytest.raises(FormationError):
        RasterImage(buffer=b"", width=0, height=0)


def test_raster_image_immutable():
    raster = RasterImage.from_array(np.zeros((2, 2), dtype=np.uint8))
    with pytest.raises(AttributeError):
        raster.width = 3
    assert not raster.as_array().flags.writeable
