"""Test the ctypes binding against an in-process stand-in library."""

from __future__ import annotations

import ctypes
from types import SimpleNamespace

import numpy as np
import pytest

from semsim.core.errors import EngineContractError, EngineError
from semsim.core.parameters import CalibrationMode
from semsim.engine import EngineClient, EngineSymbols, NativeEngine


class FakeLibrary:
    """Exposes the C symbols as Python callables writing through out-params."""

    def __init__(self, image_null: bool = False):
        self.init_args: list = []
        self.runs = 0
        self.image_null = image_null
        self.scatter = (ctypes.c_double * 6)(*[0.5 * i for i in range(6)])
        self.image = (ctypes.c_double * 4)(0.0, 1.0, 2.0, 3.0)

    def c_init_simulation(self, *args):
        self.init_args.append(args)

    def c_run_simulation(self):
        self.runs += 1

    @staticmethod
    def _fill(storage, data_ref, first_ref, second_ref, first, second):
        data_ref._obj.contents = ctypes.c_double.from_buffer(storage)
        first_ref._obj.value = first
        second_ref._obj.value = second

    def c_get_scatter_data(self, data_ref, rows_ref, cols_ref):
        self._fill(self.scatter, data_ref, rows_ref, cols_ref, 2, 3)

    def c_get_image_data(self, data_ref, width_ref, height_ref):
        if self.image_null:
            width_ref._obj.value = 2
            height_ref._obj.value = 2
            return
        self._fill(self.image, data_ref, width_ref, height_ref, 2, 2)


def test_init_marshals_c_types(probe_params):
    lib = FakeLibrary()
    engine = NativeEngine(lib, mode=CalibrationMode.PROBE)
    engine.init(*probe_params.engine_args())

    (args,) = lib.init_args
    assert [type(a) for a in args] == [
        ctypes.c_double,
        ctypes.c_double,
        ctypes.c_int,
        ctypes.c_double,
    ]
    assert [a.value for a in args] == [15.0, 1.0, 64, 10.0]


def test_transmission_electron_count_is_int(transmission_params):
    lib = FakeLibrary()
    NativeEngine(lib, mode=CalibrationMode.TRANSMISSION).init(*transmission_params.engine_args())
    args = lib.init_args[0]
    assert isinstance(args[3], ctypes.c_int)
    assert args[3].value == 50_000


def test_out_params_through_client(probe_params):
    lib = FakeLibrary()
    client = EngineClient(NativeEngine(lib))
    client.initialize(probe_params)
    client.execute()

    grid = client.fetch_scatter_grid()
    values, width, height = client.fetch_rendered_grid()

    assert lib.runs == 1
    assert grid.as_array().tolist() == [[0.0, 0.5, 1.0], [1.5, 2.0, 2.5]]
    assert (width, height) == (2, 2)
    assert values.tolist() == [0.0, 1.0, 2.0, 3.0]

    lib.scatter[0] = 42.0
    assert grid.values[0] == 0.0


def test_null_out_pointer(probe_params):
    client = EngineClient(NativeEngine(FakeLibrary(image_null=True)))
    client.initialize(probe_params)
    client.execute()
    with pytest.raises(EngineContractError, match="null image"):
        client.fetch_rendered_grid()


def test_custom_symbol_names():
    lib = SimpleNamespace(
        start=lambda *a: None,
        go=lambda: None,
        scatter=lambda *a: None,
        image=lambda *a: None,
    )
    engine = NativeEngine(lib, symbols=EngineSymbols(init="start", run="go", scatter="scatter", image="image"))
    raw, rows, cols = engine.get_scatter_data()
    assert raw is None
    assert (rows, cols) == (0, 0)


def test_missing_symbol():
    with pytest.raises(EngineError, match="missing a symbol"):
        NativeEngine(SimpleNamespace(c_init_simulation=lambda *a: None))


def test_missing_library(tmp_path):
    with pytest.raises(EngineError, match="Cannot load"):
        NativeEngine(tmp_path / "libmissing.so")


def test_bool_argument_rejected():
    engine = NativeEngine(FakeLibrary())
    with pytest.raises(TypeError):
        engine.init(15.0, True, 64, 10.0)


def test_copy_is_float64(probe_params):
    client = EngineClient(NativeEngine(FakeLibrary()))
    client.initialize(probe_params)
    client.execute()
    assert client.fetch_scatter_grid().values.dtype == np.float64


@pytest.mark.parametrize("value", [2**31, 2**32, -(2**31) - 1])
def test_int_argument_out_of_c_range(value):
    lib = FakeLibrary()
    engine = NativeEngine(lib)
    with pytest.raises(EngineError, match="does not fit a C int"):
        engine.init(15.0, 1.0, value, 10.0)
    assert lib.init_args == []


def test_int_argument_at_c_range_limit():
    lib = FakeLibrary()
    NativeEngine(lib).init(15.0, 1.0, 2**31 - 1, 10.0)
    assert lib.init_args[0][2].value == 2**31 - 1
