"""ctypes binding to the native Monte-Carlo engine library.

The library exposes a C interface::

    void c_init_simulation(double energy, <p2>, <p3>, <p4>);
    void c_run_simulation(void);
    void c_get_scatter_data(double** data, int* rows, int* cols);
    void c_get_image_data(double** data, int* width, int* height);

The C types of ``p2..p4`` follow the Python types of the calibration
mode's fields: floats are passed as ``double``, integers as ``int``.
"""

from __future__ import annotations

import ctypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..core.errors import EngineError
from ..core.logging import get_logger
from ..core.parameters import CalibrationMode
from .base import RawBuffer

logger = get_logger(__name__)

C_INT_MIN = -(2**31)
C_INT_MAX = 2**31 - 1


@dataclass(frozen=True)
class EngineSymbols:
    """Exported function names of the native library."""

    init: str = "c_init_simulation"
    run: str = "c_run_simulation"
    scatter: str = "c_get_scatter_data"
    image: str = "c_get_image_data"


def _to_c(value: float | int) -> ctypes.c_double | ctypes.c_int:
    if isinstance(value, bool):
        raise TypeError("Engine arguments must be numeric, got bool")
    if isinstance(value, int):
        if not C_INT_MIN <= value <= C_INT_MAX:
            raise EngineError(f"Engine argument {value} does not fit a C int")
        return ctypes.c_int(value)
    return ctypes.c_double(float(value))


class NativeEngine:
    """Engine backend backed by a shared library.

    Args:
        library: Path to the shared library, or an already loaded library object
        mode: Calibration mode the library was built for
        symbols: Exported function names
    """

    def __init__(
        self,
        library: str | Path | Any,
        mode: CalibrationMode = CalibrationMode.PROBE,
        symbols: EngineSymbols | None = None,
    ):
        self.mode = mode
        self.symbols = symbols or EngineSymbols()
        if isinstance(library, (str, Path)):
            try:
                self._lib = ctypes.CDLL(str(library))
            except OSError as exc:
                raise EngineError(f"Cannot load engine library {library}: {exc}") from exc
            logger.info("Loaded engine library", {"path": str(library), "mode": mode.value})
        else:
            self._lib = library
        self._bind()

    def _bind(self) -> None:
        try:
            self._init = getattr(self._lib, self.symbols.init)
            self._run = getattr(self._lib, self.symbols.run)
            self._scatter = getattr(self._lib, self.symbols.scatter)
            self._image = getattr(self._lib, self.symbols.image)
        except AttributeError as exc:
            raise EngineError(f"Engine library is missing a symbol: {exc}") from exc

        for fn in (self._init, self._run, self._scatter, self._image):
            if isinstance(fn, ctypes._CFuncPtr):
                fn.restype = None

    def init(self, energy: float, p2: float | int, p3: float | int, p4: float | int) -> None:
        self._init(*(_to_c(v) for v in (energy, p2, p3, p4)))

    def run(self) -> None:
        self._run()

    def _out_params(self, fn: Any) -> RawBuffer:
        data = ctypes.POINTER(ctypes.c_double)()
        first = ctypes.c_int(0)
        second = ctypes.c_int(0)
        fn(ctypes.byref(data), ctypes.byref(first), ctypes.byref(second))
        return (data if data else None), first.value, second.value

    def get_scatter_data(self) -> RawBuffer:
        return self._out_params(self._scatter)

    def get_image_data(self) -> RawBuffer:
        return self._out_params(self._image)


__all__ = ["EngineSymbols", "NativeEngine"]
