"""Serialized gateway to the external computation engine.

The engine holds process-wide mutable state, so every job must run
``initialize -> execute -> fetch`` as one uninterrupted sequence. The
client owns a re-entrant lock: each operation takes it, and ``session()``
holds it across a whole sequence so no other thread can interleave.
"""

from __future__ import annotations

import ctypes
import threading
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Iterator

import numpy as np

from ..core.errors import EngineContractError, EngineError, EngineStateError
from ..core.grid import ScatterGrid
from ..core.logging import get_logger
from ..core.parameters import CalibrationMode, ParameterSet
from ..core.types import FloatBuffer
from .base import EngineBackend, RawBuffer

logger = get_logger(__name__)


class _Stage(Enum):
    IDLE = "idle"
    INITIALIZED = "initialized"
    EXECUTED = "executed"
    FAULTED = "faulted"


def _is_null(buffer: Any) -> bool:
    if buffer is None:
        return True
    # NULL ctypes pointers are falsy
    return isinstance(buffer, ctypes._Pointer) and not buffer


def _copy_out(raw: RawBuffer, what: str) -> tuple[FloatBuffer, int, int]:
    """Copy an engine-owned buffer into caller-owned float64 storage.

    Raises:
        EngineContractError: Null buffer, non-positive dims, or short buffer
    """
    try:
        buffer, first, second = raw
        first, second = int(first), int(second)
    except (TypeError, ValueError) as exc:
        raise EngineContractError(f"Engine returned a malformed {what} result: {exc}") from exc
    if _is_null(buffer):
        raise EngineContractError(f"Engine returned a null {what} buffer")
    if first <= 0 or second <= 0:
        raise EngineContractError(f"Invalid {what} dimensions from engine: {first}x{second}")

    total = first * second
    if isinstance(buffer, ctypes._Pointer):
        values = np.ctypeslib.as_array(buffer, shape=(total,)).astype(np.float64, copy=True)
    else:
        try:
            values = np.array(buffer, dtype=np.float64).reshape(-1)
        except (TypeError, ValueError) as exc:
            raise EngineContractError(f"Engine {what} buffer is not numeric: {exc}") from exc
        if values.size < total:
            raise EngineContractError(
                f"Engine {what} buffer holds {values.size} values, expected {first}x{second}"
            )
        if values.size > total:
            values = values[:total].copy()

    values.flags.writeable = False
    return values, first, second


class EngineClient:
    """Sole owner of access to one engine backend.

    Args:
        backend: Engine implementation (native library or synthetic)
    """

    def __init__(self, backend: EngineBackend):
        self._backend = backend
        self._lock = threading.RLock()
        self._stage = _Stage.IDLE

    @property
    def mode(self) -> CalibrationMode:
        return self._backend.mode

    @property
    def stage(self) -> str:
        return self._stage.value

    @contextmanager
    def session(self) -> Iterator[EngineClient]:
        """Hold the engine for a complete initialize/execute/fetch sequence."""
        with self._lock:
            yield self

    def _require(self, *stages: _Stage) -> None:
        if self._stage not in stages:
            if self._stage is _Stage.FAULTED:
                raise EngineStateError("Engine state is invalid; call initialize() first")
            expected = " or ".join(s.value for s in stages)
            raise EngineStateError(f"Engine is {self._stage.value}, expected {expected}")

    def _call(self, operation: str, fn: Callable[..., Any], *args: Any) -> Any:
        """Invoke a backend command, reporting any failure as EngineError."""
        try:
            return fn(*args)
        except EngineError:
            raise
        except Exception as exc:
            logger.error(
                "Engine command failed",
                {"operation": operation, "stage": self._stage.value, "error": repr(exc)},
            )
            raise EngineError(f"Engine {operation} failed: {exc}") from exc

    def initialize(self, params: ParameterSet) -> None:
        """Configure engine-global state for one job."""
        with self._lock:
            if params.mode != self._backend.mode:
                raise EngineError(
                    f"Engine accepts {self._backend.mode.value!r} parameters, got {params.mode!r}"
                )
            args = params.engine_args()
            logger.info(
                "Initializing engine",
                {"mode": params.mode, "args": list(args), "stage": self._stage.value},
            )
            self._stage = _Stage.FAULTED
            self._call("init", self._backend.init, *args)
            self._stage = _Stage.INITIALIZED

    def execute(self) -> None:
        """Run the configured simulation to completion. Blocks the caller."""
        with self._lock:
            self._require(_Stage.INITIALIZED)
            self._stage = _Stage.FAULTED
            self._call("run", self._backend.run)
            self._stage = _Stage.EXECUTED

    def fetch_scatter_grid(self) -> ScatterGrid:
        """Copy out the engine's flattened scattering output."""
        with self._lock:
            self._require(_Stage.EXECUTED)
            try:
                raw = self._call("get_scatter_data", self._backend.get_scatter_data)
                values, rows, cols = _copy_out(raw, "scatter")
            except EngineError:
                self._stage = _Stage.FAULTED
                raise
            logger.debug("Received scatter data", {"rows": rows, "cols": cols})
            return ScatterGrid(values=values, rows=rows, cols=cols)

    def fetch_rendered_grid(self) -> tuple[FloatBuffer, int, int]:
        """Copy out the engine's own 2-D image buffer as (values, width, height)."""
        with self._lock:
            self._require(_Stage.EXECUTED)
            try:
                raw = self._call("get_image_data", self._backend.get_image_data)
                values, width, height = _copy_out(raw, "image")
            except EngineError:
                self._stage = _Stage.FAULTED
                raise
            logger.debug("Received image data", {"width": width, "height": height})
            return values, width, height


__all__ = ["EngineClient"]
