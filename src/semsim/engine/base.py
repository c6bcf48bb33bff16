"""Command interface every engine backend presents.

The engine is process-global and not re-entrant: ``init`` overwrites the
previous job's state, and buffers returned by the getters are only valid
until the next ``init`` or ``run``.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from ..core.parameters import CalibrationMode

# (buffer, first_dim, second_dim); buffer is None when the engine reports a null pointer
RawBuffer = tuple[Any, int, int]


@runtime_checkable
class EngineBackend(Protocol):
    """Protocol for engine backends.

    All backends must implement:
    - mode: the calibration mode whose ``init`` argument order they accept
    - init(): configure global state for one job
    - run(): execute the configured simulation to completion
    - get_scatter_data(): (buffer, rows, cols)
    - get_image_data(): (buffer, width, height)
    """

    mode: CalibrationMode

    def init(self, energy: float, p2: float | int, p3: float | int, p4: float | int) -> None:
        ...

    def run(self) -> None:
        ...

    def get_scatter_data(self) -> RawBuffer:
        ...

    def get_image_data(self) -> RawBuffer:
        ...


__all__ = ["EngineBackend", "RawBuffer"]
