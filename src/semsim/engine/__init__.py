"""Engine access: backend protocol, serialized client, and backends."""

from __future__ import annotations

from ..core.config import EngineBackendKind, EngineConfig
from .base import EngineBackend, RawBuffer
from .client import EngineClient
from .native import EngineSymbols, NativeEngine
from .synthetic import SyntheticEngine


def create_backend(config: EngineConfig) -> EngineBackend:
    """Build the backend selected by an EngineConfig."""
    if config.backend == EngineBackendKind.NATIVE:
        return NativeEngine(config.library, mode=config.mode)
    return SyntheticEngine(
        mode=config.mode,
        material=config.resolve_material(),
        seed=config.seed,
    )


__all__ = [
    "EngineBackend",
    "RawBuffer",
    "EngineClient",
    "EngineSymbols",
    "NativeEngine",
    "SyntheticEngine",
    "create_backend",
]
