"""Custom exception types for the SEM simulation pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Any


class SemSimError(Exception):
    """Base exception for all semsim errors."""

    pass


class ConfigError(SemSimError):
    """Configuration-related errors."""

    pass


class InvalidParameter(ConfigError, ValueError):
    """A simulation parameter violated its range constraint.

    Attributes:
        field: Name of the offending field (e.g. ``energy_kev``)
        constraint: Human readable description of the violated constraint
    """

    def __init__(self, field: str, constraint: str):
        self.field = field
        self.constraint = constraint
        super().__init__(f"{field}: {constraint}")


class MaterialError(ConfigError):
    """Invalid material definition."""

    pass


class EngineError(SemSimError):
    """Engine usage errors."""

    pass


class EngineStateError(EngineError):
    """Engine operation called out of sequence."""

    pass


class EngineContractError(EngineError):
    """The engine broke its interface contract.

    Raised for null result buffers and non-positive reported dimensions.
    The engine state is of unknown validity afterwards; the in-flight job
    is aborted and a fresh ``initialize`` is required.
    """

    pass


class FormationError(SemSimError, ValueError):
    """Image formation precondition failures."""

    pass


class ExportErrorKind(str, Enum):
    """Failure category for raster export."""

    IO = "io"
    ENCODING = "encoding"


class ExportError(SemSimError):
    """Raster export failed.

    Attributes:
        kind: ExportErrorKind.IO for filesystem failures,
            ExportErrorKind.ENCODING for malformed rasters
    """

    def __init__(self, kind: ExportErrorKind, message: str):
        self.kind = kind
        super().__init__(message)

    @classmethod
    def io(cls, message: str) -> ExportError:
        return cls(ExportErrorKind.IO, message)

    @classmethod
    def encoding(cls, message: str) -> ExportError:
        return cls(ExportErrorKind.ENCODING, message)


class RunAborted(SemSimError):
    """One or more jobs of a batch aborted.

    Attributes:
        results: Positional results, ``None`` where the job aborted
        failures: Mapping of job index to the exception that aborted it
    """

    def __init__(self, results: list[Any], failures: dict[int, Exception]):
        self.results = results
        self.failures = failures
        indices = ", ".join(str(i) for i in sorted(failures))
        super().__init__(f"{len(failures)} of {len(results)} jobs aborted (indices: {indices})")


__all__ = [
    "SemSimError",
    "ConfigError",
    "InvalidParameter",
    "MaterialError",
    "EngineError",
    "EngineStateError",
    "EngineContractError",
    "FormationError",
    "ExportErrorKind",
    "ExportError",
    "RunAborted",
]
