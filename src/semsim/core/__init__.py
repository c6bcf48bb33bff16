"""Core module with parameters, config, errors, logging, and units."""

from .errors import (
    ConfigError,
    EngineContractError,
    EngineError,
    EngineStateError,
    ExportError,
    ExportErrorKind,
    FormationError,
    InvalidParameter,
    MaterialError,
    RunAborted,
    SemSimError,
)
from .parameters import (
    CalibrationMode,
    ParameterSet,
    ProbeParameters,
    TransmissionParameters,
    parameters_from_metadata,
    parse_parameters,
)

__all__ = [
    "CalibrationMode",
    "ParameterSet",
    "ProbeParameters",
    "TransmissionParameters",
    "parameters_from_metadata",
    "parse_parameters",
    "SemSimError",
    "ConfigError",
    "InvalidParameter",
    "MaterialError",
    "EngineError",
    "EngineStateError",
    "EngineContractError",
    "FormationError",
    "ExportError",
    "ExportErrorKind",
    "RunAborted",
]
