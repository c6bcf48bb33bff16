"""Validated, immutable simulation parameters.

A ParameterSet is one of two calibration modes, tagged by ``mode``:

- ``probe``: beam energy, probe current, image resolution, working distance
- ``transmission``: beam energy, sample thickness, angular spread, electron count

Construction is the only validation point. Any violation is reported as
:class:`InvalidParameter` naming the first offending field.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Annotated, Any, ClassVar, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from .errors import InvalidParameter
from .types import EngineArgs
from .units import deg_to_rad

ENERGY_MIN_KEV = 1.0
ENERGY_MAX_KEV = 100.0

MODE_KEY = "Calibration_mode"
# Integer fields cross the engine boundary as a C int
INT_FIELD_MAX = 2**31 - 1


class CalibrationMode(str, Enum):
    """Which physical parameter group a run uses."""

    PROBE = "probe"
    TRANSMISSION = "transmission"


def _require_positive(name: str, v: float, unit: str = "") -> float:
    if not (v > 0 and math.isfinite(v)):
        raise ValueError(f"{name} ({v}{unit}) must be > 0")
    return v


def _first_invalid(exc: ValidationError) -> InvalidParameter:
    """Convert the first pydantic error into an InvalidParameter."""
    err = exc.errors()[0]
    cause = (err.get("ctx") or {}).get("error")
    # Union validation runs the model __init__, which has already mapped the error
    if isinstance(cause, InvalidParameter):
        return cause
    tags = {m.value for m in CalibrationMode}
    loc = [str(p) for p in err.get("loc", ()) if str(p) not in tags]
    field = loc[0] if loc else "mode"
    constraint = str(cause) if cause is not None else err.get("msg", "invalid value")
    return InvalidParameter(field, constraint)


class _ParameterSetBase(BaseModel):
    """Shared energy field and construction behaviour."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    METADATA_KEYS: ClassVar[dict[str, str]] = {}

    energy_kev: float = Field(description="Beam energy in keV")

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise _first_invalid(exc) from exc

    @field_validator("energy_kev")
    @classmethod
    def validate_energy(cls, v: float) -> float:
        if not ENERGY_MIN_KEV <= v <= ENERGY_MAX_KEV:
            raise ValueError(
                f"energy_kev ({v} keV) out of range [{ENERGY_MIN_KEV}, {ENERGY_MAX_KEV}]"
            )
        return v

    def engine_args(self) -> EngineArgs:
        """Positional arguments for the engine ``init`` call, in engine order."""
        return tuple(getattr(self, name) for name in self.METADATA_KEYS)  # type: ignore[return-value]

    def metadata(self) -> dict[str, str]:
        """Text metadata records, one per field, in engine order."""
        records = {MODE_KEY: self.mode}  # type: ignore[attr-defined]
        for name, key in self.METADATA_KEYS.items():
            records[key] = str(getattr(self, name))
        return records


class ProbeParameters(_ParameterSetBase):
    """Probe calibration: current, resolution and working distance."""

    METADATA_KEYS: ClassVar[dict[str, str]] = {
        "energy_kev": "Energy_keV",
        "current_na": "Current_nA",
        "resolution": "Resolution_px",
        "distance_mm": "Working_distance_mm",
    }

    mode: Literal["probe"] = "probe"
    current_na: float = Field(description="Beam current in nA")
    resolution: int = Field(description="Image resolution in pixels")
    distance_mm: float = Field(description="Working distance in mm")

    @field_validator("current_na")
    @classmethod
    def validate_current(cls, v: float) -> float:
        return _require_positive("current_na", v, " nA")

    @field_validator("resolution")
    @classmethod
    def validate_resolution(cls, v: int) -> int:
        if not 0 < v <= INT_FIELD_MAX:
            raise ValueError(f"resolution ({v}) must be in [1, {INT_FIELD_MAX}]")
        return v

    @field_validator("distance_mm")
    @classmethod
    def validate_distance(cls, v: float) -> float:
        return _require_positive("distance_mm", v, " mm")


class TransmissionParameters(_ParameterSetBase):
    """Transmission calibration: thickness, angular spread and electron count."""

    METADATA_KEYS: ClassVar[dict[str, str]] = {
        "energy_kev": "Energy_keV",
        "thickness_nm": "Thickness_nm",
        "angle_stddev_rad": "Angle_stddev_rad",
        "num_electrons": "Num_electrons",
    }

    mode: Literal["transmission"] = "transmission"
    thickness_nm: float = Field(description="Sample thickness in nm")
    angle_stddev_rad: float = Field(description="Angular spread (std dev) in radians")
    num_electrons: int = Field(description="Number of simulated electrons")

    @field_validator("thickness_nm")
    @classmethod
    def validate_thickness(cls, v: float) -> float:
        return _require_positive("thickness_nm", v, " nm")

    @field_validator("angle_stddev_rad")
    @classmethod
    def validate_angle(cls, v: float) -> float:
        if not (v >= 0 and math.isfinite(v)):
            raise ValueError(f"angle_stddev_rad ({v} rad) must be >= 0")
        return v

    @field_validator("num_electrons")
    @classmethod
    def validate_electrons(cls, v: int) -> int:
        if not 0 < v <= INT_FIELD_MAX:
            raise ValueError(f"num_electrons ({v}) must be in [1, {INT_FIELD_MAX}]")
        return v

    @classmethod
    def from_degrees(
        cls,
        energy_kev: float,
        thickness_nm: float,
        angle_stddev_deg: float,
        num_electrons: int,
    ) -> TransmissionParameters:
        """Build from an angular spread given in degrees.

        The converted value goes through the same validation as the
        canonical constructor.
        """
        return cls(
            energy_kev=energy_kev,
            thickness_nm=thickness_nm,
            angle_stddev_rad=deg_to_rad(angle_stddev_deg),
            num_electrons=num_electrons,
        )


ParameterSet = Annotated[
    Union[ProbeParameters, TransmissionParameters],
    Field(discriminator="mode"),
]

_PARAMETER_CLASSES: dict[CalibrationMode, type[_ParameterSetBase]] = {
    CalibrationMode.PROBE: ProbeParameters,
    CalibrationMode.TRANSMISSION: TransmissionParameters,
}

_parameter_adapter: TypeAdapter = TypeAdapter(ParameterSet)


def parse_parameters(data: Mapping[str, Any]) -> ProbeParameters | TransmissionParameters:
    """Build a ParameterSet from a plain mapping carrying a ``mode`` key."""
    try:
        return _parameter_adapter.validate_python(dict(data))
    except ValidationError as exc:
        raise _first_invalid(exc) from exc


def parameters_from_metadata(records: Mapping[str, str]) -> ProbeParameters | TransmissionParameters:
    """Rebuild a ParameterSet from exported text metadata records."""
    if MODE_KEY not in records:
        raise InvalidParameter("mode", f"metadata has no {MODE_KEY} record")
    try:
        mode = CalibrationMode(records[MODE_KEY])
    except ValueError as exc:
        raise InvalidParameter("mode", f"unknown calibration mode {records[MODE_KEY]!r}") from exc

    cls = _PARAMETER_CLASSES[mode]
    values: dict[str, Any] = {}
    for name, key in cls.METADATA_KEYS.items():
        if key not in records:
            raise InvalidParameter(name, f"metadata has no {key} record")
        values[name] = records[key]
    return cls(**values)


__all__ = [
    "ENERGY_MIN_KEV",
    "ENERGY_MAX_KEV",
    "MODE_KEY",
    "INT_FIELD_MAX",
    "CalibrationMode",
    "ProbeParameters",
    "TransmissionParameters",
    "ParameterSet",
    "parse_parameters",
    "parameters_from_metadata",
]
