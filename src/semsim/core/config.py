"""Run configuration models and I/O.

Pydantic models for the engine, image formation, runtime and output
settings plus the job list, with YAML/JSON I/O. Angular spreads are
normalized to radians internally; degrees are accepted at input.
"""

from __future__ import annotations

import json
import math
from enum import Enum
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ..materials import CustomMaterialSpec, Material, get_preset_material
from .errors import ConfigError, MaterialError
from .parameters import CalibrationMode, ParameterSet
from .units import deg_to_rad

# Largest raster side accepted by typical texture formats
MAX_RASTER_DIM = 16384
# Floor for the short side of a downscaled raster
MIN_RASTER_DIM = 16


class EngineBackendKind(str, Enum):
    """Which engine implementation drives the jobs."""

    SYNTHETIC = "synthetic"
    NATIVE = "native"


class LutName(str, Enum):
    """Named lookup tables available from config."""

    IDENTITY = "identity"
    INVERTED = "inverted"


class EngineConfig(BaseModel):
    """Engine selection and backend settings."""

    backend: EngineBackendKind = Field(
        default=EngineBackendKind.SYNTHETIC, description="Engine implementation"
    )
    mode: CalibrationMode = Field(
        default=CalibrationMode.PROBE, description="Calibration mode the engine is built for"
    )
    library: Path | None = Field(default=None, description="Shared library for the native engine")
    seed: int = Field(default=1337, description="Seed for the synthetic engine")
    material: str | CustomMaterialSpec = Field(
        default="Copper", description="Preset name or custom material for the synthetic engine"
    )

    @model_validator(mode="after")
    def validate_backend(self) -> EngineConfig:
        """Native backend needs a library path."""
        if self.backend == EngineBackendKind.NATIVE and self.library is None:
            raise ValueError("Native engine requires 'library' to be set")
        return self

    def resolve_material(self) -> Material:
        """Return the configured Material.

        Raises:
            MaterialError: Unknown preset name or invalid custom material
        """
        if isinstance(self.material, CustomMaterialSpec):
            return self.material.to_material()
        material = get_preset_material(self.material)
        if material is None:
            raise MaterialError(f"Unknown preset material: {self.material!r}")
        return material


class FormationConfig(BaseModel):
    """Image formation settings."""

    gamma: float = Field(default=1.0, description="Gamma correction factor (> 0)")
    lut: LutName | None = Field(default=None, description="Optional named lookup table")
    max_dim: int = Field(default=MAX_RASTER_DIM, description="Largest allowed raster side")
    min_dim: int = Field(default=MIN_RASTER_DIM, description="Smallest short side after downscale")

    @field_validator("gamma")
    @classmethod
    def validate_gamma(cls, v: float) -> float:
        if not (v > 0 and math.isfinite(v)):
            raise ValueError(f"gamma must be finite and > 0, got {v}")
        return v

    @model_validator(mode="after")
    def validate_dims(self) -> FormationConfig:
        if self.min_dim < 1:
            raise ValueError(f"min_dim must be >= 1, got {self.min_dim}")
        if self.max_dim < self.min_dim:
            raise ValueError(f"max_dim ({self.max_dim}) must be >= min_dim ({self.min_dim})")
        return self


class RuntimeConfig(BaseModel):
    """Runtime resources."""

    workers: int = Field(default=4, description="Threads for non-engine stages")

    @field_validator("workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        if not 1 <= v <= 64:
            raise ValueError(f"workers must be between 1 and 64, got {v}")
        return v


class OutputConfig(BaseModel):
    """Where and how rasters are exported."""

    directory: Path = Field(default=Path("output"), description="Output directory")
    format: Literal["png", "tiff"] = Field(default="png", description="Image file format")
    prefix: str = Field(default="job", description="File name prefix")


class RunConfig(BaseModel):
    """Complete run configuration."""

    engine: EngineConfig = Field(default_factory=EngineConfig)
    formation: FormationConfig = Field(default_factory=FormationConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    jobs: list[ParameterSet] = Field(default_factory=list, description="Queued parameter sets")

    @model_validator(mode="after")
    def validate_jobs(self) -> RunConfig:
        """Every job must match the engine's calibration mode."""
        for index, job in enumerate(self.jobs):
            if job.mode != self.engine.mode:
                raise ValueError(
                    f"job {index} uses mode {job.mode!r} but the engine is built for "
                    f"{self.engine.mode.value!r}"
                )
        return self


def _normalize_jobs(data: dict[str, Any]) -> None:
    """Convert degree inputs to radians and fill in the engine's mode."""
    engine = data.get("engine") or {}
    mode = CalibrationMode.PROBE.value
    if isinstance(engine, dict):
        mode = engine.get("mode", mode)
    jobs = data.get("jobs")
    if not isinstance(jobs, list):
        return
    for job in jobs:
        if not isinstance(job, dict):
            continue
        job.setdefault("mode", mode)
        if "angle_stddev_rad" not in job and "angle_stddev_deg" in job:
            try:
                job["angle_stddev_rad"] = deg_to_rad(job["angle_stddev_deg"])
            except (TypeError, ValueError):
                # Left in place; validation rejects it as an unknown field
                continue
            del job["angle_stddev_deg"]


def _build(data: dict[str, Any]) -> RunConfig:
    try:
        return RunConfig(**data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid run config: {exc}") from exc


def load_config(path: str | Path) -> RunConfig:
    """Load configuration from YAML or JSON file.

    Args:
        path: Path to configuration file

    Returns:
        Validated RunConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigError: If config is invalid
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        try:
            if path.suffix.lower() in [".yaml", ".yml"]:
                data = yaml.safe_load(f)
            elif path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                content = f.read()
                try:
                    data = yaml.safe_load(content)
                except yaml.YAMLError:
                    data = json.loads(content)
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Cannot parse config {path}: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping, got {type(data).__name__}")

    _normalize_jobs(data)
    return _build(data)


def save_config(config: RunConfig, path: str | Path) -> None:
    """Save configuration to YAML or JSON file.

    Args:
        config: Configuration to save
        path: Output file path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(mode="json")

    with open(path, "w", encoding="utf-8") as f:
        if path.suffix.lower() in [".yaml", ".yml"]:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        else:
            json.dump(data, f, indent=2)


def round_trip_config(config: RunConfig) -> RunConfig:
    """Serialize a config through YAML and load it back."""
    data = config.model_dump(mode="json")
    yaml_str = yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
    loaded = yaml.safe_load(yaml_str)
    _normalize_jobs(loaded)
    return _build(loaded)


__all__ = [
    "MAX_RASTER_DIM",
    "MIN_RASTER_DIM",
    "EngineBackendKind",
    "LutName",
    "EngineConfig",
    "FormationConfig",
    "RuntimeConfig",
    "OutputConfig",
    "RunConfig",
    "load_config",
    "save_config",
    "round_trip_config",
]
