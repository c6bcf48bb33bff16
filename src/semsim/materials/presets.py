"""Material record and the built-in material presets."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Material(BaseModel):
    """Specimen material used by the synthetic engine."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Material name")
    atomic_number: int = Field(description="Atomic number Z, 1..100")
    density_g_cm3: float = Field(description="Density in g/cm^3")
    atomic_mass_u: float = Field(description="Atomic mass in g/mol")

    @field_validator("atomic_number")
    @classmethod
    def validate_atomic_number(cls, v: int) -> int:
        if not 1 <= v <= 100:
            raise ValueError(f"atomic_number ({v}) must be between 1 and 100")
        return v

    @field_validator("density_g_cm3", "atomic_mass_u")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"value ({v}) must be > 0")
        return v


PRESETS: tuple[Material, ...] = (
    Material(name="Copper", atomic_number=29, density_g_cm3=8.96, atomic_mass_u=63.546),
    Material(name="Silicon", atomic_number=14, density_g_cm3=2.33, atomic_mass_u=28.085),
    Material(name="Carbon", atomic_number=6, density_g_cm3=2.0, atomic_mass_u=12.011),
)


def get_preset_material(name: str) -> Material | None:
    """Look up a preset by name (case-insensitive)."""
    wanted = name.strip().lower()
    for material in PRESETS:
        if material.name.lower() == wanted:
            return material
    return None


def list_preset_names() -> list[str]:
    """Names of all presets, in definition order."""
    return [m.name for m in PRESETS]


__all__ = [
    "Material",
    "PRESETS",
    "get_preset_material",
    "list_preset_names",
]
