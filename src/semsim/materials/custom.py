"""User-defined materials, e.g. from a YAML or JSON run config."""

from __future__ import annotations

from pydantic import BaseModel, Field, ValidationError

from ..core.errors import MaterialError
from .presets import Material


class CustomMaterialSpec(BaseModel):
    """Loose material description as supplied by a user.

    ``atomic_mass_u`` may be omitted, in which case it is estimated as 2*Z,
    which is adequate for light elements.
    """

    name: str
    atomic_number: int
    density_g_cm3: float
    atomic_mass_u: float | None = Field(default=None)

    def to_material(self) -> Material:
        """Validate into a Material.

        Raises:
            MaterialError: If the name is blank or any value is out of range
        """
        if not self.name.strip():
            raise MaterialError("Material name cannot be empty")
        mass = self.atomic_mass_u if self.atomic_mass_u is not None else 2.0 * self.atomic_number
        try:
            return Material(
                name=self.name.strip(),
                atomic_number=self.atomic_number,
                density_g_cm3=self.density_g_cm3,
                atomic_mass_u=mass,
            )
        except ValidationError as exc:
            first = exc.errors()[0]
            cause = (first.get("ctx") or {}).get("error", first.get("msg"))
            raise MaterialError(f"{first['loc'][0]}: {cause}") from exc
