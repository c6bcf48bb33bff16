"""Material records: built-in presets and user-defined materials."""

from .custom import CustomMaterialSpec
from .presets import PRESETS, Material, get_preset_material, list_preset_names

__all__ = [
    "Material",
    "CustomMaterialSpec",
    "PRESETS",
    "get_preset_material",
    "list_preset_names",
]
