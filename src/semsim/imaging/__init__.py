"""Image formation, export, and presentation sinks."""

from .export import (
    export_raster,
    read_metadata,
    read_parameters,
    read_png,
    read_tiff,
    write_png,
    write_tiff,
)
from .formation import (
    RasterImage,
    downscaled_shape,
    form_raster,
    form_raster_with,
    identity_lut,
    inverted_lut,
    lut_from_name,
)
from .sink import ImageSink, MemorySink, present

__all__ = [
    "RasterImage",
    "form_raster",
    "form_raster_with",
    "downscaled_shape",
    "identity_lut",
    "inverted_lut",
    "lut_from_name",
    "export_raster",
    "write_png",
    "write_tiff",
    "read_png",
    "read_tiff",
    "read_metadata",
    "read_parameters",
    "ImageSink",
    "MemorySink",
    "present",
]
