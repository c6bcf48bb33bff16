"""Raster export with embedded simulation parameters.

PNG files carry one tEXt chunk per ParameterSet field, written ahead of
the pixel data. TIFF files carry the same records as JSON in the
ImageDescription tag. Both are single-channel, 8-bit.
"""

from __future__ import annotations

import json
import platform
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
import tifffile
from PIL import Image
from PIL.PngImagePlugin import PngInfo

from ..core.errors import ExportError
from ..core.parameters import ParameterSet, parameters_from_metadata

PNG_SUFFIXES = {".png"}
TIFF_SUFFIXES = {".tif", ".tiff"}


def _raster_array(raster: Any) -> np.ndarray:
    """Validate a raster and view it as (height, width) uint8.

    Raises:
        ExportError: ENCODING if the buffer length is not width*height
    """
    width, height = int(raster.width), int(raster.height)
    buffer = bytes(raster.buffer)
    if width <= 0 or height <= 0:
        raise ExportError.encoding(f"Raster dimensions must be positive, got {width}x{height}")
    if len(buffer) != width * height:
        raise ExportError.encoding(
            f"Buffer length {len(buffer)} does not match {width}x{height}"
        )
    return np.frombuffer(buffer, dtype=np.uint8).reshape(height, width)


def write_png(raster: Any, params: ParameterSet, path: Union[str, Path]) -> None:
    """Write a grayscale PNG with parameter tEXt chunks.

    Args:
        raster: RasterImage (anything with buffer, width, height)
        params: Parameters to embed
        path: Output filename

    Raises:
        ExportError: IO on filesystem failure, ENCODING on a malformed raster
    """
    pixels = _raster_array(raster)

    info = PngInfo()
    for key, value in params.metadata().items():
        info.add_text(key, value)

    image = Image.frombytes("L", (pixels.shape[1], pixels.shape[0]), pixels.tobytes())
    try:
        image.save(path, format="PNG", pnginfo=info)
    except OSError as exc:
        raise ExportError.io(f"Cannot write {path}: {exc}") from exc


def _tiff_description(params: ParameterSet, shape: tuple[int, int]) -> Dict:
    return {
        "parameters": params.metadata(),
        "shape": list(shape),
        "dtype": "uint8",
        "timestamp": datetime.now().isoformat(),
        "system": {
            "platform": platform.platform(),
            "python_version": platform.python_version(),
        },
    }


def write_tiff(raster: Any, params: ParameterSet, path: Union[str, Path]) -> None:
    """Write a grayscale 8-bit TIFF with parameters in ImageDescription.

    Raises:
        ExportError: IO on filesystem failure, ENCODING on a malformed raster
    """
    pixels = _raster_array(raster)
    description = json.dumps(_tiff_description(params, pixels.shape), indent=2)
    try:
        tifffile.imwrite(
            path,
            pixels,
            photometric="minisblack",
            description=description,
            metadata=None,
        )
    except OSError as exc:
        raise ExportError.io(f"Cannot write {path}: {exc}") from exc


def export_raster(
    raster: Any,
    params: ParameterSet,
    path: Union[str, Path],
    fmt: Optional[str] = None,
) -> Path:
    """Write a raster in the format given by ``fmt`` or the file suffix.

    Returns:
        The path written
    """
    path = Path(path)
    kind = (fmt or path.suffix.lstrip(".") or "png").lower()
    if kind in ("tif", "tiff"):
        write_tiff(raster, params, path)
    elif kind == "png":
        write_png(raster, params, path)
    else:
        raise ExportError.encoding(f"Unsupported image format: {kind}")
    return path


def read_png(path: Union[str, Path]) -> tuple[np.ndarray, Dict[str, str]]:
    """Read a PNG and its text records."""
    with Image.open(path) as image:
        image.load()
        text = dict(getattr(image, "text", {}))
        data = np.array(image)
    return data, text


def read_tiff(path: Union[str, Path]) -> tuple[np.ndarray, Dict]:
    """Read a TIFF and its JSON description."""
    with tifffile.TiffFile(path) as tif:
        data = tif.asarray()
        metadata: Dict = {}
        if tif.pages[0].description:
            try:
                metadata = json.loads(tif.pages[0].description)
            except json.JSONDecodeError:
                metadata = {"description": tif.pages[0].description}
    return data, metadata


def read_metadata(path: Union[str, Path]) -> Dict[str, str]:
    """Return the parameter records embedded in an exported file."""
    path = Path(path)
    if path.suffix.lower() in TIFF_SUFFIXES:
        _, description = read_tiff(path)
        return dict(description.get("parameters", {}))
    _, text = read_png(path)
    return text


def read_parameters(path: Union[str, Path]) -> ParameterSet:
    """Rebuild the ParameterSet embedded in an exported file."""
    return parameters_from_metadata(read_metadata(path))


__all__ = [
    "write_png",
    "write_tiff",
    "export_raster",
    "read_png",
    "read_tiff",
    "read_metadata",
    "read_parameters",
]
