"""Presentation boundary: anything that can display or store a raster."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .formation import RasterImage


@runtime_checkable
class ImageSink(Protocol):
    """Consumer of finished rasters (a viewer, a stream, a test double)."""

    def accept(self, width: int, height: int, buffer: bytes) -> None:
        ...


class MemorySink:
    """Keeps every accepted frame as (width, height, buffer)."""

    def __init__(self) -> None:
        self.frames: list[tuple[int, int, bytes]] = []

    def accept(self, width: int, height: int, buffer: bytes) -> None:
        if len(buffer) != width * height:
            raise ValueError(f"Buffer size mismatch: expected {width * height}, got {len(buffer)}")
        self.frames.append((width, height, bytes(buffer)))


def present(raster: RasterImage, sink: ImageSink) -> None:
    """Hand a raster to a sink."""
    sink.accept(raster.width, raster.height, raster.buffer)


__all__ = ["ImageSink", "MemorySink", "present"]
