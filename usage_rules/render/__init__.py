"""Rendering of aggregated usage rules into output documents."""

from .markers import MarkerManager, SectionBounds
from .renderer import HEADER, RenderSettings, Renderer, assign_file_names
from .writer import OutputWriteError, OutputWriter, read_existing

__all__ = [
    "HEADER",
    "MarkerManager",
    "OutputWriteError",
    "OutputWriter",
    "RenderSettings",
    "Renderer",
    "SectionBounds",
    "assign_file_names",
    "read_existing",
]
