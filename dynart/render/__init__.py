# dynart/render/__init__.py
"""
Generative rendering.

compose() builds the image for an asset from its seeds; the svg module
holds the structured elements it is built from.
"""

from .composer import Composition, Palette, compose, CANVAS_SIZE, DEFAULT_BACKGROUND
from .svg import Background, Circle, ImageDescription, Rect

__all__ = [
    "Composition",
    "Palette",
    "compose",
    "CANVAS_SIZE",
    "DEFAULT_BACKGROUND",
    "Background",
    "Circle",
    "ImageDescription",
    "Rect",
]
