"""
Image resolution package.

Provides format detection, raster normalization, SVG rasterization
and page-fit sizing.
"""

from .base import (
    ImageKind,
    ImageReference,
    LiteralSvg,
    PendingSvg,
    PluginOptions,
    RenderedSvg,
    ResolvedImage,
    Transformation,
)
from .dimensions import fit_dimensions
from .sniff import sniff_image_type

__all__ = [
    "ImageKind",
    "ImageReference",
    "LiteralSvg",
    "PendingSvg",
    "PluginOptions",
    "RenderedSvg",
    "ResolvedImage",
    "Transformation",
    "fit_dimensions",
    "sniff_image_type",
]
