"""
m2d-image: image plugin for markdown-to-DOCX conversion.

Resolves every image of a markdown syntax tree (data URLs, remote URLs,
local files and generated SVG diagrams) into an embeddable image sized for
the page, with a persistent cache between runs.

Usage:
    from m2d_image import image_plugin

    plugin = image_plugin(max_w=6, max_h=9)
    await plugin.preprocess(mdast_root, definitions)
    runs = plugin.inline(docx, node, run_props)
"""

__version__ = "0.1.0"

from .images import PluginOptions, ResolvedImage
from .plugin import ImagePlugin, image_plugin
from .resolver import ImageResolver

__all__ = [
    "ImagePlugin",
    "ImageResolver",
    "PluginOptions",
    "ResolvedImage",
    "image_plugin",
]
