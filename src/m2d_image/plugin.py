"""
Document plugin resolving every image of an mdast tree.

``preprocess`` walks the tree once before rendering and resolves all image
nodes concurrently; ``inline`` turns a resolved node into an image run while
the document is assembled.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Iterator, Mapping, MutableMapping
from typing import Any

from loguru import logger

from .cache import ImageStore
from .config import Settings, settings
from .images.base import PluginOptions
from .resolver import ImageResolver

# image, imageReference and svg nodes
IMAGE_NODE_RE = re.compile(r"^(image|svg)")

Node = MutableMapping[str, Any]


def iter_image_nodes(node: Node) -> Iterator[Node]:
    """Yield image-bearing nodes of a tree, children before their parent."""
    for child in node.get("children") or ():
        yield from iter_image_nodes(child)
    if IMAGE_NODE_RE.match(node.get("type") or ""):
        yield node


class ImagePlugin:
    """Resolves images (data URLs, URLs, paths and SVG diagrams) for DOCX output."""

    def __init__(
        self,
        options: PluginOptions | None = None,
        store: ImageStore | None = None,
    ):
        """
        Initialize the plugin.

        Args:
            options: Plugin options; defaults are used when None
            store: Persistent image store overriding the configured file store
        """
        self.resolver = ImageResolver(options, store)

    @property
    def options(self) -> PluginOptions:
        return self.resolver.options

    async def preprocess(self, root: Node, definitions: Mapping[str, str] | None = None) -> None:
        """
        Resolve all image nodes of ``root`` in place.

        Each image node's ``data`` receives the image-run options (type, data,
        transformation, alt_text); values already present on the node win.

        Args:
            root: mdast root node
            definitions: Reference identifiers (upper-cased) mapped to URLs
        """
        definitions = definitions or {}
        await self.resolver.sweep_cache()

        nodes = list(iter_image_nodes(root))
        logger.info("Resolving {} images", len(nodes))
        await asyncio.gather(*(self._resolve_node(node, definitions) for node in nodes))
        logger.debug("All {} images resolved", len(nodes))

    async def _resolve_node(self, node: Node, definitions: Mapping[str, str]) -> None:
        src = node.get("url")
        if src is None and node.get("identifier"):
            src = definitions.get(node["identifier"].upper())

        options = await self.resolver.resolve_node(src, node)
        node["data"] = {**options, **(node.get("data") or {})}

    def inline(self, docx: Any, node: Node, run_props: Mapping[str, Any] | None = None) -> list:
        """
        Render a resolved image node as an image run.

        Args:
            docx: Rendering module providing an ``ImageRun`` constructor
            node: Document node populated by ``preprocess``
            run_props: Run properties of the surrounding text

        Returns:
            A single image run for image nodes, otherwise an empty list
        """
        if not IMAGE_NODE_RE.match(node.get("type") or ""):
            return []
        # consumed: later plugins must not render the node again
        node["type"] = ""
        return [docx.ImageRun(**{**node["data"], **(run_props or {})})]


def image_plugin(
    config: Settings | None = None,
    store: ImageStore | None = None,
    **overrides: Any,
) -> ImagePlugin:
    """
    Create an image plugin from settings.

    Args:
        config: Settings to read options from (the global settings when None)
        store: Optional persistent image store
        **overrides: Option values taking precedence over settings

    Returns:
        Configured ImagePlugin instance

    Example:
        >>> plugin = image_plugin(max_w=6, max_h=9, cache_enabled=False)
        >>> await plugin.preprocess(mdast_root, definitions)
    """
    options = PluginOptions.from_settings(config or settings, **overrides)
    return ImagePlugin(options, store)
