"""
Image resolution.

Classifies image sources found in a document tree, routes them to the raster
or vector pipeline, fits the result to the page and caches it. Failures fall
back to the configured placeholder image.
"""

from __future__ import annotations

import asyncio
import base64
import inspect
import mimetypes
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any
from urllib.parse import unquote_to_bytes, urlparse

import httpx
from loguru import logger

from .cache import ImageStore, ResolverCache, create_image_store, fingerprint, select_key_fields
from .errors import DecodeError, FetchError
from .images.base import (
    ImageKind,
    ImageReference,
    LiteralSvg,
    PendingSvg,
    PluginOptions,
    ResolvedImage,
    Transformation,
    VectorSource,
)
from .images.dimensions import fit_dimensions
from .images.raster import normalize_raster
from .images.surface import MeasuringSurface
from .images.svg import handle_svg
from .result import Err, Ok, StageResult

# Returned when neither the image nor the placeholder can be resolved
SYNTHETIC_PLACEHOLDER = ResolvedImage(
    type="png",
    data=b"",
    transformation=Transformation(width=100, height=100),
)


def parse_data_url(src: str) -> tuple[str | None, bytes]:
    """
    Split a data URL into its media subtype and decoded payload.

    Args:
        src: URL of the form ``data:image/png;base64,...``

    Returns:
        Tuple of (subtype, payload bytes); subtype is None when not declared

    Raises:
        ValueError: If the URL is malformed or the base64 payload is invalid
    """
    header, sep, payload = src.partition(",")
    if not header.startswith("data:") or not sep:
        raise ValueError("Malformed data URL")
    params = header[5:].split(";")
    media_type = params[0]
    subtype = media_type.split("/", 1)[1].lower() if "/" in media_type else None
    if "base64" in params[1:]:
        return subtype, base64.b64decode(payload)
    return subtype, unquote_to_bytes(payload)


def alt_text_for(node: Mapping[str, Any], src: str | None) -> str:
    """Author alt text, else the last path segment of the source."""
    alt = node.get("alt")
    if alt is not None:
        return alt
    if not src or src.startswith("data:"):
        return ""
    return urlparse(src).path.rstrip("/").split("/")[-1] or ""


def _vector_source(node: Mapping[str, Any]) -> VectorSource:
    value = node.get("value")
    if isinstance(value, str):
        return LiteralSvg(markup=value, diagram_type=node.get("diagramType"))
    if inspect.isawaitable(value):

        async def compute() -> Any:
            return await value

        return PendingSvg(compute=compute, source=node.get("source"))
    if callable(value):
        return PendingSvg(compute=value, source=node.get("source"))
    raise TypeError(f"Unsupported svg node value: {type(value).__name__}")


@dataclass
class ResolverContext:
    """Resources shared by all resolutions of one resolver."""

    surface: MeasuringSurface
    cache: ResolverCache
    placeholder: asyncio.Future[ResolvedImage] | None = field(default=None)


class ImageResolver:
    """Resolves image sources into embeddable, page-fitted images."""

    def __init__(
        self,
        options: PluginOptions | None = None,
        store: ImageStore | None = None,
    ):
        """
        Initialize the resolver.

        Args:
            options: Plugin options; defaults are used when None
            store: Persistent store; a file store under ``options.cache_dir``
                is created when None and caching is enabled
        """
        options = options or PluginOptions()
        surface = MeasuringSurface(options.max_w, options.max_h)
        self.options = options.model_copy(update={"dpi": surface.dpi})

        if not options.cache_enabled:
            store = None
        elif store is None:
            store = create_image_store("file", cache_dir=options.cache_dir)

        self.context = ResolverContext(surface=surface, cache=ResolverCache(store))
        self._swept = False
        logger.debug(
            "ImageResolver initialized: scale={}, fallback={}, page={}x{}in, cache={}",
            self.options.scale,
            self.options.fallback_image_type,
            self.options.max_w,
            self.options.max_h,
            "on" if store else "off",
        )

    @property
    def store(self) -> ImageStore | None:
        return self.context.cache.store

    async def sweep_cache(self) -> int:
        """Remove stale persisted entries; runs once per resolver."""
        if self._swept or self.store is None:
            return 0
        self._swept = True
        return await self.store.sweep(self.options.cache_max_age_minutes)

    def classify(self, src: str | None, node: Mapping[str, Any] | None = None) -> ImageReference:
        """
        Capture an image reference from a source and its document node.

        Args:
            src: Image URL, data URL or path (unused for svg nodes)
            node: Document node carrying the node type and size overrides

        Returns:
            ImageReference tagged with how it will be resolved
        """
        node = node or {}
        data = node.get("data") or {}
        kwargs = {
            "width": data.get("width"),
            "height": data.get("height"),
            "alt": alt_text_for(node, src),
        }

        if node.get("type") == "svg":
            return ImageReference(kind=ImageKind.VECTOR, source=_vector_source(node), **kwargs)
        if src and src.startswith("data:"):
            return ImageReference(kind=ImageKind.INLINE, source=src, **kwargs)
        return ImageReference(kind=ImageKind.REMOTE, source=src or "", **kwargs)

    def cache_key(self, ref: ImageReference) -> str | None:
        """Fingerprint of a reference, or None when it has no stable identity."""
        identity = ref.identity
        if identity is None:
            return None
        fields = {**select_key_fields(self.options), "width": ref.width, "height": ref.height}
        return fingerprint(identity, self.options.cache_salt, fields)

    async def resolve(self, src: str | None, node: Mapping[str, Any] | None = None) -> ResolvedImage:
        """
        Resolve an image source found on a document node.

        Never raises: failures produce the placeholder image.
        """
        try:
            ref = self.classify(src, node)
        except TypeError as e:
            logger.error("Error resolving image: {}", e)
            return await self._placeholder_image()
        return await self.resolve_reference(ref)

    async def resolve_node(self, src: str | None, node: Mapping[str, Any]) -> dict[str, Any]:
        """
        Resolve the image of a document node into image-run options.

        Args:
            src: Image source of the node (None for svg nodes)
            node: Document node

        Returns:
            Dict with type, data, transformation and alt_text
        """
        try:
            ref = self.classify(src, node)
        except TypeError as e:
            logger.error("Error resolving image: {}", e)
            image, alt = await self._placeholder_image(), alt_text_for(node, src)
        else:
            image, alt = await self.resolve_reference(ref), ref.alt
        return {
            **image.to_image_options(),
            "alt_text": {"description": alt, "name": alt, "title": alt},
        }

    async def resolve_reference(self, ref: ImageReference) -> ResolvedImage:
        """Resolve a captured reference; never raises."""
        result = await self._resolve_cached(ref)
        if isinstance(result, Ok):
            return result.value

        logger.error("Error resolving image {}: {}", _describe(ref), result)
        if ref.is_placeholder:
            return SYNTHETIC_PLACEHOLDER
        return await self._placeholder_image()

    async def _resolve_cached(self, ref: ImageReference) -> StageResult[ResolvedImage]:
        key = self.cache_key(ref)
        if key is None:
            return await self._resolve_uncached(ref)
        return await self.context.cache.get_or_resolve(key, lambda: self._resolve_uncached(ref))

    async def _resolve_uncached(self, ref: ImageReference) -> StageResult[ResolvedImage]:
        try:
            result = await self._dispatch(ref)
        except Exception as e:
            logger.exception("Unexpected error resolving image {}", _describe(ref))
            return Err("unexpected error", e)
        if isinstance(result, Err):
            return result

        image = result.value
        size = image.transformation
        try:
            width, height = fit_dimensions(
                size.width,
                size.height,
                self.options.max_w,
                self.options.max_h,
                self.options.dpi,
                ref.width,
                ref.height,
            )
        except ZeroDivisionError as e:
            return Err("image has no size", DecodeError(str(e)))

        return Ok(
            image.model_copy(update={"transformation": Transformation(width=width, height=height)})
        )

    async def _dispatch(self, ref: ImageReference) -> StageResult[ResolvedImage]:
        surface = self.context.surface

        if ref.kind is ImageKind.VECTOR:
            return await handle_svg(ref.source, self.options, surface)

        if ref.kind is ImageKind.INLINE:
            try:
                subtype, data = parse_data_url(ref.source)
            except ValueError as e:
                return Err("invalid data URL", DecodeError(str(e)))
            if subtype and subtype.startswith("svg"):
                return await handle_svg(LiteralSvg(data.decode("utf-8")), self.options, surface)
            return await normalize_raster(data, subtype, self.options)

        try:
            data, content_type = await self._fetch(ref.source)
        except FetchError as e:
            return Err("fetch failed", e)

        if "svg" in content_type or "xml" in content_type or _is_svg_path(ref.source):
            markup = data.decode("utf-8", errors="replace")
            return await handle_svg(LiteralSvg(markup), self.options, surface)
        return await normalize_raster(data, None, self.options)

    def _absolute_url(self, src: str) -> str | None:
        if src.startswith(("http://", "https://")):
            return src
        if self.options.base_url:
            return str(httpx.URL(self.options.base_url).join(src))
        return None

    async def _fetch(self, src: str) -> tuple[bytes, str]:
        """
        Read an image from a URL or a local path.

        Returns:
            Tuple of (content bytes, content type)

        Raises:
            FetchError: On network failures, non-2xx responses or unreadable files
        """
        if not src:
            raise FetchError("Image has no source")

        url = self._absolute_url(src)
        if url is None:
            path = Path(src)
            try:
                data = await asyncio.to_thread(path.read_bytes)
            except OSError as e:
                raise FetchError(f"Cannot read image file {path}: {e}") from e
            logger.debug("Read image file: {} ({} bytes)", path, len(data))
            return data, mimetypes.guess_type(path.name)[0] or ""

        retries = self.options.fetch_retries
        for attempt in range(retries):
            try:
                async with httpx.AsyncClient(
                    timeout=self.options.fetch_timeout, follow_redirects=True
                ) as client:
                    response = await client.get(url)
                    response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise FetchError(f"{url} returned HTTP {e.response.status_code}") from e
            except httpx.HTTPError as e:
                if attempt == retries - 1:
                    raise FetchError(f"Failed to fetch {url} after {retries} attempts: {e}") from e
                logger.debug("Fetch attempt {} failed, retrying: {}", attempt + 1, e)
                await asyncio.sleep(self.options.fetch_backoff * 2**attempt)
                continue

            content_type = response.headers.get("content-type", "")
            logger.debug(
                "Fetched image: {} ({} bytes, type={})", url[:60], len(response.content), content_type
            )
            return response.content, content_type

        raise FetchError(f"Failed to fetch {url}")

    async def _placeholder_image(self) -> ResolvedImage:
        if not self.options.placeholder:
            return SYNTHETIC_PLACEHOLDER
        if self.context.placeholder is None:
            self.context.placeholder = asyncio.ensure_future(self._resolve_placeholder())
        return await self.context.placeholder

    async def _resolve_placeholder(self) -> ResolvedImage:
        ref = replace(self.classify(self.options.placeholder), is_placeholder=True)
        return await self.resolve_reference(ref)


def _is_svg_path(src: str) -> bool:
    return urlparse(src).path.lower().endswith(".svg")


def _describe(ref: ImageReference) -> str:
    if isinstance(ref.source, str):
        return ref.source[:60]
    return f"<{ref.kind.value} {type(ref.source).__name__}>"
