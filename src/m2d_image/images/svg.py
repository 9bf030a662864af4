"""
SVG handling: generator fixups, tight cropping and rasterization.

Diagram renderers (mermaid and friends) emit SVG documents sized for a web
page with generous whitespace. Before embedding, the document is cropped to
its rendered content and rasterized into the fallback image format.
"""

from __future__ import annotations

import asyncio
import math
import re
import xml.etree.ElementTree as ET
from collections.abc import Mapping
from copy import deepcopy
from dataclasses import dataclass

from loguru import logger

from ..errors import RenderError
from ..result import Err, Ok, StageResult
from .base import (
    CSS_DPI,
    LiteralSvg,
    PendingSvg,
    PluginOptions,
    RenderedSvg,
    ResolvedImage,
    Transformation,
    VectorSource,
)
from .surface import DrawingSurface, MeasuringSurface

SVG_NS = "http://www.w3.org/2000/svg"
ET.register_namespace("", SVG_NS)
ET.register_namespace("xlink", "http://www.w3.org/1999/xlink")

# Whitespace kept around the cropped content, in user units
CROP_MARGIN = 4

# Diagrams laid out with absolute positions that must not be cropped
CROP_EXEMPT_DIAGRAMS = frozenset({"gantt"})

# Diagrams that stay sharp when enlarged to fill the page
UPSCALE_DIAGRAMS = frozenset({"mindmap"})

_LENGTH_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)\s*([a-z%]*)\s*$")
_MAX_WIDTH_RE = re.compile(r"max-width\s*:\s*([\d.]+)px")
_VOID_TAG_RE = re.compile(r"<(br|hr|img)(\s[^<>]*?)?\s*(?<!/)>(?!\s*</\1\s*>)", re.IGNORECASE)
_PIE_TITLE_RULE_RE = re.compile(r"(\.pieTitleText\s*\{[^}]*?)text-anchor\s*:\s*middle\s*;?")
_PIE_TITLE_TAG_RE = re.compile(r"<text\b[^>]*\bclass=\"pieTitleText\"[^>]*>")

_UNIT_PX = {
    "": 1.0,
    "px": 1.0,
    "pt": CSS_DPI / 72,
    "pc": CSS_DPI / 6,
    "in": CSS_DPI,
    "cm": CSS_DPI / 2.54,
    "mm": CSS_DPI / 25.4,
    "em": 16.0,
    "ex": 8.0,
}


@dataclass(frozen=True)
class CroppedSvg:
    """Result of tightly cropping an SVG document."""

    root: ET.Element
    width: float
    height: float
    scale: float

    @property
    def svg(self) -> str:
        return ET.tostring(self.root, encoding="unicode")


def fix_generated_svg(svg: str, diagram_type: str | None = None) -> str:
    """
    Correct known quirks of generated SVG markup.

    HTML void tags (``<br>``) emitted inside labels are closed so the markup is
    well-formed XML, whatever the diagram type; tags followed by their own
    closing tag are left alone. Pie chart titles are centred through a CSS rule that
    rasterizers ignore; the rule is dropped and the title is anchored at the
    diagram's horizontal centre instead.

    Args:
        svg: SVG markup
        diagram_type: Diagram type reported by the generator (e.g. "pie")

    Returns:
        Fixed markup
    """
    svg = _VOID_TAG_RE.sub(lambda m: f"<{m.group(1)}{m.group(2) or ''}/>", svg)
    if diagram_type != "pie":
        return svg

    svg = _PIE_TITLE_RULE_RE.sub(r"\1", svg)
    view_box = _parse_view_box(_root_attribute(svg, "viewBox"))
    if view_box is None:
        return svg
    center = view_box[0] + view_box[2] / 2

    def reposition(match: re.Match[str]) -> str:
        tag = re.sub(r"\s(x|text-anchor)=\"[^\"]*\"", "", match.group(0))
        return tag[:5] + f' x="{_fmt(center)}" text-anchor="middle"' + tag[5:]

    return _PIE_TITLE_TAG_RE.sub(reposition, svg, count=1)


def _root_attribute(svg: str, name: str) -> str | None:
    match = re.search(r"<svg\b[^>]*?\s" + re.escape(name) + r"=\"([^\"]*)\"", svg)
    return match.group(1) if match else None


def _fmt(value: float) -> str:
    return f"{value:.3f}".rstrip("0").rstrip(".")


def _parse_view_box(value: str | None) -> tuple[float, float, float, float] | None:
    if not value:
        return None
    try:
        x, y, w, h = (float(v) for v in value.replace(",", " ").split())
    except ValueError:
        return None
    if w <= 0 or h <= 0:
        return None
    return x, y, w, h


def _parse_length(value: str | None, reference: float) -> float | None:
    """Convert an SVG length to pixels; percentages are relative to ``reference``."""
    if not value:
        return None
    match = _LENGTH_RE.match(value)
    if not match:
        return None
    number, unit = float(match.group(1)), match.group(2)
    if unit == "%":
        return reference * number / 100
    if unit not in _UNIT_PX:
        return None
    return number * _UNIT_PX[unit]


def parse_svg(markup: str) -> ET.Element:
    """
    Parse SVG markup into an element tree.

    Raises:
        RenderError: If the markup is not an SVG document
    """
    try:
        root = ET.fromstring(markup.strip())
    except ET.ParseError as e:
        raise RenderError(f"Invalid SVG markup: {e}") from e
    if root.tag not in ("svg", f"{{{SVG_NS}}}svg"):
        raise RenderError(f"No <svg> root element found (got <{root.tag}>)")
    if root.tag == "svg":
        root.set("xmlns", SVG_NS)
    return root


def declared_size(root: ET.Element, surface: MeasuringSurface) -> tuple[float, float]:
    """Size an SVG document takes when placed on the measuring surface."""
    view_box = _parse_view_box(root.get("viewBox"))
    width = _parse_length(root.get("width"), surface.width)
    height = _parse_length(root.get("height"), surface.height)

    max_width = _MAX_WIDTH_RE.search(root.get("style", ""))
    if width is None:
        width = surface.width
    if max_width:
        width = min(width, float(max_width.group(1)))
    if height is None:
        height = width * view_box[3] / view_box[2] if view_box else surface.height
    return width, height


def _to_user_units(
    bbox: tuple[int, int, int, int],
    view_box: tuple[float, float, float, float],
    width: int,
    height: int,
    preserve: str,
) -> tuple[float, float, float, float]:
    vx, vy, vw, vh = view_box
    left, top, right, bottom = bbox
    if preserve.strip().startswith("none"):
        sx, sy = width / vw, height / vh
        tx = ty = 0.0
    else:
        sx = sy = min(width / vw, height / vh)
        tx = (width - vw * sx) / 2
        ty = (height - vh * sy) / 2
    x = vx + (left - tx) / sx
    y = vy + (top - ty) / sy
    return x, y, (right - left) / sx, (bottom - top) / sy


async def tightly_crop_svg(markup: str, surface: MeasuringSurface) -> CroppedSvg:
    """
    Crop an SVG document to the bounding box of its rendered content.

    Args:
        markup: SVG markup
        surface: Shared measuring surface

    Returns:
        CroppedSvg whose viewBox surrounds the content with ``CROP_MARGIN``
        and whose size never exceeds the declared size

    Raises:
        RenderError: If the markup is invalid or renders nothing
    """
    root = parse_svg(markup)
    orig_w, orig_h = declared_size(root, surface)
    render_w, render_h = max(1, round(orig_w)), max(1, round(orig_h))
    view_box = _parse_view_box(root.get("viewBox")) or (0.0, 0.0, orig_w, orig_h)

    # let concurrent resolutions progress before the blocking render
    await asyncio.sleep(0)
    bbox = await asyncio.to_thread(surface.content_bbox, root, render_w, render_h)
    if bbox is None:
        raise RenderError("SVG has no visible content")

    x, y, w, h = _to_user_units(
        bbox, view_box, render_w, render_h, root.get("preserveAspectRatio", "")
    )
    cropped_w = w + CROP_MARGIN * 2
    cropped_h = h + CROP_MARGIN * 2
    final_w = min(cropped_w, orig_w) if orig_w > 0 else cropped_w
    final_h = min(cropped_h, orig_h) if orig_h > 0 else cropped_h

    cloned = deepcopy(root)
    cloned.set(
        "viewBox",
        " ".join(_fmt(v) for v in (x - CROP_MARGIN, y - CROP_MARGIN, cropped_w, cropped_h)),
    )
    cloned.set("width", _fmt(final_w))
    cloned.set("height", _fmt(final_h))
    cloned.attrib.pop("style", None)

    scale = min(cropped_w / orig_w, cropped_h / orig_h, 1.0)
    logger.debug(
        "Cropped SVG from {}x{} to {}x{} (scale={:.3f})", orig_w, orig_h, final_w, final_h, scale
    )
    return CroppedSvg(root=cloned, width=final_w, height=final_h, scale=scale)


def upscale_factor(width: float, height: float, surface: MeasuringSurface) -> int:
    """Largest integer enlargement that keeps the image within the page."""
    return max(1, math.floor(min(surface.width / width, surface.height / height)))


async def _load_markup(source: VectorSource) -> RenderedSvg | None:
    if isinstance(source, LiteralSvg):
        return RenderedSvg(svg=source.markup, diagram_type=source.diagram_type)
    if isinstance(source, PendingSvg):
        rendered = await source.compute()
        if isinstance(rendered, Mapping):
            svg = rendered.get("svg")
            return RenderedSvg(svg=svg, diagram_type=rendered.get("diagramType")) if svg else None
        return rendered
    raise TypeError(f"Unsupported vector source: {type(source).__name__}")


def _rasterize(
    root: ET.Element,
    width: float,
    height: float,
    scale: float,
    surface: MeasuringSurface,
    options: PluginOptions,
) -> bytes:
    canvas = DrawingSurface(width * scale, height * scale)
    canvas.draw_image(surface.render(root, canvas.width, canvas.height))
    return canvas.encode(options.fallback_image_type)


async def handle_svg(
    source: VectorSource,
    options: PluginOptions,
    surface: MeasuringSurface,
) -> StageResult[ResolvedImage]:
    """
    Convert vector markup into a raster image for DOCX insertion.

    Args:
        source: Literal markup or a pending diagram render
        options: Plugin options (scale and fallback format)
        surface: Shared measuring surface

    Returns:
        Ok with the rasterized image sized in logical pixels, or Err when the
        markup is missing, invalid or cannot be rendered
    """
    try:
        rendered = await _load_markup(source)
        if rendered is None or not rendered.svg:
            return Err("unresolvable vector source")

        diagram_type = rendered.diagram_type
        markup = fix_generated_svg(rendered.svg, diagram_type)

        if diagram_type in CROP_EXEMPT_DIAGRAMS:
            root = parse_svg(markup)
            width, height = declared_size(root, surface)
        else:
            cropped = await tightly_crop_svg(markup, surface)
            root, width, height = cropped.root, cropped.width, cropped.height

        scale = options.scale
        if diagram_type in UPSCALE_DIAGRAMS:
            factor = upscale_factor(width, height, surface)
            width, height = width * factor, height * factor
            logger.debug("Enlarging {} diagram {}x", diagram_type, factor)

        data = await asyncio.to_thread(_rasterize, root, width, height, scale, surface, options)
    except RenderError as e:
        return Err("render failed", e)
    except Exception as e:
        logger.warning("Unexpected error rendering SVG: {}", e)
        return Err("render failed", RenderError(str(e)))

    return Ok(
        ResolvedImage(
            type=options.fallback_image_type,
            data=data,
            transformation=Transformation(width=width, height=height),
        )
    )
