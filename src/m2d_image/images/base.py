"""
Data models for image resolution.

Provides the plugin options, the image reference captured from a document
node and the resolved, embeddable image payload.
"""

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from ..config import FallbackImageType, Settings

ImageType = Literal["png", "jpg", "gif", "bmp"]

# Subtypes DOCX can embed as-is; svg is handled by the vector rasterizer
SUPPORTED_IMAGE_TYPES = frozenset({"jpeg", "jpg", "bmp", "gif", "png"})

# CSS pixels per inch, the unit cairosvg renders in
CSS_DPI = 96.0


class PluginOptions(BaseModel):
    """Resolved plugin configuration."""

    model_config = ConfigDict(frozen=True)

    scale: float = Field(default=3, gt=0, description="Oversampling factor for re-encoding")
    fallback_image_type: FallbackImageType = Field(
        default="png", description="Format for types DOCX cannot embed"
    )
    max_w: float = Field(default=6.3, gt=0, description="Max image width in inches")
    max_h: float = Field(default=9.7, gt=0, description="Max image height in inches")
    dpi: float = Field(default=CSS_DPI, gt=0, description="Pixels per inch on the page")
    placeholder: str | None = Field(default=None, description="Image source used on errors")
    cache_enabled: bool = Field(default=True, description="Persist resolved images")
    cache_salt: str | None = Field(default=None, description="Extra cache key component")
    cache_max_age_minutes: int = Field(default=7 * 24 * 60, description="Cache entry TTL")
    cache_dir: str = Field(default="./data/image-cache", description="Persistent cache dir")
    fetch_timeout: int = Field(default=30, description="HTTP timeout in seconds")
    fetch_retries: int = Field(default=3, ge=1, description="Fetch attempts on transport errors")
    fetch_backoff: float = Field(default=1.0, ge=0, description="Base retry delay in seconds")
    base_url: str | None = Field(default=None, description="Origin for relative URLs")

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "PluginOptions":
        """Build options from application settings, applying keyword overrides."""
        values = settings.model_dump(exclude={"log_level", "log_json", "log_file"})
        values.update(overrides)
        return cls(**values)


class Transformation(BaseModel):
    """Final embed size in pixels."""

    width: float
    height: float


class ResolvedImage(BaseModel):
    """An image payload ready to be embedded as a DOCX image run."""

    model_config = ConfigDict(frozen=True)

    type: ImageType = Field(description="Embedded image format")
    data: bytes = Field(description="Encoded image bytes")
    transformation: Transformation

    def to_image_options(self) -> dict[str, Any]:
        """Return the payload as image-run keyword arguments."""
        return {
            "type": self.type,
            "data": self.data,
            "transformation": self.transformation.model_dump(),
        }


class ImageKind(str, Enum):
    """How an image reference is resolved."""

    INLINE = "inline"
    REMOTE = "remote"
    VECTOR = "vector"


@dataclass(frozen=True)
class RenderedSvg:
    """Markup produced by a diagram renderer."""

    svg: str
    diagram_type: str | None = None


@dataclass(frozen=True)
class LiteralSvg:
    """Vector source whose markup is already available."""

    markup: str
    diagram_type: str | None = None


@dataclass(frozen=True)
class PendingSvg:
    """Vector source produced by a deferred computation.

    ``compute`` is awaited once and yields the rendered markup or None.
    ``source`` identifies the diagram (e.g. its mermaid code) for caching;
    without it the result is not cached.
    """

    compute: Callable[[], Awaitable[RenderedSvg | Mapping[str, Any] | None]]
    source: str | None = None


VectorSource = LiteralSvg | PendingSvg


@dataclass(frozen=True)
class ImageReference:
    """An image source captured from a document node."""

    kind: ImageKind
    source: str | VectorSource
    width: float | None = None
    height: float | None = None
    alt: str = ""
    is_placeholder: bool = False

    @property
    def identity(self) -> str | None:
        """Stable description of the source used for cache fingerprints."""
        if isinstance(self.source, LiteralSvg):
            return self.source.markup
        if isinstance(self.source, PendingSvg):
            return self.source.source
        return self.source
