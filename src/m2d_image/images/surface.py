"""
Off-screen surfaces used to draw, render and measure images.

``DrawingSurface`` is a Pillow canvas that decoded images are drawn onto and
encoded from. ``MeasuringSurface`` renders SVG markup with cairosvg at the
size of the printable page so the rendered content can be measured.
"""

import xml.etree.ElementTree as ET
from copy import deepcopy
from io import BytesIO

from PIL import Image as PILImage
from PIL import UnidentifiedImageError

from ..errors import DecodeError, RenderError
from .base import CSS_DPI, ImageType

# Pillow format names for the embeddable image types
PIL_FORMATS: dict[str, str] = {
    "png": "PNG",
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "gif": "GIF",
    "bmp": "BMP",
}


def decode_image(data: bytes) -> PILImage.Image:
    """
    Decode raster bytes into a fully loaded Pillow image.

    Raises:
        DecodeError: If the bytes are not a readable image
    """
    try:
        img = PILImage.open(BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise DecodeError(f"Cannot decode image ({len(data)} bytes): {e}") from e
    return img


class DrawingSurface:
    """RGBA canvas images are drawn onto before being encoded."""

    def __init__(self, width: float, height: float):
        self.width = max(1, round(width))
        self.height = max(1, round(height))
        self._canvas = PILImage.new("RGBA", (self.width, self.height), (0, 0, 0, 0))

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    def draw_image(self, img: PILImage.Image) -> None:
        """Draw ``img`` stretched over the whole surface."""
        if img.mode != "RGBA":
            img = img.convert("RGBA")
        if img.size != self.size:
            img = img.resize(self.size, PILImage.Resampling.LANCZOS)
        self._canvas.alpha_composite(img)

    def encode(self, image_type: ImageType) -> bytes:
        """
        Encode the surface content.

        Args:
            image_type: Target format (png, jpg, gif or bmp)

        Returns:
            Encoded image bytes

        Raises:
            DecodeError: If the surface cannot be encoded in that format
        """
        img = self._canvas
        # JPEG has no alpha channel; flatten onto white
        if image_type == "jpg":
            background = PILImage.new("RGB", img.size, (255, 255, 255))
            background.paste(img, mask=img.getchannel("A"))
            img = background

        output = BytesIO()
        try:
            img.save(output, format=PIL_FORMATS[image_type])
        except (KeyError, OSError, ValueError) as e:
            raise DecodeError(f"Cannot encode image as {image_type}: {e}") from e
        return output.getvalue()


def _svg_to_png(markup: bytes, width: int, height: int) -> bytes:
    try:
        import cairosvg
    except (ImportError, OSError) as e:
        raise RenderError(f"cairosvg is required to render SVG images: {e}") from e

    try:
        return cairosvg.svg2png(bytestring=markup, output_width=width, output_height=height)
    except Exception as e:
        raise RenderError(f"Cannot render SVG: {e}") from e


class MeasuringSurface:
    """Page-sized surface SVG documents are rendered on for measuring.

    One instance is shared by all resolutions of a plugin; every call renders
    into a fresh buffer so concurrent use is safe.
    """

    def __init__(self, max_w: float, max_h: float):
        """
        Args:
            max_w: Page width in inches
            max_h: Page height in inches
        """
        self.width = max_w * CSS_DPI
        self.height = max_h * CSS_DPI
        self.dpi = self.width / max_w

    def render(self, root: ET.Element, width: int, height: int) -> PILImage.Image:
        """
        Render an SVG element tree at exactly ``width`` x ``height`` pixels.

        Raises:
            RenderError: If cairosvg is unavailable or rendering fails
        """
        sized = deepcopy(root)
        sized.set("width", str(width))
        sized.set("height", str(height))
        png = _svg_to_png(ET.tostring(sized), width, height)
        try:
            return decode_image(png)
        except DecodeError as e:
            raise RenderError(str(e)) from e

    def content_bbox(
        self, root: ET.Element, width: int, height: int
    ) -> tuple[int, int, int, int] | None:
        """
        Pixel bounding box of the non-transparent rendered content.

        Returns:
            (left, top, right, bottom) or None if nothing is drawn
        """
        img = self.render(root, width, height)
        if img.mode != "RGBA":
            img = img.convert("RGBA")
        return img.getchannel("A").getbbox()
