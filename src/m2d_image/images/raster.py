"""
Raster image normalization.

Passes formats DOCX embeds natively through unchanged and re-encodes
everything else (webp, tiff, ico, ...) into the configured fallback format.
"""

import asyncio

from loguru import logger

from ..errors import DecodeError
from ..result import Err, Ok, StageResult
from .base import SUPPORTED_IMAGE_TYPES, PluginOptions, ResolvedImage, Transformation
from .sniff import sniff_image_type
from .surface import DrawingSurface, decode_image


def _normalize(data: bytes, subtype: str | None, options: PluginOptions) -> ResolvedImage:
    img = decode_image(data)
    subtype = (subtype or sniff_image_type(data) or (img.format or "")).lower()

    scale = options.scale
    width = img.width * scale
    height = img.height * scale

    if subtype in SUPPORTED_IMAGE_TYPES:
        return ResolvedImage(
            type="jpg" if subtype == "jpeg" else subtype,
            data=data,
            transformation=Transformation(width=width / scale, height=height / scale),
        )

    fallback = options.fallback_image_type
    logger.warning("{} not supported by docx, converting to {}", subtype or "unknown", fallback)
    surface = DrawingSurface(width, height)
    surface.draw_image(img)
    return ResolvedImage(
        type=fallback,
        data=surface.encode(fallback),
        transformation=Transformation(
            width=surface.width / scale,
            height=surface.height / scale,
        ),
    )


async def normalize_raster(
    data: bytes,
    subtype: str | None,
    options: PluginOptions,
) -> StageResult[ResolvedImage]:
    """
    Turn raster bytes into an embeddable image at its intrinsic size.

    Args:
        data: Raw image bytes
        subtype: Declared image subtype (e.g. "png", "webp"); detected from
            the bytes when None
        options: Plugin options (scale and fallback format)

    Returns:
        Ok with the image sized in logical pixels, or Err on decode failure
    """
    try:
        image = await asyncio.to_thread(_normalize, data, subtype, options)
    except DecodeError as e:
        return Err("decode failed", e)

    logger.debug(
        "Normalized raster image: type={}, {}x{}",
        image.type,
        image.transformation.width,
        image.transformation.height,
    )
    return Ok(image)
