"""
Tests for raster normalization and the drawing surface.
"""

from io import BytesIO

import pytest
from PIL import Image

from m2d_image.errors import DecodeError
from m2d_image.images.raster import normalize_raster
from m2d_image.images.sniff import sniff_image_type
from m2d_image.images.surface import DrawingSurface, decode_image
from m2d_image.result import Err, Ok


class TestDrawingSurface:
    """Test DrawingSurface class."""

    def test_size_is_rounded(self):
        """Test fractional sizes are rounded to whole pixels."""
        surface = DrawingSurface(120.4, 59.6)

        assert surface.size == (120, 60)

    def test_minimum_size(self):
        """Test surfaces are at least one pixel."""
        assert DrawingSurface(0.2, 0).size == (1, 1)

    def test_draw_and_encode_png(self, make_image_bytes):
        """Test a drawn image is stretched over the surface."""
        surface = DrawingSurface(30, 15)
        surface.draw_image(decode_image(make_image_bytes("PNG", (10, 5), color="blue")))

        img = Image.open(BytesIO(surface.encode("png")))
        assert img.size == (30, 15)
        r, g, b = img.convert("RGB").getpixel((15, 7))
        assert r < 5 and g < 5 and b > 250

    def test_encode_jpg_flattens_alpha(self):
        """Test transparent areas become white in JPEG output."""
        surface = DrawingSurface(8, 8)

        data = surface.encode("jpg")

        assert sniff_image_type(data) == "jpg"
        r, g, b = Image.open(BytesIO(data)).getpixel((4, 4))
        assert min(r, g, b) > 245

    @pytest.mark.parametrize("image_type", ["png", "jpg", "gif", "bmp"])
    def test_encode_all_types(self, image_type):
        """Test every embeddable type can be encoded."""
        data = DrawingSurface(4, 4).encode(image_type)

        assert sniff_image_type(data) == image_type


class TestDecodeImage:
    """Test decode_image function."""

    def test_decode_valid(self, sample_png_bytes):
        """Test decoding a valid image."""
        assert decode_image(sample_png_bytes).size == (400, 200)

    def test_decode_invalid(self):
        """Test invalid bytes raise DecodeError."""
        with pytest.raises(DecodeError):
            decode_image(b"not an image at all")

    def test_decode_truncated(self, sample_png_bytes):
        """Test truncated image data raises DecodeError."""
        with pytest.raises(DecodeError):
            decode_image(sample_png_bytes[:40])


class TestNormalizeRaster:
    """Test normalize_raster function."""

    @pytest.mark.asyncio
    async def test_png_passthrough(self, options, sample_png_bytes):
        """Test supported formats keep their bytes and intrinsic size."""
        result = await normalize_raster(sample_png_bytes, "png", options)

        assert isinstance(result, Ok)
        assert result.value.type == "png"
        assert result.value.data == sample_png_bytes
        assert result.value.transformation.width == 400
        assert result.value.transformation.height == 200

    @pytest.mark.asyncio
    async def test_jpeg_reported_as_jpg(self, options, sample_jpeg_bytes):
        """Test the jpeg subtype is reported as jpg."""
        result = await normalize_raster(sample_jpeg_bytes, "jpeg", options)

        assert result.value.type == "jpg"
        assert result.value.data == sample_jpeg_bytes

    @pytest.mark.asyncio
    async def test_subtype_detected_from_bytes(self, options, make_image_bytes):
        """Test the format is sniffed when no subtype is declared."""
        data = make_image_bytes("GIF", (20, 10))

        result = await normalize_raster(data, None, options)

        assert result.value.type == "gif"
        assert result.value.data == data

    @pytest.mark.asyncio
    async def test_unsupported_format_reencoded(self, options, make_image_bytes):
        """Test formats DOCX cannot embed are converted to the fallback type."""
        data = make_image_bytes("TIFF", (40, 20))

        result = await normalize_raster(data, None, options)

        assert isinstance(result, Ok)
        image = result.value
        assert image.type == "png"
        assert sniff_image_type(image.data) == "png"
        assert image.transformation.width == 40
        assert image.transformation.height == 20
        # drawn at the oversampling scale
        assert Image.open(BytesIO(image.data)).size == (120, 60)

    @pytest.mark.asyncio
    async def test_declared_unsupported_subtype(self, options, make_image_bytes):
        """Test a declared unsupported subtype forces re-encoding."""
        data = make_image_bytes("PNG", (10, 10))

        result = await normalize_raster(data, "webp", options)

        assert result.value.type == "png"
        assert result.value.data != data

    @pytest.mark.asyncio
    async def test_fallback_type_honoured(self, options, make_image_bytes):
        """Test the configured fallback image type is used."""
        options = options.model_copy(update={"fallback_image_type": "jpg"})

        result = await normalize_raster(make_image_bytes("TIFF", (16, 16)), None, options)

        assert result.value.type == "jpg"
        assert sniff_image_type(result.value.data) == "jpg"

    @pytest.mark.asyncio
    async def test_decode_failure(self, options):
        """Test undecodable bytes produce an Err."""
        result = await normalize_raster(b"garbage bytes", "png", options)

        assert isinstance(result, Err)
        assert result.reason == "decode failed"
        assert isinstance(result.error, DecodeError)
