"""
Tests for magic-byte format detection.
"""

import pytest

from m2d_image.images.sniff import sniff_image_type


class TestSniffImageType:
    """Test sniff_image_type function."""

    @pytest.mark.parametrize(
        "header,expected",
        [
            (b"\x42\x4d\x00\x00", "bmp"),
            (b"\x89\x50\x4e\x47\x0d\x0a\x1a\x0a", "png"),
            (b"\x47\x49\x46\x38\x39\x61", "gif"),
            (b"\xff\xd8\xff\xe0\x00\x10", "jpg"),
            (b"\xff\xd8\xff\xe1", "jpg"),
            (b"\xff\xd8\xff\xe8", "jpg"),
        ],
    )
    def test_known_signatures(self, header, expected):
        """Test fixed magic bytes map to their type."""
        assert sniff_image_type(header) == expected

    def test_bmp_takes_priority(self):
        """Test that the two-byte BMP signature wins over the table."""
        assert sniff_image_type(b"BM\x89\x50") == "bmp"

    def test_unknown_signature(self):
        """Test unmatched signatures return None."""
        assert sniff_image_type(b"RIFF\x00\x00WEBP") is None
        assert sniff_image_type(b"\xff\xd8\xff\xdb") is None

    @pytest.mark.parametrize("data", [b"", b"\x89", b"\x89PN", b"BM"])
    def test_short_buffers_are_unknown(self, data):
        """Test buffers shorter than four bytes return None."""
        assert sniff_image_type(data) is None

    def test_buffer_types_agree(self):
        """Test bytes, bytearray and memoryview give the same answer."""
        data = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16

        assert sniff_image_type(data) == "png"
        assert sniff_image_type(bytearray(data)) == "png"
        assert sniff_image_type(memoryview(data)) == "png"
        assert sniff_image_type(memoryview(data)[:4]) == "png"

    def test_real_images(self, make_image_bytes):
        """Test detection on Pillow-encoded images."""
        assert sniff_image_type(make_image_bytes("PNG")) == "png"
        assert sniff_image_type(make_image_bytes("JPEG")) == "jpg"
        assert sniff_image_type(make_image_bytes("GIF")) == "gif"
        assert sniff_image_type(make_image_bytes("BMP")) == "bmp"
