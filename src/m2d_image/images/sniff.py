"""Magic-byte detection of the raster formats DOCX can embed."""

from .base import ImageType

_BMP_SIGNATURE = b"\x42\x4d"

_SIGNATURES: dict[bytes, ImageType] = {
    b"\x89\x50\x4e\x47": "png",
    b"\x47\x49\x46\x38": "gif",
    b"\xff\xd8\xff\xe0": "jpg",
    b"\xff\xd8\xff\xe1": "jpg",
    b"\xff\xd8\xff\xe2": "jpg",
    b"\xff\xd8\xff\xe3": "jpg",
    b"\xff\xd8\xff\xe8": "jpg",
}


def sniff_image_type(data: bytes | bytearray | memoryview) -> ImageType | None:
    """
    Detect the image format from the first bytes of a buffer.

    Args:
        data: Raw image bytes (any bytes-like object)

    Returns:
        "bmp", "png", "gif" or "jpg", or None when the signature is unknown
        or the buffer is shorter than four bytes
    """
    header = bytes(data[:4])
    if len(header) < 4:
        return None
    if header[:2] == _BMP_SIGNATURE:
        return "bmp"
    return _SIGNATURES.get(header)
