"""Exception types raised inside the image resolution stages.

None of these escape the resolver: fetch, decode and render failures are
turned into ``Err`` results and then into the placeholder image, cache
failures into cache misses.
"""


class ImageError(Exception):
    """Base class for image resolution failures."""


class DecodeError(ImageError):
    """Image bytes could not be decoded or re-encoded."""


class FetchError(ImageError):
    """A remote or local image source could not be read."""


class RenderError(ImageError):
    """Vector markup is missing, invalid or could not be measured/rendered."""


class CacheError(ImageError):
    """The persistent cache store is unavailable or failed an I/O operation."""
