"""Pytest fixtures and configuration for m2d-image tests.

This module provides shared fixtures for testing the resolver, cache layer,
SVG handling and the document plugin.
"""

import base64
import tempfile
from collections.abc import Callable, Generator
from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image

from m2d_image.images.base import PluginOptions


def _cairo_available() -> bool:
    try:
        import cairosvg  # noqa: F401
    except (ImportError, OSError):
        return False
    return True


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "cairo: test renders SVG and needs the cairo library")


def pytest_collection_modifyitems(config, items):
    """Skip SVG rendering tests when cairo is not installed."""
    if _cairo_available():
        return
    skip_cairo = pytest.mark.skip(reason="cairo library not available")
    for item in items:
        if "cairo" in item.keywords:
            item.add_marker(skip_cairo)


# --- Temporary Directory Fixtures ---


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp)


@pytest.fixture
def temp_cache_dir(temp_dir: Path) -> Path:
    """Create a temporary directory for the image cache."""
    cache_dir = temp_dir / "cache"
    cache_dir.mkdir()
    return cache_dir


# --- Options Fixtures ---


@pytest.fixture
def options(temp_cache_dir: Path) -> PluginOptions:
    """Plugin options with a 6x9 inch page and no persistent cache."""
    return PluginOptions(
        scale=3,
        max_w=6,
        max_h=9,
        cache_enabled=False,
        cache_dir=str(temp_cache_dir),
        fetch_retries=1,
        fetch_backoff=0,
    )


# --- Sample Data Fixtures ---


@pytest.fixture
def make_image_bytes() -> Callable[..., bytes]:
    """Return a factory encoding a solid-colour image."""

    def make(
        fmt: str = "PNG",
        size: tuple[int, int] = (400, 200),
        color: str | tuple = "red",
        mode: str = "RGB",
    ) -> bytes:
        img = Image.new(mode, size, color=color)
        buffer = BytesIO()
        img.save(buffer, format=fmt)
        return buffer.getvalue()

    return make


@pytest.fixture
def sample_png_bytes(make_image_bytes) -> bytes:
    """A 400x200 PNG."""
    return make_image_bytes("PNG", (400, 200))


@pytest.fixture
def sample_jpeg_bytes(make_image_bytes) -> bytes:
    """A 100x100 JPEG."""
    return make_image_bytes("JPEG", (100, 100))


@pytest.fixture
def sample_png_data_url(sample_png_bytes: bytes) -> str:
    """The 400x200 PNG as a base64 data URL."""
    return "data:image/png;base64," + base64.b64encode(sample_png_bytes).decode()


@pytest.fixture
def placeholder_data_url(make_image_bytes) -> str:
    """A 50x50 grey PNG used as placeholder image."""
    data = make_image_bytes("PNG", (50, 50), color="grey")
    return "data:image/png;base64," + base64.b64encode(data).decode()


@pytest.fixture
def box_svg() -> str:
    """A 400x300 SVG with a 200x100 box at (100, 50)."""
    return (
        '<svg xmlns="http://www.w3.org/2000/svg" width="400" height="300">'
        '<rect x="100" y="50" width="200" height="100" fill="#000"/>'
        "</svg>"
    )


@pytest.fixture
def wide_svg() -> str:
    """A 1000x200 SVG whose content crops to 800x100."""
    return (
        '<svg xmlns="http://www.w3.org/2000/svg" width="1000" height="200">'
        '<rect x="4" y="4" width="792" height="92" fill="#336699"/>'
        "</svg>"
    )
