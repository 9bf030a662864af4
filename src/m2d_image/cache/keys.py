"""Cache key generation."""

import hashlib
import json
from collections.abc import Mapping
from typing import Any

from ..images.base import PluginOptions

# Option fields that change the resolved image; everything else (dpi, cache
# settings, alt text, node type) is left out of the key
CACHE_KEY_FIELDS = ("scale", "fallback_image_type", "max_w", "max_h")


def select_key_fields(options: PluginOptions) -> dict[str, Any]:
    """Pick the option values that take part in cache keys."""
    return {field: getattr(options, field) for field in CACHE_KEY_FIELDS}


def fingerprint(source: str, salt: str | None, fields: Mapping[str, Any]) -> str:
    """
    Generate a deterministic cache key.

    Args:
        source: Identity of the image source (URL, data URL, markup, diagram code)
        salt: Optional value separating otherwise identical keys (e.g. theme)
        fields: Whitelisted option values

    Returns:
        Hex digest usable as a key and file name
    """
    payload = json.dumps(
        {"source": source, "salt": salt, "options": dict(fields)},
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return hashlib.sha256(payload.encode()).hexdigest()[:32]
