"""
Image cache package.

Provides cache keys, persistent image stores and the coalescing resolver cache.
"""

from pathlib import Path

from .base import NAMESPACE, CacheEntry, ImageStore
from .coalesce import ResolverCache
from .keys import CACHE_KEY_FIELDS, fingerprint, select_key_fields
from .store import FileImageStore, MemoryImageStore


def create_image_store(
    store_type: str = "file",
    cache_dir: str | Path = "./data/image-cache",
    namespace: str = NAMESPACE,
) -> ImageStore:
    """
    Factory function to create an image store.

    Args:
        store_type: Type of store ("file" or "memory")
        cache_dir: Root directory for the file store
        namespace: Namespace separating this store's entries

    Returns:
        Configured ImageStore instance

    Raises:
        ValueError: If store_type is not recognized
    """
    if store_type == "file":
        return FileImageStore(cache_dir=cache_dir, namespace=namespace)
    elif store_type == "memory":
        return MemoryImageStore(namespace=namespace)
    else:
        raise ValueError(f"Unknown image store type: {store_type}")


__all__ = [
    "CACHE_KEY_FIELDS",
    "NAMESPACE",
    "CacheEntry",
    "FileImageStore",
    "ImageStore",
    "MemoryImageStore",
    "ResolverCache",
    "create_image_store",
    "fingerprint",
    "select_key_fields",
]
