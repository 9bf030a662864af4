"""
Abstract base class for persistent image stores.

Enables swapping between the on-disk store and an in-memory store.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, Field

from ..images.base import ImageType, ResolvedImage

# Namespace for the image cache within a store directory
NAMESPACE = "img"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheEntry(BaseModel):
    """A persisted resolution result."""

    key: str = Field(description="Fingerprint of the image source and options")
    type: ImageType = Field(description="Embedded image format")
    width: float = Field(description="Embed width in pixels")
    height: float = Field(description="Embed height in pixels")
    file_path: str = Field(default="", description="Payload file relative to the store")
    stored_at: datetime = Field(default_factory=utcnow, description="Write time (UTC)")

    def is_expired(self, max_age_minutes: float, now: datetime | None = None) -> bool:
        """Check whether the entry is older than ``max_age_minutes``."""
        return (now or utcnow()) - self.stored_at > timedelta(minutes=max_age_minutes)


class ImageStore(ABC):
    """Abstract interface for persistent, best-effort image stores.

    ``get`` and ``set`` never raise: store failures are logged and treated as
    a cache miss or a skipped write.
    """

    namespace: str = NAMESPACE

    @abstractmethod
    async def get(self, key: str) -> ResolvedImage | None:
        """
        Look up a stored image.

        Args:
            key: Cache fingerprint

        Returns:
            The stored image, or None on a miss or store failure
        """
        pass

    @abstractmethod
    async def set(self, key: str, image: ResolvedImage) -> None:
        """
        Store an image under ``key`` (best effort).

        Args:
            key: Cache fingerprint
            image: Resolved image to persist
        """
        pass

    @abstractmethod
    async def sweep(self, max_age_minutes: float, now: datetime | None = None) -> int:
        """Remove entries older than ``max_age_minutes``; return how many were removed."""
        pass

    @abstractmethod
    async def clear(self) -> int:
        """Remove all entries; return how many were removed."""
        pass

    @abstractmethod
    async def count(self) -> int:
        """Return the number of stored entries."""
        pass
