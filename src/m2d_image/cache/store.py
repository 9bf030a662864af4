"""
Image store implementations.

``FileImageStore`` keeps one JSON entry record and one payload file per key
in a namespaced directory; ``MemoryImageStore`` keeps everything in a dict.
"""

import asyncio
from datetime import datetime
from pathlib import Path

from loguru import logger

from ..errors import CacheError
from ..images.base import ResolvedImage, Transformation
from .base import NAMESPACE, CacheEntry, ImageStore


def _to_image(entry: CacheEntry, data: bytes) -> ResolvedImage:
    return ResolvedImage(
        type=entry.type,
        data=data,
        transformation=Transformation(width=entry.width, height=entry.height),
    )


def _to_entry(key: str, image: ResolvedImage, file_path: str = "") -> CacheEntry:
    return CacheEntry(
        key=key,
        type=image.type,
        width=image.transformation.width,
        height=image.transformation.height,
        file_path=file_path,
    )


class FileImageStore(ImageStore):
    """Directory-backed image store."""

    def __init__(self, cache_dir: Path | str, namespace: str = NAMESPACE):
        """
        Initialize the store.

        The directory is created lazily on first use.

        Args:
            cache_dir: Root directory of the cache
            namespace: Subdirectory holding this store's entries
        """
        self.namespace = namespace
        self.root = Path(cache_dir) / namespace
        self._opened = False

    def _open(self) -> Path:
        if not self._opened:
            try:
                self.root.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise CacheError(f"Cannot open image cache at {self.root}: {e}") from e
            self._opened = True
            logger.debug("Image cache opened at {}", self.root)
        return self.root

    def _entry_path(self, key: str) -> Path:
        return self._open() / f"{key}.json"

    def _read(self, key: str) -> ResolvedImage | None:
        entry_path = self._entry_path(key)
        if not entry_path.exists():
            return None
        try:
            entry = CacheEntry.model_validate_json(entry_path.read_bytes())
            data = (self.root / entry.file_path).read_bytes()
        except (OSError, ValueError) as e:
            raise CacheError(f"Cannot read cache entry {key}: {e}") from e
        return _to_image(entry, data)

    def _write(self, key: str, image: ResolvedImage) -> None:
        file_path = f"{key}.{image.type}"
        entry = _to_entry(key, image, file_path)
        entry_path = self._entry_path(key)
        tmp_path = entry_path.with_suffix(".tmp")
        try:
            (self.root / file_path).write_bytes(image.data)
            tmp_path.write_text(entry.model_dump_json())
            tmp_path.replace(entry_path)
        except OSError as e:
            raise CacheError(f"Cannot write cache entry {key}: {e}") from e

    def _entries(self) -> list[tuple[Path, CacheEntry | None]]:
        entries = []
        for entry_path in sorted(self._open().glob("*.json")):
            try:
                entry = CacheEntry.model_validate_json(entry_path.read_bytes())
            except (OSError, ValueError) as e:
                logger.debug("Unreadable cache entry {}: {}", entry_path.name, e)
                entries.append((entry_path, None))
            else:
                entries.append((entry_path, entry))
        return entries

    def _remove(self, entry_path: Path, entry: CacheEntry | None) -> None:
        if entry is not None and entry.file_path:
            (self.root / entry.file_path).unlink(missing_ok=True)
        entry_path.unlink(missing_ok=True)

    def _sweep(self, max_age_minutes: float, now: datetime | None) -> int:
        removed = 0
        for entry_path, entry in self._entries():
            if entry is None or entry.is_expired(max_age_minutes, now):
                self._remove(entry_path, entry)
                removed += 1
        return removed

    def _clear(self) -> int:
        entries = self._entries()
        for entry_path, entry in entries:
            self._remove(entry_path, entry)
        return len(entries)

    async def get(self, key: str) -> ResolvedImage | None:
        try:
            image = await asyncio.to_thread(self._read, key)
        except CacheError as e:
            logger.warning("Image cache get failed: {}", e)
            return None
        logger.debug("Image cache {}: {}", "hit" if image else "miss", key)
        return image

    async def set(self, key: str, image: ResolvedImage) -> None:
        try:
            await asyncio.to_thread(self._write, key, image)
        except CacheError as e:
            logger.warning("Image cache set failed: {}", e)
            return
        logger.debug("Stored image in cache: {} ({} bytes)", key, len(image.data))

    async def sweep(self, max_age_minutes: float, now: datetime | None = None) -> int:
        try:
            removed = await asyncio.to_thread(self._sweep, max_age_minutes, now)
        except (CacheError, OSError) as e:
            logger.warning("Image cache sweep failed: {}", e)
            return 0
        if removed:
            logger.info("Removed {} stale entries from image cache", removed)
        return removed

    async def clear(self) -> int:
        removed = await asyncio.to_thread(self._clear)
        logger.info("Cleared {} entries from image cache", removed)
        return removed

    async def count(self) -> int:
        return len(await asyncio.to_thread(self._entries))


class MemoryImageStore(ImageStore):
    """Process-local image store, mainly for tests and cache-less runs."""

    def __init__(self, namespace: str = NAMESPACE):
        self.namespace = namespace
        self._entries: dict[str, tuple[CacheEntry, bytes]] = {}

    async def get(self, key: str) -> ResolvedImage | None:
        stored = self._entries.get(key)
        if stored is None:
            return None
        return _to_image(*stored)

    async def set(self, key: str, image: ResolvedImage) -> None:
        self._entries[key] = (_to_entry(key, image), image.data)

    async def sweep(self, max_age_minutes: float, now: datetime | None = None) -> int:
        expired = [
            key
            for key, (entry, _) in self._entries.items()
            if entry.is_expired(max_age_minutes, now)
        ]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def clear(self) -> int:
        removed = len(self._entries)
        self._entries.clear()
        return removed

    async def count(self) -> int:
        return len(self._entries)
