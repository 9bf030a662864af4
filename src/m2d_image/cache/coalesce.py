"""
Two-tier resolution cache.

Concurrent requests for the same key share one in-flight task; settled
results are looked up in (and written to) the persistent store.
"""

import asyncio
from collections.abc import Awaitable, Callable

from loguru import logger

from ..images.base import ResolvedImage
from ..result import Ok, StageResult
from .base import ImageStore

Resolve = Callable[[], Awaitable[StageResult[ResolvedImage]]]


class ResolverCache:
    """Coalesces resolutions per key in front of an optional persistent store."""

    def __init__(self, store: ImageStore | None = None):
        """
        Args:
            store: Persistent store, or None to only share concurrent resolutions
        """
        self.store = store
        self._in_flight: dict[str, asyncio.Future[StageResult[ResolvedImage]]] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._in_flight

    def __len__(self) -> int:
        return len(self._in_flight)

    async def get_or_resolve(self, key: str, resolve: Resolve) -> StageResult[ResolvedImage]:
        """
        Return the result for ``key``, sharing a resolution already running.

        Args:
            key: Cache fingerprint
            resolve: Coroutine function performing the actual resolution

        Returns:
            The (possibly shared) resolution result
        """
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._load_or_resolve(key, resolve))
            self._in_flight[key] = task
        else:
            logger.debug("Joining in-flight resolution: {}", key)
        return await task

    async def _load_or_resolve(self, key: str, resolve: Resolve) -> StageResult[ResolvedImage]:
        try:
            if self.store is not None:
                cached = await self.store.get(key)
                if cached is not None:
                    return Ok(cached)

            result = await resolve()

            # failures fall back to the placeholder and are never persisted
            if isinstance(result, Ok) and self.store is not None:
                await self.store.set(key, result.value)
            return result
        finally:
            # settled keys leave the map; later requests go to the store again
            self._in_flight.pop(key, None)
