"""Cache-first access to avatar and voice catalogs.

Fetching from a vendor API is left to the caller-supplied ``fetch``
coroutine. This module only decides when to call it and keeps the response
cache in sync. Store faults never reach the caller: a failed read is a miss,
and a failed write is logged and skipped. A cached catalog that no
longer parses into models is refetched.
"""

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from pydantic import ValidationError

from avatarlink.cache import ResponseCache
from avatarlink.models import Avatar, PlatformId, ResourceKind, Voice
from avatarlink.storage import StoreError

Fetcher = Callable[[], Awaitable[Sequence[Any]]]
Parser = Callable[[list[Any]], list[Any]]


def _parse_avatars(items: list[Any]) -> list[Avatar]:
    return [Avatar.model_validate(item) for item in items]


def _parse_voices(items: list[Any]) -> list[Voice]:
    return [Voice.model_validate(item) for item in items]


class CatalogService:
    """Serves catalogs from the response cache, refreshing on miss or expiry."""

    def __init__(self, cache: ResponseCache, logger: logging.Logger | None = None) -> None:
        self._cache = cache
        self._logger = logger or logging.getLogger(__name__)

    async def get_or_fetch(
        self,
        resource_kind: ResourceKind,
        platform: PlatformId,
        fetch: Fetcher,
        force_refresh: bool = False,
        parse: Parser | None = None,
    ) -> list[Any]:
        """Return cached items, or fetch and cache fresh ones.

        Args:
            resource_kind: Kind of catalog data.
            platform: Platform the catalog belongs to.
            fetch: Coroutine factory returning fresh items from the network.
            force_refresh: Skip the cache read.
            parse: Converts raw items. A cached catalog it rejects with a
                pydantic ValidationError is refetched and overwritten.

        Returns:
            Cached or freshly fetched items, passed through ``parse`` if given.
        """
        if not force_refresh:
            cached = await self._read_cache(resource_kind, platform)
            if cached is not None:
                if parse is None:
                    return cached
                try:
                    return parse(cached)
                except ValidationError as e:
                    self._logger.warning(
                        f"Cached {resource_kind.value} catalog for {platform.value} is malformed "
                        f"({e.error_count()} errors), fetching from network"
                    )

        self._logger.info(f"Fetching {resource_kind.value} catalog for {platform.value}")
        items = list(await fetch())

        try:
            await self._cache.put(resource_kind, platform, items)
        except StoreError as e:
            self._logger.warning(f"Cache write failed, serving uncached data: {e}")

        return parse(items) if parse is not None else items

    async def _read_cache(
        self, resource_kind: ResourceKind, platform: PlatformId
    ) -> list[Any] | None:
        try:
            cached = await self._cache.get(resource_kind, platform)
        except StoreError as e:
            self._logger.warning(f"Cache read failed, fetching from network: {e}")
            return None
        if cached.valid and cached.data is not None:
            return cached.data
        return None

    async def get_avatars(
        self,
        platform: PlatformId,
        fetch: Callable[[], Awaitable[Sequence[Avatar]]],
        force_refresh: bool = False,
    ) -> list[Avatar]:
        return await self.get_or_fetch(
            ResourceKind.AVATAR, platform, fetch, force_refresh, parse=_parse_avatars
        )

    async def get_voices(
        self,
        platform: PlatformId,
        fetch: Callable[[], Awaitable[Sequence[Voice]]],
        force_refresh: bool = False,
    ) -> list[Voice]:
        return await self.get_or_fetch(
            ResourceKind.VOICE, platform, fetch, force_refresh, parse=_parse_voices
        )

    async def invalidate(self, platform: PlatformId) -> bool:
        """Drop every cached catalog for a platform."""
        try:
            return await self._cache.clear_all(platform)
        except StoreError as e:
            self._logger.warning(f"Cache clear failed for {platform.value}: {e}")
            return False


__all__ = ["CatalogService", "Fetcher"]
