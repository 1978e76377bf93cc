"""TTL and size-bounded response cache for catalog data."""

import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel

from avatarlink.config import get_settings
from avatarlink.models import CacheLookupResult, PlatformId, ResourceKind
from avatarlink.storage import KeyValueStore


def cache_key(resource_kind: ResourceKind, platform: PlatformId) -> str:
    """Store key for a cached catalog.

    Format: {resource_kind}_cache_{platform}
    """
    return f"{resource_kind.value}_cache_{platform.value}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(raw: Any) -> datetime | None:
    """Parse a stored ISO timestamp, assuming UTC when no offset is present."""
    if not isinstance(raw, str):
        return None
    try:
        dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _to_json(item: Any) -> Any:
    if isinstance(item, BaseModel):
        return item.model_dump(mode="json")
    return item


class ResponseCache:
    """Catalog cache keyed by (resource kind, platform).

    Entries are stored through a KeyValueStore as
    ``{"platform": ..., "data": [...], "timestamp": ISO-8601}``. Expiry is
    lazy: an expired entry stays in the store and is only reported invalid.
    StoreError from the store is not caught here.
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl: timedelta | None = None,
        max_sizes: dict[ResourceKind, int] | None = None,
        logger: logging.Logger | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the cache.

        Args:
            store: Persisted key-value store.
            ttl: Default TTL (settings value if None).
            max_sizes: Item bound per resource kind; kinds not given use the
                settings values.
            logger: Logger to use instead of the module logger.
            clock: Returns the current aware UTC time.
        """
        settings = get_settings()
        self._store = store
        self._ttl = ttl if ttl is not None else timedelta(hours=settings.cache_ttl_hours)
        self._max_sizes = {
            ResourceKind.AVATAR: settings.cache_max_avatars,
            ResourceKind.VOICE: settings.cache_max_voices,
        }
        if max_sizes:
            self._max_sizes.update(max_sizes)
        if any(size < 0 for size in self._max_sizes.values()):
            raise ValueError("max_sizes must not be negative")
        self._logger = logger or logging.getLogger(__name__)
        self._clock = clock

    def max_size(self, resource_kind: ResourceKind) -> int:
        return self._max_sizes[resource_kind]

    def ttl_hours(self) -> float:
        """Configured default TTL in hours."""
        return self._ttl.total_seconds() / 3600

    async def get(
        self,
        resource_kind: ResourceKind,
        platform: PlatformId,
        ttl: timedelta | None = None,
    ) -> CacheLookupResult:
        """Look up a cached catalog.

        Args:
            resource_kind: Kind of catalog data.
            platform: Platform the data belongs to.
            ttl: Maximum age; defaults to the configured TTL.

        Returns:
            CacheLookupResult with data only when the entry is within TTL.
        """
        ttl = ttl if ttl is not None else self._ttl
        key = cache_key(resource_kind, platform)
        entry = await self._store.get_item(key)

        if entry is None:
            self._logger.info(f"No {resource_kind.value} cache found for {platform.value}")
            return CacheLookupResult(valid=False)

        items = entry.get("data") if isinstance(entry, dict) else None
        saved_at = _parse_timestamp(entry.get("timestamp")) if isinstance(entry, dict) else None
        if not isinstance(items, list) or saved_at is None:
            self._logger.warning(
                f"Malformed {resource_kind.value} cache for {platform.value}, treating as expired"
            )
            return CacheLookupResult(valid=False)

        # Future timestamps (clock skew) count as fresh
        age = max(self._clock() - saved_at, timedelta(0))

        if age > ttl:
            self._logger.info(
                f"{resource_kind.value.capitalize()} cache expired for {platform.value} "
                f"(age: {age.total_seconds():.0f}s)"
            )
            return CacheLookupResult(valid=False, age=age)

        self._logger.info(
            f"Valid {resource_kind.value} cache found for {platform.value} "
            f"(age: {age.total_seconds():.0f}s)"
        )
        return CacheLookupResult(valid=True, data=items, age=age)

    async def put(
        self,
        resource_kind: ResourceKind,
        platform: PlatformId,
        items: Sequence[Any],
    ) -> bool:
        """Replace the cached catalog for a platform.

        Items past the size bound for the resource kind are dropped, keeping
        the first ones in order.

        Returns:
            Whether the store write succeeded.
        """
        limit = self._max_sizes[resource_kind]
        if len(items) > limit:
            self._logger.warning(
                f"{resource_kind.value.capitalize()} cache size limited to {limit} items "
                f"(was {len(items)})"
            )

        entry = {
            "platform": platform.value,
            "data": [_to_json(item) for item in items[:limit]],
            "timestamp": self._clock().isoformat(),
        }
        key = cache_key(resource_kind, platform)
        success = await self._store.set_item(key, entry)

        if success:
            self._logger.info(
                f"Saved {resource_kind.value} cache for {platform.value} "
                f"({len(entry['data'])} items)"
            )
        else:
            self._logger.error(f"Failed to save {resource_kind.value} cache for {platform.value}")
        return success

    async def clear(self, resource_kind: ResourceKind, platform: PlatformId) -> bool:
        """Remove one cached catalog. Clearing a missing entry succeeds."""
        self._logger.info(f"Clearing {resource_kind.value} cache for {platform.value}")
        return await self._store.remove_item(cache_key(resource_kind, platform))

    async def clear_all(self, platform: PlatformId) -> bool:
        """Remove every cached catalog for a platform.

        Every resource kind is attempted even if an earlier one fails.
        """
        self._logger.info(f"Clearing all caches for {platform.value}")
        results = [await self.clear(kind, platform) for kind in ResourceKind]
        return all(results)


__all__ = [
    "cache_key",
    "ResponseCache",
]
