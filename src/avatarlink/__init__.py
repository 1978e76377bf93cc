"""avatarlink: API key validation and catalog caching for avatar and voice platforms."""

from avatarlink.cache import ResponseCache, cache_key
from avatarlink.catalog import CatalogService
from avatarlink.keystore import MemorySecretStore, SecretStore, save_validated_key
from avatarlink.models import (
    Avatar,
    CacheLookupResult,
    ErrorKind,
    PlatformId,
    ResourceKind,
    ValidationOutcome,
    Voice,
)
from avatarlink.storage import KeyValueStore, MemoryStore, SQLiteStore, StoreError
from avatarlink.validator import CredentialValidator

__version__ = "0.1.0"

__all__ = [
    "Avatar",
    "CacheLookupResult",
    "CatalogService",
    "CredentialValidator",
    "ErrorKind",
    "KeyValueStore",
    "MemorySecretStore",
    "MemoryStore",
    "PlatformId",
    "ResourceKind",
    "ResponseCache",
    "SQLiteStore",
    "SecretStore",
    "StoreError",
    "ValidationOutcome",
    "Voice",
    "cache_key",
    "save_validated_key",
]
