"""Secret store collaborators and the validate-then-save flow."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from pydantic import SecretStr

from avatarlink.config import Settings, get_settings
from avatarlink.models import ErrorKind, PlatformId, ValidationOutcome

if TYPE_CHECKING:
    from avatarlink.validator import CredentialValidator

logger = logging.getLogger(__name__)


@runtime_checkable
class SecretStore(Protocol):
    """Protocol for API key storage.

    Implementations decide how keys are protected at rest. Keys must never
    be logged.
    """

    async def save_key(self, platform: PlatformId, api_key: str) -> bool: ...

    async def get_key(self, platform: PlatformId) -> str | None: ...

    async def delete_key(self, platform: PlatformId) -> bool: ...

    async def has_key(self, platform: PlatformId) -> bool: ...

    async def clear_all(self) -> bool: ...


class MemorySecretStore:
    """Process-local secret store holding keys as SecretStr."""

    def __init__(self, initial: dict[PlatformId, str] | None = None) -> None:
        self._keys: dict[PlatformId, SecretStr] = {
            platform: SecretStr(key) for platform, key in (initial or {}).items()
        }

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> MemorySecretStore:
        """Seed the store with keys configured via env vars or config file."""
        settings = settings or get_settings()
        initial = {}
        for platform in PlatformId:
            key = settings.api_key_for(platform)
            if key is not None:
                initial[platform] = key
        return cls(initial)

    async def save_key(self, platform: PlatformId, api_key: str) -> bool:
        self._keys[platform] = SecretStr(api_key)
        logger.info(f"API key saved for {platform.value}")
        return True

    async def get_key(self, platform: PlatformId) -> str | None:
        secret = self._keys.get(platform)
        return secret.get_secret_value() if secret is not None else None

    async def delete_key(self, platform: PlatformId) -> bool:
        """Delete a key. Returns False when there was nothing to delete."""
        if self._keys.pop(platform, None) is None:
            logger.warning(f"No API key to delete for {platform.value}")
            return False
        logger.info(f"API key deleted for {platform.value}")
        return True

    async def has_key(self, platform: PlatformId) -> bool:
        return platform in self._keys

    async def clear_all(self) -> bool:
        """Delete every key. Returns True if at least one key was removed."""
        results = [await self.delete_key(platform) for platform in PlatformId]
        return any(results)

    def __repr__(self) -> str:
        platforms = ", ".join(p.value for p in self._keys)
        return f"MemorySecretStore(platforms=[{platforms}])"


async def save_validated_key(
    validator: CredentialValidator,
    secrets: SecretStore,
    platform: PlatformId | str,
    api_key: str,
) -> ValidationOutcome:
    """Validate an API key and persist it only if the platform accepts it.

    Args:
        validator: Validator used to probe the platform.
        secrets: Store receiving the key on success.
        platform: Target platform.
        api_key: Candidate key; saved stripped of surrounding whitespace.

    Returns:
        The validation outcome, or an UNKNOWN failure if the key was accepted
        but could not be saved.
    """
    outcome = await validator.validate_for_platform(platform, api_key)
    if not outcome.is_valid:
        return outcome

    parsed = PlatformId.parse(platform)
    assert parsed is not None  # validate_for_platform rejects unknown platforms
    if not await secrets.save_key(parsed, api_key.strip()):
        logger.error(f"Validated API key for {parsed.value} could not be saved")
        return ValidationOutcome.failure(
            ErrorKind.UNKNOWN,
            "API key is valid but could not be saved. Please try again.",
        )
    return outcome


__all__ = [
    "SecretStore",
    "MemorySecretStore",
    "save_validated_key",
]
