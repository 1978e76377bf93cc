"""Credential validation across all supported platforms."""

from __future__ import annotations

import logging
from types import TracebackType

import httpx

from avatarlink.models import ErrorKind, PlatformId, ValidationOutcome
from avatarlink.probes import PROBE_CLASSES, PlatformProbe


class CredentialValidator:
    """Checks whether API keys are accepted by their platform.

    Holds one probe per platform. Keys are never stored; persisting an
    accepted key is the caller's job (see ``keystore.save_validated_key``).
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        max_attempts: int | None = None,
        retry_base_delay: float | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the validator.

        Args:
            client: Optional shared HTTP client for all probes. Not closed by
                the validator.
            timeout: Per-attempt timeout in seconds (settings value if None).
            max_attempts: Total attempts on connection failures (settings value if None).
            retry_base_delay: First backoff delay in seconds (settings value if None).
            logger: Logger passed to every probe.
        """
        self._logger = logger or logging.getLogger(__name__)
        self._probes: dict[PlatformId, PlatformProbe] = {
            platform: probe_cls(
                client=client,
                timeout=timeout,
                max_attempts=max_attempts,
                retry_base_delay=retry_base_delay,
                logger=self._logger,
            )
            for platform, probe_cls in PROBE_CLASSES.items()
        }

    def probe_for(self, platform: PlatformId) -> PlatformProbe:
        return self._probes[platform]

    async def validate(self, platform: PlatformId, api_key: str) -> ValidationOutcome:
        """Validate a key for a known platform.

        Args:
            platform: Target platform.
            api_key: Candidate key.

        Returns:
            ValidationOutcome with a user-displayable message.
        """
        return await self._probes[platform].check(api_key)

    async def validate_for_platform(
        self, platform: PlatformId | str, api_key: str
    ) -> ValidationOutcome:
        """Route a validation request by raw platform value.

        Unrecognized platforms yield ``ErrorKind.UNKNOWN`` without any
        network call.
        """
        parsed = PlatformId.parse(platform)
        if parsed is None:
            self._logger.warning(f"Validation requested for unknown platform: {platform!r}")
            return ValidationOutcome.failure(
                ErrorKind.UNKNOWN,
                f"Unknown platform: {platform}",
            )
        return await self.validate(parsed, api_key)

    async def close(self) -> None:
        """Close HTTP clients owned by the probes."""
        for probe in self._probes.values():
            await probe.close()

    async def __aenter__(self) -> CredentialValidator:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


__all__ = ["CredentialValidator"]
