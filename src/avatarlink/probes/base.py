"""Base class and response classification for API key probes.

Each platform probe issues one cheap authenticated GET against a fixed
endpoint. Connection-level failures (no HTTP response at all) are retried
with exponential backoff up to a fixed number of attempts; any HTTP response
is final, and a request httpx refuses to send is never retried. Every
outcome, including failures, is returned as a ValidationOutcome rather than
raised.
"""

import asyncio
import logging
from typing import ClassVar

import httpx

from avatarlink.config import get_settings
from avatarlink.models import ErrorKind, PlatformId, ValidationOutcome


INVALID_KEY_CHARACTERS_MESSAGE = (
    "API key contains characters that cannot be sent. Please copy the key again."
)


def _has_control_characters(value: str) -> bool:
    return any(ord(ch) < 32 or ord(ch) == 127 for ch in value)


def classify_response(platform: PlatformId, response: httpx.Response) -> ValidationOutcome:
    """Map a received HTTP response to a ValidationOutcome.

    Args:
        platform: Platform that produced the response.
        response: The final response from the probe endpoint.

    Returns:
        ValidationOutcome for the status code and body.
    """
    status = response.status_code
    name = platform.display_name

    if status == 200:
        try:
            body = response.json()
        except ValueError:
            body = None
        if body is None:
            return ValidationOutcome.failure(
                ErrorKind.UNKNOWN,
                f"Unexpected response from {name} API.",
                status_code=status,
            )
        return ValidationOutcome.success(status_code=status)

    if 200 <= status < 300:
        return ValidationOutcome.failure(
            ErrorKind.UNKNOWN,
            f"Unexpected response from {name} API (status {status}).",
            status_code=status,
        )

    if status in (401, 403):
        return ValidationOutcome.failure(
            ErrorKind.KEY_INVALID,
            f"Invalid API key. Please check your {name} API key.",
            status_code=status,
        )

    if status == 429:
        return ValidationOutcome.failure(
            ErrorKind.RATE_LIMITED,
            f"{name} API rate limit exceeded. Please try again later.",
            status_code=status,
        )

    if status >= 500:
        return ValidationOutcome.failure(
            ErrorKind.SERVER_ERROR,
            f"{name} server error (status {status}). Please try again later.",
            status_code=status,
        )

    return ValidationOutcome.failure(
        ErrorKind.UNKNOWN,
        f"{name} API validation failed with status {status}. Please check your API key.",
        status_code=status,
    )


def classify_transport_error(platform: PlatformId, error: httpx.TransportError) -> ValidationOutcome:
    """Map a connection-level failure (no response received) to a ValidationOutcome."""
    if isinstance(error, httpx.TimeoutException):
        return ValidationOutcome.failure(
            ErrorKind.TIMEOUT,
            f"Request to {platform.display_name} timed out. "
            "Please check your internet connection and try again.",
        )
    return ValidationOutcome.failure(ErrorKind.NETWORK)


class PlatformProbe:
    """Base class for platform key probes.

    Subclasses declare the platform's fixed endpoint and implement
    ``auth_headers`` for its authentication scheme.

    Attributes:
        platform: Platform this probe validates keys for.
        BASE_URL: API base URL.
        PROBE_PATH: Cheapest authenticated read endpoint.
    """

    platform: ClassVar[PlatformId]
    BASE_URL: ClassVar[str]
    PROBE_PATH: ClassVar[str]

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        max_attempts: int | None = None,
        retry_base_delay: float | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the probe.

        Args:
            client: Shared HTTP client. When None, the probe creates and owns one.
            timeout: Per-attempt timeout in seconds.
            max_attempts: Total attempts for connection-level failures.
            retry_base_delay: First backoff delay in seconds, doubled per retry.
            logger: Logger to use instead of the module logger.
        """
        settings = get_settings()
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout if timeout is not None else settings.request_timeout
        self._max_attempts = max_attempts if max_attempts is not None else settings.max_attempts
        self._retry_base_delay = (
            retry_base_delay if retry_base_delay is not None else settings.retry_base_delay
        )
        if self._max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._logger = logger or logging.getLogger(__name__)

    @property
    def source_name(self) -> str:
        """Unique identifier for this platform (e.g., 'heygen')."""
        return self.platform.value

    @property
    def probe_url(self) -> str:
        return f"{self.BASE_URL}{self.PROBE_PATH}"

    def auth_headers(self, api_key: str) -> dict[str, str]:
        """Headers authenticating a request with the given key."""
        raise NotImplementedError

    async def _get_client(self) -> httpx.AsyncClient:
        """Lazy initialization of HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                headers={"User-Agent": "avatarlink/1.0"},
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this probe created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _send(self, api_key: str) -> httpx.Response:
        """GET the probe endpoint, retrying only when no response was received.

        Raises:
            httpx.TransportError: If every attempt failed without a response.
        """
        client = await self._get_client()
        headers = self.auth_headers(api_key)
        delay = self._retry_base_delay

        for attempt in range(1, self._max_attempts + 1):
            try:
                return await client.get(self.probe_url, headers=headers, timeout=self._timeout)
            except (httpx.LocalProtocolError, httpx.UnsupportedProtocol):
                # The request itself is malformed; resending cannot help
                raise
            except httpx.TransportError as e:
                if attempt >= self._max_attempts:
                    raise
                self._logger.warning(
                    f"{self.platform.display_name} network error on attempt "
                    f"{attempt}/{self._max_attempts} ({type(e).__name__}), "
                    f"retrying in {delay}s"
                )
                # Cancellation during backoff propagates and abandons retries
                await asyncio.sleep(delay)
                delay *= 2

        raise AssertionError("unreachable")  # pragma: no cover

    async def check(self, api_key: str) -> ValidationOutcome:
        """Validate an API key against this platform.

        Args:
            api_key: Candidate key. Surrounding whitespace is ignored.

        Returns:
            ValidationOutcome; never raises for network or HTTP failures.
        """
        name = self.platform.display_name
        key = (api_key or "").strip()
        if not key:
            self._logger.warning(f"Empty API key provided for {name}")
            return ValidationOutcome.failure(ErrorKind.VALIDATION)
        if _has_control_characters(key):
            self._logger.warning(f"API key for {name} contains control characters")
            return ValidationOutcome.failure(ErrorKind.VALIDATION, INVALID_KEY_CHARACTERS_MESSAGE)

        self._logger.info(f"Validating {name} API key")

        try:
            response = await self._send(key)
        except httpx.LocalProtocolError as e:
            self._logger.error(f"{name} rejected the request before sending: {e}")
            return ValidationOutcome.failure(ErrorKind.VALIDATION, INVALID_KEY_CHARACTERS_MESSAGE)
        except httpx.UnsupportedProtocol as e:
            self._logger.error(f"{name} probe URL is not usable: {e}")
            return ValidationOutcome.failure(ErrorKind.UNKNOWN)
        except httpx.TransportError as e:
            self._logger.error(f"{name} API key validation failed: {type(e).__name__}: {e}")
            return classify_transport_error(self.platform, e)
        except httpx.HTTPError as e:
            self._logger.error(f"{name} HTTP error during validation: {e}")
            return ValidationOutcome.failure(ErrorKind.UNKNOWN)
        except Exception as e:
            self._logger.exception(f"Unexpected error validating {name} API key: {e}")
            return ValidationOutcome.failure(ErrorKind.UNKNOWN)

        outcome = classify_response(self.platform, response)
        if outcome.is_valid:
            self._logger.info(f"{name} API key is valid")
        else:
            self._logger.warning(
                f"{name} API key rejected: status {response.status_code} "
                f"({outcome.error_kind.value if outcome.error_kind else 'unknown'})"
            )
        return outcome


__all__ = [
    "INVALID_KEY_CHARACTERS_MESSAGE",
    "PlatformProbe",
    "classify_response",
    "classify_transport_error",
]
