"""Pydantic models and enumerations for avatarlink."""

from __future__ import annotations

from datetime import timedelta
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, model_validator


class PlatformId(str, Enum):
    """Supported avatar / voice platforms."""

    DID = "did"
    HEYGEN = "heygen"
    ELEVENLABS = "elevenlabs"

    @property
    def display_name(self) -> str:
        """Human-readable vendor name used in user-facing messages."""
        return {
            PlatformId.DID: "D-ID",
            PlatformId.HEYGEN: "HeyGen",
            PlatformId.ELEVENLABS: "ElevenLabs",
        }[self]

    @classmethod
    def parse(cls, value: PlatformId | str) -> PlatformId | None:
        """Coerce a raw platform value, returning None if unrecognized."""
        if isinstance(value, PlatformId):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class ResourceKind(str, Enum):
    """Categories of cached catalog data."""

    AVATAR = "avatar"
    VOICE = "voice"


class ErrorKind(str, Enum):
    """Closed taxonomy of validation failures."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    KEY_INVALID = "key_invalid"
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


# Default user-facing text per error kind
ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.NETWORK: "Network error. Please check your internet connection.",
    ErrorKind.TIMEOUT: "Request timed out. Please check your internet connection and try again.",
    ErrorKind.KEY_INVALID: "Invalid API key. Please check your API key and try again.",
    ErrorKind.UNAUTHORIZED: "Unauthorized access. Please check your API key.",
    ErrorKind.RATE_LIMITED: "API rate limit exceeded. Please try again later.",
    ErrorKind.SERVER_ERROR: "Server error. Please try again later.",
    ErrorKind.VALIDATION: "API key cannot be empty.",
    ErrorKind.UNKNOWN: "An unexpected error occurred during validation.",
}


class ValidationOutcome(BaseModel):
    """Result of one API key validation.

    Either ``is_valid`` is True and ``error_kind`` is None, or ``is_valid`` is
    False and ``error_kind`` is set. Partially filled outcomes are rejected.
    """

    model_config = ConfigDict(
        str_strip_whitespace=True,
        frozen=True,
    )

    is_valid: bool
    message: str
    error_kind: ErrorKind | None = None
    status_code: int | None = None

    @model_validator(mode="after")
    def check_consistency(self) -> ValidationOutcome:
        """Enforce the valid/error_kind pairing."""
        if self.is_valid and self.error_kind is not None:
            raise ValueError("a valid outcome cannot carry an error_kind")
        if not self.is_valid and self.error_kind is None:
            raise ValueError("an invalid outcome requires an error_kind")
        if not self.message:
            raise ValueError("message must not be empty")
        return self

    @classmethod
    def success(cls, message: str = "API key is valid", status_code: int | None = 200) -> ValidationOutcome:
        return cls(is_valid=True, message=message, status_code=status_code)

    @classmethod
    def failure(
        cls,
        error_kind: ErrorKind,
        message: str | None = None,
        status_code: int | None = None,
    ) -> ValidationOutcome:
        return cls(
            is_valid=False,
            message=message or ERROR_MESSAGES[error_kind],
            error_kind=error_kind,
            status_code=status_code,
        )


class CacheLookupResult(BaseModel):
    """Result of a cache read.

    ``valid`` is True only when an entry exists and is within its TTL. Expired
    entries never expose their data.
    """

    model_config = ConfigDict(frozen=True)

    valid: bool
    data: list[Any] | None = None
    age: timedelta | None = None

    @property
    def age_seconds(self) -> float | None:
        """Age of the entry in seconds, if known."""
        if self.age is None:
            return None
        return self.age.total_seconds()


Gender = Literal["male", "female", "other"]


class Avatar(BaseModel):
    """Normalized avatar entry shown in the catalog."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    id: str
    name: str
    gender: Gender = "other"
    platform: PlatformId
    thumbnail_url: str | None = None
    preview_url: str | None = None
    is_custom: bool = False


class Voice(BaseModel):
    """Normalized voice entry shown in the catalog."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    id: str
    name: str
    language: str | None = None
    language_code: str | None = None
    gender: Gender = "other"
    platform: PlatformId
    preview_audio: str | None = None
    is_cloned: bool = False


__all__ = [
    "PlatformId",
    "ResourceKind",
    "ErrorKind",
    "ERROR_MESSAGES",
    "ValidationOutcome",
    "CacheLookupResult",
    "Avatar",
    "Voice",
]
