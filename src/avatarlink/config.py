"""Configuration and logging setup for avatarlink."""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from avatarlink.models import PlatformId

# Default config file location
CONFIG_FILE_PATH = Path.home() / ".config" / "avatarlink" / "config.toml"

# Settings fields holding credentials, masked in repr
_CREDENTIAL_FIELDS: dict[PlatformId, str] = {
    PlatformId.DID: "did_api_key",
    PlatformId.HEYGEN: "heygen_api_key",
    PlatformId.ELEVENLABS: "elevenlabs_api_key",
}

# Error messages for missing credentials
_CREDENTIAL_ERROR_MESSAGES: dict[str, str] = {
    "did": (
        "D-ID requires an API key. "
        "Set AVATARLINK_DID_API_KEY environment variable, "
        "or configure did_api_key in ~/.config/avatarlink/config.toml"
    ),
    "heygen": (
        "HeyGen requires an API key. "
        "Set AVATARLINK_HEYGEN_API_KEY environment variable, "
        "or configure heygen_api_key in ~/.config/avatarlink/config.toml"
    ),
    "elevenlabs": (
        "ElevenLabs requires an API key. "
        "Set AVATARLINK_ELEVENLABS_API_KEY environment variable, "
        "or configure elevenlabs_api_key in ~/.config/avatarlink/config.toml"
    ),
}


def _load_config_file(config_path: Path | None = None) -> dict[str, Any]:
    """Load configuration from TOML file if it exists.

    Args:
        config_path: Path to config file. Defaults to ~/.config/avatarlink/config.toml

    Returns:
        Dictionary of configuration values, empty dict if file doesn't exist
    """
    path = config_path or CONFIG_FILE_PATH
    if not path.exists():
        return {}

    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        # Config file is optional
        logging.getLogger(__name__).warning(
            "Failed to load config file %s: %s", path, type(e).__name__
        )
        return {}


class Settings(BaseSettings):
    """avatarlink settings loaded from environment variables.

    Settings are loaded in priority order:
    1. Environment variables (highest priority)
    2. .env file
    3. ~/.config/avatarlink/config.toml (lowest priority)

    API keys are stored as SecretStr so they never show up in logs, repr,
    or error messages.
    """

    model_config = SettingsConfigDict(
        env_prefix="AVATARLINK_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # API keys - NEVER log these
    did_api_key: SecretStr | None = None
    heygen_api_key: SecretStr | None = None
    elevenlabs_api_key: SecretStr | None = None

    # Response cache
    cache_ttl_hours: float = Field(default=24.0, gt=0)
    cache_max_avatars: int = Field(default=100, ge=0)
    cache_max_voices: int = Field(default=200, ge=0)
    store_path: str = "~/.cache/avatarlink/store.db"

    # Key validation probes
    request_timeout: float = Field(default=10.0, gt=0)  # seconds, per attempt
    max_attempts: int = Field(default=2, ge=1)
    retry_base_delay: float = Field(default=1.0, ge=0)  # seconds, doubles each retry

    # Logging
    log_level: str = "INFO"
    log_enabled: bool = True

    @model_validator(mode="before")
    @classmethod
    def load_from_config_file(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Load values from config file for any fields not set via env vars."""
        config_data = _load_config_file()

        if not config_data:
            return values

        for key in cls.model_fields:
            # Env vars take precedence
            if key not in values or values[key] is None:
                if key in config_data:
                    values[key] = config_data[key]

        return values

    def api_key_for(self, platform: PlatformId) -> str | None:
        """Return the configured API key for a platform, if any."""
        secret: SecretStr | None = getattr(self, _CREDENTIAL_FIELDS[platform])
        if secret is None:
            return None
        value = secret.get_secret_value().strip()
        return value or None

    def has_api_key(self, platform: PlatformId) -> bool:
        """Check if a non-empty API key is configured for a platform."""
        return self.api_key_for(platform) is not None

    @staticmethod
    def get_credential_error_message(platform: str) -> str:
        """Get a helpful error message for a missing API key.

        Args:
            platform: The platform name (did, heygen, elevenlabs)

        Returns:
            Human-readable error message explaining how to configure the key
        """
        platform_lower = platform.lower()
        if platform_lower in _CREDENTIAL_ERROR_MESSAGES:
            return _CREDENTIAL_ERROR_MESSAGES[platform_lower]
        return f"Unknown platform: {platform}. No credential configuration available."

    def __repr__(self) -> str:
        """Safe repr that masks credential values."""
        fields = []
        for name in type(self).model_fields:
            value = getattr(self, name)
            if name in _CREDENTIAL_FIELDS.values():
                if value is not None:
                    fields.append(f"{name}=SecretStr('**********')")
                else:
                    fields.append(f"{name}=None")
            else:
                fields.append(f"{name}={value!r}")
        return f"Settings({', '.join(fields)})"

    def __str__(self) -> str:
        """Safe str representation that masks credential values."""
        return self.__repr__()


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the singleton Settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the singleton Settings instance.

    Primarily used for testing to ensure fresh settings are loaded.
    """
    global _settings
    _settings = None


def configure_logging(level: str = "INFO", enabled: bool = True) -> None:
    """Configure stdlib logging for avatarlink.

    Args:
        level: Log level name for the root handler.
        enabled: When False, the avatarlink logger hierarchy is silenced.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # Suppress httpx debug logs (too verbose)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    # Child loggers inherit the effective level
    package_logger = logging.getLogger("avatarlink")
    package_logger.setLevel(logging.NOTSET if enabled else logging.CRITICAL + 1)


__all__ = [
    "Settings",
    "get_settings",
    "reset_settings",
    "configure_logging",
    "CONFIG_FILE_PATH",
]
