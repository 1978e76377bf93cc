"""FastMCP server exposing avatarlink key validation and cache tools."""

import asyncio
import atexit
import logging

from fastmcp import FastMCP

from avatarlink.cache import ResponseCache
from avatarlink.config import configure_logging, get_settings
from avatarlink.keystore import MemorySecretStore, SecretStore, save_validated_key
from avatarlink.models import CacheLookupResult, PlatformId, ResourceKind, ValidationOutcome
from avatarlink.storage import SQLiteStore, StoreError
from avatarlink.validator import CredentialValidator

logger = logging.getLogger(__name__)

# Initialize FastMCP server
mcp = FastMCP("avatarlink")

# Global instances (initialized on first use)
_store: SQLiteStore | None = None
_cache: ResponseCache | None = None
_validator: CredentialValidator | None = None
_secrets: SecretStore | None = None


def _get_store() -> SQLiteStore:
    global _store
    if _store is None:
        _store = SQLiteStore(get_settings().store_path)
    return _store


def _get_cache() -> ResponseCache:
    global _cache
    if _cache is None:
        _cache = ResponseCache(_get_store())
    return _cache


def _get_validator() -> CredentialValidator:
    global _validator
    if _validator is None:
        _validator = CredentialValidator()
    return _validator


def _get_secrets() -> SecretStore:
    global _secrets
    if _secrets is None:
        _secrets = MemorySecretStore.from_settings()
    return _secrets


async def _cleanup_resources() -> None:
    """Close all open resources (HTTP clients, store connection)."""
    global _validator, _cache, _store

    if _validator is not None:
        await _validator.close()
        _validator = None

    _cache = None
    if _store is not None:
        await _store.close()
        _store = None

    logger.debug("All resources cleaned up")


def _atexit_cleanup() -> None:
    """Synchronous atexit handler that runs async cleanup."""
    try:
        asyncio.run(_cleanup_resources())
    except Exception as e:
        # Don't let cleanup errors prevent shutdown
        logger.debug(f"Cleanup error (non-fatal): {e}")


# Register cleanup on process exit
atexit.register(_atexit_cleanup)


def _unknown_platform(platform: str) -> str:
    supported = ", ".join(p.value for p in PlatformId)
    return (
        f"## Unknown Platform\n\n"
        f"**{platform}** is not a supported platform.\n\n"
        f"Supported platforms: {supported}"
    )


def _format_outcome(platform: str, outcome: ValidationOutcome, saved: bool) -> str:
    if outcome.is_valid:
        lines = [f"## API Key Valid\n\nThe {platform} API key was accepted."]
        if saved:
            lines.append("The key has been saved.")
        return "\n\n".join(lines)

    kind = outcome.error_kind.value if outcome.error_kind else "unknown"
    lines = [
        "## API Key Not Validated",
        f"**What happened:** {outcome.message}",
        f"**Error type:** {kind}",
    ]
    if outcome.status_code is not None:
        lines.append(f"**HTTP status:** {outcome.status_code}")
    return "\n\n".join(lines)


def _format_lookup(kind: ResourceKind, result: CacheLookupResult) -> str:
    if result.valid:
        count = len(result.data or [])
        return f"- **{kind.value}**: valid, {count} items, age {result.age_seconds or 0:.0f}s"
    if result.age is not None:
        return f"- **{kind.value}**: expired (age {result.age_seconds:.0f}s)"
    return f"- **{kind.value}**: not cached"


@mcp.tool()
async def validate_api_key(platform: str, api_key: str, save: bool = False) -> str:
    """Check whether an API key is accepted by an avatar or voice platform.

    Makes one lightweight authenticated request to the platform (retried
    once on connection failures). The key is only stored when `save` is true
    and the platform accepts it.

    Args:
        platform: One of "did", "heygen", "elevenlabs".
        api_key: The API key to check.
        save: Persist the key if it is valid.

    Returns:
        Formatted validation result.
    """
    parsed = PlatformId.parse(platform)
    if parsed is None:
        return _unknown_platform(platform)

    try:
        if save:
            outcome = await save_validated_key(_get_validator(), _get_secrets(), parsed, api_key)
        else:
            outcome = await _get_validator().validate(parsed, api_key)
    except Exception as e:
        logger.exception(f"Unexpected error validating {parsed.value} key: {e}")
        return (
            "## Error\n\n"
            f"An unexpected error occurred while validating the {parsed.display_name} key.\n\n"
            "Please try again later."
        )

    return _format_outcome(parsed.display_name, outcome, saved=save and outcome.is_valid)


@mcp.tool()
async def cache_status(platform: str) -> str:
    """Show the state of cached avatar and voice catalogs for a platform.

    Args:
        platform: One of "did", "heygen", "elevenlabs".

    Returns:
        Per-catalog status with age and item count.
    """
    parsed = PlatformId.parse(platform)
    if parsed is None:
        return _unknown_platform(platform)

    try:
        cache = _get_cache()
    except StoreError as e:
        logger.warning(f"Cache store unavailable: {e}")
        return (
            f"## Cache Status: {parsed.display_name}\n\n"
            "The cache store is unavailable. Check the store_path setting."
        )

    lines = [f"## Cache Status: {parsed.display_name}", ""]
    for kind in ResourceKind:
        try:
            result = await cache.get(kind, parsed)
        except StoreError as e:
            logger.warning(f"Cache status read failed for {kind.value}: {e}")
            lines.append(f"- **{kind.value}**: unavailable")
            continue
        lines.append(_format_lookup(kind, result))

    lines.append("")
    lines.append(f"Entries expire after {cache.ttl_hours():g} hours.")
    return "\n".join(lines)


@mcp.tool()
async def clear_cache(platform: str, resource_kind: str | None = None) -> str:
    """Clear cached catalogs for a platform.

    Args:
        platform: One of "did", "heygen", "elevenlabs".
        resource_kind: "avatar" or "voice"; clears both when omitted.

    Returns:
        Confirmation message.
    """
    parsed = PlatformId.parse(platform)
    if parsed is None:
        return _unknown_platform(platform)

    kind: ResourceKind | None = None
    if resource_kind:
        try:
            kind = ResourceKind(resource_kind.strip().lower())
        except ValueError:
            kinds = ", ".join(k.value for k in ResourceKind)
            return f"## Unknown Catalog\n\n**{resource_kind}** is not one of: {kinds}"

    try:
        cache = _get_cache()
        if kind is None:
            cleared = await cache.clear_all(parsed)
        else:
            cleared = await cache.clear(kind, parsed)
    except StoreError as e:
        logger.warning(f"Cache clear failed for {parsed.value}: {e}")
        cleared = False

    target = f"{kind.value} cache" if kind else "all caches"
    if cleared:
        return f"Cleared {target} for {parsed.display_name}."
    return f"Could not clear {target} for {parsed.display_name}. Please try again."


def main() -> None:
    """Run the avatarlink MCP server."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_enabled)
    logger.info("Starting avatarlink MCP server")
    mcp.run()


if __name__ == "__main__":
    main()
