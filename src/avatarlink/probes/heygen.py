"""HeyGen key probe.

API Reference: https://docs.heygen.com/reference/list-avatars-v2
"""

from avatarlink.models import PlatformId
from avatarlink.probes.base import PlatformProbe


class HeyGenProbe(PlatformProbe):
    """Validates HeyGen API keys against GET /v2/avatars."""

    platform = PlatformId.HEYGEN
    BASE_URL = "https://api.heygen.com"
    PROBE_PATH = "/v2/avatars"

    def auth_headers(self, api_key: str) -> dict[str, str]:
        return {"X-Api-Key": api_key}
