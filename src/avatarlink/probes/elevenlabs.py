"""ElevenLabs key probe.

API Reference: https://elevenlabs.io/docs/api-reference/user/get
"""

from avatarlink.models import PlatformId
from avatarlink.probes.base import PlatformProbe


class ElevenLabsProbe(PlatformProbe):
    """Validates ElevenLabs API keys against GET /v1/user."""

    platform = PlatformId.ELEVENLABS
    BASE_URL = "https://api.elevenlabs.io"
    PROBE_PATH = "/v1/user"

    def auth_headers(self, api_key: str) -> dict[str, str]:
        return {"xi-api-key": api_key}
