"""D-ID key probe.

D-ID uses HTTP Basic auth with the API key as the username and an empty
password. The /credits endpoint is available to every account tier.

API Reference: https://docs.d-id.com/reference/basic-authentication
"""

import base64

from avatarlink.models import PlatformId
from avatarlink.probes.base import PlatformProbe


class DIDProbe(PlatformProbe):
    """Validates D-ID API keys against GET /credits."""

    platform = PlatformId.DID
    BASE_URL = "https://api.d-id.com"
    PROBE_PATH = "/credits"

    def auth_headers(self, api_key: str) -> dict[str, str]:
        token = base64.b64encode(f"{api_key}:".encode()).decode("ascii")
        return {
            "Authorization": f"Basic {token}",
            "Content-Type": "application/json",
        }
