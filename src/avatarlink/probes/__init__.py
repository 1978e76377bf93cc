"""API key probes, one per supported platform."""

from avatarlink.models import PlatformId
from avatarlink.probes.base import (
    PlatformProbe,
    classify_response,
    classify_transport_error,
)
from avatarlink.probes.did import DIDProbe
from avatarlink.probes.elevenlabs import ElevenLabsProbe
from avatarlink.probes.heygen import HeyGenProbe

# Static platform table
PROBE_CLASSES: dict[PlatformId, type[PlatformProbe]] = {
    PlatformId.DID: DIDProbe,
    PlatformId.HEYGEN: HeyGenProbe,
    PlatformId.ELEVENLABS: ElevenLabsProbe,
}

__all__ = [
    "PlatformProbe",
    "DIDProbe",
    "HeyGenProbe",
    "ElevenLabsProbe",
    "PROBE_CLASSES",
    "classify_response",
    "classify_transport_error",
]
