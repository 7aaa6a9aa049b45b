"""Voice-call provider and local media infrastructure."""

from .vapi import VapiClient
from .media import MediaDevices, MediaStream, MediaTrack
from .realtime import RealtimeTransport, ProviderMessage

__all__ = [
    "VapiClient",
    "MediaDevices", "MediaStream", "MediaTrack",
    "RealtimeTransport", "ProviderMessage",
]
