"""
Local media capture abstractions.

Concrete devices come from the host environment (browser bridge, desktop
capture, test fakes). The pipeline only needs to open a stream with the
configured constraints and release every track when the call is over.
"""
import logging
from abc import ABC, abstractmethod
from typing import Dict, Any, List

logger = logging.getLogger("media")


class MediaTrack(ABC):
    """A single captured audio or video track."""

    kind: str = "audio"
    enabled: bool = True

    @abstractmethod
    def stop(self) -> None:
        """Release the underlying device handle."""


class MediaStream:
    """A set of captured tracks opened together."""

    def __init__(self, tracks: List[MediaTrack]):
        self.tracks = list(tracks)
        self.released = False

    @property
    def audio_tracks(self) -> List[MediaTrack]:
        return [t for t in self.tracks if t.kind == "audio"]

    @property
    def video_tracks(self) -> List[MediaTrack]:
        return [t for t in self.tracks if t.kind == "video"]

    def set_enabled(self, kind: str, enabled: bool) -> None:
        """Mute/unmute all tracks of one kind without releasing them."""
        for track in self.tracks:
            if track.kind == kind:
                track.enabled = enabled

    def release(self) -> None:
        """Stop every track. Safe to call more than once."""
        if self.released:
            return
        for track in self.tracks:
            try:
                track.stop()
            except Exception as e:
                # Keep stopping the remaining tracks
                logger.warning(f"Failed to stop {track.kind} track: {e}")
        self.released = True


class MediaDevices(ABC):
    """Source of local media streams."""

    @abstractmethod
    async def get_user_media(self, constraints: Dict[str, Any]) -> MediaStream:
        """
        Open camera and microphone.

        Raises:
            MediaAccessError: If permission is denied or no device is available
        """
