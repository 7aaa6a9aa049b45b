"""
Real-time call channel of the voice-call provider.
"""
from abc import ABC, abstractmethod
from typing import Callable, Dict, Any

# Raw provider message, e.g. {"type": "call-start"} or
# {"type": "message", "message": {"type": "transcript", "role": "assistant", "transcript": "..."}}
ProviderMessage = Dict[str, Any]
ProviderListener = Callable[[ProviderMessage], None]


class RealtimeTransport(ABC):
    """
    The provider's live session. Implementations push every provider
    callback to the registered listener and never touch session state.
    """

    @abstractmethod
    def set_listener(self, listener: ProviderListener) -> None:
        """Register the single listener that receives provider messages."""

    @abstractmethod
    async def start(self, public_key: str, call_config: Dict[str, Any]) -> None:
        """Open the real-time channel for a call created by the backend."""

    @abstractmethod
    async def stop(self) -> None:
        """Hang up. The provider answers with a call-end message."""
