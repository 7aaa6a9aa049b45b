"""Infrastructure components for the MockVisa pipeline.

This module contains the low-level clients the interview pipeline talks
through: the session store, the voice-call provider and the analysis engine.
"""

# Persistence
from .data import SessionStore

# Voice-call provider
from .voice import VapiClient, MediaTrack, MediaStream, MediaDevices, RealtimeTransport

# LLM infrastructure
from .llm import GeminiRestClient

__all__ = [
    # Persistence
    "SessionStore",

    # Voice-call provider
    "VapiClient", "MediaTrack", "MediaStream", "MediaDevices", "RealtimeTransport",

    # LLM client
    "GeminiRestClient"
]
