"""
MockVisa Configuration System
=============================

This file contains ALL configuration for the mock visa interview pipeline.
- User settings at the top (things users might want to change)
- Internal constants at the bottom (technical defaults)
"""
import os
from dataclasses import dataclass
from typing import Optional


# =============================================================================
# USER SETTINGS - Edit these to customize the pipeline
# =============================================================================

# Voice-call provider (Vapi). Keys are normally provided via environment.
VAPI_BASE_URL = "https://api.vapi.ai"
VAPI_PRIVATE_KEY = None
VAPI_PUBLIC_KEY = None
VAPI_ASSISTANT_ID = None

# AI analysis engine. Set GEMINI_API_KEY, or GOOGLE_CLOUD_PROJECT to go through Vertex.
GEMINI_API_KEY = None
GOOGLE_CLOUD_PROJECT = None
GOOGLE_APPLICATION_CREDENTIALS = None  # Optional: path to credentials JSON
MODEL_NAME = "gemini-2.5-flash"

# Storage
DATA_DIR = "./_mockvisa"

# Logging
LOG_FILE = "./_mockvisa/pipeline.log"
LOG_LEVEL = "INFO"


# =============================================================================
# INTERNAL CONSTANTS - Don't change these unless you know what you're doing
# =============================================================================

# Call session
FAREWELL_PHRASES = (
    "goodbye",
    "good bye",
    "that concludes",
    "this concludes",
    "thank you for your time",
    "have a good day",
    "have a nice day",
    "end of the interview",
    "we are done here",
)
FAREWELL_GRACE_SECONDS = 2.0

# Local media capture
MEDIA_CONSTRAINTS = {
    "audio": {
        "echoCancellation": True,
        "noiseSuppression": True,
        "autoGainControl": True,
    },
    "video": {
        "width": {"ideal": 1280},
        "height": {"ideal": 720},
    },
}

# Analysis
MIN_ANALYSIS_CHARS = 20
FALLBACK_SCORE = 50
ANALYSIS_TEMPERATURE = 0.3
MAX_OUTPUT_TOKENS = 4096

# Report polling
POLL_INTERVAL_SECONDS = 5.0
POLL_TIMEOUT_SECONDS = 120.0
POLL_FINAL_TICK_SECONDS = 1.0  # wait past the ceiling before giving up

# Network
PROVIDER_TIMEOUT = 30
LLM_TIMEOUT = 90
VERTEX_LOCATION = "us-central1"
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

# Provider end reasons that mean the call never completed normally.
# Anything else ending a call is treated as a normal completion.
FAILED_END_REASONS = (
    "pipeline-error",
    "assistant-error",
    "assistant-not-found",
    "assistant-not-valid",
    "assistant-request-failed",
    "assistant-join-timed-out",
    "call.start.error",
    "customer-did-not-answer",
    "customer-did-not-give-microphone-permission",
    "silence-timed-out",
    "phone-call-provider-closed-websocket",
    "vonage-failed-to-connect-call",
    "twilio-failed-to-connect-call",
    "unknown-error",
)
FAILED_CALL_STATUSES = ("failed", "canceled", "cancelled")

REPORT_TITLE = "VISA CRACKED - MOCK TEST REPORT"


# =============================================================================
# MAIN CONFIG OBJECT
# =============================================================================

@dataclass
class Config:
    """Main configuration object."""
    vapi_private_key: str
    vapi_public_key: str
    vapi_assistant_id: Optional[str] = None
    vapi_base_url: str = VAPI_BASE_URL
    gemini_api_key: Optional[str] = None
    google_cloud_project: Optional[str] = None
    google_application_credentials: Optional[str] = None
    model_name: str = MODEL_NAME
    data_dir: str = DATA_DIR
    log_file: str = LOG_FILE
    log_level: str = LOG_LEVEL
    provider_timeout: int = PROVIDER_TIMEOUT
    llm_timeout: int = LLM_TIMEOUT
    poll_interval_seconds: float = POLL_INTERVAL_SECONDS
    poll_timeout_seconds: float = POLL_TIMEOUT_SECONDS

    @property
    def uses_vertex(self) -> bool:
        """True when analysis goes through Vertex instead of an API key."""
        return not self.gemini_api_key and bool(self.google_cloud_project)


def get_config() -> Config:
    """Load configuration from the environment, falling back to file settings."""
    private_key = os.getenv("VAPI_PRIVATE_KEY") or VAPI_PRIVATE_KEY
    public_key = os.getenv("VAPI_PUBLIC_KEY") or VAPI_PUBLIC_KEY
    gemini_key = os.getenv("GEMINI_API_KEY") or GEMINI_API_KEY
    project = os.getenv("GOOGLE_CLOUD_PROJECT") or GOOGLE_CLOUD_PROJECT

    if not private_key or not public_key:
        raise ValueError("Please set VAPI_PRIVATE_KEY and VAPI_PUBLIC_KEY in config.py or as environment variables")
    if not gemini_key and not project:
        raise ValueError("Please set GEMINI_API_KEY or GOOGLE_CLOUD_PROJECT for interview analysis")

    return Config(
        vapi_private_key=private_key,
        vapi_public_key=public_key,
        vapi_assistant_id=os.getenv("VAPI_ASSISTANT_ID") or VAPI_ASSISTANT_ID,
        vapi_base_url=os.getenv("VAPI_BASE_URL") or VAPI_BASE_URL,
        gemini_api_key=gemini_key,
        google_cloud_project=project,
        google_application_credentials=os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or GOOGLE_APPLICATION_CREDENTIALS,
        model_name=os.getenv("MODEL_NAME") or MODEL_NAME,
        data_dir=os.getenv("MOCKVISA_DATA_DIR") or DATA_DIR,
        log_file=os.getenv("LOG_FILE") or LOG_FILE,
        log_level=os.getenv("LOG_LEVEL") or LOG_LEVEL,
    )
