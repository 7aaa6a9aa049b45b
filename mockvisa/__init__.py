"""
MockVisa: AI-scored mock visa interviews over a live voice call.

Runs a simulated consular interview with a voice-call provider, retrieves the
authoritative call artifacts, scores the interview with an LLM and assembles
a downloadable report.
"""

__version__ = "1.0.0"

# Main entry points
from .interview import (
    InterviewBackend, CallSessionClient, ReportPollingController,
    InterviewSession, InterviewReport, SessionStatus
)
from .infrastructure import SessionStore

__all__ = [
    "InterviewBackend", "CallSessionClient", "ReportPollingController",
    "InterviewSession", "InterviewReport", "SessionStatus", "SessionStore"
]
