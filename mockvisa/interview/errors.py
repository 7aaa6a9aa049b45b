"""
Error taxonomy for the interview pipeline.
"""
from typing import Optional


class MockVisaError(Exception):
    """Base class for all pipeline errors."""


class NotFound(MockVisaError):
    """A session, report, or provider call could not be found."""


class InvalidTransition(MockVisaError):
    """A write would move a session backwards or rewrite immutable fields."""


class MediaAccessError(MockVisaError):
    """Local camera/microphone permission was denied or no device is available."""


class ProviderUnavailable(MockVisaError):
    """The voice-call provider is unreachable or misconfigured."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderCallFailure(MockVisaError):
    """The provider reports that the call did not complete normally."""

    def __init__(self, session_id: str, reason: Optional[str]):
        super().__init__(f"Call for session {session_id} failed: {reason or 'unknown reason'}")
        self.session_id = session_id
        self.reason = reason


class AnalysisError(MockVisaError):
    """Base class for analysis failures surfaced to the caller."""


class InsufficientInput(AnalysisError):
    """The transcript is too short to be worth analyzing."""

    def __init__(self, session_id: str, length: int, minimum: int):
        super().__init__(
            f"Transcript for session {session_id} has {length} characters, need at least {minimum}"
        )
        self.session_id = session_id
        self.length = length
        self.minimum = minimum


class EngineUnavailable(AnalysisError):
    """The AI analysis engine is unreachable or misconfigured."""


class MalformedEngineResponse(MockVisaError):
    """The engine answered with something that is not a report. Always recovered."""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


class AnalysisTimeout(MockVisaError):
    """No complete report appeared within the polling window."""

    def __init__(self, session_id: str, elapsed: float):
        super().__init__(f"No complete report for session {session_id} after {elapsed:.0f}s")
        self.session_id = session_id
        self.elapsed = elapsed
