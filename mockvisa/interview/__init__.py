"""Interview pipeline components.

This module contains the business logic that runs a mock visa interview
from the live call to the downloadable report: the call session client,
result retrieval, analysis dispatch and report polling.
"""

# Data models and errors (imported first; infrastructure depends on them)
from .models import (
    SessionStatus, Difficulty, MessageRole, Message, GrammarMistake, DetailedFeedback,
    InterviewSession, InterviewReport, VisaTypeConfig, SCORE_FIELDS, is_report_complete
)
from .errors import (
    MockVisaError, NotFound, InvalidTransition, MediaAccessError, ProviderUnavailable,
    ProviderCallFailure, AnalysisError, InsufficientInput, EngineUnavailable,
    MalformedEngineResponse, AnalysisTimeout
)

# Boundary schemas
from .schemas import (
    ParsedReport, FallbackReport, EngineError, parse_engine_response,
    build_fallback_report, parse_call_details
)

# Event system
from .events import (
    InterviewEventBus, EventLogger, EventType, InterviewEvent, SpeechActivity,
    CallStateChangedEvent, SpeechActivityEvent, PartialTranscriptEvent,
    FarewellDetectedEvent, ProviderErrorEvent, ResultsRetrievedEvent,
    AnalysisCompletedEvent, ReportUpdatedEvent, AnalysisTimedOutEvent,
    ErrorOccurredEvent, create_event_bus
)

# Pipeline services
from .retrieval import ResultRetrievalService, RetrievalResult
from .analysis import AnalysisDispatcher, AnalysisOutcome
from .rendering import RenderedReport, render_report
from .backend import InterviewBackend, StartInterviewResponse
from .call_client import CallSessionClient, CallState
from .polling import ReportPollingController, ReportView

__all__ = [
    # Data models
    "SessionStatus", "Difficulty", "MessageRole", "Message", "GrammarMistake",
    "DetailedFeedback", "InterviewSession", "InterviewReport", "VisaTypeConfig",
    "SCORE_FIELDS", "is_report_complete",

    # Errors
    "MockVisaError", "NotFound", "InvalidTransition", "MediaAccessError",
    "ProviderUnavailable", "ProviderCallFailure", "AnalysisError", "InsufficientInput",
    "EngineUnavailable", "MalformedEngineResponse", "AnalysisTimeout",

    # Schemas
    "ParsedReport", "FallbackReport", "EngineError", "parse_engine_response",
    "build_fallback_report", "parse_call_details",

    # Events
    "InterviewEventBus", "EventLogger", "EventType", "InterviewEvent", "SpeechActivity",
    "CallStateChangedEvent", "SpeechActivityEvent", "PartialTranscriptEvent",
    "FarewellDetectedEvent", "ProviderErrorEvent", "ResultsRetrievedEvent",
    "AnalysisCompletedEvent", "ReportUpdatedEvent", "AnalysisTimedOutEvent",
    "ErrorOccurredEvent", "create_event_bus",

    # Services
    "ResultRetrievalService", "RetrievalResult", "AnalysisDispatcher", "AnalysisOutcome",
    "RenderedReport", "render_report", "InterviewBackend", "StartInterviewResponse",
    "CallSessionClient", "CallState", "ReportPollingController", "ReportView",
]
