"""
Event-driven communication for the interview pipeline.
"""
import logging
from abc import ABC
from collections import defaultdict
from typing import Dict, Any, List, Callable, Optional, DefaultDict
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger("events")


class EventType(str, Enum):
    """Types of pipeline events."""
    CALL_STATE_CHANGED = "call_state_changed"
    SPEECH_ACTIVITY = "speech_activity"
    PARTIAL_TRANSCRIPT = "partial_transcript"
    FAREWELL_DETECTED = "farewell_detected"
    PROVIDER_ERROR = "provider_error"
    RESULTS_RETRIEVED = "results_retrieved"
    ANALYSIS_COMPLETED = "analysis_completed"
    REPORT_UPDATED = "report_updated"
    ANALYSIS_TIMED_OUT = "analysis_timed_out"
    ERROR_OCCURRED = "error_occurred"


class SpeechActivity(str, Enum):
    OFFICER_SPEAKING = "officer-speaking"
    CANDIDATE_SPEAKING = "candidate-speaking"
    IDLE = "idle"


@dataclass
class InterviewEvent(ABC):
    """Base class for all pipeline events."""
    event_type: EventType
    session_id: str
    timestamp: float
    data: Dict[str, Any]


@dataclass
class CallStateChangedEvent(InterviewEvent):
    """Event fired on every call session state transition."""
    def __init__(self, session_id: str, timestamp: float, previous: str, state: str):
        super().__init__(
            event_type=EventType.CALL_STATE_CHANGED,
            session_id=session_id,
            timestamp=timestamp,
            data={"previous": previous, "state": state}
        )


@dataclass
class SpeechActivityEvent(InterviewEvent):
    """Event fired when who-is-speaking changes."""
    def __init__(self, session_id: str, timestamp: float, activity: SpeechActivity):
        super().__init__(
            event_type=EventType.SPEECH_ACTIVITY,
            session_id=session_id,
            timestamp=timestamp,
            data={"activity": activity.value}
        )


@dataclass
class PartialTranscriptEvent(InterviewEvent):
    """Event fired for each role-tagged transcript fragment. Replaces the previous one."""
    def __init__(self, session_id: str, timestamp: float, role: str, text: str, is_final: bool):
        super().__init__(
            event_type=EventType.PARTIAL_TRANSCRIPT,
            session_id=session_id,
            timestamp=timestamp,
            data={"role": role, "text": text, "is_final": is_final}
        )


@dataclass
class FarewellDetectedEvent(InterviewEvent):
    """Event fired when the officer says a farewell phrase and hangup is scheduled."""
    def __init__(self, session_id: str, timestamp: float, phrase: str, grace_seconds: float):
        super().__init__(
            event_type=EventType.FAREWELL_DETECTED,
            session_id=session_id,
            timestamp=timestamp,
            data={"phrase": phrase, "grace_seconds": grace_seconds}
        )


@dataclass
class ProviderErrorEvent(InterviewEvent):
    """Transient notification about a live-call provider error."""
    def __init__(self, session_id: str, timestamp: float, message: str):
        super().__init__(
            event_type=EventType.PROVIDER_ERROR,
            session_id=session_id,
            timestamp=timestamp,
            data={"message": message}
        )


@dataclass
class ResultsRetrievedEvent(InterviewEvent):
    """Event fired once call artifacts are persisted."""
    def __init__(self, session_id: str, timestamp: float, status: str,
                 duration: Optional[float], has_recording: bool, ended_reason: Optional[str]):
        super().__init__(
            event_type=EventType.RESULTS_RETRIEVED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "status": status,
                "duration": duration,
                "has_recording": has_recording,
                "ended_reason": ended_reason
            }
        )


@dataclass
class AnalysisCompletedEvent(InterviewEvent):
    """Event fired after a report upsert, parsed or fallback."""
    def __init__(self, session_id: str, timestamp: float, degraded: bool, overall_score: Optional[int]):
        super().__init__(
            event_type=EventType.ANALYSIS_COMPLETED,
            session_id=session_id,
            timestamp=timestamp,
            data={"degraded": degraded, "overall_score": overall_score}
        )


@dataclass
class ReportUpdatedEvent(InterviewEvent):
    """Event fired by the polling controller when the visible report changes."""
    def __init__(self, session_id: str, timestamp: float, complete: bool, missing: List[str]):
        super().__init__(
            event_type=EventType.REPORT_UPDATED,
            session_id=session_id,
            timestamp=timestamp,
            data={"complete": complete, "missing": missing}
        )


@dataclass
class AnalysisTimedOutEvent(InterviewEvent):
    """Event fired when polling gives up and regeneration is offered."""
    def __init__(self, session_id: str, timestamp: float, elapsed: float):
        super().__init__(
            event_type=EventType.ANALYSIS_TIMED_OUT,
            session_id=session_id,
            timestamp=timestamp,
            data={"elapsed": elapsed}
        )


@dataclass
class ErrorOccurredEvent(InterviewEvent):
    """Event fired when an error occurs."""
    def __init__(self, session_id: str, timestamp: float, error_type: str,
                 error_message: str, component: str):
        super().__init__(
            event_type=EventType.ERROR_OCCURRED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "error_type": error_type,
                "error_message": error_message,
                "component": component
            }
        )


EventHandler = Callable[[InterviewEvent], None]


class InterviewEventBus:
    """
    Synchronous publish/subscribe hub. Handlers run in subscription order on
    the emitting thread; a failing handler is logged and skipped.
    """

    def __init__(self):
        # None collects the handlers that receive every event
        self._handlers: DefaultDict[Optional[EventType], List[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: Optional[EventType], handler: EventHandler) -> Callable[[], None]:
        """
        Subscribe to one event type.

        Returns:
            A callable that removes the subscription again
        """
        self._handlers[event_type].append(handler)
        logger.debug(f"Subscribed handler to {event_type.value if event_type else 'all events'}")
        return lambda: self.unsubscribe(event_type, handler)

    def subscribe_all(self, handler: EventHandler) -> Callable[[], None]:
        return self.subscribe(None, handler)

    def unsubscribe(self, event_type: Optional[EventType], handler: EventHandler) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
        else:
            logger.warning(f"Handler not subscribed to {event_type}")

    def emit(self, event: InterviewEvent) -> None:
        recipients = self._handlers.get(event.event_type, []) + self._handlers.get(None, [])
        logger.debug(f"Emitting {event.event_type.value} for session {event.session_id} to {len(recipients)} handler(s)")

        for handler in recipients:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Event handler {getattr(handler, '__name__', handler)} failed on {event.event_type.value}: {e}")

    def clear_handlers(self) -> None:
        self._handlers.clear()


class EventLogger:
    """Writes every pipeline event to the ``event_logger`` log."""

    def __init__(self, level: int = logging.INFO):
        self.level = level
        self.logger = logging.getLogger("event_logger")

    def __call__(self, event: InterviewEvent) -> None:
        self.logger.log(self.level, "%s session=%s %s", event.event_type.value, event.session_id, event.data)


def create_event_bus(log_events: bool = True) -> InterviewEventBus:
    """Create a bus with the standard logging subscriber attached."""
    bus = InterviewEventBus()
    if log_events:
        bus.subscribe_all(EventLogger())
    return bus
