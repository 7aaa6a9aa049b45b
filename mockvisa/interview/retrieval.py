"""
Result retrieval: fetch the authoritative call artifacts once a call is over.
"""
import time
import logging
from dataclasses import dataclass
from typing import Optional, List

from .models import InterviewSession, SessionStatus, Message, utc_now
from .schemas import parse_call_details
from .errors import NotFound, ProviderUnavailable, ProviderCallFailure
from .events import InterviewEventBus, ResultsRetrievedEvent, ErrorOccurredEvent
from ..infrastructure.data.store import SessionStore
from ..infrastructure.voice.vapi import VapiClient

logger = logging.getLogger("retrieval")


@dataclass
class RetrievalResult:
    """What the provider reported for a finished call."""
    session_id: str
    status: SessionStatus
    transcript: Optional[str] = None
    messages: Optional[List[Message]] = None
    recording_url: Optional[str] = None
    duration: Optional[float] = None
    cost: Optional[float] = None
    ended_reason: Optional[str] = None

    @property
    def billable(self) -> bool:
        """Only completed calls may be charged."""
        return self.status == SessionStatus.COMPLETED

    def raise_for_status(self) -> None:
        """Raise ProviderCallFailure for failed calls."""
        if self.status == SessionStatus.FAILED:
            raise ProviderCallFailure(self.session_id, self.ended_reason)

    @classmethod
    def from_session(cls, session: InterviewSession, ended_reason: Optional[str] = None) -> 'RetrievalResult':
        return cls(
            session_id=session.id,
            status=session.status,
            transcript=session.transcript,
            messages=session.messages,
            recording_url=session.recording_url,
            duration=session.duration,
            cost=session.cost,
            ended_reason=ended_reason,
        )


class ResultRetrievalService:
    """
    Single point of truth for whether a call completed.

    Every successful return leaves the session in ``completed`` or ``failed``
    with ``ended_at`` set; the credit ledger treats ``failed`` as "do not charge".
    """

    def __init__(self, store: SessionStore, vapi_client: VapiClient,
                 event_bus: Optional[InterviewEventBus] = None):
        self.store = store
        self.vapi_client = vapi_client
        self.event_bus = event_bus

    def retrieve_results(self, session_id: str) -> RetrievalResult:
        """
        Fetch call details from the provider once and persist them.

        Raises:
            NotFound: If the session does not exist or never started a provider call
        """
        session = self.store.require_session(session_id)
        if not session.provider_call_id:
            raise NotFound(f"Session {session_id} has no provider call")

        if session.status.is_terminal and session.artifacts_written:
            logger.info(f"Session {session_id} already {session.status.value}, returning stored artifacts")
            return RetrievalResult.from_session(session)
        if session.status == SessionStatus.FAILED:
            # Failed before the call could end normally; a failure never becomes a completion
            return self._mark_failed(session, "failed-before-retrieval")

        try:
            call = self.vapi_client.get_call(session.provider_call_id)
        except (ProviderUnavailable, NotFound) as e:
            logger.error(f"Could not fetch call {session.provider_call_id} for session {session_id}: {e}")
            self._emit_error(session_id, e)
            return self._mark_failed(session, "provider-unavailable")

        details = parse_call_details(call)

        if details.failed:
            logger.warning(
                f"Call {session.provider_call_id} for session {session_id} did not complete "
                f"(status={details.status}, endedReason={details.ended_reason})"
            )
            return self._mark_failed(session, details.ended_reason or details.status)

        if session.status == SessionStatus.PENDING:
            self.store.update_session(session_id, status=SessionStatus.IN_PROGRESS)

        updated = self.store.update_session(
            session_id,
            status=SessionStatus.COMPLETED,
            transcript=details.artifact_transcript(),
            messages=details.artifact_messages(),
            recording_url=details.artifact_recording_url(),
            duration=details.call_duration(),
            cost=details.cost,
            ended_at=utc_now(),
        )
        result = RetrievalResult.from_session(updated, details.ended_reason)
        logger.info(
            f"Session {session_id} completed: duration={result.duration}, cost={result.cost}, "
            f"messages={len(result.messages or [])}, recording={'yes' if result.recording_url else 'no'}"
        )
        self._emit_retrieved(result)
        return result

    def _mark_failed(self, session: InterviewSession, reason: Optional[str]) -> RetrievalResult:
        updated = self.store.update_session(session.id, status=SessionStatus.FAILED, ended_at=utc_now())
        result = RetrievalResult.from_session(updated, reason)
        self._emit_retrieved(result)
        return result

    def _emit_retrieved(self, result: RetrievalResult) -> None:
        if self.event_bus:
            self.event_bus.emit(ResultsRetrievedEvent(
                result.session_id, time.time(), result.status.value,
                result.duration, bool(result.recording_url), result.ended_reason
            ))

    def _emit_error(self, session_id: str, error: Exception) -> None:
        if self.event_bus:
            self.event_bus.emit(ErrorOccurredEvent(
                session_id, time.time(), type(error).__name__, str(error), "retrieval"
            ))
