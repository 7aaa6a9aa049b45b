"""
Analysis dispatch: score an interview with the AI engine and persist the report.
"""
import time
import logging
from dataclasses import dataclass
from typing import Optional

from .models import InterviewReport, InterviewSession, SessionStatus
from .schemas import (
    EngineResult, EngineError, FallbackReport, parse_engine_response, build_fallback_report
)
from .prompts import AnalysisPrompts, PromptFormatter
from .errors import InsufficientInput, EngineUnavailable
from .events import InterviewEventBus, AnalysisCompletedEvent, ErrorOccurredEvent
from ..infrastructure.data.store import SessionStore
from ..infrastructure.llm import GeminiRestClient
from ..config import MIN_ANALYSIS_CHARS, ANALYSIS_TEMPERATURE, MAX_OUTPUT_TOKENS

logger = logging.getLogger("analysis")


@dataclass
class AnalysisOutcome:
    """Result of one dispatch."""
    session_id: str
    report: Optional[InterviewReport] = None
    degraded: bool = False
    skipped: bool = False
    error: Optional[str] = None


class AnalysisDispatcher:
    """
    Submits a finished interview to the analysis engine exactly once per call
    and upserts whatever report comes back, keyed by session id.
    """

    def __init__(self,
                 store: SessionStore,
                 llm_client: GeminiRestClient,
                 event_bus: Optional[InterviewEventBus] = None,
                 min_chars: int = MIN_ANALYSIS_CHARS):
        self.store = store
        self.llm_client = llm_client
        self.event_bus = event_bus
        self.min_chars = min_chars

    def analyze(self, session_id: str) -> AnalysisOutcome:
        """
        Analyze a session and upsert its report.

        Returns:
            AnalysisOutcome; ``skipped`` is set for failed calls, ``degraded``
            when the engine output could not be parsed

        Raises:
            NotFound: If the session does not exist
            InsufficientInput: If the interview text is too short; no report is written
            EngineUnavailable: If the engine cannot be used; any prior report is kept
        """
        session = self.store.require_session(session_id)

        if session.status == SessionStatus.FAILED:
            logger.info(f"Session {session_id} failed; skipping analysis")
            return AnalysisOutcome(session_id=session_id, skipped=True)

        interview_text = PromptFormatter.build_interview_text(session.messages, session.transcript)
        if len(interview_text) < self.min_chars:
            logger.warning(f"Session {session_id} transcript too short ({len(interview_text)} chars)")
            raise InsufficientInput(session_id, len(interview_text), self.min_chars)

        result = self._call_engine(session, interview_text)

        if isinstance(result, EngineError):
            self._emit_error(session_id, "EngineUnavailable", result.message)
            raise EngineUnavailable(result.message)

        if isinstance(result, FallbackReport):
            logger.warning(f"Engine output for session {session_id} unusable ({result.error}); storing fallback report")
            logger.debug(f"Unparsed engine output: {result.raw_text!r}")

        report = self.store.upsert_report(result.report)

        if self.event_bus:
            self.event_bus.emit(AnalysisCompletedEvent(
                session_id, time.time(), result.degraded, report.overall_score
            ))

        return AnalysisOutcome(
            session_id=session_id,
            report=report,
            degraded=result.degraded,
            error=result.error if isinstance(result, FallbackReport) else None,
        )

    def _call_engine(self, session: InterviewSession, interview_text: str) -> EngineResult:
        """Invoke the engine once and classify what came back."""
        country_name, visa_type_name = self._resolve_names(session)
        system_instruction = AnalysisPrompts.system_instruction(
            country_name, visa_type_name, session.difficulty.value
        )
        prompt = AnalysisPrompts.analysis_request(interview_text)

        try:
            raw_text = self.llm_client.generate_content(
                prompt,
                system_instruction=system_instruction,
                temperature=ANALYSIS_TEMPERATURE,
                max_output_tokens=MAX_OUTPUT_TOKENS,
                response_mime_type="application/json",
            )
        except EngineUnavailable as e:
            logger.error("Analysis engine unavailable: %s", e)
            return EngineError(str(e))
        except Exception as e:
            logger.error("Analysis request failed unexpectedly: %s", e)
            error = f"{type(e).__name__}: {e}"
            return FallbackReport(build_fallback_report(session.id, error), error, "")

        logger.info(f"Engine answered for session {session.id} ({len(raw_text)} chars)")
        return parse_engine_response(session.id, raw_text)

    def _resolve_names(self, session: InterviewSession):
        visa_type = self.store.get_visa_type(session.visa_type_id)
        if visa_type is None:
            return "Unknown", "Unknown"
        return visa_type.country_name or "Unknown", visa_type.name or "Unknown"

    def _emit_error(self, session_id: str, error_type: str, message: str) -> None:
        if self.event_bus:
            self.event_bus.emit(ErrorOccurredEvent(session_id, time.time(), error_type, message, "analysis"))
