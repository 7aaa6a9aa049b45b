"""
Boundary schemas for loosely typed provider and engine payloads.

Everything that comes back from the voice-call provider or the analysis engine
is validated and coerced here, right on receipt. Downstream code only sees
the typed models from ``models.py``.
"""
import re
import json
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, Any, List, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .models import (
    InterviewReport, GrammarMistake, DetailedFeedback, Message, MessageRole, SCORE_FIELDS
)
from .errors import MalformedEngineResponse
from ..config import FALLBACK_SCORE, FAILED_END_REASONS, FAILED_CALL_STATUSES

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*")


def _coerce_score(value: Any) -> Optional[int]:
    """Coerce a loosely typed score to an int in 0..100, or None if unusable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().rstrip("%")
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    return int(round(min(100.0, max(0.0, number))))


def _coerce_string_list(value: Any) -> Optional[List[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return None
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


# =============================================================================
# ANALYSIS ENGINE PAYLOAD
# =============================================================================

class GrammarMistakePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    original: str = ""
    corrected: str = ""
    explanation: Optional[str] = None


class DetailedFeedbackPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    question: str = ""
    answer: str = ""
    score: int = FALLBACK_SCORE
    feedback: str = ""
    suggested_answer: Optional[str] = None

    @field_validator("score", mode="before")
    @classmethod
    def _score(cls, value: Any) -> int:
        score = _coerce_score(value)
        return FALLBACK_SCORE if score is None else score


class EngineReportPayload(BaseModel):
    """The JSON object the engine is instructed to return."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    overall_score: Optional[int] = None
    # Older prompts asked for "english_score"
    language_proficiency_score: Optional[int] = Field(default=None, alias="english_score")
    confidence_score: Optional[int] = None
    financial_clarity_score: Optional[int] = None
    immigration_intent_score: Optional[int] = None
    pronunciation_score: Optional[int] = None
    vocabulary_score: Optional[int] = None
    response_relevance_score: Optional[int] = None
    grammar_mistakes: Optional[List[GrammarMistakePayload]] = None
    red_flags: Optional[List[str]] = None
    improvement_plan: Optional[List[str]] = None
    detailed_feedback: Optional[List[DetailedFeedbackPayload]] = None
    summary: Optional[str] = None

    @field_validator(
        "overall_score", "language_proficiency_score", "confidence_score",
        "financial_clarity_score", "immigration_intent_score", "pronunciation_score",
        "vocabulary_score", "response_relevance_score",
        mode="before",
    )
    @classmethod
    def _scores(cls, value: Any) -> Optional[int]:
        return _coerce_score(value)

    @field_validator("red_flags", "improvement_plan", mode="before")
    @classmethod
    def _string_lists(cls, value: Any) -> Optional[List[str]]:
        return _coerce_string_list(value)

    @field_validator("grammar_mistakes", "detailed_feedback", mode="before")
    @classmethod
    def _object_lists(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, dict):
            return [value]
        if not isinstance(value, list):
            return None
        return [item for item in value if isinstance(item, dict)]

    @field_validator("summary", mode="before")
    @classmethod
    def _summary(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    def to_report(self, session_id: str) -> InterviewReport:
        scores = {name: getattr(self, name) for name in SCORE_FIELDS}
        overall = self.overall_score
        if overall is None and all(v is not None for v in scores.values()):
            overall = int(round(sum(scores.values()) / len(scores)))

        return InterviewReport(
            session_id=session_id,
            overall_score=overall,
            grammar_mistakes=(
                [GrammarMistake(**m.model_dump()) for m in self.grammar_mistakes]
                if self.grammar_mistakes is not None else None
            ),
            red_flags=self.red_flags,
            improvement_plan=self.improvement_plan,
            detailed_feedback=(
                [DetailedFeedback(**f.model_dump()) for f in self.detailed_feedback]
                if self.detailed_feedback is not None else None
            ),
            summary=self.summary,
            **scores,
        )


@dataclass
class ParsedReport:
    """The engine answered with a usable report."""
    report: InterviewReport
    raw_text: str
    degraded: bool = False


@dataclass
class FallbackReport:
    """The engine answered, but not with a report. Carries a neutral stand-in."""
    report: InterviewReport
    error: str
    raw_text: str
    degraded: bool = True


@dataclass
class EngineError:
    """The engine could not be reached or refused the request."""
    message: str


EngineResult = Union[ParsedReport, FallbackReport, EngineError]


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences the engine sometimes wraps JSON in."""
    return _FENCE_RE.sub("", text or "").strip()


def build_fallback_report(session_id: str, error: str) -> InterviewReport:
    """Neutral mid-range report used when the engine output cannot be parsed."""
    scores = {name: FALLBACK_SCORE for name in SCORE_FIELDS}
    return InterviewReport(
        session_id=session_id,
        overall_score=FALLBACK_SCORE,
        grammar_mistakes=[],
        red_flags=["Analysis could not be completed"],
        improvement_plan=["Please try the interview again"],
        detailed_feedback=[
            DetailedFeedback(
                question="Interview analysis",
                answer="",
                score=FALLBACK_SCORE,
                feedback="Detailed feedback could not be generated for this attempt.",
            )
        ],
        summary=f"The analysis could not be completed due to a parsing error: {error}",
        **scores,
    )


def _decode_report_object(text: str) -> Dict[str, Any]:
    """Decode the engine's JSON object, digging it out of surrounding prose if needed."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end <= start:
            raise MalformedEngineResponse(f"invalid JSON ({e.msg})", text) from e
        try:
            data = json.loads(text[start:end + 1])
        except json.JSONDecodeError as e2:
            raise MalformedEngineResponse(f"invalid JSON ({e2.msg})", text) from e2

    if not isinstance(data, dict):
        raise MalformedEngineResponse(f"expected a JSON object, got {type(data).__name__}", text)
    return data


def parse_engine_response(session_id: str, raw_text: str) -> Union[ParsedReport, FallbackReport]:
    """
    Parse engine output into a report. Never raises: anything unusable
    becomes a FallbackReport.
    """
    try:
        data = _decode_report_object(strip_code_fences(raw_text))
        payload = EngineReportPayload.model_validate(data)
    except MalformedEngineResponse as e:
        return FallbackReport(build_fallback_report(session_id, str(e)), str(e), raw_text)
    except ValidationError as e:
        error = f"{e.error_count()} schema error(s)"
        return FallbackReport(build_fallback_report(session_id, error), str(e), raw_text)

    return ParsedReport(payload.to_report(session_id), raw_text)


# =============================================================================
# VOICE-CALL PROVIDER PAYLOAD
# =============================================================================

_OFFICER_ROLES = {"assistant", "bot", "officer"}
_CANDIDATE_ROLES = {"user", "customer", "candidate"}


class ProviderMessagePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: str
    message: Optional[str] = None
    content: Optional[str] = None
    time: Optional[float] = None
    seconds_from_start: Optional[float] = Field(default=None, alias="secondsFromStart")

    def to_message(self) -> Optional[Message]:
        role = self.role.lower()
        if role in _OFFICER_ROLES:
            message_role = MessageRole.OFFICER
        elif role in _CANDIDATE_ROLES:
            message_role = MessageRole.CANDIDATE
        else:
            # system prompts, tool calls
            return None
        text = (self.message if self.message is not None else self.content) or ""
        if not text.strip():
            return None
        timestamp = self.seconds_from_start if self.seconds_from_start is not None else self.time
        return Message(role=message_role, content=text.strip(), timestamp=timestamp)


class CallArtifactPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    transcript: Optional[str] = None
    messages: Optional[List[Dict[str, Any]]] = None
    recording_url: Optional[str] = Field(default=None, alias="recordingUrl")


class CallDetailsPayload(BaseModel):
    """Subset of the provider's call object the pipeline reads."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = None
    status: Optional[str] = None
    ended_reason: Optional[str] = Field(default=None, alias="endedReason")
    cost: Optional[float] = None
    duration: Optional[float] = None
    started_at: Optional[datetime] = Field(default=None, alias="startedAt")
    ended_at: Optional[datetime] = Field(default=None, alias="endedAt")
    artifact: Optional[CallArtifactPayload] = None
    # Older payloads carry the artifacts at top level
    transcript: Optional[str] = None
    messages: Optional[List[Dict[str, Any]]] = None
    recording_url: Optional[str] = Field(default=None, alias="recordingUrl")

    @field_validator("cost", "duration", mode="before")
    @classmethod
    def _numbers(cls, value: Any) -> Optional[float]:
        try:
            return float(value) if value is not None else None
        except (TypeError, ValueError):
            return None

    @property
    def failed(self) -> bool:
        """True when the call did not complete normally."""
        if self.status and self.status.lower() in FAILED_CALL_STATUSES:
            return True
        if self.status and self.status.lower() != "ended":
            # queued / ringing / in-progress: never reached a normal end
            return True
        reason = (self.ended_reason or "").lower()
        if reason in FAILED_END_REASONS:
            return True
        return reason.startswith("pipeline-error") or reason.startswith("call.start.error") or ".error" in reason

    def artifact_transcript(self) -> Optional[str]:
        if self.artifact and self.artifact.transcript is not None:
            return self.artifact.transcript
        return self.transcript

    def artifact_recording_url(self) -> Optional[str]:
        if self.artifact and self.artifact.recording_url is not None:
            return self.artifact.recording_url
        return self.recording_url

    def artifact_messages(self) -> Optional[List[Message]]:
        raw = self.artifact.messages if self.artifact and self.artifact.messages is not None else self.messages
        if raw is None:
            return None
        messages = []
        for item in raw:
            if not isinstance(item, dict) or not item.get("role"):
                continue
            try:
                message = ProviderMessagePayload.model_validate(item).to_message()
            except ValidationError:
                continue
            if message is not None:
                messages.append(message)
        return messages

    def call_duration(self) -> Optional[float]:
        if self.duration is not None:
            return self.duration
        if self.started_at and self.ended_at:
            return max(0.0, (self.ended_at - self.started_at).total_seconds())
        return None


def parse_call_details(data: Dict[str, Any]) -> CallDetailsPayload:
    """Validate a provider call object. Unknown fields are ignored."""
    return CallDetailsPayload.model_validate(data)
