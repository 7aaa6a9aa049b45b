"""
Data models for the interview pipeline.
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, List


class SessionStatus(str, Enum):
    """Lifecycle of one interview attempt."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.FAILED)


# Forward-only status moves; terminal states have no exits.
ALLOWED_TRANSITIONS = {
    SessionStatus.PENDING: {SessionStatus.IN_PROGRESS, SessionStatus.FAILED},
    SessionStatus.IN_PROGRESS: {SessionStatus.COMPLETED, SessionStatus.FAILED},
    SessionStatus.COMPLETED: set(),
    SessionStatus.FAILED: set(),
}


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    """Check whether a status move is allowed. Re-writing the same status is a no-op."""
    return current == target or target in ALLOWED_TRANSITIONS[current]


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class MessageRole(str, Enum):
    OFFICER = "officer"
    CANDIDATE = "candidate"


SCORE_FIELDS = (
    "language_proficiency_score",
    "confidence_score",
    "financial_clarity_score",
    "immigration_intent_score",
    "pronunciation_score",
    "vocabulary_score",
    "response_relevance_score",
)

# Artifact fields written once by result retrieval
ARTIFACT_FIELDS = ("transcript", "messages", "recording_url", "duration", "cost")


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Message:
    """One turn of the authoritative call transcript."""
    role: MessageRole
    content: str
    timestamp: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role.value, "content": self.content, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Message':
        return cls(role=MessageRole(data["role"]), content=data["content"], timestamp=data.get("timestamp"))


@dataclass
class GrammarMistake:
    original: str
    corrected: str
    explanation: Optional[str] = None


@dataclass
class DetailedFeedback:
    """Per-question evaluation of one officer question and the candidate's answer."""
    question: str
    answer: str
    score: int
    feedback: str
    suggested_answer: Optional[str] = None


@dataclass
class InterviewSession:
    """One attempt at the simulated interview."""
    id: str
    user_id: str
    country_id: str
    visa_type_id: str
    difficulty: Difficulty = Difficulty.MEDIUM
    name: Optional[str] = None
    status: SessionStatus = SessionStatus.PENDING
    provider_call_id: Optional[str] = None
    transcript: Optional[str] = None
    messages: Optional[List[Message]] = None
    recording_url: Optional[str] = None
    duration: Optional[float] = None
    cost: Optional[float] = None
    created_at: str = field(default_factory=utc_now)
    ended_at: Optional[str] = None
    is_public: bool = False

    @property
    def artifacts_written(self) -> bool:
        """Result retrieval always sets ended_at together with the artifacts."""
        return self.ended_at is not None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["difficulty"] = self.difficulty.value
        data["status"] = self.status.value
        data["messages"] = [m.to_dict() for m in self.messages] if self.messages is not None else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InterviewSession':
        data = dict(data)
        data["difficulty"] = Difficulty(data.get("difficulty") or Difficulty.MEDIUM.value)
        data["status"] = SessionStatus(data.get("status") or SessionStatus.PENDING.value)
        if data.get("messages") is not None:
            data["messages"] = [Message.from_dict(m) for m in data["messages"]]
        return cls(**data)


@dataclass
class InterviewReport:
    """
    Evaluation of one session. Fields fill in progressively.

    None means "not analyzed yet"; an empty list means "analyzed, nothing found".
    """
    session_id: str
    overall_score: Optional[int] = None
    language_proficiency_score: Optional[int] = None
    confidence_score: Optional[int] = None
    financial_clarity_score: Optional[int] = None
    immigration_intent_score: Optional[int] = None
    pronunciation_score: Optional[int] = None
    vocabulary_score: Optional[int] = None
    response_relevance_score: Optional[int] = None
    grammar_mistakes: Optional[List[GrammarMistake]] = None
    red_flags: Optional[List[str]] = None
    improvement_plan: Optional[List[str]] = None
    detailed_feedback: Optional[List[DetailedFeedback]] = None
    summary: Optional[str] = None
    created_at: str = field(default_factory=utc_now)
    updated_at: Optional[str] = None

    @property
    def scores(self) -> Dict[str, Optional[int]]:
        return {name: getattr(self, name) for name in SCORE_FIELDS}

    def missing_sections(self) -> List[str]:
        """Names of the sections that still block completeness."""
        missing = [name for name, value in self.scores.items() if value is None]
        if self.overall_score is None:
            missing.append("overall_score")
        if not self.summary:
            missing.append("summary")
        if not self.detailed_feedback:
            missing.append("detailed_feedback")
        return missing

    def is_complete(self) -> bool:
        return not self.missing_sections()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InterviewReport':
        data = dict(data)
        if data.get("grammar_mistakes") is not None:
            data["grammar_mistakes"] = [GrammarMistake(**m) for m in data["grammar_mistakes"]]
        if data.get("detailed_feedback") is not None:
            data["detailed_feedback"] = [DetailedFeedback(**f) for f in data["detailed_feedback"]]
        return cls(**data)


@dataclass
class VisaTypeConfig:
    """Per visa type provider settings, owned by the admin surface."""
    id: str
    country_id: str
    name: str
    country_name: Optional[str] = None
    description: Optional[str] = None
    vapi_assistant_id: Optional[str] = None
    vapi_public_key: Optional[str] = None
    vapi_private_key: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VisaTypeConfig':
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


def is_report_complete(report: Optional[InterviewReport]) -> bool:
    return report is not None and report.is_complete()
