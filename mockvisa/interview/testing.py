"""
Testing infrastructure with fake services for the interview pipeline.
"""
import os
import json
import asyncio
from typing import Dict, Any, List, Optional, Callable
from dataclasses import dataclass, field

from .models import Difficulty, InterviewSession, SCORE_FIELDS
from .errors import MediaAccessError, ProviderUnavailable, NotFound, EngineUnavailable
from ..infrastructure.data.store import SessionStore
from ..infrastructure.voice.media import MediaTrack, MediaStream, MediaDevices
from ..infrastructure.voice.realtime import RealtimeTransport, ProviderListener


class FakeTrack(MediaTrack):
    """Media track that records whether it was stopped."""

    def __init__(self, kind: str = "audio"):
        self.kind = kind
        self.enabled = True
        self.stopped = False

    def stop(self) -> None:
        self.stopped = True


class FakeMediaDevices(MediaDevices):
    """Hands out audio+video streams, or denies access."""

    def __init__(self, deny: bool = False):
        self.deny = deny
        self.requests: List[Dict[str, Any]] = []
        self.streams: List[MediaStream] = []

    async def get_user_media(self, constraints: Dict[str, Any]) -> MediaStream:
        self.requests.append(constraints)
        if self.deny:
            raise MediaAccessError("Permission denied")
        stream = MediaStream([FakeTrack("audio"), FakeTrack("video")])
        self.streams.append(stream)
        return stream


class FakeTransport(RealtimeTransport):
    """
    Real-time channel driven by the test. ``stop()`` answers with a
    call-end message like the provider does.
    """

    def __init__(self, fail_start: bool = False, end_on_stop: bool = True):
        self.fail_start = fail_start
        self.end_on_stop = end_on_stop
        self.listener: Optional[ProviderListener] = None
        self.started_with: Optional[Dict[str, Any]] = None
        self.stop_calls = 0

    def set_listener(self, listener: ProviderListener) -> None:
        self.listener = listener

    async def start(self, public_key: str, call_config: Dict[str, Any]) -> None:
        if self.fail_start:
            raise ProviderUnavailable("Voice connection error")
        self.started_with = {"public_key": public_key, "call_config": call_config}

    async def stop(self) -> None:
        self.stop_calls += 1
        if self.end_on_stop:
            self.push({"type": "call-end"})

    def push(self, message: Dict[str, Any]) -> None:
        """Deliver a provider message to the client."""
        self.listener(message)

    def say(self, role: str, text: str, final: bool = True) -> None:
        self.push({
            "type": "message",
            "message": {
                "type": "transcript",
                "role": role,
                "transcript": text,
                "transcriptType": "final" if final else "partial",
            },
        })


class FakeVapiClient:
    """Stands in for VapiClient; returns canned call objects."""

    def __init__(self, calls: Optional[Dict[str, Dict[str, Any]]] = None, unavailable: bool = False):
        self.calls = dict(calls or {})
        self.unavailable = unavailable
        self.base_url = "https://vapi.test"
        self.timeout = 1
        self.created: List[Optional[str]] = []
        self.fetched: List[str] = []

    def create_web_call(self, assistant_id: Optional[str]) -> Dict[str, Any]:
        if self.unavailable:
            raise ProviderUnavailable("Vapi REST error 500")
        self.created.append(assistant_id)
        call = {"id": f"call-{len(self.created)}", "type": "webCall", "assistantId": assistant_id}
        self.calls.setdefault(call["id"], {"id": call["id"], "status": "queued"})
        return call

    def get_call(self, call_id: str) -> Dict[str, Any]:
        self.fetched.append(call_id)
        if self.unavailable:
            raise ProviderUnavailable("Vapi REST error 500")
        if call_id not in self.calls:
            raise NotFound(f"Vapi resource not found: /call/{call_id}")
        return self.calls[call_id]


class MockLLMClient:
    """Mock LLM client for testing."""

    def __init__(self, mock_responses: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.mock_responses = list(mock_responses or [])
        self.error = error
        self.current_response_idx = 0
        self.request_history = []

    def generate_content(self, prompt_text: str, temperature: float = 0.0, **kwargs) -> str:
        """Return the next canned response, or raise the configured error."""
        self.request_history.append({
            "prompt": prompt_text,
            "temperature": temperature,
            "kwargs": kwargs
        })
        if self.error is not None:
            raise self.error

        if self.current_response_idx < len(self.mock_responses):
            response = self.mock_responses[self.current_response_idx]
            self.current_response_idx += 1
            return response
        raise EngineUnavailable("No more mock responses")


@dataclass
class FakeClock:
    """
    Deterministic clock. ``sleep`` advances time instantly and yields to
    the event loop once; ``on_advance`` runs after every advance.
    """
    now: float = 0.0
    sleeps: List[float] = field(default_factory=list)
    on_advance: Optional[Callable[[float], None]] = None

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        if self.on_advance is not None:
            self.on_advance(self.now)
        await asyncio.sleep(0)


def sample_engine_report(**overrides: Any) -> Dict[str, Any]:
    """A complete report object as the engine is asked to return it."""
    report: Dict[str, Any] = {
        "overall_score": 78,
        "language_proficiency_score": 80,
        "confidence_score": 75,
        "financial_clarity_score": 70,
        "immigration_intent_score": 85,
        "pronunciation_score": 72,
        "vocabulary_score": 79,
        "response_relevance_score": 88,
        "grammar_mistakes": [
            {"original": "I am study", "corrected": "I am studying", "explanation": "Use the present continuous."}
        ],
        "red_flags": ["Vague answer about funding"],
        "improvement_plan": ["Bring bank statements", "Practise concise answers"],
        "detailed_feedback": [
            {
                "question": "Why do you want to study in Canada?",
                "answer": "Because the university is good.",
                "score": 65,
                "feedback": "Name the program and why it fits your plans.",
                "suggested_answer": "I was admitted to the MSc in Data Science at UBC because...",
            }
        ],
        "summary": "Solid interview with room to improve on financial clarity.",
    }
    report.update(overrides)
    return report


def sample_engine_response(fenced: bool = False, **overrides: Any) -> str:
    text = json.dumps(sample_engine_report(**overrides))
    return f"```json\n{text}\n```" if fenced else text


def sample_call(call_id: str = "call-1",
                status: str = "ended",
                ended_reason: str = "customer-ended-call",
                **overrides: Any) -> Dict[str, Any]:
    """A finished provider call object with artifacts."""
    call: Dict[str, Any] = {
        "id": call_id,
        "status": status,
        "endedReason": ended_reason,
        "cost": 0.42,
        "startedAt": "2026-01-10T10:00:00.000Z",
        "endedAt": "2026-01-10T10:05:30.000Z",
        "artifact": {
            "transcript": "AI: Why do you want to study in Canada?\nUser: Because the university is good.",
            "recordingUrl": "https://storage.vapi.test/recordings/call-1.wav",
            "messages": [
                {"role": "system", "message": "You are a visa officer."},
                {"role": "bot", "message": "Why do you want to study in Canada?", "secondsFromStart": 1.2},
                {"role": "user", "message": "Because the university is good.", "secondsFromStart": 4.8},
            ],
        },
    }
    call.update(overrides)
    return call


def create_session(store: SessionStore,
                   session_id: str = "session-1",
                   visa_type_id: str = "ca-study",
                   **changes: Any) -> InterviewSession:
    """Create a session and apply status/field changes step by step."""
    session = store.create_session(
        user_id="user-1",
        country_id="ca",
        visa_type_id=visa_type_id,
        difficulty=Difficulty.MEDIUM,
        name="Practice run",
        session_id=session_id,
    )
    if changes:
        session = store.update_session(session_id, **changes)
    return session


def write_visa_type(store: SessionStore, visa_type_id: str = "ca-study", **fields: Any) -> None:
    """Write a visa type config file the way the admin surface would."""
    data = {"id": visa_type_id, "country_id": "ca", "name": "Study Permit", "country_name": "Canada"}
    data.update(fields)
    with open(os.path.join(store.visa_types_dir, f"{visa_type_id}.json"), 'w', encoding='utf-8') as f:
        json.dump(data, f)


def complete_scores(value: int = 70) -> Dict[str, int]:
    return {name: value for name in SCORE_FIELDS}
