"""
Backend boundary: the operations the call client and report view invoke.

Each operation is a stateless request/response unit; all shared state lives
in the session store.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Set, Tuple

from .models import SessionStatus
from .errors import InvalidTransition, ProviderUnavailable, MockVisaError
from .events import InterviewEventBus, create_event_bus
from .retrieval import ResultRetrievalService, RetrievalResult
from .analysis import AnalysisDispatcher, AnalysisOutcome
from .rendering import RenderedReport, render_report
from ..infrastructure.data.store import SessionStore
from ..infrastructure.voice.vapi import VapiClient
from ..infrastructure.llm import GeminiRestClient
from ..config import Config

logger = logging.getLogger("backend")


@dataclass
class StartInterviewResponse:
    """What the call client needs to open the provider's real-time channel."""
    public_key: str
    call_config: Dict[str, Any] = field(default_factory=dict)
    assistant_id: Optional[str] = None
    provider_call_id: Optional[str] = None


class InterviewBackend:
    """In-process implementation of start-interview, get-interview-results,
    analyze-interview and generate-report."""

    def __init__(self,
                 store: SessionStore,
                 vapi_client: VapiClient,
                 retrieval: ResultRetrievalService,
                 dispatcher: AnalysisDispatcher,
                 public_key: Optional[str] = None,
                 assistant_id: Optional[str] = None):
        self.store = store
        self.vapi_client = vapi_client
        self.retrieval = retrieval
        self.dispatcher = dispatcher
        self.public_key = public_key
        self.assistant_id = assistant_id
        self._background: Set[asyncio.Task] = set()

    @classmethod
    def from_config(cls, config: Config, event_bus: Optional[InterviewEventBus] = None) -> 'InterviewBackend':
        """Wire the production collaborators from configuration."""
        event_bus = event_bus or create_event_bus()
        store = SessionStore(config.data_dir)
        vapi_client = VapiClient(config.vapi_private_key, config.vapi_base_url, config.provider_timeout)
        llm_client = GeminiRestClient(
            api_key=config.gemini_api_key,
            project=config.google_cloud_project,
            model=config.model_name,
            credentials_json=config.google_application_credentials,
            timeout=config.llm_timeout,
        )
        return cls(
            store=store,
            vapi_client=vapi_client,
            retrieval=ResultRetrievalService(store, vapi_client, event_bus),
            dispatcher=AnalysisDispatcher(store, llm_client, event_bus),
            public_key=config.vapi_public_key,
            assistant_id=config.vapi_assistant_id,
        )

    # -- start-interview ------------------------------------------------------

    def _provider_settings(self, visa_type_id: str) -> Tuple[VapiClient, Optional[str], Optional[str]]:
        """Per visa type keys win over the global ones."""
        visa_type = self.store.get_visa_type(visa_type_id)
        client = self.vapi_client
        public_key, assistant_id = self.public_key, self.assistant_id
        if visa_type is not None:
            if visa_type.vapi_private_key:
                client = VapiClient(visa_type.vapi_private_key, self.vapi_client.base_url, self.vapi_client.timeout)
            public_key = visa_type.vapi_public_key or public_key
            assistant_id = visa_type.vapi_assistant_id or assistant_id
        return client, public_key, assistant_id

    def start_interview(self, session_id: str) -> StartInterviewResponse:
        """
        Create the provider call for a pending session.

        Raises:
            NotFound: If the session does not exist
            InvalidTransition: If the session already started a call
            ProviderUnavailable: If keys are missing or the provider rejects the call
        """
        session = self.store.require_session(session_id)
        if session.provider_call_id or session.status != SessionStatus.PENDING:
            raise InvalidTransition(f"Session {session_id} already started (status={session.status.value})")

        client, public_key, assistant_id = self._provider_settings(session.visa_type_id)
        if not public_key:
            raise ProviderUnavailable("Vapi public key is not configured")

        call = client.create_web_call(assistant_id)
        call_id = call.get("id")
        if not call_id:
            raise ProviderUnavailable("Vapi did not return a call id")

        self.store.update_session(session_id, provider_call_id=call_id, status=SessionStatus.IN_PROGRESS)
        logger.info(f"Session {session_id} started provider call {call_id}")
        return StartInterviewResponse(
            public_key=public_key,
            call_config=call,
            assistant_id=assistant_id,
            provider_call_id=call_id,
        )

    # -- results / analysis / report ------------------------------------------

    def get_interview_results(self, session_id: str) -> RetrievalResult:
        return self.retrieval.retrieve_results(session_id)

    def analyze_interview(self, session_id: str) -> AnalysisOutcome:
        return self.dispatcher.analyze(session_id)

    def generate_report(self, session_id: str) -> RenderedReport:
        session = self.store.require_session(session_id)
        report = self.store.get_report(session_id)
        visa_type = self.store.get_visa_type(session.visa_type_id)
        return render_report(
            session,
            report,
            country_name=(visa_type.country_name if visa_type else None) or "Unknown",
            visa_type_name=visa_type.name if visa_type else "Unknown",
        )

    # -- async helpers for the event-loop side ---------------------------------

    def dispatch_analysis(self, session_id: str) -> asyncio.Task:
        """
        Fire-and-forget analysis on a worker thread. The returned task is not
        cancelled when the caller goes away.
        """
        loop = asyncio.get_running_loop()
        task = asyncio.ensure_future(loop.run_in_executor(None, self.dispatcher.analyze, session_id))
        self._background.add(task)
        task.add_done_callback(lambda t: self._on_analysis_done(session_id, t))
        return task

    def _on_analysis_done(self, session_id: str, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if isinstance(error, MockVisaError):
            logger.warning(f"Background analysis for session {session_id} failed: {error}")
        elif error is not None:
            logger.error(f"Background analysis for session {session_id} crashed: {error!r}")

    async def finish_call(self, session_id: str) -> Tuple[RetrievalResult, Optional[asyncio.Task]]:
        """
        Post-call pipeline: retrieve artifacts, then dispatch analysis only for
        completed calls.
        """
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, self.retrieval.retrieve_results, session_id)
        if not result.billable:
            logger.info(f"Session {session_id} failed ({result.ended_reason}); no analysis, no charge")
            return result, None
        return result, self.dispatch_analysis(session_id)
