"""
Live call session client.

Owns local media capture and the provider's real-time channel for one
interview attempt. Provider callbacks are funnelled into a single queue and
applied in order by one consumer task, so state changes never interleave.
"""
import time
import asyncio
import logging
from enum import Enum
from typing import Optional, Dict, Any, Callable, Awaitable, Iterable

from .errors import MediaAccessError, InvalidTransition
from .events import (
    InterviewEventBus, CallStateChangedEvent, SpeechActivity, SpeechActivityEvent,
    PartialTranscriptEvent, FarewellDetectedEvent, ProviderErrorEvent, ErrorOccurredEvent
)
from .models import MessageRole
from ..infrastructure.voice.media import MediaDevices, MediaStream
from ..infrastructure.voice.realtime import RealtimeTransport, ProviderMessage
from ..config import MEDIA_CONSTRAINTS, FAREWELL_PHRASES, FAREWELL_GRACE_SECONDS

logger = logging.getLogger("call_client")

_ROLE_BY_PROVIDER = {
    "assistant": MessageRole.OFFICER,
    "user": MessageRole.CANDIDATE,
}


class CallState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ENDED = "ended"


_NEXT_STATES = {
    CallState.IDLE: {CallState.CONNECTING},
    CallState.CONNECTING: {CallState.CONNECTED, CallState.ENDED},
    CallState.CONNECTED: {CallState.ENDED},
    CallState.ENDED: set(),
}


def find_farewell(text: str, phrases: Iterable[str] = FAREWELL_PHRASES) -> Optional[str]:
    """Return the first farewell phrase contained in ``text``, case-insensitively."""
    lowered = (text or "").lower()
    for phrase in phrases:
        if phrase in lowered:
            return phrase
    return None


class CallSessionClient:
    """
    State machine ``idle -> connecting -> connected -> ended``.

    Only the provider's call-start and call-end messages move the state
    forward; hanging up (by the caller or the farewell heuristic) asks the
    provider to stop and waits for its call-end.
    """

    def __init__(self,
                 backend,
                 transport: RealtimeTransport,
                 media_devices: MediaDevices,
                 event_bus: Optional[InterviewEventBus] = None,
                 farewell_phrases: Iterable[str] = FAREWELL_PHRASES,
                 grace_seconds: float = FAREWELL_GRACE_SECONDS,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 clock: Callable[[], float] = time.time,
                 run_post_call: bool = True):
        self.backend = backend
        self.transport = transport
        self.media_devices = media_devices
        self.event_bus = event_bus
        self.farewell_phrases = tuple(p.lower() for p in farewell_phrases)
        self.grace_seconds = grace_seconds
        self._sleep = sleep
        self._clock = clock
        self.run_post_call = run_post_call

        self.state = CallState.IDLE
        self.session_id: Optional[str] = None
        self.stream: Optional[MediaStream] = None
        self.speech_activity = SpeechActivity.IDLE
        self.partial_transcript: Optional[Dict[str, Any]] = None
        self.post_call_task: Optional[asyncio.Task] = None

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._pump_task: Optional[asyncio.Task] = None
        self._hangup_task: Optional[asyncio.Task] = None
        self._ended: Optional[asyncio.Event] = None

    # -- public API -----------------------------------------------------------

    async def start_session(self, session_id: str):
        """
        Open media, create the provider call, and connect the real-time channel.

        Returns:
            The backend's StartInterviewResponse

        Raises:
            InvalidTransition: If this client already started a session
            MediaAccessError: If camera/microphone access is denied; state stays idle
        """
        if self.state != CallState.IDLE:
            raise InvalidTransition(f"Call client is {self.state.value}, cannot start")

        self.session_id = session_id
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._ended = asyncio.Event()

        try:
            self.stream = await self.media_devices.get_user_media(MEDIA_CONSTRAINTS)
        except MediaAccessError as e:
            logger.warning(f"Media access denied for session {session_id}: {e}")
            self._release_media()
            self._emit_error(e)
            raise

        self._set_state(CallState.CONNECTING)
        self.transport.set_listener(self._on_provider_message)
        self._pump_task = asyncio.ensure_future(self._pump())

        response = None
        try:
            response = await self._loop.run_in_executor(None, self.backend.start_interview, session_id)
            await self.transport.start(response.public_key, response.call_config)
        except Exception as e:
            logger.error(f"Failed to start call for session {session_id}: {e}")
            self._emit_error(e)
            self._finish(run_post_call=False)
            if response is not None:
                # Provider call was created but never connected
                await self._settle_unconnected_call()
            raise

        logger.info(f"Call channel opened for session {session_id}")
        return response

    async def end_session(self) -> None:
        """Caller hangup. A no-op once the call has ended."""
        if self.state in (CallState.IDLE, CallState.ENDED):
            return
        logger.info(f"Caller ended session {self.session_id}")
        await self.transport.stop()

    async def wait_ended(self, timeout: Optional[float] = None) -> bool:
        """Wait for the provider's call-end. Returns False on timeout."""
        if self._ended is None:
            return self.state == CallState.ENDED
        try:
            await asyncio.wait_for(self._ended.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def set_microphone(self, enabled: bool) -> None:
        if self.stream:
            self.stream.set_enabled("audio", enabled)

    def set_camera(self, enabled: bool) -> None:
        if self.stream:
            self.stream.set_enabled("video", enabled)

    # -- provider event channel -------------------------------------------------

    def _on_provider_message(self, message: ProviderMessage) -> None:
        """Listener handed to the transport; may be called from any thread."""
        if self._loop is None or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._queue.put_nowait, message)

    async def _pump(self) -> None:
        while self.state != CallState.ENDED:
            message = await self._queue.get()
            try:
                self._handle_message(message)
            except Exception as e:
                logger.error(f"Error handling provider message {message.get('type')}: {e}")

    def _handle_message(self, message: ProviderMessage) -> None:
        message_type = message.get("type")

        if message_type == "call-start":
            if self.state == CallState.CONNECTING:
                self._set_state(CallState.CONNECTED)
        elif message_type == "call-end":
            self._finish(run_post_call=self.run_post_call)
        elif message_type == "speech-start":
            self._set_activity(SpeechActivity.OFFICER_SPEAKING)
        elif message_type == "speech-end":
            self._set_activity(SpeechActivity.IDLE)
        elif message_type == "message":
            payload = message.get("message") or {}
            if payload.get("type") == "transcript":
                self._handle_transcript(payload)
        elif message_type == "error":
            error = message.get("error")
            text = error.get("message") if isinstance(error, dict) else str(error or "Voice connection error")
            logger.warning(f"Provider error during session {self.session_id}: {text}")
            if self.event_bus:
                self.event_bus.emit(ProviderErrorEvent(self.session_id, self._clock(), text))
        else:
            logger.debug(f"Ignoring provider message {message_type}")

    def _handle_transcript(self, payload: Dict[str, Any]) -> None:
        role = _ROLE_BY_PROVIDER.get(payload.get("role"), MessageRole.CANDIDATE)
        text = payload.get("transcript") or ""
        is_final = payload.get("transcriptType") == "final"

        self.partial_transcript = {"role": role.value, "text": text, "is_final": is_final}
        if self.event_bus:
            self.event_bus.emit(PartialTranscriptEvent(self.session_id, self._clock(), role.value, text, is_final))

        if role == MessageRole.OFFICER:
            self._set_activity(SpeechActivity.OFFICER_SPEAKING)
            phrase = find_farewell(text, self.farewell_phrases)
            if phrase:
                self._schedule_hangup(phrase)
        else:
            self._set_activity(SpeechActivity.CANDIDATE_SPEAKING)

    # -- auto-termination -----------------------------------------------------

    def _schedule_hangup(self, phrase: str) -> None:
        if self._hangup_task is not None or self.state == CallState.ENDED:
            return
        logger.info(f"Farewell '{phrase}' detected; stopping call in {self.grace_seconds}s")
        if self.event_bus:
            self.event_bus.emit(FarewellDetectedEvent(self.session_id, self._clock(), phrase, self.grace_seconds))
        self._hangup_task = asyncio.ensure_future(self._delayed_stop())

    async def _delayed_stop(self) -> None:
        await self._sleep(self.grace_seconds)
        if self.state != CallState.ENDED:
            await self.transport.stop()

    # -- state ----------------------------------------------------------------

    def _set_state(self, state: CallState) -> None:
        if state not in _NEXT_STATES[self.state]:
            raise InvalidTransition(f"Call state {self.state.value} -> {state.value}")
        previous, self.state = self.state, state
        logger.debug(f"Session {self.session_id} call state {previous.value} -> {state.value}")
        if self.event_bus:
            self.event_bus.emit(CallStateChangedEvent(self.session_id, self._clock(), previous.value, state.value))

    def _set_activity(self, activity: SpeechActivity) -> None:
        if activity == self.speech_activity:
            return
        self.speech_activity = activity
        if self.event_bus:
            self.event_bus.emit(SpeechActivityEvent(self.session_id, self._clock(), activity))

    def _finish(self, run_post_call: bool) -> None:
        """Move to ended and tear down media and timers. Dispatched analysis is untouched."""
        if self.state == CallState.ENDED:
            return
        self._set_state(CallState.ENDED)
        self._set_activity(SpeechActivity.IDLE)
        self._release_media()

        current = asyncio.current_task()
        for task in (self._hangup_task, self._pump_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._ended.set()

        if run_post_call:
            self.post_call_task = asyncio.ensure_future(self.backend.finish_call(self.session_id))
            self.post_call_task.add_done_callback(self._on_post_call_done)

    async def _settle_unconnected_call(self) -> None:
        self.post_call_task = asyncio.ensure_future(self.backend.finish_call(self.session_id))
        self.post_call_task.add_done_callback(self._on_post_call_done)
        await asyncio.wait([self.post_call_task])

    def _on_post_call_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Post-call processing for session {self.session_id} failed: {error}")
            self._emit_error(error)

    def _release_media(self) -> None:
        if self.stream is not None:
            self.stream.release()

    def _emit_error(self, error: Exception) -> None:
        if self.event_bus:
            self.event_bus.emit(ErrorOccurredEvent(
                self.session_id, self._clock(), type(error).__name__, str(error), "call_client"
            ))
