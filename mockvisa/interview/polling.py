"""
Report view controller: loads a session's report and polls until the
analysis lands, gives up after a timeout, and lets the user regenerate.
"""
import time
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Callable, Awaitable, Any

from .models import InterviewSession, InterviewReport, SessionStatus
from .errors import AnalysisTimeout
from .events import InterviewEventBus, ReportUpdatedEvent, AnalysisTimedOutEvent
from ..infrastructure.data.store import SessionStore
from ..config import POLL_INTERVAL_SECONDS, POLL_TIMEOUT_SECONDS, POLL_FINAL_TICK_SECONDS

logger = logging.getLogger("polling")

CALL_FAILED_MESSAGE = "The mock test call did not complete. No credits were charged."


def _revision(report: InterviewReport) -> str:
    return report.updated_at or report.created_at


@dataclass
class ReportView:
    """What the report screen shows right now."""
    session: Optional[InterviewSession] = None
    report: Optional[InterviewReport] = None
    complete: bool = False
    analysis_failed: bool = False
    call_failed: bool = False
    message: Optional[str] = None
    polling: bool = False


class ReportPollingController:
    """
    Owns the polling task for one report view.

    Closing the controller stops polling; analysis already dispatched keeps
    running in the background.
    """

    def __init__(self,
                 session_id: str,
                 store: SessionStore,
                 analyze: Optional[Callable[[str], Any]] = None,
                 event_bus: Optional[InterviewEventBus] = None,
                 interval: float = POLL_INTERVAL_SECONDS,
                 timeout: float = POLL_TIMEOUT_SECONDS,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.session_id = session_id
        self.store = store
        self.analyze = analyze
        self.event_bus = event_bus
        self.interval = interval
        self.timeout = timeout
        self._clock = clock
        self._sleep = sleep

        self.view = ReportView()
        self.started_at: Optional[float] = None
        self.analysis_task: Optional[asyncio.Future] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._loaded = False
        # Revision of the report a regeneration is replacing
        self._superseded: Optional[str] = None

    async def __aenter__(self) -> 'ReportPollingController':
        await self.load()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def load(self) -> ReportView:
        """
        Fetch session and report once, then start polling if the report is
        not complete yet.

        Raises:
            NotFound: If the session does not exist
        """
        if self._loaded:
            return self.view
        self._loaded = True

        await self._refresh()
        if self.view.call_failed:
            logger.info(f"Session {self.session_id} failed; showing terminal view")
        elif not self.view.complete:
            self._start_polling()
        return self.view

    async def regenerate(self) -> ReportView:
        """
        Re-dispatch analysis and restart the polling clock at a new t=0.

        The report on screen stays visible but no longer counts as complete
        until a newer one is stored or the analysis finishes without one.
        """
        if self.view.call_failed:
            logger.info(f"Not regenerating report for failed session {self.session_id}")
            return self.view

        await self._cancel_poll()
        self.view.analysis_failed = False
        self.view.complete = False

        if self.analyze is not None:
            report = self.view.report
            self._superseded = _revision(report) if report is not None else None
            loop = asyncio.get_running_loop()
            logger.info(f"Regenerating report for session {self.session_id}")
            self.analysis_task = loop.run_in_executor(None, self.analyze, self.session_id)
            self.analysis_task.add_done_callback(self._on_analysis_done)

        self._start_polling()
        return self.view

    async def wait(self) -> ReportView:
        """Wait for the current poll cycle to finish."""
        if self._poll_task is not None:
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
        return self.view

    async def close(self) -> None:
        await self._cancel_poll()

    # -- internals ------------------------------------------------------------

    def _start_polling(self) -> None:
        self.started_at = self._clock()
        self.view.polling = True
        self._poll_task = asyncio.ensure_future(self._poll(self.started_at))

    async def _cancel_poll(self) -> None:
        task, self._poll_task = self._poll_task, None
        self.view.polling = False
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _poll(self, started_at: float) -> None:
        try:
            while True:
                elapsed = self._clock() - started_at
                if elapsed > self.timeout:
                    self._time_out(elapsed)
                    return
                remaining = self.timeout - elapsed
                if remaining <= 0:
                    # Last read happened at the ceiling
                    await self._sleep(min(self.interval, POLL_FINAL_TICK_SECONDS))
                    continue
                await self._sleep(min(self.interval, remaining))
                await self._refresh()
                if self.view.complete or self.view.call_failed:
                    logger.info(f"Report for session {self.session_id} ready; polling stopped")
                    return
        finally:
            self.view.polling = False

    def _time_out(self, elapsed: float) -> None:
        error = AnalysisTimeout(self.session_id, elapsed)
        logger.warning(str(error))
        self.view.analysis_failed = True
        if self.event_bus:
            self.event_bus.emit(AnalysisTimedOutEvent(self.session_id, time.time(), elapsed))

    async def _refresh(self) -> None:
        loop = asyncio.get_running_loop()
        # Checked before reading so a report written by that analysis is seen
        analysis_settled = self.analysis_task is None or self.analysis_task.done()
        session = await loop.run_in_executor(None, self.store.require_session, self.session_id)
        report = await loop.run_in_executor(None, self.store.get_report, self.session_id)
        self._apply(session, report, analysis_settled)

    def _apply(self,
               session: InterviewSession,
               report: Optional[InterviewReport],
               analysis_settled: bool = True) -> None:
        view = self.view
        view.session = session

        if session.status == SessionStatus.FAILED:
            view.call_failed = True
            view.message = CALL_FAILED_MESSAGE
            return

        complete = report is not None and report.is_complete()
        if self._superseded is not None:
            if analysis_settled or (report is not None and _revision(report) != self._superseded):
                self._superseded = None
            else:
                complete = False

        if view.complete and not complete:
            # Never replace a complete report with a partial one
            return

        changed = report is not None and (view.report is None or report.to_dict() != view.report.to_dict())
        view.report = report
        view.complete = complete
        if complete:
            view.analysis_failed = False

        if changed and self.event_bus:
            self.event_bus.emit(ReportUpdatedEvent(
                self.session_id, time.time(), complete, report.missing_sections()
            ))

    def _on_analysis_done(self, future: asyncio.Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(f"Regenerated analysis for session {self.session_id} failed: {error}")
