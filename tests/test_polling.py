"""Tests for the report polling controller."""

import asyncio
import threading

import pytest

from mockvisa.interview.errors import EngineUnavailable, NotFound
from mockvisa.interview.events import EventType
from mockvisa.interview.models import InterviewReport, SessionStatus
from mockvisa.interview.polling import CALL_FAILED_MESSAGE, ReportPollingController
from mockvisa.interview.schemas import parse_engine_response
from mockvisa.interview.testing import FakeClock, create_session, sample_engine_response


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _completed_session(store) -> None:
    create_session(store, provider_call_id="call-1", status=SessionStatus.IN_PROGRESS)
    store.update_session("session-1", status=SessionStatus.COMPLETED, ended_at="2026-01-10T10:05:30")


def _complete_report(overall_score: int = 78) -> InterviewReport:
    return parse_engine_response("session-1", sample_engine_response(overall_score=overall_score)).report


def _make_controller(store, clock, analyze=None, event_bus=None) -> ReportPollingController:
    return ReportPollingController(
        "session-1",
        store,
        analyze=analyze,
        event_bus=event_bus,
        interval=5.0,
        timeout=120.0,
        clock=clock,
        sleep=clock.sleep,
    )


# ---------------------------------------------------------------------------
# Load
# ---------------------------------------------------------------------------


class TestLoad:
    def test_failed_session_shows_terminal_view(self, store) -> None:
        create_session(store, provider_call_id="call-1", status=SessionStatus.FAILED)
        clock = FakeClock()
        controller = _make_controller(store, clock)

        view = asyncio.run(controller.load())

        assert view.call_failed
        assert view.message == CALL_FAILED_MESSAGE
        assert "No credits were charged" in view.message
        assert not view.polling
        assert clock.sleeps == []

    def test_complete_report_needs_no_polling(self, store) -> None:
        _completed_session(store)
        store.upsert_report(_complete_report())
        clock = FakeClock()
        controller = _make_controller(store, clock)

        view = asyncio.run(controller.load())

        assert view.complete
        assert view.report.overall_score == 78
        assert clock.sleeps == []

    def test_unknown_session(self, store) -> None:
        controller = _make_controller(store, FakeClock())
        with pytest.raises(NotFound):
            asyncio.run(controller.load())


# ---------------------------------------------------------------------------
# Polling
# ---------------------------------------------------------------------------


class TestPolling:
    def test_gives_up_after_timeout(self, store, event_bus, recorded_events) -> None:
        _completed_session(store)
        clock = FakeClock()
        controller = _make_controller(store, clock, event_bus=event_bus)

        async def scenario():
            await controller.load()
            return await controller.wait()

        view = asyncio.run(scenario())

        assert view.analysis_failed
        assert not view.polling
        assert not view.complete
        assert clock.now == 121.0
        assert clock.sleeps == [5.0] * 24 + [1.0]
        timed_out = [e for e in recorded_events if e.event_type == EventType.ANALYSIS_TIMED_OUT]
        assert len(timed_out) == 1

    def test_stops_when_report_completes(self, store, event_bus, recorded_events) -> None:
        _completed_session(store)
        store.upsert_report(InterviewReport(session_id="session-1", overall_score=60))

        def land_report(now: float) -> None:
            if now == 15.0:
                store.upsert_report(_complete_report())

        clock = FakeClock(on_advance=land_report)
        controller = _make_controller(store, clock, event_bus=event_bus)

        async def scenario():
            await controller.load()
            return await controller.wait()

        view = asyncio.run(scenario())

        assert view.complete
        assert not view.analysis_failed
        assert clock.now == 15.0
        updates = [e.data for e in recorded_events if e.event_type == EventType.REPORT_UPDATED]
        assert updates[0]["complete"] is False
        assert "summary" in updates[0]["missing"]
        assert updates[-1] == {"complete": True, "missing": []}

    def test_complete_view_never_regresses(self, store) -> None:
        _completed_session(store)
        store.upsert_report(_complete_report())
        controller = _make_controller(store, FakeClock())

        async def scenario():
            await controller.load()
            store.upsert_report(InterviewReport(session_id="session-1", overall_score=10))
            await controller._refresh()
            return controller.view

        view = asyncio.run(scenario())

        assert view.complete
        assert view.report.overall_score == 78

    def test_session_failing_mid_poll_stops_polling(self, store) -> None:
        create_session(store, provider_call_id="call-1", status=SessionStatus.IN_PROGRESS)

        def fail_call(now: float) -> None:
            if now == 10.0:
                store.update_session("session-1", status=SessionStatus.FAILED)

        clock = FakeClock(on_advance=fail_call)
        controller = _make_controller(store, clock)

        async def scenario():
            await controller.load()
            return await controller.wait()

        view = asyncio.run(scenario())

        assert view.call_failed
        assert clock.now == 10.0

    def test_close_stops_polling(self, store) -> None:
        _completed_session(store)
        clock = FakeClock()

        async def scenario():
            async with _make_controller(store, clock) as controller:
                assert controller.view.polling
            return controller

        controller = asyncio.run(scenario())

        assert not controller.view.polling
        assert not controller.view.analysis_failed
        assert clock.now < 120.0


# ---------------------------------------------------------------------------
# Regenerate
# ---------------------------------------------------------------------------


class TestRegenerate:
    def test_regenerate_resets_clock_and_redispatches(self, store) -> None:
        _completed_session(store)
        clock = FakeClock()
        dispatched = []
        controller = _make_controller(store, clock, analyze=dispatched.append)

        async def scenario():
            await controller.load()
            await controller.wait()
            assert controller.view.analysis_failed
            first_deadline = clock.now

            await controller.regenerate()
            assert controller.started_at == first_deadline
            assert not controller.view.analysis_failed
            assert controller.view.polling
            await controller.analysis_task

            await controller.wait()
            return first_deadline

        first_deadline = asyncio.run(scenario())

        assert dispatched == ["session-1"]
        assert controller.view.analysis_failed
        assert clock.now == pytest.approx(first_deadline + 121.0)

    def test_regenerate_cancels_running_poll(self, store) -> None:
        _completed_session(store)
        clock = FakeClock()
        controller = _make_controller(store, clock, analyze=lambda session_id: None)

        async def scenario():
            await controller.load()
            first_task = controller._poll_task
            await controller.regenerate()
            await controller.regenerate()
            assert first_task.cancelled() or first_task.done()
            await controller.close()

        asyncio.run(scenario())

        assert not controller.view.polling

    def test_regenerated_report_completes_view(self, store) -> None:
        _completed_session(store)
        landed = threading.Event()

        def analyze(session_id: str) -> None:
            store.upsert_report(_complete_report(91))
            landed.set()

        def wait_for_analysis(now: float) -> None:
            if now > 121.0:
                landed.wait(timeout=5)

        clock = FakeClock(on_advance=wait_for_analysis)
        controller = _make_controller(store, clock, analyze=analyze)

        async def scenario():
            await controller.load()
            await controller.wait()
            await controller.regenerate()
            return await controller.wait()

        view = asyncio.run(scenario())

        assert view.complete
        assert not view.analysis_failed
        assert view.report.overall_score == 91
        assert clock.now == 126.0

    def test_regenerating_fallback_report_waits_for_new_one(self, store, event_bus, recorded_events) -> None:
        _completed_session(store)
        store.upsert_report(parse_engine_response("session-1", "not json").report)
        release = threading.Event()
        landed = threading.Event()

        def analyze(session_id: str) -> None:
            release.wait(timeout=5)
            store.upsert_report(_complete_report(91))
            landed.set()

        def land_after_ten_seconds(now: float) -> None:
            if now == 10.0:
                release.set()
                landed.wait(timeout=5)

        clock = FakeClock(on_advance=land_after_ten_seconds)
        controller = _make_controller(store, clock, analyze=analyze, event_bus=event_bus)

        async def scenario():
            view = await controller.load()
            assert view.complete
            assert view.report.overall_score == 50

            await controller.regenerate()
            assert not controller.view.complete
            assert controller.view.polling
            return await controller.wait()

        view = asyncio.run(scenario())

        assert view.complete
        assert view.report.overall_score == 91
        assert not view.polling
        assert clock.now == 10.0
        updates = [e.data for e in recorded_events if e.event_type == EventType.REPORT_UPDATED]
        assert updates[-1] == {"complete": True, "missing": []}

    def test_regeneration_without_new_report_keeps_previous(self, store) -> None:
        _completed_session(store)
        store.upsert_report(_complete_report(78))
        release = threading.Event()

        def analyze(session_id: str) -> None:
            release.wait(timeout=5)
            raise EngineUnavailable("Gemini REST error 503")

        def unblock(now: float) -> None:
            if now == 10.0:
                release.set()

        clock = FakeClock(on_advance=unblock)
        controller = _make_controller(store, clock, analyze=analyze)

        async def scenario():
            await controller.load()
            await controller.regenerate()
            view = await controller.wait()
            with pytest.raises(EngineUnavailable):
                await controller.analysis_task
            return view

        view = asyncio.run(scenario())

        assert view.complete
        assert view.report.overall_score == 78
        assert not view.analysis_failed
        assert 10.0 <= clock.now < 120.0

    def test_failed_session_is_not_regenerated(self, store) -> None:
        create_session(store, provider_call_id="call-1", status=SessionStatus.FAILED)
        dispatched = []
        controller = _make_controller(store, FakeClock(), analyze=dispatched.append)

        async def scenario():
            await controller.load()
            return await controller.regenerate()

        view = asyncio.run(scenario())

        assert view.call_failed
        assert dispatched == []
