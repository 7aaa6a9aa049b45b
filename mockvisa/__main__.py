#!/usr/bin/env python3
"""
Main entry point for the MockVisa pipeline.
Allows running the package with: python -m mockvisa <command> <session_id>

Commands:
    retrieve   Fetch call artifacts from the provider and settle the session status
    analyze    Score the interview and store the report
    report     Write the plain-text report (use --out=DIR, default: current directory)
    watch      Poll until the report is complete or the analysis times out
"""
import sys
import asyncio

from .config import get_config
from .utils import setup_logging
from .interview import InterviewBackend, ReportPollingController, create_event_bus, EventType
from .interview.errors import MockVisaError, EngineUnavailable, ProviderCallFailure

COMMANDS = ("retrieve", "analyze", "report", "watch")


def _usage() -> None:
    print("Usage: python -m mockvisa <retrieve|analyze|report|watch> <session_id> [--out=DIR] [--regenerate]")


def _print_report_update(event) -> None:
    missing = event.data.get("missing") or []
    if event.data.get("complete"):
        print("✅ Report complete")
    else:
        print(f"⏳ Report in progress (missing: {', '.join(missing)})")


async def _watch(backend: InterviewBackend, session_id: str, config, regenerate: bool) -> int:
    event_bus = create_event_bus(log_events=False)
    event_bus.subscribe(EventType.REPORT_UPDATED, _print_report_update)
    event_bus.subscribe(EventType.ANALYSIS_TIMED_OUT,
                        lambda e: print(f"⌛ Analysis timed out after {e.data['elapsed']:.0f}s"))

    controller = ReportPollingController(
        session_id,
        backend.store,
        analyze=backend.analyze_interview,
        event_bus=event_bus,
        interval=config.poll_interval_seconds,
        timeout=config.poll_timeout_seconds,
    )
    async with controller:
        if regenerate:
            await controller.regenerate()
        view = await controller.wait()
        if controller.analysis_task is not None:
            try:
                await controller.analysis_task
            except MockVisaError:
                pass

    if view.call_failed:
        print(f"❌ {view.message}")
        return 1
    if view.analysis_failed:
        print("   Run again with --regenerate to retry the analysis")
        return 1
    if view.report is not None:
        print(f"🎯 Overall score: {view.report.overall_score}")
    return 0


def main():
    """Command-line interface for the post-call pipeline."""
    args = [a for a in sys.argv[1:] if not a.startswith("--")]
    flags = [a for a in sys.argv[1:] if a.startswith("--")]

    if len(args) != 2 or args[0] not in COMMANDS:
        _usage()
        sys.exit(2)
    command, session_id = args

    # Load configuration from environment
    try:
        config = get_config()
    except ValueError as e:
        print(f"❌ Configuration Error: {e}")
        sys.exit(1)

    setup_logging(config.log_file, config.log_level)
    backend = InterviewBackend.from_config(config)

    out_dir = "."
    for flag in flags:
        if flag.startswith("--out="):
            out_dir = flag.split("=", 1)[1] or "."

    try:
        if command == "retrieve":
            result = backend.get_interview_results(session_id)
            print(f"📞 Session {session_id}: {result.status.value}")
            result.raise_for_status()
            print(f"   Duration: {result.duration}s  Cost: {result.cost}")
        elif command == "analyze":
            outcome = backend.analyze_interview(session_id)
            if outcome.skipped:
                print("⚠️  Call failed; nothing to analyze")
            elif outcome.degraded:
                print(f"⚠️  Engine output could not be parsed; fallback report stored ({outcome.error})")
            else:
                print(f"🎯 Overall score: {outcome.report.overall_score}")
        elif command == "report":
            rendered = backend.generate_report(session_id)
            path = rendered.write_to(out_dir)
            print(f"📄 Report written to {path}")
        elif command == "watch":
            sys.exit(asyncio.run(_watch(backend, session_id, config, "--regenerate" in flags)))
    except ProviderCallFailure as e:
        print(f"❌ {e} (no credits charged)")
        sys.exit(1)
    except EngineUnavailable as e:
        print(f"❌ Analysis engine unavailable: {e}")
        sys.exit(1)
    except MockVisaError as e:
        print(f"❌ {type(e).__name__}: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
