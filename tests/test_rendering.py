"""Tests for the plain-text report rendering."""

import base64

from mockvisa.interview.models import InterviewReport, Message, MessageRole, SessionStatus
from mockvisa.interview.rendering import render_report, report_filename
from mockvisa.interview.schemas import parse_engine_response
from mockvisa.interview.testing import create_session, sample_engine_response


def _session(store, **changes):
    create_session(store, provider_call_id="call-1", status=SessionStatus.IN_PROGRESS)
    return store.update_session(
        "session-1",
        status=SessionStatus.COMPLETED,
        transcript="AI: Why Canada?\nUser: For my studies.",
        messages=[Message(MessageRole.OFFICER, "Why Canada?"), Message(MessageRole.CANDIDATE, "For my studies.")],
        ended_at="2026-01-10T10:05:30",
        **changes,
    )


class TestRenderReport:
    def test_full_report_layout(self, store) -> None:
        session = _session(store)
        report = parse_engine_response("session-1", sample_engine_response()).report

        rendered = render_report(session, report, country_name="Canada", visa_type_name="Study Permit")
        text = rendered.content

        assert text.startswith("VISA CRACKED - MOCK TEST REPORT\n")
        assert "Country: Canada" in text
        assert "Visa Type: Study Permit" in text
        assert "Difficulty: Medium" in text
        assert "Overall Score: 78 / 100" in text
        assert "Response Relevance: 88" in text
        assert '1. "I am study" -> "I am studying"' in text
        assert "1. Vague answer about funding" in text
        assert "2. Practise concise answers" in text
        assert "   Score: 65 / 100" in text
        assert text.index("SCORES") < text.index("GRAMMAR MISTAKES") < text.index("RED FLAGS")
        assert text.index("IMPROVEMENT PLAN") < text.index("DETAILED FEEDBACK") < text.index("SUMMARY")
        assert text.rstrip().endswith("User: For my studies.")

    def test_partial_report_shows_na_and_skips_empty_sections(self, store) -> None:
        session = _session(store)
        report = InterviewReport(session_id="session-1", overall_score=64, red_flags=[], grammar_mistakes=[])

        text = render_report(session, report).content

        assert "Overall Score: 64 / 100" in text
        assert "Confidence: N/A" in text
        assert "RED FLAGS" not in text
        assert "GRAMMAR MISTAKES" not in text
        assert "SUMMARY" not in text
        assert "Country: Unknown" in text

    def test_no_report_yet(self, store) -> None:
        session = _session(store)
        text = render_report(session, None).content
        assert "Overall Score: N/A" in text
        assert "FULL TRANSCRIPT" in text

    def test_filename_has_session_and_date(self, store) -> None:
        session = _session(store)
        assert report_filename(session) == f"mock-report-session-1-{session.created_at[:10]}.txt"

    def test_write_and_encode(self, store, tmp_path) -> None:
        session = _session(store)
        rendered = render_report(session, None)

        path = rendered.write_to(str(tmp_path))

        with open(path, encoding="utf-8") as f:
            assert f.read() == rendered.content
        assert base64.b64decode(rendered.as_base64()).decode("utf-8") == rendered.content
