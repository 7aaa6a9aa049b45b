"""Tests for engine and provider payload validation."""

import json

from mockvisa.interview.models import MessageRole, SCORE_FIELDS
from mockvisa.interview.schemas import (
    FallbackReport,
    ParsedReport,
    build_fallback_report,
    parse_call_details,
    parse_engine_response,
    strip_code_fences,
)
from mockvisa.interview.testing import sample_call, sample_engine_report, sample_engine_response


# ---------------------------------------------------------------------------
# Engine output
# ---------------------------------------------------------------------------


class TestEngineParsing:
    def test_fenced_json_is_parsed(self) -> None:
        result = parse_engine_response("s1", sample_engine_response(fenced=True))
        assert isinstance(result, ParsedReport)
        assert not result.degraded
        assert result.report.overall_score == 78
        assert result.report.response_relevance_score == 88
        assert result.report.grammar_mistakes[0].corrected == "I am studying"
        assert result.report.is_complete()

    def test_json_inside_prose(self) -> None:
        raw = "Here is the evaluation:\n" + sample_engine_response() + "\nGood luck!"
        result = parse_engine_response("s1", raw)
        assert isinstance(result, ParsedReport)
        assert result.report.summary.startswith("Solid interview")

    def test_non_json_falls_back(self) -> None:
        result = parse_engine_response("s1", "I'm sorry, I cannot evaluate this interview.")
        assert isinstance(result, FallbackReport)
        assert result.degraded
        report = result.report
        assert all(report.scores[name] == 50 for name in SCORE_FIELDS)
        assert report.overall_score == 50
        assert report.summary.startswith("The analysis could not be completed due to a parsing error")
        assert "invalid JSON" in report.summary
        assert report.is_complete()

    def test_json_array_falls_back(self) -> None:
        result = parse_engine_response("s1", "[1, 2, 3]")
        assert isinstance(result, FallbackReport)
        assert "expected a JSON object" in result.error

    def test_scores_are_coerced(self) -> None:
        raw = json.dumps(sample_engine_report(confidence_score="85%", pronunciation_score=140, vocabulary_score="n/a"))
        report = parse_engine_response("s1", raw).report
        assert report.confidence_score == 85
        assert report.pronunciation_score == 100
        assert report.vocabulary_score is None
        assert not report.is_complete()

    def test_legacy_english_score_alias(self) -> None:
        data = sample_engine_report()
        data["english_score"] = data.pop("language_proficiency_score")
        report = parse_engine_response("s1", json.dumps(data)).report
        assert report.language_proficiency_score == 80

    def test_overall_derived_from_sub_scores(self) -> None:
        data = sample_engine_report()
        del data["overall_score"]
        report = parse_engine_response("s1", json.dumps(data)).report
        expected = round(sum(data[name] for name in SCORE_FIELDS) / len(SCORE_FIELDS))
        assert report.overall_score == expected

    def test_empty_lists_mean_analyzed_with_no_findings(self) -> None:
        report = parse_engine_response("s1", sample_engine_response(red_flags=[], grammar_mistakes=[])).report
        assert report.red_flags == []
        assert report.grammar_mistakes == []
        assert report.improvement_plan is not None

    def test_missing_lists_mean_not_analyzed(self) -> None:
        data = sample_engine_report()
        del data["red_flags"]
        report = parse_engine_response("s1", json.dumps(data)).report
        assert report.red_flags is None

    def test_strip_code_fences(self) -> None:
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fences('{"a": 1}') == '{"a": 1}'

    def test_fallback_report_shape(self) -> None:
        report = build_fallback_report("s1", "boom")
        assert report.grammar_mistakes == []
        assert report.red_flags and report.improvement_plan
        assert len(report.detailed_feedback) == 1
        assert report.summary.endswith("boom")


# ---------------------------------------------------------------------------
# Provider call object
# ---------------------------------------------------------------------------


class TestCallDetails:
    def test_completed_call(self) -> None:
        details = parse_call_details(sample_call())
        assert not details.failed
        assert details.cost == 0.42
        assert details.call_duration() == 330.0
        assert details.artifact_recording_url().endswith("call-1.wav")

    def test_messages_are_role_mapped_and_system_dropped(self) -> None:
        messages = parse_call_details(sample_call()).artifact_messages()
        assert [m.role for m in messages] == [MessageRole.OFFICER, MessageRole.CANDIDATE]
        assert messages[0].timestamp == 1.2

    def test_error_reasons_are_failures(self) -> None:
        for reason in ("pipeline-error-openai-llm-failed", "assistant-join-timed-out",
                       "call.in-progress.error-vapifault"):
            assert parse_call_details(sample_call(ended_reason=reason)).failed, reason

    def test_unfinished_status_is_failure(self) -> None:
        assert parse_call_details(sample_call(status="in-progress")).failed
        assert parse_call_details(sample_call(status="canceled")).failed

    def test_top_level_artifact_fallback(self) -> None:
        data = sample_call(artifact=None, transcript="AI: hi", recordingUrl="https://r")
        details = parse_call_details(data)
        assert details.artifact_transcript() == "AI: hi"
        assert details.artifact_recording_url() == "https://r"
        assert details.artifact_messages() is None

    def test_explicit_duration_wins(self) -> None:
        assert parse_call_details(sample_call(duration="61.5")).call_duration() == 61.5
