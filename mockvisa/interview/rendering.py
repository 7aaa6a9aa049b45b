"""
Plain-text rendering of an interview report for download.
"""
import os
import base64
from dataclasses import dataclass
from typing import Optional, List

from .models import InterviewSession, InterviewReport
from ..config import REPORT_TITLE

SCORE_LABELS = (
    ("overall_score", "Overall Score"),
    ("language_proficiency_score", "Language Proficiency"),
    ("confidence_score", "Confidence"),
    ("financial_clarity_score", "Financial Clarity"),
    ("immigration_intent_score", "Immigration Intent"),
    ("pronunciation_score", "Pronunciation"),
    ("vocabulary_score", "Vocabulary"),
    ("response_relevance_score", "Response Relevance"),
)


@dataclass
class RenderedReport:
    filename: str
    content: str

    def as_base64(self) -> str:
        return base64.b64encode(self.content.encode("utf-8")).decode("ascii")

    def write_to(self, directory: str) -> str:
        path = os.path.join(directory, self.filename)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(self.content)
        return path


def _section(title: str) -> List[str]:
    return [title, "-" * 30]


def _or_na(value) -> str:
    return "N/A" if value is None else str(value)


def report_filename(session: InterviewSession) -> str:
    date = (session.created_at or "")[:10] or "undated"
    return f"mock-report-{session.id}-{date}.txt"


def render_report(session: InterviewSession,
                  report: Optional[InterviewReport],
                  country_name: str = "Unknown",
                  visa_type_name: str = "Unknown") -> RenderedReport:
    """Render session + (possibly partial) report. Missing scores show as N/A."""
    lines = [REPORT_TITLE, "=" * 50, ""]
    lines += [
        f"Mock Name: {session.name or 'N/A'}",
        f"Country: {country_name}",
        f"Visa Type: {visa_type_name}",
        f"Difficulty: {session.difficulty.value.title()}",
        f"Date: {(session.created_at or '')[:10] or 'N/A'}",
        "",
    ]

    lines += _section("SCORES")
    for field_name, label in SCORE_LABELS:
        value = getattr(report, field_name) if report else None
        suffix = " / 100" if field_name == "overall_score" and value is not None else ""
        lines.append(f"{label}: {_or_na(value)}{suffix}")
    lines.append("")

    if report and report.grammar_mistakes:
        lines += _section("GRAMMAR MISTAKES")
        for i, mistake in enumerate(report.grammar_mistakes, 1):
            lines.append(f'{i}. "{mistake.original}" -> "{mistake.corrected}"')
            if mistake.explanation:
                lines.append(f"   {mistake.explanation}")
        lines.append("")

    if report and report.red_flags:
        lines += _section("RED FLAGS")
        lines += [f"{i}. {flag}" for i, flag in enumerate(report.red_flags, 1)]
        lines.append("")

    if report and report.improvement_plan:
        lines += _section("IMPROVEMENT PLAN")
        lines += [f"{i}. {item}" for i, item in enumerate(report.improvement_plan, 1)]
        lines.append("")

    if report and report.detailed_feedback:
        lines += _section("DETAILED FEEDBACK")
        for i, item in enumerate(report.detailed_feedback, 1):
            lines.append(f"{i}. Q: {item.question}")
            lines.append(f"   A: {item.answer}")
            lines.append(f"   Score: {item.score} / 100")
            lines.append(f"   Feedback: {item.feedback}")
            if item.suggested_answer:
                lines.append(f"   Suggested answer: {item.suggested_answer}")
        lines.append("")

    if report and report.summary:
        lines += _section("SUMMARY")
        lines += [report.summary, ""]

    if session.transcript:
        lines += _section("FULL TRANSCRIPT")
        lines.append(session.transcript)

    return RenderedReport(filename=report_filename(session), content="\n".join(lines) + "\n")
