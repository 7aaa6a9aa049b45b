"""
Interview analysis prompt templates.

This module contains the prompts sent to the AI analysis engine, keeping them
separate from the dispatch logic for easier maintenance and editing.
"""

from typing import List, Optional

from .models import Message, MessageRole


REPORT_SCHEMA = """
{
  "overall_score": <integer 0-100>,
  "language_proficiency_score": <integer 0-100>,
  "confidence_score": <integer 0-100>,
  "financial_clarity_score": <integer 0-100>,
  "immigration_intent_score": <integer 0-100>,
  "pronunciation_score": <integer 0-100>,
  "vocabulary_score": <integer 0-100>,
  "response_relevance_score": <integer 0-100>,
  "grammar_mistakes": [
    {"original": "<exact phrase said>", "corrected": "<corrected version>", "explanation": "<short rule>"}
  ],
  "red_flags": ["<description of concern>"],
  "improvement_plan": ["<actionable recommendation>"],
  "detailed_feedback": [
    {"question": "<officer question>", "answer": "<candidate answer>", "score": <integer 0-100>,
     "feedback": "<what worked and what did not>", "suggested_answer": "<stronger answer>"}
  ],
  "summary": "<2-3 sentence summary of performance>"
}
""".strip()


class AnalysisPrompts:
    """Collection of the prompts used to evaluate an interview."""

    @staticmethod
    def system_instruction(country_name: str, visa_type_name: str, difficulty: str) -> str:
        """Role and output contract for the engine."""
        return f"""
You are a professional visa interview evaluator specializing in {country_name} {visa_type_name} visa interviews.
The candidate practiced at "{difficulty}" difficulty.

Return ONLY valid JSON with this exact structure (no markdown, no code blocks, no commentary):
{REPORT_SCHEMA}

Scoring guidelines:
- Overall: Weighted average considering all factors
- Language proficiency: Grammar, fluency and overall command of English
- Confidence: Clarity of answers, hesitation, directness
- Financial clarity: How well the financial situation or sponsorship is explained
- Immigration intent: Clarity of purpose, return plan, ties to home country
- Pronunciation: How clearly the candidate can be understood from the transcript
- Vocabulary: Range and precision of word choice
- Response relevance: Whether answers address the question that was asked

Use an empty list when you find no grammar mistakes or no red flags.
Give one detailed_feedback entry per officer question.
Red flags should highlight anything an actual visa officer would find concerning.
Improvement plan items should be specific and actionable.
        """.strip()

    @staticmethod
    def analysis_request(interview_text: str) -> str:
        """User turn carrying the interview itself."""
        return f"""
Analyze the following visa interview and produce the evaluation JSON.

Interview:
{interview_text}
        """.strip()


class PromptFormatter:
    """Helper class for formatting interview data for prompts."""

    ROLE_LABELS = {
        MessageRole.OFFICER: "Officer",
        MessageRole.CANDIDATE: "Candidate",
    }

    @staticmethod
    def format_messages(messages: List[Message]) -> str:
        """Render structured turns as 'Officer: ...' / 'Candidate: ...' lines."""
        lines = []
        for message in messages:
            content = message.content.strip()
            if content:
                lines.append(f"{PromptFormatter.ROLE_LABELS[message.role]}: {content}")
        return "\n".join(lines)

    @staticmethod
    def build_interview_text(messages: Optional[List[Message]], transcript: Optional[str]) -> str:
        """Prefer structured messages over the raw transcript when both exist."""
        if messages:
            text = PromptFormatter.format_messages(messages)
            if text.strip():
                return text.strip()
        return (transcript or "").strip()
