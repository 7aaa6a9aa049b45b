"""LLM infrastructure for the AI analysis engine."""

from .client import GeminiRestClient

__all__ = ["GeminiRestClient"]
