"""
Gemini REST client for interview analysis.
"""
import json
import logging
from typing import Optional, Dict, Any

import requests
import google.auth
import google.auth.exceptions
import google.auth.transport.requests
from google.oauth2 import service_account

from ...config import VERTEX_LOCATION, MODEL_NAME, LLM_TIMEOUT, MAX_OUTPUT_TOKENS, GEMINI_BASE_URL
from ...interview.errors import EngineUnavailable

logger = logging.getLogger("llm_client")

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


class GeminiRestClient:
    """
    REST-based client for Gemini models.

    Talks to the Generative Language API when an API key is given, otherwise
    to Vertex AI with OAuth credentials for ``project``.
    """

    def __init__(self,
                 api_key: Optional[str] = None,
                 project: Optional[str] = None,
                 location: str = VERTEX_LOCATION,
                 model: str = MODEL_NAME,
                 credentials_json: Optional[str] = None,
                 timeout: int = LLM_TIMEOUT):
        self.api_key = api_key
        self.project = project
        self.location = location
        self.model = model
        self.credentials_json = credentials_json
        self.timeout = timeout
        self._credentials = None
        self.url = self._endpoint()

    def _endpoint(self) -> Optional[str]:
        if self.api_key:
            return f"{GEMINI_BASE_URL}/models/{self.model}:generateContent"
        if self.project:
            return (f"https://{self.location}-aiplatform.googleapis.com/v1/projects/{self.project}"
                    f"/locations/{self.location}/publishers/google/models/{self.model}:generateContent")
        return None

    def _access_token(self) -> str:
        """OAuth token for Vertex, loaded once and refreshed when expired."""
        try:
            if self._credentials is None:
                if self.credentials_json:
                    self._credentials = service_account.Credentials.from_service_account_file(
                        self.credentials_json, scopes=[CLOUD_PLATFORM_SCOPE]
                    )
                else:
                    self._credentials, _ = google.auth.default(scopes=[CLOUD_PLATFORM_SCOPE])
            if not getattr(self._credentials, "valid", False):
                self._credentials.refresh(google.auth.transport.requests.Request())
        except (google.auth.exceptions.GoogleAuthError, OSError) as e:
            raise EngineUnavailable(f"Could not obtain Vertex credentials: {e}") from e
        return self._credentials.token

    def _headers(self) -> Dict[str, str]:
        if self.api_key:
            return {"Content-Type": "application/json", "x-goog-api-key": self.api_key}
        return {"Content-Type": "application/json", "Authorization": f"Bearer {self._access_token()}"}

    @staticmethod
    def _build_body(prompt_text: str,
                    system_instruction: Optional[str],
                    temperature: float,
                    max_output_tokens: int,
                    response_mime_type: Optional[str]) -> Dict[str, Any]:
        generation_config: Dict[str, Any] = {
            "temperature": float(temperature),
            "maxOutputTokens": int(max_output_tokens),
        }
        if response_mime_type:
            generation_config["responseMimeType"] = response_mime_type

        body: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt_text}]}],
            "generationConfig": generation_config,
        }
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        return body

    def generate_content(
        self,
        prompt_text: str,
        system_instruction: Optional[str] = None,
        temperature: float = 0.0,
        max_output_tokens: int = MAX_OUTPUT_TOKENS,
        response_mime_type: Optional[str] = None,
    ) -> str:
        """
        Generate content with a single request. There is no retry.

        Raises:
            EngineUnavailable: If the engine is not configured, unreachable,
                or rejects the request
        """
        if not self.url:
            raise EngineUnavailable("No Gemini API key or Google Cloud project configured")

        body = self._build_body(prompt_text, system_instruction, temperature, max_output_tokens, response_mime_type)
        headers = self._headers()
        logger.debug(f"Sending {len(prompt_text)} char prompt to {self.model}")

        try:
            resp = requests.post(self.url, headers=headers, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("Gemini request failed: %s", e)
            raise EngineUnavailable(f"Gemini request failed: {e}") from e

        if resp.status_code >= 400:
            raise EngineUnavailable(f"Gemini REST error {resp.status_code}: {resp.text}")

        try:
            payload = resp.json()
        except ValueError:
            # Still an answer; the report parser decides what to do with it
            return resp.text
        return self.extract_text(payload)

    @staticmethod
    def extract_text(payload: Dict[str, Any]) -> str:
        """
        Concatenate the text parts of the first candidate.
        Falls back to a top-level ``text`` field, then to the raw JSON.
        """
        candidates = payload.get("candidates") or []
        content = candidates[0].get("content") if candidates and isinstance(candidates[0], dict) else None
        if isinstance(content, dict):
            texts = [part.get("text") for part in content.get("parts") or [] if isinstance(part, dict)]
            texts = [t for t in texts if isinstance(t, str)]
            if texts:
                return "".join(texts)
            if isinstance(content.get("text"), str):
                return content["text"]

        if isinstance(payload.get("text"), str):
            return payload["text"]
        return json.dumps(payload, separators=(",", ":"))
