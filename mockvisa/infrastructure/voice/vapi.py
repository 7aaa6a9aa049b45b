"""
Vapi REST client for creating web calls and fetching call details.
"""
import logging
from typing import Optional, Dict, Any

import requests

from ...config import VAPI_BASE_URL, PROVIDER_TIMEOUT
from ...interview.errors import ProviderUnavailable, NotFound

logger = logging.getLogger("vapi_client")


class VapiClient:
    """Server-side client for the voice-call provider, authenticated with the private key."""

    def __init__(self,
                 private_key: Optional[str],
                 base_url: str = VAPI_BASE_URL,
                 timeout: int = PROVIDER_TIMEOUT):
        self.private_key = private_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _request(self, method: str, path: str, json_body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not self.private_key:
            raise ProviderUnavailable("Vapi private key is not configured")

        url = f"{self.base_url}{path}"
        headers = {
            "Authorization": f"Bearer {self.private_key}",
            "Content-Type": "application/json",
        }
        try:
            resp = requests.request(method, url, headers=headers, json=json_body, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("Vapi %s %s failed: %s", method, path, e)
            raise ProviderUnavailable(f"Vapi request failed: {e}") from e

        if resp.status_code == 404:
            raise NotFound(f"Vapi resource not found: {path}")
        if resp.status_code >= 400:
            raise ProviderUnavailable(f"Vapi REST error {resp.status_code}: {resp.text}", status_code=resp.status_code)

        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderUnavailable(f"Vapi returned non-JSON body for {path}") from e
        if not isinstance(data, dict):
            raise ProviderUnavailable(f"Vapi returned unexpected payload for {path}")
        return data

    def create_web_call(self, assistant_id: Optional[str]) -> Dict[str, Any]:
        """Create a web call for an assistant and return the call object."""
        body: Dict[str, Any] = {"type": "webCall"}
        if assistant_id:
            body["assistantId"] = assistant_id
        call = self._request("POST", "/call", body)
        logger.info(f"Created Vapi web call {call.get('id')}")
        return call

    def get_call(self, call_id: str) -> Dict[str, Any]:
        """Fetch the call object, including its artifact once the call is over."""
        call = self._request("GET", f"/call/{call_id}")
        logger.debug(f"Fetched Vapi call {call_id} (status={call.get('status')}, endedReason={call.get('endedReason')})")
        return call
