import json
import logging
from typing import Any, Callable, Dict, List, Optional

import requests

from app_contract import ERROR_SNIPPET_CHARS
from prep_errors import ConfigurationError, NetworkError, TransportError

log = logging.getLogger(__name__)


def first_message_content(response: Optional[Dict[str, Any]]) -> str:
    """choices[0].message.content, or "" when the response has no such field."""
    choices = (response or {}).get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message") or {}
    return message.get("content") or ""


class OpenRouterClient:
    """
    One POST per call to an OpenAI-compatible /chat/completions endpoint.
    Every failure is logged and reported through notice_cb before it is raised;
    retries are the caller's business.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        notice_cb: Optional[Callable[[str], None]] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key or ""
        self.notice_cb = notice_cb
        self.timeout = timeout

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _report(self, message: str) -> None:
        if self.notice_cb is not None:
            self.notice_cb(message)

    def create_chat_completion(self, model: str, messages: List[Dict[str, Any]]) -> Dict[str, Any]:
        if not self.api_key:
            message = "OpenRouter API key is not set."
            log.error("[OpenRouter] %s", message)
            self._report(message)
            raise ConfigurationError(message)

        url = f"{self.base_url}/chat/completions"
        try:
            r = requests.post(
                url,
                headers=self._headers(),
                data=json.dumps({"model": model, "messages": messages}),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            message = f"OpenRouter request failed: {e}"
            log.error("[OpenRouter] %s", message)
            self._report(message)
            raise NetworkError(message) from e

        if r.status_code < 200 or r.status_code >= 300:
            snippet = (r.text or "")[:ERROR_SNIPPET_CHARS] or "No response body"
            message = f"OpenRouter error {r.status_code}: {snippet}"
            log.error("[OpenRouter] %s", message)
            self._report(message)
            raise TransportError(message, status_code=r.status_code, snippet=snippet)

        try:
            return json.loads(r.text or "{}")
        except ValueError as e:
            snippet = (r.text or "")[:ERROR_SNIPPET_CHARS]
            message = f"OpenRouter returned a non-JSON body: {snippet}"
            log.error("[OpenRouter] %s", message)
            self._report(message)
            raise TransportError(message, status_code=r.status_code, snippet=snippet) from e
