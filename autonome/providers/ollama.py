"""OllamaProvider: cloud reasoning served by a local Ollama instance.

Uses HTTP requests to the Ollama REST API. No SDK required beyond
``requests``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from autonome.protocols import ProviderError, ProviderResponse

from .base import SYSTEM_PROMPT, assess_response, build_prompt

logger = logging.getLogger(__name__)


class OllamaProvider:
    """CloudReasoningProvider backed by Ollama's chat API.

    Requires a running Ollama server (default: ``http://localhost:11434``).
    """

    def __init__(
        self,
        model_id: str = "llama3.2:latest",
        *,
        base_url: str = "http://localhost:11434",
        timeout: int = 120,
    ) -> None:
        self._model_id = model_id
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    @property
    def model_id(self) -> str:
        return self._model_id

    def respond(
        self,
        domain: str,
        query: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> ProviderResponse:
        """Answer ``query`` via the Ollama chat API."""
        payload = {
            "model": self._model_id,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(domain, query, context)},
            ],
            "stream": False,
        }
        data = self._post("/api/chat", payload)
        text = data.get("message", {}).get("content", "")
        return assess_response(
            query, text, model_id=data.get("model", self._model_id), usage=self._extract_usage(data)
        )

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST to the Ollama API and return parsed JSON."""
        url = f"{self._base_url}{path}"
        try:
            resp = requests.post(url, json=payload, timeout=self._timeout)
        except requests.ConnectionError as exc:
            raise ProviderError(
                "unavailable", f"Cannot connect to Ollama at {self._base_url}: {exc}"
            ) from exc
        except requests.Timeout as exc:
            raise ProviderError(
                "timeout", f"Ollama request timed out after {self._timeout}s: {exc}"
            ) from exc

        if resp.status_code != 200:
            error_class = self._classify_http_status(resp.status_code)
            raise ProviderError(error_class, f"Ollama returned HTTP {resp.status_code}: {resp.text}")

        try:
            return resp.json()
        except ValueError as exc:
            raise ProviderError("server", f"Ollama returned invalid JSON: {exc}") from exc

    @staticmethod
    def _classify_http_status(status_code: int) -> str:
        """Map HTTP status codes to error classes."""
        if status_code == 401:
            return "auth"
        if status_code == 429:
            return "rate_limit"
        if status_code >= 500:
            return "server"
        return "unknown"

    @staticmethod
    def _extract_usage(data: Dict[str, Any]) -> Dict[str, int]:
        usage: Dict[str, int] = {}
        if "prompt_eval_count" in data:
            usage["input_tokens"] = data["prompt_eval_count"]
        if "eval_count" in data:
            usage["output_tokens"] = data["eval_count"]
        return usage
