"""OpenAIProvider: cloud reasoning backed by OpenAI's API.

Wraps the ``openai`` Python SDK. The SDK is imported lazily so that
the module can be imported without having ``openai`` installed (the
import fails only when the class is instantiated).
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from autonome.protocols import ProviderError, ProviderResponse

from .base import SYSTEM_PROMPT, assess_response, build_prompt

logger = logging.getLogger(__name__)


class OpenAIProvider:
    """CloudReasoningProvider backed by the OpenAI chat completions API.

    Requires the ``openai`` package::

        pip install openai
        # or
        pip install autonome[openai]
    """

    def __init__(
        self,
        model_id: str = "gpt-4o-mini",
        *,
        api_key: Optional[str] = None,
        max_tokens: int = 2048,
        temperature: Optional[float] = None,
    ) -> None:
        try:
            import openai as _openai  # noqa: F811
        except ImportError:
            raise ImportError(
                "The 'openai' package is required for OpenAIProvider. "
                "Install it with: pip install openai"
            ) from None

        resolved_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not resolved_key:
            raise ValueError("An API key is required. Pass api_key= or set OPENAI_API_KEY.")

        self._model_id = model_id
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._client = _openai.OpenAI(api_key=resolved_key)

    @property
    def model_id(self) -> str:
        return self._model_id

    def respond(
        self,
        domain: str,
        query: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> ProviderResponse:
        """Answer ``query`` via the chat completions API."""
        kwargs: Dict[str, Any] = {
            "model": self._model_id,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(domain, query, context)},
            ],
            "max_tokens": self._max_tokens,
        }
        if self._temperature is not None:
            kwargs["temperature"] = self._temperature

        try:
            response = self._client.chat.completions.create(**kwargs)
        except Exception as exc:
            raise self._classify_error(exc, "OpenAI API error") from exc

        text = ""
        if response.choices:
            text = response.choices[0].message.content or ""
        usage = {}
        if response.usage:
            usage = {
                "input_tokens": response.usage.prompt_tokens,
                "output_tokens": response.usage.completion_tokens,
            }
        return assess_response(
            query, text, model_id=getattr(response, "model", self._model_id), usage=usage
        )

    @staticmethod
    def _classify_error(exc: Exception, prefix: str) -> ProviderError:
        """Classify an OpenAI SDK exception into an error class."""
        import openai as _openai

        _checks = [
            ("RateLimitError", "rate_limit", "rate limited"),
            ("AuthenticationError", "auth", "auth failed"),
            ("APITimeoutError", "timeout", "timeout"),
        ]
        for attr, cls, label in _checks:
            exc_type = getattr(_openai, attr, None)
            if isinstance(exc_type, type) and isinstance(exc, exc_type):
                return ProviderError(cls, f"{prefix}: {label}: {exc}")

        api_status = getattr(_openai, "APIStatusError", None)
        if isinstance(api_status, type) and isinstance(exc, api_status):
            code = getattr(exc, "status_code", "?")
            return ProviderError("server", f"{prefix}: API error ({code}): {exc}")

        return ProviderError("unknown", f"{prefix}: {exc}")
