"""AnthropicProvider: cloud reasoning backed by Anthropic's API.

Wraps the ``anthropic`` Python SDK. The SDK is imported lazily so that
the module can be imported without having ``anthropic`` installed (the
import fails only when the class is instantiated).
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from autonome.protocols import ProviderError, ProviderResponse

from .base import SYSTEM_PROMPT, assess_response, build_prompt

logger = logging.getLogger(__name__)


class AnthropicProvider:
    """CloudReasoningProvider backed by the Anthropic messages API.

    Requires the ``anthropic`` package::

        pip install anthropic
        # or
        pip install autonome[anthropic]

    Usage::

        provider = AnthropicProvider()  # uses ANTHROPIC_API_KEY env var
        response = provider.respond("chemistry", "What is a covalent bond?")
    """

    def __init__(
        self,
        model_id: str = "claude-sonnet-4-5-20250929",
        *,
        api_key: Optional[str] = None,
        max_tokens: int = 2048,
        temperature: Optional[float] = None,
    ) -> None:
        try:
            import anthropic  # noqa: F811
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for AnthropicProvider. "
                "Install it with: pip install anthropic"
            ) from None

        resolved_key = (
            api_key or os.environ.get("CLAUDE_API_KEY") or os.environ.get("ANTHROPIC_API_KEY")
        )
        if not resolved_key:
            raise ValueError(
                "An API key is required. Pass api_key= or set CLAUDE_API_KEY / ANTHROPIC_API_KEY."
            )

        self._model_id = model_id
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._client = anthropic.Anthropic(api_key=resolved_key)

    @property
    def model_id(self) -> str:
        return self._model_id

    def respond(
        self,
        domain: str,
        query: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> ProviderResponse:
        """Answer ``query`` via the Anthropic messages API."""
        kwargs: Dict[str, Any] = {
            "model": self._model_id,
            "system": SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": build_prompt(domain, query, context)}],
            "max_tokens": self._max_tokens,
        }
        if self._temperature is not None:
            kwargs["temperature"] = self._temperature

        try:
            response = self._client.messages.create(**kwargs)
        except Exception as exc:
            raise self._classify_error(exc, "Anthropic API error") from exc

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        usage = {}
        if response.usage:
            usage = {
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            }
        return assess_response(
            query, text, model_id=getattr(response, "model", self._model_id), usage=usage
        )

    @staticmethod
    def _classify_error(exc: Exception, prefix: str) -> ProviderError:
        """Classify an Anthropic SDK exception into an error class.

        Exception types are looked up with getattr, so a mocked or partial
        anthropic package still classifies.
        """
        import anthropic as _anthropic

        _checks = [
            ("RateLimitError", "rate_limit", "rate limited"),
            ("AuthenticationError", "auth", "auth failed"),
            ("APITimeoutError", "timeout", "timeout"),
        ]
        for attr, cls, label in _checks:
            exc_type = getattr(_anthropic, attr, None)
            if isinstance(exc_type, type) and isinstance(exc, exc_type):
                return ProviderError(cls, f"{prefix}: {label}: {exc}")

        api_status = getattr(_anthropic, "APIStatusError", None)
        if isinstance(api_status, type) and isinstance(exc, api_status):
            code = getattr(exc, "status_code", "?")
            return ProviderError("server", f"{prefix}: API error ({code}): {exc}")

        return ProviderError("unknown", f"{prefix}: {exc}")
