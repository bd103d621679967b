"""Cloud reasoning providers.

Concrete CloudReasoningProvider implementations. The SDK-backed ones
import their SDK only when instantiated.
"""

from __future__ import annotations

from autonome.providers.anthropic import AnthropicProvider
from autonome.providers.ollama import OllamaProvider
from autonome.providers.openai import OpenAIProvider
from autonome.providers.registry import (
    PROVIDERS,
    auto_configure_provider,
    available_providers,
    create_provider,
    detect_provider,
)

__all__ = [
    "AnthropicProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "PROVIDERS",
    "auto_configure_provider",
    "available_providers",
    "create_provider",
    "detect_provider",
]
