"""Registry of cloud reasoning providers.

Each entry names the provider, the environment variables that hold its
API key, its default model and where its class lives. Classes are
resolved at creation time so a provider's SDK is only imported when it
is actually used.

Selection (``auto_configure_provider``):
1. ``Settings.provider`` (``AUTONOME_PROVIDER``) if set
2. otherwise the first registered provider whose key is present
3. otherwise ``None``; the core then answers mastered domains only
"""

from __future__ import annotations

import importlib
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from autonome.config import Settings, get_settings
from autonome.protocols import CloudReasoningProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderEntry:
    name: str
    module: str
    class_name: str
    default_model: str
    key_env: Tuple[str, ...] = ()

    def load_class(self) -> type:
        return getattr(importlib.import_module(self.module), self.class_name)

    def has_key(self, environ: Mapping[str, str]) -> bool:
        return any(environ.get(var) for var in self.key_env)


# Detection order: first entry with a key wins
PROVIDERS: Dict[str, ProviderEntry] = {
    entry.name: entry
    for entry in (
        ProviderEntry(
            name="anthropic",
            module="autonome.providers.anthropic",
            class_name="AnthropicProvider",
            default_model="claude-haiku-4-5-20251001",
            key_env=("CLAUDE_API_KEY", "ANTHROPIC_API_KEY"),
        ),
        ProviderEntry(
            name="openai",
            module="autonome.providers.openai",
            class_name="OpenAIProvider",
            default_model="gpt-4o-mini",
            key_env=("OPENAI_API_KEY",),
        ),
        # Local server, never auto-detected
        ProviderEntry(
            name="ollama",
            module="autonome.providers.ollama",
            class_name="OllamaProvider",
            default_model="llama3.2:latest",
        ),
    )
}


def available_providers() -> List[str]:
    return list(PROVIDERS)


def detect_provider(environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """Name of the first keyed provider whose API key is set, else None."""
    environ = os.environ if environ is None else environ
    for entry in PROVIDERS.values():
        if entry.key_env and entry.has_key(environ):
            return entry.name
    return None


def create_provider(
    name: str, model_id: Optional[str] = None, **kwargs: Any
) -> CloudReasoningProvider:
    """Instantiate a registered provider by name.

    Raises:
        ValueError: If ``name`` is not registered.
        ImportError: If the provider's SDK is not installed.
    """
    entry = PROVIDERS.get(name.lower().strip())
    if entry is None:
        raise ValueError(
            f"Unknown provider '{name}' (available: {', '.join(available_providers())})"
        )
    model_id = model_id or entry.default_model
    provider = entry.load_class()(model_id=model_id, **kwargs)
    logger.info(f"Configured {entry.class_name} (model={model_id})")
    return provider


def auto_configure_provider(
    settings: Optional[Settings] = None,
) -> Optional[CloudReasoningProvider]:
    """Create the provider chosen by settings, or the first one with an API key.

    An unknown forced provider is logged and yields None. A missing SDK
    raises ImportError.
    """
    settings = settings or get_settings()
    name = (settings.provider or "").lower().strip() or detect_provider()
    if not name:
        logger.debug("No cloud provider configured")
        return None

    kwargs: Dict[str, Any] = {}
    if name == "ollama":
        kwargs["base_url"] = settings.ollama_base_url

    try:
        return create_provider(name, settings.model, **kwargs)
    except ValueError as e:
        logger.warning(f"{e}, skipping auto-configuration")
        return None
