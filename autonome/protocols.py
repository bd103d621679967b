"""
autonome Protocol Definitions
=============================

Interface contracts between the autonomy core and its collaborators.

Protocol version: 1

Components and their roles:
- Ledger:     Append-only store. Source of truth for every derived statistic.
- Core:       The service object. Wires the ledger, controller, dispatcher,
              decision engine and maintenance jobs together.
- Provider:   The cloud reasoning engine. Injected. Interchangeable. Opaque.
- Observers:  Event bus subscribers (dashboards, logs). Never block the core.

Error handling philosophy:
- Storage failures raise LedgerError; callers decide if they are fatal
- Versioned payloads that fail validation raise PayloadError
- Provider failures raise ProviderError (classified by error_class)
- Invalid arguments raise ValueError
- Background job failures are logged and isolated, never raised
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, runtime_checkable

# =============================================================================
# PROTOCOL VERSION
# =============================================================================

PROTOCOL_VERSION = 1


# =============================================================================
# ERRORS
# =============================================================================


class AutonomeError(Exception):
    """Base for all autonome errors."""

    pass


class LedgerError(AutonomeError):
    """Raised when the learning ledger cannot complete a read or write."""

    pass


class PayloadError(AutonomeError):
    """Raised when a versioned payload fails schema validation."""

    pass


class ProviderError(AutonomeError):
    """Raised when a cloud reasoning provider fails.

    ``error_class`` is one of ``rate_limit``, ``auth``, ``timeout``,
    ``server``, ``unavailable`` or ``unknown``.
    """

    def __init__(self, error_class: str, message: str) -> None:
        super().__init__(message)
        self.error_class = error_class


class SchedulerError(AutonomeError, ValueError):
    """Raised on invalid scheduler usage (duplicate job, bad interval)."""

    pass


# =============================================================================
# CLOUD REASONING PROVIDER
# =============================================================================


@dataclass
class ProviderResponse:
    """What a cloud reasoning provider returns for a single query."""

    content: str
    confidence: float
    learning_gained: float = 0.0
    success: bool = True
    model_id: Optional[str] = None
    usage: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.confidence = max(0.0, min(1.0, float(self.confidence)))
        self.learning_gained = max(0.0, min(1.0, float(self.learning_gained)))


@runtime_checkable
class CloudReasoningProvider(Protocol):
    """Opaque collaborator that answers queries the core has not mastered.

    The core never assumes anything about its internals. Timeouts and
    retries belong to the provider.
    """

    def respond(
        self,
        domain: str,
        query: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> ProviderResponse:
        """Answer ``query`` within ``domain``. Raises ProviderError on failure."""
        ...
