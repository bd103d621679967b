"""Local and cloud answer paths used by the hybrid dispatcher."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from autonome.autonomy import AutonomyController
from autonome.config import Settings, get_settings
from autonome.protocols import (
    CloudReasoningProvider,
    LedgerError,
    ProviderError,
    ProviderResponse,
)
from autonome.storage import Ledger
from autonome.types import MasterySnapshot, MemoryRecord, clamp

logger = logging.getLogger(__name__)

LOCAL_CONFIDENCE_CAP = 0.95
LOCAL_MASTERY_WEIGHT = 0.3
LOCAL_SUCCESS_CONFIDENCE = 0.5

# Cloud answers below this confidence count as a poor learning step
ATTEMPT_SUCCESS_CONFIDENCE = 0.7
FAILED_ATTEMPT_SUCCESS_RATE = 0.3
# Cloud answers above this confidence are retained as memories
MEMORY_CONFIDENCE = 0.6


class LocalResponder:
    """Answers a mastered domain from retained memories, without the cloud."""

    model_id = "local"

    def __init__(self, ledger: Ledger, settings: Optional[Settings] = None) -> None:
        self._ledger = ledger
        self._settings = settings or get_settings()

    def respond(
        self, domain: str, query: str, snapshot: MasterySnapshot
    ) -> Tuple[ProviderResponse, List[str]]:
        """Returns the answer and the ids of the memories it used."""
        memories = self._ledger.query_recent_memories(domain, limit=self._settings.local_top_k)

        avg_confidence = sum(m.confidence for m in memories) / len(memories) if memories else 0.0
        confidence = min(
            LOCAL_CONFIDENCE_CAP, avg_confidence + snapshot.avg_mastery * LOCAL_MASTERY_WEIGHT
        )

        memory_ids = [m.id for m in memories]
        if memory_ids:
            try:
                self._ledger.touch_memories(memory_ids)
            except LedgerError as e:
                logger.warning(f"Could not record memory access for {domain}: {e}")

        return (
            ProviderResponse(
                content=self._compose(domain, query, memories),
                confidence=confidence,
                learning_gained=0.0,
                success=confidence > LOCAL_SUCCESS_CONFIDENCE,
                model_id=self.model_id,
            ),
            memory_ids,
        )

    @staticmethod
    def _compose(domain: str, query: str, memories: List[MemoryRecord]) -> str:
        if not memories:
            return f"No retained knowledge for {domain} yet; unable to answer locally: {query}"
        return "\n\n".join(m.content for m in memories[:3])


class CloudResponder:
    """Delegates to the cloud provider and records the exchange as a learning step."""

    def __init__(
        self,
        provider: Optional[CloudReasoningProvider],
        ledger: Ledger,
        controller: AutonomyController,
    ) -> None:
        self._provider = provider
        self._ledger = ledger
        self._controller = controller

    @property
    def provider(self) -> Optional[CloudReasoningProvider]:
        return self._provider

    def respond(
        self, domain: str, query: str, context: Optional[Dict[str, Any]] = None
    ) -> Tuple[ProviderResponse, List[str]]:
        """Ask the provider. Provider failures propagate unchanged."""
        if self._provider is None:
            raise ProviderError("unavailable", "No cloud reasoning provider configured")

        response = self._provider.respond(domain, query, context)
        if not isinstance(response, ProviderResponse):
            raise ProviderError(
                "unknown", f"Provider returned {type(response).__name__}, expected ProviderResponse"
            )

        memory_ids = self._record(domain, query, response)
        return response, memory_ids

    def _record(self, domain: str, query: str, response: ProviderResponse) -> List[str]:
        """Append the learning attempt and, for confident answers, a memory.

        The answer has already been produced, so ledger failures here are
        logged rather than raised.
        """
        confidence = response.confidence
        memory_ids: List[str] = []
        try:
            self._controller.record_learning_attempt(
                domain,
                query,
                response.content,
                success_rate=(
                    confidence
                    if confidence > ATTEMPT_SUCCESS_CONFIDENCE
                    else FAILED_ATTEMPT_SUCCESS_RATE
                ),
                learning_gain=response.learning_gained,
                local_analysis=(
                    f"confidence={confidence:.3f}, "
                    f"learning_gained={response.learning_gained:.3f}"
                ),
            )

            if confidence > MEMORY_CONFIDENCE:
                memory = MemoryRecord(
                    id=str(uuid.uuid4()),
                    domain=domain,
                    content=response.content,
                    importance=clamp(confidence * 0.5 + response.learning_gained * 0.5),
                    confidence=confidence,
                    created_at=datetime.now(timezone.utc),
                    source=response.model_id or "cloud",
                )
                memory_ids.append(self._ledger.append_memory(memory))
        except LedgerError as e:
            logger.error(f"Could not record learning attempt for {domain}: {e}")
        return memory_ids
