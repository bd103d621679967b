"""Hybrid dispatcher.

Routes each query either to the local responder (domain mastered and the
core autonomous enough) or to the cloud provider, then writes the
outcome: an Interaction row, a mastery update and a
``hybrid_learning_complete`` event.
"""

from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from autonome.autonomy import AutonomyController
from autonome.config import Settings, get_settings
from autonome.events import EventBus, HybridLearningComplete
from autonome.logging_config import log_dispatch
from autonome.mastery import MasteryTracker
from autonome.protocols import CloudReasoningProvider, LedgerError, PayloadError
from autonome.responders import CloudResponder, LocalResponder
from autonome.storage import Ledger
from autonome.types import (
    DomainState,
    Interaction,
    InteractionType,
    MasterySnapshot,
)

logger = logging.getLogger(__name__)

# Recorded for a request whose provider call failed
DEGRADED_CONFIDENCE = 0.3

_STATE_ORDER = {DomainState.UNKNOWN: 0, DomainState.LEARNING: 1, DomainState.MASTERED: 2}


@dataclass
class DispatchResult:
    """What the caller gets back for one query."""

    interaction_id: str
    domain: str
    type: InteractionType
    content: str
    confidence: float
    learning_gained: float
    autonomy_used: float
    success: bool
    processing_time_ms: float
    mastery_level: float = 0.0
    model_id: Optional[str] = None
    memory_ids: List[str] = field(default_factory=list)


def _sanitize_context(context: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Reduce ``context`` to plain JSON values so it can be stored and sent."""
    if not context:
        return {}
    if not isinstance(context, dict):
        raise ValueError(f"context must be a dict, got {type(context).__name__}")
    return json.loads(json.dumps(context, default=str))


class HybridDispatcher:
    """Serves queries and turns cloud answers into local mastery."""

    def __init__(
        self,
        ledger: Ledger,
        tracker: MasteryTracker,
        controller: AutonomyController,
        bus: EventBus,
        provider: Optional[CloudReasoningProvider] = None,
        settings: Optional[Settings] = None,
        core_id: str = "default",
    ) -> None:
        self._ledger = ledger
        self._tracker = tracker
        self._controller = controller
        self._bus = bus
        self._settings = settings or get_settings()
        self._core_id = core_id
        self._local = LocalResponder(ledger, self._settings)
        self._cloud = CloudResponder(provider, ledger, controller)
        self._states: Dict[str, DomainState] = {}
        self._states_lock = threading.Lock()

    def domain_state(self, domain: str) -> DomainState:
        """Position of ``domain`` in unknown -> learning -> mastered. Never moves back."""
        try:
            current = self._tracker.state(domain)
        except LedgerError as e:
            logger.warning(f"Could not read mastery state for {domain}: {e}")
            current = DomainState.UNKNOWN
        return self._advance_state(domain, current)

    def _advance_state(self, domain: str, state: DomainState) -> DomainState:
        with self._states_lock:
            previous = self._states.get(domain, DomainState.UNKNOWN)
            if _STATE_ORDER[state] > _STATE_ORDER[previous]:
                self._states[domain] = state
                return state
            return previous

    def dispatch(
        self, domain: str, query: str, context: Optional[Dict[str, Any]] = None
    ) -> DispatchResult:
        """Answer ``query`` in ``domain``.

        Raises ValueError for an empty domain or query. A provider failure
        is recorded as a degraded interaction and then re-raised.
        """
        if not isinstance(domain, str) or not domain.strip():
            raise ValueError("domain must be a non-empty string")
        if not isinstance(query, str) or not query.strip():
            raise ValueError("query must be a non-empty string")
        domain = domain.strip()
        context = _sanitize_context(context)

        started = time.monotonic()
        snapshot = self._snapshot(domain)
        local_autonomy = self._controller.local_autonomy

        if snapshot.mastered and local_autonomy > self._settings.mastery_threshold:
            kind = InteractionType.AUTONOMOUS_LOCAL
            autonomy_used = 1.0
            response, memory_ids = self._local.respond(domain, query, snapshot)
        else:
            kind = InteractionType.CLOUD_ASSISTED
            autonomy_used = local_autonomy
            try:
                response, memory_ids = self._cloud.respond(domain, query, context)
            except Exception as exc:
                logger.error(f"Cloud reasoning failed for {domain}: {exc}")
                self._record_interaction(
                    Interaction(
                        id=str(uuid.uuid4()),
                        type=kind,
                        domain=domain,
                        input_payload={"query": query, "context": context},
                        output_payload={"content": "", "error": str(exc)},
                        confidence=DEGRADED_CONFIDENCE,
                        learning_gained=0.0,
                        autonomy_used=autonomy_used,
                        timestamp=datetime.now(timezone.utc),
                        success=False,
                    )
                )
                raise

        interaction_id = str(uuid.uuid4())
        self._record_interaction(
            Interaction(
                id=interaction_id,
                type=kind,
                domain=domain,
                input_payload={"query": query, "context": context},
                output_payload={
                    "content": response.content,
                    "memory_ids": memory_ids,
                    "model_id": response.model_id,
                },
                confidence=response.confidence,
                learning_gained=response.learning_gained,
                autonomy_used=autonomy_used,
                timestamp=datetime.now(timezone.utc),
                success=response.success,
            )
        )

        try:
            mastery_level = self._controller.update_domain_mastery_level(
                domain, response.learning_gained
            )
        except LedgerError as e:
            logger.error(f"Could not update mastery for {domain}: {e}")
            mastery_level = snapshot.avg_mastery

        self._advance_state(domain, DomainState.LEARNING)
        if domain in self._controller.mastered_domains:
            self._advance_state(domain, DomainState.MASTERED)

        elapsed_ms = (time.monotonic() - started) * 1000.0
        log_dispatch(
            self._core_id,
            domain,
            interaction_id,
            autonomy_used,
            response.confidence,
            response.success,
        )
        self._bus.publish(
            HybridLearningComplete(
                interaction_id=interaction_id,
                domain=domain,
                autonomy_used=autonomy_used,
                processing_time_ms=elapsed_ms,
                learning_gained=response.learning_gained,
            )
        )

        return DispatchResult(
            interaction_id=interaction_id,
            domain=domain,
            type=kind,
            content=response.content,
            confidence=response.confidence,
            learning_gained=response.learning_gained,
            autonomy_used=autonomy_used,
            success=response.success,
            processing_time_ms=elapsed_ms,
            mastery_level=mastery_level,
            model_id=response.model_id,
            memory_ids=memory_ids,
        )

    def _snapshot(self, domain: str) -> MasterySnapshot:
        try:
            return self._tracker.snapshot(domain)
        except LedgerError as e:
            logger.warning(f"Mastery stats unavailable for {domain}, using cloud: {e}")
            return MasterySnapshot(domain=domain)

    def _record_interaction(self, interaction: Interaction) -> None:
        """Write-behind interaction log. Failures are logged, never raised."""
        try:
            self._ledger.append_interaction(interaction)
        except (LedgerError, PayloadError) as e:
            logger.error(f"Could not record interaction {interaction.id}: {e}")
