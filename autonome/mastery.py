"""Domain mastery tracker.

Read-only view over the learning ledger: for a domain, average mastery
level, attempt count and average success rate over a rolling window,
and whether that clears the mastered bar.
"""

from __future__ import annotations

import logging
from typing import Optional

from autonome.config import Settings, get_settings
from autonome.storage import Ledger
from autonome.types import DomainState, MasterySnapshot

logger = logging.getLogger(__name__)


class MasteryTracker:
    """Computes per-domain mastery snapshots on demand.

    Mastered iff, over the last ``mastery_window_days``:
    avg mastery > ``mastery_threshold`` AND attempts > ``tracker_min_attempts``
    AND avg success rate > ``tracker_min_success_rate``.
    """

    def __init__(self, ledger: Ledger, settings: Optional[Settings] = None) -> None:
        self._ledger = ledger
        self._settings = settings or get_settings()

    def snapshot(self, domain: str) -> MasterySnapshot:
        if not domain:
            raise ValueError("domain must be a non-empty string")

        s = self._settings
        stats = self._ledger.query_mastery_stats(domain, window_days=s.mastery_window_days)
        mastered = (
            stats["avg_mastery"] > s.mastery_threshold
            and stats["attempts"] > s.tracker_min_attempts
            and stats["avg_success_rate"] > s.tracker_min_success_rate
        )
        return MasterySnapshot(
            domain=domain,
            avg_mastery=stats["avg_mastery"],
            attempts=stats["attempts"],
            avg_success_rate=stats["avg_success_rate"],
            mastered=mastered,
            latched=stats["latched"],
        )

    def is_mastered(self, domain: str) -> bool:
        return self.snapshot(domain).mastered

    def state(self, domain: str) -> DomainState:
        """Position of ``domain`` in the unknown -> learning -> mastered progression.

        The window only bounds the statistics; a domain with attempts that
        all fell out of the window is still LEARNING, not UNKNOWN.
        """
        snap = self.snapshot(domain)
        if snap.state is DomainState.UNKNOWN and self._ledger.domain_progress(domain)["rows"]:
            return DomainState.LEARNING
        return snap.state
