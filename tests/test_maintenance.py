"""Tests for the background maintenance jobs."""

from datetime import datetime, timedelta, timezone

import pytest

from autonome.maintenance import MaintenanceJobs
from autonome.types import InteractionType


def _days_ago(days):
    return datetime.now(timezone.utc) - timedelta(days=days)


class TestPruneMemories:
    def test_prunes_old_unused_unimportant(self, maintenance, ledger, add_memory):
        add_memory("chemistry", id="stale", importance=0.2, created_at=_days_ago(40))
        add_memory("chemistry", id="fresh", importance=0.2, created_at=_days_ago(5))
        add_memory("chemistry", id="used", importance=0.2, access_count=3, created_at=_days_ago(40))
        add_memory("chemistry", id="important", importance=0.5, created_at=_days_ago(40))

        assert maintenance.prune_memories() == {"pruned": 1, "boosted": 0}
        assert ledger.get_memory("stale") is None
        for kept in ("fresh", "used", "important"):
            assert ledger.get_memory(kept) is not None

    def test_boosts_frequent_memories(self, maintenance, ledger, add_memory):
        add_memory("chemistry", id="popular", importance=0.5, access_count=15)
        add_memory("chemistry", id="edge", importance=0.5, access_count=10)
        add_memory("chemistry", id="maxed", importance=0.95, access_count=20)

        assert maintenance.prune_memories()["boosted"] == 2
        assert ledger.get_memory("popular").importance == pytest.approx(0.6)
        assert ledger.get_memory("edge").importance == pytest.approx(0.5)
        assert ledger.get_memory("maxed").importance == pytest.approx(1.0)


class TestRecalibrateLearningRate:
    def test_skipped_without_interactions(self, maintenance, controller):
        result = maintenance.recalibrate_learning_rate()
        assert result["skipped"] is True
        assert controller.learning_rate == pytest.approx(0.03)

    def test_speeds_up_on_high_performance(self, maintenance, controller, add_interaction):
        for _ in range(3):
            add_interaction("chemistry", success=True, confidence=0.9)
        result = maintenance.recalibrate_learning_rate()
        assert result["score"] == pytest.approx(0.9)
        assert controller.learning_rate == pytest.approx(0.033)

    def test_slows_down_on_low_performance(self, maintenance, controller, ledger, add_interaction):
        add_interaction("chemistry", success=True, confidence=0.9)
        add_interaction("chemistry", success=False, confidence=0.3)
        maintenance.recalibrate_learning_rate()
        assert controller.learning_rate == pytest.approx(0.027)
        [event] = ledger.list_evolution_events(metric_name="learning_rate")
        assert event.trigger == "low_performance"

    def test_middle_band_unchanged(self, maintenance, controller, add_interaction):
        add_interaction("chemistry", success=True, confidence=0.7)
        maintenance.recalibrate_learning_rate()
        assert controller.learning_rate == pytest.approx(0.03)

    def test_respects_cap(self, maintenance, controller, add_interaction):
        add_interaction("chemistry", success=True, confidence=0.95)
        for _ in range(10):
            maintenance.recalibrate_learning_rate()
        assert controller.learning_rate == pytest.approx(0.05)

    def test_old_interactions_ignored(self, maintenance, add_interaction):
        add_interaction("chemistry", timestamp=_days_ago(10))
        assert maintenance.recalibrate_learning_rate()["skipped"] is True


class TestEvolveConsciousness:
    def test_no_activity_no_change(self, maintenance, ledger):
        result = maintenance.evolve_consciousness()
        assert result["reflection_depth"] == 0.0
        assert result["awareness_level"] == 0.0
        assert ledger.list_evolution_events() == []

    def test_grows_with_diverse_activity(self, maintenance, ledger, add_interaction):
        for domain in ("chemistry", "physics", "biology", "history", "music"):
            add_interaction(
                domain,
                type=InteractionType.AUTONOMOUS_LOCAL,
                confidence=0.8,
                autonomy_used=1.0,
            )

        result = maintenance.evolve_consciousness()
        assert result["diversity"] == 1.0
        assert result["reflection_depth"] == pytest.approx(0.08)
        assert result["awareness_level"] == pytest.approx(0.05)

        triggers = {e.trigger for e in ledger.list_evolution_events()}
        assert triggers == {"daily_evolution"}

    def test_capped_and_monotonic(self, maintenance, add_interaction):
        add_interaction("chemistry", confidence=1.0, autonomy_used=1.0)
        previous = 0.0
        for _ in range(30):
            awareness = maintenance.evolve_consciousness()["awareness_level"]
            assert awareness >= previous
            previous = awareness
        assert previous == 1.0

    def test_restore(self, ledger, controller, settings, maintenance, add_interaction):
        add_interaction("chemistry", confidence=0.8, autonomy_used=0.5)
        evolved = maintenance.evolve_consciousness()

        fresh = MaintenanceJobs(ledger, controller, settings)
        restored = fresh.restore()
        assert restored.reflection_depth == pytest.approx(evolved["reflection_depth"])
        assert restored.awareness_level == pytest.approx(evolved["awareness_level"])
