"""Tests for AutonomyCore, the service object tying everything together."""

import pytest

from autonome.config import Settings
from autonome.core import AutonomyCore, compute_autonomy_score
from autonome.events import CoreStarted, CoreStopped
from autonome.protocols import AutonomeError
from autonome.types import DecisionKind, DomainState, InteractionType


class TestInitialization:
    def test_fresh_core_defaults(self, core):
        status = core.get_status()
        assert status["core_id"] == "default"
        assert status["running"] is False
        assert status["local_autonomy"] == 0.0
        assert status["cloud_dependency"] == 1.0
        assert status["learning_rate"] == pytest.approx(0.03)
        assert status["memories"] == 0
        assert status["mastered_domains"] == 0
        assert status["autonomy_score"] == 0.0

    def test_ledger_lives_under_core_directory(self, core, settings):
        assert core.ledger.db_path == settings.data_dir / "default" / "ledger.db"

    @pytest.mark.parametrize("core_id", ["", "   ", "../escape", "a/b", "..", "!!!"])
    def test_invalid_core_id(self, tmp_path, core_id):
        settings = Settings(_env_file=None, data_dir=tmp_path, core_id=core_id)
        with pytest.raises(ValueError):
            AutonomyCore(settings)

    def test_core_id_sanitized(self, tmp_path):
        settings = Settings(_env_file=None, data_dir=tmp_path, core_id="lab core#1")
        core = AutonomyCore(settings)
        try:
            assert core.core_id == "labcore1"
        finally:
            core.shutdown()


class TestLifecycle:
    def test_start_registers_jobs(self, core, recorded_events):
        core.start()
        assert core.running
        names = sorted(job["name"] for job in core.get_status()["jobs"])
        assert names == [
            "decision_tick",
            "evolve_consciousness",
            "prune_memories",
            "recalibrate_learning_rate",
        ]
        [started] = [e for e in recorded_events if isinstance(e, CoreStarted)]
        assert started.local_autonomy == 0.0

    def test_start_twice_is_noop(self, core):
        core.start()
        core.start()
        assert len(core.scheduler.jobs()) == 4

    def test_shutdown(self, core, recorded_events):
        core.start()
        assert core.shutdown(grace=1) is True
        assert not core.running
        assert core.ledger.closed
        assert [e for e in recorded_events if isinstance(e, CoreStopped)]
        # Idempotent
        assert core.shutdown() is True

    def test_operations_rejected_after_shutdown(self, core):
        core.shutdown()
        with pytest.raises(AutonomeError, match="shut down"):
            core.process_query("chemistry", "q")
        with pytest.raises(AutonomeError):
            core.start()

    def test_context_manager(self, settings, provider):
        with AutonomyCore(settings, provider=provider) as core:
            assert core.running
        assert not core.running
        assert core.ledger.closed

    def test_state_survives_restart(self, settings, provider):
        first = AutonomyCore(settings, provider=provider)
        first.controller.increase_global_autonomy(0.2)
        first.controller.scale_learning_rate(1.5)
        first.shutdown()

        second = AutonomyCore(settings, provider=provider)
        try:
            assert second.controller.local_autonomy == pytest.approx(0.2)
            assert second.controller.cloud_dependency == pytest.approx(0.8)
            assert second.controller.learning_rate == pytest.approx(0.045)
        finally:
            second.shutdown()


class TestOperations:
    def test_process_query(self, core, provider):
        result = core.process_query("chemistry", "What is a covalent bond?")
        assert result.type is InteractionType.CLOUD_ASSISTED
        assert len(provider.calls) == 1

        status = core.get_status()
        assert status["interactions"] == 1
        assert status["learning_attempts"] == 1
        assert status["memories"] == 1
        assert status["metrics_7d"]["cloud_interactions"] == 1
        assert core.domain_state("chemistry") is DomainState.LEARNING

    def test_decision_and_outcome(self, core):
        decision = core.make_decision({"urgency": 0.95})
        assert decision.decision is DecisionKind.IMMEDIATE_ACTION
        assert core.record_decision_outcome(decision.id, True) is True
        assert core.record_decision_outcome(decision.id, False) is False

        status = core.get_status()
        assert status["recent_decisions"][0]["decision"] == "immediate_action"
        assert status["average_decision_confidence"] == pytest.approx(decision.confidence)

    def test_scheduled_tick_records_thought(self, core):
        core.start()
        core.scheduler.run_now("decision_tick")
        [thought] = core.get_status()["recent_thoughts"]
        assert thought["strategy"] == "adapt"
        assert core.ledger.count_records()["thoughts"] == 1

    def test_maintenance_jobs_run(self, core):
        core.start()
        assert core.scheduler.run_now("prune_memories") == {"pruned": 0, "boosted": 0}
        assert core.scheduler.run_now("recalibrate_learning_rate")["skipped"] is True
        assert core.scheduler.run_now("evolve_consciousness")["interactions"] == 0


class TestAutonomyScore:
    def test_blend(self):
        metrics = {
            "local_interactions": 2,
            "cloud_interactions": 2,
            "total_interactions": 4,
            "successful_learnings": 2,
        }
        assert compute_autonomy_score(metrics, 1) == pytest.approx(0.55)

    def test_empty_metrics(self):
        assert compute_autonomy_score({}, 0) == 0.0

    def test_capped(self):
        metrics = {"local_interactions": 4, "cloud_interactions": 0, "total_interactions": 4}
        assert compute_autonomy_score(metrics, 30) == 1.0
