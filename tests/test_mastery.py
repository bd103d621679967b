"""Tests for the domain mastery tracker."""

import pytest

from autonome.config import Settings
from autonome.mastery import MasteryTracker
from autonome.types import DomainState


class TestSnapshot:
    def test_unknown_domain_is_zero_and_unmastered(self, tracker):
        snap = tracker.snapshot("astrology")
        assert snap.attempts == 0
        assert snap.avg_mastery == 0.0
        assert snap.mastered is False
        assert snap.state is DomainState.UNKNOWN

    def test_mastered_when_all_thresholds_cleared(self, tracker, add_attempts):
        """11 attempts, avg mastery 0.90, avg success 0.85 => mastered."""
        add_attempts("chemistry", 11, mastery=0.90, success_rate=0.85)
        snap = tracker.snapshot("chemistry")
        assert snap.attempts == 11
        assert snap.avg_mastery == pytest.approx(0.90)
        assert snap.avg_success_rate == pytest.approx(0.85)
        assert snap.mastered is True
        assert tracker.is_mastered("chemistry")

    @pytest.mark.parametrize(
        "count,mastery,success",
        [
            (10, 0.90, 0.85),  # attempts must exceed 10
            (11, 0.85, 0.85),  # mastery must exceed 0.85
            (11, 0.90, 0.80),  # success must exceed 0.8
        ],
    )
    def test_thresholds_are_strict(self, tracker, add_attempts, count, mastery, success):
        add_attempts("chemistry", count, mastery=mastery, success_rate=success)
        assert tracker.snapshot("chemistry").mastered is False

    def test_only_window_counts(self, tracker, add_attempts):
        add_attempts("chemistry", 11, mastery=0.95, success_rate=0.95, age_days=40)
        snap = tracker.snapshot("chemistry")
        assert snap.attempts == 0
        assert snap.mastered is False

    def test_thresholds_follow_settings(self, ledger, add_attempts, tmp_path):
        add_attempts("chemistry", 3, mastery=0.6, success_rate=0.6)
        lenient = Settings(
            _env_file=None,
            data_dir=tmp_path,
            mastery_threshold=0.5,
            tracker_min_attempts=2,
            tracker_min_success_rate=0.5,
        )
        assert MasteryTracker(ledger, lenient).is_mastered("chemistry")

    def test_snapshot_does_not_write(self, ledger, tracker, add_attempts):
        add_attempts("chemistry", 11, mastery=0.9, success_rate=0.9)
        before = ledger.count_records()
        tracker.snapshot("chemistry")
        assert ledger.count_records() == before

    def test_empty_domain_rejected(self, tracker):
        with pytest.raises(ValueError):
            tracker.snapshot("")


class TestState:
    def test_learning_after_first_attempt(self, tracker, add_attempts):
        add_attempts("chemistry", 1, mastery=0.1, success_rate=0.3)
        assert tracker.state("chemistry") is DomainState.LEARNING

    def test_learning_survives_window(self, tracker, add_attempts):
        add_attempts("chemistry", 1, mastery=0.1, success_rate=0.3, age_days=90)
        assert tracker.state("chemistry") is DomainState.LEARNING

    def test_latched_domain_is_mastered(self, ledger, tracker, add_attempts):
        add_attempts("chemistry", 6, mastery=0.9, success_rate=0.5)
        ledger.latch_domain_mastered("chemistry", 0.9)
        snap = tracker.snapshot("chemistry")
        assert snap.mastered is False
        assert snap.latched is True
        assert tracker.state("chemistry") is DomainState.MASTERED
