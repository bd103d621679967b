"""Tests for autonome.types helpers and record dataclasses."""

from datetime import datetime, timedelta, timezone

import pytest

from autonome.types import (
    DomainState,
    EvolutionEvent,
    MasterySnapshot,
    clamp,
    iso_utc,
    parse_datetime,
)
from autonome.utils import get_autonome_home, short_id


class TestTimestamps:
    def test_iso_utc_is_fixed_width(self):
        a = iso_utc(datetime(2026, 1, 1, tzinfo=timezone.utc))
        b = iso_utc(datetime(2026, 1, 1, 0, 0, 0, 123456, tzinfo=timezone.utc))
        assert len(a) == len(b)
        assert a < b

    def test_iso_utc_converts_offsets(self):
        local = datetime(2026, 1, 1, 2, 0, tzinfo=timezone(timedelta(hours=2)))
        assert iso_utc(local).startswith("2026-01-01T00:00:00")

    def test_parse_datetime(self):
        assert parse_datetime("2026-01-01T00:00:00Z") == datetime(2026, 1, 1, tzinfo=timezone.utc)
        assert parse_datetime("2026-01-01T00:00:00").tzinfo is timezone.utc
        assert parse_datetime(None) is None
        assert parse_datetime("yesterday") is None


class TestClamp:
    @pytest.mark.parametrize("value,expected", [(-0.5, 0.0), (0.4, 0.4), (1.7, 1.0)])
    def test_unit_interval(self, value, expected):
        assert clamp(value) == expected

    def test_custom_bounds(self):
        assert clamp(0.001, 0.01, 0.05) == 0.01


class TestRecords:
    def test_evolution_event_significance(self):
        event = EvolutionEvent(
            id="e", metric_name="autonomy_level", previous_value=0.6, new_value=0.5, trigger="t"
        )
        assert event.significance == pytest.approx(0.1)

    @pytest.mark.parametrize(
        "snapshot,state",
        [
            (MasterySnapshot(domain="d"), DomainState.UNKNOWN),
            (MasterySnapshot(domain="d", attempts=3), DomainState.LEARNING),
            (MasterySnapshot(domain="d", attempts=3, mastered=True), DomainState.MASTERED),
            (MasterySnapshot(domain="d", latched=True), DomainState.MASTERED),
        ],
    )
    def test_snapshot_state(self, snapshot, state):
        assert snapshot.state is state


class TestUtils:
    def test_home_override(self, autonome_home):
        assert get_autonome_home() == autonome_home

    def test_home_default(self, monkeypatch, tmp_path):
        monkeypatch.delenv("AUTONOME_DATA_DIR")
        monkeypatch.setenv("HOME", str(tmp_path))
        assert get_autonome_home() == tmp_path / ".autonome"

    def test_short_id(self):
        assert short_id("abc") == "abc"
        assert short_id("0123456789") == "01234567..."
