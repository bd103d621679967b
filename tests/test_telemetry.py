"""Tests for psutil-backed telemetry sampling."""

from unittest.mock import patch

from autonome.telemetry import sample_telemetry
from autonome.types import TelemetrySample


class TestSampleTelemetry:
    def test_live_sample(self):
        sample = sample_telemetry()
        assert isinstance(sample, TelemetrySample)
        assert 0 < sample.heap_used <= sample.heap_total
        assert sample.thread_count >= 1
        assert sample.process_count >= 1
        assert 0.0 <= sample.memory_percent <= 100.0
        assert sample.uptime_seconds >= 0.0
        assert sample.sampled_at is not None

    def test_load_average_unavailable(self):
        with patch("autonome.telemetry.psutil.getloadavg", side_effect=OSError("no loadavg")):
            assert sample_telemetry().load_avg_1m == 0.0

    def test_round_trips_through_dict(self):
        sample = sample_telemetry()
        assert TelemetrySample.from_dict(sample.to_dict()) == sample
