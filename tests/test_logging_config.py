"""Tests for autonome.logging_config module."""

import logging

import pytest

from autonome.logging_config import (
    log_core_event,
    log_decision,
    log_dispatch,
    log_evolution,
    log_mastery,
    setup_autonome_logging,
)


@pytest.fixture
def log_dir(autonome_home):
    return autonome_home / "logs"


def _core_events(log_dir):
    [path] = list(log_dir.glob("core-events-*.log"))
    return path.read_text(encoding="utf-8").splitlines()


class TestSetupAutonomeLogging:
    """Tests for setup_autonome_logging."""

    def test_returns_logger(self, log_dir):
        logger = setup_autonome_logging(core_id="test-core")
        assert isinstance(logger, logging.Logger)
        assert logger.name == "autonome"

    def test_creates_log_directory(self, log_dir):
        assert not log_dir.exists()
        setup_autonome_logging(core_id="test-core")
        assert log_dir.exists()

    def test_log_file_named_with_date(self, log_dir):
        setup_autonome_logging(core_id="test-core")
        [log_file] = list(log_dir.glob("local-*.log"))
        assert log_file.name.endswith(".log")

    def test_default_level_info(self, log_dir):
        assert setup_autonome_logging(core_id="test-core").level == logging.INFO

    @pytest.mark.parametrize("level,expected", [("debug", logging.DEBUG), ("WARNING", logging.WARNING)])
    def test_custom_level(self, log_dir, level, expected):
        assert setup_autonome_logging(core_id="test-core", level=level).level == expected

    def test_invalid_level_falls_back_to_info(self, log_dir):
        assert setup_autonome_logging(core_id="test-core", level="LOUD").level == logging.INFO

    def test_idempotent_file_handler(self, log_dir):
        setup_autonome_logging(core_id="test-core")
        logger = setup_autonome_logging(core_id="test-core")
        file_handlers = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1

    def test_console_handler_only_at_debug(self, log_dir):
        def consoles(logger):
            return [
                h
                for h in logger.handlers
                if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
            ]

        assert consoles(setup_autonome_logging(core_id="test-core")) == []
        assert len(consoles(setup_autonome_logging(core_id="test-core", level="DEBUG"))) == 1

    def test_messages_written_to_file(self, log_dir):
        logger = setup_autonome_logging(core_id="test-core")
        logging.getLogger("autonome.dispatcher").info("hello from dispatcher")
        for handler in logger.handlers:
            handler.flush()
        [log_file] = list(log_dir.glob("local-*.log"))
        assert "hello from dispatcher" in log_file.read_text(encoding="utf-8")


class TestCoreEvents:
    def test_log_core_event_appends(self, log_dir):
        log_core_event("start", "local_autonomy=0.000", core_id="c1")
        log_core_event("stop", "uptime=1.0s", core_id="c1")
        lines = _core_events(log_dir)
        assert len(lines) == 2
        assert "| start | core=c1 | local_autonomy=0.000" in lines[0]

    def test_log_dispatch(self, log_dir):
        log_dispatch("c1", "chemistry", "0123456789abcdef", 0.0, 0.9, True)
        [line] = _core_events(log_dir)
        assert "dispatch" in line
        assert "domain=chemistry" in line
        assert "id=01234567..." in line

    def test_log_mastery(self, log_dir):
        log_mastery("c1", "chemistry", 0.915, 2)
        [line] = _core_events(log_dir)
        assert "level=0.915, mastered_domains=2" in line

    def test_log_evolution(self, log_dir):
        log_evolution("c1", "autonomy_level", 0.5, 0.6, trigger="domain_mastered:chemistry")
        [line] = _core_events(log_dir)
        assert "metric=autonomy_level, 0.5000 -> 0.6000" in line
        assert "trigger=domain_mastered:chemistry" in line

    def test_log_evolution_without_trigger(self, log_dir):
        log_evolution("c1", "learning_rate", 0.03, 0.033)
        [line] = _core_events(log_dir)
        assert line.endswith("trigger=-")

    def test_log_decision(self, log_dir):
        log_decision("c1", "continue_monitoring", "adapt", 0.8)
        [line] = _core_events(log_dir)
        assert "decision=continue_monitoring, strategy=adapt, confidence=0.800" in line
