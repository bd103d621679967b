"""Tests for the autonome command line interface."""

import json
from unittest.mock import patch

import pytest

from autonome.cli import build_parser, main


@pytest.fixture
def cli_provider(fake_provider_cls):
    provider = fake_provider_cls()
    with patch("autonome.cli.auto_configure_provider", return_value=provider):
        yield provider


def run_cli(capsys, *argv):
    main(list(argv))
    return capsys.readouterr()


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_outcome_needs_verdict(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["outcome", "abc"])

    def test_outcome_failure(self):
        args = build_parser().parse_args(["outcome", "abc", "--failure"])
        assert args.success is False


class TestStatus:
    def test_status_json(self, capsys, cli_provider):
        out = run_cli(capsys, "status", "--json").out
        status = json.loads(out)
        assert status["core_id"] == "default"
        assert status["cloud_dependency"] == 1.0

    def test_status_text(self, capsys, cli_provider):
        out = run_cli(capsys, "--core", "lab", "status").out
        assert "Autonomy Status for lab" in out
        assert "Local autonomy:" in out


class TestAsk:
    def test_ask_json(self, capsys, cli_provider):
        out = run_cli(capsys, "ask", "chemistry", "What is a covalent bond?", "--json").out
        payload = json.loads(out)
        assert payload["type"] == "cloud_assisted"
        assert payload["content"] == cli_provider.content

    def test_ask_text(self, capsys, cli_provider):
        out = run_cli(capsys, "ask", "chemistry", "What is a covalent bond?").out
        assert cli_provider.content in out
        assert "[cloud_assisted]" in out

    def test_ask_without_provider(self, capsys):
        with patch("autonome.cli.auto_configure_provider", return_value=None):
            with pytest.raises(SystemExit) as exc_info:
                main(["ask", "chemistry", "q"])
        assert exc_info.value.code == 1
        assert "cloud reasoning failed (unavailable)" in capsys.readouterr().err


class TestDecide:
    def test_decide_with_override(self, capsys, cli_provider):
        out = run_cli(capsys, "decide", "--urgency", "0.9", "--json").out
        assert json.loads(out)["decision"] == "immediate_action"

    def test_decide_rejects_out_of_range(self, capsys, cli_provider):
        with pytest.raises(SystemExit) as exc_info:
            main(["decide", "--urgency", "1.5"])
        assert exc_info.value.code == 1
        assert "urgency" in capsys.readouterr().err

    def test_outcome_round_trip(self, capsys, cli_provider):
        decision_id = json.loads(run_cli(capsys, "decide", "--json").out)["id"]
        assert "Outcome recorded" in run_cli(capsys, "outcome", decision_id, "--success").out
        assert "No pending decision" in run_cli(capsys, "outcome", decision_id, "--failure").out


class TestRun:
    def test_run_for_duration(self, capsys, cli_provider):
        out = run_cli(capsys, "run", "--duration", "0.05").out
        assert "Running core default" in out
        assert "Stopped after" in out


class TestInitErrors:
    def test_invalid_core_id(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--core", "../escape", "status"])
        assert exc_info.value.code == 1
        assert "path separators" in capsys.readouterr().err

    def test_core_id_checked_before_provider(self, capsys, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        with patch(
            "autonome.cli.auto_configure_provider",
            side_effect=ImportError("The 'anthropic' package is required"),
        ) as configure:
            with pytest.raises(SystemExit) as exc_info:
                main(["--core", "../escape", "status"])
        assert exc_info.value.code == 1
        assert "path separators" in capsys.readouterr().err
        configure.assert_not_called()
