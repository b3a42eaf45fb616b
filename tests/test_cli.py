"""Tests for the command-line interface."""

import argparse

import pytest
import yaml
from conftest import FakeActuator

from speedrun_agent.cli import main
from speedrun_agent.cli.helpers import _apply_overrides, _load_actuator
from speedrun_agent.cli.options import build_arg_parser
from speedrun_agent.config.loader import Config
from speedrun_agent.interfaces.actuator import Block
from speedrun_agent.learning.checkpoint import checkpoint_exists
from speedrun_agent.models.situation import Position


def make_actuator():
    return FakeActuator(blocks=[Block("oak_log", Position(x=2.0, y=64.0, z=2.0))])


def make_nothing():
    return object()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "run": {"tick_interval_s": 0.0, "error_backoff_s": 0.0, "max_ticks": 2},
                "learner": {"model_dir": str(tmp_path / "model")},
                "reasoning": {"enabled": False},
            }
        )
    )
    return path


class TestParser:
    """Tests for argument parsing."""

    def test_run_requires_actuator(self):
        parser = build_arg_parser()

        with pytest.raises(SystemExit):
            parser.parse_args(["run"])

    def test_run_options(self):
        args = build_arg_parser().parse_args(
            ["run", "--actuator", "world:connect", "--time-budget", "600", "--no-reasoning"]
        )

        assert args.command == "run"
        assert args.actuator == "world:connect"
        assert args.time_budget == 600.0
        assert args.no_reasoning
        assert not args.no_learning

    def test_check_has_no_actuator(self):
        args = build_arg_parser().parse_args(["check", "--log-format", "json"])

        assert args.command == "check"
        assert args.log_format == "json"
        assert not hasattr(args, "actuator")


class TestOverrides:
    """Tests for folding flags into the config."""

    def test_no_flags_keeps_config(self):
        config = Config()
        args = argparse.Namespace(command="check", no_reasoning=False, no_learning=False)

        assert _apply_overrides(config, args) is config

    def test_flags_applied(self):
        args = argparse.Namespace(
            command="run",
            time_budget=300.0,
            max_ticks=10,
            model_dir="/tmp/m",
            no_reasoning=True,
            no_learning=True,
            log_format="json",
        )

        config = _apply_overrides(Config(), args)

        assert config.run.time_budget_s == 300.0
        assert config.run.max_ticks == 10
        assert config.learner.model_dir == "/tmp/m"
        assert not config.learner.enabled
        assert not config.reasoning.enabled
        assert config.logging.format == "json"

    def test_invalid_override_rejected(self):
        args = argparse.Namespace(command="run", time_budget=-5.0)

        with pytest.raises(ValueError):
            _apply_overrides(Config(), args)


class TestLoadActuator:
    """Tests for resolving the actuator factory."""

    def test_loads_factory(self):
        assert isinstance(_load_actuator("test_cli:make_actuator"), FakeActuator)

    def test_malformed_reference(self):
        with pytest.raises(ValueError, match="module:callable"):
            _load_actuator("test_cli.make_actuator")

    def test_missing_attribute(self):
        with pytest.raises(ValueError, match="not a callable"):
            _load_actuator("test_cli:does_not_exist")

    def test_wrong_type(self):
        with pytest.raises(ValueError, match="not an Actuator"):
            _load_actuator("test_cli:make_nothing")


class TestCommands:
    """Tests for the run and check commands."""

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "speedrun-agent" in capsys.readouterr().out

    def test_check_reports_sources(self, config_file, capsys):
        assert main(["check", "--config", str(config_file)]) == 0

        out = capsys.readouterr().out
        assert "reasoning: disabled" in out
        assert "cold start" in out
        assert "rule_based: available" in out

    def test_check_learning_disabled(self, config_file, capsys):
        assert main(["check", "--config", str(config_file), "--no-learning"]) == 0

        assert "learned: disabled" in capsys.readouterr().out

    def test_run_without_win_saves_model(self, config_file, tmp_path):
        code = main(["run", "--config", str(config_file), "--actuator", "test_cli:make_actuator"])

        assert code == 2
        assert checkpoint_exists(tmp_path / "model")

    def test_run_bad_actuator_fails(self, config_file):
        code = main(["run", "--config", str(config_file), "--actuator", "test_cli:make_nothing"])

        assert code == 1

    def test_missing_config_fails(self, tmp_path):
        assert main(["check", "--config", str(tmp_path / "absent.yaml")]) == 1
