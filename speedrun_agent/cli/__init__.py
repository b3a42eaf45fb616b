"""CLI entrypoint for running speedrun agent sessions."""

from __future__ import annotations

import argparse
import logging
import sys

from speedrun_agent.cli.helpers import _apply_overrides, _configure_logging, _load_actuator
from speedrun_agent.cli.options import LogFormat, build_arg_parser
from speedrun_agent.cli.runtime import build_reasoning, build_runtime
from speedrun_agent.config.loader import Config, load_config
from speedrun_agent.config.secrets import load_environment_secrets
from speedrun_agent.learning.checkpoint import checkpoint_exists
from speedrun_agent.learning.learner import LearnerConfig, ReinforcementLearner

logger = logging.getLogger(__name__)


def _load(args: argparse.Namespace) -> Config:
    config = _apply_overrides(load_config(args.config), args)
    _configure_logging(level=config.logging.level, log_format=config.logging.format)
    return config


def run_command(args: argparse.Namespace) -> int:
    """Execute the `run` command."""
    if args.command != "run":
        raise ValueError(f"Unsupported command: {args.command}")

    config = _load(args)
    actuator = _load_actuator(str(args.actuator))
    runtime = build_runtime(config, actuator)
    summary = runtime.run()

    stats = runtime.metrics.get_metrics()
    logger.info(
        f"Decisions by source: {stats.decisions_by_source}, fallbacks={stats.fallbacks_total}, "
        f"actions ok={stats.actions_successful}/{stats.actions_total}, "
        f"errors={stats.errors_total}"
    )
    return 0 if summary.won else 2


def check_command(args: argparse.Namespace) -> int:
    """Execute the `check` command: report which decision sources would be available."""
    if args.command != "check":
        raise ValueError(f"Unsupported command: {args.command}")

    config = _load(args)

    reasoning = build_reasoning(config)
    if reasoning is None:
        print("reasoning: disabled")
    elif reasoning.is_available:
        print(f"reasoning: available ({config.reasoning.provider}, model={reasoning.model})")
    else:
        print(f"reasoning: unavailable ({config.reasoning.provider})")

    model_dir = config.learner.model_dir
    if not config.learner.enabled:
        print("learned: disabled")
    elif not checkpoint_exists(model_dir):
        print(f"learned: no saved model in {model_dir} (cold start)")
    else:
        learner = ReinforcementLearner(
            LearnerConfig(
                state_size=config.encoder.state_size,
                **config.learner.model_dump(exclude={"enabled"}),
            )
        )
        if learner.load():
            print(f"learned: available ({model_dir}, epsilon={learner.epsilon:.3f})")
        else:
            print(f"learned: saved model in {model_dir} could not be loaded")

    print("rule_based: available")
    return 0


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint function."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    # Bootstrap logger before config loading.
    _configure_logging(level="INFO", log_format=args.log_format or LogFormat.READABLE.value)

    try:
        load_environment_secrets(strict=False)
        if args.command == "run":
            return run_command(args)
        if args.command == "check":
            return check_command(args)
        raise ValueError(f"Unsupported command: {args.command}")
    except Exception as exc:
        logger.error(f"CLI execution failed: {exc}")
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
