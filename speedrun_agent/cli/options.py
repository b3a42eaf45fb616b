"""CLI option models and parser helpers."""

from __future__ import annotations

import argparse
from enum import StrEnum


class LogFormat(StrEnum):
    """CLI log formatter mode."""

    READABLE = "readable"
    JSON = "json"


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", type=str, default=None, help="Path to a YAML config file")
    parser.add_argument(
        "--log-format",
        type=str,
        default=None,
        choices=[fmt.value for fmt in LogFormat],
        help="Log output format (defaults to the config value)",
    )
    parser.add_argument("--model-dir", type=str, default=None, help="Model checkpoint directory")
    parser.add_argument(
        "--no-reasoning", action="store_true", help="Disable the reasoning service"
    )
    parser.add_argument("--no-learning", action="store_true", help="Disable the learned policy")


def build_arg_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="speedrun-agent", description="Adaptive decision engine for a block-game speedrun agent"
    )
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Run the agent")
    _add_common_options(run_parser)
    run_parser.add_argument(
        "--actuator",
        type=str,
        required=True,
        help="Actuator factory as module:callable; called with no arguments",
    )
    run_parser.add_argument(
        "--time-budget", type=float, default=None, help="Wall-clock budget in seconds"
    )
    run_parser.add_argument("--max-ticks", type=int, default=None, help="Stop after N ticks")

    check_parser = subparsers.add_parser(
        "check", help="Probe the reasoning service and the saved model"
    )
    _add_common_options(check_parser)

    return parser
