"""Shared helper utilities for CLI commands."""

from __future__ import annotations

import argparse
import importlib
import json
import logging
from collections.abc import Callable

from speedrun_agent.cli.options import LogFormat
from speedrun_agent.config.loader import Config
from speedrun_agent.interfaces.actuator import Actuator


class _JSONLogFormatter(logging.Formatter):
    """Compact JSON formatter for machine-readable logs."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=True)


def _configure_logging(level: str = "INFO", log_format: str = LogFormat.READABLE.value) -> None:
    """Configure process-wide logging."""
    resolved_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.handlers = [h for h in root.handlers if not getattr(h, "_speedrun_handler", False)]

    handler = logging.StreamHandler()
    handler._speedrun_handler = True  # type: ignore[attr-defined]
    if log_format == LogFormat.JSON.value:
        formatter: logging.Formatter = _JSONLogFormatter(datefmt="%Y-%m-%dT%H:%M:%S")
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s | %(levelname)s | %(message)s",
            datefmt="%H:%M:%S",
        )
    handler.setFormatter(formatter)
    root.addHandler(handler)
    root.setLevel(resolved_level)

    # Transport logs are noisy at INFO during loop execution.
    for name in ("httpx", "httpcore", "openai", "anthropic"):
        logging.getLogger(name).setLevel(logging.WARNING)


def _apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Fold command-line overrides into the loaded configuration."""
    run_updates: dict[str, object] = {}
    if getattr(args, "time_budget", None) is not None:
        run_updates["time_budget_s"] = float(args.time_budget)
    if getattr(args, "max_ticks", None) is not None:
        run_updates["max_ticks"] = int(args.max_ticks)

    learner_updates: dict[str, object] = {}
    if getattr(args, "model_dir", None):
        learner_updates["model_dir"] = str(args.model_dir)
    if getattr(args, "no_learning", False):
        learner_updates["enabled"] = False

    updates: dict[str, object] = {}
    if run_updates:
        updates["run"] = config.run.model_copy(update=run_updates)
    if learner_updates:
        updates["learner"] = config.learner.model_copy(update=learner_updates)
    if getattr(args, "no_reasoning", False):
        updates["reasoning"] = config.reasoning.model_copy(update={"enabled": False})
    if getattr(args, "log_format", None):
        updates["logging"] = config.logging.model_copy(update={"format": str(args.log_format)})

    if not updates:
        return config
    # Re-validate so overrides get the same checks as file values.
    return Config.model_validate({**config.model_dump(), **{k: v.model_dump() for k, v in updates.items()}})


def _load_actuator(target: str) -> Actuator:
    """Build an actuator from a "module:callable" reference.

    Raises:
        ValueError: If the reference is malformed or does not produce an Actuator.
    """
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Actuator must be given as module:callable, got {target!r}")

    module = importlib.import_module(module_name)
    factory: Callable[[], object] | None = getattr(module, attr, None)
    if factory is None or not callable(factory):
        raise ValueError(f"{target!r} is not a callable")

    actuator = factory()
    if not isinstance(actuator, Actuator):
        raise ValueError(f"{target!r} returned {type(actuator).__name__}, not an Actuator")
    return actuator
