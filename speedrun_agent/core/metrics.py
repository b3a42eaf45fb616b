"""Metrics collection for the decision loop.

This module provides metrics tracking for:
- Tick timing (observe, decide, act, train)
- Decisions by source and fallbacks between sources
- Action success/failure rates
- Rewards, training steps and exploration rate
- Error tracking
- Speedrun progress

Example:
    >>> from speedrun_agent.core.metrics import MetricsCollector
    >>>
    >>> metrics = MetricsCollector()
    >>> metrics.start()
    >>> metrics.record_decision("reasoning", duration_ms=120.0, fallback=False)
    >>> metrics.record_action(success=True, duration_ms=900.0)
    >>>
    >>> stats = metrics.get_metrics()
    >>> print(f"Ticks: {stats.tick_count}, reward: {stats.total_reward:.1f}")
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class AgentMetrics(BaseModel):
    """Snapshot of loop metrics at a point in time.

    Immutable and safe to share or serialize.
    """

    # Timing
    tick_count: int = Field(default=0, ge=0)
    tick_rate_hz: float = Field(default=0.0, ge=0.0)
    avg_tick_time_ms: float = Field(default=0.0, ge=0.0)
    avg_observation_time_ms: float = Field(default=0.0, ge=0.0)
    avg_decision_time_ms: float = Field(default=0.0, ge=0.0)
    avg_action_time_ms: float = Field(default=0.0, ge=0.0)
    avg_training_time_ms: float = Field(default=0.0, ge=0.0)

    # Decisions
    decisions_by_source: dict[str, int] = Field(default_factory=dict)
    fallbacks_total: int = Field(default=0, ge=0)

    # Actions
    actions_total: int = Field(default=0, ge=0)
    actions_successful: int = Field(default=0, ge=0)
    actions_failed: int = Field(default=0, ge=0)
    actions_recovered: int = Field(default=0, ge=0)

    # Learning
    total_reward: float = Field(default=0.0)
    last_reward: float = Field(default=0.0)
    training_steps: int = Field(default=0, ge=0)
    last_loss: float | None = Field(default=None)
    epsilon: float | None = Field(default=None)

    # Errors
    errors_total: int = Field(default=0, ge=0)
    errors_by_type: dict[str, int] = Field(default_factory=dict)

    # Progress
    current_phase: str = Field(default="")
    deaths: int = Field(default=0, ge=0)
    milestones: list[str] = Field(default_factory=list)

    # Uptime
    started_at: datetime | None = Field(default=None)
    uptime_seconds: float = Field(default=0.0, ge=0.0)

    model_config = {"frozen": True}

    @property
    def action_success_rate(self) -> float:
        """Calculate action success rate (0.0 to 1.0)."""
        if self.actions_total == 0:
            return 0.0
        return self.actions_successful / self.actions_total

    @property
    def fallback_rate(self) -> float:
        """Fraction of decisions that came from a lower-priority strategy."""
        total = sum(self.decisions_by_source.values())
        if total == 0:
            return 0.0
        return self.fallbacks_total / total


@dataclass
class _TimingStats:
    """Internal helper for tracking timing statistics."""

    total_ms: float = 0.0
    count: int = 0

    def record(self, duration_ms: float) -> None:
        self.total_ms += duration_ms
        self.count += 1

    @property
    def average_ms(self) -> float:
        if self.count == 0:
            return 0.0
        return self.total_ms / self.count


class MetricsCollector:
    """Collects metrics during loop execution.

    Thread-safe: the loop writes, monitoring code may read snapshots.
    """

    def __init__(self) -> None:
        """Initialize the metrics collector."""
        self._lock = threading.Lock()
        self.reset()
        logger.debug("MetricsCollector initialized")

    def start(self) -> None:
        """Mark the start of metrics collection."""
        with self._lock:
            self._started_at = datetime.now()

    def reset(self) -> None:
        """Reset all metrics to initial state."""
        with self._lock:
            self._tick_timing = _TimingStats()
            self._observation_timing = _TimingStats()
            self._decision_timing = _TimingStats()
            self._action_timing = _TimingStats()
            self._training_timing = _TimingStats()

            self._decisions_by_source: dict[str, int] = {}
            self._fallbacks = 0

            self._actions_successful = 0
            self._actions_failed = 0
            self._actions_recovered = 0

            self._total_reward = 0.0
            self._last_reward = 0.0
            self._training_steps = 0
            self._last_loss: float | None = None
            self._epsilon: float | None = None

            self._errors_by_type: dict[str, int] = {}

            self._current_phase = ""
            self._deaths = 0
            self._milestones: list[str] = []

            self._started_at: datetime | None = None
            self._tick_times: list[float] = []  # Last 100 tick times for rate calculation

    def record_tick(self, duration_ms: float) -> None:
        """Record a completed tick."""
        with self._lock:
            self._tick_timing.record(duration_ms)
            self._tick_times.append(time.time())
            if len(self._tick_times) > 100:
                self._tick_times = self._tick_times[-100:]

    def record_observation(self, duration_ms: float) -> None:
        """Record the time spent building a Situation."""
        with self._lock:
            self._observation_timing.record(duration_ms)

    def record_decision(self, source: str, duration_ms: float, fallback: bool = False) -> None:
        """Record an accepted decision.

        Args:
            source: Strategy that produced the decision.
            duration_ms: Time spent arbitrating.
            fallback: Whether a higher-priority strategy failed first.
        """
        with self._lock:
            self._decision_timing.record(duration_ms)
            self._decisions_by_source[source] = self._decisions_by_source.get(source, 0) + 1
            if fallback:
                self._fallbacks += 1

    def record_action(self, success: bool, duration_ms: float, recovered: bool = False) -> None:
        """Record an action execution.

        Args:
            success: Whether the action succeeded.
            duration_ms: Duration of action execution in milliseconds.
            recovered: Whether the exploration fallback ran instead.
        """
        with self._lock:
            self._action_timing.record(duration_ms)
            if success:
                self._actions_successful += 1
            else:
                self._actions_failed += 1
            if recovered:
                self._actions_recovered += 1

    def record_reward(self, reward: float) -> None:
        """Record the reward of a tick."""
        with self._lock:
            self._last_reward = reward
            self._total_reward += reward

    def record_training(
        self, duration_ms: float, loss: float | None, epsilon: float | None = None
    ) -> None:
        """Record a training attempt.

        Args:
            duration_ms: Time spent training.
            loss: Loss of a successful step, or None if nothing was trained.
            epsilon: Exploration rate after the step.
        """
        with self._lock:
            self._training_timing.record(duration_ms)
            if loss is not None:
                self._training_steps += 1
                self._last_loss = loss
            if epsilon is not None:
                self._epsilon = epsilon

    def record_error(self, error_type: str) -> None:
        """Record an error caught at the tick boundary."""
        with self._lock:
            self._errors_by_type[error_type] = self._errors_by_type.get(error_type, 0) + 1

    def record_death(self) -> None:
        """Record a death signal from the world."""
        with self._lock:
            self._deaths += 1

    def record_milestone(self, name: str) -> None:
        """Record a newly reached objective."""
        with self._lock:
            if name not in self._milestones:
                self._milestones.append(name)

    def set_phase(self, phase: str) -> None:
        """Set the current phase name."""
        with self._lock:
            self._current_phase = phase

    @contextmanager
    def time_observation(self) -> Iterator[None]:
        """Context manager to time an observation.

        Example:
            >>> with metrics.time_observation():
            ...     situation = observer.observe(...)
        """
        start = time.time()
        try:
            yield
        finally:
            self.record_observation((time.time() - start) * 1000)

    def _calculate_tick_rate(self) -> float:
        if len(self._tick_times) < 2:
            return 0.0
        duration = self._tick_times[-1] - self._tick_times[0]
        if duration <= 0:
            return 0.0
        return (len(self._tick_times) - 1) / duration

    def get_metrics(self) -> AgentMetrics:
        """Get a snapshot of all current metrics."""
        with self._lock:
            uptime = 0.0
            if self._started_at is not None:
                uptime = (datetime.now() - self._started_at).total_seconds()

            return AgentMetrics(
                tick_count=self._tick_timing.count,
                tick_rate_hz=self._calculate_tick_rate(),
                avg_tick_time_ms=self._tick_timing.average_ms,
                avg_observation_time_ms=self._observation_timing.average_ms,
                avg_decision_time_ms=self._decision_timing.average_ms,
                avg_action_time_ms=self._action_timing.average_ms,
                avg_training_time_ms=self._training_timing.average_ms,
                decisions_by_source=dict(self._decisions_by_source),
                fallbacks_total=self._fallbacks,
                actions_total=self._actions_successful + self._actions_failed,
                actions_successful=self._actions_successful,
                actions_failed=self._actions_failed,
                actions_recovered=self._actions_recovered,
                total_reward=self._total_reward,
                last_reward=self._last_reward,
                training_steps=self._training_steps,
                last_loss=self._last_loss,
                epsilon=self._epsilon,
                errors_total=sum(self._errors_by_type.values()),
                errors_by_type=dict(self._errors_by_type),
                current_phase=self._current_phase,
                deaths=self._deaths,
                milestones=list(self._milestones),
                started_at=self._started_at,
                uptime_seconds=uptime,
            )
