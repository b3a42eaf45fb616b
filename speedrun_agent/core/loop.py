"""Decision loop implementation.

This module provides the DecisionLoop class that orchestrates:
- Situation observer and state encoder
- Policy arbiter (learned, reasoning, rule-based)
- Skill executor
- Reward model and online learner

Each tick follows: observe -> encode -> arbitrate -> act -> observe ->
reward -> store -> (every train_every ticks) train. The observed and encoded
result of one tick is the starting snapshot of the next, so a tick only
observes before acting on the first tick and after a death.

Features:
- Single-threaded, at most one actuator call in flight
- Phase index that only moves forward, reset on a death signal
- Errors caught at the tick boundary, followed by a backoff pause
- Graceful shutdown on signals or stop()
- Metrics collection

Example:
    >>> loop = DecisionLoop(
    ...     planner=planner,
    ...     encoder=encoder,
    ...     reward_model=rewards,
    ...     arbiter=arbiter,
    ...     executor=executor,
    ...     observer=observer,
    ...     learner=learner,
    ... )
    >>> summary = loop.run()
    >>> print(f"{summary.stop_reason}: {summary.ticks} ticks, won={summary.won}")
"""

from __future__ import annotations

import logging
import signal
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

import numpy as np

from speedrun_agent.core.arbiter import DecisionContext
from speedrun_agent.core.metrics import MetricsCollector
from speedrun_agent.models.actions import LEARNED_ACTIONS
from speedrun_agent.models.situation import OBJECTIVE_NAMES, Situation

if TYPE_CHECKING:
    from speedrun_agent.actions.executor import ActionOutcome, SkillExecutor
    from speedrun_agent.core.arbiter import PolicyArbiter
    from speedrun_agent.core.encoder import StateEncoder
    from speedrun_agent.core.observation import SituationObserver
    from speedrun_agent.core.rewards import RewardModel
    from speedrun_agent.learning.learner import ReinforcementLearner, TrainStepResult
    from speedrun_agent.models.decisions import Decision
    from speedrun_agent.strategy.planner import PhasePlanner

logger = logging.getLogger(__name__)


class LoopState(StrEnum):
    """Possible states of the decision loop."""

    STOPPED = "stopped"
    RUNNING = "running"
    STOPPING = "stopping"


class StopReason(StrEnum):
    """Why a run ended."""

    WON = "won"
    BUDGET_EXHAUSTED = "budget_exhausted"
    MAX_TICKS = "max_ticks"
    STOPPED = "stopped"


@dataclass
class LoopConfig:
    """Configuration for the decision loop.

    Attributes:
        time_budget_s: Wall-clock budget of the run.
        tick_interval_s: Minimum time per tick.
        train_every: Train once every N ticks.
        error_backoff_s: Pause after a tick that raised.
        checkpoint_every: Save the model every N ticks (0 disables).
        max_ticks: Stop after this many ticks, if set.
        enable_signal_handlers: Whether to install SIGINT/SIGTERM handlers.
    """

    time_budget_s: float = 900.0
    tick_interval_s: float = 0.5
    train_every: int = 1
    error_backoff_s: float = 1.0
    checkpoint_every: int = 200
    max_ticks: int | None = None
    enable_signal_handlers: bool = True


@dataclass
class RunState:
    """Mutable state of one run, owned by the loop.

    Attributes:
        phase_index: Highest phase reached since the last reset.
        epsilon: Learner exploration rate after the last tick.
        step: Ticks completed.
        reset_at_s: Elapsed time of the last reset; phase timing counts from here.
        last_situation: Snapshot observed at the end of the previous tick.
        last_state: Encoding of last_situation.
    """

    phase_index: int = 0
    epsilon: float = 1.0
    step: int = 0
    reset_at_s: float = 0.0
    last_situation: Situation | None = None
    last_state: np.ndarray | None = None

    def phase_elapsed(self, elapsed_s: float) -> float:
        """Elapsed time counted from the last reset."""
        return max(0.0, elapsed_s - self.reset_at_s)

    def advance_phase(self, index: int) -> bool:
        """Move the phase index forward; lower indices are ignored.

        Returns:
            True if the index changed.
        """
        if index > self.phase_index:
            self.phase_index = index
            return True
        return False

    def reset(self, elapsed_s: float = 0.0) -> None:
        """Return to the first phase after a death signal.

        Args:
            elapsed_s: Run time at the reset. Time-based phase selection
                restarts from here.
        """
        self.phase_index = 0
        self.reset_at_s = elapsed_s
        self.last_situation = None
        self.last_state = None


@dataclass(frozen=True)
class TickResult:
    """Everything that happened in one tick."""

    step: int
    phase: str
    decision: Decision
    outcome: ActionOutcome
    reward: float
    terminal: bool
    situation: Situation
    training: TrainStepResult | None = None


@dataclass(frozen=True)
class RunSummary:
    """Final report of a run."""

    stop_reason: StopReason
    ticks: int
    elapsed_s: float
    won: bool
    final_phase: str
    total_reward: float


class DecisionLoop:
    """Drive the agent one decision per tick until win, budget or stop.

    Attributes:
        state: Current loop state.
        run_state: Phase index, epsilon, step and last snapshot.
        metrics: Metrics collector instance.
    """

    def __init__(
        self,
        planner: PhasePlanner,
        encoder: StateEncoder,
        reward_model: RewardModel,
        arbiter: PolicyArbiter,
        executor: SkillExecutor,
        observer: SituationObserver,
        learner: ReinforcementLearner | None = None,
        metrics: MetricsCollector | None = None,
        config: LoopConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the decision loop.

        Args:
            planner: Phase planner.
            encoder: Situation -> state vector encoder.
            reward_model: Reward shaping.
            arbiter: Picks one decision per tick.
            executor: Runs the chosen action.
            observer: Builds Situations from the actuator.
            learner: Online learner. Transitions are not stored if None.
            metrics: Metrics collector. Creates new one if None.
            config: Loop configuration. Uses defaults if None.
            clock: Monotonic time source in seconds.
        """
        self._planner = planner
        self._encoder = encoder
        self._reward_model = reward_model
        self._arbiter = arbiter
        self._executor = executor
        self._observer = observer
        self._learner = learner
        self._metrics = metrics or MetricsCollector()
        self._config = config or LoopConfig()
        self._clock = clock

        self._state = LoopState.STOPPED
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._started_at: float | None = None
        self._total_reward = 0.0

        self.run_state = RunState(epsilon=learner.epsilon if learner is not None else 0.0)
        self._available_actions = learner.actions if learner is not None else LEARNED_ACTIONS

        logger.debug(
            f"DecisionLoop initialized: budget={self._config.time_budget_s}s, "
            f"train_every={self._config.train_every}"
        )

    @property
    def state(self) -> LoopState:
        """Get the current loop state."""
        with self._state_lock:
            return self._state

    @property
    def metrics(self) -> MetricsCollector:
        """Get the metrics collector."""
        return self._metrics

    def _set_state(self, new_state: LoopState) -> None:
        with self._state_lock:
            old_state = self._state
            self._state = new_state
        if old_state != new_state:
            logger.info(f"Loop state: {old_state.value} -> {new_state.value}")

    def elapsed(self) -> float:
        """Seconds since the run started (0 before it starts)."""
        if self._started_at is None:
            return 0.0
        return max(0.0, self._clock() - self._started_at)

    def stop(self) -> None:
        """Ask the loop to stop after the current tick."""
        if self.state == LoopState.RUNNING:
            self._set_state(LoopState.STOPPING)
        self._stop_event.set()

    def run(self) -> RunSummary:
        """Run ticks until win, budget exhaustion, max_ticks or stop().

        Returns:
            Summary of the run.

        Raises:
            RuntimeError: If the loop is already running.
        """
        if self.state != LoopState.STOPPED:
            raise RuntimeError(f"Loop is already {self.state.value}")

        previous_handlers = self._install_signal_handlers() if self._config.enable_signal_handlers else {}
        self._stop_event.clear()
        self._metrics.start()
        self._started_at = self._clock()
        self._set_state(LoopState.RUNNING)
        won = False

        try:
            while True:
                reason = self._check_stop()
                if reason is not None:
                    break

                tick_start = self._clock()
                try:
                    result = self._tick()
                except Exception as e:
                    logger.exception(f"Tick failed: {e}")
                    self._metrics.record_error(type(e).__name__)
                    self._stop_event.wait(self._config.error_backoff_s)
                    continue

                self._metrics.record_tick((self._clock() - tick_start) * 1000)
                if result.situation.is_won:
                    won = True
                    reason = StopReason.WON
                    break

                remaining = self._config.tick_interval_s - (self._clock() - tick_start)
                if remaining > 0:
                    self._stop_event.wait(remaining)
        finally:
            self._restore_signal_handlers(previous_handlers)
            self._set_state(LoopState.STOPPED)

        summary = RunSummary(
            stop_reason=reason,
            ticks=self.run_state.step,
            elapsed_s=self.elapsed(),
            won=won,
            final_phase=self._planner.phase_at(self.run_state.phase_index).name,
            total_reward=self._total_reward,
        )
        logger.info(
            f"Run ended ({summary.stop_reason}): {summary.ticks} ticks, "
            f"{summary.elapsed_s:.0f}s, phase={summary.final_phase}, "
            f"reward={summary.total_reward:.1f}"
        )
        return summary

    def _check_stop(self) -> StopReason | None:
        if self._stop_event.is_set():
            return StopReason.STOPPED
        if self.elapsed() >= self._config.time_budget_s:
            return StopReason.BUDGET_EXHAUSTED
        if self._config.max_ticks is not None and self.run_state.step >= self._config.max_ticks:
            return StopReason.MAX_TICKS
        return None

    def run_once(self) -> TickResult:
        """Run a single tick manually.

        Useful for testing or step-by-step execution. Errors propagate.

        Raises:
            RuntimeError: If the loop is currently running.
        """
        if self.state == LoopState.RUNNING:
            raise RuntimeError("Cannot run_once while loop is running")
        if self._started_at is None:
            self._started_at = self._clock()
        return self._tick()

    def _tick(self) -> TickResult:
        """Run one observe-decide-act-learn cycle."""
        run_state = self.run_state

        if self._observer.death_signalled():
            logger.warning(f"Death signal at step {run_state.step}, returning to first phase")
            run_state.reset(self.elapsed())
            self._observer.reset()
            self._metrics.record_death()

        # Observe: the previous tick's result is this tick's starting point
        elapsed = self.elapsed()
        situation, state = run_state.last_situation, run_state.last_state
        if situation is None or state is None:
            with self._metrics.time_observation():
                situation = self._observer.observe(
                    self._planner.phase_at(run_state.phase_index), run_state.phase_index, elapsed
                )
            situation = self._advance_phase(situation, elapsed)
            state = self._encoder.encode(situation)
        else:
            advanced = self._advance_phase(situation, elapsed)
            if advanced is not situation:
                situation = advanced
                state = self._encoder.encode(situation)
        phase = self._planner.phase_at(run_state.phase_index)
        self._metrics.set_phase(phase.name)

        # Decide
        decide_start = time.time()
        decision = self._arbiter.decide(
            DecisionContext(situation, state, phase, available_actions=self._available_actions)
        )
        self._metrics.record_decision(
            decision.source.value, (time.time() - decide_start) * 1000, fallback=decision.is_fallback
        )

        # Act
        outcome = self._executor.execute(decision.action)
        self._metrics.record_action(outcome.success, outcome.duration_ms, recovered=outcome.fallback)
        self._observer.record_milestones(outcome.milestones)

        # Observe the result
        next_elapsed = self.elapsed()
        with self._metrics.time_observation():
            next_situation = self._observer.observe(phase, run_state.phase_index, next_elapsed)
        for name in OBJECTIVE_NAMES:
            if next_situation.flag(name) and not situation.flag(name):
                self._metrics.record_milestone(name)

        reward = self._reward_model.reward(next_situation, situation, decision.action)
        terminal = next_situation.is_won or next_elapsed >= self._config.time_budget_s
        next_situation = self._advance_phase(next_situation, next_elapsed)
        next_state = self._encoder.encode(next_situation)
        self._total_reward += reward
        self._metrics.record_reward(reward)

        run_state.step += 1
        run_state.last_situation = next_situation
        run_state.last_state = next_state

        training = None
        if self._learner is not None:
            self._learner.record(state, decision.action, reward, next_state, terminal)
            if run_state.step % self._config.train_every == 0:
                train_start = time.time()
                training = self._learner.train_step()
                self._metrics.record_training(
                    (time.time() - train_start) * 1000,
                    training.loss if training is not None else None,
                    self._learner.epsilon,
                )
            run_state.epsilon = self._learner.epsilon
            if self._config.checkpoint_every and run_state.step % self._config.checkpoint_every == 0:
                self._learner.save()

        logger.info(
            f"Tick {run_state.step}: phase={phase.name} action={decision.action} "
            f"source={decision.source} success={outcome.success} "
            f"reward={reward:.2f} epsilon={run_state.epsilon:.3f}"
        )

        return TickResult(
            step=run_state.step,
            phase=phase.name,
            decision=decision,
            outcome=outcome,
            reward=reward,
            terminal=terminal,
            situation=next_situation,
            training=training,
        )

    def _advance_phase(self, situation: Situation, elapsed: float) -> Situation:
        """Move the run forward past completed or overdue phases.

        Returns:
            The situation, relabelled with the new phase if the index moved.
        """
        run_state = self.run_state
        index = self._planner.resolve_phase_index(
            run_state.phase_elapsed(elapsed), situation, floor=run_state.phase_index
        )
        if not run_state.advance_phase(index):
            return situation
        phase = self._planner.phase_at(index)
        logger.info(f"Entering phase {index + 1}/{self._planner.phase_count}: {phase.title}")
        return situation.model_copy(update={"phase": phase.name, "phase_index": index})

    def _install_signal_handlers(self) -> dict[int, object]:
        """Install signal handlers for graceful shutdown; returns the previous ones."""
        def signal_handler(signum: int, _frame: object) -> None:
            sig_name = signal.Signals(signum).name
            logger.info(f"Received {sig_name}, stopping after this tick...")
            self.stop()

        previous: dict[int, object] = {}
        try:
            for signum in (signal.SIGINT, signal.SIGTERM):
                previous[signum] = signal.signal(signum, signal_handler)
            logger.debug("Signal handlers installed")
        except ValueError:
            # Can only set handlers in main thread
            logger.debug("Could not install signal handlers (not main thread)")
        return previous

    def _restore_signal_handlers(self, previous: dict[int, object]) -> None:
        for signum, handler in previous.items():
            if handler is not None:
                signal.signal(signum, handler)
