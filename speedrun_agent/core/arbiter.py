"""Policy arbitration: exactly one decision source per tick.

Strategies are tried in priority order (learned, reasoning, rule-based).
Availability is fixed when the arbiter is built; within a tick, a strategy
that raises, times out, or is still busy with an earlier call hands over to
the next one. Falling back is per tick only: the next tick starts again
from the top.

Example:
    >>> arbiter = build_arbiter(planner, learner=learner, reasoning=client)
    >>> decision = arbiter.decide(context)
    >>> decision.source
    <DecisionSource.REASONING: 'reasoning'>
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from speedrun_agent.models.actions import LEARNED_ACTIONS, ActionId
from speedrun_agent.models.decisions import Decision, DecisionSource
from speedrun_agent.models.situation import Situation

if TYPE_CHECKING:
    from speedrun_agent.core.reasoning import ReasoningClient
    from speedrun_agent.learning.learner import ReinforcementLearner
    from speedrun_agent.strategy.phases import Phase
    from speedrun_agent.strategy.planner import PhasePlanner

logger = logging.getLogger(__name__)


class ArbitrationError(Exception):
    """Error raised when no strategy, not even the rule-based one, produced a decision."""

    pass


class StrategyBusyError(Exception):
    """Error raised when a strategy is still running a call from an earlier tick."""

    pass


@dataclass(frozen=True)
class DecisionContext:
    """Inputs shared by every strategy for one tick.

    Attributes:
        situation: Current snapshot.
        state: Encoded situation.
        phase: Current phase.
        available_actions: Actions the learned policy may choose from.
    """

    situation: Situation
    state: np.ndarray
    phase: Phase
    available_actions: tuple[ActionId, ...] = LEARNED_ACTIONS


@dataclass
class ArbiterConfig:
    """Configuration for the policy arbiter.

    Attributes:
        learned_timeout_s: Time allowed for the learned policy per tick.
        reasoning_timeout_s: Time allowed for the reasoning service per tick.
    """

    learned_timeout_s: float = 1.0
    reasoning_timeout_s: float = 15.0


class Strategy(ABC):
    """A decision source.

    Attributes:
        source: Tag recorded on every decision this strategy makes.
        available: Whether the arbiter may use this strategy.
        timeout_s: Per-call time limit, or None to call inline.
    """

    source: DecisionSource

    def __init__(self, available: bool = True, timeout_s: float | None = None) -> None:
        self.available = available
        self.timeout_s = timeout_s

    @abstractmethod
    def propose(self, context: DecisionContext) -> Decision:
        """Produce a decision for this tick.

        Raises:
            Exception: Any failure; the arbiter falls back to the next strategy.
        """
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(available={self.available}, timeout_s={self.timeout_s})"


class LearnedStrategy(Strategy):
    """Epsilon-greedy choice from the learned Q-values."""

    source = DecisionSource.LEARNED

    def __init__(
        self,
        learner: ReinforcementLearner,
        available: bool = True,
        timeout_s: float | None = 1.0,
    ) -> None:
        super().__init__(available, timeout_s)
        self.learner = learner

    def propose(self, context: DecisionContext) -> Decision:
        action = self.learner.select_action(context.state, context.available_actions)
        return Decision(
            action=action,
            source=self.source,
            rationale=f"Q-policy (epsilon={self.learner.epsilon:.3f})",
            confidence=max(0.0, min(1.0, 1.0 - self.learner.epsilon)),
            context={"phase": context.phase.name},
        )


class ReasoningStrategy(Strategy):
    """Ask the reasoning service."""

    source = DecisionSource.REASONING

    def __init__(
        self,
        client: ReasoningClient,
        available: bool = True,
        timeout_s: float | None = 15.0,
    ) -> None:
        super().__init__(available, timeout_s)
        self.client = client

    def propose(self, context: DecisionContext) -> Decision:
        proposal = self.client.request_decision(context.situation)
        confidence = 0.5
        if proposal.priority is not None:
            confidence = max(0.0, min(1.0, proposal.priority / 10))
        return Decision(
            action=proposal.action,
            source=self.source,
            rationale=proposal.rationale,
            confidence=confidence,
            context={"phase": context.phase.name, "parsed_by": proposal.parsed_by},
        )


class RuleBasedStrategy(Strategy):
    """Follow the phase plan."""

    source = DecisionSource.RULE_BASED

    def __init__(self, planner: PhasePlanner) -> None:
        super().__init__(available=True, timeout_s=None)
        self.planner = planner

    def propose(self, context: DecisionContext) -> Decision:
        task = self.planner.next_task(context.phase, context.situation)
        if task is None:
            return Decision(
                action=context.phase.default_action,
                source=self.source,
                rationale=f"All {context.phase.title} tasks done, phase default",
                confidence=0.6,
                context={"phase": context.phase.name},
            )
        return Decision(
            action=task.action,
            source=self.source,
            rationale=f"Next {context.phase.title} task (priority {task.priority})",
            confidence=0.8,
            context={"phase": context.phase.name, "task_count": task.count},
        )


class PolicyArbiter:
    """Select exactly one decision per tick from prioritized strategies.

    Timed strategies run on their own single-worker thread pool so a hung
    call cannot block the loop; a call that outlives its timeout keeps its
    worker, and the strategy counts as busy until it finishes.

    Attributes:
        strategies: Strategies in priority order.
    """

    def __init__(self, strategies: Sequence[Strategy]) -> None:
        """Initialize the arbiter.

        Args:
            strategies: Strategies in priority order. The last one must be a
                RuleBasedStrategy.

        Raises:
            ArbitrationError: If the list does not end with a rule-based strategy.
        """
        if not strategies or not isinstance(strategies[-1], RuleBasedStrategy):
            raise ArbitrationError("Strategy list must end with a RuleBasedStrategy")

        self._strategies = tuple(strategies)
        self._executors: dict[int, ThreadPoolExecutor] = {}
        self._pending: dict[int, Future[Decision]] = {}

        for index, strategy in enumerate(self._strategies):
            if strategy.available and strategy.timeout_s is not None:
                self._executors[index] = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix=f"strategy-{strategy.source.value}"
                )

        logger.info(
            "Arbiter strategies: "
            + ", ".join(
                f"{s.source.value}={'on' if s.available else 'off'}" for s in self._strategies
            )
        )

    @property
    def strategies(self) -> tuple[Strategy, ...]:
        return self._strategies

    def available_sources(self) -> list[DecisionSource]:
        """Sources the arbiter may use, in priority order."""
        return [s.source for s in self._strategies if s.available]

    def select(self, context: DecisionContext) -> Decision:
        """Run strategies in priority order and return the first decision.

        Raises:
            ArbitrationError: If every strategy failed.
        """
        failures: dict[str, str] = {}

        for index, strategy in enumerate(self._strategies):
            if not strategy.available:
                continue
            try:
                decision = self._invoke(index, strategy, context)
            except Exception as e:
                reason = _describe_failure(e, strategy)
                failures[strategy.source.value] = reason
                logger.warning(f"{strategy.source.value} strategy failed this tick: {reason}")
                continue

            if failures:
                decision = decision.model_copy(
                    update={
                        "context": {
                            **decision.context,
                            "fallback_from": list(failures),
                            "failures": failures,
                        }
                    }
                )
            return decision

        raise ArbitrationError(f"No strategy produced a decision: {failures}")

    def decide(self, context: DecisionContext) -> Decision:
        """Select a decision; fall back to the phase default if every strategy fails."""
        try:
            return self.select(context)
        except ArbitrationError as e:
            logger.error(f"Arbitration failed, using phase default: {e}")
            return Decision(
                action=context.phase.default_action,
                source=DecisionSource.RULE_BASED,
                rationale="Phase default after every strategy failed",
                confidence=0.1,
                context={
                    "phase": context.phase.name,
                    "fallback_from": self.available_sources(),
                    "phase_default": True,
                },
            )

    def _invoke(self, index: int, strategy: Strategy, context: DecisionContext) -> Decision:
        executor = self._executors.get(index)
        if executor is None:
            return strategy.propose(context)

        pending = self._pending.get(index)
        if pending is not None:
            if not pending.done():
                raise StrategyBusyError("previous call still running")
            del self._pending[index]

        future = executor.submit(strategy.propose, context)
        try:
            return future.result(timeout=strategy.timeout_s)
        except TimeoutError:
            # The worker keeps running; later ticks see the strategy as busy.
            self._pending[index] = future
            raise

    def close(self) -> None:
        """Shut down strategy worker threads."""
        for executor in self._executors.values():
            executor.shutdown(wait=False, cancel_futures=True)
        self._executors.clear()
        self._pending.clear()

    def __enter__(self) -> PolicyArbiter:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def _describe_failure(error: Exception, strategy: Strategy) -> str:
    if isinstance(error, TimeoutError):
        return f"timed out after {strategy.timeout_s}s"
    if isinstance(error, StrategyBusyError):
        return "busy"
    return f"{type(error).__name__}: {error}"


def build_arbiter(
    planner: PhasePlanner,
    learner: ReinforcementLearner | None = None,
    reasoning: ReasoningClient | None = None,
    config: ArbiterConfig | None = None,
) -> PolicyArbiter:
    """Build an arbiter with availability fixed from the collaborators.

    The learned strategy is available only when a saved model was loaded;
    the reasoning strategy only when its service was reached at startup.

    Args:
        planner: Phase planner for the rule-based strategy.
        learner: Learner, or None to disable the learned strategy.
        reasoning: Initialized reasoning client, or None to disable it.
        config: Timeouts. Uses defaults if None.

    Returns:
        The arbiter.
    """
    config = config or ArbiterConfig()
    strategies: list[Strategy] = []
    if learner is not None:
        strategies.append(
            LearnedStrategy(
                learner, available=learner.model_loaded, timeout_s=config.learned_timeout_s
            )
        )
    if reasoning is not None:
        strategies.append(
            ReasoningStrategy(
                reasoning, available=reasoning.is_available, timeout_s=config.reasoning_timeout_s
            )
        )
    strategies.append(RuleBasedStrategy(planner))
    return PolicyArbiter(strategies)

