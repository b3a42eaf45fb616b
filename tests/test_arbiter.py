"""Tests for the policy arbiter."""

import threading
from unittest.mock import MagicMock

import numpy as np
import pytest
from conftest import make_situation

from speedrun_agent.core.arbiter import (
    ArbiterConfig,
    ArbitrationError,
    DecisionContext,
    LearnedStrategy,
    PolicyArbiter,
    ReasoningStrategy,
    RuleBasedStrategy,
    Strategy,
    build_arbiter,
)
from speedrun_agent.core.reasoning import ReasoningDecision
from speedrun_agent.models.actions import ActionId
from speedrun_agent.models.decisions import Decision, DecisionSource
from speedrun_agent.strategy.planner import PhasePlanner


class _BlockingStrategy(Strategy):
    """Reasoning-tagged strategy that waits on an event before answering."""

    source = DecisionSource.REASONING

    def __init__(self, release: threading.Event, timeout_s: float = 0.05) -> None:
        super().__init__(available=True, timeout_s=timeout_s)
        self.release = release
        self.calls = 0

    def propose(self, context):
        self.calls += 1
        self.release.wait(5)
        return Decision(action=ActionId.EXPLORE, source=self.source)


class _RaisingRuleBased(RuleBasedStrategy):
    def propose(self, context):
        raise RuntimeError("planner broke")


@pytest.fixture
def planner() -> PhasePlanner:
    return PhasePlanner()


@pytest.fixture
def context(planner) -> DecisionContext:
    situation = make_situation()
    return DecisionContext(
        situation=situation,
        state=np.zeros(24, dtype=np.float32),
        phase=planner.phase_at(0),
    )


def _learner(action=ActionId.MINE_STONE, loaded=True):
    learner = MagicMock()
    learner.model_loaded = loaded
    learner.epsilon = 0.2
    learner.select_action.return_value = action
    return learner


def _reasoning(action=ActionId.EXPLORE, available=True):
    client = MagicMock()
    client.is_available = available
    client.request_decision.return_value = ReasoningDecision(
        action=action, rationale="look around", priority=7
    )
    return client


class TestPriorityOrder:
    """Tests for choosing the highest available strategy."""

    def test_learned_first(self, planner, context):
        arbiter = build_arbiter(planner, learner=_learner(), reasoning=_reasoning())

        decision = arbiter.decide(context)

        assert decision.source == DecisionSource.LEARNED
        assert decision.action == ActionId.MINE_STONE
        assert not decision.is_fallback
        arbiter.close()

    def test_reasoning_when_no_model_loaded(self, planner, context):
        arbiter = build_arbiter(planner, learner=_learner(loaded=False), reasoning=_reasoning())

        decision = arbiter.decide(context)

        assert decision.source == DecisionSource.REASONING
        assert decision.confidence == pytest.approx(0.7)
        assert not decision.is_fallback
        arbiter.close()

    def test_rule_based_only(self, planner, context):
        arbiter = build_arbiter(planner)

        decision = arbiter.decide(context)

        assert decision.source == DecisionSource.RULE_BASED
        assert decision.action == ActionId.GATHER_WOOD
        assert arbiter.available_sources() == [DecisionSource.RULE_BASED]

    def test_unavailable_strategy_is_never_called(self, planner, context):
        client = _reasoning(available=False)
        arbiter = build_arbiter(planner, reasoning=client)

        arbiter.decide(context)

        client.request_decision.assert_not_called()


class TestFallback:
    """Tests for per-tick fallback."""

    def test_learned_error_falls_to_reasoning(self, planner, context):
        learner = _learner()
        learner.select_action.side_effect = RuntimeError("nan weights")
        arbiter = build_arbiter(planner, learner=learner, reasoning=_reasoning())

        decision = arbiter.decide(context)

        assert decision.source == DecisionSource.REASONING
        assert decision.is_fallback
        assert decision.context["fallback_from"] == ["learned"]
        assert "nan weights" in decision.context["failures"]["learned"]
        arbiter.close()

    def test_reasoning_timeout_falls_to_rule_based(self, planner, context):
        """Learned unavailable and reasoning hung: the plan decides."""
        release = threading.Event()
        slow = _BlockingStrategy(release)
        arbiter = PolicyArbiter([slow, RuleBasedStrategy(planner)])
        try:
            decision = arbiter.decide(context)
        finally:
            release.set()
            arbiter.close()

        assert decision.source == DecisionSource.RULE_BASED
        assert decision.action == ActionId.GATHER_WOOD
        assert decision.context["fallback_from"] == ["reasoning"]
        assert "timed out" in decision.context["failures"]["reasoning"]

    def test_hung_strategy_is_busy_next_tick(self, planner, context):
        release = threading.Event()
        slow = _BlockingStrategy(release)
        arbiter = PolicyArbiter([slow, RuleBasedStrategy(planner)])
        try:
            arbiter.decide(context)
            second = arbiter.decide(context)
        finally:
            release.set()
            arbiter.close()

        assert slow.calls == 1
        assert second.context["failures"]["reasoning"] == "busy"

    def test_fallback_is_per_tick(self, planner, context):
        client = _reasoning()
        client.request_decision.side_effect = [RuntimeError("503"), client.request_decision.return_value]
        arbiter = build_arbiter(planner, reasoning=client)

        first = arbiter.decide(context)
        second = arbiter.decide(context)

        assert first.source == DecisionSource.RULE_BASED
        assert second.source == DecisionSource.REASONING
        arbiter.close()

    def test_everything_failing_uses_phase_default(self, planner, context):
        arbiter = PolicyArbiter([_RaisingRuleBased(planner)])

        decision = arbiter.decide(context)

        assert decision.action == context.phase.default_action
        assert decision.source == DecisionSource.RULE_BASED
        assert decision.context["phase_default"] is True

    def test_select_raises_when_everything_fails(self, planner, context):
        arbiter = PolicyArbiter([_RaisingRuleBased(planner)])

        with pytest.raises(ArbitrationError):
            arbiter.select(context)


class TestConstruction:
    """Tests for arbiter construction."""

    def test_requires_rule_based_last(self, planner):
        with pytest.raises(ArbitrationError):
            PolicyArbiter([LearnedStrategy(_learner())])

    def test_empty_rejected(self):
        with pytest.raises(ArbitrationError):
            PolicyArbiter([])

    def test_build_arbiter_order_and_timeouts(self, planner):
        config = ArbiterConfig(learned_timeout_s=0.5, reasoning_timeout_s=3.0)
        arbiter = build_arbiter(planner, learner=_learner(), reasoning=_reasoning(), config=config)

        kinds = [type(s) for s in arbiter.strategies]
        assert kinds == [LearnedStrategy, ReasoningStrategy, RuleBasedStrategy]
        assert arbiter.strategies[0].timeout_s == 0.5
        assert arbiter.strategies[1].timeout_s == 3.0
        arbiter.close()

    def test_context_manager_closes(self, planner, context):
        with build_arbiter(planner, reasoning=_reasoning()) as arbiter:
            arbiter.decide(context)
        assert arbiter._executors == {}

    def test_rule_based_phase_done_uses_default(self, planner):
        situation = make_situation(
            inventory={"wood": 10, "cobblestone": 3},
            objectives={"has_wooden_tools": True},
        )
        phase = planner.phase_at(0)
        context = DecisionContext(situation=situation, state=np.zeros(24), phase=phase)

        decision = RuleBasedStrategy(planner).propose(context)

        assert decision.action == phase.default_action
