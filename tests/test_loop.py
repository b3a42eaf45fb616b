"""Tests for the decision loop."""

from unittest.mock import MagicMock

import numpy as np
import pytest
from conftest import FakeActuator

from speedrun_agent.actions.executor import ExecutorConfig, SkillExecutor
from speedrun_agent.core.arbiter import build_arbiter
from speedrun_agent.core.encoder import StateEncoder
from speedrun_agent.core.loop import DecisionLoop, LoopConfig, LoopState, RunState, StopReason
from speedrun_agent.core.observation import SituationObserver
from speedrun_agent.core.rewards import RewardModel
from speedrun_agent.interfaces.actuator import Block, Entity
from speedrun_agent.learning.learner import TrainStepResult
from speedrun_agent.models.actions import LEARNED_ACTIONS, ActionId
from speedrun_agent.models.decisions import Decision, DecisionSource
from speedrun_agent.models.situation import Position
from speedrun_agent.strategy.planner import PhasePlanner


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, step: float = 0.0) -> None:
        self.now = 0.0
        self.step = step

    def __call__(self) -> float:
        value = self.now
        self.now += self.step
        return value


def _learner():
    learner = MagicMock()
    learner.epsilon = 0.5
    learner.actions = LEARNED_ACTIONS
    learner.train_step.return_value = TrainStepResult(loss=0.1, epsilon=0.5, batch_size=4, step=1)
    return learner


def _make_loop(actuator, arbiter=None, learner=None, clock=None, encoder=None, **config):
    planner = PhasePlanner()
    config.setdefault("tick_interval_s", 0.0)
    config.setdefault("error_backoff_s", 0.0)
    config.setdefault("enable_signal_handlers", False)
    return DecisionLoop(
        planner=planner,
        encoder=encoder or StateEncoder(),
        reward_model=RewardModel(),
        arbiter=arbiter or build_arbiter(planner),
        executor=SkillExecutor(actuator, ExecutorConfig(seed=0)),
        observer=SituationObserver(actuator),
        learner=learner,
        config=LoopConfig(**config),
        clock=clock or FakeClock(),
    )


def _scripted_arbiter(*actions):
    arbiter = MagicMock()
    arbiter.decide.side_effect = [
        Decision(action=action, source=DecisionSource.RULE_BASED) for action in actions
    ]
    return arbiter


class TestRunState:
    """Tests for run state bookkeeping."""

    def test_phase_only_moves_forward(self):
        state = RunState()

        assert state.advance_phase(2)
        assert not state.advance_phase(1)
        assert state.phase_index == 2

    def test_reset(self):
        state = RunState(phase_index=4, step=9)

        state.reset()

        assert state.phase_index == 0
        assert state.step == 9
        assert state.last_situation is None

    def test_reset_restarts_phase_clock(self):
        state = RunState(phase_index=4)

        state.reset(elapsed_s=500.0)

        assert state.reset_at_s == 500.0
        assert state.phase_elapsed(530.0) == pytest.approx(30.0)
        assert state.phase_elapsed(100.0) == 0.0


class TestTick:
    """Tests for a single tick."""

    def test_first_tick_gathers_wood(self, actuator):
        learner = _learner()
        loop = _make_loop(actuator, learner=learner)

        result = loop.run_once()

        assert result.step == 1
        assert result.phase == "initial_setup"
        assert result.decision.action == ActionId.GATHER_WOOD
        assert result.decision.source == DecisionSource.RULE_BASED
        assert result.outcome.success
        assert not result.terminal
        assert result.training.loss == 0.1
        learner.record.assert_called_once()
        args = learner.record.call_args.args
        assert args[1] == ActionId.GATHER_WOOD
        assert args[2] == pytest.approx(result.reward)
        assert len(args[0]) == 24

    def test_runs_without_learner(self, actuator):
        loop = _make_loop(actuator)

        result = loop.run_once()

        assert result.training is None
        assert result.reward == pytest.approx(-0.1)

    def test_completed_phase_is_skipped(self):
        actuator = FakeActuator(inventory={"oak_log": 10, "cobblestone": 3, "wooden_pickaxe": 1})
        loop = _make_loop(actuator)

        result = loop.run_once()

        assert result.phase == "stone_tools"
        assert loop.run_state.phase_index == 1
        assert result.decision.action == ActionId.MINE_STONE
        assert loop.metrics.get_metrics().current_phase == "stone_tools"

    def test_death_returns_to_first_phase(self, actuator):
        loop = _make_loop(actuator)
        loop.run_state.phase_index = 3
        actuator.deaths = 1

        result = loop.run_once()

        assert result.phase == "initial_setup"
        assert loop.run_state.phase_index == 0
        assert loop.metrics.get_metrics().deaths == 1

    def test_death_late_in_run_returns_to_first_phase(self, actuator):
        """Elapsed time alone must not skip the phases replayed after a death."""
        clock = FakeClock()
        loop = _make_loop(actuator, clock=clock)
        loop.run_once()
        clock.now = 500.0
        loop.run_state.phase_index = 3
        actuator.deaths = 1

        result = loop.run_once()

        assert result.phase == "initial_setup"
        assert result.decision.action == ActionId.GATHER_WOOD
        assert loop.run_state.phase_index == 0
        assert loop.run_state.reset_at_s == pytest.approx(500.0)

    def test_one_encode_per_tick_after_the_first(self, actuator):
        encoder = MagicMock(wraps=StateEncoder())
        loop = _make_loop(actuator, encoder=encoder)

        loop.run_once()
        assert encoder.encode.call_count == 2

        loop.run_once()
        loop.run_once()
        assert encoder.encode.call_count == 4

    def test_previous_result_is_next_starting_point(self, actuator):
        learner = _learner()
        loop = _make_loop(actuator, learner=learner)

        loop.run_once()
        loop.run_once()

        first, second = learner.record.call_args_list
        np.testing.assert_array_equal(first.args[3], second.args[0])

    def test_train_and_checkpoint_cadence(self, actuator):
        learner = _learner()
        loop = _make_loop(actuator, learner=learner, train_every=2, checkpoint_every=3)

        for _ in range(6):
            loop.run_once()

        assert learner.record.call_count == 6
        assert learner.train_step.call_count == 3
        assert learner.save.call_count == 2

    def test_errors_propagate_from_run_once(self, actuator):
        arbiter = MagicMock()
        arbiter.decide.side_effect = RuntimeError("boom")
        loop = _make_loop(actuator, arbiter=arbiter)

        with pytest.raises(RuntimeError, match="boom"):
            loop.run_once()


class TestRun:
    """Tests for the full loop."""

    def test_stops_on_win(self):
        actuator = FakeActuator(entities=[Entity(1, "ender_dragon", Position(x=0.0, y=80.0, z=0.0))])
        loop = _make_loop(actuator, arbiter=_scripted_arbiter(ActionId.KILL_DRAGON))

        summary = loop.run()

        assert summary.stop_reason == StopReason.WON
        assert summary.won
        assert summary.ticks == 1
        assert summary.total_reward > 900
        assert "killed_dragon" in loop.metrics.get_metrics().milestones
        assert loop.state == LoopState.STOPPED

    def test_max_ticks(self, actuator):
        loop = _make_loop(actuator, max_ticks=3)

        summary = loop.run()

        assert summary.stop_reason == StopReason.MAX_TICKS
        assert summary.ticks == 3
        assert not summary.won

    def test_budget_exhausted(self, actuator):
        loop = _make_loop(actuator, clock=FakeClock(step=100.0), time_budget_s=900.0)

        summary = loop.run()

        assert summary.stop_reason == StopReason.BUDGET_EXHAUSTED
        assert summary.elapsed_s >= 900.0

    def test_error_is_caught_and_run_continues(self, actuator):
        arbiter = MagicMock()
        arbiter.decide.side_effect = [
            RuntimeError("reasoning exploded"),
            Decision(action=ActionId.GATHER_WOOD, source=DecisionSource.RULE_BASED),
        ]
        loop = _make_loop(actuator, arbiter=arbiter, max_ticks=1)

        summary = loop.run()

        stats = loop.metrics.get_metrics()
        assert summary.ticks == 1
        assert stats.errors_by_type == {"RuntimeError": 1}

    def test_stop_during_tick(self, actuator):
        loop = _make_loop(actuator)
        decision = Decision(action=ActionId.EXPLORE, source=DecisionSource.RULE_BASED)

        def decide(_context):
            loop.stop()
            return decision

        arbiter = MagicMock()
        arbiter.decide.side_effect = decide
        loop._arbiter = arbiter

        summary = loop.run()

        assert summary.stop_reason == StopReason.STOPPED
        assert summary.ticks == 1

    def test_metrics_recorded(self):
        actuator = FakeActuator(blocks=[Block("oak_log", Position(x=1.0, y=64.0, z=1.0))])
        loop = _make_loop(actuator, max_ticks=2)

        loop.run()

        stats = loop.metrics.get_metrics()
        assert stats.tick_count == 2
        assert stats.decisions_by_source == {"rule_based": 2}
        assert stats.actions_successful == 1
        assert stats.actions_recovered == 1
