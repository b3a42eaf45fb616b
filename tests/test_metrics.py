"""Tests for metrics collection."""

import pytest
from pydantic import ValidationError

from speedrun_agent.core.metrics import AgentMetrics, MetricsCollector


@pytest.fixture
def metrics() -> MetricsCollector:
    collector = MetricsCollector()
    collector.start()
    return collector


class TestDecisions:
    """Tests for decision accounting."""

    def test_counts_by_source(self, metrics):
        metrics.record_decision("learned", 1.0)
        metrics.record_decision("rule_based", 2.0, fallback=True)
        metrics.record_decision("rule_based", 3.0)

        stats = metrics.get_metrics()

        assert stats.decisions_by_source == {"learned": 1, "rule_based": 2}
        assert stats.fallbacks_total == 1
        assert stats.fallback_rate == pytest.approx(1 / 3)
        assert stats.avg_decision_time_ms == pytest.approx(2.0)

    def test_empty_rates(self):
        stats = AgentMetrics()

        assert stats.fallback_rate == 0.0
        assert stats.action_success_rate == 0.0


class TestActions:
    """Tests for action accounting."""

    def test_success_rate(self, metrics):
        metrics.record_action(True, 10.0)
        metrics.record_action(False, 20.0, recovered=True)
        metrics.record_action(True, 30.0)

        stats = metrics.get_metrics()

        assert stats.actions_total == 3
        assert stats.actions_recovered == 1
        assert stats.action_success_rate == pytest.approx(2 / 3)
        assert stats.avg_action_time_ms == pytest.approx(20.0)


class TestLearning:
    """Tests for reward and training accounting."""

    def test_rewards_accumulate(self, metrics):
        metrics.record_reward(1.5)
        metrics.record_reward(-0.5)

        stats = metrics.get_metrics()

        assert stats.total_reward == pytest.approx(1.0)
        assert stats.last_reward == pytest.approx(-0.5)

    def test_skipped_training_not_counted(self, metrics):
        metrics.record_training(5.0, None, epsilon=0.9)
        metrics.record_training(5.0, 0.25, epsilon=0.8)

        stats = metrics.get_metrics()

        assert stats.training_steps == 1
        assert stats.last_loss == 0.25
        assert stats.epsilon == 0.8


class TestProgress:
    """Tests for errors, deaths, milestones and reset."""

    def test_errors_by_type(self, metrics):
        metrics.record_error("ActuationError")
        metrics.record_error("ActuationError")
        metrics.record_error("ValueError")

        stats = metrics.get_metrics()

        assert stats.errors_total == 3
        assert stats.errors_by_type["ActuationError"] == 2

    def test_milestones_unique_in_order(self, metrics):
        for name in ("has_wooden_tools", "has_stone_tools", "has_wooden_tools"):
            metrics.record_milestone(name)

        assert metrics.get_metrics().milestones == ["has_wooden_tools", "has_stone_tools"]

    def test_deaths_and_phase(self, metrics):
        metrics.record_death()
        metrics.set_phase("nether")

        stats = metrics.get_metrics()

        assert stats.deaths == 1
        assert stats.current_phase == "nether"

    def test_time_observation(self, metrics):
        with metrics.time_observation():
            pass

        assert metrics.get_metrics().avg_observation_time_ms >= 0.0

    def test_reset(self, metrics):
        metrics.record_tick(5.0)
        metrics.record_death()

        metrics.reset()
        stats = metrics.get_metrics()

        assert stats.tick_count == 0
        assert stats.deaths == 0
        assert stats.started_at is None

    def test_snapshot_is_frozen(self, metrics):
        stats = metrics.get_metrics()

        with pytest.raises(ValidationError):
            stats.tick_count = 5
