"""Runtime container used by CLI commands."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from speedrun_agent.actions.executor import ExecutorConfig, SkillExecutor
from speedrun_agent.config.loader import Config
from speedrun_agent.core.arbiter import ArbiterConfig, PolicyArbiter, build_arbiter
from speedrun_agent.core.encoder import EncoderConfig, StateEncoder
from speedrun_agent.core.loop import DecisionLoop, LoopConfig, RunSummary
from speedrun_agent.core.metrics import MetricsCollector
from speedrun_agent.core.observation import SituationObserver
from speedrun_agent.core.reasoning import ReasoningClient, ReasoningConfig
from speedrun_agent.core.rewards import RewardModel, RewardWeights
from speedrun_agent.interfaces.actuator import Actuator
from speedrun_agent.learning.learner import LearnerConfig, ReinforcementLearner
from speedrun_agent.strategy.planner import PhasePlanner

logger = logging.getLogger(__name__)


@dataclass
class AgentRuntime:
    """Runtime wrapper for an assembled agent session."""

    loop: DecisionLoop
    arbiter: PolicyArbiter
    metrics: MetricsCollector
    learner: ReinforcementLearner | None = None
    reasoning: ReasoningClient | None = None

    def run(self) -> RunSummary:
        """Run the loop to completion, then shut down."""
        try:
            return self.loop.run()
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Stop strategy workers and save the model."""
        self.arbiter.close()
        if self.learner is not None:
            self.learner.save()


def build_learner(config: Config) -> ReinforcementLearner | None:
    """Build the learner and restore its checkpoint, or None if learning is disabled."""
    if not config.learner.enabled:
        return None
    learner = ReinforcementLearner(
        LearnerConfig(
            state_size=config.encoder.state_size,
            **config.learner.model_dump(exclude={"enabled"}),
        )
    )
    learner.load()
    return learner


def build_reasoning(config: Config) -> ReasoningClient | None:
    """Build and initialize the reasoning client, or None if reasoning is disabled."""
    if not config.reasoning.enabled:
        return None
    client = ReasoningClient(ReasoningConfig(**config.reasoning.model_dump(exclude={"enabled"})))
    client.initialize()
    return client


def build_runtime(config: Config, actuator: Actuator) -> AgentRuntime:
    """Assemble every component around an actuator."""
    planner = PhasePlanner()
    encoder = StateEncoder(
        EncoderConfig(**config.encoder.model_dump()),
        time_budget_s=config.run.time_budget_s,
        phase_count=planner.phase_count,
    )
    rewards = RewardModel(
        RewardWeights(**config.rewards.model_dump()),
        time_budget_s=config.run.time_budget_s,
    )
    learner = build_learner(config)
    reasoning = build_reasoning(config)
    arbiter = build_arbiter(
        planner,
        learner=learner,
        reasoning=reasoning,
        config=ArbiterConfig(**config.arbiter.model_dump()),
    )
    metrics = MetricsCollector()

    loop = DecisionLoop(
        planner=planner,
        encoder=encoder,
        reward_model=rewards,
        arbiter=arbiter,
        executor=SkillExecutor(actuator, ExecutorConfig(**config.actuator.model_dump())),
        observer=SituationObserver(actuator),
        learner=learner,
        metrics=metrics,
        config=LoopConfig(**config.run.model_dump()),
    )

    logger.info(
        "Runtime ready: sources="
        + ", ".join(source.value for source in arbiter.available_sources())
    )
    return AgentRuntime(
        loop=loop, arbiter=arbiter, metrics=metrics, learner=learner, reasoning=reasoning
    )
