"""Core decision engine package.

This package provides:
- StateEncoder: Situation -> fixed-length state vector
- RewardModel: Shaped reward between two Situations
- ReasoningClient: Client for the generative reasoning service
- PolicyArbiter: Picks one decision source per tick
- SituationObserver: Builds Situations from actuator queries
- DecisionLoop: The observe-decide-act-learn loop
- MetricsCollector: Metrics collection for monitoring
"""

from speedrun_agent.core.arbiter import (
    ArbiterConfig,
    ArbitrationError,
    DecisionContext,
    PolicyArbiter,
    build_arbiter,
)
from speedrun_agent.core.encoder import EncoderConfig, StateEncoder
from speedrun_agent.core.loop import DecisionLoop, LoopConfig, LoopState, RunState, RunSummary
from speedrun_agent.core.metrics import AgentMetrics, MetricsCollector
from speedrun_agent.core.observation import SituationObserver
from speedrun_agent.core.reasoning import (
    ReasoningClient,
    ReasoningConfig,
    ReasoningDecision,
    ReasoningServiceError,
)
from speedrun_agent.core.rewards import RewardModel, RewardWeights

__all__ = [
    "AgentMetrics",
    "ArbiterConfig",
    "ArbitrationError",
    "DecisionContext",
    "DecisionLoop",
    "EncoderConfig",
    "LoopConfig",
    "LoopState",
    "MetricsCollector",
    "PolicyArbiter",
    "ReasoningClient",
    "ReasoningConfig",
    "ReasoningDecision",
    "ReasoningServiceError",
    "RewardModel",
    "RewardWeights",
    "RunState",
    "RunSummary",
    "SituationObserver",
    "StateEncoder",
    "build_arbiter",
]
