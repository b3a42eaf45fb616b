"""Learning package: replay, Q-value models and the online learner."""

from speedrun_agent.learning.checkpoint import PersistenceError
from speedrun_agent.learning.learner import LearnerConfig, ReinforcementLearner, TrainStepResult
from speedrun_agent.learning.network import QValueModel, TorchQModel, TrainingError
from speedrun_agent.learning.replay import ReplayBuffer, Transition

__all__ = [
    "LearnerConfig",
    "PersistenceError",
    "QValueModel",
    "ReinforcementLearner",
    "ReplayBuffer",
    "TorchQModel",
    "TrainStepResult",
    "TrainingError",
    "Transition",
]
