"""Strategy package: the phase schedule and the deterministic planner."""

from speedrun_agent.strategy.phases import DEFAULT_SCHEDULE, Phase, Task
from speedrun_agent.strategy.planner import PhasePlanner

__all__ = [
    "DEFAULT_SCHEDULE",
    "Phase",
    "PhasePlanner",
    "Task",
]
