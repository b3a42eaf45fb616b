"""Actions package: turning action ids into actuator calls."""

from speedrun_agent.actions.executor import ActionOutcome, ExecutorConfig, SkillExecutor

__all__ = [
    "ActionOutcome",
    "ExecutorConfig",
    "SkillExecutor",
]
