"""Shared data models for the speedrun agent.

All models use Pydantic for validation and serialization.
"""

from speedrun_agent.models.actions import LEARNED_ACTIONS, ActionId, parse_action
from speedrun_agent.models.decisions import Decision, DecisionSource
from speedrun_agent.models.situation import (
    OBJECTIVE_NAMES,
    RESOURCE_NAMES,
    WIN_CONDITION,
    Position,
    Situation,
)

__all__ = [
    "ActionId",
    "Decision",
    "DecisionSource",
    "LEARNED_ACTIONS",
    "OBJECTIVE_NAMES",
    "Position",
    "RESOURCE_NAMES",
    "Situation",
    "WIN_CONDITION",
    "parse_action",
]
