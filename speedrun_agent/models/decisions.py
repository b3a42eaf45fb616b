"""Decision models for representing the output of a decision strategy."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any

from pydantic import BaseModel, Field

from speedrun_agent.models.actions import ActionId


class DecisionSource(StrEnum):
    """Which strategy produced a decision."""

    LEARNED = "learned"
    REASONING = "reasoning"
    RULE_BASED = "rule_based"


class Decision(BaseModel):
    """A decision accepted for one tick.

    Exactly one decision is accepted per tick; it records which strategy
    produced it and why.
    """

    action: ActionId = Field(..., description="The action to take")
    source: DecisionSource = Field(..., description="Strategy that produced the decision")
    rationale: str = Field(default="", description="Why this action was chosen")
    confidence: Annotated[float, Field(ge=0.0, le=1.0)] = Field(
        default=0.5, description="Confidence in this decision (0.0 to 1.0)"
    )
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When decision was made",
    )
    context: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional context used in decision",
    )

    model_config = {"frozen": True}

    @property
    def is_fallback(self) -> bool:
        """Check if this decision came from a lower-priority strategy than preferred."""
        return bool(self.context.get("fallback_from"))
