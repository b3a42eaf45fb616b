"""Situation models: the immutable per-tick snapshot of the world."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, Field

# Resource slots tracked by the encoder and reward model, in encoding order.
RESOURCE_NAMES: tuple[str, ...] = (
    "wood",
    "cobblestone",
    "iron",
    "diamonds",
    "obsidian",
    "ender_pearls",
    "blaze_rods",
    "ender_eyes",
)

# Milestone flags, in encoding order. The last one is the win condition.
OBJECTIVE_NAMES: tuple[str, ...] = (
    "has_wooden_tools",
    "has_stone_tools",
    "has_iron_tools",
    "has_diamonds",
    "entered_nether",
    "found_stronghold",
    "entered_end",
    "killed_dragon",
)

WIN_CONDITION = "killed_dragon"


class Position(BaseModel):
    """A point in world coordinates."""

    x: float = Field(default=0.0, description="East/west coordinate")
    y: float = Field(default=0.0, description="Height")
    z: float = Field(default=0.0, description="North/south coordinate")

    model_config = {"frozen": True}

    def distance_to(self, other: Position) -> float:
        """Euclidean distance to another position."""
        return (
            (self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2
        ) ** 0.5

    def __str__(self) -> str:
        return f"({self.x:.1f}, {self.y:.1f}, {self.z:.1f})"


class Situation(BaseModel):
    """Snapshot of the agent and its progress at one tick.

    Situations are created once per tick by the observer and are never
    mutated afterwards. Missing resource counts read as 0 and missing
    objective flags read as False.
    """

    phase: str = Field(default="", description="Name of the current phase")
    phase_index: Annotated[int, Field(ge=0)] = Field(
        default=0, description="Index of the current phase in the schedule"
    )
    position: Position = Field(default_factory=Position, description="Agent position")
    inventory: dict[str, int] = Field(
        default_factory=dict, description="Resource counts by name"
    )
    objectives: dict[str, bool] = Field(
        default_factory=dict, description="Milestone flags by name"
    )
    elapsed_s: Annotated[float, Field(ge=0.0)] = Field(
        default=0.0, description="Seconds since the run started"
    )
    health: Annotated[float, Field(ge=0.0)] = Field(default=20.0, description="Agent health")
    timestamp: datetime = Field(default_factory=datetime.now, description="Capture time")

    model_config = {"frozen": True}

    def count(self, resource: str) -> int:
        """Get a resource count, 0 when unknown."""
        return int(self.inventory.get(resource, 0))

    def flag(self, objective: str) -> bool:
        """Get an objective flag, False when unknown."""
        return bool(self.objectives.get(objective, False))

    @property
    def is_won(self) -> bool:
        """Check whether the final win condition has been reached."""
        return self.flag(WIN_CONDITION)

    def summary(self) -> dict[str, object]:
        """Compact, JSON-friendly view used in prompts and history."""
        return {
            "phase": self.phase,
            "position": str(self.position),
            "inventory": {k: v for k, v in sorted(self.inventory.items()) if v},
            "objectives": {k: v for k, v in sorted(self.objectives.items()) if v},
            "elapsed_s": round(self.elapsed_s, 1),
            "health": self.health,
        }
