"""Reward shaping for the learned policy.

The reward is a pure function of two consecutive Situations. Terms, in order:

    (a) step penalty        -step_penalty every tick
    (b) resource gains      +weight for each resource whose count went up
    (c) milestone bonuses   +bonus when an objective flag turns on
    (d) terminal bonus      +terminal_bonus when the win flag turns on
    (e) time pressure       -time_penalty * min(elapsed / budget, 1)
"""

from __future__ import annotations

from dataclasses import dataclass, field

from speedrun_agent.models.actions import ActionId
from speedrun_agent.models.situation import WIN_CONDITION, Situation


def _default_resource_weights() -> dict[str, float]:
    return {
        "wood": 1.0,
        "cobblestone": 0.5,
        "iron": 2.0,
        "obsidian": 3.0,
        "ender_pearls": 4.0,
        "blaze_rods": 5.0,
        "ender_eyes": 6.0,
        "diamonds": 10.0,
    }


def _default_milestone_bonuses() -> dict[str, float]:
    return {
        "has_wooden_tools": 5.0,
        "has_stone_tools": 5.0,
        "has_iron_tools": 10.0,
        "has_diamonds": 20.0,
        "entered_nether": 30.0,
        "found_stronghold": 50.0,
        "entered_end": 100.0,
    }


@dataclass
class RewardWeights:
    """Reward magnitudes.

    Attributes:
        step_penalty: Subtracted every tick.
        resource_weights: Bonus per resource whose count increased.
        milestone_bonuses: One-time bonus per objective flag.
        terminal_bonus: Bonus for reaching the win condition.
        time_penalty: Scale of the elapsed-time penalty.
    """

    step_penalty: float = 0.1
    resource_weights: dict[str, float] = field(default_factory=_default_resource_weights)
    milestone_bonuses: dict[str, float] = field(default_factory=_default_milestone_bonuses)
    terminal_bonus: float = 1000.0
    time_penalty: float = 0.1


class RewardModel:
    """Compute the shaped reward between two Situations."""

    def __init__(
        self,
        weights: RewardWeights | None = None,
        time_budget_s: float = 900.0,
        win_condition: str = WIN_CONDITION,
    ) -> None:
        """Initialize the reward model.

        Args:
            weights: Reward magnitudes. Uses defaults if None.
            time_budget_s: Run budget for the time penalty.
            win_condition: Objective flag that ends the run.
        """
        if time_budget_s <= 0:
            raise ValueError(f"time_budget_s must be positive, got {time_budget_s}")
        self._weights = weights or RewardWeights()
        self._time_budget_s = float(time_budget_s)
        self._win_condition = win_condition

    @property
    def weights(self) -> RewardWeights:
        """Get the reward magnitudes."""
        return self._weights

    def breakdown(
        self,
        current: Situation,
        previous: Situation,
        action: ActionId | None = None,  # noqa: ARG002
    ) -> dict[str, float]:
        """Per-term reward values.

        Returns:
            Mapping with keys step, resources, milestones, terminal, time.
        """
        weights = self._weights

        resources = sum(
            weight
            for name, weight in weights.resource_weights.items()
            if current.count(name) > previous.count(name)
        )

        milestones = sum(
            bonus
            for name, bonus in weights.milestone_bonuses.items()
            if name != self._win_condition and current.flag(name) and not previous.flag(name)
        )

        terminal = 0.0
        if current.flag(self._win_condition) and not previous.flag(self._win_condition):
            terminal = weights.terminal_bonus

        time_fraction = min(current.elapsed_s / self._time_budget_s, 1.0)

        return {
            "step": -weights.step_penalty,
            "resources": float(resources),
            "milestones": float(milestones),
            "terminal": terminal,
            "time": -weights.time_penalty * time_fraction,
        }

    def reward(
        self,
        current: Situation,
        previous: Situation,
        action: ActionId | None = None,
    ) -> float:
        """Compute the reward for moving from `previous` to `current`.

        Args:
            current: Snapshot after the action.
            previous: Snapshot before the action.
            action: Action taken (kept for action-dependent shaping).

        Returns:
            Scalar reward.
        """
        terms = self.breakdown(current, previous, action)
        return (
            terms["step"]
            + terms["resources"]
            + terms["milestones"]
            + terms["terminal"]
            + terms["time"]
        )
