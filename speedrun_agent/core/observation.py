"""Situation observer: actuator queries -> one immutable Situation per tick.

This module turns raw world state into the agent's view of its progress:
- Item names are aggregated into resource counts (any log counts as wood)
- Tool and diamond flags are derived from the inventory
- Nether and End flags are derived from the current dimension
- Milestones reported by the skill executor are latched

Example:
    >>> observer = SituationObserver(actuator)
    >>> situation = observer.observe(phase, phase_index=0, elapsed_s=12.5)
    >>> situation.count("wood")
    4
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from speedrun_agent.models.situation import OBJECTIVE_NAMES, RESOURCE_NAMES, Situation

if TYPE_CHECKING:
    from speedrun_agent.interfaces.actuator import Actuator
    from speedrun_agent.strategy.phases import Phase

logger = logging.getLogger(__name__)


# Exact item name -> resource slot
ITEM_RESOURCES: dict[str, str] = {
    "cobblestone": "cobblestone",
    "iron_ingot": "iron",
    "raw_iron": "iron",
    "iron_ore": "iron",
    "deepslate_iron_ore": "iron",
    "diamond": "diamonds",
    "obsidian": "obsidian",
    "ender_pearl": "ender_pearls",
    "blaze_rod": "blaze_rods",
    "ender_eye": "ender_eyes",
}

# Crafted equipment reported under its own name
EQUIPMENT_ITEMS: frozenset[str] = frozenset(
    {
        "crafting_table",
        "wooden_pickaxe",
        "stone_pickaxe",
        "iron_pickaxe",
        "diamond_pickaxe",
        "stone_sword",
        "iron_sword",
        "bucket",
        "water_bucket",
        "flint_and_steel",
        "blaze_powder",
    }
)

# Objective flag -> items any one of which sets it
TOOL_FLAGS: dict[str, tuple[str, ...]] = {
    "has_wooden_tools": ("wooden_pickaxe",),
    "has_stone_tools": ("stone_pickaxe",),
    "has_iron_tools": ("iron_pickaxe",),
}

DIMENSION_FLAGS: dict[str, str] = {
    "the_nether": "entered_nether",
    "the_end": "entered_end",
}

# Flags tied to items the agent drops on death
INVENTORY_FLAGS = frozenset({*TOOL_FLAGS, "has_diamonds"})


def aggregate_inventory(items: dict[str, int]) -> dict[str, int]:
    """Collapse item names into resource counts.

    Args:
        items: Raw inventory as item name -> count.

    Returns:
        Count for every resource slot (0 when absent), plus any held
        equipment item under its own name.
    """
    counts = dict.fromkeys(RESOURCE_NAMES, 0)
    for name, count in items.items():
        if count <= 0:
            continue
        if name.endswith("_log"):
            counts["wood"] += count
            continue
        resource = ITEM_RESOURCES.get(name)
        if resource is not None:
            counts[resource] += count
        elif name in EQUIPMENT_ITEMS:
            counts[name] = counts.get(name, 0) + count
    return counts


class SituationObserver:
    """Build Situations from actuator queries.

    Objective flags are latched: once seen they stay set until reset(),
    so losing a pickaxe or leaving the Nether does not undo progress.
    """

    def __init__(self, actuator: Actuator) -> None:
        self._actuator = actuator
        self._latched: set[str] = set()

    @property
    def latched(self) -> frozenset[str]:
        """Objective flags reached so far."""
        return frozenset(self._latched)

    def record_milestones(self, names: Iterable[str]) -> list[str]:
        """Latch milestones reported by the skill executor.

        Args:
            names: Objective names. Unknown names are ignored.

        Returns:
            The names that were not latched before.
        """
        new = []
        for name in names:
            if name not in OBJECTIVE_NAMES:
                logger.debug(f"Ignoring unknown milestone: {name}")
                continue
            if name not in self._latched:
                self._latched.add(name)
                new.append(name)
                logger.info(f"Milestone reached: {name}")
        return new

    def death_signalled(self) -> bool:
        """Check (and consume) the actuator's death signal."""
        return self._actuator.consume_death_signal()

    def reset(self) -> None:
        """Forget inventory-derived flags after a death.

        World progress (dimensions visited, stronghold, dragon) is kept.
        """
        self._latched -= INVENTORY_FLAGS

    def observe(self, phase: Phase, phase_index: int, elapsed_s: float) -> Situation:
        """Capture the current Situation.

        Args:
            phase: Current phase.
            phase_index: Index of the phase in the schedule.
            elapsed_s: Seconds since the run started.

        Returns:
            A frozen snapshot.
        """
        items = self._actuator.query_inventory()
        position = self._actuator.query_position()
        health = self._actuator.query_health()
        dimension = self._actuator.query_dimension()

        inventory = aggregate_inventory(items)

        for flag, tools in TOOL_FLAGS.items():
            if any(items.get(tool, 0) > 0 for tool in tools):
                self._latch(flag)
        if inventory["diamonds"] > 0:
            self._latch("has_diamonds")
        dimension_flag = DIMENSION_FLAGS.get(dimension)
        if dimension_flag is not None:
            self._latch(dimension_flag)

        return Situation(
            phase=phase.name,
            phase_index=phase_index,
            position=position,
            inventory=inventory,
            objectives={name: name in self._latched for name in OBJECTIVE_NAMES},
            elapsed_s=max(0.0, elapsed_s),
            health=max(0.0, float(health)),
        )

    def _latch(self, flag: str) -> None:
        if flag not in self._latched:
            self._latched.add(flag)
            logger.info(f"Milestone reached: {flag}")
