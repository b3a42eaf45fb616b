"""Phase and task records for the speedrun schedule.

The schedule is plain data: an ordered tuple of phases, each holding an
ordered tuple of tasks. Completion predicates are pure functions of a
Situation so the planner can be tested without a world.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from speedrun_agent.models.actions import ActionId
from speedrun_agent.models.situation import Situation

CompletionPredicate = Callable[[Situation], bool]


def never(_situation: Situation) -> bool:
    """Predicate for tasks that are never considered done."""
    return False


def has_at_least(resource: str, count: int) -> CompletionPredicate:
    """Task is done once the inventory holds `count` of `resource`."""

    def predicate(situation: Situation) -> bool:
        return situation.count(resource) >= count

    return predicate


def has_item(item: str) -> CompletionPredicate:
    """Task is done once at least one `item` is held."""
    return has_at_least(item, 1)


def objective_reached(flag: str) -> CompletionPredicate:
    """Task is done once an objective flag is set."""

    def predicate(situation: Situation) -> bool:
        return situation.flag(flag)

    return predicate


def any_of(*predicates: CompletionPredicate) -> CompletionPredicate:
    """Task is done if any of the given predicates holds."""

    def predicate(situation: Situation) -> bool:
        return any(p(situation) for p in predicates)

    return predicate


@dataclass(frozen=True)
class Task:
    """A prioritized unit of work inside a phase.

    Attributes:
        action: Skill to run for this task.
        priority: Higher runs first.
        count: Optional target amount (informational, passed to the skill).
        is_complete: Pure predicate telling whether the task is already done.
    """

    action: ActionId
    priority: int
    count: int | None = None
    is_complete: CompletionPredicate = field(default=never, compare=False)


@dataclass(frozen=True)
class Phase:
    """A named stage of the run.

    Attributes:
        name: Machine-readable identifier.
        title: Human-readable label.
        threshold_s: Elapsed time by which this phase should be finished.
        tasks: Tasks in declaration order.
        default_action: Action to fall back to when no task applies.
    """

    name: str
    title: str
    threshold_s: float
    tasks: tuple[Task, ...]
    default_action: ActionId = ActionId.EXPLORE


DEFAULT_SCHEDULE: tuple[Phase, ...] = (
    Phase(
        name="initial_setup",
        title="Initial Setup",
        threshold_s=2 * 60,
        default_action=ActionId.GATHER_WOOD,
        tasks=(
            Task(ActionId.GATHER_WOOD, priority=10, count=8, is_complete=has_at_least("wood", 8)),
            Task(
                ActionId.CRAFT_CRAFTING_TABLE,
                priority=9,
                is_complete=any_of(has_item("crafting_table"), objective_reached("has_wooden_tools")),
            ),
            Task(
                ActionId.CRAFT_WOODEN_PICKAXE,
                priority=8,
                is_complete=objective_reached("has_wooden_tools"),
            ),
            Task(ActionId.FIND_STONE, priority=7, is_complete=has_item("cobblestone")),
        ),
    ),
    Phase(
        name="stone_tools",
        title="Stone Tools",
        threshold_s=4 * 60,
        default_action=ActionId.MINE_STONE,
        tasks=(
            Task(ActionId.MINE_STONE, priority=10, count=20, is_complete=has_at_least("cobblestone", 20)),
            Task(
                ActionId.CRAFT_STONE_PICKAXE,
                priority=9,
                is_complete=objective_reached("has_stone_tools"),
            ),
            Task(ActionId.CRAFT_STONE_SWORD, priority=8, is_complete=has_item("stone_sword")),
            Task(ActionId.FIND_IRON, priority=7, is_complete=has_item("iron")),
        ),
    ),
    Phase(
        name="iron_tools",
        title="Iron Tools",
        threshold_s=6 * 60,
        default_action=ActionId.MINE_IRON,
        tasks=(
            Task(ActionId.MINE_IRON, priority=10, count=12, is_complete=has_at_least("iron", 12)),
            Task(
                ActionId.CRAFT_IRON_PICKAXE,
                priority=9,
                is_complete=objective_reached("has_iron_tools"),
            ),
            Task(ActionId.CRAFT_BUCKET, priority=8, is_complete=has_item("bucket")),
            Task(ActionId.FIND_DIAMONDS, priority=7, is_complete=objective_reached("has_diamonds")),
        ),
    ),
    Phase(
        name="diamonds",
        title="Diamonds & Nether Prep",
        threshold_s=9 * 60,
        default_action=ActionId.MINE_DIAMONDS,
        tasks=(
            Task(ActionId.MINE_DIAMONDS, priority=10, count=3, is_complete=has_at_least("diamonds", 3)),
            Task(
                ActionId.CRAFT_DIAMOND_PICKAXE,
                priority=9,
                is_complete=has_item("diamond_pickaxe"),
            ),
            Task(
                ActionId.FIND_LAVA,
                priority=8,
                is_complete=any_of(has_at_least("obsidian", 10), objective_reached("entered_nether")),
            ),
            Task(
                ActionId.CREATE_OBSIDIAN,
                priority=7,
                count=10,
                is_complete=any_of(has_at_least("obsidian", 10), objective_reached("entered_nether")),
            ),
            Task(
                ActionId.BUILD_NETHER_PORTAL,
                priority=6,
                is_complete=objective_reached("entered_nether"),
            ),
        ),
    ),
    Phase(
        name="nether",
        title="Nether",
        threshold_s=11 * 60,
        default_action=ActionId.FIND_BLAZE,
        tasks=(
            Task(ActionId.ENTER_NETHER, priority=10, is_complete=objective_reached("entered_nether")),
            Task(ActionId.FIND_FORTRESS, priority=9, is_complete=has_item("blaze_rods")),
            Task(ActionId.KILL_BLAZE, priority=8, count=1, is_complete=has_item("blaze_rods")),
            Task(ActionId.GET_BLAZE_ROD, priority=7, is_complete=has_item("blaze_rods")),
            Task(ActionId.FIND_ENDERMAN, priority=6, is_complete=has_at_least("ender_pearls", 12)),
            Task(
                ActionId.KILL_ENDERMAN,
                priority=5,
                count=12,
                is_complete=has_at_least("ender_pearls", 12),
            ),
            Task(
                ActionId.CRAFT_ENDER_EYES,
                priority=4,
                count=12,
                is_complete=has_at_least("ender_eyes", 12),
            ),
        ),
    ),
    Phase(
        name="stronghold",
        title="Stronghold & End",
        threshold_s=13 * 60,
        default_action=ActionId.FIND_STRONGHOLD,
        tasks=(
            Task(
                ActionId.RETURN_OVERWORLD,
                priority=10,
                is_complete=any_of(
                    objective_reached("found_stronghold"), objective_reached("entered_end")
                ),
            ),
            Task(
                ActionId.USE_ENDER_EYE,
                priority=9,
                is_complete=objective_reached("found_stronghold"),
            ),
            Task(
                ActionId.FIND_STRONGHOLD,
                priority=8,
                is_complete=objective_reached("found_stronghold"),
            ),
            Task(
                ActionId.ACTIVATE_END_PORTAL,
                priority=7,
                is_complete=objective_reached("entered_end"),
            ),
            Task(ActionId.ENTER_END, priority=6, is_complete=objective_reached("entered_end")),
        ),
    ),
    Phase(
        name="dragon",
        title="Ender Dragon",
        threshold_s=15 * 60,
        default_action=ActionId.ATTACK_DRAGON,
        tasks=(
            Task(ActionId.LOCATE_DRAGON, priority=10, is_complete=objective_reached("killed_dragon")),
            Task(ActionId.DESTROY_CRYSTALS, priority=9, is_complete=objective_reached("killed_dragon")),
            Task(ActionId.ATTACK_DRAGON, priority=8, is_complete=objective_reached("killed_dragon")),
            Task(ActionId.KILL_DRAGON, priority=7, is_complete=objective_reached("killed_dragon")),
        ),
    ),
)
