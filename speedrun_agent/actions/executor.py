"""Skill executor: action ids -> sequences of actuator primitives.

Each skill does one bounded unit of work per call (mine one block, craft
one recipe, fight one target). Progress toward a task's target count comes
from running the skill on later ticks.

A skill that fails (primitive returned False, target not found, or
ActuationError) is recovered by running the exploration skill instead; the
failure is reported in the outcome and never raised.

Example:
    >>> executor = SkillExecutor(actuator)
    >>> outcome = executor.execute(ActionId.GATHER_WOOD)
    >>> print(f"Success: {outcome.success}, fallback: {outcome.fallback}")
"""

from __future__ import annotations

import logging
import math
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from speedrun_agent.core.observation import aggregate_inventory
from speedrun_agent.interfaces.actuator import ActuationError, Actuator, Block, Entity
from speedrun_agent.models.actions import ActionId
from speedrun_agent.models.situation import Position

logger = logging.getLogger(__name__)

LOG_SUFFIX = "_log"
STONE_BLOCKS = frozenset({"stone", "cobblestone", "deepslate", "cobbled_deepslate"})
IRON_ORES = frozenset({"iron_ore", "deepslate_iron_ore"})
DIAMOND_ORES = frozenset({"diamond_ore", "deepslate_diamond_ore"})

# Best tool first
PICKAXES = ("diamond_pickaxe", "iron_pickaxe", "stone_pickaxe", "wooden_pickaxe")
SWORDS = ("diamond_sword", "iron_sword", "stone_sword", "wooden_sword")


class SkillFailed(Exception):
    """Error raised inside a skill when a primitive reports failure."""

    pass


@dataclass
class ExecutorConfig:
    """Configuration for the skill executor.

    Attributes:
        navigation_timeout_s: Time limit of each navigate_to call.
        search_radius: Radius for block and entity searches.
        explore_radius: Maximum distance of a random exploration step.
        max_strikes: Strike cap per attack.
        seed: Seed for exploration targets.
    """

    navigation_timeout_s: float = 30.0
    search_radius: float = 64.0
    explore_radius: float = 20.0
    max_strikes: int = 20
    seed: int | None = None


@dataclass(frozen=True)
class ActionOutcome:
    """Result of executing one action.

    Attributes:
        action: Action that was requested.
        success: Whether the requested skill succeeded.
        duration_ms: Wall time spent, fallback included.
        error: Failure description, if any.
        fallback: Whether exploration ran in place of the skill.
        milestones: Objectives the skill observed being reached.
    """

    action: ActionId
    success: bool
    duration_ms: float = 0.0
    error: str | None = None
    fallback: bool = False
    milestones: tuple[str, ...] = field(default_factory=tuple)


class SkillExecutor:
    """Run skills against an Actuator, one primitive call at a time."""

    def __init__(self, actuator: Actuator, config: ExecutorConfig | None = None) -> None:
        """Initialize the executor.

        Args:
            actuator: World interface.
            config: Executor configuration. Uses defaults if None.
        """
        self._actuator = actuator
        self._config = config or ExecutorConfig()
        self._rng = random.Random(self._config.seed)
        self._milestones: list[str] = []

        mine_stone = lambda: self._mine_nearest(lambda b: b.name in STONE_BLOCKS)  # noqa: E731
        mine_iron = lambda: self._mine_nearest(lambda b: b.name in IRON_ORES)  # noqa: E731
        mine_diamonds = lambda: self._mine_nearest(lambda b: b.name in DIAMOND_ORES)  # noqa: E731
        hunt_blaze = lambda: self._hunt("blaze")  # noqa: E731
        hunt_enderman = lambda: self._hunt("enderman")  # noqa: E731
        attack_dragon = lambda: self._attack_dragon()  # noqa: E731

        self._skills: dict[ActionId, Callable[[], None]] = {
            ActionId.GATHER_WOOD: lambda: self._mine_nearest(lambda b: b.name.endswith(LOG_SUFFIX)),
            ActionId.CRAFT_TOOLS: self._craft_next_tool,
            ActionId.MINE_STONE: mine_stone,
            ActionId.MINE_IRON: mine_iron,
            ActionId.MINE_DIAMONDS: mine_diamonds,
            ActionId.EXPLORE: self._explore,
            ActionId.CRAFT_ITEM: self._craft_next_item,
            ActionId.ENTER_NETHER: lambda: self._travel_to_block("nether_portal"),
            ActionId.FIND_BLAZE: hunt_blaze,
            ActionId.FIND_STRONGHOLD: self._find_stronghold,
            ActionId.CRAFT_CRAFTING_TABLE: lambda: self._craft("crafting_table"),
            ActionId.CRAFT_WOODEN_PICKAXE: lambda: self._craft("wooden_pickaxe"),
            ActionId.FIND_STONE: mine_stone,
            ActionId.CRAFT_STONE_PICKAXE: lambda: self._craft("stone_pickaxe"),
            ActionId.CRAFT_STONE_SWORD: lambda: self._craft("stone_sword"),
            ActionId.FIND_IRON: mine_iron,
            ActionId.CRAFT_IRON_PICKAXE: lambda: self._craft("iron_pickaxe"),
            ActionId.CRAFT_BUCKET: lambda: self._craft("bucket"),
            ActionId.FIND_DIAMONDS: mine_diamonds,
            ActionId.CRAFT_DIAMOND_PICKAXE: lambda: self._craft("diamond_pickaxe"),
            ActionId.FIND_LAVA: lambda: self._travel_to_block("lava"),
            ActionId.CREATE_OBSIDIAN: self._create_obsidian,
            ActionId.BUILD_NETHER_PORTAL: self._light_portal,
            ActionId.FIND_FORTRESS: lambda: self._travel_to_block("nether_bricks"),
            ActionId.KILL_BLAZE: hunt_blaze,
            ActionId.GET_BLAZE_ROD: hunt_blaze,
            ActionId.FIND_ENDERMAN: lambda: self._approach_entity("enderman"),
            ActionId.KILL_ENDERMAN: hunt_enderman,
            ActionId.CRAFT_ENDER_EYES: self._craft_ender_eye,
            ActionId.RETURN_OVERWORLD: self._return_overworld,
            ActionId.USE_ENDER_EYE: self._throw_ender_eye,
            ActionId.ACTIVATE_END_PORTAL: self._activate_end_portal,
            ActionId.ENTER_END: lambda: self._travel_to_block("end_portal"),
            ActionId.LOCATE_DRAGON: lambda: self._approach_entity("ender_dragon"),
            ActionId.DESTROY_CRYSTALS: lambda: self._hunt("end_crystal"),
            ActionId.ATTACK_DRAGON: attack_dragon,
            ActionId.KILL_DRAGON: attack_dragon,
        }

        logger.debug(f"SkillExecutor initialized with {type(actuator).__name__}")

    @property
    def supported_actions(self) -> frozenset[ActionId]:
        """Actions with a skill implementation."""
        return frozenset(self._skills)

    def execute(self, action: ActionId) -> ActionOutcome:
        """Run the skill for an action.

        Args:
            action: Action to perform.

        Returns:
            The outcome. ActuationError and primitive failures are recovered
            by exploring; only unexpected errors propagate.
        """
        start = time.time()
        self._milestones = []
        skill = self._skills.get(action)

        try:
            if skill is None:
                raise SkillFailed(f"No skill for action {action}")
            skill()
        except (ActuationError, SkillFailed) as e:
            error = f"{type(e).__name__}: {e}"
            logger.info(f"Action {action} failed ({e}), exploring instead")
            recovered = self._recover()
            if recovered is not None:
                error = f"{error}; fallback failed: {recovered}"
            return ActionOutcome(
                action=action,
                success=False,
                duration_ms=(time.time() - start) * 1000,
                error=error,
                fallback=True,
                milestones=tuple(self._milestones),
            )

        return ActionOutcome(
            action=action,
            success=True,
            duration_ms=(time.time() - start) * 1000,
            milestones=tuple(self._milestones),
        )

    def _recover(self) -> str | None:
        """Run exploration after a failure; returns an error string if that failed too."""
        try:
            self._explore()
        except (ActuationError, SkillFailed) as e:
            logger.warning(f"Exploration fallback failed: {e}")
            return str(e)
        return None

    # Primitive helpers

    def _require(self, ok: bool, what: str) -> None:
        if not ok:
            raise SkillFailed(what)

    def _find_block(self, predicate: Callable[[Block], bool], what: str) -> Block:
        block = self._actuator.find_block(predicate, self._config.search_radius)
        if block is None:
            raise SkillFailed(f"No {what} within {self._config.search_radius:.0f} blocks")
        return block

    def _find_entity(self, name: str) -> Entity:
        entity = self._actuator.find_entity(lambda e: e.name == name, self._config.search_radius)
        if entity is None:
            raise SkillFailed(f"No {name} within {self._config.search_radius:.0f} blocks")
        return entity

    def _navigate(self, target: Position) -> None:
        self._require(
            self._actuator.navigate_to(target, self._config.navigation_timeout_s),
            f"Could not reach {target}",
        )

    def _equip_best(self, candidates: tuple[str, ...]) -> None:
        inventory = self._actuator.query_inventory()
        for item in candidates:
            if inventory.get(item, 0) > 0:
                self._actuator.equip(item)
                return

    def _craft(self, item: str, count: int = 1) -> None:
        self._require(self._actuator.craft(item, count), f"Could not craft {item}")

    # Skills

    def _mine_nearest(self, predicate: Callable[[Block], bool]) -> None:
        block = self._find_block(predicate, "matching block")
        self._equip_best(PICKAXES)
        self._navigate(block.position)
        self._require(self._actuator.mine(block), f"Could not mine {block.name}")

    def _travel_to_block(self, name: str) -> None:
        block = self._find_block(lambda b: b.name == name, name)
        self._navigate(block.position)

    def _approach_entity(self, name: str) -> None:
        self._navigate(self._find_entity(name).position)

    def _hunt(self, name: str) -> None:
        entity = self._find_entity(name)
        self._equip_best(SWORDS)
        self._navigate(entity.position)
        self._require(
            self._actuator.attack(entity, self._config.max_strikes), f"{name} survived"
        )

    def _attack_dragon(self) -> None:
        self._hunt("ender_dragon")
        # attack() also returns True when the target left reach
        still_there = self._actuator.find_entity(
            lambda e: e.name == "ender_dragon", self._config.search_radius
        )
        if still_there is not None:
            raise SkillFailed("ender_dragon still alive")
        self._milestones.append("killed_dragon")

    def _explore(self) -> None:
        position = self._actuator.query_position()
        angle = self._rng.uniform(0.0, 2 * math.pi)
        distance = self._rng.uniform(0.5, 1.0) * self._config.explore_radius
        target = Position(
            x=position.x + math.cos(angle) * distance,
            y=position.y,
            z=position.z + math.sin(angle) * distance,
        )
        self._navigate(target)

    def _craft_next_tool(self) -> None:
        inventory = self._actuator.query_inventory()
        resources = aggregate_inventory(inventory)
        if inventory.get("crafting_table", 0) == 0 and not any(inventory.get(p, 0) for p in PICKAXES):
            self._craft("crafting_table")
        if resources["diamonds"] >= 3 and not inventory.get("diamond_pickaxe"):
            self._craft("diamond_pickaxe")
        elif resources["iron"] >= 3 and not inventory.get("iron_pickaxe"):
            self._craft("iron_pickaxe")
        elif resources["cobblestone"] >= 3 and not inventory.get("stone_pickaxe"):
            self._craft("stone_pickaxe")
        elif not inventory.get("wooden_pickaxe"):
            self._craft("wooden_pickaxe")
        else:
            raise SkillFailed("No tool upgrade available")

    def _craft_next_item(self) -> None:
        inventory = self._actuator.query_inventory()
        resources = aggregate_inventory(inventory)
        if resources["blaze_rods"] and resources["ender_pearls"]:
            self._craft_ender_eye()
        elif resources["iron"] >= 3 and not inventory.get("bucket"):
            self._craft("bucket")
        elif resources["cobblestone"] >= 2 and not inventory.get("stone_sword"):
            self._craft("stone_sword")
        elif not inventory.get("crafting_table"):
            self._craft("crafting_table")
        else:
            raise SkillFailed("Nothing useful to craft")

    def _craft_ender_eye(self) -> None:
        inventory = self._actuator.query_inventory()
        if not inventory.get("blaze_powder"):
            self._craft("blaze_powder")
        self._craft("ender_eye")

    def _create_obsidian(self) -> None:
        lava = self._find_block(lambda b: b.name == "lava", "lava")
        self._navigate(lava.position)
        self._require(self._actuator.equip("water_bucket"), "No water bucket")
        self._require(self._actuator.interact(lava), "Could not pour water on lava")

    def _light_portal(self) -> None:
        frame = self._find_block(lambda b: b.name == "obsidian", "obsidian frame")
        self._navigate(frame.position)
        self._require(self._actuator.equip("flint_and_steel"), "No flint and steel")
        self._require(self._actuator.interact(frame), "Could not light portal")

    def _return_overworld(self) -> None:
        if self._actuator.query_dimension() == "overworld":
            return
        self._travel_to_block("nether_portal")

    def _throw_ender_eye(self) -> None:
        self._require(self._actuator.equip("ender_eye"), "No ender eye")
        self._require(self._actuator.interact(None), "Could not throw ender eye")

    def _find_stronghold(self) -> None:
        frame = self._actuator.find_block(
            lambda b: b.name == "end_portal_frame", self._config.search_radius
        )
        if frame is None:
            self._throw_ender_eye()
            self._explore()
            return
        self._navigate(frame.position)
        self._milestones.append("found_stronghold")

    def _activate_end_portal(self) -> None:
        frame = self._find_block(lambda b: b.name == "end_portal_frame", "end portal frame")
        self._navigate(frame.position)
        self._require(self._actuator.equip("ender_eye"), "No ender eye")
        self._require(self._actuator.interact(frame), "Could not place ender eye")
        self._milestones.append("found_stronghold")
