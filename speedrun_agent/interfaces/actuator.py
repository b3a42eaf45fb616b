"""Actuator interface for primitive world interaction.

The actuator is the external collaborator that talks to the game: it finds
blocks and entities, walks, digs, crafts and fights. The decision engine
never touches the world except through this interface, and it never issues
more than one actuator call at a time.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable

from speedrun_agent.models.situation import Position


class ActuationError(Exception):
    """Error raised when a world interaction fails (navigation, mining, crafting, combat)."""

    pass


class Block:
    """A block located in the world."""

    __slots__ = ("name", "position")

    def __init__(self, name: str, position: Position) -> None:
        """Initialize a block.

        Args:
            name: Block registry name (e.g. "oak_log").
            position: Block position.
        """
        self.name = name
        self.position = position

    def __repr__(self) -> str:
        return f"Block({self.name}, {self.position})"


class Entity:
    """A living entity located in the world."""

    __slots__ = ("entity_id", "name", "position")

    def __init__(self, entity_id: int, name: str, position: Position) -> None:
        """Initialize an entity.

        Args:
            entity_id: Runtime identifier assigned by the game.
            name: Entity type name (e.g. "blaze").
            position: Entity position.
        """
        self.entity_id = entity_id
        self.name = name
        self.position = position

    def __repr__(self) -> str:
        return f"Entity({self.entity_id}, {self.name}, {self.position})"


BlockPredicate = Callable[[Block], bool]
EntityPredicate = Callable[[Entity], bool]


class Actuator(ABC):
    """Abstract interface for primitive world interaction.

    Implementations must bound every blocking call: navigation honours the
    given timeout and returns False (or raises ActuationError) instead of
    hanging.
    """

    @abstractmethod
    def find_block(self, predicate: BlockPredicate, max_distance: float) -> Block | None:
        """Find the nearest block matching a predicate.

        Args:
            predicate: Block filter.
            max_distance: Search radius in blocks.

        Returns:
            The nearest matching block, or None if none is in range.
        """
        ...

    @abstractmethod
    def find_entity(self, predicate: EntityPredicate, max_distance: float) -> Entity | None:
        """Find the nearest entity matching a predicate.

        Args:
            predicate: Entity filter.
            max_distance: Search radius in blocks.

        Returns:
            The nearest matching entity, or None.
        """
        ...

    @abstractmethod
    def navigate_to(self, target: Position, timeout_s: float) -> bool:
        """Walk to a target position.

        Args:
            target: Destination.
            timeout_s: Maximum time to spend walking.

        Returns:
            True if the destination was reached.
        """
        ...

    @abstractmethod
    def mine(self, block: Block) -> bool:
        """Dig a block. Returns True on success."""
        ...

    @abstractmethod
    def interact(self, block: Block | None) -> bool:
        """Use the held item, on a block if given. Returns True on success."""
        ...

    @abstractmethod
    def craft(self, item_id: str, count: int) -> bool:
        """Craft an item.

        Returns:
            False if the recipe or the materials are missing.
        """
        ...

    @abstractmethod
    def attack(self, entity: Entity, max_strikes: int) -> bool:
        """Strike an entity repeatedly until it is gone or the strike cap is hit.

        Returns:
            True if the target is dead or no longer valid.
        """
        ...

    @abstractmethod
    def equip(self, item: str) -> bool:
        """Equip an item in the main hand. Returns True on success."""
        ...

    @abstractmethod
    def query_inventory(self) -> dict[str, int]:
        """Get the inventory as item name -> count."""
        ...

    @abstractmethod
    def query_position(self) -> Position:
        """Get the agent's position."""
        ...

    @abstractmethod
    def query_health(self) -> float:
        """Get the agent's health (0-20)."""
        ...

    def query_dimension(self) -> str:
        """Get the current dimension name ("overworld", "the_nether", "the_end")."""
        return "overworld"

    def consume_death_signal(self) -> bool:
        """Return True once after each death of the agent."""
        return False
