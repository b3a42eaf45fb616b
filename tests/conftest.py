"""Shared test doubles."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from speedrun_agent.interfaces.actuator import Actuator, Block, Entity
from speedrun_agent.models.situation import Position, Situation


class FakeActuator(Actuator):
    """In-memory actuator with scripted blocks, entities and results.

    Every primitive call is appended to `calls` so tests can assert on the
    sequence the executor produced.
    """

    def __init__(
        self,
        blocks: list[Block] | None = None,
        entities: list[Entity] | None = None,
        inventory: dict[str, int] | None = None,
    ) -> None:
        self.blocks = list(blocks or [])
        self.entities = list(entities or [])
        self.inventory = dict(inventory or {})
        self.position = Position(x=0.0, y=64.0, z=0.0)
        self.health = 20.0
        self.dimension = "overworld"
        self.deaths = 0
        self.calls: list[tuple] = []

        self.navigate_result = True
        self.mine_result = True
        self.craft_result = True
        self.attack_result = True
        self.equip_result = True
        self.interact_result = True
        self.attack_kills = True
        self.navigate_error: Exception | None = None

    def find_block(self, predicate: Callable[[Block], bool], max_distance: float) -> Block | None:
        self.calls.append(("find_block", max_distance))
        for block in self.blocks:
            if predicate(block) and block.position.distance_to(self.position) <= max_distance:
                return block
        return None

    def find_entity(self, predicate: Callable[[Entity], bool], max_distance: float) -> Entity | None:
        self.calls.append(("find_entity", max_distance))
        for entity in self.entities:
            if predicate(entity):
                return entity
        return None

    def navigate_to(self, target: Position, timeout_s: float) -> bool:
        self.calls.append(("navigate_to", target, timeout_s))
        if self.navigate_error is not None:
            raise self.navigate_error
        return self.navigate_result

    def mine(self, block: Block) -> bool:
        self.calls.append(("mine", block.name))
        if self.mine_result:
            self.blocks.remove(block)
        return self.mine_result

    def interact(self, block: Block | None) -> bool:
        self.calls.append(("interact", block.name if block else None))
        return self.interact_result

    def craft(self, item_id: str, count: int) -> bool:
        self.calls.append(("craft", item_id, count))
        if self.craft_result:
            self.inventory[item_id] = self.inventory.get(item_id, 0) + count
        return self.craft_result

    def attack(self, entity: Entity, max_strikes: int) -> bool:
        self.calls.append(("attack", entity.name, max_strikes))
        if self.attack_result and self.attack_kills:
            self.entities.remove(entity)
        return self.attack_result

    def equip(self, item: str) -> bool:
        self.calls.append(("equip", item))
        return self.equip_result

    def query_inventory(self) -> dict[str, int]:
        return dict(self.inventory)

    def query_position(self) -> Position:
        return self.position

    def query_health(self) -> float:
        return self.health

    def query_dimension(self) -> str:
        return self.dimension

    def consume_death_signal(self) -> bool:
        if self.deaths:
            self.deaths -= 1
            return True
        return False

    def primitive_names(self) -> list[str]:
        return [call[0] for call in self.calls]


def make_situation(
    inventory: dict[str, int] | None = None,
    objectives: dict[str, bool] | None = None,
    elapsed_s: float = 0.0,
    phase: str = "initial_setup",
    phase_index: int = 0,
    **kwargs,
) -> Situation:
    """Build a Situation with sensible test defaults."""
    return Situation(
        phase=phase,
        phase_index=phase_index,
        inventory=inventory or {},
        objectives=objectives or {},
        elapsed_s=elapsed_s,
        **kwargs,
    )


@pytest.fixture
def actuator() -> FakeActuator:
    """A fake actuator with one oak log nearby."""
    return FakeActuator(blocks=[Block("oak_log", Position(x=3.0, y=64.0, z=4.0))])
