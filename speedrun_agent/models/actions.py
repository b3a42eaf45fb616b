"""Action identifiers for the skills the agent can perform."""

from __future__ import annotations

from enum import StrEnum


class ActionId(StrEnum):
    """Identifiers of high-level skills understood by the executor."""

    # Learned action space
    GATHER_WOOD = "gather_wood"
    CRAFT_TOOLS = "craft_tools"
    MINE_STONE = "mine_stone"
    MINE_IRON = "mine_iron"
    MINE_DIAMONDS = "mine_diamonds"
    EXPLORE = "explore"
    CRAFT_ITEM = "craft_item"
    ENTER_NETHER = "enter_nether"
    FIND_BLAZE = "find_blaze"
    FIND_STRONGHOLD = "find_stronghold"

    # Planner-only tasks
    CRAFT_CRAFTING_TABLE = "craft_crafting_table"
    CRAFT_WOODEN_PICKAXE = "craft_wooden_pickaxe"
    FIND_STONE = "find_stone"
    CRAFT_STONE_PICKAXE = "craft_stone_pickaxe"
    CRAFT_STONE_SWORD = "craft_stone_sword"
    FIND_IRON = "find_iron"
    CRAFT_IRON_PICKAXE = "craft_iron_pickaxe"
    CRAFT_BUCKET = "craft_bucket"
    FIND_DIAMONDS = "find_diamonds"
    CRAFT_DIAMOND_PICKAXE = "craft_diamond_pickaxe"
    FIND_LAVA = "find_lava"
    CREATE_OBSIDIAN = "create_obsidian"
    BUILD_NETHER_PORTAL = "build_nether_portal"
    FIND_FORTRESS = "find_fortress"
    KILL_BLAZE = "kill_blaze"
    GET_BLAZE_ROD = "get_blaze_rod"
    FIND_ENDERMAN = "find_enderman"
    KILL_ENDERMAN = "kill_enderman"
    CRAFT_ENDER_EYES = "craft_ender_eyes"
    RETURN_OVERWORLD = "return_overworld"
    USE_ENDER_EYE = "use_ender_eye"
    ACTIVATE_END_PORTAL = "activate_end_portal"
    ENTER_END = "enter_end"
    LOCATE_DRAGON = "locate_dragon"
    DESTROY_CRYSTALS = "destroy_crystals"
    ATTACK_DRAGON = "attack_dragon"
    KILL_DRAGON = "kill_dragon"


# Fixed action space of the learned policy (index order is the network's
# output order and must not change between checkpoints).
LEARNED_ACTIONS: tuple[ActionId, ...] = (
    ActionId.GATHER_WOOD,
    ActionId.CRAFT_TOOLS,
    ActionId.MINE_STONE,
    ActionId.MINE_IRON,
    ActionId.MINE_DIAMONDS,
    ActionId.EXPLORE,
    ActionId.CRAFT_ITEM,
    ActionId.ENTER_NETHER,
    ActionId.FIND_BLAZE,
    ActionId.FIND_STRONGHOLD,
)

# Human-readable descriptions offered to the reasoning service.
ACTION_DESCRIPTIONS: dict[ActionId, str] = {
    ActionId.GATHER_WOOD: "Collect wood from trees",
    ActionId.CRAFT_TOOLS: "Craft the next tier of tools (pickaxe, etc.)",
    ActionId.MINE_STONE: "Mine stone/cobblestone",
    ActionId.MINE_IRON: "Mine iron ore",
    ActionId.MINE_DIAMONDS: "Mine diamond ore",
    ActionId.EXPLORE: "Move to a new area",
    ActionId.CRAFT_ITEM: "Craft the next useful item",
    ActionId.ENTER_NETHER: "Go through a nether portal",
    ActionId.FIND_BLAZE: "Hunt blazes for blaze rods",
    ActionId.FIND_STRONGHOLD: "Follow ender eyes to the stronghold",
}


def parse_action(value: str) -> ActionId | None:
    """Parse an action identifier, tolerating case, spaces and dashes."""
    normalized = value.strip().lower().replace("-", "_").replace(" ", "_")
    try:
        return ActionId(normalized)
    except ValueError:
        return None
