"""Tests for the situation observer."""

from conftest import FakeActuator

from speedrun_agent.core.observation import SituationObserver, aggregate_inventory
from speedrun_agent.models.situation import OBJECTIVE_NAMES, RESOURCE_NAMES, Position
from speedrun_agent.strategy.phases import DEFAULT_SCHEDULE

SETUP = DEFAULT_SCHEDULE[0]


class TestAggregateInventory:
    """Tests for item name -> resource aggregation."""

    def test_logs_count_as_wood(self):
        counts = aggregate_inventory({"oak_log": 3, "birch_log": 2, "spruce_log": 1})

        assert counts["wood"] == 6

    def test_every_slot_present(self):
        counts = aggregate_inventory({})

        assert set(RESOURCE_NAMES) <= set(counts)
        assert all(counts[name] == 0 for name in RESOURCE_NAMES)

    def test_renamed_resources(self):
        counts = aggregate_inventory({"iron_ingot": 4, "diamond": 1, "blaze_rod": 2})

        assert counts["iron"] == 4
        assert counts["diamonds"] == 1
        assert counts["blaze_rods"] == 2

    def test_mined_iron_counts_as_iron(self):
        """Raw iron and ore blocks from mining count before smelting."""
        counts = aggregate_inventory({"raw_iron": 3, "iron_ore": 1, "iron_ingot": 2})

        assert counts["iron"] == 6

    def test_equipment_kept_by_name(self):
        counts = aggregate_inventory({"crafting_table": 1, "stone_sword": 1})

        assert counts["crafting_table"] == 1
        assert counts["stone_sword"] == 1

    def test_unknown_and_empty_items_dropped(self):
        counts = aggregate_inventory({"dirt": 40, "cobblestone": 0})

        assert "dirt" not in counts
        assert counts["cobblestone"] == 0


class TestObserve:
    """Tests for building Situations."""

    def test_snapshot_fields(self):
        actuator = FakeActuator(inventory={"oak_log": 2})
        actuator.position = Position(x=10.0, y=70.0, z=-5.0)
        actuator.health = 14.0
        observer = SituationObserver(actuator)

        situation = observer.observe(SETUP, 0, elapsed_s=42.0)

        assert situation.phase == "initial_setup"
        assert situation.count("wood") == 2
        assert situation.position.x == 10.0
        assert situation.health == 14.0
        assert situation.elapsed_s == 42.0
        assert set(situation.objectives) == set(OBJECTIVE_NAMES)
        assert not any(situation.objectives.values())

    def test_iron_rises_after_mining(self):
        actuator = FakeActuator()
        observer = SituationObserver(actuator)
        before = observer.observe(SETUP, 0, 1.0)

        actuator.inventory["raw_iron"] = 1
        after = observer.observe(SETUP, 0, 2.0)

        assert before.count("iron") == 0
        assert after.count("iron") == 1

    def test_tool_flag_is_latched(self):
        actuator = FakeActuator(inventory={"wooden_pickaxe": 1})
        observer = SituationObserver(actuator)

        assert observer.observe(SETUP, 0, 1.0).flag("has_wooden_tools")

        actuator.inventory.clear()
        assert observer.observe(SETUP, 0, 2.0).flag("has_wooden_tools")

    def test_dimension_flags(self):
        actuator = FakeActuator()
        actuator.dimension = "the_nether"
        observer = SituationObserver(actuator)

        observer.observe(SETUP, 0, 1.0)
        actuator.dimension = "overworld"
        situation = observer.observe(SETUP, 0, 2.0)

        assert situation.flag("entered_nether")
        assert not situation.flag("entered_end")

    def test_negative_health_clamped(self):
        actuator = FakeActuator()
        actuator.health = -2.0

        assert SituationObserver(actuator).observe(SETUP, 0, 0.0).health == 0.0


class TestMilestones:
    """Tests for executor-reported milestones and death handling."""

    def test_record_returns_only_new(self):
        observer = SituationObserver(FakeActuator())

        assert observer.record_milestones(["found_stronghold"]) == ["found_stronghold"]
        assert observer.record_milestones(["found_stronghold", "killed_dragon"]) == ["killed_dragon"]

    def test_unknown_milestone_ignored(self):
        observer = SituationObserver(FakeActuator())

        assert observer.record_milestones(["won_lottery"]) == []
        assert observer.latched == frozenset()

    def test_win_flag_visible(self):
        observer = SituationObserver(FakeActuator())
        observer.record_milestones(["killed_dragon"])

        assert observer.observe(SETUP, 0, 0.0).is_won

    def test_reset_keeps_world_progress(self):
        actuator = FakeActuator(inventory={"stone_pickaxe": 1, "diamond": 2})
        actuator.dimension = "the_nether"
        observer = SituationObserver(actuator)
        observer.observe(SETUP, 0, 0.0)

        observer.reset()

        assert observer.latched == frozenset({"entered_nether"})

    def test_death_signal_consumed_once(self):
        actuator = FakeActuator()
        actuator.deaths = 1
        observer = SituationObserver(actuator)

        assert observer.death_signalled()
        assert not observer.death_signalled()
