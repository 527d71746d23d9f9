import random

import pytest

from song_sim.catalog.eras import EraKey, era
from song_sim.catalog.verses import VerseCatalog
from song_sim.utils.errors import UserIntentError
from song_sim.utils.types import EraRecord
from song_sim.world.bridges import (
    available_bridges,
    cross_bridge,
    determine_apocalypse,
    new_world,
    surviving_verses,
)

from conftest import ScriptedRandom, person, world_of


def record(key: str, carried: list[str]) -> EraRecord:
    return EraRecord(
        key=key, name=key, years_bp=0, fellings=0,
        songs_carried=carried, songs_lost=[], bridge_taken="x",
    )


class TestNewWorld:
    def test_stone_roster(self, rules, catalog):
        world = new_world(EraKey.STONE, {}, [], [], random.Random(1), rules, catalog)
        assert len(world.people) == 7
        assert world.people[0].name == "Grok"
        assert all(p.people == "troll" for p in world.people)
        assert world.food == rules.population.starting_food
        assert len(world.spirits) == 8
        assert world.catalog_eras == ["stone"]

    def test_inherited_songs_are_degraded(self, rules, catalog):
        world = new_world(EraKey.CAVES, {"bear": 1.0}, [], [], ScriptedRandom(), rules, catalog)
        assert len(world.people) == 7
        for singer in world.people:
            assert singer.fidelity("bear") == pytest.approx(0.6 + 0.999 * 0.2)
            assert singer.fidelity("flake") == 0.6
        assert world.inherited_songs == {"bear": 1.0}


class TestBridges:
    def test_stone_bridges_hide_the_bears(self, rules):
        world = world_of(person("Grok", 20, {"heartbeat": 1.0}))
        options = available_bridges(world, rules)
        assert [o.target for o in options] == [EraKey.CAVES]
        assert not options[0].met

    def test_carving_satisfies_a_requirement(self, rules):
        world = world_of(person("Grok", 20, {"heartbeat": 1.0}))
        world.tree.carved = ["deep_fire"]
        assert available_bridges(world, rules)[0].met

    def test_unlocked_bears_are_listed(self, rules):
        world = world_of(person("Grok", 20), unlocked_eras=["bears"])
        assert EraKey.BEARS in [o.target for o in available_bridges(world, rules)]

    def test_surviving_verses_floor_carvings(self, rules):
        world = world_of(person("A", 10, {"heartbeat": 0.9, "flake": 0.05}))
        world.tree.carved = ["ember"]
        assert surviving_verses(world, rules) == {"heartbeat": 0.9, "ember": 0.5}


class TestApocalypse:
    def test_dwarf_carvings_burn(self, catalog):
        world = world_of()
        world.tree.carved = ["flake", "blade", "heartbeat"]
        assert determine_apocalypse(world, catalog).key == "fire"

    def test_bare_tree_is_confusion(self, catalog):
        assert determine_apocalypse(world_of(), catalog).key == "mixed"


class TestCrossing:
    def test_unmet_bridge_is_rejected_without_change(self, rules, catalog):
        world = world_of(person("Grok", 20, {"heartbeat": 1.0}))
        with pytest.raises(UserIntentError):
            cross_bridge(world, catalog, "caves", ScriptedRandom(), rules)
        assert world.era is EraKey.STONE
        assert world.previous_eras == []
        assert "caves" not in catalog.merged_eras

    def test_unknown_and_unreachable_targets(self, rules, catalog):
        world = world_of(person("Grok", 20, {"heartbeat": 1.0}))
        with pytest.raises(UserIntentError):
            cross_bridge(world, catalog, "atlantis", ScriptedRandom(), rules)
        with pytest.raises(UserIntentError):
            cross_bridge(world, catalog, "iron", ScriptedRandom(), rules)

    def test_cross_to_the_caves(self, rules, catalog):
        world = world_of(person("Grok", 20, {"heartbeat": 1.0, "deep_fire": 0.8}), fellings=1)
        crossing = cross_bridge(world, catalog, EraKey.CAVES, ScriptedRandom(), rules)
        nxt = crossing.world
        assert nxt.era is EraKey.CAVES
        assert nxt.era_name == era(EraKey.CAVES).name
        assert [p.name for p in nxt.people] == list(era(EraKey.CAVES).names)
        assert nxt.previous_eras == [crossing.record]
        assert crossing.record.key == "stone"
        assert crossing.record.bridge_taken == "caves"
        assert crossing.record.fellings == 1
        assert set(crossing.record.songs_carried) == {"heartbeat", "deep_fire"}
        assert nxt.messages == crossing.messages
        assert crossing.messages[-1] == f"{era(EraKey.CAVES).name} begins."

    def test_ice_brings_the_dog_into_the_catalog(self, rules, catalog):
        world = world_of(person("A", 10, {"seasons": 0.5, "ember": 0.5}), era=EraKey.MEETING)
        assert "dog" not in catalog
        cross_bridge(world, catalog, "ice", ScriptedRandom(), rules)
        assert "dog" in catalog
        assert "ice" in catalog.merged_eras

    def test_bear_song_carried_long_enough_wakes_the_bears(self, rules):
        catalog = VerseCatalog.for_eras(["stone", "caves", "meeting"])
        singer = person("A", 10, {"seasons": 0.5, "ember": 0.5, "bear": 0.8})
        world = world_of(
            singer,
            era=EraKey.MEETING,
            previous_eras=[record("stone", ["bear"]), record("caves", ["bear"])],
        )
        crossing = cross_bridge(world, catalog, "ice", ScriptedRandom(), rules)
        assert crossing.world.unlocked_eras == ["bears"]
        assert EraKey.BEARS in [o.target for o in available_bridges(crossing.world, rules)]

    def test_weak_bear_song_keeps_them_asleep(self, rules, catalog):
        singer = person("A", 10, {"seasons": 0.5, "ember": 0.5, "bear": 0.5})
        world = world_of(
            singer,
            era=EraKey.MEETING,
            previous_eras=[record("stone", ["bear"]), record("caves", ["bear"])],
        )
        crossing = cross_bridge(world, catalog, "ice", ScriptedRandom(), rules)
        assert crossing.world.unlocked_eras == []
