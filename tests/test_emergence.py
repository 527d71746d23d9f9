import pytest

from song_sim.emergence.system import EmergenceSystem
from song_sim.utils.types import Chronicle

from conftest import ScriptedRandom, person, world_of


@pytest.fixture
def system(catalog, rules):
    return EmergenceSystem(catalog, rules)


class TestShadows:
    def test_shadow_grows_while_foundation_is_missing(self, system):
        world = world_of(person("A", 10, {"root": 0.8}))
        system.accumulate_shadows(world, Chronicle(0))
        assert world.shadows["ash_song"] == pytest.approx(0.12)

    def test_shadow_decays_toward_zero_never_below(self, system):
        world = world_of(person("A", 10, {"root": 0.8, "track": 0.5}), shadows={"ash_song": 0.03})
        system.accumulate_shadows(world, Chronicle(0))
        assert world.shadows["ash_song"] == 0.0

    def test_carved_foundation_counts_as_present(self, system):
        world = world_of(person("A", 10, {"root": 0.8}), shadows={"ash_song": 0.5})
        world.tree.carved = ["track"]
        system.accumulate_shadows(world, Chronicle(0))
        assert world.shadows["ash_song"] == pytest.approx(0.45)

    def test_crystallizes_into_best_singer_and_resets(self, system):
        weak = person("Weak", 10, {"root": 0.4})
        strong = person("Strong", 18, {"root": 0.8})
        world = world_of(weak, strong, shadows={"ash_song": 0.95})
        chronicle = Chronicle(0)
        system.accumulate_shadows(world, chronicle)
        assert strong.fidelity("ash_song") == pytest.approx(0.64)
        assert weak.fidelity("ash_song") == 0.0
        assert world.shadows["ash_song"] == 0.0
        assert chronicle.count("shadow") == 1

    def test_no_grown_singer_holds_at_full(self, system):
        world = world_of(person("Kid", 2, {"root": 0.8}), shadows={"ash_song": 0.95})
        system.accumulate_shadows(world, Chronicle(0))
        assert world.shadows["ash_song"] == 1.0
        assert world.people[0].fidelity("ash_song") == 0.0

    def test_light_verse_on_setlist_is_enough(self, system):
        world = world_of(person("A", 10, {"root": 0.05}), setlist=["root"])
        system.accumulate_shadows(world, Chronicle(0))
        assert world.shadows["ash_song"] == pytest.approx(0.12)


class TestRedemptions:
    def test_shadow_sung_beside_its_root_redeems(self, system):
        singer = person("A", 10, {"ash_song": 0.5, "herd": 0.5})
        world = world_of(singer, setlist=["ash_song", "herd"])
        chronicle = Chronicle(0)
        system.discover_redemptions(world, ScriptedRandom([0.0]), chronicle)
        assert singer.fidelity("rotation") == pytest.approx(0.4)
        assert chronicle.count("redemption") == 1

    def test_needs_both_on_the_setlist(self, system):
        singer = person("A", 10, {"ash_song": 0.5, "herd": 0.5})
        world = world_of(singer, setlist=["ash_song"])
        system.discover_redemptions(world, ScriptedRandom([0.0]), Chronicle(0))
        assert singer.fidelity("rotation") == 0.0

    def test_failed_roll(self, system):
        singer = person("A", 10, {"ash_song": 0.5, "herd": 0.5})
        world = world_of(singer, setlist=["ash_song", "herd"])
        system.discover_redemptions(world, ScriptedRandom([0.5]), Chronicle(0))
        assert "rotation" not in singer.verses


class TestAdjacency:
    def test_neighbours_on_the_setlist_reveal_a_mixed_verse(self, system):
        singer = person("A", 10, {"tide": 0.8, "root": 0.6})
        world = world_of(singer, setlist=["tide", "root"])
        chronicle = Chronicle(0)
        system.discover_adjacent(world, ScriptedRandom([0.0]), chronicle)
        assert singer.fidelity("kelp") == pytest.approx(0.42)
        assert chronicle.count("adjacency") == 1

    def test_not_adjacent_no_discovery(self, system):
        singer = person("A", 10, {"tide": 0.8, "root": 0.6, "heartbeat": 0.9})
        world = world_of(singer, setlist=["tide", "heartbeat", "root"])
        system.discover_adjacent(world, ScriptedRandom([0.0] * 5), Chronicle(0))
        assert singer.fidelity("kelp") == 0.0

    def test_already_known_is_not_rediscovered(self, system):
        singer = person("A", 10, {"tide": 0.8, "root": 0.6, "kelp": 0.35})
        world = world_of(singer, setlist=["tide", "root"])
        system.discover_adjacent(world, ScriptedRandom([0.0]), Chronicle(0))
        assert singer.fidelity("kelp") == 0.35
