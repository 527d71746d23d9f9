import pytest

from song_sim.catalog.eras import EraKey, eras_up_to
from song_sim.catalog.verses import VerseCatalog
from song_sim.engine import TickEngine
from song_sim.utils.rng import make_rng
from song_sim.world.bridges import new_world

from conftest import ScriptedRandom, person, world_of


@pytest.fixture
def stone_game(rules):
    catalog = VerseCatalog.for_eras(k.value for k in eras_up_to(EraKey.STONE))
    rng = make_rng(5)
    world = new_world(EraKey.STONE, {}, [], [], rng, rules, catalog)
    return TickEngine(rules, catalog), world, rng


class TestTickEngine:
    def test_season_order_and_messages(self, stone_game):
        engine, world, rng = stone_game
        chronicle = engine.run_season(world, rng)
        assert chronicle.events[0].kind == "season"
        assert chronicle.turn == 0
        assert world.turn == 1
        assert world.season == 1
        assert world.messages == chronicle.messages
        assert engine.last_summary.turn == 0
        assert engine.last_summary.population == len(world.people)

    def test_several_seasons_keep_invariants(self, stone_game, rules):
        engine, world, rng = stone_game
        for turn in range(8):
            before = [(p, dict(p.verses)) for p in world.people]
            engine.run_season(world, rng)
            assert world.turn == turn + 1
            assert len(world.setlist) <= engine.last_summary.capacity
            assert len(set(world.setlist)) == len(world.setlist)
            assert 0 <= world.food
            assert len(world.people) <= rules.population.max_population
            for state in world.spirits.values():
                assert 0.0 <= state.spirit <= 1.0
            for p, verses in before:
                if not any(q is p for q in world.people):
                    continue
                for verse_id, fidelity in verses.items():
                    assert p.fidelity(verse_id) >= fidelity
            if world.collapsed:
                break

    def test_same_seed_same_history(self, rules):
        def play(seed):
            catalog = VerseCatalog.for_eras(["bears", "stone"])
            rng = make_rng(seed)
            world = new_world(EraKey.STONE, {}, [], [], rng, rules, catalog)
            engine = TickEngine(rules, catalog)
            return [engine.run_season(world, rng).messages for _ in range(6)]

        assert play(11) == play(11)

    def test_empty_band_collapses(self, rules, catalog):
        world = world_of(food=0)
        chronicle = TickEngine(rules, catalog).run_season(world, ScriptedRandom())
        assert world.collapsed
        assert chronicle.count("collapse") == 1

    def test_youth_learns_from_the_setlist(self, rules, catalog):
        elder = person("Elder", 20, {"lullaby": 1.0})
        youth = person("Youth", 0)
        world = world_of(elder, youth, food=10)
        TickEngine(rules, catalog).run_season(world, ScriptedRandom())
        assert world.setlist == ["lullaby"]
        assert youth.fidelity("lullaby") > 0
