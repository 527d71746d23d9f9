import random
from pathlib import Path

import pytest

from song_sim.catalog.eras import EraKey
from song_sim.config.settings import (
    AppSettings,
    DBSettings,
    RuleSettings,
    SimulationSettings,
    StoreSettings,
)
from song_sim.persistence.codec import dumps
from song_sim.persistence.store import FileSnapshotStore, InMemorySnapshotStore
from song_sim.utils.errors import SongSimError
from song_sim.world.simulator import WorldSimulator, build_simulator


class RecordingSink:
    def __init__(self) -> None:
        self.batches: list[tuple[str, list]] = []

    def append_events(self, slot, events) -> None:
        self.batches.append((slot, list(events)))


@pytest.fixture
def store():
    return InMemorySnapshotStore()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def sim(rules, store, sink):
    simulator = WorldSimulator(rules, store, random.Random(3), events=sink)
    simulator.new_game()
    return simulator


def settings_for(backend: str, tmp_path: Path) -> AppSettings:
    return AppSettings(
        db=DBSettings(host="localhost", port=5432, name="song", user="u", password="p"),
        simulation=SimulationSettings(seed=5),
        rules=RuleSettings(),
        store=StoreSettings(backend=backend, state_path=tmp_path / "state.json"),
        output_dir=tmp_path / "out",
    )


class TestLifecycle:
    def test_new_game_is_saved(self, sim, store):
        assert sim.world.era is EraKey.STONE
        assert store.load("default") == dumps(sim.world)
        assert "begins" in sim.world.messages[0]

    def test_load_restores_the_same_world(self, sim, store, rules):
        sim.advance()
        other = WorldSimulator(rules, store, random.Random(9))
        assert other.load() == sim.world
        assert other.catalog.merged_eras == sim.catalog.merged_eras

    def test_load_without_a_save(self, rules):
        with pytest.raises(SongSimError):
            WorldSimulator(rules, InMemorySnapshotStore(), random.Random(1)).load()

    def test_load_or_new(self, rules, store, sim):
        other = WorldSimulator(rules, store, random.Random(9))
        assert other.load_or_new() == sim.world
        fresh = WorldSimulator(rules, InMemorySnapshotStore(), random.Random(9))
        assert fresh.load_or_new(EraKey.CAVES).era is EraKey.CAVES

    def test_actions_need_a_world(self, rules):
        with pytest.raises(SongSimError):
            WorldSimulator(rules, InMemorySnapshotStore(), random.Random(1)).advance()


class TestAdvance:
    def test_advance_moves_one_season_and_saves(self, sim, store, sink):
        report = sim.advance()
        assert sim.world.turn == 1
        assert report.turn == 0
        assert report.messages == sim.world.messages
        assert report.snapshot["turn"] == 1
        assert store.load("default") == dumps(sim.world)
        assert sink.batches[-1][0] == "default"
        assert sink.batches[-1][1][0].kind == "season"

    def test_collapsed_world_does_not_tick(self, sim):
        sim.world.people = []
        sim.world.collapsed = True
        report = sim.advance()
        assert sim.world.turn == 0
        assert report.events == []


class TestIntents:
    def test_rejected_intent_leaves_world_and_store(self, sim, store):
        before = store.load("default")
        result = sim.perform("carve", verse="heartbeat")
        assert not result.accepted
        assert result.messages
        assert sim.world.tree.carved == []
        assert store.load("default") == before

    def test_unknown_intent(self, sim):
        result = sim.perform("dance")
        assert not result.accepted
        assert "dance" in result.messages[0]

    def test_missing_target_is_rejected(self, sim, store):
        before = store.load("default")
        result = sim.perform("carve")
        assert not result.accepted
        assert result.messages == ["carve takes: verse."]
        assert sim.world.tree.carved == []
        assert store.load("default") == before

    def test_misspelled_argument_is_rejected(self, sim, store):
        before = store.load("default")
        result = sim.perform("teach", teacher="Grok", pupil="Stone-Hand", verse="heartbeat")
        assert not result.accepted
        assert result.messages == ["teach takes: teacher, student, verse."]
        assert store.load("default") == before

    def test_unexpected_argument_is_rejected(self, sim):
        result = sim.perform("fell", verse="heartbeat")
        assert not result.accepted
        assert result.messages == ["fell takes: no arguments."]

    def test_teach(self, sim, store, sink):
        result = sim.perform("teach", teacher="Grok", student="Stone-Hand", verse="heartbeat")
        assert result.accepted
        student = next(p for p in sim.world.people if p.name == "Stone-Hand")
        assert student.fidelity("heartbeat") > 0
        assert sim.world.messages == result.messages
        assert sink.batches[-1][1][0].kind == "teach"
        assert store.load("default") == dumps(sim.world)

    def test_cross_bridge(self, sim, store):
        sim.world.people[0].verses["deep_fire"] = 0.8
        result = sim.perform("cross_bridge", target="caves")
        assert result.accepted
        assert sim.world.era is EraKey.CAVES
        assert sim.world.previous_eras[-1].key == "stone"
        assert '"era": "caves"' in store.load("default")

    def test_bridges_listing(self, sim):
        assert [o.target for o in sim.bridges()] == [EraKey.CAVES]


class TestBuildSimulator:
    def test_memory_backend(self, tmp_path):
        sim = build_simulator(settings_for("memory", tmp_path))
        assert isinstance(sim.store, InMemorySnapshotStore)
        assert sim.events is None

    def test_file_backend(self, tmp_path):
        sim = build_simulator(settings_for("file", tmp_path))
        assert isinstance(sim.store, FileSnapshotStore)
        sim.new_game()
        assert (tmp_path / "state.json").exists()

    def test_unknown_backend(self, tmp_path):
        with pytest.raises(SongSimError):
            build_simulator(settings_for("tape", tmp_path))
