from __future__ import annotations

import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from song_sim.catalog.eras import EraKey, eras_up_to
from song_sim.catalog.verses import VerseCatalog
from song_sim.config.settings import AppSettings, RuleSettings
from song_sim.engine.tick_engine import TickEngine
from song_sim.persistence.codec import dumps, loads, restore_catalog, to_dict
from song_sim.persistence.store import FileSnapshotStore, InMemorySnapshotStore, SnapshotStore
from song_sim.population.lifecycle import ignore_stranger, welcome_stranger
from song_sim.transmission.setlist import arrange_setlist, prioritize, teach
from song_sim.utils.errors import SongSimError, UserIntentError
from song_sim.utils.rng import RandomSource, make_rng
from song_sim.utils.types import Chronicle, ChronicleEvent, WorldState
from song_sim.world.bridges import BridgeOption, available_bridges, cross_bridge, new_world
from song_sim.world.tree import carve, fell, gather_fragments, study_ash


class EventSink(Protocol):
    def append_events(self, slot: str, events: list[ChronicleEvent]) -> None: ...


@dataclass
class TurnReport:
    turn: int
    messages: list[str]
    events: list[ChronicleEvent]
    snapshot: dict[str, Any]


@dataclass
class IntentResult:
    intent: str
    accepted: bool
    messages: list[str] = field(default_factory=list)


class WorldSimulator:
    """Turn-based facade over one saved world.

    Each call to ``advance`` or ``perform`` is load -> mutate -> save: the
    snapshot is only written once the whole transform has succeeded, and a
    rejected intent leaves both the world and the store untouched.
    """

    def __init__(
        self,
        rules: RuleSettings,
        store: SnapshotStore,
        rng: RandomSource,
        slot: str = "default",
        events: EventSink | None = None,
        autosave: bool = True,
    ) -> None:
        self.logger = logging.getLogger("song_sim.world")
        self.rules = rules
        self.store = store
        self.rng = rng
        self.slot = slot
        self.events = events
        self.autosave = autosave
        self.world: WorldState | None = None
        self.catalog: VerseCatalog | None = None
        self.engine: TickEngine | None = None
        self._intents: dict[str, Callable[..., list[str]]] = {
            "arrange_setlist": self._arrange_setlist,
            "prioritize": self._prioritize,
            "carve": self._carve,
            "fell": self._fell,
            "gather_fragments": self._gather_fragments,
            "welcome_stranger": self._welcome_stranger,
            "ignore_stranger": self._ignore_stranger,
            "study_ash": self._study_ash,
            "teach": self._teach,
            "cross_bridge": self._cross_bridge,
        }

    # ===================================================================
    # Lifecycle
    # ===================================================================

    def new_game(self, era: EraKey | str = EraKey.STONE) -> WorldState:
        era_key = EraKey(era)
        catalog = VerseCatalog.for_eras(k.value for k in eras_up_to(era_key))
        world = new_world(era_key, {}, [], [], self.rng, self.rules, catalog)
        world.messages = [f"{world.era_name} begins. {len(world.people)} people sit by the fire."]
        self._attach(world, catalog)
        self.logger.info(
            "New game: slot=%s era=%s people=%d", self.slot, era_key.value, len(world.people)
        )
        if self.autosave:
            self.save()
        return world

    def load(self) -> WorldState:
        payload = self.store.load(self.slot)
        if payload is None:
            raise SongSimError(f"No saved world in slot {self.slot!r}.")
        world = loads(payload)
        self._attach(world, restore_catalog(world))
        self.logger.info(
            "Loaded world: slot=%s era=%s turn=%d people=%d",
            self.slot, world.era.value, world.turn, len(world.people),
        )
        return world

    def load_or_new(self, era: EraKey | str = EraKey.STONE) -> WorldState:
        if self.store.load(self.slot) is None:
            return self.new_game(era)
        return self.load()

    def save(self) -> None:
        self.store.save(self.slot, dumps(self._require_world()))

    def snapshot(self) -> dict[str, Any]:
        return to_dict(self._require_world())

    def bridges(self) -> list[BridgeOption]:
        return available_bridges(self._require_world(), self.rules)

    # ===================================================================
    # Turns
    # ===================================================================

    def advance(self) -> TurnReport:
        world = self._require_world()
        assert self.engine is not None
        if world.collapsed:
            world.messages = ["No one is left to sing. Cross a bridge or start again."]
            return TurnReport(world.turn, list(world.messages), [], self.snapshot())
        t0 = time.perf_counter()
        chronicle = self.engine.run_season(world, self.rng)
        self._record(chronicle.events)
        if self.autosave:
            self.save()
        self.logger.debug(
            "Season advanced: slot=%s turn=%d elapsed=%.3fs",
            self.slot, world.turn, time.perf_counter() - t0,
        )
        return TurnReport(
            turn=chronicle.turn,
            messages=chronicle.messages,
            events=list(chronicle.events),
            snapshot=self.snapshot(),
        )

    def perform(self, intent: str, **kwargs: Any) -> IntentResult:
        world = self._require_world()
        handler = self._intents.get(intent)
        if handler is None:
            self.logger.warning("Unknown intent rejected: %s", intent)
            return IntentResult(intent, False, [f"Unknown action: {intent}."])
        try:
            inspect.signature(handler).bind(**kwargs)
        except TypeError as exc:
            self.logger.warning("Malformed intent rejected: intent=%s reason=%s", intent, exc)
            expected = ", ".join(inspect.signature(handler).parameters) or "no arguments"
            return IntentResult(intent, False, [f"{intent} takes: {expected}."])
        try:
            messages = handler(**kwargs)
        except UserIntentError as exc:
            self.logger.warning("Intent rejected: intent=%s reason=%s", intent, exc)
            return IntentResult(intent, False, [str(exc)])

        world = self._require_world()
        chronicle = Chronicle(world.turn)
        for message in messages:
            chronicle.emit(intent, message)
        self._record(chronicle.events)
        world.messages = list(messages)
        if self.autosave:
            self.save()
        return IntentResult(intent, True, messages)

    # ===================================================================
    # Intents
    # ===================================================================

    def _arrange_setlist(self, verses: list[str]) -> list[str]:
        return arrange_setlist(self.world, self.catalog, list(verses), self.rules)

    def _prioritize(self, verse: str) -> list[str]:
        return prioritize(self.world, self.catalog, verse, self.rules)

    def _carve(self, verse: str) -> list[str]:
        return carve(self.world, self.catalog, verse, self.rules)

    def _fell(self) -> list[str]:
        return fell(self.world, self.catalog, self.rng, self.rules)

    def _gather_fragments(self) -> list[str]:
        return gather_fragments(self.world, self.catalog, self.rules)

    def _welcome_stranger(self) -> list[str]:
        return welcome_stranger(self.world, self.catalog, self.rules)

    def _ignore_stranger(self) -> list[str]:
        return ignore_stranger(self.world)

    def _study_ash(self, verse: str) -> list[str]:
        return study_ash(self.world, self.catalog, verse, self.rules)

    def _teach(self, teacher: str, student: str, verse: str) -> list[str]:
        return teach(self.world, self.catalog, teacher, student, verse, self.rules)

    def _cross_bridge(self, target: str) -> list[str]:
        crossing = cross_bridge(self.world, self.catalog, target, self.rng, self.rules)
        self._attach(crossing.world, self.catalog)
        return crossing.messages

    # ===================================================================
    # Helpers
    # ===================================================================

    def _attach(self, world: WorldState, catalog: VerseCatalog) -> None:
        self.world = world
        self.catalog = catalog
        self.engine = TickEngine(self.rules, catalog)

    def _require_world(self) -> WorldState:
        if self.world is None:
            raise SongSimError("No world loaded. Start a new game or load one first.")
        return self.world

    def _record(self, events: list[ChronicleEvent]) -> None:
        if self.events is not None:
            self.events.append_events(self.slot, events)


def build_simulator(settings: AppSettings, rng: RandomSource | None = None) -> WorldSimulator:
    """Wire a simulator to the configured snapshot backend."""
    backend = settings.store.backend
    events: EventSink | None = None
    store: SnapshotStore
    if backend == "memory":
        store = InMemorySnapshotStore()
    elif backend == "file":
        store = FileSnapshotStore(settings.store.state_path)
    elif backend == "postgres":
        from song_sim.db.connection import DBClient
        from song_sim.db.repository import SnapshotRepository

        repo = SnapshotRepository(DBClient(settings.db))
        repo.ensure_schema()
        store, events = repo, repo
    else:
        raise SongSimError(f"Unknown store backend: {backend!r}.")
    return WorldSimulator(
        rules=settings.rules,
        store=store,
        rng=rng or make_rng(settings.simulation.seed),
        slot=settings.store.slot,
        events=events,
    )
