"""Season tick engine.

One season is one atomic batch transform of the world, applied in a fixed
phase order:

  age -> blood drift -> setlist -> absorb -> emergence -> blood memory
  -> births -> food -> tree shadow -> spirits -> domestication
  -> strangers -> collapse -> calendar

Every phase writes human-readable lines to a ``Chronicle``; the engine
returns it and copies its messages onto the world.
"""
from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass

from song_sim.catalog.verses import VerseCatalog
from song_sim.config.settings import RuleSettings
from song_sim.emergence.system import EmergenceSystem
from song_sim.population.lifecycle import (
    advance_calendar,
    age_population,
    check_collapse,
    domestication_emigration,
    drift_population,
    food_economy,
    maybe_encounter,
    seasonal_births,
)
from song_sim.spirits.kinds import resolve_spirits
from song_sim.transmission.setlist import absorb_setlist, blood_memory, prepare_setlist
from song_sim.utils.rng import RandomSource
from song_sim.utils.types import Chronicle, WorldState
from song_sim.world.tree import update_sunlight

logger = logging.getLogger("song_sim.engine")

SEASON_NAMES = ("Spring", "Summer", "Autumn", "Winter")


@dataclass
class SeasonSummary:
    turn: int
    capacity: int
    absorbed: int
    population: int
    food: int
    events: dict[str, int]


class TickEngine:
    """Runs one season over a world in the fixed phase order."""

    def __init__(self, rules: RuleSettings, catalog: VerseCatalog) -> None:
        self.rules = rules
        self.catalog = catalog
        self.emergence = EmergenceSystem(catalog, rules)
        self.last_summary: SeasonSummary | None = None

    def run_season(self, world: WorldState, rng: RandomSource) -> Chronicle:
        rules, catalog = self.rules, self.catalog
        turn = world.turn
        chronicle = Chronicle(turn)
        _t0 = time.perf_counter()
        logger.info(
            "TICK-START turn=%d era=%s alive=%d food=%d",
            turn, world.era.value, len(world.people), world.food,
        )

        def _phase(label: str) -> None:
            logger.info(
                "TICK-PHASE turn=%d step=%s elapsed=%.3fs",
                turn, label, time.perf_counter() - _t0,
            )

        chronicle.emit(
            "season",
            f"{SEASON_NAMES[world.season]}, year {world.year} ({world.years_bp:,} BP).",
        )

        _phase("age")
        age_population(world, catalog, rules, chronicle)

        _phase("blood_drift")
        drift_population(world, rules)

        _phase("setlist")
        capacity = prepare_setlist(world, catalog, rules, chronicle)

        _phase("absorb")
        absorbed = absorb_setlist(world, catalog, rules, chronicle)

        _phase("emergence")
        self.emergence.run(world, rng, chronicle)

        _phase("blood_memory")
        blood_memory(world, catalog, rng, rules, chronicle)

        _phase("births")
        seasonal_births(world, rng, rules, chronicle)

        _phase("food")
        food_economy(world, catalog, rules, chronicle)

        _phase("tree_shadow")
        update_sunlight(world, rules.tree)
        if world.tree.height >= rules.tree.sun_dead_height:
            chronicle.emit("tree", "The tree blots out the sun. It must be felled.")
        elif world.tree.height >= rules.tree.sun_blocked_height:
            chronicle.emit(
                "tree",
                f"The tree's shadow covers the land. Sunlight {round(world.sunlight * 100)}%.",
            )

        _phase("spirits")
        resolve_spirits(world, catalog, rng, rules, chronicle)

        _phase("domestication")
        domestication_emigration(world, rng, rules, chronicle)

        _phase("encounter")
        maybe_encounter(world, catalog, rng, rules, chronicle)

        _phase("collapse")
        check_collapse(world, rules, chronicle)

        advance_calendar(world)
        world.messages = chronicle.messages

        counts = Counter(e.kind for e in chronicle.events)
        self.last_summary = SeasonSummary(
            turn=turn,
            capacity=capacity,
            absorbed=absorbed,
            population=len(world.people),
            food=world.food,
            events=dict(counts),
        )
        logger.info(
            "TICK-END turn=%d elapsed=%.3fs alive=%d events=%s",
            turn, time.perf_counter() - _t0, len(world.people), dict(counts),
        )
        return chronicle
