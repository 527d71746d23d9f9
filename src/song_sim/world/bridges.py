"""Crossing between eras.

Eras are not a line. Each era lists bridges to others, and a bridge opens
when its required verses are carved on the tree or sung well by someone
living. Crossing carries forward what survived, names how the era ended,
and seeds a new band in the target era.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from song_sim.catalog.eras import (
    APOCALYPSE_TYPES,
    ApocalypseType,
    Bridge,
    EraDefinition,
    EraKey,
    era as era_def,
)
from song_sim.catalog.verses import VerseCatalog
from song_sim.config.settings import RuleSettings
from song_sim.heritage.blood import pure_blood
from song_sim.spirits.kinds import initial_spirits
from song_sim.utils.errors import UserIntentError
from song_sim.utils.rng import RandomSource
from song_sim.utils.types import EraRecord, Person, WorldState

logger = logging.getLogger("song_sim.world")

BEAR_VERSE = "bear"
BEAR_UNLOCK_FIDELITY = 0.7
BEAR_UNLOCK_ERAS = 2

STARTING_AGES: tuple[int, ...] = (20, 16, 14, 10, 8, 4, 1)

BEAR_ROSTER: tuple[tuple[str, int, dict[str, float]], ...] = (
    ("Great-Paw", 20, {"den_memory": 1.0, "long_sleep": 0.7, "salmon_run": 0.6}),
    ("Honey-Dream", 16, {"den_memory": 0.9, "cub_call": 0.8}),
    ("Old-Den", 22, {"den_memory": 1.0, "long_sleep": 0.9, "root_dig": 0.7, "star_bear": 0.4}),
    ("River-Watch", 12, {"den_memory": 0.8, "salmon_run": 0.7}),
    ("Snow-Sleep", 8, {"den_memory": 0.6}),
    ("Cub-Cry", 3, {}),
    ("Root-Dig", 18, {"den_memory": 1.0, "root_dig": 0.8, "cub_call": 0.7}),
)

STONE_ROSTER: tuple[tuple[str, int, dict[str, float]], ...] = (
    ("Grok", 20, {"heartbeat": 1.0}),
    ("Thud", 16, {"heartbeat": 0.9}),
    ("Rumble", 12, {"heartbeat": 0.8}),
    ("Ember-Eye", 8, {"heartbeat": 0.7}),
    ("Stone-Hand", 4, {}),
    ("Old-Walk", 22, {"heartbeat": 1.0, "old_track": 0.6}),
    ("Still-One", 18, {"heartbeat": 1.0, "stone_sleep": 0.5}),
)


@dataclass
class BridgeOption:
    target: EraKey
    name: str
    bridge: Bridge
    met: bool


@dataclass
class Crossing:
    world: WorldState
    record: EraRecord
    apocalypse: ApocalypseType
    messages: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Bridges
# ---------------------------------------------------------------------------

def available_bridges(world: WorldState, rules: RuleSettings) -> list[BridgeOption]:
    garble = rules.knowledge.garble_threshold
    carved = set(world.tree.carved)
    well_known = {
        verse_id
        for person in world.people
        for verse_id, fidelity in person.verses.items()
        if fidelity >= garble
    }
    options: list[BridgeOption] = []
    for bridge in era_def(world.era).bridges:
        target = era_def(bridge.target)
        if target.hidden and target.key.value not in world.unlocked_eras:
            continue
        met = all(v in carved or v in well_known for v in bridge.requires)
        options.append(BridgeOption(target.key, target.name, bridge, met))
    return options


def surviving_verses(world: WorldState, rules: RuleSettings) -> dict[str, float]:
    """Best fidelity of every verse still held, with carvings at no less than the floor."""
    lost = rules.knowledge.lost_threshold
    surviving: dict[str, float] = {}
    for person in world.people:
        for verse_id, fidelity in person.verses.items():
            if fidelity >= lost:
                surviving[verse_id] = max(surviving.get(verse_id, 0.0), fidelity)
    for verse_id in world.tree.carved:
        surviving[verse_id] = max(surviving.get(verse_id, 0.0), rules.tree.carried_floor)
    return surviving


def determine_apocalypse(world: WorldState, catalog: VerseCatalog) -> ApocalypseType:
    counts: dict[str, int] = {}
    for verse_id in world.tree.carved:
        verse = catalog.get(verse_id)
        if verse is None:
            continue
        counts[verse.tradition] = counts.get(verse.tradition, 0) + 1
    best = next(a for a in APOCALYPSE_TYPES if a.key == "mixed")
    best_score = 0
    for apocalypse in APOCALYPSE_TYPES:
        score = sum(counts.get(t, 0) for t in apocalypse.traditions)
        if score > best_score:
            best, best_score = apocalypse, score
    return best


def cross_bridge(
    world: WorldState,
    catalog: VerseCatalog,
    target: EraKey | str,
    rng: RandomSource,
    rules: RuleSettings,
) -> Crossing:
    try:
        target_key = EraKey(target)
    except ValueError:
        raise UserIntentError(f"Unknown era: {target!r}.") from None
    option = next((b for b in available_bridges(world, rules) if b.target is target_key), None)
    if option is None:
        raise UserIntentError(f"No bridge to {era_def(target_key).name} from here.")
    if not option.met:
        required = ", ".join(catalog.name_of(v) for v in option.bridge.requires)
        raise UserIntentError(
            f"The bridge to {option.name} requires: {required}. "
            f"Carve them on the tree or keep them sung."
        )

    current = era_def(world.era)
    target_def = era_def(target_key)
    surviving = surviving_verses(world, rules)
    apocalypse = determine_apocalypse(world, catalog)

    messages = [f"{current.name} ends.", option.bridge.desc]
    if world.tree.carved:
        messages.append(f"{apocalypse.name}.")
    years = abs(current.years_bp - target_def.years_bp)
    if years:
        direction = "backward" if target_def.years_bp > current.years_bp else "forward"
        messages.append(f"{years:,} years {direction}...")
    messages.append(f"Songs carried forward: {len(surviving)}.")

    unlocked = list(world.unlocked_eras)
    if EraKey.BEARS.value not in unlocked:
        carried_bear = sum(1 for r in world.previous_eras if BEAR_VERSE in r.songs_carried)
        if (
            carried_bear >= BEAR_UNLOCK_ERAS
            and surviving.get(BEAR_VERSE, 0.0) >= BEAR_UNLOCK_FIDELITY
        ):
            unlocked.append(EraKey.BEARS.value)
            messages.append("The bears awaken. The Age of Bears is now reachable.")

    record = EraRecord(
        key=current.key.value,
        name=current.name,
        years_bp=current.years_bp,
        fellings=world.fellings,
        songs_carried=list(surviving),
        songs_lost=list(world.total_lost),
        bridge_taken=target_key.value,
    )
    next_world = new_world(
        target_key,
        surviving,
        [*world.previous_eras, record],
        unlocked,
        rng,
        rules,
        catalog,
    )
    messages.append(f"{target_def.name} begins.")
    next_world.messages = list(messages)
    logger.info(
        "Crossed bridge: from=%s to=%s carried=%d apocalypse=%s",
        current.key.value, target_key.value, len(surviving), apocalypse.key,
    )
    return Crossing(world=next_world, record=record, apocalypse=apocalypse, messages=messages)


# ---------------------------------------------------------------------------
# New eras
# ---------------------------------------------------------------------------

def new_world(
    era_key: EraKey | str,
    inherited: dict[str, float],
    previous: list[EraRecord],
    unlocked: list[str],
    rng: RandomSource,
    rules: RuleSettings,
    catalog: VerseCatalog,
) -> WorldState:
    definition = era_def(era_key)
    catalog.merge_era(definition.key.value)
    return WorldState(
        era=definition.key,
        era_name=definition.name,
        years_bp=definition.years_bp,
        people=generate_starting_people(definition, inherited, rng, rules),
        inherited_songs=dict(inherited),
        previous_eras=list(previous),
        unlocked_eras=list(unlocked),
        food=rules.population.starting_food,
        spirits=initial_spirits(),
        catalog_eras=list(catalog.merged_eras),
    )


def generate_starting_people(
    definition: EraDefinition,
    inherited: dict[str, float],
    rng: RandomSource,
    rules: RuleSettings,
) -> list[Person]:
    people_key = definition.default_people

    def make(name: str, age: int, verses: dict[str, float]) -> Person:
        return Person(
            name=name,
            age=age,
            people=people_key,
            blood=pure_blood(people_key, rng),
            verses=dict(verses),
        )

    if definition.key is EraKey.BEARS:
        return [make(name, age, verses) for name, age, verses in BEAR_ROSTER]
    if definition.key is EraKey.STONE and not inherited:
        return [make(name, age, verses) for name, age, verses in STONE_ROSTER]

    lost = rules.knowledge.lost_threshold
    inherited_ids = list(inherited)
    people: list[Person] = []
    for i, age in enumerate(STARTING_AGES):
        verses = dict(definition.base_songs)
        if inherited_ids:
            count = rng.randint(2, 5)
            shuffled = list(inherited_ids)
            rng.shuffle(shuffled)
            for verse_id in shuffled[:count]:
                degraded = min(1.0, inherited[verse_id] * (0.6 + rng.random() * 0.2))
                if degraded >= lost:
                    verses[verse_id] = max(verses.get(verse_id, 0.0), degraded)
        people.append(make(definition.names[i % len(definition.names)], age, verses))
    return people
