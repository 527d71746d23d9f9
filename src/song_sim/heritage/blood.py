"""Heritage: blood traits, people patterns, and the slow exchange between
song and blood.

Blood is a map of trait -> level in [0, 1]. People labels are not stored
truth; they are read off the blood by pattern matching. Traits sensitize
their carriers to some spirits and ease the learning of some verses. When
two parents both sing a verse well, the traits that ease it sink a little
into the child's blood.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

from song_sim.catalog.eras import LATE_ERAS, EraKey
from song_sim.config.settings import HeritageSettings
from song_sim.utils.rng import RandomSource
from song_sim.utils.types import Person, clamp


@dataclass(frozen=True)
class BloodTrait:
    key: str
    name: str
    triggers: tuple[str, ...]
    eases: tuple[str, ...]
    patterns: tuple[str, ...]


@dataclass(frozen=True)
class PeoplePattern:
    key: str
    name: str
    traits: tuple[str, ...]


BLOOD_TRAITS: dict[str, BloodTrait] = {
    t.key: t
    for t in (
        BloodTrait("deep_blood", "Deep Blood", ("bear",),
                   ("heartbeat", "deep_fire", "old_track", "stone_sleep"), ("troll",)),
        BloodTrait("stone_blood", "Stone Blood", ("bear", "wolf", "cat"),
                   ("stone_sleep", "flake", "blade"), ("troll", "dwarf")),
        BloodTrait("craft_blood", "Craft Blood", ("wolf",),
                   ("flake", "blade", "ember", "forge"), ("dwarf",)),
        BloodTrait("cave_blood", "Cave Blood", ("wolf", "bear"),
                   ("cave_song", "bear", "ochre", "burial"), ("dwarf",)),
        BloodTrait("thin_air_blood", "Thin Air Blood", ("cat",),
                   ("thin_air", "far_sight", "ghost_walk"), ("elf",)),
        BloodTrait("ghost_blood", "Ghost Blood", ("cat",),
                   ("ghost_walk", "loom", "jade"), ("elf",)),
        BloodTrait("island_blood", "Island Blood", (),
                   ("island", "small_hunt", "tide", "feast", "shelter"), ("halfling",)),
        BloodTrait("song_blood", "Song Blood", (),
                   ("lullaby", "elder_song", "tree_song", "ledger", "rune", "writing"), ("human",)),
        BloodTrait("change_blood", "Change Blood", (),
                   ("spark", "track", "seasons", "herd", "migration"), ("human",)),
        BloodTrait("shaman_blood", "Shaman Blood", ("bear", "wolf", "cat"),
                   ("bear", "burial", "dream_walk", "ghost_walk", "bone_flute"), ("dwarf", "elf")),
        BloodTrait("coastal_blood", "Coastal Blood", (),
                   ("tide", "sea_cross", "salmon_song", "weir", "sail", "kelp"), ("halfling",)),
        BloodTrait("den_blood", "Den Blood", ("bear",),
                   ("den_memory", "long_sleep", "salmon_run", "cub_call", "root_dig"), ("bear",)),
        BloodTrait("dog_blood", "Dog Blood", ("wolf",),
                   ("dog", "dog_guard", "dog_hunt", "dog_sled", "dog_burial"), ("dog",)),
        BloodTrait("yeast_blood", "Yeast Blood", ("yeast",),
                   ("brew", "bake", "sourdough", "mead"), ("yeast",)),
    )
}

# Pattern order breaks exact ties: the earlier pattern wins.
PEOPLE_PATTERNS: dict[str, PeoplePattern] = {
    p.key: p
    for p in (
        PeoplePattern("bear", "Bear", ("den_blood",)),
        PeoplePattern("troll", "Troll", ("deep_blood", "stone_blood")),
        PeoplePattern("orc", "Orc", ("deep_blood", "stone_blood")),
        PeoplePattern("dwarf", "Dwarf", ("craft_blood", "cave_blood", "shaman_blood")),
        PeoplePattern("elf", "Elf", ("thin_air_blood", "ghost_blood", "shaman_blood")),
        PeoplePattern("halfling", "Halfling", ("island_blood", "coastal_blood")),
        PeoplePattern("human", "Human", ("song_blood", "change_blood")),
        PeoplePattern("dog", "Dog", ("dog_blood",)),
        PeoplePattern("yeast", "Yeast", ("yeast_blood",)),
    )
}

# verse id -> traits that ease it
VERSE_TRAITS: dict[str, tuple[str, ...]] = {}
for _trait in BLOOD_TRAITS.values():
    for _verse_id in _trait.eases:
        VERSE_TRAITS[_verse_id] = VERSE_TRAITS.get(_verse_id, ()) + (_trait.key,)


def pattern_score(blood: Mapping[str, float], pattern: PeoplePattern) -> float:
    return sum(blood.get(t, 0.0) for t in pattern.traits) / len(pattern.traits)


def _scored_patterns(blood: Mapping[str, float]) -> list[tuple[str, float]]:
    # orc is a telling of troll blood, never matched on its own
    return [
        (key, pattern_score(blood, pattern))
        for key, pattern in PEOPLE_PATTERNS.items()
        if key != "orc"
    ]


def identify_people(blood: Mapping[str, float], era: EraKey | str | None = None) -> str:
    best_key, best_score = "human", 0.0
    for key, score in _scored_patterns(blood):
        if score > best_score:
            best_key, best_score = key, score
    if best_key == "troll" and era is not None and EraKey(era) in LATE_ERAS:
        if blood.get("shaman_blood", 0.0) < 0.1:
            best_key = "orc"
    return best_key


def heritage_label(blood: Mapping[str, float]) -> str:
    matches = [(k, s) for k, s in _scored_patterns(blood) if s >= 0.1]
    if not matches:
        return "?"
    matches.sort(key=lambda m: m[1], reverse=True)
    return "/".join(k[0].upper() for k, _ in matches[:3])


def blood_reading(blood: Mapping[str, float], cfg: HeritageSettings) -> str:
    shown = sorted(
        ((k, v) for k, v in blood.items() if v >= cfg.floor),
        key=lambda kv: kv[1],
        reverse=True,
    )
    parts = []
    for key, value in shown:
        trait = BLOOD_TRAITS.get(key)
        parts.append(f"{trait.name if trait else key} {round(value * 100)}%")
    return ", ".join(parts)


# ---- spirit sensitization ----

def allergy_strength(blood: Mapping[str, float], spirit_key: str) -> float:
    total = 0.0
    for key, level in blood.items():
        trait = BLOOD_TRAITS.get(key)
        if trait and spirit_key in trait.triggers:
            total += level
    return min(1.0, total)


def is_sensitized(blood: Mapping[str, float], spirit_key: str, cfg: HeritageSettings) -> bool:
    for key, level in blood.items():
        if level < cfg.allergy_floor:
            continue
        trait = BLOOD_TRAITS.get(key)
        if trait and spirit_key in trait.triggers:
            return True
    return False


def blood_eases(blood: Mapping[str, float], cfg: HeritageSettings) -> dict[str, float]:
    """verse id -> affinity, the strongest easing trait's level."""
    eased: dict[str, float] = {}
    for key, level in blood.items():
        if level < cfg.allergy_floor:
            continue
        trait = BLOOD_TRAITS.get(key)
        if trait is None:
            continue
        for verse_id in trait.eases:
            eased[verse_id] = max(eased.get(verse_id, 0.0), level)
    return eased


# ---- inheritance ----

def mix_blood(
    a: Mapping[str, float], b: Mapping[str, float], cfg: HeritageSettings
) -> dict[str, float]:
    child: dict[str, float] = {}
    for key in list(a) + [k for k in b if k not in a]:
        avg = (a.get(key, 0.0) + b.get(key, 0.0)) / 2
        if avg >= cfg.floor:
            child[key] = avg
    return child


def song_sink(parent1: Person, parent2: Person, cfg: HeritageSettings) -> dict[str, float]:
    """Trait boosts a child receives from verses both parents sing well."""
    boost: dict[str, float] = {}
    for verse_id, traits in VERSE_TRAITS.items():
        if parent1.fidelity(verse_id) < cfg.sink_threshold:
            continue
        if parent2.fidelity(verse_id) < cfg.sink_threshold:
            continue
        for trait in traits:
            boost[trait] = boost.get(trait, 0.0) + cfg.sink_amount
    return boost


def child_blood(parent1: Person, parent2: Person, cfg: HeritageSettings) -> dict[str, float]:
    blood = mix_blood(parent1.blood, parent2.blood, cfg)
    for trait, amount in song_sink(parent1, parent2, cfg).items():
        blood[trait] = clamp(blood.get(trait, 0.0) + amount)
    return blood


def drift_blood(person: Person, dominant: Iterable[str], cfg: HeritageSettings) -> None:
    """One season of gene flow toward the era's dominant pattern."""
    dominant = tuple(dominant)
    drifted: dict[str, float] = {}
    for key, level in person.blood.items():
        if key in dominant:
            drifted[key] = min(1.0, level + cfg.drift)
        elif level - cfg.drift >= cfg.floor:
            drifted[key] = level - cfg.drift
    for key in dominant:
        if not drifted.get(key):
            drifted[key] = cfg.drift
    person.blood = drifted


def dominant_traits(people_key: str) -> tuple[str, ...]:
    pattern = PEOPLE_PATTERNS.get(people_key)
    return pattern.traits if pattern else ()


def pure_blood(people_key: str, rng: RandomSource, variation: float = 0.1) -> dict[str, float]:
    pattern = PEOPLE_PATTERNS.get(people_key)
    if pattern is None:
        return {"song_blood": 1.0}
    return {trait: 0.9 + rng.random() * variation for trait in pattern.traits}
