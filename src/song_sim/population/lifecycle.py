from __future__ import annotations

import logging
from enum import Enum

from song_sim.catalog.eras import (
    BEAR_BIRTH_NAMES,
    BIRTH_NAMES,
    DEFAULT_STRANGER_AGE,
    STRANGER_AGES,
    STRANGER_NAMES,
    STRANGER_VERSES,
    era as era_def,
)
from song_sim.catalog.verses import VerseCatalog, anyone_knows
from song_sim.config.settings import PopulationSettings, RuleSettings
from song_sim.heritage.blood import (
    allergy_strength,
    child_blood,
    drift_blood,
    dominant_traits,
    identify_people,
    pure_blood,
)
from song_sim.utils.errors import UserIntentError
from song_sim.utils.rng import RandomSource
from song_sim.utils.types import Chronicle, Person, WorldState

logger = logging.getLogger("song_sim.population")

# verse id -> extra food per season while anyone knows it past garble
FOOD_BONUSES: dict[str, int] = {
    "root": 1,
    "herd": 2,
    "ash_song": 2,
    "grain": 3,
    "feast": 2,
    "shelter": 1,
    "deep_fire": 1,
    "salmon_song": 2,
    "weir": 2,
    "kelp": 1,
    "smoke_song": 2,
    "potlatch": 3,
    "dog": 1,
    "dog_hunt": 3,
    "dog_sled": 2,
    "bake": 2,
    "brew": 3,
    "mead": 2,
    "sourdough": 2,
}

DOMESTICATION_VERSE = "dog"


class AgeBand(str, Enum):
    YOUTH = "youth"
    ADULT = "adult"
    ELDER = "elder"
    DEAD = "dead"


def age_band(age: int, cfg: PopulationSettings) -> AgeBand:
    if age <= cfg.youth_max_age:
        return AgeBand.YOUTH
    if age <= cfg.adult_max_age:
        return AgeBand.ADULT
    if age <= cfg.elder_max_age:
        return AgeBand.ELDER
    return AgeBand.DEAD


def is_youth(person: Person, cfg: PopulationSettings) -> bool:
    return age_band(person.age, cfg) is AgeBand.YOUTH


def grown(people: list[Person], cfg: PopulationSettings) -> list[Person]:
    """Adults and elders: the singers."""
    return [p for p in people if age_band(p.age, cfg) in (AgeBand.ADULT, AgeBand.ELDER)]


def teaching_power(person: Person, cfg: PopulationSettings) -> float:
    band = age_band(person.age, cfg)
    if band is AgeBand.ELDER:
        return 2.0
    if band is AgeBand.ADULT:
        return 1.0
    return 0.0


# ---------------------------------------------------------------------------
# Aging and drift
# ---------------------------------------------------------------------------

def age_population(
    world: WorldState, catalog: VerseCatalog, rules: RuleSettings, chronicle: Chronicle
) -> list[Person]:
    """Age everyone one season. Returns the people who died of age."""
    cfg = rules.population
    for person in world.people:
        person.age += 1
    dead = [p for p in world.people if age_band(p.age, cfg) is AgeBand.DEAD]
    world.people = [p for p in world.people if age_band(p.age, cfg) is not AgeBand.DEAD]
    for person in dead:
        chronicle.emit("death", f"{person.name} dies of age.", subject=person.name)
        note_orphaned_verses(world, person, catalog, rules, chronicle)
    return dead


def note_orphaned_verses(
    world: WorldState,
    departed: Person,
    catalog: VerseCatalog,
    rules: RuleSettings,
    chronicle: Chronicle,
) -> None:
    lost = rules.knowledge.lost_threshold
    for verse_id, fidelity in departed.verses.items():
        if fidelity < lost:
            continue
        if anyone_knows(world.people, verse_id, lost):
            continue
        chronicle.emit(
            "verse_lost",
            f"{catalog.name_of(verse_id)} dies with {departed.name}.",
            subject=departed.name,
            verse_id=verse_id,
        )
        world.record_lost(verse_id)


def drift_population(world: WorldState, rules: RuleSettings) -> None:
    dominant = dominant_traits(era_def(world.era).default_people)
    for person in world.people:
        drift_blood(person, dominant, rules.heritage)


# ---------------------------------------------------------------------------
# Births
# ---------------------------------------------------------------------------

def spawn_child(
    world: WorldState,
    parent1: Person,
    parent2: Person,
    name: str,
    rules: RuleSettings,
) -> Person:
    blood = child_blood(parent1, parent2, rules.heritage)
    child = Person(
        name=name,
        age=0,
        people=identify_people(blood, world.era),
        blood=blood,
        verses={},
    )
    world.people.append(child)
    return child


def seasonal_births(
    world: WorldState, rng: RandomSource, rules: RuleSettings, chronicle: Chronicle
) -> Person | None:
    cfg = rules.population
    if world.season not in cfg.birth_seasons:
        return None
    parents = grown(world.people, cfg)
    if len(parents) < 2 or len(world.people) >= cfg.max_population:
        return None
    if world.food < cfg.birth_food_min:
        return None
    has_bears = any(p.people == "bear" for p in world.people)
    pool = BEAR_BIRTH_NAMES if has_bears else BIRTH_NAMES
    used = {p.name for p in world.people}
    available = [n for n in pool if n not in used]
    if not available:
        return None
    name = rng.choice(available)
    parent1, parent2 = rng.sample(parents, 2)
    child = spawn_child(world, parent1, parent2, name, rules)
    chronicle.emit(
        "birth",
        f"{name} is born to {parent1.name} and {parent2.name}.",
        subject=name,
    )
    return child


# ---------------------------------------------------------------------------
# Food
# ---------------------------------------------------------------------------

def gather_food(world: WorldState, rules: RuleSettings) -> int:
    cfg = rules.population
    garble = rules.knowledge.garble_threshold
    gathered = int(cfg.seasonal_gather[world.season % len(cfg.seasonal_gather)] * world.sunlight)
    for verse_id, bonus in FOOD_BONUSES.items():
        if anyone_knows(world.people, verse_id, garble):
            gathered += bonus
    return gathered


def food_economy(
    world: WorldState, catalog: VerseCatalog, rules: RuleSettings, chronicle: Chronicle
) -> None:
    gathered = gather_food(world, rules)
    world.food += gathered - len(world.people)
    if world.food < 0 and world.people:
        youngest = min(world.people, key=lambda p: p.age)
        world.people.remove(youngest)
        chronicle.emit("starvation", f"{youngest.name} starves.", subject=youngest.name)
        note_orphaned_verses(world, youngest, catalog, rules, chronicle)
    world.food = max(0, world.food)


# ---------------------------------------------------------------------------
# Domestication, strangers, collapse, time
# ---------------------------------------------------------------------------

def domestication_emigration(
    world: WorldState, rng: RandomSource, rules: RuleSettings, chronicle: Chronicle
) -> list[Person]:
    """Where the dog is sung, the wolf-sensitized drift away from the fire."""
    if not anyone_knows(world.people, DOMESTICATION_VERSE, rules.knowledge.garble_threshold):
        return []
    leaving: list[Person] = []
    for person in list(world.people):
        strength = allergy_strength(person.blood, "wolf")
        if strength < rules.heritage.allergy_floor:
            continue
        if rng.random() < strength * rules.population.emigration_rate:
            leaving.append(person)
    for person in leaving:
        world.people.remove(person)
        chronicle.emit(
            "emigration",
            f"{person.name} cannot abide the dogs and leaves the band.",
            subject=person.name,
        )
    return leaving


def maybe_encounter(
    world: WorldState,
    catalog: VerseCatalog,
    rng: RandomSource,
    rules: RuleSettings,
    chronicle: Chronicle,
) -> Person | None:
    cfg = rules.population
    if world.encounter is not None or world.season not in cfg.encounter_seasons:
        return None
    if rng.random() >= cfg.encounter_chance:
        return None
    people_key = rng.choice(era_def(world.era).encounter_peoples)
    pool = STRANGER_VERSES.get(people_key) or tuple(catalog.of_people("human"))
    verses: dict[str, float] = {}
    for _ in range(rng.randint(2, 4)):
        verses[rng.choice(pool)] = 0.5 + rng.random() * 0.5
    low, span = STRANGER_AGES.get(people_key, DEFAULT_STRANGER_AGE)
    stranger = Person(
        name=rng.choice(STRANGER_NAMES.get(people_key, STRANGER_NAMES["human"])),
        age=rng.randint(low, low + span),
        people=people_key,
        blood=pure_blood(people_key, rng),
        verses=verses,
    )
    world.encounter = stranger
    known = ", ".join(catalog.name_of(v) for v in verses)
    chronicle.emit(
        "encounter",
        f"A stranger approaches: {stranger.name}, who seems to know {known}.",
        subject=stranger.name,
    )
    return stranger


def check_collapse(world: WorldState, rules: RuleSettings, chronicle: Chronicle) -> None:
    if not world.people and not world.collapsed:
        world.collapsed = True
        chronicle.emit("collapse", "No one is left to sing. The age collapses.")
        logger.info("Band collapsed: era=%s turn=%d", world.era.value, world.turn)
    elif world.sunlight <= rules.tree.sunlight_floor and world.food <= 0:
        chronicle.emit("crisis", "The tree has killed the sun. Nothing grows.")


def advance_calendar(world: WorldState) -> None:
    world.season = (world.season + 1) % 4
    if world.season == 0:
        world.year += 1
        world.years_bp -= 1
    world.turn += 1


def welcome_stranger(world: WorldState, catalog: VerseCatalog, rules: RuleSettings) -> list[str]:
    stranger = world.encounter
    if stranger is None:
        raise UserIntentError("There is no stranger at the fire.")
    if len(world.people) >= rules.population.max_population:
        raise UserIntentError("The band is too large to take in anyone else.")
    world.people.append(stranger)
    world.encounter = None
    known = [catalog.name_of(v) for v, f in stranger.verses.items()
             if f >= rules.knowledge.lost_threshold]
    message = f"{stranger.name} joins the band"
    return [message + (f", bringing {', '.join(known)}." if known else ".")]


def ignore_stranger(world: WorldState) -> list[str]:
    stranger = world.encounter
    if stranger is None:
        raise UserIntentError("There is no stranger at the fire.")
    world.encounter = None
    return [f"{stranger.name} walks on. Their songs go with them."]
