"""Setlist transmission.

Knowledge moves between generations only by being sung. Each season the
band performs an ordered setlist whose length is bounded by how many
singers there are. Youth absorb what is sung, partially and slowly: early
slots carry best, repetition across seasons helps, blood affinity helps,
and nobody absorbs past the best singer in the band. Adults and elders can
also teach one-on-one, and the blood occasionally surfaces a verse by
itself.
"""
from __future__ import annotations

import logging
import math

from song_sim.catalog.verses import VerseCatalog, anyone_knows, prereqs_met
from song_sim.config.settings import KnowledgeSettings, RuleSettings
from song_sim.heritage.blood import blood_eases
from song_sim.population.lifecycle import grown, is_youth, teaching_power
from song_sim.utils.errors import UserIntentError
from song_sim.utils.rng import RandomSource
from song_sim.utils.types import Chronicle, Person, WorldState

logger = logging.getLogger("song_sim.transmission")


# ---------------------------------------------------------------------------
# Capacity
# ---------------------------------------------------------------------------

def setlist_capacity(world: WorldState, rules: RuleSettings) -> int:
    """Slots available before any pending night penalty."""
    knowledge = rules.knowledge
    singers = len(grown(world.people, rules.population))
    if singers <= 0:
        return 0
    cap = math.floor(math.log2(singers) * 2) + 1
    for verse_id, bonus in knowledge.memory_aids:
        if anyone_knows(world.people, verse_id, knowledge.garble_threshold):
            cap += bonus
    return cap


def season_capacity(world: WorldState, rules: RuleSettings) -> int:
    """Capacity for this season's performance. Consumes the night penalty."""
    cap = setlist_capacity(world, rules)
    if cap > 0 and world.night_penalty > 0:
        cap = max(1, cap - world.night_penalty)
    world.night_penalty = 0
    return cap


def literate_readers(world: WorldState, rules: RuleSettings) -> list[Person]:
    knowledge = rules.knowledge
    return [
        p
        for p in grown(world.people, rules.population)
        if p.fidelity(knowledge.literacy_verse) >= knowledge.garble_threshold
    ]


def position_factor(position: int, total: int, cfg: KnowledgeSettings) -> float:
    if total <= 1:
        return cfg.position_single
    span = cfg.position_open - cfg.position_close
    return cfg.position_open - (position / (total - 1)) * span


def repetition_bonus(reps: int, cfg: KnowledgeSettings) -> float:
    return min(cfg.repetition_cap, max(0, reps - 1) * cfg.repetition_step)


def source_fidelity(world: WorldState, verse_id: str, rules: RuleSettings) -> float:
    """Best fidelity anyone can perform ``verse_id`` at: sung, or read off the tree."""
    best = max(
        (p.fidelity(verse_id) for p in grown(world.people, rules.population)),
        default=0.0,
    )
    if verse_id in world.tree.carved and literate_readers(world, rules):
        best = max(best, rules.knowledge.writing_fidelity)
    return best


# ---------------------------------------------------------------------------
# Performance
# ---------------------------------------------------------------------------

def prepare_setlist(
    world: WorldState, catalog: VerseCatalog, rules: RuleSettings, chronicle: Chronicle
) -> int:
    """Prune, auto-fill and trim the setlist, then record repetition."""
    knowledge = rules.knowledge
    capacity = season_capacity(world, rules)
    readable = set(world.tree.carved) if literate_readers(world, rules) else set()

    kept: list[str] = []
    for verse_id in world.setlist:
        if verse_id in kept or verse_id not in catalog:
            continue
        if anyone_knows(world.people, verse_id, knowledge.lost_threshold) or verse_id in readable:
            kept.append(verse_id)
    world.setlist = kept

    if len(world.setlist) < capacity:
        held: dict[str, float] = {}
        for person in grown(world.people, rules.population):
            for verse_id, fidelity in person.verses.items():
                if fidelity >= knowledge.lost_threshold and verse_id in catalog:
                    held[verse_id] = max(held.get(verse_id, 0.0), fidelity)
        for verse_id in world.tree.carved:
            if verse_id in readable and held.get(verse_id, 0.0) < knowledge.writing_fidelity:
                held[verse_id] = knowledge.writing_fidelity
        ranked = sorted(
            ((v, f) for v, f in held.items() if v not in world.setlist),
            key=lambda vf: vf[1],
            reverse=True,
        )
        for verse_id, _ in ranked:
            if len(world.setlist) >= capacity:
                break
            world.setlist.append(verse_id)

    del world.setlist[capacity:]
    world.setlist_history = {
        v: world.setlist_history.get(v, 0) + 1 for v in world.setlist
    }
    if world.setlist:
        names = ", ".join(catalog.name_of(v) for v in world.setlist)
        chronicle.emit(
            "setlist",
            f"The song tonight ({len(world.setlist)}/{capacity} slots): {names}.",
        )
    return capacity


def absorb_setlist(
    world: WorldState, catalog: VerseCatalog, rules: RuleSettings, chronicle: Chronicle
) -> int:
    """Youth listen to the performance. Returns how many verse gains occurred."""
    knowledge = rules.knowledge
    youth = [p for p in world.people if is_youth(p, rules.population)]
    total = len(world.setlist)
    gains = 0
    for student in youth:
        eased = blood_eases(student.blood, rules.heritage)
        for position, verse_id in enumerate(world.setlist):
            verse = catalog.get(verse_id)
            if verse is None:
                continue
            if not prereqs_met(student, verse, knowledge.garble_threshold):
                continue
            teacher = source_fidelity(world, verse_id, rules)
            if teacher < knowledge.lost_threshold:
                continue
            absorbed = absorbed_target(
                teacher,
                position,
                total,
                world.setlist_history.get(verse_id, 1),
                eased.get(verse_id, 0.0),
                knowledge,
            )
            current = student.fidelity(verse_id)
            if absorbed > current:
                student.learn(verse_id, current + (absorbed - current) * knowledge.absorb_gap_rate)
                gains += 1
                logger.debug(
                    "Absorb: student=%s verse=%s %.3f -> %.3f",
                    student.name,
                    verse_id,
                    current,
                    student.fidelity(verse_id),
                )
    return gains


def absorbed_target(
    teacher: float,
    position: int,
    total: int,
    reps: int,
    affinity: float,
    cfg: KnowledgeSettings,
) -> float:
    """The level a listening youth converges toward, never above the teacher."""
    factor = position_factor(position, total, cfg) + repetition_bonus(reps, cfg)
    return min(teacher, teacher * factor * (1 + affinity * cfg.blood_absorb_weight))


def blood_memory(
    world: WorldState,
    catalog: VerseCatalog,
    rng: RandomSource,
    rules: RuleSettings,
    chronicle: Chronicle,
) -> None:
    knowledge = rules.knowledge
    for person in grown(world.people, rules.population):
        for verse_id, affinity in blood_eases(person.blood, rules.heritage).items():
            verse = catalog.get(verse_id)
            if verse is None:
                continue
            current = person.fidelity(verse_id)
            if current >= knowledge.garble_threshold:
                continue
            if not prereqs_met(person, verse, knowledge.lost_threshold):
                continue
            if rng.random() < affinity * knowledge.blood_memory_chance:
                recalled = min(knowledge.garble_threshold - 0.01, current + knowledge.blood_memory_step)
                if person.learn(verse_id, recalled):
                    chronicle.emit(
                        "blood_memory",
                        f"{person.name}'s blood remembers {verse.name}, garbled.",
                        subject=person.name,
                        verse_id=verse_id,
                    )


# ---------------------------------------------------------------------------
# Player intents
# ---------------------------------------------------------------------------

def arrange_setlist(
    world: WorldState, catalog: VerseCatalog, verse_ids: list[str], rules: RuleSettings
) -> list[str]:
    lost = rules.knowledge.lost_threshold
    arranged: list[str] = []
    for verse_id in verse_ids:
        verse = catalog.require(verse_id)
        if not anyone_knows(world.people, verse_id, lost):
            raise UserIntentError(f"No one knows {verse.name}; it cannot be sung.")
        if verse_id not in arranged:
            arranged.append(verse_id)
    capacity = setlist_capacity(world, rules)
    dropped = arranged[capacity:]
    world.setlist = arranged[:capacity]
    messages = [f"The setlist is now {len(world.setlist)}/{capacity} slots."]
    if dropped:
        messages.append(
            "No room for " + ", ".join(catalog.name_of(v) for v in dropped) + "."
        )
    return messages


def prioritize(
    world: WorldState, catalog: VerseCatalog, verse_id: str, rules: RuleSettings
) -> list[str]:
    verse = catalog.require(verse_id)
    if not anyone_knows(world.people, verse_id, rules.knowledge.lost_threshold):
        raise UserIntentError(f"No one knows {verse.name}; it cannot open the night.")
    setlist = [verse_id] + [v for v in world.setlist if v != verse_id]
    capacity = setlist_capacity(world, rules)
    world.setlist = setlist[:capacity]
    if verse_id not in world.setlist:
        return [f"No room for {verse.name}; the setlist has {capacity} slots."]
    return [f"{verse.name} now opens the night."]


def teach(
    world: WorldState,
    catalog: VerseCatalog,
    teacher_name: str,
    student_name: str,
    verse_id: str,
    rules: RuleSettings,
) -> list[str]:
    """Focused one-on-one teaching. Costs a season of the teacher's attention."""
    knowledge = rules.knowledge
    verse = catalog.require(verse_id)
    teacher = _person(world, teacher_name)
    student = _person(world, student_name)
    if teacher is student:
        raise UserIntentError(f"{teacher.name} cannot teach themselves.")
    power = teaching_power(teacher, rules.population)
    if power <= 0:
        raise UserIntentError(f"{teacher.name} is too young to teach.")
    taught = teacher.fidelity(verse_id)
    if taught < knowledge.lost_threshold:
        raise UserIntentError(f"{teacher.name} does not know {verse.name}.")
    if not prereqs_met(student, verse, knowledge.garble_threshold):
        missing = [catalog.name_of(p) for p in verse.prereqs
                   if student.fidelity(p) < knowledge.garble_threshold]
        raise UserIntentError(
            f"{student.name} lacks the foundation for {verse.name}: {', '.join(missing)}."
        )
    affinity = blood_eases(student.blood, rules.heritage).get(verse_id, 0.0)
    before = student.fidelity(verse_id)
    gain = knowledge.focused_rate * power * (1 + affinity)
    student.learn(verse_id, min(taught, before + gain))
    after = student.fidelity(verse_id)
    return [
        f"{teacher.name} teaches {student.name} {verse.name}: "
        f"{round(before * 100)}% -> {round(after * 100)}%."
    ]


def _person(world: WorldState, name: str) -> Person:
    for person in world.people:
        if person.name.casefold() == name.casefold():
            return person
    raise UserIntentError(f"No one called {name!r} is in the band.")
