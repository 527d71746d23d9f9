from __future__ import annotations

from dataclasses import dataclass, field

from song_sim.catalog.verses import VerseCatalog
from song_sim.config.settings import RuleSettings
from song_sim.population.lifecycle import note_orphaned_verses, spawn_child
from song_sim.utils.types import Chronicle, Person, WorldState, clamp
from song_sim.world.tree import update_sunlight

ATTACK_KIND = "spirit_attack"


@dataclass
class SpiritEffect:
    """What one spirit did this season. Variants decide; ``apply_effect`` mutates."""

    spirit_key: str
    attacked: bool = False
    food_delta: int = 0
    victims: list[tuple[Person, str]] = field(default_factory=list)
    """(person, how they died)"""
    legacy: tuple[Person, Person] | None = None
    """(departing singer, heir) when the dying pass their verses on."""
    burned: str | None = None
    danger_shifts: dict[str, float] = field(default_factory=dict)
    fidelity_boost: float = 0.0
    setlist_penalty: int = 0
    births: list[tuple[Person, Person, str]] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)


def apply_effect(
    world: WorldState,
    effect: SpiritEffect,
    catalog: VerseCatalog,
    rules: RuleSettings,
    chronicle: Chronicle,
) -> None:
    kind = f"spirit_{effect.spirit_key}"
    lost = rules.knowledge.lost_threshold
    garble = rules.knowledge.garble_threshold

    world.food = max(0, world.food + effect.food_delta)
    messages = list(effect.messages)
    if effect.attacked and messages:
        chronicle.emit(ATTACK_KIND, messages.pop(0), subject=effect.spirit_key)
    for message in messages:
        chronicle.emit(kind, message)

    if effect.fidelity_boost:
        for person in world.people:
            for verse_id, fidelity in list(person.verses.items()):
                if lost <= fidelity < 1.0:
                    person.learn(verse_id, fidelity + effect.fidelity_boost)
    world.night_penalty += effect.setlist_penalty

    if effect.burned is not None and effect.burned in world.tree.carved:
        world.tree.carved.remove(effect.burned)
        world.tree.height = max(0, world.tree.height - rules.tree.growth_per_verse)
        update_sunlight(world, rules.tree)
        chronicle.emit(
            kind,
            f"The fire reaches the tree. {catalog.name_of(effect.burned)} burns away.",
            verse_id=effect.burned,
        )

    for target, delta in effect.danger_shifts.items():
        if target in world.spirits:
            world.spirits[target].danger += delta

    if effect.legacy is not None:
        departing, heir = effect.legacy
        passed = []
        for verse_id, fidelity in departing.verses.items():
            if fidelity >= garble and heir.learn(verse_id, fidelity * 0.7):
                passed.append(catalog.name_of(verse_id))
        if passed:
            chronicle.emit(
                "legacy",
                f"{departing.name} sings one last time. {heir.name} listens: {', '.join(passed)}.",
                subject=heir.name,
            )

    for victim, how in effect.victims:
        if victim not in world.people:
            continue
        world.people.remove(victim)
        chronicle.emit("death", how, subject=victim.name)
        note_orphaned_verses(world, victim, catalog, rules, chronicle)

    for parent1, parent2, name in effect.births:
        if len(world.people) >= rules.population.max_population:
            break
        spawn_child(world, parent1, parent2, name, rules)
        chronicle.emit("birth", f"The surplus feeds another mouth. {name} is born.", subject=name)

    for state in world.spirits.values():
        state.spirit = clamp(state.spirit)
