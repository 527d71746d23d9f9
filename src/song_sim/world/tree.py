"""The world tree.

Carving fixes a verse where forgetting cannot reach it, and grows the tree.
A tall tree shades the land; past the death height nothing grows. Felling
resets the tree, scatters some carvings as fragments, loses the rest unless
someone still sings them, and leaves an ash from which new verses emerge.
"""
from __future__ import annotations

import logging

from song_sim.catalog.verses import VerseCatalog, anyone_knows, prereqs_met
from song_sim.config.settings import RuleSettings, TreeSettings
from song_sim.population.lifecycle import grown
from song_sim.utils.errors import UserIntentError
from song_sim.utils.rng import RandomSource
from song_sim.utils.types import Fragment, Tree, WorldState

logger = logging.getLogger("song_sim.world")


def sunlight_for(height: int, cfg: TreeSettings) -> float:
    if height < cfg.sun_blocked_height:
        return 1.0
    blockage = (height - cfg.sun_blocked_height) / (cfg.sun_dead_height - cfg.sun_blocked_height)
    return max(cfg.sunlight_floor, 1.0 - blockage)


def update_sunlight(world: WorldState, cfg: TreeSettings) -> float:
    world.sunlight = sunlight_for(world.tree.height, cfg)
    return world.sunlight


def carve(
    world: WorldState, catalog: VerseCatalog, verse_id: str, rules: RuleSettings
) -> list[str]:
    knowledge, cfg = rules.knowledge, rules.tree
    verse = catalog.require(verse_id)
    if verse_id in world.tree.carved:
        raise UserIntentError(f"{verse.name} is already carved on the tree.")
    carver = next(
        (
            p for p in world.people
            if p.fidelity(verse_id) >= knowledge.carve_threshold
            and p.fidelity(knowledge.carving_verse) >= knowledge.garble_threshold
        ),
        None,
    )
    if carver is None:
        raise UserIntentError(
            f"Carving {verse.name} needs someone who holds it at "
            f"{round(knowledge.carve_threshold * 100)}% and knows "
            f"{catalog.name_of(knowledge.carving_verse)}."
        )
    world.tree.carved.append(verse_id)
    world.tree.height += cfg.growth_per_verse
    update_sunlight(world, cfg)
    messages = [f"{carver.name} carves {verse.name} into the tree. Height {world.tree.height}."]
    if world.tree.height >= cfg.sun_dead_height:
        messages.append("The tree blocks the sun. Fell it or all will perish.")
    elif world.tree.height >= cfg.sun_blocked_height:
        messages.append("The canopy darkens the sky.")
    logger.info("Carved: verse=%s carver=%s height=%d", verse_id, carver.name, world.tree.height)
    return messages


def fell(
    world: WorldState,
    catalog: VerseCatalog,
    rng: RandomSource,
    rules: RuleSettings,
) -> list[str]:
    knowledge, cfg = rules.knowledge, rules.tree
    if world.tree.height == 0 or not world.tree.carved:
        raise UserIntentError("There is no tree to fell.")
    if not anyone_knows(world.people, cfg.felling_verse, knowledge.garble_threshold):
        raise UserIntentError(
            f"No one knows {catalog.name_of(cfg.felling_verse)} well enough to fell the tree."
        )

    messages = [f"The tree is felled. It stood {world.tree.height} high."]
    for verse_id in world.tree.carved:
        name = catalog.name_of(verse_id)
        if rng.random() < cfg.scatter_chance:
            fidelity = cfg.fragment_min + rng.random() * cfg.fragment_span
            world.fragments.append(Fragment(verse=verse_id, fidelity=fidelity))
            messages.append(f"A fragment of {name} survives ({round(fidelity * 100)}% intact).")
        elif anyone_knows(world.people, verse_id, knowledge.lost_threshold):
            messages.append(f"{name} survives in memory.")
        else:
            world.record_lost(verse_id)
            messages.append(f"{name} is lost. It lived only on the tree.")

    carved = set(world.tree.carved)
    for verse in catalog.ash():
        if verse.id in world.ash_verses:
            continue
        if all(source in carved for source in verse.emerges_from):
            world.ash_verses.append(verse.id)
            messages.append(f"From the ash something new grows: {verse.name}.")

    world.tree = Tree()
    update_sunlight(world, cfg)
    world.fellings += 1
    for state in world.spirits.values():
        state.spirit = max(0.0, state.spirit - cfg.felling_spirit_penalty)
    messages.append(f"The spirits stir. Fellings: {world.fellings}.")
    logger.info("Felled: fellings=%d fragments=%d", world.fellings, len(world.fragments))
    return messages


def gather_fragments(
    world: WorldState, catalog: VerseCatalog, rules: RuleSettings
) -> list[str]:
    knowledge = rules.knowledge
    if not world.fragments:
        raise UserIntentError("There are no fragments to gather.")
    singers = grown(world.people, rules.population)
    messages: list[str] = []
    for fragment in world.fragments:
        verse = catalog.get(fragment.verse)
        if verse is None:
            continue
        learner = next(
            (p for p in singers if prereqs_met(p, verse, knowledge.garble_threshold)), None
        )
        if learner is not None:
            learner.learn(fragment.verse, fragment.fidelity)
            messages.append(f"{learner.name} gathers a fragment of {verse.name}.")
            continue
        messages.append(f"No one can understand the fragment of {verse.name}. It crumbles.")
        if not anyone_knows(world.people, fragment.verse, knowledge.lost_threshold):
            world.record_lost(fragment.verse)
    world.fragments = []
    return messages


def study_ash(
    world: WorldState, catalog: VerseCatalog, verse_id: str, rules: RuleSettings
) -> list[str]:
    knowledge, cfg = rules.knowledge, rules.tree
    if verse_id not in world.ash_verses:
        raise UserIntentError(f"{catalog.name_of(verse_id)} has not emerged from the ash.")
    verse = catalog.require(verse_id)
    learner = next(
        (
            p for p in grown(world.people, rules.population)
            if p.fidelity(verse_id) < cfg.study_known
            and prereqs_met(p, verse, knowledge.garble_threshold)
        ),
        None,
    )
    if learner is None:
        raise UserIntentError(f"No one has the foundation to study {verse.name}.")
    before = learner.fidelity(verse_id)
    learner.learn(verse_id, min(cfg.study_cap, before + cfg.study_gain))
    return [
        f"{learner.name} kneels in the ash and begins to understand {verse.name}: "
        f"{round(before * 100)}% -> {round(learner.fidelity(verse_id) * 100)}%."
    ]
