from __future__ import annotations

import logging

from song_sim.catalog.verses import Verse, VerseCatalog, anyone_knows
from song_sim.config.settings import RuleSettings
from song_sim.population.lifecycle import grown
from song_sim.utils.rng import RandomSource
from song_sim.utils.types import Chronicle, Person, WorldState, clamp


def _best_singer(people: list[Person], *verse_ids: str) -> tuple[Person | None, float]:
    best, best_score = None, 0.0
    for person in people:
        score = sum(person.fidelity(v) for v in verse_ids)
        if score > best_score:
            best, best_score = person, score
    return best, best_score


class EmergenceSystem:
    """Verses that appear without being taught.

    Shadows grow while a light verse is sung without its foundation.
    Redemptions appear when a shadow is sung beside its missing root.
    Mixed and ash verses can be heard between two adjacent prerequisites.
    """

    def __init__(self, catalog: VerseCatalog, rules: RuleSettings) -> None:
        self.catalog = catalog
        self.rules = rules
        self.logger = logging.getLogger("song_sim.emergence")

    def run(self, world: WorldState, rng: RandomSource, chronicle: Chronicle) -> None:
        self.accumulate_shadows(world, chronicle)
        self.discover_redemptions(world, rng, chronicle)
        self.discover_adjacent(world, rng, chronicle)

    # ---- shadows ----

    def accumulate_shadows(self, world: WorldState, chronicle: Chronicle) -> None:
        garble = self.rules.knowledge.garble_threshold
        cfg = self.rules.emergence
        for shadow in self.catalog.shadows():
            if anyone_knows(world.people, shadow.id, garble):
                continue
            light = shadow.shadow_of
            if light not in world.setlist and not anyone_knows(world.people, light, garble):
                continue
            foundation = shadow.shadow_when
            present = (
                foundation in world.setlist
                or foundation in world.tree.carved
                or anyone_knows(world.people, foundation, garble)
            )
            level = world.shadows.get(shadow.id, 0.0)
            if present:
                world.shadows[shadow.id] = max(0.0, level - cfg.shadow_decay)
                continue
            level = clamp(level + shadow.shadow_rate)
            world.shadows[shadow.id] = level
            if level >= 1.0:
                self._crystallize(world, shadow, chronicle)
            elif level > 0.5:
                chronicle.emit(
                    "shadow_growing",
                    f"The shadow of {shadow.name} grows ({round(level * 100)}%).",
                    verse_id=shadow.id,
                )

    def _crystallize(self, world: WorldState, shadow: Verse, chronicle: Chronicle) -> None:
        singers = grown(world.people, self.rules.population)
        singer, light = _best_singer(singers, shadow.shadow_of)
        if singer is None:
            return
        singer.learn(shadow.id, light * self.rules.emergence.crystallize_ratio)
        world.shadows[shadow.id] = 0.0
        chronicle.emit(
            "shadow",
            f"A shadow falls. {singer.name} now knows {shadow.name}.",
            subject=singer.name,
            verse_id=shadow.id,
        )
        self.logger.info(
            "Shadow crystallized: verse=%s singer=%s turn=%d",
            shadow.id, singer.name, world.turn,
        )

    # ---- redemptions ----

    def discover_redemptions(
        self, world: WorldState, rng: RandomSource, chronicle: Chronicle
    ) -> None:
        garble = self.rules.knowledge.garble_threshold
        cfg = self.rules.emergence
        for shadow in self.catalog.shadows():
            root, redemption_id = shadow.redeems_with, shadow.redeems_into
            if not root or not redemption_id or redemption_id not in self.catalog:
                continue
            if anyone_knows(world.people, redemption_id, garble):
                continue
            if not anyone_knows(world.people, shadow.id, garble):
                continue
            if not anyone_knows(world.people, root, garble):
                continue
            if shadow.id not in world.setlist or root not in world.setlist:
                continue
            if rng.random() >= cfg.redemption_chance:
                continue
            singers = grown(world.people, self.rules.population)
            redeemer, score = _best_singer(singers, shadow.id, root)
            if redeemer is None:
                continue
            redeemer.learn(redemption_id, score * cfg.redemption_ratio)
            name = self.catalog.name_of(redemption_id)
            chronicle.emit(
                "redemption",
                f"{name} emerges in {redeemer.name}: the shadow meets its root.",
                subject=redeemer.name,
                verse_id=redemption_id,
            )
            self.logger.info(
                "Redemption: verse=%s redeemer=%s turn=%d",
                redemption_id, redeemer.name, world.turn,
            )

    # ---- adjacency ----

    def discover_adjacent(
        self, world: WorldState, rng: RandomSource, chronicle: Chronicle
    ) -> None:
        garble = self.rules.knowledge.garble_threshold
        cfg = self.rules.emergence
        singers = grown(world.people, self.rules.population)
        candidates = [
            v for v in self.catalog
            if v.tradition in cfg.adjacency_traditions and len(v.prereqs) >= 2
        ]
        for first, second in zip(world.setlist, world.setlist[1:]):
            for verse in candidates:
                if first not in verse.prereqs or second not in verse.prereqs:
                    continue
                if not any(
                    p.fidelity(first) >= garble and p.fidelity(second) >= garble
                    for p in singers
                ):
                    continue
                if not all(anyone_knows(world.people, pr, garble) for pr in verse.prereqs):
                    continue
                if anyone_knows(world.people, verse.id, garble):
                    continue
                reps = min(world.setlist_history.get(first, 0), world.setlist_history.get(second, 0))
                if rng.random() >= cfg.adjacency_base + reps * cfg.adjacency_step:
                    continue
                discoverer, _ = _best_singer(singers, first, second)
                if discoverer is None:
                    continue
                fidelity = min(discoverer.fidelity(first), discoverer.fidelity(second))
                discoverer.learn(verse.id, fidelity * cfg.adjacency_ratio)
                chronicle.emit(
                    "adjacency",
                    f"{discoverer.name} sings {self.catalog.name_of(first)} into "
                    f"{self.catalog.name_of(second)} and hears {verse.name}.",
                    subject=discoverer.name,
                    verse_id=verse.id,
                )
                self.logger.info(
                    "Adjacency discovery: verse=%s discoverer=%s turn=%d",
                    verse.id, discoverer.name, world.turn,
                )
