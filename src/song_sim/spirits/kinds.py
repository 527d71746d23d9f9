"""Spirits: the forces the band keeps a relationship with by singing.

Every spirit shares one model. Its song (or a weaker fallback) mends the
relationship, neglect erodes it, fellings make it more dangerous, and in its
seasons it may attack with probability ``danger * (1 - spirit * protection)``.
What an attack does depends on the variant. Variants only decide what
happens and return a ``SpiritEffect``; ``apply_effect`` performs the change.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from song_sim.catalog.eras import SURPLUS_BIRTH_NAMES
from song_sim.catalog.verses import VerseCatalog, anyone_knows, best_fidelity
from song_sim.config.settings import RuleSettings
from song_sim.heritage.blood import is_sensitized
from song_sim.population.lifecycle import AgeBand, age_band
from song_sim.spirits.effects import SpiritEffect, apply_effect
from song_sim.utils.rng import RandomSource
from song_sim.utils.types import Chronicle, Person, SpiritState, WorldState

logger = logging.getLogger("song_sim.spirits")

HOSTILE_BELOW = 0.3
"""Spirits only kill once the relationship has fallen below this."""
DISRESPECT_QUALITY = -0.2


@dataclass(frozen=True)
class SpiritProfile:
    key: str
    name: str
    song_id: str
    fallback_song_id: str | None
    kind: str
    base_danger: float
    danger_per_felling: float
    song_protection: float
    attack_food_loss: int
    kill_chance: float
    seasons: tuple[int, ...]
    allergy_kill_bonus: float = 0.0
    allergy_warning: float = 0.0
    taming_song_id: str | None = None
    """A verse that supersedes the primary song when held better."""


class Spirit:
    """Shared relationship model. Subclasses override ``attack``."""

    def __init__(self, profile: SpiritProfile) -> None:
        self.profile = profile

    @property
    def key(self) -> str:
        return self.profile.key

    def initial_state(self) -> SpiritState:
        return SpiritState(spirit=1.0, danger=self.profile.base_danger)

    # ---- relationship ----

    def song_quality(self, world: WorldState, rules: RuleSettings) -> float:
        knowledge = rules.knowledge
        p = self.profile
        best = best_fidelity(world.people, p.song_id)
        if p.fallback_song_id and best < knowledge.garble_threshold:
            best = max(best, best_fidelity(world.people, p.fallback_song_id) * 0.5)
        if p.taming_song_id:
            best = max(best, best_fidelity(world.people, p.taming_song_id))
        if best < knowledge.lost_threshold and p.song_id in world.tree.carved:
            return DISRESPECT_QUALITY
        return best

    def drift(self, state: SpiritState, quality: float, rules: RuleSettings) -> None:
        if quality > rules.knowledge.garble_threshold:
            state.spirit = min(1.0, state.spirit + 0.05 * quality)
        elif quality < 0:
            state.spirit = max(0.0, state.spirit - 0.1)
        else:
            state.spirit = max(0.0, state.spirit - 0.03)

    def assess_danger(self, world: WorldState, rules: RuleSettings) -> float:
        return self.profile.base_danger + world.fellings * self.profile.danger_per_felling

    def effective_danger(self, state: SpiritState) -> float:
        return state.danger * (1 - state.spirit * self.profile.song_protection)

    # ---- season ----

    def resolve(
        self,
        world: WorldState,
        state: SpiritState,
        rng: RandomSource,
        rules: RuleSettings,
    ) -> SpiritEffect:
        quality = self.song_quality(world, rules)
        self.drift(state, quality, rules)
        state.danger = self.assess_danger(world, rules)
        if world.season not in self.profile.seasons:
            return SpiritEffect(self.key)
        if rng.random() >= self.effective_danger(state):
            return SpiritEffect(self.key)
        effect = self.attack(world, state, quality, rng, rules)
        effect.attacked = True
        if state.spirit < 0.5:
            effect.messages.append(
                f"The {self.profile.name} is restless ({round(state.spirit * 100)}%). "
                f"Someone must sing its song to mend the relationship."
            )
        return effect

    def attack(
        self,
        world: WorldState,
        state: SpiritState,
        quality: float,
        rng: RandomSource,
        rules: RuleSettings,
    ) -> SpiritEffect:
        raise NotImplementedError

    def kills(self, state: SpiritState, rng: RandomSource) -> bool:
        return state.spirit < HOSTILE_BELOW and rng.random() < self.profile.kill_chance

    def _raid(self) -> SpiritEffect:
        return SpiritEffect(self.key, food_delta=-self.profile.attack_food_loss)


class AnimalSpirit(Spirit):
    """Bear, wolf, cat. Sensitized blood draws them to the young, and warns the old."""

    def attack(self, world, state, quality, rng, rules) -> SpiritEffect:
        p = self.profile
        effect = self._raid()
        effect.messages.append(
            f"The {p.name.lower()} raids the camp. {p.attack_food_loss} food lost."
        )
        if not self.kills(state, rng):
            return effect
        cfg, heritage = rules.population, rules.heritage
        sensitized_youth: list[Person] = []
        sensitized_grown: list[Person] = []
        others: list[Person] = []
        for person in world.people:
            band = age_band(person.age, cfg)
            if is_sensitized(person.blood, self.key, heritage):
                if band is AgeBand.YOUTH:
                    sensitized_youth.append(person)
                elif band in (AgeBand.ADULT, AgeBand.ELDER):
                    sensitized_grown.append(person)
            elif band is not AgeBand.DEAD:
                others.append(person)
        if sensitized_youth and rng.random() < p.kill_chance + p.allergy_kill_bonus:
            victim = rng.choice(sensitized_youth)
            effect.victims.append((victim, f"{victim.name} is taken by the {p.name.lower()}. The old blood called it."))
        elif sensitized_grown and rng.random() > p.allergy_warning:
            victim = rng.choice(sensitized_grown)
            effect.victims.append((victim, f"{victim.name} sensed the {p.name.lower()}, but too late."))
        elif others:
            victim = rng.choice(others)
            effect.victims.append((victim, f"{victim.name} is killed by the {p.name.lower()}."))
        return effect


class StolenSpirit(Spirit):
    """Fire. Half-remembered fire verses make it more dangerous than none at all."""

    FIRE_SONGS = ("ember", "spark", "deep_fire", "forge")
    GARBLED_FIRE_DANGER = 0.03
    TREE_BURN_CHANCE = 0.3

    def assess_danger(self, world: WorldState, rules: RuleSettings) -> float:
        lost, garble = rules.knowledge.lost_threshold, rules.knowledge.garble_threshold
        danger = super().assess_danger(world, rules)
        for person in world.people:
            for verse_id in self.FIRE_SONGS:
                if lost < person.fidelity(verse_id) < garble:
                    danger += self.GARBLED_FIRE_DANGER
        return danger

    def attack(self, world, state, quality, rng, rules) -> SpiritEffect:
        effect = self._raid()
        effect.messages.append(f"Fire in the camp. {self.profile.attack_food_loss} food lost.")
        if world.tree.carved and rng.random() < self.TREE_BURN_CHANCE:
            effect.burned = rng.choice(world.tree.carved)
        if self.kills(state, rng) and world.people:
            victim = rng.choice(world.people)
            effect.victims.append((victim, f"{victim.name} is burned. The stolen fire takes what it wants."))
        return effect


class MetalAngeringSpirit(Spirit):
    """Sky. Metal verses and altitude blood draw lightning, and lightning feeds fire."""

    METAL_DANGER = (("forge", 0.04), ("ore", 0.02))
    ALTITUDE_TRAIT = "thin_air_blood"
    ALTITUDE_DANGER = 0.02
    FIRE_STARTED = 0.03

    def assess_danger(self, world: WorldState, rules: RuleSettings) -> float:
        garble = rules.knowledge.garble_threshold
        danger = super().assess_danger(world, rules)
        for verse_id, extra in self.METAL_DANGER:
            if anyone_knows(world.people, verse_id, garble):
                danger += extra
        if any(p.blood.get(self.ALTITUDE_TRAIT, 0.0) > 0.3 for p in world.people):
            danger += self.ALTITUDE_DANGER
        return danger

    def attack(self, world, state, quality, rng, rules) -> SpiritEffect:
        effect = self._raid()
        effect.messages.append(
            f"Thunder. The sky opens. {self.profile.attack_food_loss} food lost to the storm."
        )
        effect.danger_shifts["fire"] = self.FIRE_STARTED
        if self.kills(state, rng) and world.people:
            victim = rng.choice(world.people)
            effect.victims.append((victim, f"Lightning takes {victim.name}."))
        return effect


class SingingDarkSpirit(Spirit):
    """Night. With star verses the dark deepens every song; without, it silences the circle."""

    STAR_SONGS = ("polestar", "seasons", "precession", "star_bear")
    SONG_BOOST = 0.04
    DARK_PENALTY = 2

    def attack(self, world, state, quality, rng, rules) -> SpiritEffect:
        effect = self._raid()
        garble = rules.knowledge.garble_threshold
        if any(anyone_knows(world.people, s, garble) for s in self.STAR_SONGS):
            effect.fidelity_boost = self.SONG_BOOST
            effect.messages.append("The long dark comes. The stars are out. Every song strengthens.")
        else:
            effect.setlist_penalty = self.DARK_PENALTY
            effect.messages.append(
                f"The long dark, with no stars to sing by. "
                f"{self.profile.attack_food_loss} food lost to the cold."
            )
        if self.kills(state, rng) and world.people:
            victim = rng.choice(world.people)
            effect.victims.append((victim, f"{victim.name} is lost in the dark."))
        return effect


class EldersFirstSpirit(Spirit):
    """Death. Takes elders first; a well-sung burial lets the dying teach."""

    LEGACY_RATIO = 0.7

    def attack(self, world, state, quality, rng, rules) -> SpiritEffect:
        effect = SpiritEffect(self.key)
        effect.messages.append("Death visits the camp.")
        if not self.kills(state, rng):
            return effect
        cfg = rules.population
        elders = [p for p in world.people if age_band(p.age, cfg) is AgeBand.ELDER]
        adults = [p for p in world.people if age_band(p.age, cfg) is AgeBand.ADULT]
        targets = elders or adults
        if not targets:
            return effect
        victim = rng.choice(targets)
        if quality >= rules.knowledge.garble_threshold:
            youth = [p for p in world.people if age_band(p.age, cfg) is AgeBand.YOUTH]
            if youth:
                effect.legacy = (victim, rng.choice(youth))
        effect.victims.append((victim, f"{victim.name} dies. Death came for the old."))
        return effect


class InvisibleSpirit(Spirit):
    """Yeast. Never attacks and cannot be angered; it only multiplies food, and mouths."""

    YEAST_SONGS = ("brew", "bake", "sourdough", "mead")
    SURPLUS_PER_SONG = 2
    PRESSURE_FOOD_PER_PERSON = 4
    PRESSURE_CHANCE = 0.25

    def resolve(self, world, state, rng, rules) -> SpiritEffect:
        garble = rules.knowledge.garble_threshold
        known = [s for s in self.YEAST_SONGS if anyone_knows(world.people, s, garble)]
        state.danger = 0.0
        if not known:
            return SpiritEffect(self.key)
        state.spirit = min(1.0, state.spirit + 0.05 * len(known))
        surplus = len(known) * self.SURPLUS_PER_SONG
        effect = SpiritEffect(self.key, food_delta=surplus)
        effect.messages.append(f"The invisible one stirs. The bread rises. (+{surplus} food)")
        food_per_person = (world.food + surplus) / max(1, len(world.people))
        if food_per_person > self.PRESSURE_FOOD_PER_PERSON and rng.random() < self.PRESSURE_CHANCE:
            adults = [p for p in world.people if age_band(p.age, rules.population) is AgeBand.ADULT]
            if len(adults) >= 2:
                parent1, parent2 = rng.sample(adults, 2)
                used = {p.name for p in world.people}
                names = [n for n in SURPLUS_BIRTH_NAMES if n not in used] or list(SURPLUS_BIRTH_NAMES)
                effect.births.append((parent1, parent2, rng.choice(names)))
        return effect

    def attack(self, world, state, quality, rng, rules) -> SpiritEffect:
        return SpiritEffect(self.key)


# ============================================================================
# Registry, in resolution order
# ============================================================================

SPIRITS: dict[str, Spirit] = {
    s.key: s
    for s in (
        AnimalSpirit(SpiritProfile(
            "bear", "Bear", "bear", None, "animal", 0.1, 0.08, 0.8, 3, 0.2, (0, 2),
            allergy_kill_bonus=0.3, allergy_warning=0.5,
        )),
        AnimalSpirit(SpiritProfile(
            "wolf", "Wolf", "wolf_song", "bear", "animal", 0.08, 0.05, 0.5, 2, 0.15, (3, 0),
            allergy_kill_bonus=0.25, allergy_warning=0.5, taming_song_id="dog",
        )),
        AnimalSpirit(SpiritProfile(
            "cat", "Saber Cat", "bear", None, "animal", 0.06, 0.04, 0.4, 1, 0.35, (1, 2),
            allergy_kill_bonus=0.2, allergy_warning=0.4,
        )),
        StolenSpirit(SpiritProfile(
            "fire", "Fire", "ember", "deep_fire", "great", 0.05, 0.12, 0.7, 4, 0.15, (1, 2),
        )),
        MetalAngeringSpirit(SpiritProfile(
            "sky", "Sky", "polestar", "seasons", "great", 0.04, 0.03, 0.6, 2, 0.1, (0, 1),
        )),
        SingingDarkSpirit(SpiritProfile(
            "night", "Night", "polestar", "elder_song", "great", 0.08, 0.04, 0.6, 2, 0.08, (3, 0),
        )),
        InvisibleSpirit(SpiritProfile(
            "yeast", "Yeast", "brew", "bake", "great", 0.0, 0.0, 0.0, 0, 0.0, (0, 1, 2, 3),
        )),
        EldersFirstSpirit(SpiritProfile(
            "death", "Death", "burial", "ochre", "great", 0.03, 0.1, 0.6, 0, 0.25, (2, 3),
        )),
    )
}


def initial_spirits() -> dict[str, SpiritState]:
    return {key: spirit.initial_state() for key, spirit in SPIRITS.items()}


def resolve_spirits(
    world: WorldState,
    catalog: VerseCatalog,
    rng: RandomSource,
    rules: RuleSettings,
    chronicle: Chronicle,
) -> list[SpiritEffect]:
    effects: list[SpiritEffect] = []
    for key, spirit in SPIRITS.items():
        state = world.spirits.setdefault(key, spirit.initial_state())
        effect = spirit.resolve(world, state, rng, rules)
        apply_effect(world, effect, catalog, rules, chronicle)
        if effect.attacked:
            logger.info(
                "Spirit attack: spirit=%s turn=%d victims=%d spirit_level=%.2f",
                key, world.turn, len(effect.victims), state.spirit,
            )
        effects.append(effect)
    return effects
