from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class EraKey(str, Enum):
    BEARS = "bears"
    STONE = "stone"
    CAVES = "caves"
    MEETING = "meeting"
    ICE = "ice"
    GRAIN = "grain"
    IRON = "iron"
    REMEMBERING = "remembering"
    APOCALYPSE = "apocalypse"


@dataclass(frozen=True)
class Bridge:
    target: EraKey
    requires: tuple[str, ...]
    desc: str


@dataclass(frozen=True)
class EraDefinition:
    key: EraKey
    name: str
    years_bp: int
    default_people: str
    encounter_peoples: tuple[str, ...]
    bridges: tuple[Bridge, ...]
    names: tuple[str, ...]
    base_songs: dict[str, float] = field(default_factory=dict)
    hidden: bool = False


_KALEVALA = ("Aino", "Joukahainen", "Ilmatar", "Kullervo", "Louhi", "Lemminkainen", "Vainamoinen")


ERAS: dict[EraKey, EraDefinition] = {
    EraKey.BEARS: EraDefinition(
        key=EraKey.BEARS,
        name="The Age of Bears",
        years_bp=2_500_000,
        default_people="bear",
        encounter_peoples=("bear",),
        hidden=True,
        bridges=(
            Bridge(EraKey.STONE, ("spirit_mark", "den_memory"),
                   "Claw marks on the wall. Something upright comes. You dream of them."),
        ),
        names=("Great-Paw", "Honey-Dream", "Old-Den", "River-Watch", "Snow-Sleep", "Cub-Cry", "Root-Dig"),
        base_songs={"den_memory": 1.0, "cub_call": 0.8},
    ),
    EraKey.STONE: EraDefinition(
        key=EraKey.STONE,
        name="The Age of Stone",
        years_bp=1_800_000,
        default_people="troll",
        encounter_peoples=("troll",),
        bridges=(
            Bridge(EraKey.CAVES, ("heartbeat", "deep_fire"),
                   "Fire carried forward. A million years of walking."),
            Bridge(EraKey.BEARS, ("old_track", "heartbeat"),
                   "You follow the oldest tracks. Back before your kind. To the dreamers."),
        ),
        names=("Grok", "Thud", "Rumble", "Ember-Eye", "Stone-Hand", "Old-Walk", "Still-One"),
        base_songs={"heartbeat": 1.0},
    ),
    EraKey.CAVES: EraDefinition(
        key=EraKey.CAVES,
        name="The Age of Caves",
        years_bp=300_000,
        default_people="troll",
        encounter_peoples=("troll", "dwarf"),
        bridges=(
            Bridge(EraKey.MEETING, ("cave_song", "blade"),
                   "The caves fill with echoes of new voices coming from the south."),
            Bridge(EraKey.STONE, ("heartbeat", "stone_sleep"),
                   "You dream backward. The troll patience takes you to the deep time."),
            Bridge(EraKey.BEARS, ("bear", "cave_song"),
                   "You sing the Bear Song in the deepest cave. Something ancient answers."),
        ),
        names=("Durin", "Mim", "Nain", "Andvari", "Sindri", "Brokk", "Alviss"),
        base_songs={"heartbeat": 0.7, "flake": 0.6},
    ),
    EraKey.MEETING: EraDefinition(
        key=EraKey.MEETING,
        name="The Age of Meeting",
        years_bp=52_000,
        default_people="human",
        encounter_peoples=("troll", "dwarf", "elf", "halfling", "human"),
        bridges=(
            Bridge(EraKey.ICE, ("seasons", "ember"), "The sky changes. Cold comes from the north."),
            Bridge(EraKey.CAVES, ("cave_song", "bone_flute"),
                   "The bone flute leads you back to the old caves. The dwarves are still there."),
            Bridge(EraKey.BEARS, ("bear", "bear_gift"),
                   "The Bear Gift opens a door in time. You walk through it on all fours."),
        ),
        names=_KALEVALA,
        base_songs={"lullaby": 0.8, "root": 0.6, "heartbeat": 0.5},
    ),
    EraKey.ICE: EraDefinition(
        key=EraKey.ICE,
        name="The Age of Ice",
        years_bp=26_000,
        default_people="human",
        encounter_peoples=("dwarf", "human"),
        bridges=(
            Bridge(EraKey.GRAIN, ("ash_song", "root"), "The ice retreats. Green things push through."),
            Bridge(EraKey.MEETING, ("bone_flute", "elder_song"),
                   "The old songs pull you back to when everyone was here."),
            Bridge(EraKey.BEARS, ("bear", "long_sleep"), "You sleep like the bears. You wake in their time."),
        ),
        names=_KALEVALA,
        base_songs={"lullaby": 0.8, "root": 0.6, "ember": 0.5},
    ),
    EraKey.GRAIN: EraDefinition(
        key=EraKey.GRAIN,
        name="The Age of Grain",
        years_bp=12_000,
        default_people="human",
        encounter_peoples=("human",),
        bridges=(
            Bridge(EraKey.IRON, ("forge", "wall"), "Metal replaces stone. Power replaces song."),
            Bridge(EraKey.ICE, ("glacier", "precession"),
                   "The long drift. The calendar says the ice is coming back."),
            Bridge(EraKey.BEARS, ("bear", "temple"),
                   "You build a temple to the bear. The bear walks out of it, into the past."),
        ),
        names=("Marjatta", "Pellervo", "Sampsa", "Ahti", "Tuoni", "Mielikki", "Tapio"),
        base_songs={"lullaby": 0.8, "root": 0.7, "spark": 0.5},
    ),
    EraKey.IRON: EraDefinition(
        key=EraKey.IRON,
        name="The Age of Iron",
        years_bp=3_000,
        default_people="human",
        encounter_peoples=("human",),
        bridges=(
            Bridge(EraKey.REMEMBERING, ("book", "ban"),
                   "The ban creates the forgetting. The forgetting creates the remembering."),
            Bridge(EraKey.GRAIN, ("ash_song", "seed_song"), "Back to the beginning of planting. Before walls."),
            Bridge(EraKey.BEARS, ("bear", "burial"), "You bury a bear with flowers. You follow it down."),
        ),
        names=("Elias", "Akseli", "Minna", "Johan", "Kristina", "Kaarle", "Aleksis"),
        base_songs={"lullaby": 0.8, "root": 0.6, "spark": 0.5, "writing": 0.4},
    ),
    EraKey.REMEMBERING: EraDefinition(
        key=EraKey.REMEMBERING,
        name="The Age of Remembering",
        years_bp=50,
        default_people="human",
        encounter_peoples=("human",),
        bridges=(
            Bridge(EraKey.STONE, ("genome", "heartbeat"),
                   "The DNA sings. You follow it back 1.8 million years."),
            Bridge(EraKey.MEETING, ("revive", "bone_flute"),
                   "The revived song remembers the age when everyone was here."),
            Bridge(EraKey.BEARS, ("genome", "bear"),
                   "You read the bear genome. It reads you back. You are in the cave."),
            Bridge(EraKey.APOCALYPSE, ("cancel", "empire"),
                   "The tree becomes the Tech Tree. It grows until it blots out everything."),
        ),
        names=_KALEVALA,
        base_songs={"lullaby": 0.8, "root": 0.6},
    ),
    EraKey.APOCALYPSE: EraDefinition(
        key=EraKey.APOCALYPSE,
        name="The Age of the Tech Tree",
        years_bp=0,
        default_people="human",
        encounter_peoples=("human",),
        bridges=(
            Bridge(EraKey.BEARS, ("last_song",),
                   "You fell the Tech Tree. In the ash, the bears are waiting. They always were."),
            Bridge(EraKey.STONE, ("genome", "heartbeat"),
                   "You strip it all back. Before writing. Before fire. The heartbeat."),
            Bridge(EraKey.REMEMBERING, ("revive",),
                   "Not this time. You go back and try to remember harder."),
        ),
        names=("User", "Admin", "Founder", "Investor", "Influencer", "Intern", "The-Algorithm"),
        base_songs={"algorithm": 0.9, "platform": 0.7, "writing": 0.5},
    ),
}

# Eras in which a troll-blooded band with no shaman blood is called orc.
LATE_ERAS: frozenset[EraKey] = frozenset({EraKey.IRON, EraKey.REMEMBERING, EraKey.APOCALYPSE})


def era(key: EraKey | str) -> EraDefinition:
    return ERAS[EraKey(key)]


def eras_up_to(key: EraKey | str) -> list[EraKey]:
    """Every era at or before ``key`` in history, oldest first."""
    target = era(key).years_bp
    ordered = sorted(ERAS.values(), key=lambda d: -d.years_bp)
    return [d.key for d in ordered if d.years_bp >= target]


# ---------------------------------------------------------------------------
# Apocalypse types: how the tree ends an era, by the traditions carved on it
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ApocalypseType:
    key: str
    name: str
    traditions: tuple[str, ...]


APOCALYPSE_TYPES: tuple[ApocalypseType, ...] = (
    ApocalypseType("fire", "The Burning", ("fire", "dwarf")),
    ApocalypseType("ice", "The Freeze", ("stone", "troll", "earth")),
    ApocalypseType("sky", "The Drift", ("sky", "elf")),
    ApocalypseType("shadow", "The Hollowing", ("shadow",)),
    ApocalypseType("mixed", "The Confusion", ("mixed",)),
    ApocalypseType("redeemed", "The Return", ("redeemed",)),
)


# ---------------------------------------------------------------------------
# Names and strangers
# ---------------------------------------------------------------------------

BIRTH_NAMES: tuple[str, ...] = (
    "Kyllikki", "Marjatta", "Annikki", "Tuoni", "Seppo", "Ahti", "Mielikki", "Tapio",
    "Pellervo", "Nyyrikki", "Tuulikki", "Otso", "Kave", "Untamo", "Kalervo", "Sampo", "Antero",
)
BEAR_BIRTH_NAMES: tuple[str, ...] = (
    "Little-Paw", "Bark-Nose", "Berry-Find", "Cave-Born", "Ice-Cub", "Moon-Watcher",
)
SURPLUS_BIRTH_NAMES: tuple[str, ...] = (
    "Barley", "Hops", "Malt", "Leaven", "Foam", "Crust", "Rise", "Starter",
    "Kvass", "Kumiss", "Barm", "Must", "Wort", "Dregs", "Crumb",
)

STRANGER_NAMES: dict[str, tuple[str, ...]] = {
    "bear": BEAR_BIRTH_NAMES,
    "troll": ("Hrungnir", "Geirrod", "Ymir-kin", "Bergelmir"),
    "dwarf": ("Durin", "Andvari", "Alviss", "Dvalin", "Sindri", "Brokk"),
    "elf": ("Luthien", "Thingol", "Nienna", "Varda", "Ilmare"),
    "halfling": ("Ebu", "Liang", "Flores", "Mata"),
    "human": ("Pohjan Akka", "Tiera", "Iku-Turso", "Surma", "Kiputytto",
              "Elias", "Akseli", "Minna", "Johan", "Kristina"),
}

# Human strangers draw from every human verse in the catalog instead.
STRANGER_VERSES: dict[str, tuple[str, ...]] = {
    "bear": ("den_memory", "long_sleep", "salmon_run", "cub_call", "root_dig"),
    "troll": ("heartbeat", "stone_sleep", "deep_fire", "old_track"),
    "dwarf": ("flake", "blade", "ember", "cave_song", "bear", "wolf_song", "ochre", "burial"),
    "elf": ("thin_air", "far_sight", "ghost_walk", "jade", "loom"),
    "halfling": ("island", "small_hunt", "tide", "feast", "shelter"),
}

# (min age, span) for a stranger of each people
STRANGER_AGES: dict[str, tuple[int, int]] = {
    "troll": (20, 3),
    "elf": (12, 9),
}
DEFAULT_STRANGER_AGE: tuple[int, int] = (8, 11)
