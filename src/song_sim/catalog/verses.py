"""Verse catalog.

Verses are the unit of knowledge a band carries. The base set is always
present; later eras add deltas that are merged into a ``VerseCatalog`` when
the band enters them. The catalog is append-only and records the order of
its merges so a saved world can rebuild exactly the catalog it was played
with.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Iterator

from song_sim.utils.errors import UserIntentError

if TYPE_CHECKING:
    from song_sim.utils.types import Person


@dataclass(frozen=True)
class Verse:
    id: str
    name: str
    tradition: str
    people: str
    prereqs: tuple[str, ...] = ()
    difficulty: int = 1
    emerges_from: tuple[str, ...] = ()
    shadow_of: str | None = None
    shadow_when: str | None = None
    shadow_rate: float = 0.0
    redeems_with: str | None = None
    redeems_into: str | None = None

    @property
    def is_shadow(self) -> bool:
        return self.shadow_of is not None

    @property
    def is_ash(self) -> bool:
        return bool(self.emerges_from)


def _v(id, name, tradition, people, prereqs=(), difficulty=1, **extra) -> Verse:
    return Verse(
        id=id,
        name=name,
        tradition=tradition,
        people=people,
        prereqs=tuple(prereqs),
        difficulty=difficulty,
        **extra,
    )


def _shadow(id, name, of, when, rate, redeems_with, redeems_into, difficulty) -> Verse:
    return Verse(
        id=id,
        name=name,
        tradition="shadow",
        people="human",
        difficulty=difficulty,
        shadow_of=of,
        shadow_when=when,
        shadow_rate=rate,
        redeems_with=redeems_with,
        redeems_into=redeems_into,
    )


# ============================================================================
# Base verses
# ============================================================================

CORE_VERSES: tuple[Verse, ...] = (
    # ---- bear ----
    _v("den_memory", "Den Memory", "bear", "bear", (), 1),
    _v("long_sleep", "The Long Sleep", "bear", "bear", ("den_memory",), 2),
    _v("salmon_run", "The Salmon Run", "bear", "bear", ("den_memory",), 2),
    _v("cub_call", "The Cub Call", "bear", "bear", (), 1),
    _v("root_dig", "Root Digging", "bear", "bear", ("den_memory",), 2),
    _v("star_bear", "The Star Bear", "bear", "bear", ("long_sleep", "salmon_run"), 3),
    _v("spirit_mark", "Spirit Marking", "bear", "bear", ("den_memory", "cub_call"), 3),
    # ---- troll ----
    _v("heartbeat", "The Heartbeat", "troll", "troll", (), 1),
    _v("stone_sleep", "Stone Sleep", "troll", "troll", ("heartbeat",), 2),
    _v("deep_fire", "The Deep Fire", "troll", "troll", ("heartbeat",), 2),
    _v("old_track", "The Old Track", "troll", "troll", ("heartbeat",), 2),
    # ---- dwarf ----
    _v("flake", "Flake Knapping", "dwarf", "dwarf", (), 1),
    _v("blade", "Blade Singing", "dwarf", "dwarf", ("flake",), 2),
    _v("ember", "Ember Keeping", "dwarf", "dwarf", (), 1),
    _v("cave_song", "The Cave Song", "dwarf", "dwarf", ("ember",), 2),
    _v("bear", "The Bear Song", "dwarf", "dwarf", ("cave_song", "old_track"), 3),
    _v("ochre", "The Ochre Song", "dwarf", "dwarf", ("cave_song",), 2),
    _v("wolf_song", "The Wolf Song", "dwarf", "dwarf", ("cave_song", "old_track"), 3),
    _v("burial", "The Burial Song", "dwarf", "dwarf", ("ochre", "bear"), 3),
    # ---- elf ----
    _v("thin_air", "The Thin Air Song", "elf", "elf", (), 1),
    _v("far_sight", "Far Sight", "elf", "elf", ("thin_air",), 2),
    _v("ghost_walk", "The Ghost Walk", "elf", "elf", ("thin_air",), 2),
    _v("jade", "The Jade Song", "elf", "elf", ("far_sight", "flake"), 3),
    _v("loom", "The Loom Song", "elf", "elf", ("ghost_walk",), 3),
    # ---- halfling ----
    _v("island", "The Island Song", "halfling", "halfling", (), 1),
    _v("small_hunt", "The Small Hunt", "halfling", "halfling", ("island",), 2),
    _v("tide", "The Tide Song", "halfling", "halfling", ("island",), 2),
    _v("feast", "The Feast Song", "halfling", "halfling", ("small_hunt", "tide"), 3),
    _v("shelter", "The Shelter Song", "halfling", "halfling", ("island",), 2),
    # ---- human ----
    _v("spark", "Spark Striking", "human", "human", ("ember",), 2),
    _v("lullaby", "The First Lullaby", "human", "human", (), 1),
    _v("elder_song", "The Elder Song", "human", "human", ("lullaby",), 2),
    _v("polestar", "The Nail of the Sky", "human", "human", (), 1),
    _v("seasons", "The Turning Song", "human", "human", ("polestar",), 2),
    _v("root", "Root Finding", "human", "human", (), 1),
    _v("track", "Track Reading", "human", "human", (), 1),
    _v("herd", "Herd Following", "human", "human", ("track", "seasons"), 2),
    _v("tree_song", "The Carving Song", "human", "human", ("elder_song", "blade"), 3),
    _v("grain", "The Grain Song", "human", "human", ("ash_song", "seasons"), 4),
    _v("ore", "Ore Reading", "human", "human", ("blade", "spark"), 3),
    _v("forge", "The Forging Song", "human", "human", ("spark", "ore"), 4),
    _v("precession", "The Long Drift", "human", "human", ("seasons", "elder_song", "far_sight"), 5),
    # ---- salmon ----
    _v("salmon_song", "The Salmon Song", "mixed", "mixed", ("salmon_run", "tide"), 3),
    _v("weir", "The Weir Song", "mixed", "mixed", ("salmon_song", "blade"), 3),
    _v("kelp", "The Kelp Song", "mixed", "mixed", ("tide", "root"), 2),
    _v("smoke_song", "The Smoke Song", "mixed", "mixed", ("salmon_song", "ember"), 3),
    _v("canoe", "The Canoe Song", "mixed", "mixed", ("salmon_song", "tree_song"), 4),
    _v("potlatch", "The Potlatch Song", "mixed", "mixed", ("salmon_song", "feast"), 4),
    _v("salmon_return", "The Return Song", "mixed", "mixed", ("salmon_song", "star_bear"), 5),
    # ---- meetings of peoples ----
    _v("bear_gift", "The Bear Gift", "mixed", "mixed", ("den_memory", "heartbeat"), 3),
    _v("fire_cave", "Fire in the Cave", "mixed", "mixed", ("ember", "cave_song"), 3),
    _v("dream_walk", "The Dream Walk", "mixed", "mixed", ("ghost_walk", "elder_song"), 4),
    _v("bone_flute", "The Bone Flute", "mixed", "mixed", ("bear", "lullaby"), 3),
    _v("sea_cross", "The Sea Crossing", "mixed", "mixed", ("tide", "far_sight"), 4),
    _v("deep_time", "The Deep Time Song", "mixed", "mixed", ("stone_sleep", "precession"), 5),
)

# Learnable only once a felling leaves their carved sources in the ash.
ASH_VERSES: tuple[Verse, ...] = (
    _v("phoenix_song", "The Phoenix Song", "ash", "ash", ("ember", "elder_song"),
       emerges_from=("ember", "lullaby")),
    _v("deep_root", "The Deep Root Song", "ash", "ash", ("root", "bear"),
       emerges_from=("root", "bear")),
    _v("star_map", "The Scar Map", "ash", "ash", ("polestar", "tree_song"),
       emerges_from=("polestar", "tree_song")),
    _v("seed_song", "The Seed Song", "ash", "ash", ("ash_song", "grain"),
       emerges_from=("ash_song", "grain")),
    _v("iron_song", "The Iron Song", "ash", "ash", ("forge", "blade"),
       emerges_from=("forge", "blade")),
    _v("troll_echo", "The Troll Echo", "ash", "ash", ("heartbeat", "bone_flute"),
       emerges_from=("heartbeat", "bone_flute")),
)

REDEMPTION_VERSES: tuple[Verse, ...] = (
    _v("irrigation", "The Irrigation Song", "redeemed", "mixed", ("wall", "ash_song"), 4),
    _v("sanctuary", "The Sanctuary Song", "redeemed", "mixed", ("temple", "burial"), 4),
    _v("law", "The Law Song", "redeemed", "mixed", ("empire", "rune"), 5),
    _v("archive", "The Archive Song", "redeemed", "mixed", ("ban", "elder_song"), 3),
    _v("model", "The Model Song", "redeemed", "mixed", ("algorithm", "grain"), 4),
    _v("stewardship", "The Stewardship Song", "redeemed", "mixed", ("extraction", "root"), 4),
    _v("commons", "The Commons Song", "redeemed", "mixed", ("platform", "book"), 5),
    _v("restoration", "The Restoration Song", "redeemed", "mixed", ("cancel", "elder_song"), 3),
    _v("rotation", "The Rotation Song", "redeemed", "mixed", ("ash_song", "herd"), 4),
)

SHADOW_VERSES: tuple[Verse, ...] = (
    _shadow("ash_song", "The Ash Song", "root", "track", 0.12, "herd", "rotation", 3),
    _shadow("wall", "The Wall Song", "grain", "ash_song", 0.15, "ash_song", "irrigation", 3),
    _shadow("temple", "The Temple Song", "wall", "burial", 0.12, "burial", "sanctuary", 4),
    _shadow("empire", "The Empire Song", "writing", "rune", 0.08, "rune", "law", 5),
    _shadow("ban", "The Ban", "book", "elder_song", 0.15, "elder_song", "archive", 2),
    _shadow("algorithm", "The Algorithm", "ledger", "grain", 0.10, "grain", "model", 3),
    _shadow("extraction", "The Extraction Song", "ore", "root", 0.10, "root", "stewardship", 3),
    _shadow("platform", "The Platform", "algorithm", "book", 0.10, "book", "commons", 4),
    _shadow("cancel", "The Cancellation", "ban", "book", 0.15, "elder_song", "restoration", 1),
)

BASE_VERSES: tuple[Verse, ...] = CORE_VERSES + ASH_VERSES + REDEMPTION_VERSES + SHADOW_VERSES


# ============================================================================
# Era deltas
# ============================================================================

ERA_VERSES: dict[str, tuple[Verse, ...]] = {
    "ice": (
        _v("glacier", "The Glacier Song", "human", "human", ("seasons", "stone_sleep"), 3),
        _v("migration", "The Migration Song", "human", "human", ("herd", "far_sight"), 3),
        _v("paint", "The Paint Song", "mixed", "mixed", ("ochre", "fire_cave"), 3),
        _v("dog", "The Dog Song", "mixed", "mixed", ("wolf_song", "ember", "lullaby"), 4),
        _v("dog_guard", "The Guard Song", "human", "human", ("dog", "wall"), 3),
        _v("dog_hunt", "The Hunt Song", "mixed", "mixed", ("dog", "track"), 3),
        _v("dog_sled", "The Sled Song", "mixed", "mixed", ("dog", "migration"), 4),
        _v("dog_burial", "The Dog Burial", "mixed", "mixed", ("dog", "burial"), 3),
    ),
    "grain": (
        _v("pottery", "The Clay Song", "human", "human", ("deep_fire", "root"), 2),
        _v("ledger", "The Ledger Song", "human", "human", ("grain", "pottery"), 3),
        _v("rune", "The Rune Song", "human", "human", ("burial", "tree_song"), 4),
        _v("writing", "The Writing Song", "mixed", "mixed", ("ledger", "rune"), 4),
        _v("brew", "The Brewing Song", "mixed", "mixed", ("grain", "pottery"), 3),
        _v("bake", "The Baking Song", "human", "human", ("grain", "ember"), 2),
        _v("sourdough", "The Mother Song", "mixed", "mixed", ("bake", "elder_song"), 4),
        _v("mead", "The Mead Song", "mixed", "mixed", ("brew", "root"), 3),
    ),
    "iron": (
        _v("sail", "The Sail Song", "human", "human", ("sea_cross", "loom"), 3),
        _v("book", "The Book", "human", "human", ("writing", "elder_song"), 3),
    ),
    "remembering": (
        _v("archaeology", "The Dig Song", "human", "human", ("writing", "star_map"), 3),
        _v("genome", "The Blood Song", "mixed", "mixed", ("archaeology", "deep_time"), 5),
        _v("revive", "The Revival Song", "human", "human", ("archaeology", "elder_song"), 4),
    ),
    "apocalypse": (
        _v("last_song", "The Last Song", "mixed", "mixed", ("genome", "bear_gift", "den_memory"), 5),
    ),
}


class VerseCatalog:
    """Append-only registry of verse descriptors.

    ``merged_eras`` is the merge history. Replaying it on top of the base
    set reproduces the catalog, which is how snapshots restore it.
    """

    def __init__(self, verses: Iterable[Verse] = BASE_VERSES) -> None:
        self._verses: dict[str, Verse] = {}
        self.merged_eras: list[str] = []
        for verse in verses:
            self._verses[verse.id] = verse

    @classmethod
    def for_eras(cls, era_keys: Iterable[str]) -> "VerseCatalog":
        catalog = cls()
        for key in era_keys:
            catalog.merge_era(key)
        return catalog

    @property
    def version(self) -> int:
        return len(self.merged_eras)

    def merge_era(self, era_key: str) -> list[str]:
        """Register an era's delta. Merging the same era twice is a no-op."""
        if era_key in self.merged_eras:
            return []
        self.merged_eras.append(era_key)
        added: list[str] = []
        for verse in ERA_VERSES.get(era_key, ()):
            if verse.id not in self._verses:
                self._verses[verse.id] = verse
                added.append(verse.id)
        return added

    def get(self, verse_id: str) -> Verse | None:
        return self._verses.get(verse_id)

    def require(self, verse_id: str) -> Verse:
        verse = self._verses.get(verse_id)
        if verse is None:
            raise UserIntentError(f"No verse called {verse_id!r} is known.")
        return verse

    def name_of(self, verse_id: str) -> str:
        verse = self._verses.get(verse_id)
        return verse.name if verse else verse_id

    def __contains__(self, verse_id: object) -> bool:
        return verse_id in self._verses

    def __iter__(self) -> Iterator[Verse]:
        return iter(self._verses.values())

    def __len__(self) -> int:
        return len(self._verses)

    def ids(self) -> list[str]:
        return list(self._verses)

    def shadows(self) -> list[Verse]:
        return [v for v in self._verses.values() if v.is_shadow]

    def ash(self) -> list[Verse]:
        return [v for v in self._verses.values() if v.is_ash]

    def of_people(self, people: str) -> list[str]:
        return [v.id for v in self._verses.values() if v.people == people]


# ---------------------------------------------------------------------------
# Knowledge queries
# ---------------------------------------------------------------------------

def is_known(person: "Person", verse_id: str, threshold: float) -> bool:
    return person.verses.get(verse_id, 0.0) >= threshold


def prereqs_met(person: "Person", verse: Verse, threshold: float) -> bool:
    return all(person.verses.get(p, 0.0) >= threshold for p in verse.prereqs)


def anyone_knows(people: Iterable["Person"], verse_id: str, threshold: float) -> bool:
    return any(is_known(p, verse_id, threshold) for p in people)


def best_fidelity(people: Iterable["Person"], verse_id: str) -> float:
    return max((p.verses.get(verse_id, 0.0) for p in people), default=0.0)
