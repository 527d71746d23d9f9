"""World snapshot codec.

``dumps`` writes canonical JSON (sorted keys, fixed indent) so that a
snapshot decoded and encoded again is byte-identical. The payload records
which era deltas were merged into the verse catalog; ``restore_catalog``
replays them so every verse the world mentions resolves after a reload.
"""
from __future__ import annotations

import json
import logging
import warnings
from typing import Any

from song_sim.catalog.eras import EraKey, eras_up_to
from song_sim.catalog.verses import VerseCatalog
from song_sim.utils.errors import DataIntegrityWarning, SnapshotFormatError
from song_sim.utils.types import (
    EraRecord,
    Fragment,
    Person,
    SpiritState,
    Tree,
    WorldState,
)

logger = logging.getLogger("song_sim.store")

FORMAT_VERSION = 1


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------

def _person_to_dict(person: Person) -> dict[str, Any]:
    return {
        "name": person.name,
        "age": person.age,
        "people": person.people,
        "blood": dict(person.blood),
        "verses": dict(person.verses),
    }


def to_dict(world: WorldState) -> dict[str, Any]:
    return {
        "format_version": FORMAT_VERSION,
        "era": world.era.value,
        "era_name": world.era_name,
        "season": world.season,
        "year": world.year,
        "years_bp": world.years_bp,
        "turn": world.turn,
        "people": [_person_to_dict(p) for p in world.people],
        "inherited_songs": dict(world.inherited_songs),
        "previous_eras": [
            {
                "key": r.key,
                "name": r.name,
                "years_bp": r.years_bp,
                "fellings": r.fellings,
                "songs_carried": list(r.songs_carried),
                "songs_lost": list(r.songs_lost),
                "bridge_taken": r.bridge_taken,
            }
            for r in world.previous_eras
        ],
        "unlocked_eras": list(world.unlocked_eras),
        "tree": {"height": world.tree.height, "carved": list(world.tree.carved)},
        "fragments": [{"verse": f.verse, "fidelity": f.fidelity} for f in world.fragments],
        "sunlight": world.sunlight,
        "food": world.food,
        "encounter": _person_to_dict(world.encounter) if world.encounter else None,
        "setlist": list(world.setlist),
        "setlist_history": dict(world.setlist_history),
        "shadows": dict(world.shadows),
        "spirits": {
            key: {"spirit": s.spirit, "danger": s.danger} for key, s in world.spirits.items()
        },
        "ash_verses": list(world.ash_verses),
        "fellings": world.fellings,
        "total_lost": list(world.total_lost),
        "night_penalty": world.night_penalty,
        "collapsed": world.collapsed,
        "catalog_eras": list(world.catalog_eras),
        "messages": list(world.messages),
    }


def dumps(world: WorldState) -> str:
    return json.dumps(to_dict(world), sort_keys=True, indent=2, ensure_ascii=True)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def _person_from_dict(raw: dict[str, Any]) -> Person:
    return Person(
        name=str(raw["name"]),
        age=int(raw["age"]),
        people=str(raw.get("people", "human")),
        blood={str(k): float(v) for k, v in raw.get("blood", {}).items()},
        verses={str(k): float(v) for k, v in raw.get("verses", {}).items()},
    )


def from_dict(data: dict[str, Any]) -> WorldState:
    if not isinstance(data, dict):
        raise SnapshotFormatError("Snapshot payload must be a JSON object.")
    version = data.get("format_version")
    if version != FORMAT_VERSION:
        raise SnapshotFormatError(f"Unsupported snapshot format version: {version!r}.")
    try:
        tree = data["tree"]
        encounter = data.get("encounter")
        return WorldState(
            era=EraKey(data["era"]),
            era_name=str(data["era_name"]),
            season=int(data["season"]),
            year=int(data["year"]),
            years_bp=int(data["years_bp"]),
            turn=int(data["turn"]),
            people=[_person_from_dict(p) for p in data["people"]],
            inherited_songs={str(k): float(v) for k, v in data["inherited_songs"].items()},
            previous_eras=[
                EraRecord(
                    key=str(r["key"]),
                    name=str(r["name"]),
                    years_bp=int(r["years_bp"]),
                    fellings=int(r["fellings"]),
                    songs_carried=list(r["songs_carried"]),
                    songs_lost=list(r["songs_lost"]),
                    bridge_taken=str(r["bridge_taken"]),
                )
                for r in data["previous_eras"]
            ],
            unlocked_eras=list(data["unlocked_eras"]),
            tree=Tree(height=int(tree["height"]), carved=list(tree["carved"])),
            fragments=[
                Fragment(verse=str(f["verse"]), fidelity=float(f["fidelity"]))
                for f in data["fragments"]
            ],
            sunlight=float(data["sunlight"]),
            food=max(0, int(data["food"])),
            encounter=_person_from_dict(encounter) if encounter else None,
            setlist=list(data["setlist"]),
            setlist_history={str(k): int(v) for k, v in data["setlist_history"].items()},
            shadows={str(k): float(v) for k, v in data["shadows"].items()},
            spirits={
                str(k): SpiritState(spirit=float(v["spirit"]), danger=float(v["danger"]))
                for k, v in data["spirits"].items()
            },
            ash_verses=list(data["ash_verses"]),
            fellings=int(data["fellings"]),
            total_lost=list(data["total_lost"]),
            night_penalty=int(data.get("night_penalty", 0)),
            collapsed=bool(data.get("collapsed", False)),
            catalog_eras=list(data.get("catalog_eras", [])),
            messages=list(data.get("messages", [])),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise SnapshotFormatError(f"Malformed snapshot: {exc!r}") from exc


def loads(text: str) -> WorldState:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SnapshotFormatError(f"Snapshot is not valid JSON: {exc}") from exc
    return from_dict(data)


# ---------------------------------------------------------------------------
# Catalog replay
# ---------------------------------------------------------------------------

def referenced_verses(world: WorldState) -> set[str]:
    people = list(world.people)
    if world.encounter is not None:
        people.append(world.encounter)
    ids: set[str] = set()
    for person in people:
        ids.update(person.verses)
    ids.update(world.setlist)
    ids.update(world.tree.carved)
    ids.update(f.verse for f in world.fragments)
    ids.update(world.ash_verses)
    ids.update(world.shadows)
    ids.update(world.inherited_songs)
    return ids


def restore_catalog(world: WorldState) -> VerseCatalog:
    """Rebuild the catalog the world was played with.

    Replays the recorded merge history. If the world still mentions verses
    the catalog does not know, every era up to the current one is merged.
    """
    catalog = VerseCatalog.for_eras(world.catalog_eras)
    catalog.merge_era(world.era.value)
    unknown = sorted(v for v in referenced_verses(world) if v not in catalog)
    if unknown:
        warnings.warn(
            f"Snapshot references verses not in its catalog: {', '.join(unknown)}",
            DataIntegrityWarning,
            stacklevel=2,
        )
        logger.warning(
            "Snapshot catalog incomplete: era=%s unknown=%s; merging all eras up to it",
            world.era.value, unknown,
        )
        for key in eras_up_to(world.era):
            catalog.merge_era(key.value)
    world.catalog_eras = list(catalog.merged_eras)
    return catalog
