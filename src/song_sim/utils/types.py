from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from song_sim.catalog.eras import EraKey


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


@dataclass
class Person:
    name: str
    age: int
    people: str = "human"
    blood: dict[str, float] = field(default_factory=dict)
    verses: dict[str, float] = field(default_factory=dict)

    def fidelity(self, verse_id: str) -> float:
        return self.verses.get(verse_id, 0.0)

    def learn(self, verse_id: str, value: float) -> bool:
        """Raise a verse to ``value``. A holder's fidelity never goes down."""
        value = clamp(value)
        if value <= self.verses.get(verse_id, 0.0):
            return False
        self.verses[verse_id] = value
        return True


@dataclass
class Tree:
    height: int = 0
    carved: list[str] = field(default_factory=list)


@dataclass
class Fragment:
    verse: str
    fidelity: float


@dataclass
class SpiritState:
    spirit: float = 1.0
    """Relationship with the band, 0 hostile to 1 companion."""
    danger: float = 0.0


@dataclass
class EraRecord:
    key: str
    name: str
    years_bp: int
    fellings: int
    songs_carried: list[str]
    songs_lost: list[str]
    bridge_taken: str


@dataclass
class ChronicleEvent:
    turn: int
    kind: str
    message: str
    subject: str | None = None
    verse_id: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "turn": self.turn,
            "kind": self.kind,
            "message": self.message,
            "subject": self.subject,
            "verse_id": self.verse_id,
        }


class Chronicle:
    """Ordered event sink for one season or one intent."""

    def __init__(self, turn: int) -> None:
        self.turn = turn
        self.events: list[ChronicleEvent] = []

    def emit(
        self,
        kind: str,
        message: str,
        subject: str | None = None,
        verse_id: str | None = None,
    ) -> ChronicleEvent:
        event = ChronicleEvent(
            turn=self.turn, kind=kind, message=message, subject=subject, verse_id=verse_id
        )
        self.events.append(event)
        return event

    @property
    def messages(self) -> list[str]:
        return [e.message for e in self.events]

    def count(self, kind: str) -> int:
        return sum(1 for e in self.events if e.kind == kind)


@dataclass
class WorldState:
    era: EraKey
    era_name: str = ""
    season: int = 0
    year: int = 0
    years_bp: int = 0
    turn: int = 0
    people: list[Person] = field(default_factory=list)
    inherited_songs: dict[str, float] = field(default_factory=dict)
    previous_eras: list[EraRecord] = field(default_factory=list)
    unlocked_eras: list[str] = field(default_factory=list)
    tree: Tree = field(default_factory=Tree)
    fragments: list[Fragment] = field(default_factory=list)
    sunlight: float = 1.0
    food: int = 14
    encounter: Person | None = None
    setlist: list[str] = field(default_factory=list)
    setlist_history: dict[str, int] = field(default_factory=dict)
    shadows: dict[str, float] = field(default_factory=dict)
    spirits: dict[str, SpiritState] = field(default_factory=dict)
    ash_verses: list[str] = field(default_factory=list)
    fellings: int = 0
    total_lost: list[str] = field(default_factory=list)
    night_penalty: int = 0
    collapsed: bool = False
    catalog_eras: list[str] = field(default_factory=list)
    """Era deltas merged into the verse catalog, in merge order."""
    messages: list[str] = field(default_factory=list)

    def record_lost(self, verse_id: str) -> None:
        if verse_id not in self.total_lost:
            self.total_lost.append(verse_id)
