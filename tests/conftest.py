"""Shared fixtures: a scripted random source, default rules and small worlds."""
from __future__ import annotations

from typing import Any, MutableSequence, Sequence

import pytest

from song_sim.catalog.eras import EraKey
from song_sim.catalog.verses import VerseCatalog
from song_sim.config.settings import RuleSettings
from song_sim.spirits.kinds import initial_spirits
from song_sim.utils.types import Person, WorldState


class ScriptedRandom:
    """Deterministic stand-in for ``random.Random``.

    ``random()`` pops the scripted values in order and then returns
    ``default``. A default near 1 makes every chance roll fail.
    Choices and samples take from the front, shuffles keep order.
    """

    def __init__(self, values: Sequence[float] = (), default: float = 0.999) -> None:
        self.values = list(values)
        self.default = default
        self.calls = 0

    def random(self) -> float:
        self.calls += 1
        if self.values:
            return self.values.pop(0)
        return self.default

    def uniform(self, a: float, b: float) -> float:
        return a + (b - a) * self.random()

    def randint(self, a: int, b: int) -> int:
        return a

    def choice(self, seq: Sequence[Any]) -> Any:
        return seq[0]

    def sample(self, population: Sequence[Any], k: int) -> list[Any]:
        return list(population)[:k]

    def shuffle(self, x: MutableSequence[Any]) -> None:
        return None


def person(name: str, age: int, verses: dict[str, float] | None = None, **kwargs: Any) -> Person:
    return Person(name=name, age=age, verses=dict(verses or {}), **kwargs)


def world_of(*people: Person, era: EraKey = EraKey.STONE, **kwargs: Any) -> WorldState:
    world = WorldState(era=era, era_name="Test Age", people=list(people), **kwargs)
    if not world.spirits:
        world.spirits = initial_spirits()
    return world


@pytest.fixture
def rules() -> RuleSettings:
    return RuleSettings()


@pytest.fixture
def catalog() -> VerseCatalog:
    return VerseCatalog()


@pytest.fixture
def quiet_rng() -> ScriptedRandom:
    """Every chance roll fails."""
    return ScriptedRandom()
