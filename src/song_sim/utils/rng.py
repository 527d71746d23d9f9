from __future__ import annotations

import random
from typing import Any, MutableSequence, Protocol, Sequence, TypeVar

T = TypeVar("T")


class RandomSource(Protocol):
    """The slice of ``random.Random`` the simulation draws from."""

    def random(self) -> float: ...

    def uniform(self, a: float, b: float) -> float: ...

    def randint(self, a: int, b: int) -> int: ...

    def choice(self, seq: Sequence[T]) -> T: ...

    def sample(self, population: Sequence[T], k: int) -> list[T]: ...

    def shuffle(self, x: MutableSequence[Any]) -> None: ...


def make_rng(seed: int | None = None) -> random.Random:
    return random.Random(seed)
