"""
Randomness and dice for RingSim.

Everything that rolls takes a RandomSource so roll sequences are
reproducible for a given seed. Never reach for the module-level ``random``
functions inside the engine.
"""

from __future__ import annotations

import random
import re
from typing import Optional, Protocol, Sequence

from simulation.errors import ConfigurationError


# ---------------------------------------------------------------------------
# Random source
# ---------------------------------------------------------------------------

class RandomSource(Protocol):
    def random(self) -> float: ...

    def randint(self, a: int, b: int) -> int: ...


class PythonRandomSource:
    """Injected randomness source backed by ``random.Random``."""

    def __init__(self, seed: Optional[int] = None) -> None:
        self._seed = seed
        self._rng = random.Random(seed)

    @property
    def seed(self) -> Optional[int]:
        return self._seed

    def random(self) -> float:
        return self._rng.random()

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def choice(self, items: Sequence):
        if not items:
            raise ValueError("choice items must not be empty")
        return items[self._rng.randrange(len(items))]


def seeded_random(seed: int) -> PythonRandomSource:
    return PythonRandomSource(seed=seed)


# ---------------------------------------------------------------------------
# Dice
# ---------------------------------------------------------------------------

_DICE_EXPR = re.compile(r"^\s*(\d*)\s*[dD]\s*(\d+)\s*$")


def _validate_sides(sides: Sequence[int]) -> list[int]:
    dice = list(sides)
    if not dice:
        raise ConfigurationError("at least one die is required")
    for s in dice:
        if s <= 0:
            raise ConfigurationError(f"die must have at least one side, got {s}")
    return dice


def roll(sides: Sequence[int], rng: RandomSource) -> int:
    """Sum one uniform draw in [1, s] for every die in ``sides``."""
    dice = _validate_sides(sides)
    return sum(rng.randint(1, s) for s in dice)


def parse_dice(expr: str) -> list[int]:
    """Turn "2d6" into [6, 6]. A bare "d20" means one die."""
    m = _DICE_EXPR.match(expr or "")
    if not m:
        raise ConfigurationError(f"invalid dice expression: {expr!r}")
    count = int(m.group(1)) if m.group(1) else 1
    if count <= 0:
        raise ConfigurationError(f"invalid dice count in {expr!r}")
    return _validate_sides([int(m.group(2))] * count)


class DiceBag:
    """A fixed set of dice, e.g. ``DiceBag([6, 6], rng)`` for 2d6."""

    def __init__(self, sides: Sequence[int], rng: RandomSource) -> None:
        self.sides = tuple(_validate_sides(sides))
        self._rng = rng

    @classmethod
    def from_expression(cls, expr: str, rng: RandomSource) -> "DiceBag":
        return cls(parse_dice(expr), rng)

    @property
    def minimum(self) -> int:
        return len(self.sides)

    @property
    def maximum(self) -> int:
        return sum(self.sides)

    def roll(self) -> int:
        return sum(self._rng.randint(1, s) for s in self.sides)

    def __repr__(self) -> str:
        return f"<DiceBag {'+'.join(f'd{s}' for s in self.sides)}>"
