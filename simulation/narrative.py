"""Outcome sentences for the narration-only path (no persisted winner)."""

from __future__ import annotations

from typing import Sequence

from simulation.dice import RandomSource


# ---------------------------------------------------------------------------
# Finishers
# ---------------------------------------------------------------------------

GENERIC_FINISHERS = [
    "a devastating finishing move",
    "their signature maneuver",
    "a powerful slam",
    "a high-impact finisher",
    "their trademark move",
    "a spectacular finishing sequence",
    "a crushing blow",
    "their ultimate technique",
]


def pick_finisher(rng: RandomSource) -> str:
    return GENERIC_FINISHERS[rng.randint(0, len(GENERIC_FINISHERS) - 1)]


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

NO_CONTEST = "Segment ends in a no contest due to insufficient participants"


def showcase_line(name: str) -> str:
    return f"{name} delivers an impressive performance, showcasing their skills to the crowd"


def singles_line(winner: str, loser: str, finisher: str) -> str:
    return f"{winner} defeats {loser} with {finisher}"


def multi_line(winner: str, field_size: int, finisher: str) -> str:
    return f"{winner} emerges victorious from the {field_size}-way match with {finisher}"


def result_line(winner: str, losers: Sequence[str]) -> str:
    """Plain recap for a persisted match."""
    if len(losers) == 1:
        return f"{winner} defeated {losers[0]}"
    return f"{winner} defeated {', '.join(losers[:-1])} and {losers[-1]}"


def promo_line(names: Sequence[str]) -> str:
    if len(names) == 1:
        return f"{names[0]} cuts a promo"
    return f"{', '.join(names[:-1])} and {names[-1]} trade words in the ring"
