"""Teams: one or more wrestlers competing as a unit within a segment."""

from __future__ import annotations

from typing import Optional, Sequence

from simulation.contracts import WrestlerState
from simulation.errors import ConfigurationError
from simulation.weights import WeightCalculator


def generate_team_name(members: Sequence[WrestlerState]) -> str:
    """Display name only. Team identity is the object, not the name."""
    if len(members) == 1:
        return members[0].name
    if len(members) == 2:
        return f"{members[0].name} & {members[1].name}"
    others = len(members) - 1
    return f"{members[0].name} & {others} others"


class Team:
    """
    Ordered, immutable group of wrestlers.

    Stats are None until calculate_team_stats() runs and must be recomputed
    for every resolution, since bumps and injuries move between shows.
    """

    __slots__ = ("members", "name", "total_weight", "average_tier_bonus",
                 "total_health_penalty")

    def __init__(self, members: Sequence[WrestlerState], name: Optional[str] = None) -> None:
        if not members:
            raise ConfigurationError("a team needs at least one wrestler")
        self.members: tuple[WrestlerState, ...] = tuple(members)
        self.name = name.strip() if name and name.strip() else generate_team_name(self.members)
        self.total_weight: Optional[int] = None
        self.average_tier_bonus: Optional[float] = None
        self.total_health_penalty: Optional[int] = None

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def primary_wrestler(self) -> WrestlerState:
        return self.members[0]

    @property
    def member_ids(self) -> list[int]:
        return [m.id for m in self.members]

    @property
    def has_stats(self) -> bool:
        return self.total_weight is not None

    def calculate_team_stats(self, calculator: WeightCalculator) -> None:
        self.total_weight = sum(calculator.weight(m) for m in self.members)
        self.average_tier_bonus = (
            sum(calculator.tier_bonus(m.tier) for m in self.members) / len(self.members)
        )
        self.total_health_penalty = sum(calculator.health_penalty(m) for m in self.members)

    def refreshed(self, members: Sequence[WrestlerState]) -> "Team":
        """Same team, current member records, stats not yet computed."""
        if len(members) != len(self.members):
            raise ConfigurationError(
                f"refresh of {self.name} returned {len(members)} members, "
                f"expected {len(self.members)}"
            )
        return Team(members, self.name)

    def __repr__(self) -> str:
        return f"<Team {self.name} ({self.size}) weight={self.total_weight}>"
