"""
Wrestler weight calculation.

Effective weight = max(1, fan_weight + tier_bonus - health_penalty).
The floor keeps every competitor in the draw no matter how beaten down.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from simulation.contracts import WrestlerState, WrestlerTier
from simulation.errors import ConfigurationError


# ---------------------------------------------------------------------------
# Tunables
# ---------------------------------------------------------------------------

INJURY_PENALTY = 3
MIN_WEIGHT = 1


class TierBonusTable:
    """Named step function from tier to bonus. Must be non-decreasing."""

    def __init__(self, name: str, bonuses: Mapping[WrestlerTier, int]) -> None:
        missing = [t.name for t in WrestlerTier if t not in bonuses]
        if missing:
            raise ConfigurationError(f"tier table {name!r} is missing {', '.join(missing)}")
        previous = 0
        for tier in WrestlerTier:
            bonus = bonuses[tier]
            if bonus < 0 or bonus < previous:
                raise ConfigurationError(
                    f"tier table {name!r} must be non-negative and non-decreasing "
                    f"({tier.name}={bonus})"
                )
            previous = bonus
        self.name = name
        self._bonuses = dict(bonuses)

    def bonus(self, tier: Optional[WrestlerTier]) -> int:
        if tier is None:
            return 0
        return self._bonuses[tier]

    def __repr__(self) -> str:
        return f"<TierBonusTable {self.name}>"


# Canonical ladder, used unless a caller asks for something else.
STANDARD_TIER_BONUSES = TierBonusTable("standard", {
    WrestlerTier.ROOKIE:       0,
    WrestlerTier.RISER:        2,
    WrestlerTier.CONTENDER:    4,
    WrestlerTier.MIDCARDER:    6,
    WrestlerTier.MAIN_EVENTER: 8,
    WrestlerTier.ICON:         10,
})

# Doubled ladder from the NPC segment service. Opt-in only.
AMPLIFIED_TIER_BONUSES = TierBonusTable("amplified", {
    WrestlerTier.ROOKIE:       0,
    WrestlerTier.RISER:        4,
    WrestlerTier.CONTENDER:    8,
    WrestlerTier.MIDCARDER:    12,
    WrestlerTier.MAIN_EVENTER: 16,
    WrestlerTier.ICON:         20,
})

TIER_BONUS_TABLES: dict[str, TierBonusTable] = {
    t.name: t for t in (STANDARD_TIER_BONUSES, AMPLIFIED_TIER_BONUSES)
}


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WrestlerWeight:
    wrestler: WrestlerState
    total_weight: int
    fan_weight: int
    tier_bonus: int
    health_penalty: int


class WeightCalculator:
    def __init__(self, tier_table: TierBonusTable = STANDARD_TIER_BONUSES) -> None:
        self.tier_table = tier_table

    def tier_bonus(self, tier: Optional[WrestlerTier]) -> int:
        return self.tier_table.bonus(tier)

    def health_penalty(self, wrestler: WrestlerState) -> int:
        return max(0, wrestler.bumps) + INJURY_PENALTY * max(0, wrestler.active_injuries)

    def weight(self, wrestler: WrestlerState) -> int:
        return self.calculate(wrestler).total_weight

    def calculate(self, wrestler: WrestlerState) -> WrestlerWeight:
        fan_weight = max(0, wrestler.fan_weight)
        tier_bonus = self.tier_bonus(wrestler.tier)
        health_penalty = self.health_penalty(wrestler)
        return WrestlerWeight(
            wrestler=wrestler,
            total_weight=max(MIN_WEIGHT, fan_weight + tier_bonus - health_penalty),
            fan_weight=fan_weight,
            tier_bonus=tier_bonus,
            health_penalty=health_penalty,
        )


def get_tier_table(name: str) -> TierBonusTable:
    try:
        return TIER_BONUS_TABLES[name]
    except KeyError:
        raise ConfigurationError(f"unknown tier bonus table: {name!r}") from None
