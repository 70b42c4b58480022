"""
Value types and collaborator protocols for the segment engine.

The engine works with these, never with ORM rows: calling code converts
persisted wrestlers into WrestlerState snapshots and implements the
protocols below against its own storage.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class WrestlerTier(str, enum.Enum):
    ROOKIE       = "Rookie"
    RISER        = "Riser"
    CONTENDER    = "Contender"
    MIDCARDER    = "Midcarder"
    MAIN_EVENTER = "Main Eventer"
    ICON         = "Icon"

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, WrestlerTier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, WrestlerTier):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, WrestlerTier):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, WrestlerTier):
            return NotImplemented
        return self.rank >= other.rank


_TIER_ORDER: tuple[WrestlerTier, ...] = tuple(WrestlerTier)


class BumpAddition(str, enum.Enum):
    """Who picks up a bump when a rule is attached to a segment."""
    WINNERS = "Winners"
    LOSERS  = "Losers"
    ALL     = "All"
    NONE    = "None"


class SegmentKind(str, enum.Enum):
    MATCH = "Match"
    PROMO = "Promo"


# ---------------------------------------------------------------------------
# Data transfer objects
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WrestlerState:
    """Snapshot of the wrestler fields the engine reads."""
    id: int
    name: str
    fan_weight: int = 0
    tier: WrestlerTier = WrestlerTier.ROOKIE
    bumps: int = 0
    active_injuries: int = 0
    # Set when a player account owns the wrestler (achievement capable)
    account_id: Optional[int] = None


@dataclass(frozen=True)
class SegmentRuleRecord:
    id: Optional[int]
    name: str
    description: str = ""
    requires_high_heat: bool = False
    is_active: bool = True
    bump_addition: BumpAddition = BumpAddition.NONE


@dataclass(frozen=True)
class TitleStake:
    """A title on the line and what contenders pay to challenge for it."""
    title_id: int
    name: str
    contender_entry_fee: int
    champion_ids: frozenset[int] = field(default_factory=frozenset)


@dataclass(frozen=True)
class AchievementSignal:
    account_id: int
    code: str


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------

class WrestlerStateProvider(Protocol):
    """Reads and mutates wrestler state. Failures come back as None."""

    def find_current_state(self, wrestler_id: int) -> Optional[WrestlerState]: ...

    def find_by_name(self, name: str) -> Optional[WrestlerState]: ...

    def award_fans(self, wrestler_id: int, delta: int) -> Optional[WrestlerState]: ...

    def add_bump(self, wrestler_id: int) -> Optional[WrestlerState]: ...


class RuleProvider(Protocol):
    def find_by_name(self, name: str) -> Optional[SegmentRuleRecord]: ...

    def find_by_id(self, rule_id: int) -> Optional[SegmentRuleRecord]: ...

    def exists_by_name(self, name: str) -> bool: ...

    def high_heat_rules(self) -> Sequence[SegmentRuleRecord]: ...

    def standard_rules(self) -> Sequence[SegmentRuleRecord]: ...


class AchievementSink(Protocol):
    def unlock_achievement(self, account_id: int, code: str) -> None: ...
