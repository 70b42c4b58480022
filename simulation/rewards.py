"""
Post-segment consequences: fans, contender fees, bumps, achievements.

One 1d20 "quality" roll per segment drives a bonus table. Every mutation
goes through the WrestlerStateProvider and is attempted independently; a
None result means that one effect is skipped and logged.
"""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from simulation.contracts import (
    AchievementSignal, AchievementSink, BumpAddition, SegmentRuleRecord,
    TitleStake, WrestlerState, WrestlerStateProvider,
)
from simulation.dice import DiceBag, RandomSource
from simulation.errors import ConfigurationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tunables
# ---------------------------------------------------------------------------

FAN_UNIT = 1_000
WINNER_DICE = (6, 6)
LOSER_DICE = (6,)
QUALITY_DIE = (20,)
PERFECT_ROLL = 20
PERFECT_SEGMENT_ACHIEVEMENT = "FIVE_STAR_CLASSIC"

# (low, high, flat bonus) on the 1d20 quality roll; anything else is +0
MATCH_QUALITY_BONUSES: tuple[tuple[int, int, int], ...] = (
    (11, 15, 1_000),
    (16, 18, 3_000),
    (19, 19, 5_000),
    (20, 20, 10_000),
)

# (low, high, dice) on the same roll. A natural 1 matches nothing: the
# promo fumbled and earns no bonus.
PROMO_QUALITY_DICE: tuple[tuple[int, int, tuple[int, ...]], ...] = (
    (2, 3, (3,)),
    (4, 16, (6,)),
    (17, 19, (6, 6)),
    (20, 20, (6, 6, 6)),
)


class LoserRewardPolicy(str, enum.Enum):
    """How losers' fan change is rolled (1d6 either way).

    BACKLASH:    (roll - 4) * 1000 + quality, can go negative.
    CONSOLATION: (roll + 3) * 1000 + quality, same shape as winners.
    """
    BACKLASH = "backlash"
    CONSOLATION = "consolation"

    @property
    def offset(self) -> int:
        return -4 if self is LoserRewardPolicy.BACKLASH else 3


DEFAULT_LOSER_POLICY = LoserRewardPolicy.BACKLASH

WINNER_OFFSET = 3


def _check_brackets(name: str, brackets: Sequence[tuple]) -> None:
    previous_high = 0
    for low, high, _ in brackets:
        if low > high or low <= previous_high:
            raise ConfigurationError(f"{name} brackets overlap or are out of order at {low}-{high}")
        previous_high = high


_check_brackets("match quality", MATCH_QUALITY_BONUSES)
_check_brackets("promo quality", PROMO_QUALITY_DICE)


def match_quality_bonus(roll: int) -> int:
    for low, high, bonus in MATCH_QUALITY_BONUSES:
        if low <= roll <= high:
            return bonus
    return 0


def promo_quality_dice(roll: int) -> tuple[int, ...]:
    for low, high, dice in PROMO_QUALITY_DICE:
        if low <= roll <= high:
            return dice
    return ()


def expected_dice_total(dice: Iterable[int]) -> float:
    return sum((s + 1) / 2 for s in dice)


def scale(raw: int, multiplier: float) -> int:
    return int(round(raw * multiplier))


# ---------------------------------------------------------------------------
# Reward record
# ---------------------------------------------------------------------------

@dataclass
class RewardRecord:
    quality_roll: int
    quality_bonus: int
    is_promo: bool = False
    multiplier: float = 1.0
    fan_deltas: dict[int, int] = field(default_factory=dict)
    fans_applied: dict[int, bool] = field(default_factory=dict)
    bumps_granted: dict[int, bool] = field(default_factory=dict)
    fees_charged: dict[int, int] = field(default_factory=dict)
    fees_skipped: list[tuple[int, str]] = field(default_factory=list)
    achievements: list[AchievementSignal] = field(default_factory=list)

    @property
    def perfect_segment(self) -> bool:
        return self.quality_roll == PERFECT_ROLL and not self.is_promo


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------

class RewardCalculator:
    def __init__(
        self,
        states: WrestlerStateProvider,
        rng: RandomSource,
        achievements: Optional[AchievementSink] = None,
        loser_policy: LoserRewardPolicy = DEFAULT_LOSER_POLICY,
    ) -> None:
        self._states = states
        self._rng = rng
        self._achievements = achievements
        self.loser_policy = loser_policy

    # -- public -----------------------------------------------------------------

    def roll_quality(self) -> int:
        return DiceBag(QUALITY_DIE, self._rng).roll()

    def process_match(
        self,
        winners: Sequence[WrestlerState],
        losers: Sequence[WrestlerState],
        rules: Sequence[SegmentRuleRecord] = (),
        titles: Sequence[TitleStake] = (),
        multiplier: float = 1.0,
    ) -> RewardRecord:
        participants = self._validate(list(winners) + list(losers), multiplier)
        winner_ids = {w.id for w in winners}
        if len(winner_ids) + len({l.id for l in losers}) != len(participants):
            raise ConfigurationError("a wrestler cannot be both a winner and a loser")

        roll = self.roll_quality()
        bonus = match_quality_bonus(roll)
        record = RewardRecord(quality_roll=roll, quality_bonus=bonus, multiplier=multiplier)
        record.bumps_granted = {p.id: False for p in participants}
        logger.info("Match quality roll %d -> +%d fans", roll, bonus)

        if roll == PERFECT_ROLL:
            self._unlock_for(participants, PERFECT_SEGMENT_ACHIEVEMENT, record)

        for title in titles:
            self._charge_contender_fees(title, participants, record)

        for w in winners:
            raw = (DiceBag(WINNER_DICE, self._rng).roll() + WINNER_OFFSET) * FAN_UNIT + bonus
            self._award(w, scale(raw, multiplier), record, "winner")

        for l in losers:
            raw = (DiceBag(LOSER_DICE, self._rng).roll() + self.loser_policy.offset) * FAN_UNIT + bonus
            self._award(l, scale(raw, multiplier), record, "loser")

        self._assign_bumps(rules, winners, losers, record)
        return record

    def process_promo(
        self, participants: Sequence[WrestlerState], multiplier: float = 1.0,
    ) -> RewardRecord:
        participants = self._validate(list(participants), multiplier)
        roll = self.roll_quality()
        dice = promo_quality_dice(roll)
        bonus = DiceBag(dice, self._rng).roll() if dice else 0
        record = RewardRecord(quality_roll=roll, quality_bonus=bonus, is_promo=True,
                              multiplier=multiplier)
        record.bumps_granted = {p.id: False for p in participants}
        if not dice:
            logger.info("Promo fumbled (roll %d); no fan bonus", roll)

        delta = scale(bonus * FAN_UNIT, multiplier)
        for p in participants:
            self._award(p, delta, record, "promo participant")
        return record

    # -- internals ----------------------------------------------------------------

    def _validate(self, participants: list[WrestlerState], multiplier: float) -> list[WrestlerState]:
        if not participants:
            raise ConfigurationError("a segment needs at least one participant to reward")
        if multiplier is None or not math.isfinite(multiplier) or multiplier < 0:
            raise ConfigurationError(f"difficulty multiplier must be >= 0, got {multiplier}")
        ids = [p.id for p in participants]
        if len(set(ids)) != len(ids):
            raise ConfigurationError("duplicate wrestler in segment participants")
        return participants

    def _award(self, wrestler: WrestlerState, delta: int, record: RewardRecord, role: str) -> None:
        record.fan_deltas[wrestler.id] = delta
        updated = self._states.award_fans(wrestler.id, delta)
        record.fans_applied[wrestler.id] = updated is not None
        if updated is None:
            logger.warning("Could not apply %d fans to %s %s; skipping", delta, role, wrestler.name)
        else:
            logger.debug("Awarded %d fans to %s %s", delta, role, wrestler.name)

    def _charge_contender_fees(
        self, title: TitleStake, participants: Sequence[WrestlerState], record: RewardRecord,
    ) -> None:
        for p in participants:
            if p.id in title.champion_ids:
                continue
            if self._states.award_fans(p.id, -title.contender_entry_fee) is None:
                record.fees_skipped.append((p.id, title.name))
                logger.warning("Wrestler %s could not afford %d fans for contending for %s",
                               p.name, title.contender_entry_fee, title.name)
            else:
                record.fees_charged[p.id] = record.fees_charged.get(p.id, 0) + title.contender_entry_fee
                logger.info("Wrestler %s paid %d fans to contend for %s",
                            p.name, title.contender_entry_fee, title.name)

    def _assign_bumps(
        self,
        rules: Sequence[SegmentRuleRecord],
        winners: Sequence[WrestlerState],
        losers: Sequence[WrestlerState],
        record: RewardRecord,
    ) -> None:
        for rule in rules:
            policy = rule.bump_addition
            if policy is BumpAddition.WINNERS:
                targets = list(winners)
            elif policy is BumpAddition.LOSERS:
                targets = list(losers)
            elif policy is BumpAddition.ALL:
                targets = list(winners) + list(losers)
            else:
                continue
            for w in targets:
                if self._states.add_bump(w.id) is None:
                    logger.warning("Could not add bump to %s (rule %s)", w.name, rule.name)
                else:
                    record.bumps_granted[w.id] = True
                    logger.debug("Added bump to %s (rule %s)", w.name, rule.name)

    def _unlock_for(self, participants: Sequence[WrestlerState], code: str, record: RewardRecord) -> None:
        for p in participants:
            if p.account_id is None:
                continue
            record.achievements.append(AchievementSignal(p.account_id, code))
            if self._achievements is not None:
                self._achievements.unlock_achievement(p.account_id, code)
