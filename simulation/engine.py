"""
Segment engine: resolve, attach stipulation, apply rewards.

Everything that can be a caller bug is checked before the first wrestler
mutation, so a segment either resolves fully or fails with nothing applied.
The caller owns the transaction and persists the returned result.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

from simulation.contracts import (
    AchievementSink, RuleProvider, SegmentRuleRecord, TitleStake, WrestlerState,
    WrestlerStateProvider,
)
from simulation.dice import RandomSource
from simulation.errors import ConfigurationError
from simulation.resolver import OutcomeResolver, ResolutionOutcome
from simulation.rewards import DEFAULT_LOSER_POLICY, LoserRewardPolicy, RewardCalculator, RewardRecord
from simulation.rules import RuleApplier, normalize_stipulation
from simulation.teams import Team
from simulation.weights import WeightCalculator

logger = logging.getLogger(__name__)


@dataclass
class SegmentResult:
    outcome: ResolutionOutcome
    rewards: RewardRecord


@dataclass
class PromoResult:
    participants: list[WrestlerState]
    rewards: Optional[RewardRecord]
    stipulation: str
    rules: list[SegmentRuleRecord] = field(default_factory=list)


class SegmentEngine:
    def __init__(
        self,
        states: WrestlerStateProvider,
        rules: RuleProvider,
        rng: RandomSource,
        achievements: Optional[AchievementSink] = None,
        calculator: Optional[WeightCalculator] = None,
        loser_policy: LoserRewardPolicy = DEFAULT_LOSER_POLICY,
    ) -> None:
        self._states = states
        self.resolver = OutcomeResolver(states, rng, calculator)
        self.rewards = RewardCalculator(states, rng, achievements, loser_policy)
        self.rule_applier = RuleApplier(rules)

    def resolve_segment(
        self,
        teams: Sequence[Team],
        stipulation: Optional[str] = None,
        titles: Sequence[TitleStake] = (),
        multiplier: float = 1.0,
        rule_id: Optional[int] = None,
    ) -> SegmentResult:
        """``rule_id`` attaches a rule by id on top of the named stipulation."""
        _check_teams(teams)
        _check_multiplier(multiplier)

        outcome = self.resolver.resolve(teams, stipulation)
        self.rule_applier.apply(outcome, outcome.stipulation)
        self.rule_applier.apply_by_id(outcome, rule_id)

        winners = list(outcome.winner.members)
        losers = [m for t in outcome.losers for m in t.members]
        rewards = self.rewards.process_match(
            winners, losers, rules=outcome.rules, titles=titles, multiplier=multiplier,
        )
        return SegmentResult(outcome=outcome, rewards=rewards)

    def resolve_promo(
        self,
        participants: Sequence[WrestlerState],
        stipulation: Optional[str] = None,
        multiplier: float = 1.0,
        rule_id: Optional[int] = None,
    ) -> PromoResult:
        """Promos have no winner: everyone shares the same fan award."""
        if not participants:
            raise ConfigurationError("a promo needs at least one participant")
        _check_unique([p.id for p in participants])
        _check_multiplier(multiplier)

        fresh = []
        for p in participants:
            current = self._states.find_current_state(p.id)
            fresh.append(current if current is not None else p)

        result = PromoResult(participants=fresh, rewards=None, stipulation=normalize_stipulation(stipulation))
        self.rule_applier.apply(result, result.stipulation)
        self.rule_applier.apply_by_id(result, rule_id)
        result.rewards = self.rewards.process_promo(fresh, multiplier)
        logger.info("Promo resolved for %s (roll %d)",
                    ", ".join(p.name for p in fresh), result.rewards.quality_roll)
        return result


def _check_teams(teams: Sequence[Team]) -> None:
    if len(teams) < 2:
        raise ConfigurationError("a segment needs at least two teams")
    _check_unique([wid for t in teams for wid in t.member_ids])


def _check_unique(ids: Sequence[int]) -> None:
    if len(set(ids)) != len(ids):
        raise ConfigurationError("a wrestler can only appear once in a segment")


def _check_multiplier(multiplier: float) -> None:
    if multiplier is None or not math.isfinite(multiplier) or multiplier < 0:
        raise ConfigurationError(f"difficulty multiplier must be >= 0, got {multiplier}")
