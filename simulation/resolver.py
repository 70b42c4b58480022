"""
Segment outcome resolution.

Turns two or more teams into a win distribution proportional to total team
weight and draws a winner. Completely decoupled from Flask and SQLAlchemy:
wrestler state comes in through a WrestlerStateProvider.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from simulation import narrative
from simulation.contracts import SegmentRuleRecord, WrestlerStateProvider
from simulation.dice import RandomSource
from simulation.errors import ConfigurationError
from simulation.rules import normalize_stipulation
from simulation.teams import Team
from simulation.weights import WeightCalculator

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Weight used for a name the wrestler store doesn't know (narration path only)
DEFAULT_NARRATIVE_WEIGHT = 50

MIN_MULTI_TEAM = 3

MAX_DURATION_TWO_TEAM = 35
MAX_DURATION_MULTI_TEAM = 45
MAX_RATING = 5


# ---------------------------------------------------------------------------
# Result DTOs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TeamProbabilities:
    """Win chance per team in percent, same order as the input teams."""
    percentages: tuple[float, ...]
    weights: tuple[int, ...]

    @property
    def total_weight(self) -> int:
        return sum(self.weights)


@dataclass(frozen=True)
class SegmentDetails:
    duration_minutes: int
    rating: int


@dataclass
class ResolutionOutcome:
    teams: list[Team]
    winner_index: int
    win_probability: float
    probabilities: TeamProbabilities
    details: SegmentDetails
    stipulation: str
    draw: float
    rules: list[SegmentRuleRecord] = field(default_factory=list)

    @property
    def winner(self) -> Team:
        return self.teams[self.winner_index]

    @property
    def losers(self) -> list[Team]:
        return [t for i, t in enumerate(self.teams) if i != self.winner_index]

    @property
    def winner_ids(self) -> list[int]:
        return self.winner.member_ids

    @property
    def loser_ids(self) -> list[int]:
        return [wid for t in self.losers for wid in t.member_ids]

    @property
    def participant_ids(self) -> list[int]:
        return [wid for t in self.teams for wid in t.member_ids]


@dataclass(frozen=True)
class NarrativeOutcome:
    description: str
    winner_name: Optional[str] = None
    weights: dict[str, int] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Selection helpers
# ---------------------------------------------------------------------------

def two_team_probabilities(w1: int, w2: int) -> tuple[float, float]:
    total = w1 + w2
    if total <= 0:
        raise ConfigurationError("team weights must be positive")
    return w1 / total * 100, w2 / total * 100


def select_cumulative(weights: Sequence[int], u: float) -> int:
    """Index of the first entry whose running total reaches ``u``."""
    cumulative = 0
    for i, w in enumerate(weights):
        cumulative += w
        if cumulative >= u:
            return i
    # Float rounding can leave u just past the last boundary
    return len(weights) - 1


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

class OutcomeResolver:
    def __init__(
        self,
        states: WrestlerStateProvider,
        rng: RandomSource,
        calculator: Optional[WeightCalculator] = None,
    ) -> None:
        self._states = states
        self._rng = rng
        self.calculator = calculator or WeightCalculator()

    # -- refresh --------------------------------------------------------------

    def refresh_team(self, team: Team) -> Team:
        """Re-read every member so bumps and injuries are current."""
        members = []
        for m in team.members:
            current = self._states.find_current_state(m.id)
            if current is None:
                logger.warning("Wrestler %s (%s) not found on refresh; using supplied record",
                               m.name, m.id)
                current = m
            members.append(current)
        fresh = team.refreshed(members)
        fresh.calculate_team_stats(self.calculator)
        return fresh

    def calculate_probabilities(self, teams: Sequence[Team]) -> TeamProbabilities:
        weights = []
        for t in teams:
            if not t.has_stats:
                t.calculate_team_stats(self.calculator)
            weights.append(t.total_weight)
        total = sum(weights)
        if len(weights) == 2:
            percentages = two_team_probabilities(weights[0], weights[1])
        else:
            percentages = tuple(w / total * 100 for w in weights)
        return TeamProbabilities(percentages=tuple(percentages), weights=tuple(weights))

    # -- resolution ------------------------------------------------------------

    def resolve(self, teams: Sequence[Team], stipulation: Optional[str] = None) -> ResolutionOutcome:
        if len(teams) < 2:
            raise ConfigurationError("a segment needs at least two teams")
        if len(teams) == 2:
            return self.resolve_two_teams(teams[0], teams[1], stipulation)
        return self.resolve_multi_team(teams, stipulation)

    def resolve_two_teams(
        self, team1: Team, team2: Team, stipulation: Optional[str] = None,
    ) -> ResolutionOutcome:
        final_stipulation = normalize_stipulation(stipulation)
        logger.info("Resolving team segment: %s vs %s (%s)",
                    team1.name, team2.name, final_stipulation)

        fresh = [self.refresh_team(team1), self.refresh_team(team2)]
        probs = self.calculate_probabilities(fresh)
        self._log_two_team(fresh, probs)

        u = self._rng.random()
        winner_index = 0 if u < probs.weights[0] / probs.total_weight else 1
        details = self._two_team_details(fresh[0], fresh[1])

        outcome = ResolutionOutcome(
            teams=fresh,
            winner_index=winner_index,
            win_probability=probs.percentages[winner_index],
            probabilities=probs,
            details=details,
            stipulation=final_stipulation,
            draw=u,
        )
        logger.info("Team segment resolved: %s defeated %s (%.1f%% probability)",
                    outcome.winner.name, outcome.losers[0].name, outcome.win_probability)
        return outcome

    def resolve_multi_team(
        self, teams: Sequence[Team], stipulation: Optional[str] = None,
    ) -> ResolutionOutcome:
        if len(teams) < MIN_MULTI_TEAM:
            raise ConfigurationError(f"multi-team segment requires at least {MIN_MULTI_TEAM} teams")
        final_stipulation = normalize_stipulation(stipulation)
        logger.info("Resolving %d-team segment (%s): %s",
                    len(teams), final_stipulation, [t.name for t in teams])

        fresh = [self.refresh_team(t) for t in teams]
        probs = self.calculate_probabilities(fresh)

        u = self._rng.random() * probs.total_weight
        winner_index = select_cumulative(probs.weights, u)
        details = self._multi_team_details(fresh)

        outcome = ResolutionOutcome(
            teams=fresh,
            winner_index=winner_index,
            win_probability=probs.percentages[winner_index],
            probabilities=probs,
            details=details,
            stipulation=final_stipulation,
            draw=u,
        )
        logger.info("Multi-team segment resolved: %s defeated %d other teams",
                    outcome.winner.name, len(fresh) - 1)
        return outcome

    # -- narration-only path ---------------------------------------------------

    def determine_outcome(
        self,
        names: Sequence[str],
        predetermined: Optional[str] = None,
        is_promo: bool = False,
    ) -> Optional[NarrativeOutcome]:
        """Pick a winner for narration when nobody booked one.

        Unknown names fall back to DEFAULT_NARRATIVE_WEIGHT instead of failing.
        """
        if predetermined and predetermined.strip():
            return NarrativeOutcome(description=predetermined)

        names = [n for n in names if n and n.strip()]
        if is_promo and not names:
            return None
        if not names:
            logger.warning("Cannot determine segment outcome - no wrestlers provided")
            return NarrativeOutcome(description=narrative.NO_CONTEST)
        if len(names) == 1:
            return NarrativeOutcome(description=narrative.showcase_line(names[0]),
                                    winner_name=names[0])

        weights = [self._narrative_weight(n) for n in names]
        total = sum(weights)
        u = self._rng.random() * total
        if len(names) == 2:
            winner_index = 0 if u < weights[0] else 1
        else:
            winner_index = select_cumulative(weights, u)

        winner = names[winner_index]
        finisher = narrative.pick_finisher(self._rng)
        if len(names) == 2:
            description = narrative.singles_line(winner, names[1 - winner_index], finisher)
        else:
            description = narrative.multi_line(winner, len(names), finisher)
        logger.info("Automatically determined segment outcome: %s", description)
        return NarrativeOutcome(
            description=description,
            winner_name=winner,
            weights=dict(zip(names, weights)),
        )

    def _narrative_weight(self, name: str) -> int:
        state = self._states.find_by_name(name.strip())
        if state is None:
            logger.debug("Wrestler %s not found, using default weight", name)
            return DEFAULT_NARRATIVE_WEIGHT
        return self.calculator.weight(state)

    # -- details ----------------------------------------------------------------

    def _two_team_details(self, team1: Team, team2: Team) -> SegmentDetails:
        participants = team1.size + team2.size
        avg_tier = int((team1.average_tier_bonus + team2.average_tier_bonus) / 2)

        duration = (self._rng.randint(8, 19)
                    + max(0, participants - 2) * 2
                    + avg_tier // 2)
        rating = (self._rng.randint(2, 3)
                  + avg_tier // 3
                  + (1 if participants > 2 else 0))
        return SegmentDetails(min(MAX_DURATION_TWO_TEAM, duration), min(MAX_RATING, rating))

    def _multi_team_details(self, teams: Sequence[Team]) -> SegmentDetails:
        participants = sum(t.size for t in teams)
        avg_tier = sum(t.average_tier_bonus for t in teams) / len(teams)

        duration = (self._rng.randint(10, 24)
                    + max(0, participants - 3) * 2
                    + max(0, len(teams) - 2) * 3
                    + int(avg_tier / 2))
        rating = (self._rng.randint(2, 3)
                  + int(avg_tier / 3)
                  + (1 if participants > 4 else 0))
        return SegmentDetails(min(MAX_DURATION_MULTI_TEAM, duration), min(MAX_RATING, rating))

    def _log_two_team(self, teams: Sequence[Team], probs: TeamProbabilities) -> None:
        for team, pct in zip(teams, probs.percentages):
            logger.debug("%s: %.1f%% (TW:%d, ATB:%.1f, THP:%d)",
                         team.name, pct, team.total_weight,
                         team.average_tier_bonus, team.total_health_penalty)
