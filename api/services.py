"""Business logic for the RingSim Flask API."""

from __future__ import annotations

import logging
import math
from datetime import date
from typing import Optional, Sequence

from sqlalchemy import select

from models.database import Base, create_db_engine, create_session_factory
from models.models import (
    Account, AchievementUnlock, Injury, Segment, SegmentParticipant,
    SegmentRule, Show, Title, Wrestler,
)
from simulation import narrative
from simulation.contracts import (
    BumpAddition, SegmentKind, SegmentRuleRecord, TitleStake, WrestlerState, WrestlerTier,
)
from simulation.dice import PythonRandomSource
from simulation.engine import SegmentEngine
from simulation.errors import ConfigurationError
from simulation.resolver import OutcomeResolver
from simulation.rewards import DEFAULT_LOSER_POLICY, FAN_UNIT, LoserRewardPolicy
from simulation.rules import RuleApplier
from simulation.teams import Team
from simulation.weights import STANDARD_TIER_BONUSES, WeightCalculator, get_tier_table

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level DB state
# ---------------------------------------------------------------------------

_SessionFactory = None


def init_db(db_url: str) -> None:
    global _SessionFactory
    engine = create_db_engine(db_url)
    Base.metadata.create_all(engine)
    _SessionFactory = create_session_factory(engine)
    logger.info("Database ready at %s", db_url)


# ---------------------------------------------------------------------------
# SQLAlchemy-backed collaborators
# ---------------------------------------------------------------------------

# Percent of a fan gain a wrestler keeps; established stars grow slower
FAN_GAIN_RETENTION = {
    WrestlerTier.ICON: 90,
    WrestlerTier.MAIN_EVENTER: 93,
    WrestlerTier.MIDCARDER: 95,
    WrestlerTier.CONTENDER: 97,
}

BUMPS_PER_INJURY = 3


def dampen_fan_gain(tier: WrestlerTier, gain: int) -> int:
    """Apply tier retention to a positive gain, then round to the nearest 1000."""
    kept = gain * FAN_GAIN_RETENTION.get(tier, 100) // 100
    return int(math.floor(kept / FAN_UNIT + 0.5)) * FAN_UNIT


class SqlWrestlerStates:
    """WrestlerStateProvider over a single open session. Never commits.

    ``applied`` sums the fan change each wrestler actually received, which
    differs from the requested delta once dampening and the zero floor apply.
    """

    def __init__(self, session) -> None:
        self._session = session
        self.applied: dict[int, int] = {}

    def find_current_state(self, wrestler_id: int) -> Optional[WrestlerState]:
        w = self._session.get(Wrestler, wrestler_id)
        return w.to_state() if w else None

    def find_by_name(self, name: str) -> Optional[WrestlerState]:
        w = self._session.execute(
            select(Wrestler).where(Wrestler.name == name)
        ).scalar_one_or_none()
        return w.to_state() if w else None

    def award_fans(self, wrestler_id: int, delta: int) -> Optional[WrestlerState]:
        w = self._session.get(Wrestler, wrestler_id)
        if w is None:
            return None
        if delta < 0 and not w.can_afford(-delta):
            return None
        change = dampen_fan_gain(_tier(w.tier), delta) if delta > 0 else delta
        before = w.fans
        w.fans = max(0, w.fans + change)
        self.applied[wrestler_id] = self.applied.get(wrestler_id, 0) + w.fans - before
        self._session.flush()
        return w.to_state()

    def add_bump(self, wrestler_id: int) -> Optional[WrestlerState]:
        w = self._session.get(Wrestler, wrestler_id)
        if w is None:
            return None
        w.bumps = (w.bumps or 0) + 1
        if w.bumps >= BUMPS_PER_INJURY:
            w.bumps = 0
            w.injuries.append(Injury(name="Accumulated bumps", severity="Minor", is_active=True,
                                     injury_date=date.today()))
            logger.info("%s picked up an injury from accumulated bumps", w.name)
        self._session.flush()
        return w.to_state()


class SqlSegmentRules:
    def __init__(self, session) -> None:
        self._session = session

    def find_by_name(self, name: str) -> Optional[SegmentRuleRecord]:
        r = self._session.execute(
            select(SegmentRule).where(SegmentRule.name == name)
        ).scalar_one_or_none()
        return _rule_record(r) if r else None

    def find_by_id(self, rule_id: int) -> Optional[SegmentRuleRecord]:
        r = self._session.get(SegmentRule, rule_id)
        return _rule_record(r) if r else None

    def exists_by_name(self, name: str) -> bool:
        return self.find_by_name(name) is not None

    def high_heat_rules(self) -> list[SegmentRuleRecord]:
        return self._where(SegmentRule.requires_high_heat == True)

    def standard_rules(self) -> list[SegmentRuleRecord]:
        return self._where(SegmentRule.requires_high_heat == False)

    def _where(self, clause) -> list[SegmentRuleRecord]:
        rows = self._session.execute(
            select(SegmentRule).where(clause).order_by(SegmentRule.name)
        ).scalars().all()
        return [_rule_record(r) for r in rows]


class SqlAchievements:
    """Idempotent: unlocking an achievement twice keeps one row."""

    def __init__(self, session) -> None:
        self._session = session

    def unlock_achievement(self, account_id: int, code: str) -> None:
        if self._session.get(Account, account_id) is None:
            logger.warning("Cannot unlock %s: account %s not found", code, account_id)
            return
        existing = self._session.execute(
            select(AchievementUnlock).where(
                AchievementUnlock.account_id == account_id,
                AchievementUnlock.code == code,
            )
        ).scalar_one_or_none()
        if existing:
            return
        self._session.add(AchievementUnlock(account_id=account_id, code=code))
        self._session.flush()
        logger.info("Account %s unlocked achievement %s", account_id, code)


def _tier(value) -> WrestlerTier:
    return value if isinstance(value, WrestlerTier) else WrestlerTier(value)


def _enum_value(value):
    return value.value if hasattr(value, "value") else value


def _rule_record(r: SegmentRule) -> SegmentRuleRecord:
    return SegmentRuleRecord(
        id=r.id,
        name=r.name,
        description=r.description or "",
        requires_high_heat=bool(r.requires_high_heat),
        is_active=bool(r.is_active),
        bump_addition=_parse_bump_addition(r.bump_addition),
    )


def _parse_bump_addition(value) -> BumpAddition:
    if isinstance(value, BumpAddition):
        return value
    if value is None:
        return BumpAddition.NONE
    for b in BumpAddition:
        if str(value).strip().lower() in (b.value.lower(), b.name.lower()):
            return b
    raise ConfigurationError(f"unknown bump addition: {value!r}")


# ---------------------------------------------------------------------------
# Wrestlers
# ---------------------------------------------------------------------------

def get_wrestlers(tier: Optional[str] = None, limit: int = 200) -> list[dict]:
    with _SessionFactory() as session:
        q = select(Wrestler)
        if tier:
            try:
                q = q.where(Wrestler.tier == _parse_tier(tier))
            except ConfigurationError:
                return []
        q = q.order_by(Wrestler.fans.desc(), Wrestler.name).limit(limit)
        return [_wrestler_dict(w) for w in session.execute(q).scalars().all()]


def get_wrestler(wrestler_id: int) -> Optional[dict]:
    with _SessionFactory() as session:
        w = session.get(Wrestler, wrestler_id)
        return _wrestler_dict(w) if w else None


def _wrestler_dict(w: Wrestler) -> dict:
    state = w.to_state()
    return {
        "id": w.id,
        "name": w.name,
        "gender": _enum_value(w.gender),
        "tier": _enum_value(w.tier),
        "fans": w.fans,
        "fan_weight": w.fan_weight,
        "bumps": w.bumps,
        "active_injuries": state.active_injuries,
        "weight": WeightCalculator().weight(state),
        "account_id": w.account_id,
    }


def _parse_tier(value: str) -> WrestlerTier:
    for t in WrestlerTier:
        if value.strip().lower() in (t.value.lower(), t.name.lower()):
            return t
    raise ConfigurationError(f"unknown tier: {value!r}")


# ---------------------------------------------------------------------------
# Segment rules
# ---------------------------------------------------------------------------

def get_rules(active_only: bool = False, heat: Optional[str] = None) -> list[dict]:
    """``heat`` is "high" or "standard"; either filter only returns active rules."""
    with _SessionFactory() as session:
        if heat:
            applier = RuleApplier(SqlSegmentRules(session))
            if heat == "high":
                records = applier.high_heat_rules()
            elif heat == "standard":
                records = applier.standard_rules()
            else:
                return []
            return [_rule_dict(session.get(SegmentRule, r.id)) for r in records]

        q = select(SegmentRule)
        if active_only:
            q = q.where(SegmentRule.is_active == True)
        q = q.order_by(SegmentRule.name)
        return [_rule_dict(r) for r in session.execute(q).scalars().all()]


def _rule_dict(r: SegmentRule) -> dict:
    return {
        "id": r.id,
        "name": r.name,
        "description": r.description,
        "requires_high_heat": r.requires_high_heat,
        "is_active": r.is_active,
        "bump_addition": _enum_value(r.bump_addition),
    }


def create_rule(
    name: str,
    description: str = "",
    requires_high_heat: bool = False,
    bump_addition: Optional[str] = None,
    is_active: bool = True,
) -> dict:
    name = (name or "").strip()
    if not name:
        return {"error": "Rule name is required."}
    try:
        bumps = _parse_bump_addition(bump_addition)
    except ConfigurationError as e:
        return {"error": str(e)}

    with _SessionFactory() as session:
        if SqlSegmentRules(session).exists_by_name(name):
            return {"error": f"A segment rule named {name!r} already exists."}
        rule = SegmentRule(
            name=name,
            description=description or "",
            requires_high_heat=bool(requires_high_heat),
            is_active=bool(is_active),
            bump_addition=bumps,
        )
        session.add(rule)
        session.commit()
        logger.info("Created segment rule %s", name)
        return _rule_dict(rule)


def update_rule(rule_id: int, changes: dict) -> Optional[dict]:
    """Apply ``changes`` to a rule. None if it doesn't exist."""
    with _SessionFactory() as session:
        rule = session.get(SegmentRule, rule_id)
        if not rule:
            return None

        if "name" in changes:
            name = (changes["name"] or "").strip()
            if not name:
                return {"error": "Rule name is required."}
            clash = session.execute(
                select(SegmentRule).where(SegmentRule.name == name, SegmentRule.id != rule_id)
            ).scalar_one_or_none()
            if clash:
                return {"error": f"A segment rule named {name!r} already exists."}
            rule.name = name
        if "bump_addition" in changes:
            try:
                rule.bump_addition = _parse_bump_addition(changes["bump_addition"])
            except ConfigurationError as e:
                return {"error": str(e)}
        if "description" in changes:
            rule.description = changes["description"] or ""
        if "requires_high_heat" in changes:
            rule.requires_high_heat = bool(changes["requires_high_heat"])
        if "is_active" in changes:
            rule.is_active = bool(changes["is_active"])

        session.commit()
        return _rule_dict(rule)


# ---------------------------------------------------------------------------
# Titles
# ---------------------------------------------------------------------------

def get_titles() -> list[dict]:
    with _SessionFactory() as session:
        titles = session.execute(select(Title).order_by(Title.name)).scalars().all()
        return [
            {
                "id": t.id,
                "name": t.name,
                "tier": _enum_value(t.tier),
                "contender_entry_fee": t.contender_entry_fee,
                "champions": [c.name for c in t.champions],
            }
            for t in titles
        ]


def _title_stake(t: Title) -> TitleStake:
    return TitleStake(
        title_id=t.id,
        name=t.name,
        contender_entry_fee=t.contender_entry_fee,
        champion_ids=frozenset(c.id for c in t.champions),
    )


# ---------------------------------------------------------------------------
# Segment resolution
# ---------------------------------------------------------------------------

def resolve_segment(
    teams: Sequence[Sequence[int]],
    team_names: Optional[Sequence[Optional[str]]] = None,
    stipulation: Optional[str] = None,
    segment_kind: str = SegmentKind.MATCH.value,
    title_ids: Sequence[int] = (),
    multiplier: float = 1.0,
    seed: Optional[int] = None,
    show_id: Optional[int] = None,
    loser_policy: Optional[str] = None,
    tier_table: Optional[str] = None,
    rule_id: Optional[int] = None,
) -> dict:
    """Resolve one segment and persist it in a single transaction.

    ``teams`` is a list of wrestler-id lists. For a promo every id is a
    participant and grouping is ignored. Bad input comes back as
    ``{"error": ...}`` with nothing written.
    """
    with _SessionFactory() as session:
        try:
            segment = _resolve_in_session(
                session, teams, team_names, stipulation, segment_kind, title_ids,
                multiplier, seed, show_id, loser_policy, tier_table, rule_id,
            )
        except ConfigurationError as e:
            session.rollback()
            logger.warning("Segment rejected: %s", e)
            return {"error": str(e)}
        session.commit()
        return _segment_dict(segment)


def _resolve_in_session(
    session, teams, team_names, stipulation, segment_kind, title_ids,
    multiplier, seed, show_id, loser_policy, tier_table, rule_id=None,
) -> Segment:
    kind = _parse_kind(segment_kind)
    multiplier = _parse_multiplier(multiplier)
    roster = _load_roster(session, teams)
    title_rows = _load_titles(session, title_ids)
    if kind is SegmentKind.PROMO and title_rows:
        raise ConfigurationError("a promo cannot be a title segment")
    if show_id is not None and (not _is_id(show_id) or session.get(Show, show_id) is None):
        raise ConfigurationError(f"show {show_id} not found")
    if rule_id is not None and not _is_id(rule_id):
        raise ConfigurationError(f"rule id must be an integer, got {rule_id!r}")
    if team_names is not None and (
        not isinstance(team_names, (list, tuple))
        or not all(n is None or isinstance(n, str) for n in team_names)
    ):
        raise ConfigurationError("team_names must be a list of names")

    try:
        policy = LoserRewardPolicy(loser_policy) if loser_policy else DEFAULT_LOSER_POLICY
    except ValueError:
        raise ConfigurationError(f"unknown loser reward policy: {loser_policy!r}") from None
    table = get_tier_table(tier_table) if tier_table else STANDARD_TIER_BONUSES

    states = SqlWrestlerStates(session)
    engine = SegmentEngine(
        states,
        SqlSegmentRules(session),
        PythonRandomSource(seed),
        achievements=SqlAchievements(session),
        calculator=WeightCalculator(table),
        loser_policy=policy,
    )

    segment = Segment(
        show_id=show_id,
        segment_type=kind,
        is_title_segment=bool(title_rows),
        is_npc_generated=all(w.account_id is None for team in roster for w in team),
        multiplier=multiplier,
    )

    if kind is SegmentKind.PROMO:
        promo_states = [w.to_state() for team in roster for w in team]
        result = engine.resolve_promo(promo_states, stipulation, multiplier, rule_id)
        rewards = result.rewards
        segment.stipulation = result.stipulation
        segment.narration = narrative.promo_line([p.name for p in result.participants])
        attached = result.rules
        placements = [(0, p.id, False) for p in result.participants]
    else:
        names = list(team_names or [])
        built = [
            Team([w.to_state() for w in team], names[i] if i < len(names) else None)
            for i, team in enumerate(roster)
        ]
        result = engine.resolve_segment(
            built, stipulation, titles=[_title_stake(t) for t in title_rows],
            multiplier=multiplier, rule_id=rule_id,
        )
        outcome, rewards = result.outcome, result.rewards
        segment.stipulation = outcome.stipulation
        segment.duration_minutes = outcome.details.duration_minutes
        segment.rating = outcome.details.rating
        segment.win_probability = round(outcome.win_probability, 2)
        segment.narration = narrative.result_line(
            outcome.winner.name, [t.name for t in outcome.losers])
        attached = outcome.rules
        placements = [
            (i, m.id, i == outcome.winner_index)
            for i, t in enumerate(outcome.teams) for m in t.members
        ]

    segment.quality_roll = rewards.quality_roll
    for team_index, wid, is_winner in placements:
        segment.participants.append(SegmentParticipant(
            wrestler_id=wid,
            team_index=team_index,
            is_winner=is_winner,
            fan_delta=rewards.fan_deltas.get(wid, 0),
            fan_change=states.applied.get(wid, 0),
            fans_applied=rewards.fans_applied.get(wid, False),
            fee_paid=rewards.fees_charged.get(wid, 0),
            bump_granted=rewards.bumps_granted.get(wid, False),
        ))
    segment.rules = [session.get(SegmentRule, r.id) for r in attached if r.id is not None]
    segment.titles = list(title_rows)

    session.add(segment)
    session.flush()
    logger.info("Persisted segment %d (%s, roll %d)", segment.id, kind.value, rewards.quality_roll)
    return segment


def _parse_multiplier(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"difficulty multiplier must be a number, got {value!r}") from None


def _parse_kind(value) -> SegmentKind:
    if isinstance(value, SegmentKind):
        return value
    for k in SegmentKind:
        if str(value).strip().lower() in (k.value.lower(), k.name.lower()):
            return k
    raise ConfigurationError(f"unknown segment type: {value!r}")


def _load_roster(session, teams) -> list[list[Wrestler]]:
    """Check composition before anything is rolled or written."""
    if not teams:
        raise ConfigurationError("no teams supplied")
    seen: set[int] = set()
    roster = []
    for i, ids in enumerate(teams):
        if not isinstance(ids, (list, tuple)):
            raise ConfigurationError(f"team {i + 1} must be a list of wrestler ids")
        if not ids:
            raise ConfigurationError(f"team {i + 1} has no wrestlers")
        members = []
        for wid in ids:
            if not _is_id(wid):
                raise ConfigurationError(f"wrestler id must be an integer, got {wid!r}")
            if wid in seen:
                raise ConfigurationError(f"wrestler {wid} appears more than once")
            seen.add(wid)
            w = session.get(Wrestler, wid)
            if w is None:
                raise ConfigurationError(f"wrestler {wid} not found")
            members.append(w)
        roster.append(members)
    return roster


def _is_id(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _load_titles(session, title_ids) -> list[Title]:
    if title_ids is None:
        return []
    if not isinstance(title_ids, (list, tuple)):
        raise ConfigurationError("title_ids must be a list of title ids")
    titles = []
    for tid in title_ids:
        if not _is_id(tid):
            raise ConfigurationError(f"title id must be an integer, got {tid!r}")
        t = session.get(Title, tid)
        if t is None:
            raise ConfigurationError(f"title {tid} not found")
        titles.append(t)
    return titles


def get_segment(segment_id: int) -> Optional[dict]:
    with _SessionFactory() as session:
        s = session.get(Segment, segment_id)
        return _segment_dict(s) if s else None


def _segment_dict(s: Segment) -> dict:
    return {
        "id": s.id,
        "show_id": s.show_id,
        "segment_type": _enum_value(s.segment_type),
        "stipulation": s.stipulation,
        "is_title_segment": s.is_title_segment,
        "is_npc_generated": s.is_npc_generated,
        "duration_minutes": s.duration_minutes,
        "rating": s.rating,
        "quality_roll": s.quality_roll,
        "win_probability": s.win_probability,
        "multiplier": s.multiplier,
        "narration": s.narration,
        "created_at": s.created_at.isoformat() if s.created_at else None,
        "rules": [r.name for r in s.rules],
        "titles": [t.name for t in s.titles],
        "winners": [p.wrestler.name for p in s.winners],
        "participants": [
            {
                "wrestler_id": p.wrestler_id,
                "name": p.wrestler.name,
                "team_index": p.team_index,
                "is_winner": p.is_winner,
                "fan_delta": p.fan_delta,
                "fan_change": p.fan_change,
                "fans_applied": p.fans_applied,
                "fee_paid": p.fee_paid,
                "bump_granted": p.bump_granted,
            }
            for p in s.participants
        ],
    }


# ---------------------------------------------------------------------------
# Narration-only outcomes
# ---------------------------------------------------------------------------

def determine_narrative_outcome(
    names: Sequence[str],
    predetermined: Optional[str] = None,
    is_promo: bool = False,
    seed: Optional[int] = None,
) -> Optional[dict]:
    """Pick a winner for text only. Nothing is written."""
    names = names or []
    if not isinstance(names, (list, tuple)) or not all(isinstance(n, str) for n in names):
        return {"error": "wrestlers must be a list of names"}
    if predetermined is not None and not isinstance(predetermined, str):
        return {"error": "predetermined must be a string"}
    with _SessionFactory() as session:
        resolver = OutcomeResolver(SqlWrestlerStates(session), PythonRandomSource(seed))
        outcome = resolver.determine_outcome(list(names), predetermined, is_promo)
        if outcome is None:
            return None
        return {
            "description": outcome.description,
            "winner": outcome.winner_name,
            "weights": outcome.weights,
        }


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------

def get_achievements(account_id: int) -> Optional[list[dict]]:
    with _SessionFactory() as session:
        account = session.get(Account, account_id)
        if not account:
            return None
        unlocks = session.execute(
            select(AchievementUnlock)
            .where(AchievementUnlock.account_id == account_id)
            .order_by(AchievementUnlock.unlocked_at)
        ).scalars().all()
        return [
            {"code": a.code, "unlocked_at": a.unlocked_at.isoformat()}
            for a in unlocks
        ]
