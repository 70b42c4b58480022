"""Service-layer tests against a throwaway SQLite database."""

from datetime import date

import pytest
from sqlalchemy import func, select

from api import services
from models.models import Account, AchievementUnlock, Segment, Show, Title, Wrestler
from simulation.contracts import WrestlerTier
from simulation.seed import seed_all


# ── Helpers ──────────────────────────────────────────────────────────

def _add_wrestlers(factory, *rows):
    """rows: (name, fans[, tier[, bumps]]). Returns ids in order."""
    with factory() as session:
        wrestlers = []
        for row in rows:
            name, fans = row[0], row[1]
            tier = row[2] if len(row) > 2 else WrestlerTier.ROOKIE
            bumps = row[3] if len(row) > 3 else 0
            wrestlers.append(Wrestler(name=name, fans=fans, tier=tier, bumps=bumps))
        session.add_all(wrestlers)
        session.commit()
        return [w.id for w in wrestlers]


def _fans(factory, wrestler_id):
    with factory() as session:
        return session.get(Wrestler, wrestler_id).fans


def _segment_count(factory):
    with factory() as session:
        return session.execute(select(func.count(Segment.id))).scalar_one()


# ── Resolution ───────────────────────────────────────────────────────

def test_resolve_persists_participants_and_fans(db):
    a, b = _add_wrestlers(db, ("Ace", 50_000), ("Blaze", 50_000))
    result = services.resolve_segment([[a], [b]], seed=7)

    assert "error" not in result
    assert result["segment_type"] == "Match"
    assert result["stipulation"] == "Standard Match"
    assert 1 <= result["quality_roll"] <= 20
    assert len(result["participants"]) == 2
    assert len(result["winners"]) == 1

    for p in result["participants"]:
        assert p["fans_applied"]
        assert _fans(db, p["wrestler_id"]) == 50_000 + p["fan_delta"]
    winner = next(p for p in result["participants"] if p["is_winner"])
    assert winner["fan_delta"] >= 5_000
    assert result["narration"].startswith(winner["name"] + " defeated ")

    assert services.get_segment(result["id"]) == result


def test_same_seed_same_segment(db):
    a, b, c, d = _add_wrestlers(db, ("A", 1_000), ("B", 1_000), ("C", 1_000), ("D", 1_000))
    first = services.resolve_segment([[a], [b]], seed=99)
    second = services.resolve_segment([[c], [d]], seed=99)
    assert first["quality_roll"] == second["quality_roll"]
    assert first["participants"][0]["is_winner"] == second["participants"][0]["is_winner"]


def test_unknown_wrestler_writes_nothing(db):
    (a,) = _add_wrestlers(db, ("Ace", 10_000))
    result = services.resolve_segment([[a], [999]])
    assert "not found" in result["error"]
    assert _segment_count(db) == 0
    assert _fans(db, a) == 10_000


def test_duplicate_wrestler_rejected(db):
    a, b = _add_wrestlers(db, ("Ace", 10_000), ("Blaze", 10_000))
    result = services.resolve_segment([[a, b], [a]])
    assert "more than once" in result["error"]
    assert _segment_count(db) == 0


@pytest.mark.parametrize("kwargs", [
    {"teams": []},
    {"teams": [[]]},
    {"teams": [1, 2]},
    {"teams": "PLACEHOLDER", "multiplier": "lots"},
    {"teams": "PLACEHOLDER", "multiplier": -1},
    {"teams": "PLACEHOLDER", "loser_policy": "mercy"},
    {"teams": "PLACEHOLDER", "tier_table": "huge"},
    {"teams": "PLACEHOLDER", "segment_kind": "Brawl"},
    {"teams": "PLACEHOLDER", "show_id": 123},
    {"teams": "PLACEHOLDER", "title_ids": [55]},
    {"teams": "PLACEHOLDER", "title_ids": 5},
    {"teams": "PLACEHOLDER", "title_ids": ["1"]},
    {"teams": "PLACEHOLDER", "rule_id": "cage"},
    {"teams": "PLACEHOLDER", "team_names": "The Duo"},
    {"teams": "PLACEHOLDER", "show_id": "main"},
    {"teams": [[[1]], [1]]},
    {"teams": [["1"], [2]]},
    {"teams": [[True], [2]]},
])
def test_bad_requests_return_errors(db, kwargs):
    a, b = _add_wrestlers(db, ("Ace", 10_000), ("Blaze", 10_000))
    if kwargs["teams"] == "PLACEHOLDER":
        kwargs = {**kwargs, "teams": [[a], [b]]}
    result = services.resolve_segment(**kwargs)
    assert "error" in result
    assert _segment_count(db) == 0
    assert _fans(db, a) == 10_000


def test_three_way_and_named_teams(db):
    ids = _add_wrestlers(db, ("A", 5_000), ("B", 5_000), ("C", 5_000), ("D", 5_000))
    result = services.resolve_segment(
        [[ids[0], ids[1]], [ids[2]], [ids[3]]],
        team_names=["The Duo"], seed=3,
    )
    assert "error" not in result
    assert {p["team_index"] for p in result["participants"]} == {0, 1, 2}
    assert result["duration_minutes"] <= 45
    assert 1 <= result["rating"] <= 5


def test_stipulation_rule_adds_bumps(db):
    services.create_rule("Steel Cage", "Escape the cage.", True, "All")
    a, b = _add_wrestlers(db, ("Ace", 10_000), ("Blaze", 10_000))
    result = services.resolve_segment([[a], [b]], stipulation="Steel Cage", seed=1)
    assert result["rules"] == ["Steel Cage"]
    assert all(p["bump_granted"] for p in result["participants"])
    assert services.get_wrestler(a)["bumps"] == 1


def test_title_segment_charges_contender(db):
    champ, challenger = _add_wrestlers(db, ("Champ", 50_000), ("Challenger", 50_000))
    with db() as session:
        title = Title(name="World Title", contender_entry_fee=5_000)
        title.champions.append(session.get(Wrestler, champ))
        session.add(title)
        session.commit()
        title_id = title.id

    result = services.resolve_segment([[champ], [challenger]], title_ids=[title_id], seed=5)
    fees = {p["name"]: p["fee_paid"] for p in result["participants"]}
    assert result["is_title_segment"]
    assert result["titles"] == ["World Title"]
    assert fees == {"Champ": 0, "Challenger": 5_000}


def test_segment_attached_to_show(db):
    a, b = _add_wrestlers(db, ("Ace", 10_000), ("Blaze", 10_000))
    with db() as session:
        show = Show(name="Friday Night Fury", show_date=date(2026, 3, 6))
        session.add(show)
        session.commit()
        show_id = show.id
    result = services.resolve_segment([[a], [b]], show_id=show_id)
    assert result["show_id"] == show_id


def test_promo_shares_award(db):
    a, b = _add_wrestlers(db, ("Ace", 10_000), ("Blaze", 10_000))
    result = services.resolve_segment([[a, b]], segment_kind="Promo", seed=11)
    assert result["segment_type"] == "Promo"
    assert result["winners"] == []
    assert result["narration"] == "Ace and Blaze trade words in the ring"
    deltas = {p["fan_delta"] for p in result["participants"]}
    assert len(deltas) == 1
    assert not any(p["bump_granted"] for p in result["participants"])


def test_promo_cannot_be_title_segment(db):
    (a,) = _add_wrestlers(db, ("Ace", 10_000))
    with db() as session:
        title = Title(name="TV Title", contender_entry_fee=0)
        session.add(title)
        session.commit()
        title_id = title.id
    result = services.resolve_segment([[a]], segment_kind="Promo", title_ids=[title_id])
    assert "error" in result


# ── SQL collaborators ────────────────────────────────────────────────

@pytest.mark.parametrize("tier,gain,kept", [
    (WrestlerTier.ROOKIE, 5_000, 5_000),
    (WrestlerTier.CONTENDER, 10_000, 10_000),
    (WrestlerTier.MIDCARDER, 9_000, 9_000),
    (WrestlerTier.MAIN_EVENTER, 11_000, 10_000),
    (WrestlerTier.ICON, 25_000, 23_000),
])
def test_dampen_fan_gain(tier, gain, kept):
    assert services.dampen_fan_gain(tier, gain) == kept


def test_award_fans_dampens_gains_only(db):
    (icon,) = _add_wrestlers(db, ("Legend", 200_000, WrestlerTier.ICON))
    with db() as session:
        states = services.SqlWrestlerStates(session)
        states.award_fans(icon, 25_000)
        states.award_fans(icon, -3_000)
        session.commit()
    assert _fans(db, icon) == 200_000 + 23_000 - 3_000


def test_award_fans_tracks_applied_change(db):
    (icon,) = _add_wrestlers(db, ("Legend", 200_000, WrestlerTier.ICON))
    with db() as session:
        states = services.SqlWrestlerStates(session)
        states.award_fans(icon, 12_000)
        assert states.applied == {icon: 11_000}
        states.award_fans(icon, -2_000)
        assert states.applied == {icon: 9_000}


def test_persisted_fan_change_matches_roster(db):
    icon, kid = _add_wrestlers(db, ("Legend", 200_000, WrestlerTier.ICON), ("Kid", 200_000))
    for seed in range(5):
        before = {icon: _fans(db, icon), kid: _fans(db, kid)}
        result = services.resolve_segment([[icon], [kid]], seed=seed)
        for p in result["participants"]:
            assert _fans(db, p["wrestler_id"]) == before[p["wrestler_id"]] + p["fan_change"]


def test_award_fans_refuses_unaffordable_cost(db):
    (a,) = _add_wrestlers(db, ("Ace", 1_000))
    with db() as session:
        states = services.SqlWrestlerStates(session)
        assert states.award_fans(a, -5_000) is None
        assert states.award_fans(404, 1_000) is None
    assert _fans(db, a) == 1_000


def test_third_bump_becomes_injury(db):
    (a,) = _add_wrestlers(db, ("Ace", 10_000, WrestlerTier.ROOKIE, 2))
    with db() as session:
        state = services.SqlWrestlerStates(session).add_bump(a)
        session.commit()
    assert state.bumps == 0
    assert state.active_injuries == 1
    assert services.get_wrestler(a)["active_injuries"] == 1


def test_rule_filters(db):
    services.create_rule("Steel Cage", requires_high_heat=True)
    services.create_rule("Iron Man")
    with db() as session:
        rules = services.SqlSegmentRules(session)
        assert [r.name for r in rules.high_heat_rules()] == ["Steel Cage"]
        assert [r.name for r in rules.standard_rules()] == ["Iron Man"]
        assert rules.exists_by_name("Iron Man")
        assert rules.find_by_name("Ladder Match") is None


def test_rules_filtered_by_heat(db):
    services.create_rule("Steel Cage", requires_high_heat=True)
    services.create_rule("Hardcore", requires_high_heat=True, is_active=False)
    services.create_rule("Iron Man")
    assert [r["name"] for r in services.get_rules(heat="high")] == ["Steel Cage"]
    assert [r["name"] for r in services.get_rules(heat="standard")] == ["Iron Man"]
    assert services.get_rules(heat="lukewarm") == []


def test_rule_attached_by_id(db):
    cage = services.create_rule("Steel Cage", bump_addition="Losers")
    a, b = _add_wrestlers(db, ("Ace", 10_000), ("Blaze", 10_000))
    result = services.resolve_segment([[a], [b]], rule_id=cage["id"], seed=2)
    assert result["stipulation"] == "Standard Match"
    assert result["rules"] == ["Steel Cage"]
    loser = next(p for p in result["participants"] if not p["is_winner"])
    assert loser["bump_granted"]

    unknown = services.resolve_segment([[a], [b]], rule_id=999, seed=2)
    assert unknown["rules"] == []


# ── Achievements ─────────────────────────────────────────────────────

def test_achievement_unlock_is_idempotent(db):
    with db() as session:
        account = Account(username="booker")
        session.add(account)
        session.commit()
        account_id = account.id

    with db() as session:
        sink = services.SqlAchievements(session)
        sink.unlock_achievement(account_id, "FIVE_STAR_CLASSIC")
        sink.unlock_achievement(account_id, "FIVE_STAR_CLASSIC")
        sink.unlock_achievement(404, "FIVE_STAR_CLASSIC")
        session.commit()
        count = session.execute(select(func.count(AchievementUnlock.id))).scalar_one()

    assert count == 1
    assert [a["code"] for a in services.get_achievements(account_id)] == ["FIVE_STAR_CLASSIC"]
    assert services.get_achievements(404) is None


# ── Rules CRUD ───────────────────────────────────────────────────────

def test_create_rule_validation(db):
    assert "error" in services.create_rule("   ")
    assert "error" in services.create_rule("Cage", bump_addition="everyone")
    created = services.create_rule("Cage", bump_addition="losers")
    assert created["bump_addition"] == "Losers"
    assert "error" in services.create_rule("Cage")


def test_update_rule(db):
    cage = services.create_rule("Cage")
    services.create_rule("Ladder")
    assert services.update_rule(999, {"name": "X"}) is None
    assert "error" in services.update_rule(cage["id"], {"name": "Ladder"})
    updated = services.update_rule(cage["id"], {"is_active": False, "bump_addition": "All"})
    assert updated["is_active"] is False
    assert updated["bump_addition"] == "All"
    assert [r["name"] for r in services.get_rules(active_only=True)] == ["Ladder"]


# ── Narration ────────────────────────────────────────────────────────

def test_narrative_outcome(db):
    _add_wrestlers(db, ("Ace", 100_000))
    assert services.determine_narrative_outcome([], is_promo=True) is None
    scripted = services.determine_narrative_outcome(["Ace", "Blaze"], "Blaze wins by DQ")
    assert scripted["description"] == "Blaze wins by DQ"

    first = services.determine_narrative_outcome(["Ace", "Blaze"], seed=8)
    again = services.determine_narrative_outcome(["Ace", "Blaze"], seed=8)
    assert first == again
    assert first["weights"] == {"Ace": 20_000, "Blaze": 50}


@pytest.mark.parametrize("names", ["Ace", [1, 2], ["Ace", None], {"Ace": 1}])
def test_narrative_outcome_rejects_non_name_lists(db, names):
    assert "error" in services.determine_narrative_outcome(names)


# ── Seeding ──────────────────────────────────────────────────────────

def test_seed_all(db):
    with db() as session:
        summary = seed_all(session, seed=42)
    assert summary["wrestlers"] == 40
    assert len(services.get_titles()) == summary["titles"] == 4
    fans = [w["fans"] for w in services.get_wrestlers()]
    assert fans == sorted(fans, reverse=True)
    assert all(w["tier"] == "Icon" for w in services.get_wrestlers(tier="icon"))
    assert services.get_wrestlers(tier="nonsense") == []
