"""Shared fixtures: in-memory collaborators, scripted randomness, a seeded DB."""

from __future__ import annotations

import dataclasses
from typing import Optional

import pytest

from simulation.contracts import SegmentRuleRecord, WrestlerState, WrestlerTier


# ------------------------------------------------------------------
# Scripted randomness
# ------------------------------------------------------------------

class FixedRandomSource:
    """Plays back scripted draws in call order.

    Once a script runs dry, random() returns 0.0 and randint() returns the
    low bound. Scripted ints are clamped into [a, b].
    """

    def __init__(self, floats=(), ints=()) -> None:
        self.floats = list(floats)
        self.ints = list(ints)
        self.random_calls = 0
        self.randint_calls: list[tuple[int, int]] = []

    def random(self) -> float:
        self.random_calls += 1
        return self.floats.pop(0) if self.floats else 0.0

    def randint(self, a: int, b: int) -> int:
        self.randint_calls.append((a, b))
        value = self.ints.pop(0) if self.ints else a
        return min(max(value, a), b)


# ------------------------------------------------------------------
# In-memory collaborators
# ------------------------------------------------------------------

class FakeStates:
    """WrestlerStateProvider backed by dicts. ``fans`` drives affordability."""

    def __init__(self, wrestlers=(), fans: Optional[dict] = None) -> None:
        self.states = {w.id: w for w in wrestlers}
        self.fans = {w.id: 100_000 for w in wrestlers}
        self.fans.update(fans or {})
        self.fan_calls: list[tuple[int, int]] = []
        self.bump_calls: list[int] = []
        self.lookups: list[int] = []

    def find_current_state(self, wrestler_id):
        self.lookups.append(wrestler_id)
        return self.states.get(wrestler_id)

    def find_by_name(self, name):
        return next((s for s in self.states.values() if s.name == name), None)

    def award_fans(self, wrestler_id, delta):
        self.fan_calls.append((wrestler_id, delta))
        if wrestler_id not in self.states:
            return None
        if delta < 0 and self.fans.get(wrestler_id, 0) < -delta:
            return None
        self.fans[wrestler_id] = self.fans.get(wrestler_id, 0) + delta
        return self.states[wrestler_id]

    def add_bump(self, wrestler_id):
        self.bump_calls.append(wrestler_id)
        state = self.states.get(wrestler_id)
        if state is None:
            return None
        updated = dataclasses.replace(state, bumps=state.bumps + 1)
        self.states[wrestler_id] = updated
        return updated


class FakeRules:
    def __init__(self, rules=()) -> None:
        self.rules = list(rules)

    def find_by_name(self, name):
        return next((r for r in self.rules if r.name == name), None)

    def find_by_id(self, rule_id):
        return next((r for r in self.rules if r.id == rule_id), None)

    def exists_by_name(self, name):
        return self.find_by_name(name) is not None

    def high_heat_rules(self):
        return [r for r in self.rules if r.requires_high_heat]

    def standard_rules(self):
        return [r for r in self.rules if not r.requires_high_heat]


class FakeAchievements:
    def __init__(self) -> None:
        self.unlocked: list[tuple[int, str]] = []

    def unlock_achievement(self, account_id, code):
        self.unlocked.append((account_id, code))


def make_wrestler(wid: int, name: Optional[str] = None, fan_weight: int = 0,
                  tier: WrestlerTier = WrestlerTier.ROOKIE, bumps: int = 0,
                  injuries: int = 0, account_id: Optional[int] = None) -> WrestlerState:
    return WrestlerState(
        id=wid,
        name=name or f"Wrestler {wid}",
        fan_weight=fan_weight,
        tier=tier,
        bumps=bumps,
        active_injuries=injuries,
        account_id=account_id,
    )


def make_rule(rid: int, name: str, **kwargs) -> SegmentRuleRecord:
    return SegmentRuleRecord(id=rid, name=name, **kwargs)


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------

@pytest.fixture
def wrestler():
    return make_wrestler


@pytest.fixture
def rule():
    return make_rule


@pytest.fixture
def scripted():
    return FixedRandomSource


@pytest.fixture
def fake_states():
    return FakeStates


@pytest.fixture
def fake_rules():
    return FakeRules


@pytest.fixture
def achievements():
    return FakeAchievements()


@pytest.fixture
def db(tmp_path):
    """Fresh SQLite file wired into api.services. Yields the session factory."""
    from api import services

    services.init_db(f"sqlite:///{tmp_path / 'ringsim_test.db'}")
    yield services._SessionFactory


@pytest.fixture
def client(tmp_path):
    from api.app import create_app

    app = create_app(f"sqlite:///{tmp_path / 'ringsim_app.db'}")
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c
