"""Database seeding for RingSim: a demo roster, stipulations and titles."""

from __future__ import annotations

import random
from datetime import date

from sqlalchemy.orm import Session

from models.models import Account, Gender, SegmentRule, Show, Title, Wrestler
from simulation.contracts import BumpAddition, WrestlerTier

_FIRST_NAMES = [
    "Rex", "Vince", "Dusty", "Randy", "Shawn", "Bret", "Kevin", "Scott",
    "Jake", "Ricky", "Terry", "Harley", "Sting", "Lex", "Owen", "Davey",
    "Raven", "Blaze", "Jade", "Roxy", "Nikki", "Trish", "Lita", "Mickie",
    "Kai", "Nova", "Cruz", "Axel", "Dante", "Zeke", "Colt", "Maverick",
]

_LAST_NAMES = [
    "Steele", "Savage", "Storm", "Knight", "Hart", "Blade", "Stone", "Fury",
    "Cross", "Rhodes", "Valentine", "Hayes", "Graves", "Wolfe", "Vega", "Black",
    "Sterling", "Kingston", "Payne", "Diamond", "Thunder", "Ryder", "Voss", "Rage",
]

_FEMALE_FIRST_NAMES = {"Raven", "Blaze", "Jade", "Roxy", "Nikki", "Trish", "Lita", "Mickie", "Nova"}

# (tier, low fans, high fans)
_TIER_FANS = [
    (WrestlerTier.ROOKIE,       0,       25_000),
    (WrestlerTier.RISER,        25_000,  40_000),
    (WrestlerTier.CONTENDER,    40_000,  60_000),
    (WrestlerTier.MIDCARDER,    60_000,  100_000),
    (WrestlerTier.MAIN_EVENTER, 100_000, 150_000),
    (WrestlerTier.ICON,         150_000, 250_000),
]

SEGMENT_RULES = [
    {"name": "Steel Cage", "description": "Escape the cage or win by pinfall.",
     "high_heat": True, "bumps": BumpAddition.ALL},
    {"name": "Ladder Match", "description": "Climb the ladder and grab the prize.",
     "high_heat": True, "bumps": BumpAddition.ALL},
    {"name": "No Disqualification", "description": "Anything goes inside the ring.",
     "high_heat": True, "bumps": BumpAddition.LOSERS},
    {"name": "Last Man Standing", "description": "Win by ten count only.",
     "high_heat": True, "bumps": BumpAddition.LOSERS},
    {"name": "Submission Match", "description": "Win only by making your opponent tap.",
     "high_heat": False, "bumps": BumpAddition.LOSERS},
    {"name": "Iron Man", "description": "Most falls within the time limit.",
     "high_heat": False, "bumps": BumpAddition.WINNERS},
    {"name": "Two Out of Three Falls", "description": "First to two falls wins.",
     "high_heat": False, "bumps": BumpAddition.NONE},
]

TITLES = [
    {"name": "World Heavyweight Championship", "tier": WrestlerTier.MAIN_EVENTER, "fee": 15_000},
    {"name": "Intercontinental Championship", "tier": WrestlerTier.MIDCARDER, "fee": 10_000},
    {"name": "Tag Team Championship", "tier": WrestlerTier.CONTENDER, "fee": 5_000},
    {"name": "Rising Star Championship", "tier": WrestlerTier.RISER, "fee": 2_000},
]


def _random_name(rng: random.Random, used: set[str]) -> str:
    while True:
        name = f"{rng.choice(_FIRST_NAMES)} {rng.choice(_LAST_NAMES)}"
        if name not in used:
            used.add(name)
            return name


def seed_accounts(session: Session) -> list[Account]:
    accounts = [Account(username="booker"), Account(username="rival_booker")]
    session.add_all(accounts)
    session.flush()
    return accounts


def seed_wrestlers(
    session: Session,
    accounts: list[Account],
    seed: int = 42,
    count: int = 40,
) -> list[Wrestler]:
    """Spread ``count`` wrestlers over the tiers; roughly a third are player-owned."""
    rng = random.Random(seed)
    used: set[str] = set()
    wrestlers: list[Wrestler] = []

    for i in range(count):
        tier, lo, hi = _TIER_FANS[i % len(_TIER_FANS)]
        name = _random_name(rng, used)
        first = name.split(" ")[0]
        w = Wrestler(
            name=name,
            gender=Gender.FEMALE if first in _FEMALE_FIRST_NAMES else Gender.MALE,
            tier=tier,
            fans=rng.randrange(lo, hi, 1_000),
            bumps=rng.choice([0, 0, 0, 1, 2]),
            account_id=rng.choice(accounts).id if accounts and rng.random() < 0.33 else None,
        )
        session.add(w)
        wrestlers.append(w)

    session.flush()
    return wrestlers


def seed_segment_rules(session: Session) -> list[SegmentRule]:
    rules = [
        SegmentRule(
            name=r["name"],
            description=r["description"],
            requires_high_heat=r["high_heat"],
            bump_addition=r["bumps"],
        )
        for r in SEGMENT_RULES
    ]
    session.add_all(rules)
    session.flush()
    return rules


def seed_titles(session: Session, wrestlers: list[Wrestler], seed: int = 42) -> list[Title]:
    """Create the belts and crown a champion of matching tier where one exists."""
    rng = random.Random(seed)
    titles = []
    for belt in TITLES:
        title = Title(name=belt["name"], tier=belt["tier"], contender_entry_fee=belt["fee"])
        eligible = [w for w in wrestlers if w.tier == belt["tier"]]
        if eligible:
            title.champions.append(rng.choice(eligible))
        session.add(title)
        titles.append(title)
    session.flush()
    return titles


def seed_show(session: Session, name: str = "Monday Night Mayhem",
              show_date: date = date(2026, 1, 5)) -> Show:
    show = Show(name=name, show_date=show_date, is_premium_live_event=False)
    session.add(show)
    session.flush()
    return show


def seed_all(session: Session, seed: int = 42) -> dict:
    accounts = seed_accounts(session)
    wrestlers = seed_wrestlers(session, accounts, seed=seed)
    rules = seed_segment_rules(session)
    titles = seed_titles(session, wrestlers, seed=seed)
    show = seed_show(session)
    session.commit()
    return {
        "accounts": len(accounts),
        "wrestlers": len(wrestlers),
        "rules": len(rules),
        "titles": len(titles),
        "show_id": show.id,
    }
