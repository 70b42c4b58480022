"""SQLAlchemy ORM models for RingSim."""

from __future__ import annotations

import enum
from datetime import date, datetime, timezone
from typing import Optional, List

from sqlalchemy import (
    Boolean, Column, Date, DateTime, Enum, Float, ForeignKey, Index,
    Integer, String, Table, Text, CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import relationship, Mapped

from simulation.contracts import BumpAddition, SegmentKind, WrestlerState, WrestlerTier

from .database import Base


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Gender(str, enum.Enum):
    MALE = "Male"
    FEMALE = "Female"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ---------------------------------------------------------------------------
# Association tables
# ---------------------------------------------------------------------------

title_champions = Table(
    "title_champions",
    Base.metadata,
    Column("title_id", Integer, ForeignKey("titles.id"), primary_key=True),
    Column("wrestler_id", Integer, ForeignKey("wrestlers.id"), primary_key=True),
)

segment_rules = Table(
    "segment_segment_rules",
    Base.metadata,
    Column("segment_id", Integer, ForeignKey("segments.id"), primary_key=True),
    Column("rule_id", Integer, ForeignKey("segment_rules.id"), primary_key=True),
)

segment_titles = Table(
    "segment_titles",
    Base.metadata,
    Column("segment_id", Integer, ForeignKey("segments.id"), primary_key=True),
    Column("title_id", Integer, ForeignKey("titles.id"), primary_key=True),
)


# ---------------------------------------------------------------------------
# Account
# ---------------------------------------------------------------------------

class Account(Base):
    """Player account. Owns wrestlers and collects achievements."""

    __tablename__ = "accounts"

    id: Mapped[int] = Column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = Column(String(60), nullable=False, unique=True)

    wrestlers: Mapped[List["Wrestler"]] = relationship("Wrestler", back_populates="account")
    achievements: Mapped[List["AchievementUnlock"]] = relationship(
        "AchievementUnlock", back_populates="account", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Account {self.username}>"


# ---------------------------------------------------------------------------
# Wrestler
# ---------------------------------------------------------------------------

class Wrestler(Base):
    """A wrestler on the roster."""

    __tablename__ = "wrestlers"

    id: Mapped[int] = Column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = Column(String(100), nullable=False, unique=True)
    gender: Mapped[str] = Column(Enum(Gender), nullable=False, default=Gender.MALE)
    tier: Mapped[str] = Column(Enum(WrestlerTier), nullable=False, default=WrestlerTier.ROOKIE)

    fans: Mapped[int] = Column(Integer, nullable=False, default=0)
    bumps: Mapped[int] = Column(Integer, nullable=False, default=0)
    active: Mapped[bool] = Column(Boolean, default=True)

    account_id: Mapped[Optional[int]] = Column(Integer, ForeignKey("accounts.id"), nullable=True)

    account: Mapped[Optional["Account"]] = relationship("Account", back_populates="wrestlers")
    injuries: Mapped[List["Injury"]] = relationship(
        "Injury", back_populates="wrestler", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_wrestler_tier", "tier"),
        CheckConstraint("fans >= 0"),
        CheckConstraint("bumps >= 0"),
    )

    @property
    def fan_weight(self) -> int:
        return self.fans // 5

    @property
    def active_injuries(self) -> list["Injury"]:
        return [i for i in self.injuries if i.is_currently_active]

    def can_afford(self, cost: int) -> bool:
        return self.fans >= cost

    def to_state(self) -> WrestlerState:
        tier = self.tier if isinstance(self.tier, WrestlerTier) else WrestlerTier(self.tier)
        return WrestlerState(
            id=self.id,
            name=self.name,
            fan_weight=self.fan_weight,
            tier=tier,
            bumps=self.bumps or 0,
            active_injuries=len(self.active_injuries),
            account_id=self.account_id,
        )

    def __repr__(self) -> str:
        return f"<Wrestler {self.name} ({self.tier}, {self.fans} fans)>"


# ---------------------------------------------------------------------------
# Injury
# ---------------------------------------------------------------------------

class Injury(Base):
    __tablename__ = "injuries"

    id: Mapped[int] = Column(Integer, primary_key=True, autoincrement=True)
    wrestler_id: Mapped[int] = Column(Integer, ForeignKey("wrestlers.id"), nullable=False)
    name: Mapped[str] = Column(String(100), nullable=False)
    severity: Mapped[str] = Column(String(20), nullable=False, default="Minor")
    is_active: Mapped[bool] = Column(Boolean, default=True)
    injury_date: Mapped[date] = Column(Date, nullable=False)
    healed_date: Mapped[Optional[date]] = Column(Date, nullable=True)

    wrestler: Mapped["Wrestler"] = relationship("Wrestler", back_populates="injuries")

    __table_args__ = (
        Index("ix_injury_wrestler", "wrestler_id"),
    )

    @property
    def is_currently_active(self) -> bool:
        return bool(self.is_active) and self.healed_date is None


# ---------------------------------------------------------------------------
# Segment rules (stipulations)
# ---------------------------------------------------------------------------

class SegmentRule(Base):
    """A named stipulation, e.g. "Steel Cage". Looked up by exact name."""

    __tablename__ = "segment_rules"

    id: Mapped[int] = Column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = Column(String(100), nullable=False, unique=True)
    description: Mapped[str] = Column(Text, nullable=False, default="")
    requires_high_heat: Mapped[bool] = Column(Boolean, default=False)
    is_active: Mapped[bool] = Column(Boolean, default=True)
    bump_addition: Mapped[str] = Column(Enum(BumpAddition), nullable=False, default=BumpAddition.NONE)

    def __repr__(self) -> str:
        return f"<SegmentRule {self.name}>"


# ---------------------------------------------------------------------------
# Titles
# ---------------------------------------------------------------------------

class Title(Base):
    __tablename__ = "titles"

    id: Mapped[int] = Column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = Column(String(100), nullable=False, unique=True)
    tier: Mapped[str] = Column(Enum(WrestlerTier), nullable=False, default=WrestlerTier.MIDCARDER)
    contender_entry_fee: Mapped[int] = Column(Integer, nullable=False, default=0)

    champions: Mapped[List["Wrestler"]] = relationship("Wrestler", secondary=title_champions)

    def __repr__(self) -> str:
        return f"<Title {self.name}>"


# ---------------------------------------------------------------------------
# Shows & segments
# ---------------------------------------------------------------------------

class Show(Base):
    __tablename__ = "shows"

    id: Mapped[int] = Column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = Column(String(120), nullable=False)
    show_date: Mapped[date] = Column(Date, nullable=False)
    is_premium_live_event: Mapped[bool] = Column(Boolean, default=False)

    segments: Mapped[List["Segment"]] = relationship(
        "Segment", back_populates="show", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Show {self.name} on {self.show_date}>"


class Segment(Base):
    """A resolved match or promo and what it paid out."""

    __tablename__ = "segments"

    id: Mapped[int] = Column(Integer, primary_key=True, autoincrement=True)
    show_id: Mapped[Optional[int]] = Column(Integer, ForeignKey("shows.id"), nullable=True)
    segment_type: Mapped[str] = Column(Enum(SegmentKind), nullable=False, default=SegmentKind.MATCH)
    stipulation: Mapped[str] = Column(String(100), nullable=False, default="Standard Match")
    is_title_segment: Mapped[bool] = Column(Boolean, default=False)
    is_npc_generated: Mapped[bool] = Column(Boolean, default=True)

    duration_minutes: Mapped[Optional[int]] = Column(Integer, nullable=True)
    rating: Mapped[Optional[int]] = Column(Integer, nullable=True)
    quality_roll: Mapped[Optional[int]] = Column(Integer, nullable=True)
    win_probability: Mapped[Optional[float]] = Column(Float, nullable=True)
    multiplier: Mapped[float] = Column(Float, default=1.0)
    narration: Mapped[Optional[str]] = Column(Text, nullable=True)
    created_at: Mapped[datetime] = Column(DateTime, nullable=False, default=_utcnow)

    show: Mapped[Optional["Show"]] = relationship("Show", back_populates="segments")
    participants: Mapped[List["SegmentParticipant"]] = relationship(
        "SegmentParticipant", back_populates="segment", cascade="all, delete-orphan",
        order_by="SegmentParticipant.team_index",
    )
    rules: Mapped[List["SegmentRule"]] = relationship("SegmentRule", secondary=segment_rules)
    titles: Mapped[List["Title"]] = relationship("Title", secondary=segment_titles)

    __table_args__ = (
        Index("ix_segment_show", "show_id"),
    )

    @property
    def winners(self) -> list["SegmentParticipant"]:
        return [p for p in self.participants if p.is_winner]

    def __repr__(self) -> str:
        return f"<Segment {self.id} {self.segment_type} ({self.stipulation})>"


class SegmentParticipant(Base):
    __tablename__ = "segment_participants"

    id: Mapped[int] = Column(Integer, primary_key=True, autoincrement=True)
    segment_id: Mapped[int] = Column(Integer, ForeignKey("segments.id"), nullable=False)
    wrestler_id: Mapped[int] = Column(Integer, ForeignKey("wrestlers.id"), nullable=False)
    team_index: Mapped[int] = Column(Integer, nullable=False, default=0)
    is_winner: Mapped[bool] = Column(Boolean, default=False)
    fan_delta: Mapped[int] = Column(Integer, default=0)
    # net change actually applied (fees, dampening and the zero floor included)
    fan_change: Mapped[int] = Column(Integer, default=0)
    fans_applied: Mapped[bool] = Column(Boolean, default=False)
    fee_paid: Mapped[int] = Column(Integer, default=0)
    bump_granted: Mapped[bool] = Column(Boolean, default=False)

    segment: Mapped["Segment"] = relationship("Segment", back_populates="participants")
    wrestler: Mapped["Wrestler"] = relationship("Wrestler")

    __table_args__ = (
        Index("ix_participant_segment", "segment_id"),
        Index("ix_participant_wrestler", "wrestler_id"),
    )


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------

class AchievementUnlock(Base):
    __tablename__ = "achievement_unlocks"

    id: Mapped[int] = Column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    code: Mapped[str] = Column(String(60), nullable=False)
    unlocked_at: Mapped[datetime] = Column(DateTime, nullable=False, default=_utcnow)

    account: Mapped["Account"] = relationship("Account", back_populates="achievements")

    __table_args__ = (
        UniqueConstraint("account_id", "code", name="uq_achievement_account_code"),
    )
