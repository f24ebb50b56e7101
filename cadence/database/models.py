"""
cadence.database.models — SQLAlchemy 2.0 Data Models
=====================================================

Row-oriented layout of every keyspace the stores expose.

Tables:
- users                      — Member progression (Discord snowflake PK)
- config_entries             — Gameplay tuning, key → JSON value
- level_rewards              — Exact-level role grants
- milestones                 — Cumulative (at-or-above) role grants
- role_multipliers           — Role → XP factor
- voice_channel_multipliers  — Voice channel → XP factor
- blacklisted_channels       — Channels that never earn XP
- events                     — Time-boxed XP events, ordered by start
- birthdays                  — Month/day per member
- mentors                    — Mentor ↔ mentee with share bonus
- quiet_hours                — Single reduced-XP window (row id 1)
- challenges                 — Daily challenge catalog
- user_challenge_progress    — Per-user, per-day challenge progress
- scheduler_state            — Last-processed date per maintenance job
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JsonType = JSON().with_variant(JSONB(), "postgresql")


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Cadence ORM models."""


# ---------------------------------------------------------------------------
# Users: one row per Discord member
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    xp: Mapped[int] = mapped_column(Integer, default=0)
    level: Mapped[int] = mapped_column(Integer, default=1)
    total_xp_earned: Mapped[int] = mapped_column(BigInteger, default=0)

    # Rolling windows
    weekly_xp: Mapped[int] = mapped_column(Integer, default=0)
    monthly_xp: Mapped[int] = mapped_column(Integer, default=0)
    today_xp: Mapped[int] = mapped_column(Integer, default=0)
    today_date: Mapped[date | None] = mapped_column(Date, default=None)

    # Gates & streak
    last_message_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    last_daily_bonus_date: Mapped[date | None] = mapped_column(Date, default=None)
    streak: Mapped[int] = mapped_column(Integer, default=0)
    last_active_date: Mapped[date | None] = mapped_column(Date, default=None)
    channel_day: Mapped[date | None] = mapped_column(Date, default=None)
    channels_today: Mapped[list] = mapped_column(JsonType, default=list)

    # Misc
    voice_time: Mapped[int] = mapped_column(Integer, default=0)
    vip_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    invites: Mapped[int] = mapped_column(Integer, default=0)
    joined_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    last_anniversary_year: Mapped[int | None] = mapped_column(Integer, default=None)
    dm_notifications: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_users_total_xp_earned", "total_xp_earned"),
        Index("ix_users_weekly_xp", "weekly_xp"),
        Index("ix_users_monthly_xp", "monthly_xp"),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} name={self.display_name!r} lvl={self.level}>"


# ---------------------------------------------------------------------------
# Config: key → JSON value
# ---------------------------------------------------------------------------
class ConfigEntry(Base):
    """Gameplay tuning knob.  Values are JSON strings."""

    __tablename__ = "config_entries"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<ConfigEntry key={self.key!r}>"


# ---------------------------------------------------------------------------
# Role catalogs
# ---------------------------------------------------------------------------
class LevelReward(Base):
    __tablename__ = "level_rewards"

    level: Mapped[int] = mapped_column(Integer, primary_key=True)
    role_id: Mapped[int] = mapped_column(BigInteger, nullable=False)


class Milestone(Base):
    __tablename__ = "milestones"

    level: Mapped[int] = mapped_column(Integer, primary_key=True)
    role_id: Mapped[int] = mapped_column(BigInteger, nullable=False)


class RoleMultiplier(Base):
    __tablename__ = "role_multipliers"

    role_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    multiplier: Mapped[float] = mapped_column(Float, nullable=False)


class VoiceChannelMultiplier(Base):
    __tablename__ = "voice_channel_multipliers"

    channel_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    multiplier: Mapped[float] = mapped_column(Float, nullable=False)


class BlacklistedChannel(Base):
    __tablename__ = "blacklisted_channels"

    channel_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------
class XpEvent(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    multiplier: Mapped[float] = mapped_column(Float, nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    creator_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    __table_args__ = (
        Index("ix_events_active_start", "active", "start_time"),
    )

    def __repr__(self) -> str:
        return f"<XpEvent id={self.id} name={self.name!r} active={self.active}>"


# ---------------------------------------------------------------------------
# Per-member extras
# ---------------------------------------------------------------------------
class BirthdayRow(Base):
    __tablename__ = "birthdays"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    day: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int | None] = mapped_column(Integer, default=None)


class MentorRow(Base):
    __tablename__ = "mentors"

    mentor_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    mentee_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    bonus: Mapped[float] = mapped_column(Float, default=0.2)

    __table_args__ = (
        Index("ix_mentors_mentee", "mentee_id"),
    )


class QuietHoursRow(Base):
    __tablename__ = "quiet_hours"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    start_hour: Mapped[int] = mapped_column(Integer, nullable=False)
    end_hour: Mapped[int] = mapped_column(Integer, nullable=False)
    multiplier: Mapped[float] = mapped_column(Float, nullable=False)


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------
class ChallengeRow(Base):
    __tablename__ = "challenges"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    metric: Mapped[str] = mapped_column(String(30), nullable=False)
    target: Mapped[int] = mapped_column(Integer, nullable=False)
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False)


class ChallengeProgressRow(Base):
    __tablename__ = "user_challenge_progress"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    challenge_id: Mapped[str] = mapped_column(
        String(50), ForeignKey("challenges.id", ondelete="CASCADE"), primary_key=True
    )
    day: Mapped[date] = mapped_column(Date, primary_key=True)
    progress: Mapped[int] = mapped_column(Integer, default=0)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    claimed: Mapped[bool] = mapped_column(Boolean, default=False)


# ---------------------------------------------------------------------------
# Scheduler state
# ---------------------------------------------------------------------------
class SchedulerMarker(Base):
    __tablename__ = "scheduler_state"

    job: Mapped[str] = mapped_column(String(50), primary_key=True)
    last_run: Mapped[date] = mapped_column(Date, nullable=False)
