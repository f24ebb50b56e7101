"""
cadence.stores.base — Records & Repository Contracts
=====================================================

One logical get/save/find/update contract, implemented twice:

* :mod:`cadence.stores.sql`      — row-oriented (SQLAlchemy)
* :mod:`cadence.stores.document` — document-oriented (JSON collections)

Core logic (engine, services, command handlers) only ever talks to the
abstract classes below and never branches on which backend is live.

Every method is synchronous; async callers go through
:func:`cadence.database.engine.run_db`.  Backend failures surface as
:class:`~cadence.errors.TransientStoreError`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

# Fields that may be bumped with an atomic increment
COUNTER_FIELDS: frozenset[str] = frozenset({
    "xp",
    "total_xp_earned",
    "weekly_xp",
    "monthly_xp",
    "today_xp",
    "voice_time",
    "invites",
})

# Fields a leaderboard may be ordered by
RANKABLE_FIELDS: frozenset[str] = frozenset({
    "total_xp_earned",
    "weekly_xp",
    "monthly_xp",
    "xp",
})

# Rolling-window counters zeroed by the scheduler
RESETTABLE_FIELDS: frozenset[str] = frozenset({"weekly_xp", "monthly_xp", "today_xp"})


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------
@dataclass
class UserRecord:
    """One member's progression state.

    Invariant after an award settles: ``0 <= xp < required_xp(level)``.
    """

    id: int
    display_name: str
    xp: int = 0
    level: int = 1
    total_xp_earned: int = 0
    weekly_xp: int = 0
    monthly_xp: int = 0
    today_xp: int = 0
    today_date: date | None = None
    last_message_time: datetime | None = None
    last_daily_bonus_date: date | None = None
    streak: int = 0
    last_active_date: date | None = None
    voice_time: int = 0
    vip_until: datetime | None = None
    invites: int = 0
    joined_at: datetime | None = None
    last_anniversary_year: int | None = None
    dm_notifications: bool = False
    channel_day: date | None = None
    channels_today: list[int] = field(default_factory=list)


@dataclass
class Event:
    """A time-boxed server-wide XP multiplier."""

    name: str
    multiplier: float
    start_time: datetime
    end_time: datetime
    creator_id: int
    active: bool = True
    ended_at: datetime | None = None
    id: int | None = None

    def is_running(self, now: datetime) -> bool:
        return self.active and self.end_time > now


@dataclass
class QuietHours:
    """Single reduced-XP window; ``start_hour > end_hour`` wraps midnight."""

    start_hour: int
    end_hour: int
    multiplier: float

    def contains(self, hour: int) -> bool:
        if self.start_hour == self.end_hour:
            return False
        if self.start_hour < self.end_hour:
            return self.start_hour <= hour < self.end_hour
        return hour >= self.start_hour or hour < self.end_hour


@dataclass
class Birthday:
    user_id: int
    month: int
    day: int
    year: int | None = None


@dataclass
class Mentorship:
    mentor_id: int
    mentee_id: int
    bonus: float = 0.2


@dataclass
class Challenge:
    """A daily goal: reach *target* of *metric* today to earn *xp_reward*."""

    id: str
    name: str
    description: str
    metric: str  # messages | voice_minutes | reactions
    target: int
    xp_reward: int


@dataclass
class ChallengeProgress:
    user_id: int
    challenge_id: str
    day: date
    progress: int = 0
    completed: bool = False
    claimed: bool = False


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------
class UserStore(ABC):
    """Users keyspace, keyed by opaque member id."""

    @abstractmethod
    def get(self, user_id: int) -> UserRecord | None: ...

    @abstractmethod
    def save(self, record: UserRecord) -> None:
        """Insert or fully overwrite *record*."""

    @abstractmethod
    def update(self, user_id: int, **fields: Any) -> bool:
        """Overwrite selected fields.  Returns False if the user is unknown."""

    @abstractmethod
    def increment(self, user_id: int, **deltas: int) -> bool:
        """Atomically add *deltas* to counter fields."""

    @abstractmethod
    def increment_all(self, user_ids: list[int], field_name: str, amount: int) -> int:
        """Atomically add *amount* to one counter for many users."""

    @abstractmethod
    def reset_field(self, field_name: str) -> int:
        """Zero a rolling-window counter for every user.  Returns rows touched."""

    @abstractmethod
    def delete(self, user_id: int) -> bool: ...

    @abstractmethod
    def delete_all(self) -> int: ...

    @abstractmethod
    def find(
        self, *, order_by: str = "total_xp_earned", limit: int = 10, offset: int = 0,
    ) -> list[UserRecord]:
        """Users sorted descending by *order_by* (ties broken by id)."""

    @abstractmethod
    def find_inactive(self, before: date) -> list[UserRecord]:
        """Users with ``xp > 0`` whose last active date is earlier than *before*."""

    @abstractmethod
    def rank(self, user_id: int, order_by: str = "total_xp_earned") -> int | None:
        """1-based position on the *order_by* leaderboard."""

    @abstractmethod
    def count(self) -> int: ...

    @abstractmethod
    def total(self, field_name: str) -> int:
        """Sum of a counter across all users."""

    @staticmethod
    def check_field(field_name: str, allowed: frozenset[str]) -> str:
        if field_name not in allowed:
            raise ValueError(f"Field {field_name!r} not allowed here")
        return field_name


class ConfigStore(ABC):
    """Config keyspace (key → JSON value).  Always queried fresh."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any: ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None: ...

    @abstractmethod
    def all(self) -> dict[str, Any]: ...

    def get_int(self, key: str, default: int = 0) -> int:
        value = self.get(key)
        return default if value is None else int(value)

    def get_float(self, key: str, default: float = 0.0) -> float:
        value = self.get(key)
        return default if value is None else float(value)


class KeyedCatalog(ABC):
    """Scalar id → scalar value catalog (rewards, milestones, multipliers)."""

    @abstractmethod
    def get(self, key: int) -> Any | None: ...

    @abstractmethod
    def put(self, key: int, value: Any) -> None: ...

    @abstractmethod
    def remove(self, key: int) -> bool: ...

    @abstractmethod
    def all(self) -> dict[int, Any]:
        """Whole catalog ordered by key."""


class IdSet(ABC):
    """A set of ids (blacklisted channels)."""

    @abstractmethod
    def contains(self, item_id: int) -> bool: ...

    @abstractmethod
    def add(self, item_id: int) -> bool:
        """Returns False if already present."""

    @abstractmethod
    def remove(self, item_id: int) -> bool: ...

    @abstractmethod
    def all(self) -> list[int]: ...


class BirthdayStore(ABC):
    @abstractmethod
    def get(self, user_id: int) -> Birthday | None: ...

    @abstractmethod
    def set(self, birthday: Birthday) -> None: ...

    @abstractmethod
    def remove(self, user_id: int) -> bool: ...


class MentorStore(ABC):
    """Many-to-many mentor ↔ mentee relation."""

    @abstractmethod
    def add(self, mentorship: Mentorship) -> None:
        """Insert, or update the bonus of an existing pair."""

    @abstractmethod
    def remove(self, mentor_id: int, mentee_id: int) -> bool: ...

    @abstractmethod
    def mentors_of(self, mentee_id: int) -> list[Mentorship]: ...

    @abstractmethod
    def mentees_of(self, mentor_id: int) -> list[Mentorship]: ...


class QuietHoursStore(ABC):
    @abstractmethod
    def get(self) -> QuietHours | None: ...

    @abstractmethod
    def set(self, window: QuietHours) -> None: ...

    @abstractmethod
    def clear(self) -> None: ...


class EventStore(ABC):
    """Events keyspace, ordered by start time."""

    @abstractmethod
    def create(self, event: Event) -> Event:
        """Persist *event* and return it with its id assigned."""

    @abstractmethod
    def get_active(self) -> Event | None:
        """Most recently started event still flagged active (may be past end)."""

    @abstractmethod
    def end(self, event_id: int, ended_at: datetime) -> bool:
        """Conditionally flip active → ended.  False if it was already ended."""

    @abstractmethod
    def due_for_expiry(self, now: datetime) -> list[Event]:
        """Active events whose end time is at or before *now*."""

    @abstractmethod
    def history(self, limit: int = 10) -> list[Event]:
        """Newest first."""


class ChallengeStore(ABC):
    """Challenge catalog plus per-day user progress."""

    @abstractmethod
    def all(self) -> list[Challenge]: ...

    @abstractmethod
    def put(self, challenge: Challenge) -> None: ...

    @abstractmethod
    def progress(self, user_id: int, day: date) -> list[ChallengeProgress]: ...

    @abstractmethod
    def increment_progress(
        self, user_id: int, challenge: Challenge, day: date, amount: int,
    ) -> ChallengeProgress:
        """Atomically add *amount* and flag ``completed`` once target is met."""

    @abstractmethod
    def claim(self, user_id: int, challenge_id: str, day: date) -> bool:
        """Conditionally set ``claimed``; True only for the first claim."""


class SchedulerStateStore(ABC):
    """Durable last-processed markers for maintenance jobs."""

    @abstractmethod
    def get_marker(self, job: str) -> date | None: ...

    @abstractmethod
    def set_marker(self, job: str, day: date) -> None: ...


# ---------------------------------------------------------------------------
# Bundle
# ---------------------------------------------------------------------------
@dataclass
class Stores:
    """Every keyspace behind one handle, passed to engine and handlers."""

    users: UserStore
    config: ConfigStore
    rewards: KeyedCatalog
    milestones: KeyedCatalog
    role_multipliers: KeyedCatalog
    voice_multipliers: KeyedCatalog
    blacklist: IdSet
    birthdays: BirthdayStore
    mentors: MentorStore
    quiet_hours: QuietHoursStore
    events: EventStore
    challenges: ChallengeStore
    scheduler: SchedulerStateStore
