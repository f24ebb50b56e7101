"""
cadence.stores.sql — Row-Oriented Backend
==========================================

SQLAlchemy implementation of the repository contracts in
:mod:`cadence.stores.base`.  Each call opens a short session through
:func:`~cadence.database.engine.get_session`; counters are bumped with a
single ``UPDATE … SET x = x + n`` and state flips (event end, challenge
claim) are conditional updates, so concurrent writers never lose an
increment.

Timestamps are written in UTC.  SQLite hands them back naive, so reads
re-attach UTC.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import fields
from datetime import UTC, date, datetime
from typing import Any

from sqlalchemy import Engine, delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cadence.database.engine import get_session
from cadence.database.models import (
    BirthdayRow,
    BlacklistedChannel,
    ChallengeProgressRow,
    ChallengeRow,
    ConfigEntry,
    LevelReward,
    MentorRow,
    Milestone,
    QuietHoursRow,
    RoleMultiplier,
    SchedulerMarker,
    User,
    VoiceChannelMultiplier,
    XpEvent,
)
from cadence.errors import TransientStoreError
from cadence.stores.base import (
    COUNTER_FIELDS,
    RANKABLE_FIELDS,
    RESETTABLE_FIELDS,
    Birthday,
    BirthdayStore,
    Challenge,
    ChallengeProgress,
    ChallengeStore,
    ConfigStore,
    Event,
    EventStore,
    IdSet,
    KeyedCatalog,
    MentorStore,
    Mentorship,
    QuietHours,
    QuietHoursStore,
    SchedulerStateStore,
    Stores,
    UserRecord,
    UserStore,
)

logger = logging.getLogger(__name__)

_USER_FIELDS = tuple(f.name for f in fields(UserRecord))
_DATETIME_FIELDS = ("last_message_time", "vip_until", "joined_at")


def _utc(moment: datetime | None) -> datetime | None:
    if moment is None:
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def _aware(moment: datetime | None) -> datetime | None:
    if moment is not None and moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


def _user_to_record(row: User) -> UserRecord:
    data = {name: getattr(row, name) for name in _USER_FIELDS}
    for name in _DATETIME_FIELDS:
        data[name] = _aware(data[name])
    data["channels_today"] = list(data["channels_today"] or [])
    return UserRecord(**data)


def _user_values(values: dict[str, Any]) -> dict[str, Any]:
    for name in values:
        if name not in _USER_FIELDS or name == "id":
            raise ValueError(f"Unknown user field {name!r}")
    for name in _DATETIME_FIELDS:
        if name in values:
            values[name] = _utc(values[name])
    if "channels_today" in values:
        values["channels_today"] = list(values["channels_today"])
    return values


def _event_to_record(row: XpEvent) -> Event:
    return Event(
        id=row.id,
        name=row.name,
        multiplier=row.multiplier,
        start_time=_aware(row.start_time),
        end_time=_aware(row.end_time),
        creator_id=row.creator_id,
        active=row.active,
        ended_at=_aware(row.ended_at),
    )


def _progress_to_record(row: ChallengeProgressRow) -> ChallengeProgress:
    return ChallengeProgress(
        user_id=row.user_id,
        challenge_id=row.challenge_id,
        day=row.day,
        progress=row.progress,
        completed=row.completed,
        claimed=row.claimed,
    )


# ---------------------------------------------------------------------------
# Shared plumbing
# ---------------------------------------------------------------------------
class _SqlRepository:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """Session scope translating driver errors into TransientStoreError."""
        try:
            with get_session(self.engine) as session:
                yield session
        except SQLAlchemyError as exc:
            logger.warning("Store call failed: %s", exc)
            raise TransientStoreError(str(exc)) from exc

    @staticmethod
    def _write(session: Session, stmt) -> int:
        """Execute a bulk UPDATE/DELETE and return affected rows."""
        result = session.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount or 0


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class SqlUserStore(_SqlRepository, UserStore):

    def get(self, user_id: int) -> UserRecord | None:
        with self._session() as session:
            row = session.get(User, user_id)
            return _user_to_record(row) if row is not None else None

    def save(self, record: UserRecord) -> None:
        values = _user_values({n: getattr(record, n) for n in _USER_FIELDS if n != "id"})
        with self._session() as session:
            row = session.get(User, record.id)
            if row is None:
                row = User(id=record.id)
                session.add(row)
            for name, value in values.items():
                setattr(row, name, value)

    def update(self, user_id: int, **fields: Any) -> bool:
        if not fields:
            return False
        values = _user_values(dict(fields))
        with self._session() as session:
            return self._write(session, update(User).where(User.id == user_id).values(**values)) > 0

    def increment(self, user_id: int, **deltas: int) -> bool:
        if not deltas:
            return False
        values = {
            self.check_field(name, COUNTER_FIELDS): getattr(User, name) + amount
            for name, amount in deltas.items()
        }
        with self._session() as session:
            return self._write(session, update(User).where(User.id == user_id).values(values)) > 0

    def increment_all(self, user_ids: list[int], field_name: str, amount: int) -> int:
        self.check_field(field_name, COUNTER_FIELDS)
        if not user_ids:
            return 0
        column = getattr(User, field_name)
        with self._session() as session:
            return self._write(
                session,
                update(User).where(User.id.in_(user_ids)).values({field_name: column + amount}),
            )

    def reset_field(self, field_name: str) -> int:
        self.check_field(field_name, RESETTABLE_FIELDS)
        with self._session() as session:
            return self._write(session, update(User).values({field_name: 0}))

    def delete(self, user_id: int) -> bool:
        with self._session() as session:
            return self._write(session, delete(User).where(User.id == user_id)) > 0

    def delete_all(self) -> int:
        with self._session() as session:
            return self._write(session, delete(User))

    def find(
        self, *, order_by: str = "total_xp_earned", limit: int = 10, offset: int = 0,
    ) -> list[UserRecord]:
        column = getattr(User, self.check_field(order_by, RANKABLE_FIELDS))
        stmt = select(User).order_by(column.desc(), User.id.asc()).limit(limit).offset(offset)
        with self._session() as session:
            return [_user_to_record(row) for row in session.scalars(stmt)]

    def find_inactive(self, before: date) -> list[UserRecord]:
        stmt = select(User).where(User.last_active_date < before, User.xp > 0)
        with self._session() as session:
            return [_user_to_record(row) for row in session.scalars(stmt)]

    def rank(self, user_id: int, order_by: str = "total_xp_earned") -> int | None:
        column = getattr(User, self.check_field(order_by, RANKABLE_FIELDS))
        with self._session() as session:
            value = session.scalar(select(column).where(User.id == user_id))
            if value is None:
                return None
            ahead = session.scalar(
                select(func.count()).select_from(User).where(
                    (column > value) | ((column == value) & (User.id < user_id))
                )
            )
            return (ahead or 0) + 1

    def count(self) -> int:
        with self._session() as session:
            return session.scalar(select(func.count()).select_from(User)) or 0

    def total(self, field_name: str) -> int:
        column = getattr(User, self.check_field(field_name, COUNTER_FIELDS))
        with self._session() as session:
            return int(session.scalar(select(func.coalesce(func.sum(column), 0))) or 0)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
class SqlConfigStore(_SqlRepository, ConfigStore):

    def get(self, key: str, default: Any = None) -> Any:
        with self._session() as session:
            row = session.get(ConfigEntry, key)
            return json.loads(row.value_json) if row is not None else default

    def set(self, key: str, value: Any) -> None:
        with self._session() as session:
            row = session.get(ConfigEntry, key)
            if row is None:
                session.add(ConfigEntry(key=key, value_json=json.dumps(value)))
            else:
                row.value_json = json.dumps(value)

    def all(self) -> dict[str, Any]:
        with self._session() as session:
            rows = session.scalars(select(ConfigEntry).order_by(ConfigEntry.key))
            return {row.key: json.loads(row.value_json) for row in rows}


# ---------------------------------------------------------------------------
# Scalar catalogs
# ---------------------------------------------------------------------------
class SqlCatalog(_SqlRepository, KeyedCatalog):
    """Generic id → value catalog over a two-column table."""

    def __init__(self, engine: Engine, model: type, key_attr: str, value_attr: str) -> None:
        super().__init__(engine)
        self.model = model
        self.key_attr = key_attr
        self.value_attr = value_attr

    def get(self, key: int) -> Any | None:
        with self._session() as session:
            row = session.get(self.model, key)
            return getattr(row, self.value_attr) if row is not None else None

    def put(self, key: int, value: Any) -> None:
        with self._session() as session:
            row = session.get(self.model, key)
            if row is None:
                session.add(self.model(**{self.key_attr: key, self.value_attr: value}))
            else:
                setattr(row, self.value_attr, value)

    def remove(self, key: int) -> bool:
        column = getattr(self.model, self.key_attr)
        with self._session() as session:
            return self._write(session, delete(self.model).where(column == key)) > 0

    def all(self) -> dict[int, Any]:
        column = getattr(self.model, self.key_attr)
        with self._session() as session:
            rows = session.scalars(select(self.model).order_by(column))
            return {getattr(r, self.key_attr): getattr(r, self.value_attr) for r in rows}


class SqlChannelSet(_SqlRepository, IdSet):

    def contains(self, item_id: int) -> bool:
        with self._session() as session:
            return session.get(BlacklistedChannel, item_id) is not None

    def add(self, item_id: int) -> bool:
        with self._session() as session:
            if session.get(BlacklistedChannel, item_id) is not None:
                return False
            session.add(BlacklistedChannel(channel_id=item_id))
            return True

    def remove(self, item_id: int) -> bool:
        with self._session() as session:
            return self._write(
                session,
                delete(BlacklistedChannel).where(BlacklistedChannel.channel_id == item_id),
            ) > 0

    def all(self) -> list[int]:
        with self._session() as session:
            return list(session.scalars(
                select(BlacklistedChannel.channel_id).order_by(BlacklistedChannel.channel_id)
            ))


# ---------------------------------------------------------------------------
# Per-member extras
# ---------------------------------------------------------------------------
class SqlBirthdayStore(_SqlRepository, BirthdayStore):

    def get(self, user_id: int) -> Birthday | None:
        with self._session() as session:
            row = session.get(BirthdayRow, user_id)
            if row is None:
                return None
            return Birthday(user_id=row.user_id, month=row.month, day=row.day, year=row.year)

    def set(self, birthday: Birthday) -> None:
        with self._session() as session:
            session.merge(BirthdayRow(
                user_id=birthday.user_id,
                month=birthday.month,
                day=birthday.day,
                year=birthday.year,
            ))

    def remove(self, user_id: int) -> bool:
        with self._session() as session:
            return self._write(session, delete(BirthdayRow).where(BirthdayRow.user_id == user_id)) > 0


class SqlMentorStore(_SqlRepository, MentorStore):

    def add(self, mentorship: Mentorship) -> None:
        with self._session() as session:
            session.merge(MentorRow(
                mentor_id=mentorship.mentor_id,
                mentee_id=mentorship.mentee_id,
                bonus=mentorship.bonus,
            ))

    def remove(self, mentor_id: int, mentee_id: int) -> bool:
        with self._session() as session:
            return self._write(
                session,
                delete(MentorRow).where(
                    MentorRow.mentor_id == mentor_id, MentorRow.mentee_id == mentee_id,
                ),
            ) > 0

    def _select(self, *criteria) -> list[Mentorship]:
        stmt = select(MentorRow).where(*criteria).order_by(MentorRow.mentor_id, MentorRow.mentee_id)
        with self._session() as session:
            return [
                Mentorship(mentor_id=r.mentor_id, mentee_id=r.mentee_id, bonus=r.bonus)
                for r in session.scalars(stmt)
            ]

    def mentors_of(self, mentee_id: int) -> list[Mentorship]:
        return self._select(MentorRow.mentee_id == mentee_id)

    def mentees_of(self, mentor_id: int) -> list[Mentorship]:
        return self._select(MentorRow.mentor_id == mentor_id)


class SqlQuietHoursStore(_SqlRepository, QuietHoursStore):

    def get(self) -> QuietHours | None:
        with self._session() as session:
            row = session.get(QuietHoursRow, 1)
            if row is None:
                return None
            return QuietHours(row.start_hour, row.end_hour, row.multiplier)

    def set(self, window: QuietHours) -> None:
        with self._session() as session:
            session.merge(QuietHoursRow(
                id=1,
                start_hour=window.start_hour,
                end_hour=window.end_hour,
                multiplier=window.multiplier,
            ))

    def clear(self) -> None:
        with self._session() as session:
            self._write(session, delete(QuietHoursRow))


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------
class SqlEventStore(_SqlRepository, EventStore):

    def create(self, event: Event) -> Event:
        with self._session() as session:
            row = XpEvent(
                name=event.name,
                multiplier=event.multiplier,
                start_time=_utc(event.start_time),
                end_time=_utc(event.end_time),
                creator_id=event.creator_id,
                active=event.active,
                ended_at=_utc(event.ended_at),
            )
            session.add(row)
            session.flush()
            return _event_to_record(row)

    def get_active(self) -> Event | None:
        stmt = (
            select(XpEvent)
            .where(XpEvent.active.is_(True))
            .order_by(XpEvent.start_time.desc(), XpEvent.id.desc())
            .limit(1)
        )
        with self._session() as session:
            row = session.scalars(stmt).first()
            return _event_to_record(row) if row is not None else None

    def end(self, event_id: int, ended_at: datetime) -> bool:
        with self._session() as session:
            return self._write(
                session,
                update(XpEvent)
                .where(XpEvent.id == event_id, XpEvent.active.is_(True))
                .values(active=False, ended_at=_utc(ended_at)),
            ) > 0

    def due_for_expiry(self, now: datetime) -> list[Event]:
        stmt = (
            select(XpEvent)
            .where(XpEvent.active.is_(True), XpEvent.end_time <= _utc(now))
            .order_by(XpEvent.start_time)
        )
        with self._session() as session:
            return [_event_to_record(row) for row in session.scalars(stmt)]

    def history(self, limit: int = 10) -> list[Event]:
        stmt = select(XpEvent).order_by(XpEvent.start_time.desc(), XpEvent.id.desc()).limit(limit)
        with self._session() as session:
            return [_event_to_record(row) for row in session.scalars(stmt)]


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------
class SqlChallengeStore(_SqlRepository, ChallengeStore):

    def all(self) -> list[Challenge]:
        with self._session() as session:
            return [
                Challenge(
                    id=r.id,
                    name=r.name,
                    description=r.description,
                    metric=r.metric,
                    target=r.target,
                    xp_reward=r.xp_reward,
                )
                for r in session.scalars(select(ChallengeRow).order_by(ChallengeRow.id))
            ]

    def put(self, challenge: Challenge) -> None:
        with self._session() as session:
            session.merge(ChallengeRow(
                id=challenge.id,
                name=challenge.name,
                description=challenge.description,
                metric=challenge.metric,
                target=challenge.target,
                xp_reward=challenge.xp_reward,
            ))

    def progress(self, user_id: int, day: date) -> list[ChallengeProgress]:
        stmt = (
            select(ChallengeProgressRow)
            .where(ChallengeProgressRow.user_id == user_id, ChallengeProgressRow.day == day)
            .order_by(ChallengeProgressRow.challenge_id)
        )
        with self._session() as session:
            return [_progress_to_record(row) for row in session.scalars(stmt)]

    def increment_progress(
        self, user_id: int, challenge: Challenge, day: date, amount: int,
    ) -> ChallengeProgress:
        key = (
            ChallengeProgressRow.user_id == user_id,
            ChallengeProgressRow.challenge_id == challenge.id,
            ChallengeProgressRow.day == day,
        )
        with self._session() as session:
            row = session.get(ChallengeProgressRow, (user_id, challenge.id, day))
            if row is None:
                row = ChallengeProgressRow(
                    user_id=user_id, challenge_id=challenge.id, day=day,
                    progress=0, completed=False, claimed=False,
                )
                session.add(row)
                session.flush()
            self._write(
                session,
                update(ChallengeProgressRow).where(*key).values(
                    progress=ChallengeProgressRow.progress + amount
                ),
            )
            self._write(
                session,
                update(ChallengeProgressRow)
                .where(*key, ChallengeProgressRow.progress >= challenge.target)
                .values(completed=True),
            )
            session.refresh(row)
            return _progress_to_record(row)

    def claim(self, user_id: int, challenge_id: str, day: date) -> bool:
        with self._session() as session:
            return self._write(
                session,
                update(ChallengeProgressRow)
                .where(
                    ChallengeProgressRow.user_id == user_id,
                    ChallengeProgressRow.challenge_id == challenge_id,
                    ChallengeProgressRow.day == day,
                    ChallengeProgressRow.completed.is_(True),
                    ChallengeProgressRow.claimed.is_(False),
                )
                .values(claimed=True),
            ) == 1


# ---------------------------------------------------------------------------
# Scheduler state
# ---------------------------------------------------------------------------
class SqlSchedulerStateStore(_SqlRepository, SchedulerStateStore):

    def get_marker(self, job: str) -> date | None:
        with self._session() as session:
            row = session.get(SchedulerMarker, job)
            return row.last_run if row is not None else None

    def set_marker(self, job: str, day: date) -> None:
        with self._session() as session:
            session.merge(SchedulerMarker(job=job, last_run=day))


# ---------------------------------------------------------------------------
# Bundle
# ---------------------------------------------------------------------------
def build_sql_stores(engine: Engine) -> Stores:
    """Wire every SQL repository onto one engine."""
    return Stores(
        users=SqlUserStore(engine),
        config=SqlConfigStore(engine),
        rewards=SqlCatalog(engine, LevelReward, "level", "role_id"),
        milestones=SqlCatalog(engine, Milestone, "level", "role_id"),
        role_multipliers=SqlCatalog(engine, RoleMultiplier, "role_id", "multiplier"),
        voice_multipliers=SqlCatalog(engine, VoiceChannelMultiplier, "channel_id", "multiplier"),
        blacklist=SqlChannelSet(engine),
        birthdays=SqlBirthdayStore(engine),
        mentors=SqlMentorStore(engine),
        quiet_hours=SqlQuietHoursStore(engine),
        events=SqlEventStore(engine),
        challenges=SqlChallengeStore(engine),
        scheduler=SqlSchedulerStateStore(engine),
    )
