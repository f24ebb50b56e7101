"""
cadence.stores.document — Document-Oriented Backend
====================================================

JSON documents grouped into named collections, held in memory and written
back to one file after every mutating call.  Writes go to a temp file that
is then ``os.replace``-d over the original, so a crash never leaves a torn
file behind.

All access is serialized behind a single re-entrant lock, which makes the
read-modify-write inside :meth:`DocumentUserStore.increment` atomic
relative to every other store call.  A failed write restores the
collections the transaction named from a snapshot taken at its start.

Every write still serializes the whole file, so cost grows with the
member count.  The backend suits small and medium communities; large
ones should use the SQL backend.

``path=None`` keeps everything in memory (tests, throwaway runs).
"""

from __future__ import annotations

import copy
import json
import logging
import os
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, fields
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

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

COLLECTIONS = (
    "users",
    "config",
    "rewards",
    "milestones",
    "role_multipliers",
    "voice_multipliers",
    "blacklist",
    "birthdays",
    "mentors",
    "quiet_hours",
    "events",
    "challenges",
    "challenge_progress",
    "scheduler",
    "sequences",
)

_USER_FIELDS = tuple(f.name for f in fields(UserRecord))
_USER_DATE_FIELDS = frozenset({
    "today_date", "last_daily_bonus_date", "last_active_date", "channel_day",
})
_USER_DATETIME_FIELDS = frozenset({"last_message_time", "vip_until", "joined_at"})


# ---------------------------------------------------------------------------
# Encoding helpers
# ---------------------------------------------------------------------------
def _encode(value: Any) -> Any:
    # datetime first: it is a date subclass
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


def _decode_datetime(raw: str | None) -> datetime | None:
    return datetime.fromisoformat(raw) if raw else None


def _decode_date(raw: str | None) -> date | None:
    return date.fromisoformat(raw) if raw else None


def _user_doc(record: UserRecord) -> dict[str, Any]:
    doc = {name: _encode(getattr(record, name)) for name in _USER_FIELDS}
    doc["channels_today"] = list(record.channels_today)
    return doc


def _user_from_doc(doc: dict[str, Any]) -> UserRecord:
    data = {}
    for name in _USER_FIELDS:
        value = doc.get(name)
        if name in _USER_DATE_FIELDS:
            value = _decode_date(value)
        elif name in _USER_DATETIME_FIELDS:
            value = _decode_datetime(value)
        if value is not None:
            data[name] = value
    data["channels_today"] = list(doc.get("channels_today") or [])
    return UserRecord(**data)


def _event_doc(event: Event) -> dict[str, Any]:
    return {k: _encode(v) for k, v in asdict(event).items()}


def _event_from_doc(doc: dict[str, Any]) -> Event:
    return Event(
        id=doc["id"],
        name=doc["name"],
        multiplier=doc["multiplier"],
        start_time=_decode_datetime(doc["start_time"]),
        end_time=_decode_datetime(doc["end_time"]),
        creator_id=doc["creator_id"],
        active=doc["active"],
        ended_at=_decode_datetime(doc.get("ended_at")),
    )


def _progress_from_doc(doc: dict[str, Any]) -> ChallengeProgress:
    return ChallengeProgress(
        user_id=doc["user_id"],
        challenge_id=doc["challenge_id"],
        day=date.fromisoformat(doc["day"]),
        progress=doc["progress"],
        completed=doc["completed"],
        claimed=doc["claimed"],
    )


# ---------------------------------------------------------------------------
# Database file
# ---------------------------------------------------------------------------
class DocumentDatabase:
    """In-memory collections mirrored to a JSON file."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path else None
        self._lock = threading.RLock()
        self._data = self._load()

    def _load(self) -> dict[str, dict]:
        data: dict[str, dict] = {}
        if self.path is not None and self.path.exists():
            try:
                with open(self.path, encoding="utf-8") as fh:
                    data = json.load(fh)
            except (OSError, ValueError) as exc:
                raise TransientStoreError(f"Cannot read {self.path}: {exc}") from exc
            logger.info("Document store loaded ← %s", self.path)
        for name in COLLECTIONS:
            data.setdefault(name, {})
        return data

    def _flush(self) -> None:
        if self.path is None:
            return
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh)
            os.replace(tmp, self.path)
        except (OSError, TypeError, ValueError) as exc:
            raise TransientStoreError(f"Cannot write {self.path}: {exc}") from exc

    @contextmanager
    def read(self) -> Iterator[dict[str, dict]]:
        with self._lock:
            yield self._data

    @contextmanager
    def transaction(self, *collections: str) -> Iterator[dict[str, dict]]:
        """Mutate *collections*; persisted on success, rolled back on error.

        Only the named collections are snapshotted, so a transaction must
        name every collection it writes.  Naming none snapshots them all.
        """
        with self._lock:
            names = collections or tuple(self._data)
            snapshot = {name: copy.deepcopy(self._data[name]) for name in names}
            try:
                yield self._data
                self._flush()
            except Exception:
                self._data.update(snapshot)
                raise

    def next_id(self, data: dict[str, dict], sequence: str) -> int:
        value = data["sequences"].get(sequence, 0) + 1
        data["sequences"][sequence] = value
        return value


class _DocumentRepository:
    def __init__(self, db: DocumentDatabase) -> None:
        self.db = db


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class DocumentUserStore(_DocumentRepository, UserStore):

    def _records(self) -> list[UserRecord]:
        with self.db.read() as data:
            return [_user_from_doc(doc) for doc in data["users"].values()]

    def get(self, user_id: int) -> UserRecord | None:
        with self.db.read() as data:
            doc = data["users"].get(str(user_id))
            return _user_from_doc(doc) if doc is not None else None

    def save(self, record: UserRecord) -> None:
        with self.db.transaction("users") as data:
            data["users"][str(record.id)] = _user_doc(record)

    def update(self, user_id: int, **fields: Any) -> bool:
        for name in fields:
            if name not in _USER_FIELDS or name == "id":
                raise ValueError(f"Unknown user field {name!r}")
        with self.db.transaction("users") as data:
            doc = data["users"].get(str(user_id))
            if doc is None:
                return False
            for name, value in fields.items():
                doc[name] = list(value) if name == "channels_today" else _encode(value)
            return bool(fields)

    def increment(self, user_id: int, **deltas: int) -> bool:
        for name in deltas:
            self.check_field(name, COUNTER_FIELDS)
        with self.db.transaction("users") as data:
            doc = data["users"].get(str(user_id))
            if doc is None:
                return False
            for name, amount in deltas.items():
                doc[name] = doc.get(name, 0) + amount
            return bool(deltas)

    def increment_all(self, user_ids: list[int], field_name: str, amount: int) -> int:
        self.check_field(field_name, COUNTER_FIELDS)
        touched = 0
        with self.db.transaction("users") as data:
            for user_id in user_ids:
                doc = data["users"].get(str(user_id))
                if doc is not None:
                    doc[field_name] = doc.get(field_name, 0) + amount
                    touched += 1
        return touched

    def reset_field(self, field_name: str) -> int:
        self.check_field(field_name, RESETTABLE_FIELDS)
        with self.db.transaction("users") as data:
            for doc in data["users"].values():
                doc[field_name] = 0
            return len(data["users"])

    def delete(self, user_id: int) -> bool:
        with self.db.transaction("users") as data:
            return data["users"].pop(str(user_id), None) is not None

    def delete_all(self) -> int:
        with self.db.transaction("users") as data:
            removed = len(data["users"])
            data["users"].clear()
            return removed

    def _sorted(self, order_by: str) -> list[UserRecord]:
        self.check_field(order_by, RANKABLE_FIELDS)
        return sorted(self._records(), key=lambda r: (-getattr(r, order_by), r.id))

    def find(
        self, *, order_by: str = "total_xp_earned", limit: int = 10, offset: int = 0,
    ) -> list[UserRecord]:
        return self._sorted(order_by)[offset:offset + limit]

    def find_inactive(self, before: date) -> list[UserRecord]:
        return [
            r for r in self._records()
            if r.xp > 0 and r.last_active_date is not None and r.last_active_date < before
        ]

    def rank(self, user_id: int, order_by: str = "total_xp_earned") -> int | None:
        for position, record in enumerate(self._sorted(order_by), start=1):
            if record.id == user_id:
                return position
        return None

    def count(self) -> int:
        with self.db.read() as data:
            return len(data["users"])

    def total(self, field_name: str) -> int:
        self.check_field(field_name, COUNTER_FIELDS)
        with self.db.read() as data:
            return sum(doc.get(field_name, 0) for doc in data["users"].values())


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
class DocumentConfigStore(_DocumentRepository, ConfigStore):

    def get(self, key: str, default: Any = None) -> Any:
        with self.db.read() as data:
            return copy.deepcopy(data["config"].get(key, default))

    def set(self, key: str, value: Any) -> None:
        with self.db.transaction("config") as data:
            data["config"][key] = value

    def all(self) -> dict[str, Any]:
        with self.db.read() as data:
            return copy.deepcopy(dict(sorted(data["config"].items())))


# ---------------------------------------------------------------------------
# Scalar catalogs
# ---------------------------------------------------------------------------
class DocumentCatalog(_DocumentRepository, KeyedCatalog):

    def __init__(self, db: DocumentDatabase, collection: str) -> None:
        super().__init__(db)
        self.collection = collection

    def get(self, key: int) -> Any | None:
        with self.db.read() as data:
            return data[self.collection].get(str(key))

    def put(self, key: int, value: Any) -> None:
        with self.db.transaction(self.collection) as data:
            data[self.collection][str(key)] = value

    def remove(self, key: int) -> bool:
        with self.db.transaction(self.collection) as data:
            return data[self.collection].pop(str(key), None) is not None

    def all(self) -> dict[int, Any]:
        with self.db.read() as data:
            return {int(k): v for k, v in sorted(data[self.collection].items(), key=lambda kv: int(kv[0]))}


class DocumentChannelSet(_DocumentRepository, IdSet):

    def contains(self, item_id: int) -> bool:
        with self.db.read() as data:
            return str(item_id) in data["blacklist"]

    def add(self, item_id: int) -> bool:
        with self.db.transaction("blacklist") as data:
            if str(item_id) in data["blacklist"]:
                return False
            data["blacklist"][str(item_id)] = True
            return True

    def remove(self, item_id: int) -> bool:
        with self.db.transaction("blacklist") as data:
            return data["blacklist"].pop(str(item_id), None) is not None

    def all(self) -> list[int]:
        with self.db.read() as data:
            return sorted(int(k) for k in data["blacklist"])


# ---------------------------------------------------------------------------
# Per-member extras
# ---------------------------------------------------------------------------
class DocumentBirthdayStore(_DocumentRepository, BirthdayStore):

    def get(self, user_id: int) -> Birthday | None:
        with self.db.read() as data:
            doc = data["birthdays"].get(str(user_id))
            return Birthday(**doc) if doc is not None else None

    def set(self, birthday: Birthday) -> None:
        with self.db.transaction("birthdays") as data:
            data["birthdays"][str(birthday.user_id)] = asdict(birthday)

    def remove(self, user_id: int) -> bool:
        with self.db.transaction("birthdays") as data:
            return data["birthdays"].pop(str(user_id), None) is not None


class DocumentMentorStore(_DocumentRepository, MentorStore):

    @staticmethod
    def _key(mentor_id: int, mentee_id: int) -> str:
        return f"{mentor_id}:{mentee_id}"

    def add(self, mentorship: Mentorship) -> None:
        with self.db.transaction("mentors") as data:
            data["mentors"][self._key(mentorship.mentor_id, mentorship.mentee_id)] = asdict(mentorship)

    def remove(self, mentor_id: int, mentee_id: int) -> bool:
        with self.db.transaction("mentors") as data:
            return data["mentors"].pop(self._key(mentor_id, mentee_id), None) is not None

    def _where(self, attr: str, value: int) -> list[Mentorship]:
        with self.db.read() as data:
            matches = [Mentorship(**doc) for doc in data["mentors"].values() if doc[attr] == value]
        return sorted(matches, key=lambda m: (m.mentor_id, m.mentee_id))

    def mentors_of(self, mentee_id: int) -> list[Mentorship]:
        return self._where("mentee_id", mentee_id)

    def mentees_of(self, mentor_id: int) -> list[Mentorship]:
        return self._where("mentor_id", mentor_id)


class DocumentQuietHoursStore(_DocumentRepository, QuietHoursStore):

    def get(self) -> QuietHours | None:
        with self.db.read() as data:
            doc = data["quiet_hours"].get("window")
            return QuietHours(**doc) if doc is not None else None

    def set(self, window: QuietHours) -> None:
        with self.db.transaction("quiet_hours") as data:
            data["quiet_hours"]["window"] = asdict(window)

    def clear(self) -> None:
        with self.db.transaction("quiet_hours") as data:
            data["quiet_hours"].clear()


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------
class DocumentEventStore(_DocumentRepository, EventStore):

    def _events(self) -> list[Event]:
        with self.db.read() as data:
            events = [_event_from_doc(doc) for doc in data["events"].values()]
        return sorted(events, key=lambda e: (e.start_time, e.id))

    def create(self, event: Event) -> Event:
        with self.db.transaction("sequences", "events") as data:
            event_id = self.db.next_id(data, "events")
            stored = Event(**{**asdict(event), "id": event_id})
            data["events"][str(event_id)] = _event_doc(stored)
        return _event_from_doc(_event_doc(stored))

    def get_active(self) -> Event | None:
        active = [e for e in self._events() if e.active]
        return active[-1] if active else None

    def end(self, event_id: int, ended_at: datetime) -> bool:
        with self.db.transaction("events") as data:
            doc = data["events"].get(str(event_id))
            if doc is None or not doc["active"]:
                return False
            doc["active"] = False
            doc["ended_at"] = _encode(ended_at)
            return True

    def due_for_expiry(self, now: datetime) -> list[Event]:
        return [e for e in self._events() if e.active and e.end_time <= now]

    def history(self, limit: int = 10) -> list[Event]:
        return list(reversed(self._events()))[:limit]


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------
class DocumentChallengeStore(_DocumentRepository, ChallengeStore):

    @staticmethod
    def _key(user_id: int, challenge_id: str, day: date) -> str:
        return f"{user_id}:{challenge_id}:{day.isoformat()}"

    def all(self) -> list[Challenge]:
        with self.db.read() as data:
            return [Challenge(**doc) for _, doc in sorted(data["challenges"].items())]

    def put(self, challenge: Challenge) -> None:
        with self.db.transaction("challenges") as data:
            data["challenges"][challenge.id] = asdict(challenge)

    def progress(self, user_id: int, day: date) -> list[ChallengeProgress]:
        with self.db.read() as data:
            rows = [
                _progress_from_doc(doc) for doc in data["challenge_progress"].values()
                if doc["user_id"] == user_id and doc["day"] == day.isoformat()
            ]
        return sorted(rows, key=lambda p: p.challenge_id)

    def increment_progress(
        self, user_id: int, challenge: Challenge, day: date, amount: int,
    ) -> ChallengeProgress:
        key = self._key(user_id, challenge.id, day)
        with self.db.transaction("challenge_progress") as data:
            doc = data["challenge_progress"].setdefault(key, {
                "user_id": user_id,
                "challenge_id": challenge.id,
                "day": day.isoformat(),
                "progress": 0,
                "completed": False,
                "claimed": False,
            })
            doc["progress"] += amount
            if doc["progress"] >= challenge.target:
                doc["completed"] = True
            return _progress_from_doc(doc)

    def claim(self, user_id: int, challenge_id: str, day: date) -> bool:
        with self.db.transaction("challenge_progress") as data:
            doc = data["challenge_progress"].get(self._key(user_id, challenge_id, day))
            if doc is None or not doc["completed"] or doc["claimed"]:
                return False
            doc["claimed"] = True
            return True


# ---------------------------------------------------------------------------
# Scheduler state
# ---------------------------------------------------------------------------
class DocumentSchedulerStateStore(_DocumentRepository, SchedulerStateStore):

    def get_marker(self, job: str) -> date | None:
        with self.db.read() as data:
            return _decode_date(data["scheduler"].get(job))

    def set_marker(self, job: str, day: date) -> None:
        with self.db.transaction("scheduler") as data:
            data["scheduler"][job] = day.isoformat()


# ---------------------------------------------------------------------------
# Bundle
# ---------------------------------------------------------------------------
def build_document_stores(path: str | Path | None = None) -> Stores:
    """Wire every document repository onto one database file."""
    db = DocumentDatabase(path)
    return Stores(
        users=DocumentUserStore(db),
        config=DocumentConfigStore(db),
        rewards=DocumentCatalog(db, "rewards"),
        milestones=DocumentCatalog(db, "milestones"),
        role_multipliers=DocumentCatalog(db, "role_multipliers"),
        voice_multipliers=DocumentCatalog(db, "voice_multipliers"),
        blacklist=DocumentChannelSet(db),
        birthdays=DocumentBirthdayStore(db),
        mentors=DocumentMentorStore(db),
        quiet_hours=DocumentQuietHoursStore(db),
        events=DocumentEventStore(db),
        challenges=DocumentChallengeStore(db),
        scheduler=DocumentSchedulerStateStore(db),
    )
