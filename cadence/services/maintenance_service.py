"""
cadence.services.maintenance_service — Time-Driven Jobs
========================================================

Jobs that run independently of the award pipeline, calling store
primitives directly:

- **Daily reset**   — zero ``today_xp`` at the local day boundary.
- **Weekly reset**  — zero ``weekly_xp`` on Monday.
- **Monthly reset** — zero ``monthly_xp`` (and ``today_xp``) on the 1st.
- **Decay**         — once a day, ``xp = floor(xp × 0.95)`` for members
  inactive for more than 30 days.  Level and lifetime XP are untouched.
- **Event expiry**  — end events past their end time.
- **Voice minutes** — one minute per tick for connected members, realized
  as an award on disconnect.

Reset and decay jobs are guarded by a last-processed date kept in the
Scheduler State keyspace, so a restart never double-fires or skips a
boundary.  A job that was missed while the bot was down catches up on
the next tick.  On a fresh deployment (no marker) the first tick only
records the marker unless it falls on the boundary day itself.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable
from datetime import date, timedelta

from cadence.clock import Clock
from cadence.constants import DECAY_FACTOR, DECAY_INACTIVE_DAYS
from cadence.engine.activity import ActivitySignal, ActivitySource
from cadence.engine.award import AwardEngine, AwardOutcome
from cadence.engine.event_lifecycle import EventManager
from cadence.stores.base import Event, Stores, UserRecord

logger = logging.getLogger(__name__)

JOB_DAILY = "daily_reset"
JOB_WEEKLY = "weekly_reset"
JOB_MONTHLY = "monthly_reset"
JOB_DECAY = "decay"


# ---------------------------------------------------------------------------
# Marker-guarded period resets
# ---------------------------------------------------------------------------
def _period_due(stores: Stores, job: str, today: date, period_start: date) -> bool:
    """True when *job* has not run since *period_start*.

    Without a marker the job only fires on the boundary day itself;
    otherwise the marker is initialised and nothing is reset.
    """
    marker = stores.scheduler.get_marker(job)
    if marker is None:
        if today == period_start:
            return True
        stores.scheduler.set_marker(job, today)
        return False
    return marker < period_start


def run_daily_reset(stores: Stores, today: date) -> int | None:
    """Zero ``today_xp``.  Returns rows touched, or None when not due."""
    marker = stores.scheduler.get_marker(JOB_DAILY)
    if marker is not None and marker >= today:
        return None
    touched = stores.users.reset_field("today_xp")
    stores.scheduler.set_marker(JOB_DAILY, today)
    logger.info("Daily reset: today_xp zeroed for %d users", touched)
    return touched


def run_weekly_reset(stores: Stores, today: date) -> int | None:
    week_start = today - timedelta(days=today.weekday())
    if not _period_due(stores, JOB_WEEKLY, today, week_start):
        return None
    touched = stores.users.reset_field("weekly_xp")
    stores.scheduler.set_marker(JOB_WEEKLY, today)
    logger.info("Weekly reset: weekly_xp zeroed for %d users", touched)
    return touched


def run_monthly_reset(stores: Stores, today: date) -> int | None:
    if not _period_due(stores, JOB_MONTHLY, today, today.replace(day=1)):
        return None
    touched = stores.users.reset_field("monthly_xp")
    stores.users.reset_field("today_xp")
    stores.scheduler.set_marker(JOB_MONTHLY, today)
    logger.info("Monthly reset: monthly_xp zeroed for %d users", touched)
    return touched


# ---------------------------------------------------------------------------
# Inactivity decay
# ---------------------------------------------------------------------------
def decayed_xp(xp: int) -> int:
    return math.floor(xp * DECAY_FACTOR)


def run_decay(stores: Stores, today: date) -> int | None:
    """Shrink xp of long-inactive members once per day.

    Members with no recorded activity date are left alone.
    """
    marker = stores.scheduler.get_marker(JOB_DECAY)
    if marker is not None and marker >= today:
        return None

    cutoff = today - timedelta(days=DECAY_INACTIVE_DAYS)
    decayed = 0
    for user in stores.users.find_inactive(cutoff):
        if stores.users.update(user.id, xp=decayed_xp(user.xp)):
            decayed += 1
    stores.scheduler.set_marker(JOB_DECAY, today)
    logger.info("Decay: %d inactive users decayed (cutoff %s)", decayed, cutoff)
    return decayed


# ---------------------------------------------------------------------------
# Combined daily tick
# ---------------------------------------------------------------------------
DAILY_JOBS: list[tuple[str, Callable[[Stores, date], int | None]]] = [
    (JOB_DAILY, run_daily_reset),
    (JOB_WEEKLY, run_weekly_reset),
    (JOB_MONTHLY, run_monthly_reset),
    (JOB_DECAY, run_decay),
]


def run_due_jobs(stores: Stores, clock: Clock) -> dict[str, int | None]:
    """Run every calendar job that is due.  One failing job never stops the rest."""
    today = clock.today()
    summary: dict[str, int | None] = {}
    for name, job in DAILY_JOBS:
        try:
            summary[name] = job(stores, today)
        except Exception:
            logger.exception("Maintenance job %s failed", name, extra={"job": name})
            summary[name] = None
    return summary


def run_event_expiry(stores: Stores, clock: Clock) -> list[Event]:
    """End overdue events; returns the ones this call ended."""
    return EventManager(stores, clock).expire_due()


# ---------------------------------------------------------------------------
# Voice presence
# ---------------------------------------------------------------------------
def start_voice_session(stores: Stores, user_id: int, display_name: str) -> None:
    """Reset the minute counter on connect, creating the member if needed."""
    if stores.users.update(user_id, voice_time=0):
        return
    stores.users.save(UserRecord(id=user_id, display_name=display_name))


def tick_voice(stores: Stores, user_ids: Iterable[int]) -> int:
    """Add one minute for every connected member."""
    return stores.users.increment_all(list(user_ids), "voice_time", 1)


def end_voice_session(
    engine: AwardEngine,
    user_id: int,
    display_name: str,
    channel_id: int | None,
    role_ids: tuple[int, ...] = (),
) -> AwardOutcome | None:
    """Turn accumulated minutes into a voice award on disconnect.

    The paid minutes are taken off the counter afterwards, so a member
    whose connect was never seen is not paid for them twice.  Ticks that
    land between the read and the decrement are kept.
    """
    user = engine.stores.users.get(user_id)
    if user is None or user.voice_time <= 0:
        return None
    minutes = user.voice_time
    outcome = engine.award(ActivitySignal(
        user_id=user_id,
        display_name=display_name,
        source=ActivitySource.VOICE,
        channel_id=channel_id,
        voice_minutes=minutes,
        role_ids=role_ids,
    ))
    engine.stores.users.increment(user_id, voice_time=-minutes)
    return outcome
