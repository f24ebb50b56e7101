"""
cadence.engine.streak — Daily continuity tracker
=================================================

Streak state lives on the user record (``streak`` + ``last_active_date``).
Transitions, evaluated once per user-driven activity:

    no record            → count = 1
    last == today        → unchanged (idempotent within a day)
    last == yesterday    → count + 1
    otherwise (gap)      → count = 1

``last_active_date`` is always set to *today* afterwards.
"""

from __future__ import annotations

from datetime import date, timedelta

from cadence.constants import STREAK_TIERS


def advance_streak(count: int, last_date: date | None, today: date) -> tuple[int, date]:
    """Return the ``(count, last_date)`` pair after activity on *today*."""
    if last_date is None or count <= 0:
        return 1, today
    if last_date == today:
        return count, today
    if last_date == today - timedelta(days=1):
        return count + 1, today
    return 1, today


def streak_bonus(count: int) -> int:
    """Flat XP bonus: +2 at 7 days, +3 at 14, +5 at 30."""
    for min_days, bonus in STREAK_TIERS:
        if count >= min_days:
            return bonus
    return 0
