"""
cadence.clock — Canonical Deployment Clock
===========================================

Every day/week/month boundary, the weekend factor, quiet hours and
birthdays are judged against one clock per deployment, configured by the
``timezone`` key in ``config.yaml`` (IANA name, default ``UTC``).

Timestamps are persisted in UTC; calendar dates are local to this clock.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo


class Clock:
    """Wall clock bound to the deployment timezone."""

    def __init__(self, timezone: str = "UTC") -> None:
        self.tz = ZoneInfo(timezone)

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()

    def local(self, moment: datetime) -> datetime:
        """Convert an aware (or naive-UTC) timestamp to local time."""
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=UTC)
        return moment.astimezone(self.tz)
