"""
cadence.engine.event_lifecycle — XP event state machine
========================================================

    NoActiveEvent ──create──▶ ActiveEvent ──end / expire──▶ Ended

At most one active, unexpired event exists.  ``end`` and the periodic
``expire_due`` share one conditional transition in the store, so an event
is only ever ended (and announced) once even if an admin and the expiry
loop race.

An event that is still flagged active but already past its end time does
not block ``create``: it is ended on the spot first.  Callers that
announce endings run ``expire_due`` before ``create`` to see it.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta

from cadence.clock import Clock
from cadence.constants import DEFAULT_EVENT_MULTIPLIER
from cadence.errors import InvalidEventCreate
from cadence.stores.base import Event, Stores

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100
MIN_HOURS, MAX_HOURS = 1, 168
MIN_MULTIPLIER, MAX_MULTIPLIER = 1.1, 10.0


class EventManager:
    """Create, end, and expire XP events."""

    def __init__(self, stores: Stores, clock: Clock) -> None:
        self.stores = stores
        self.clock = clock

    @staticmethod
    def validate(name: str, hours: int, multiplier: float) -> str:
        """Check event parameters; returns the stripped name or raises ValueError."""
        name = name.strip()
        if not name or len(name) > MAX_NAME_LENGTH:
            raise ValueError(f"Event name must be 1-{MAX_NAME_LENGTH} characters")
        if not MIN_HOURS <= hours <= MAX_HOURS:
            raise ValueError(f"Duration must be between {MIN_HOURS} and {MAX_HOURS} hours")
        if not MIN_MULTIPLIER <= multiplier <= MAX_MULTIPLIER:
            raise ValueError(
                f"Multiplier must be between {MIN_MULTIPLIER} and {MAX_MULTIPLIER}"
            )
        return name

    def create(
        self,
        name: str,
        hours: int,
        creator_id: int,
        multiplier: float = DEFAULT_EVENT_MULTIPLIER,
        *,
        now: datetime | None = None,
    ) -> Event:
        """Start a new event.

        Raises
        ------
        ValueError
            Out-of-range name, duration or multiplier.
        InvalidEventCreate
            Another event is still running.
        """
        name = self.validate(name, hours, multiplier)
        now = now or self.clock.now()
        current = self.stores.events.get_active()
        if current is not None:
            if current.is_running(now):
                raise InvalidEventCreate(
                    f"The event **{current.name}** is still running. End it first.",
                    active_name=current.name,
                )
            self._transition(current, now)

        event = self.stores.events.create(Event(
            name=name,
            multiplier=multiplier,
            start_time=now,
            end_time=now + timedelta(hours=hours),
            creator_id=creator_id,
        ))
        logger.info(
            "Event %r started by %s: ×%g for %dh", event.name, creator_id, multiplier, hours,
        )
        return event

    def end(self, *, now: datetime | None = None) -> Event | None:
        """End the active event, if any.  Returns it in its ended state."""
        current = self.stores.events.get_active()
        if current is None:
            return None
        return self._transition(current, now or self.clock.now())

    def expire_due(self, *, now: datetime | None = None) -> list[Event]:
        """End every active event past its end time."""
        now = now or self.clock.now()
        expired = []
        for event in self.stores.events.due_for_expiry(now):
            ended = self._transition(event, now)
            if ended is not None:
                expired.append(ended)
        return expired

    def running(self, *, now: datetime | None = None) -> Event | None:
        """The active, unexpired event."""
        current = self.stores.events.get_active()
        if current is not None and current.is_running(now or self.clock.now()):
            return current
        return None

    def history(self, limit: int = 10) -> list[Event]:
        return self.stores.events.history(limit)

    def _transition(self, event: Event, now: datetime) -> Event | None:
        if not self.stores.events.end(event.id, now):
            return None
        logger.info("Event %r ended", event.name)
        return replace(event, active=False, ended_at=now)
