"""
cadence.engine.multipliers — Multiplier Resolver
=================================================

Combines every active modifier into one scalar.  Factors are evaluated in
a fixed order so breakdowns read the same every time, but the result is a
plain product and therefore order-independent:

    server × weekend × event × VIP × Π(roles) × voice channel
           × quiet hours × birthday × welcome

Every factor is re-derived from live store state on each call.
"""

from __future__ import annotations

import calendar
import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from cadence.clock import Clock
from cadence.constants import (
    BIRTHDAY_MULTIPLIER,
    DEFAULT_WELCOME_DAYS,
    VIP_MULTIPLIER,
    WEEKEND_MULTIPLIER,
    WELCOME_MULTIPLIER,
)
from cadence.stores.base import Birthday, Stores, UserRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Factor:
    name: str
    value: float


def compose(factors: Iterable[Factor | float]) -> float:
    """Multiply factors together."""
    return math.prod(f.value if isinstance(f, Factor) else f for f in factors)


def is_birthday(birthday: Birthday, moment: datetime) -> bool:
    """Month/day match; Feb 29 birthdays are celebrated on Feb 28 in common years."""
    if (birthday.month, birthday.day) == (moment.month, moment.day):
        return True
    return (
        (birthday.month, birthday.day) == (2, 29)
        and (moment.month, moment.day) == (2, 28)
        and not calendar.isleap(moment.year)
    )


class MultiplierResolver:
    """Resolves the multiplier stack for one member at one moment."""

    def __init__(self, stores: Stores, clock: Clock) -> None:
        self.stores = stores
        self.clock = clock

    def breakdown(
        self,
        user_id: int,
        role_ids: Iterable[int] = (),
        channel_id: int | None = None,
        *,
        user: UserRecord | None = None,
        now: datetime | None = None,
    ) -> list[Factor]:
        """Every factor in evaluation order (1.0 where inactive)."""
        now = now or self.clock.now()
        local = self.clock.local(now)
        if user is None:
            user = self.stores.users.get(user_id)

        factors = [Factor("server", self.stores.config.get_float("multiplier", 1.0))]

        factors.append(Factor("weekend", WEEKEND_MULTIPLIER if local.weekday() >= 5 else 1.0))

        event = self.stores.events.get_active()
        factors.append(
            Factor("event", event.multiplier if event and event.is_running(now) else 1.0)
        )

        vip = user is not None and user.vip_until is not None and user.vip_until > now
        factors.append(Factor("vip", VIP_MULTIPLIER if vip else 1.0))

        role_table = self.stores.role_multipliers.all() if role_ids else {}
        factors.append(Factor("roles", compose(
            float(role_table[r]) for r in role_ids if r in role_table
        )))

        channel = (
            self.stores.voice_multipliers.get(channel_id) if channel_id is not None else None
        )
        factors.append(Factor("voice_channel", float(channel) if channel is not None else 1.0))

        window = self.stores.quiet_hours.get()
        factors.append(Factor(
            "quiet_hours",
            window.multiplier if window is not None and window.contains(local.hour) else 1.0,
        ))

        birthday = self.stores.birthdays.get(user_id)
        factors.append(Factor(
            "birthday",
            BIRTHDAY_MULTIPLIER if birthday is not None and is_birthday(birthday, local) else 1.0,
        ))

        welcome = False
        if user is not None and user.joined_at is not None:
            days = self.stores.config.get_int("welcome_days", DEFAULT_WELCOME_DAYS)
            welcome = now - user.joined_at < timedelta(days=days)
        factors.append(Factor("welcome", WELCOME_MULTIPLIER if welcome else 1.0))

        return factors

    def resolve(
        self,
        user_id: int,
        role_ids: Iterable[int] = (),
        channel_id: int | None = None,
        *,
        user: UserRecord | None = None,
        now: datetime | None = None,
    ) -> float:
        """The product of :meth:`breakdown`."""
        factors = self.breakdown(user_id, tuple(role_ids), channel_id, user=user, now=now)
        value = compose(factors)
        logger.debug(
            "Multiplier for %s = %.3f (%s)",
            user_id, value, ", ".join(f"{f.name}={f.value:g}" for f in factors if f.value != 1.0),
        )
        return value
