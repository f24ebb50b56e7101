"""
cadence.engine.activity — ActivitySignal and ActivitySource
===========================================================

The universal activity envelope.  Every Discord interaction (and every
admin- or system-originated grant) is normalized into an
:class:`ActivitySignal` before the award engine processes it.

Each :class:`ActivitySource` carries a :class:`SourcePolicy` deciding
which pipeline stages apply to it.
"""

from __future__ import annotations

import enum
import random
from dataclasses import dataclass, field
from datetime import datetime

from cadence.constants import (
    DEFAULT_ANNIVERSARY_XP,
    DEFAULT_INVITE_XP,
    DEFAULT_REACTION_XP,
    DEFAULT_WELCOME_BONUS,
    MESSAGE_XP_MAX,
    MESSAGE_XP_MIN,
    VOICE_MINUTES_PER_XP,
)
from cadence.stores.base import ConfigStore

__all__ = ["ActivitySignal", "ActivitySource", "SourcePolicy", "POLICIES", "base_xp"]


class ActivitySource(enum.StrEnum):
    """Everything that can produce an award."""
    MESSAGE = "message"
    VOICE = "voice"
    REACTION = "reaction"
    INVITE = "invite"
    WELCOME = "welcome"
    ANNIVERSARY = "anniversary"
    CHALLENGE = "challenge"
    MENTOR = "mentor"


@dataclass(frozen=True, slots=True)
class SourcePolicy:
    """Per-source switches for the award pipeline."""

    period_eligible: bool    # also feeds weekly/monthly/today counters
    capped: bool             # subject to the daily cap
    multiplied: bool         # goes through the multiplier stack
    user_driven: bool        # counts as activity (streak, anniversary, challenges)


POLICIES: dict[ActivitySource, SourcePolicy] = {
    ActivitySource.MESSAGE: SourcePolicy(True, True, True, True),
    ActivitySource.VOICE: SourcePolicy(True, True, True, True),
    ActivitySource.REACTION: SourcePolicy(True, True, True, True),
    ActivitySource.INVITE: SourcePolicy(True, False, True, False),
    ActivitySource.CHALLENGE: SourcePolicy(True, False, True, False),
    ActivitySource.WELCOME: SourcePolicy(False, False, True, False),
    ActivitySource.ANNIVERSARY: SourcePolicy(False, False, True, False),
    ActivitySource.MENTOR: SourcePolicy(False, False, False, False),
}


# ---------------------------------------------------------------------------
# ActivitySignal: the universal envelope
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ActivitySignal:
    """Normalized activity from any source.

    ``amount`` overrides the configured base for system grants (invites,
    welcome, anniversary, challenge rewards, mentor shares).  ``role_ids``
    is the member's current role set, used by the multiplier stack.
    """

    user_id: int
    display_name: str
    source: ActivitySource
    channel_id: int | None = None
    text: str = ""
    voice_minutes: int = 0
    amount: int | None = None
    role_ids: tuple[int, ...] = ()
    timestamp: datetime | None = None
    metadata: dict = field(default_factory=dict)

    @property
    def policy(self) -> SourcePolicy:
        return POLICIES[self.source]


# ---------------------------------------------------------------------------
# Base XP
# ---------------------------------------------------------------------------
def base_xp(signal: ActivitySignal, config: ConfigStore, rng: random.Random) -> int:
    """Stage 2 of the pipeline: the raw amount before any bonus."""
    source = signal.source
    if source == ActivitySource.MESSAGE:
        return rng.randint(MESSAGE_XP_MIN, MESSAGE_XP_MAX)
    if source == ActivitySource.VOICE:
        return signal.voice_minutes // VOICE_MINUTES_PER_XP
    if signal.amount is not None:
        return signal.amount
    if source == ActivitySource.REACTION:
        return config.get_int("reaction_xp", DEFAULT_REACTION_XP)
    if source == ActivitySource.INVITE:
        return config.get_int("invite_xp", DEFAULT_INVITE_XP)
    if source == ActivitySource.WELCOME:
        return config.get_int("welcome_bonus", DEFAULT_WELCOME_BONUS)
    if source == ActivitySource.ANNIVERSARY:
        return config.get_int("anniversary_xp", DEFAULT_ANNIVERSARY_XP)
    return 0
