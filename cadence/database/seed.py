"""
cadence.database.seed — Default Settings Seeder
================================================

Baseline Config Store keys and the default daily challenge catalog,
written on first startup for either storage backend.

Idempotent — only inserts keys that don't already exist.  Values edited
later with admin commands are never overwritten.
"""

from __future__ import annotations

import logging

from cadence.constants import (
    DEFAULT_ANNIVERSARY_XP,
    DEFAULT_BANNER,
    DEFAULT_COOLDOWN,
    DEFAULT_INVITE_XP,
    DEFAULT_LEVEL_UP_MESSAGE,
    DEFAULT_REACTION_XP,
    DEFAULT_WELCOME_BONUS,
    DEFAULT_WELCOME_DAYS,
)
from cadence.stores.base import Challenge, Stores

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Default settings catalogue
# ---------------------------------------------------------------------------
DEFAULT_SETTINGS: dict[str, tuple[object, str]] = {
    "cooldown": (DEFAULT_COOLDOWN, "Min seconds between XP-earning messages"),
    "multiplier": (1.0, "Server-wide XP multiplier"),
    "daily_xp_cap": (0, "Max XP per member per day (0 = no cap)"),
    "daily_bonus": (0, "Flat XP for the first message of the day"),
    "reaction_xp": (DEFAULT_REACTION_XP, "XP for receiving a reaction"),
    "invite_xp": (DEFAULT_INVITE_XP, "XP per recorded invite"),
    "welcome_bonus": (DEFAULT_WELCOME_BONUS, "XP awarded on joining"),
    "welcome_days": (DEFAULT_WELCOME_DAYS, "Days after joining with the welcome multiplier"),
    "anniversary_xp": (DEFAULT_ANNIVERSARY_XP, "XP on each join anniversary"),
    "level_up_message": (DEFAULT_LEVEL_UP_MESSAGE, "Template with {user} {level} {mention}"),
    "banner": (DEFAULT_BANNER, "Image shown on level-up announcements"),
}
"""Each entry maps ``key`` → ``(default_value, description)``."""

DEFAULT_CHALLENGES: list[Challenge] = [
    Challenge(
        id="chatter",
        name="Chatterbox",
        description="Send 20 messages today",
        metric="messages",
        target=20,
        xp_reward=50,
    ),
    Challenge(
        id="voice",
        name="On the Air",
        description="Spend 30 minutes in voice today",
        metric="voice_minutes",
        target=30,
        xp_reward=50,
    ),
    Challenge(
        id="reactor",
        name="Cheerleader",
        description="Receive 10 reactions today",
        metric="reactions",
        target=10,
        xp_reward=25,
    ),
]


# ---------------------------------------------------------------------------
# Seeder
# ---------------------------------------------------------------------------
def seed_defaults(stores: Stores) -> None:
    """Insert default settings and challenges that don't yet exist."""
    inserted = 0
    for key, (value, _desc) in DEFAULT_SETTINGS.items():
        if stores.config.get(key) is None:
            stores.config.set(key, value)
            inserted += 1

    known = {c.id for c in stores.challenges.all()}
    for challenge in DEFAULT_CHALLENGES:
        if challenge.id not in known:
            stores.challenges.put(challenge)
            inserted += 1

    if inserted:
        logger.info("Seeded %d default settings/challenges.", inserted)
