"""
cadence.constants — Shared Constants & Helpers
===============================================

Single source of truth for award tuning values, the leveling formula,
and the text classifiers used by the content bonus stage.
Import from here instead of duplicating in cogs, services, and engine.
"""

from __future__ import annotations

import math
import re

# ---------------------------------------------------------------------------
# Base XP per activity source
# ---------------------------------------------------------------------------
MESSAGE_XP_MIN = 10
MESSAGE_XP_MAX = 25
VOICE_MINUTES_PER_XP = 5

# Config Store defaults (used when a key is missing)
DEFAULT_COOLDOWN = 60
DEFAULT_REACTION_XP = 2
DEFAULT_INVITE_XP = 25
DEFAULT_WELCOME_BONUS = 50
DEFAULT_WELCOME_DAYS = 7
DEFAULT_ANNIVERSARY_XP = 100

# ---------------------------------------------------------------------------
# Content bonus (messages only)
# ---------------------------------------------------------------------------
LINK_BONUS = 3
IMAGE_LINK_BONUS = 5
FIRST_IN_CHANNEL_BONUS = 5

# (min_chars, factor): highest matching tier wins
LENGTH_TIERS: list[tuple[int, float]] = [
    (100, 2.0),
    (50, 1.5),
    (25, 1.2),
]

# (min_days, bonus): highest matching tier wins
STREAK_TIERS: list[tuple[int, int]] = [
    (30, 5),
    (14, 3),
    (7, 2),
]

# ---------------------------------------------------------------------------
# Multiplier stack factors
# ---------------------------------------------------------------------------
WEEKEND_MULTIPLIER = 2.0
VIP_MULTIPLIER = 1.5
BIRTHDAY_MULTIPLIER = 2.0
WELCOME_MULTIPLIER = 1.5
DEFAULT_EVENT_MULTIPLIER = 2.0

# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------
DECAY_FACTOR = 0.95
DECAY_INACTIVE_DAYS = 30

# ---------------------------------------------------------------------------
# Presentation
# ---------------------------------------------------------------------------
EMBED_COLOR = 0x5865F2
DEFAULT_BANNER = "https://i.imgur.com/8K3v5tW.png"
DEFAULT_LEVEL_UP_MESSAGE = "{user} has reached level {level}!"
RANK_BADGES: list[str] = ["\U0001f947", "\U0001f948", "\U0001f949"]  # 🥇🥈🥉


# ---------------------------------------------------------------------------
# Leveling formula: THE single canonical implementation
# ---------------------------------------------------------------------------
def required_xp(level: int) -> int:
    """XP needed to advance out of *level*.

    Uses the exponential formula::

        required = floor(level * 100 * 1.1 ** (level - 1))

    Defined for ``level >= 1``; lower levels are treated as level 1.
    """
    level = max(level, 1)
    return math.floor(level * 100 * 1.1 ** (level - 1))


# ---------------------------------------------------------------------------
# Text processing helpers
# ---------------------------------------------------------------------------
URL_REGEX = re.compile(r"https?://[^\s]+")
IMAGE_URL_REGEX = re.compile(r"\.(jpg|jpeg|png|gif|webp|avif)$", re.IGNORECASE)


def format_level_up_message(template: str, *, user_id: int, display_name: str, level: int) -> str:
    """Fill ``{user}``, ``{level}`` and ``{mention}`` placeholders."""
    return (
        template.replace("{user}", display_name)
        .replace("{level}", str(level))
        .replace("{mention}", f"<@{user_id}>")
    )
