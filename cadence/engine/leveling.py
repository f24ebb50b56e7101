"""
cadence.engine.leveling — Level settlement
===========================================

``required_xp`` itself lives in :mod:`cadence.constants` so cogs, the API
and the engine share one formula.

NOTE: :func:`settle` advances at most **one** level per award, even when
the leftover XP would already satisfy the next threshold.  The remainder
carries over and is settled by the member's next award.  Large single
grants (admin invites, event-boosted voice sessions) can therefore leave
``xp >= required_xp(level)`` until the next activity.
"""

from __future__ import annotations

from dataclasses import dataclass

from cadence.constants import required_xp

__all__ = ["LevelResult", "progress_percent", "required_xp", "settle"]


@dataclass(frozen=True, slots=True)
class LevelResult:
    xp: int
    level: int
    leveled_up: bool


def settle(xp: int, level: int, gained: int) -> LevelResult:
    """Add *gained* to *xp* and apply at most one level-up."""
    new_xp = xp + gained
    required = required_xp(level)
    if new_xp >= required:
        return LevelResult(xp=new_xp - required, level=level + 1, leveled_up=True)
    return LevelResult(xp=new_xp, level=level, leveled_up=False)


def progress_percent(xp: int, level: int) -> int:
    """How far through the current level, floored, capped at 100."""
    return min(100, xp * 100 // required_xp(level))
