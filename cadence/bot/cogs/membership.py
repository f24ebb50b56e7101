"""
cadence.bot.cogs.membership — Member Join Welcome Bonus
========================================================

On GUILD_MEMBER_ADD the newcomer receives the ``welcome_bonus`` award
and their join time is stored, which drives the welcome multiplier for
the first ``welcome_days`` days and the yearly join anniversary.
Requires the GUILD_MEMBERS privileged intent.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from cadence.database.engine import run_db
from cadence.engine.activity import ActivitySignal, ActivitySource
from cadence.engine.award import AwardOutcome

if TYPE_CHECKING:
    from cadence.bot.core import CadenceBot

logger = logging.getLogger(__name__)


class Membership(commands.Cog, name="Membership"):
    """Welcomes new members with bonus XP."""

    def __init__(self, bot: CadenceBot) -> None:
        self.bot = bot

    def _welcome(self, user_id: int, display_name: str, joined_at: datetime) -> AwardOutcome:
        outcome = self.bot.award_engine.award(ActivitySignal(
            user_id=user_id,
            display_name=display_name,
            source=ActivitySource.WELCOME,
            timestamp=joined_at,
        ))
        self.bot.stores.users.update(user_id, joined_at=joined_at)
        return outcome

    @commands.Cog.listener()
    async def on_member_join(self, member: discord.Member) -> None:
        try:
            if member.bot:
                return
            joined_at = member.joined_at or self.bot.clock.now()
            outcome = await run_db(self._welcome, member.id, member.display_name, joined_at)
            logger.info(
                "Member joined: %s (ID: %d), welcome bonus %d XP",
                member.display_name, member.id, outcome.granted_xp,
            )
        except Exception:
            logger.exception(
                "Error processing member_join for %s", member.id,
                extra={"event_type": "member_join", "user_id": member.id},
            )


async def setup(bot: CadenceBot) -> None:
    await bot.add_cog(Membership(bot))
