"""
cadence.bot.cogs.voice — Voice Presence XP
===========================================

Counts minutes spent in voice channels and pays them out as one award
when the member disconnects:

- **Connect**    — reset the member's minute counter.
- **Every minute** — +1 minute for every connected non-bot member.
- **Disconnect** — award ``minutes // 5`` XP, with the voice-channel
  multiplier of the channel just left.

Moving between channels keeps the running counter.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands, tasks

from cadence.database.engine import run_db
from cadence.services.announcement_service import announce_level_ups
from cadence.services.maintenance_service import (
    end_voice_session,
    start_voice_session,
    tick_voice,
)

if TYPE_CHECKING:
    from cadence.bot.core import CadenceBot

logger = logging.getLogger(__name__)


class Voice(commands.Cog, name="Voice"):
    """Tracks voice channel presence and awards XP on disconnect."""

    def __init__(self, bot: CadenceBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        self.voice_tick_loop.start()

    async def cog_unload(self) -> None:
        self.voice_tick_loop.cancel()

    @commands.Cog.listener()
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        try:
            await self._handle_voice_update(member, before, after)
        except Exception:
            logger.exception(
                "Error processing voice state update for user %s", member.id,
                extra={"event_type": "voice", "user_id": member.id},
            )

    async def _handle_voice_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        if member.bot:
            return

        if before.channel is None and after.channel is not None:
            await run_db(start_voice_session, self.bot.stores, member.id, member.display_name)
            logger.debug("%s joined voice channel %s", member, after.channel)

        elif before.channel is not None and after.channel is None:
            outcome = await run_db(
                end_voice_session,
                self.bot.award_engine,
                member.id,
                member.display_name,
                before.channel.id,
                tuple(role.id for role in member.roles),
            )
            logger.debug("%s left voice channel %s", member, before.channel)
            if outcome is not None and outcome.accepted:
                await announce_level_ups(self.bot, outcome.level_ups(), guild=member.guild)

    @tasks.loop(minutes=1)
    async def voice_tick_loop(self) -> None:
        """Add one minute for every connected non-bot member."""
        connected = [
            member.id
            for guild in self.bot.guilds
            for vc in guild.voice_channels
            for member in vc.members
            if not member.bot
        ]
        if not connected:
            return
        try:
            touched = await run_db(tick_voice, self.bot.stores, connected)
            logger.debug("Voice tick: %d members", touched)
        except Exception:
            logger.exception("Voice tick failed", extra={"task": "voice_tick"})

    @voice_tick_loop.before_loop
    async def _wait_voice(self):
        await self.bot.wait_until_ready()


async def setup(bot: CadenceBot) -> None:
    await bot.add_cog(Voice(bot))
