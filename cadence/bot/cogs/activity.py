"""
cadence.bot.cogs.activity — Message & Reaction XP
==================================================

Listens for guild messages and reactions, turns them into
:class:`ActivitySignal` objects and runs them through the award engine.

Pipeline:
1. Gateway event fires → gate checks (bot, DM)
2. Build an ActivitySignal
3. Award on a worker thread via run_db
4. Hand any level-ups to announcement_service
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from cadence.database.engine import run_db
from cadence.engine.activity import ActivitySignal, ActivitySource
from cadence.services.announcement_service import announce_level_ups

if TYPE_CHECKING:
    from cadence.bot.core import CadenceBot

logger = logging.getLogger(__name__)


def _role_ids(member: object) -> tuple[int, ...]:
    return tuple(role.id for role in getattr(member, "roles", ()))


class Activity(commands.Cog, name="Activity"):
    """Awards XP for messages and for reactions received."""

    def __init__(self, bot: CadenceBot) -> None:
        self.bot = bot

    # -------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------
    def _build_message_signal(self, message: discord.Message) -> ActivitySignal:
        return ActivitySignal(
            user_id=message.author.id,
            display_name=message.author.display_name,
            source=ActivitySource.MESSAGE,
            channel_id=message.channel.id,
            text=message.content,
            role_ids=_role_ids(message.author),
            metadata={"message_id": message.id},
        )

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        try:
            await self._handle_message(message)
        except Exception:
            logger.exception(
                "Error processing message %s from user %s",
                message.id, message.author.id,
                extra={"event_type": "message", "user_id": message.author.id,
                       "message_id": message.id},
            )

    async def _handle_message(self, message: discord.Message) -> None:
        if message.author.bot or message.guild is None:
            return

        outcome = await run_db(self.bot.award_sync, self._build_message_signal(message))
        if not outcome.accepted:
            logger.debug("Message %s not awarded: %s", message.id, outcome.status)
            return

        await announce_level_ups(
            self.bot,
            outcome.level_ups(),
            guild=message.guild,
            fallback_channel=message.channel,
        )

    # -------------------------------------------------------------------
    # Reactions: the author of the reacted-to message earns XP
    # -------------------------------------------------------------------
    @commands.Cog.listener()
    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        try:
            await self._handle_reaction(payload)
        except Exception:
            logger.exception(
                "Error processing reaction on message %s from user %s",
                payload.message_id, payload.user_id,
                extra={"event_type": "reaction", "user_id": payload.user_id,
                       "message_id": payload.message_id},
            )

    async def _handle_reaction(self, payload: discord.RawReactionActionEvent) -> None:
        if payload.guild_id is None:
            return
        if payload.member is not None and payload.member.bot:
            return

        channel = self.bot.get_channel(payload.channel_id)
        if channel is None:
            try:
                channel = await self.bot.fetch_channel(payload.channel_id)
            except (discord.NotFound, discord.Forbidden, discord.HTTPException):
                return
        if not isinstance(channel, (discord.TextChannel, discord.Thread, discord.VoiceChannel)):
            return

        try:
            message = await channel.fetch_message(payload.message_id)
        except (discord.NotFound, discord.Forbidden, discord.HTTPException):
            return

        author = message.author
        if author.bot or author.id == payload.user_id:
            return

        outcome = await run_db(self.bot.award_sync, ActivitySignal(
            user_id=author.id,
            display_name=author.display_name,
            source=ActivitySource.REACTION,
            channel_id=payload.channel_id,
            role_ids=_role_ids(author),
            metadata={"message_id": payload.message_id, "reactor_id": payload.user_id},
        ))
        if outcome.accepted:
            await announce_level_ups(
                self.bot,
                outcome.level_ups(),
                guild=message.guild,
                fallback_channel=channel,
            )


async def setup(bot: CadenceBot) -> None:
    await bot.add_cog(Activity(bot))
