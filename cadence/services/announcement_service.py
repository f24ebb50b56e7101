"""
cadence.services.announcement_service — Level-Up & Event Announcements
=======================================================================

Cross-cutting service that owns role grants on level-up, DM preference
gating, channel resolution, and event start/end notices.

Embed construction lives in :mod:`cadence.services.embeds`.  Delivery is
best-effort: a failed send is logged and never retried.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

import discord
from discord.abc import Messageable

from cadence.database.engine import run_db
from cadence.engine.award import LevelUpSignal
from cadence.errors import NotificationDeliveryFailure
from cadence.services.embeds import (
    build_event_ended_embed,
    build_event_started_embed,
    build_level_up_embed,
)
from cadence.stores.base import Event, Stores

if TYPE_CHECKING:
    from cadence.bot.core import CadenceBot

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Role grants (sync, run via run_db)
# ---------------------------------------------------------------------------
def roles_for_level(stores: Stores, level: int, held: Iterable[int] = ()) -> list[int]:
    """Reward role for exactly *level* plus every milestone at or below it,
    minus roles already *held*."""
    held = set(held)
    wanted: list[int] = []
    reward = stores.rewards.get(level)
    if reward is not None:
        wanted.append(int(reward))
    for milestone_level, role_id in stores.milestones.all().items():
        if milestone_level <= level:
            wanted.append(int(role_id))
    return [role_id for role_id in dict.fromkeys(wanted) if role_id not in held]


async def apply_level_roles(member: discord.Member, stores: Stores, level: int) -> list[int]:
    """Grant the roles earned at *level*.  Returns the role ids added."""
    held = [role.id for role in member.roles]
    missing = await run_db(roles_for_level, stores, level, held)
    roles = [r for r in (member.guild.get_role(rid) for rid in missing) if r is not None]
    if not roles:
        return []
    try:
        await member.add_roles(*roles, reason=f"Reached level {level}")
    except discord.HTTPException:
        logger.exception(
            "Failed to grant level roles to %s", member.id,
            extra={"user_id": member.id, "level": level},
        )
        return []
    logger.info("Granted %d role(s) to %s at level %d", len(roles), member.id, level)
    return [role.id for role in roles]


# ---------------------------------------------------------------------------
# Channel resolution
# ---------------------------------------------------------------------------
def _announcement_channel_id(stores: Stores) -> int | None:
    value = stores.config.get("announcement_channel")
    return int(value) if value else None


def resolve_announce_channel(
    bot: CadenceBot,
    configured_id: int | None,
    fallback_channel: Messageable | None = None,
) -> Messageable | None:
    """Resolve the target channel for an announcement.

    Priority: Config Store ``announcement_channel`` → ``config.yaml`` → fallback.
    """
    for channel_id in (configured_id, bot.cfg.announce_channel_id):
        if channel_id:
            ch = bot.get_channel(channel_id)
            if ch and isinstance(ch, Messageable):
                return ch
    if isinstance(fallback_channel, Messageable):
        return fallback_channel
    return None


async def _send_embed(channel: Messageable | None, embed: discord.Embed) -> bool:
    if channel is None:
        return False
    try:
        await channel.send(embed=embed)
    except discord.HTTPException:
        logger.exception(
            "Failed to send announcement to channel %s", getattr(channel, "id", "?"),
        )
        return False
    return True


async def _send_dm(member: discord.Member, embed: discord.Embed) -> None:
    """DM *member*, raising :class:`NotificationDeliveryFailure` if Discord refuses."""
    try:
        await member.send(embed=embed)
    except discord.HTTPException as exc:
        raise NotificationDeliveryFailure(f"DM to {member.id} failed: {exc}") from exc


# ---------------------------------------------------------------------------
# Public API: called by cogs
# ---------------------------------------------------------------------------
def _load_level_up_context(stores: Stores, user_id: int) -> tuple[bool, str | None, str | None, int | None]:
    user = stores.users.get(user_id)
    return (
        bool(user and user.dm_notifications),
        stores.config.get("level_up_message"),
        stores.config.get("banner"),
        _announcement_channel_id(stores),
    )


async def announce_level_up(
    bot: CadenceBot,
    signal: LevelUpSignal,
    *,
    member: discord.Member | None = None,
    fallback_channel: Messageable | None = None,
) -> bool:
    """Grant level roles and celebrate one level-up.

    Members who opted into DMs are messaged directly; if the DM cannot be
    delivered the announcement goes to the resolved channel instead.
    """
    if member is not None:
        await apply_level_roles(member, bot.stores, signal.new_level)

    wants_dm, template, banner, channel_id = await run_db(
        _load_level_up_context, bot.stores, signal.user_id,
    )
    embed = build_level_up_embed(
        signal.user_id,
        member.display_name if member is not None else signal.display_name,
        signal.new_level,
        template=template,
        banner=banner,
        avatar_url=member.display_avatar.url if member is not None else None,
    )

    if wants_dm and member is not None:
        try:
            await _send_dm(member, embed)
            return True
        except NotificationDeliveryFailure:
            logger.info("DM to %s failed, announcing in channel", signal.user_id)

    target = resolve_announce_channel(bot, channel_id, fallback_channel)
    return await _send_embed(target, embed)


async def announce_level_ups(
    bot: CadenceBot,
    signals: Iterable[LevelUpSignal],
    *,
    guild: discord.Guild | None = None,
    fallback_channel: Messageable | None = None,
) -> None:
    """Announce every level-up from an award and its follow-ups."""
    for signal in signals:
        member = guild.get_member(signal.user_id) if guild is not None else None
        try:
            await announce_level_up(
                bot, signal, member=member, fallback_channel=fallback_channel,
            )
        except Exception:
            logger.exception(
                "Level-up announcement failed for %s", signal.user_id,
                extra={"user_id": signal.user_id, "level": signal.new_level},
            )


async def announce_event_started(
    bot: CadenceBot, event: Event, fallback_channel: Messageable | None = None,
) -> bool:
    channel_id = await run_db(_announcement_channel_id, bot.stores)
    target = resolve_announce_channel(bot, channel_id, fallback_channel)
    return await _send_embed(target, build_event_started_embed(event))


async def announce_event_ended(
    bot: CadenceBot, event: Event, fallback_channel: Messageable | None = None,
) -> bool:
    channel_id = await run_db(_announcement_channel_id, bot.stores)
    target = resolve_announce_channel(bot, channel_id, fallback_channel)
    return await _send_embed(target, build_event_ended_embed(event))
