"""
cadence.services.embeds — Discord embed builders
=================================================

All embed construction lives here so the announcement service and
cogs only need to supply data, never layout.
"""

from __future__ import annotations

import discord

from cadence.constants import DEFAULT_BANNER, DEFAULT_LEVEL_UP_MESSAGE, format_level_up_message
from cadence.services.commands import EmbedSpec
from cadence.stores.base import Event


def to_discord(spec: EmbedSpec) -> discord.Embed:
    """Render a handler's :class:`EmbedSpec`."""
    embed = discord.Embed(
        title=spec.title,
        description=spec.description or None,
        color=discord.Color(spec.color),
    )
    for name, value, inline in spec.fields:
        embed.add_field(name=name, value=value, inline=inline)
    if spec.image_url:
        embed.set_image(url=spec.image_url)
    if spec.footer:
        embed.set_footer(text=spec.footer)
    return embed


def build_level_up_embed(
    user_id: int,
    display_name: str,
    new_level: int,
    *,
    template: str | None = None,
    banner: str | None = None,
    avatar_url: str | None = None,
) -> discord.Embed:
    """Level-up celebration using the configured message template and banner."""
    embed = discord.Embed(
        title="⚡ Level Up!",
        description=format_level_up_message(
            template or DEFAULT_LEVEL_UP_MESSAGE,
            user_id=user_id,
            display_name=display_name,
            level=new_level,
        ),
        color=discord.Color.gold(),
    )
    embed.set_image(url=banner or DEFAULT_BANNER)
    if avatar_url:
        embed.set_thumbnail(url=avatar_url)
    return embed


def build_event_started_embed(event: Event) -> discord.Embed:
    embed = discord.Embed(
        title=f"\U0001f389 {event.name} has started!",
        description=f"All XP is multiplied by **×{event.multiplier:g}**.",
        color=discord.Color.green(),
    )
    embed.add_field(name="Ends", value=f"<t:{int(event.end_time.timestamp())}:R>")
    return embed


def build_event_ended_embed(event: Event) -> discord.Embed:
    return discord.Embed(
        title=f"\U0001f3c1 {event.name} has ended",
        description="XP is back to normal. Thanks for taking part!",
        color=discord.Color.dark_grey(),
    )
