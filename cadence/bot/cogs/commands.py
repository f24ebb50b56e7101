"""
cadence.bot.cogs.commands — Slash Command Surface
==================================================

Thin Discord adapter over :mod:`cadence.services.commands`.  Each slash
command converts its arguments into a :class:`CommandInput` (members to
:class:`MemberRef`, roles and channels to ids), dispatches it to the
handler table on a worker thread, and renders the outcome.

Admin gating happens in the handler table: admin commands are visible
to everyone but refuse to run unless the invoker holds the configured
admin role or the Administrator permission.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import discord
from discord import app_commands
from discord.ext import commands

from cadence.database.engine import run_db
from cadence.errors import TransientStoreError
from cadence.services.announcement_service import (
    announce_event_ended,
    announce_event_started,
    announce_level_ups,
)
from cadence.services.commands import CommandInput, CommandOutcome, MemberRef, dispatch
from cadence.services.embeds import to_discord

if TYPE_CHECKING:
    from cadence.bot.core import CadenceBot

logger = logging.getLogger(__name__)


def _option_value(value: Any) -> Any:
    if isinstance(value, (discord.Member, discord.User)):
        return MemberRef(id=value.id, display_name=value.display_name)
    if isinstance(value, (discord.Role, discord.abc.GuildChannel)):
        return value.id
    if isinstance(value, app_commands.Choice):
        return value.value
    return value


class Commands(commands.Cog, name="Commands"):
    """Every slash command, delegated to the handler table."""

    event = app_commands.Group(name="event", description="XP events")
    challenge = app_commands.Group(name="challenge", description="Daily challenges")

    def __init__(self, bot: CadenceBot) -> None:
        self.bot = bot

    # -------------------------------------------------------------------
    # Dispatch & rendering
    # -------------------------------------------------------------------
    def build_input(self, interaction: discord.Interaction, name: str, **options: Any) -> CommandInput:
        user = interaction.user
        return CommandInput(
            name=name,
            invoker=MemberRef(id=user.id, display_name=user.display_name),
            is_admin=self.bot.is_admin(user),
            options={key: _option_value(value) for key, value in options.items()},
            role_ids=tuple(role.id for role in getattr(user, "roles", ())),
        )

    async def _run(self, interaction: discord.Interaction, name: str, **options: Any) -> None:
        inp = self.build_input(interaction, name, **options)
        try:
            outcome: CommandOutcome = await run_db(dispatch, inp, self.bot.stores, self.bot.clock)
        except TransientStoreError:
            logger.exception(
                "Storage failure running /%s", name,
                extra={"command": name, "user_id": inp.invoker.id},
            )
            await interaction.response.send_message(
                "❌ Storage is temporarily unavailable, please try again.", ephemeral=True,
            )
            return

        kwargs: dict[str, Any] = {"ephemeral": outcome.ephemeral}
        if outcome.content:
            kwargs["content"] = outcome.content
        if outcome.embed is not None:
            kwargs["embed"] = to_discord(outcome.embed)
        await interaction.response.send_message(**kwargs)
        await self._follow_up(interaction, outcome)

    async def _follow_up(self, interaction: discord.Interaction, outcome: CommandOutcome) -> None:
        for award in outcome.awards:
            await announce_level_ups(
                self.bot, award.level_ups(),
                guild=interaction.guild, fallback_channel=interaction.channel,
            )
        if outcome.ended_event is not None:
            await announce_event_ended(
                self.bot, outcome.ended_event, fallback_channel=interaction.channel,
            )
        if outcome.started_event is not None:
            await announce_event_started(
                self.bot, outcome.started_event, fallback_channel=interaction.channel,
            )

    # -------------------------------------------------------------------
    # Profile & leaderboards
    # -------------------------------------------------------------------
    @app_commands.command(name="rank", description="Check your or another user's rank")
    @app_commands.describe(user="The member to look up (defaults to you)")
    async def rank(self, interaction: discord.Interaction, user: discord.Member | None = None) -> None:
        await self._run(interaction, "rank", user=user)

    @app_commands.command(name="level", description="Check your or another user's level")
    @app_commands.describe(user="The member to look up (defaults to you)")
    async def level(self, interaction: discord.Interaction, user: discord.Member | None = None) -> None:
        await self._run(interaction, "level", user=user)

    @app_commands.command(name="leaderboard", description="View the top 10 users on the leaderboard")
    async def leaderboard(self, interaction: discord.Interaction) -> None:
        await self._run(interaction, "leaderboard")

    @app_commands.command(name="weekly", description="View the weekly leaderboard")
    async def weekly(self, interaction: discord.Interaction) -> None:
        await self._run(interaction, "weekly")

    @app_commands.command(name="monthly", description="View the monthly leaderboard")
    async def monthly(self, interaction: discord.Interaction) -> None:
        await self._run(interaction, "monthly")

    @app_commands.command(name="compare", description="Compare XP with another user")
    @app_commands.describe(user2="Member to compare against", user1="First member (defaults to you)")
    async def compare(
        self,
        interaction: discord.Interaction,
        user2: discord.Member,
        user1: discord.Member | None = None,
    ) -> None:
        await self._run(interaction, "compare", user1=user1, user2=user2)

    @app_commands.command(name="activity", description="View your or another user's activity stats")
    @app_commands.describe(user="The member to look up (defaults to you)")
    async def activity(self, interaction: discord.Interaction, user: discord.Member | None = None) -> None:
        await self._run(interaction, "activity", user=user)

    @app_commands.command(name="invites", description="Check a user's invite count")
    @app_commands.describe(user="The member to look up (defaults to you)")
    async def invites(self, interaction: discord.Interaction, user: discord.Member | None = None) -> None:
        await self._run(interaction, "invites", user=user)

    @app_commands.command(name="checkvip", description="Check a user's VIP status")
    @app_commands.describe(user="The member to look up (defaults to you)")
    async def checkvip(self, interaction: discord.Interaction, user: discord.Member | None = None) -> None:
        await self._run(interaction, "checkvip", user=user)

    @app_commands.command(name="mentors", description="View your mentors and mentees")
    @app_commands.describe(user="The member to look up (defaults to you)")
    async def mentors(self, interaction: discord.Interaction, user: discord.Member | None = None) -> None:
        await self._run(interaction, "mentors", user=user)

    # -------------------------------------------------------------------
    # Catalog views
    # -------------------------------------------------------------------
    @app_commands.command(name="rewards", description="View all level rewards")
    async def rewards(self, interaction: discord.Interaction) -> None:
        await self._run(interaction, "rewards")

    @app_commands.command(name="milestones", description="View all level milestones")
    async def milestones(self, interaction: discord.Interaction) -> None:
        await self._run(interaction, "milestones")

    @app_commands.command(name="rolemultipliers", description="View all role multipliers")
    async def rolemultipliers(self, interaction: discord.Interaction) -> None:
        await self._run(interaction, "rolemultipliers")

    @app_commands.command(name="voicemultipliers", description="View all voice channel multipliers")
    async def voicemultipliers(self, interaction: discord.Interaction) -> None:
        await self._run(interaction, "voicemultipliers")

    @app_commands.command(name="quiethours", description="View current quiet hours settings")
    async def quiethours(self, interaction: discord.Interaction) -> None:
        await self._run(interaction, "quiethours")

    @app_commands.command(name="blacklistchannels", description="View all blacklisted channels")
    async def blacklistchannels(self, interaction: discord.Interaction) -> None:
        await self._run(interaction, "blacklistchannels")

    @app_commands.command(name="help", description="Show all available commands")
    async def help_(self, interaction: discord.Interaction) -> None:
        await self._run(interaction, "help")

    # -------------------------------------------------------------------
    # Member preferences
    # -------------------------------------------------------------------
    @app_commands.command(name="birthday", description="Set your birthday for 2x XP on your special day")
    @app_commands.describe(month="Month (1-12)", day="Day (1-31)", year="Year (optional)")
    async def birthday(
        self, interaction: discord.Interaction, month: int, day: int, year: int | None = None,
    ) -> None:
        await self._run(interaction, "birthday", month=month, day=day, year=year)

    @app_commands.command(name="dmnotifications", description="Enable or disable DM level-up notifications")
    @app_commands.choices(action=[
        app_commands.Choice(name="Enable", value="enable"),
        app_commands.Choice(name="Disable", value="disable"),
    ])
    async def dmnotifications(
        self, interaction: discord.Interaction, action: app_commands.Choice[str],
    ) -> None:
        await self._run(interaction, "dmnotifications", action=action)

    # -------------------------------------------------------------------
    # /challenge and /event groups
    # -------------------------------------------------------------------
    @challenge.command(name="list", description="View available challenges")
    async def challenge_list(self, interaction: discord.Interaction) -> None:
        await self._run(interaction, "challenge list")

    @challenge.command(name="progress", description="View your challenge progress")
    async def challenge_progress(self, interaction: discord.Interaction) -> None:
        await self._run(interaction, "challenge progress")

    @event.command(name="create", description="Create a new XP event")
    @app_commands.describe(
        name="Event name",
        hours="Duration in hours (1-168)",
        multiplier="XP multiplier (1.1-10, default 2)",
    )
    async def event_create(
        self,
        interaction: discord.Interaction,
        name: str,
        hours: int,
        multiplier: float | None = None,
    ) -> None:
        await self._run(interaction, "event create", name=name, hours=hours, multiplier=multiplier)

    @event.command(name="end", description="End the active event")
    async def event_end(self, interaction: discord.Interaction) -> None:
        await self._run(interaction, "event end")

    @event.command(name="status", description="Check current active event")
    async def event_status(self, interaction: discord.Interaction) -> None:
        await self._run(interaction, "event status")

    @event.command(name="list", description="View event history")
    async def event_list(self, interaction: discord.Interaction) -> None:
        await self._run(interaction, "event list")

    # -------------------------------------------------------------------
    # Admin: settings
    # -------------------------------------------------------------------
    @app_commands.command(name="setcooldown", description="Set the XP gain cooldown (in seconds)")
    @app_commands.describe(seconds="Cooldown in seconds (0-300)")
    async def setcooldown(self, interaction: discord.Interaction, seconds: int) -> None:
        await self._run(interaction, "setcooldown", seconds=seconds)

    @app_commands.command(name="setbanner", description="Set the level-up announcement banner image")
    @app_commands.describe(url="Image URL")
    async def setbanner(self, interaction: discord.Interaction, url: str) -> None:
        await self._run(interaction, "setbanner", url=url)

    @app_commands.command(name="setmessage", description="Set the level-up announcement message")
    @app_commands.describe(message="Use {user}, {mention} and {level} as placeholders")
    async def setmessage(self, interaction: discord.Interaction, message: str) -> None:
        await self._run(interaction, "setmessage", message=message)

    @app_commands.command(name="setchannel", description="Set the level-up announcement channel")
    async def setchannel(self, interaction: discord.Interaction, channel: discord.TextChannel) -> None:
        await self._run(interaction, "setchannel", channel=channel)

    @app_commands.command(name="setdailybonus", description="Set the daily bonus XP amount")
    @app_commands.describe(amount="Bonus XP (0-100)")
    async def setdailybonus(self, interaction: discord.Interaction, amount: int) -> None:
        await self._run(interaction, "setdailybonus", amount=amount)

    @app_commands.command(name="setmultiplier", description="Set the server-wide XP multiplier")
    @app_commands.describe(multiplier="Multiplier (0.1-10)")
    async def setmultiplier(self, interaction: discord.Interaction, multiplier: float) -> None:
        await self._run(interaction, "setmultiplier", multiplier=multiplier)

    @app_commands.command(name="setxpcap", description="Set the daily XP cap per user")
    @app_commands.describe(amount="Daily cap (0 disables, max 10000)")
    async def setxpcap(self, interaction: discord.Interaction, amount: int) -> None:
        await self._run(interaction, "setxpcap", amount=amount)

    @app_commands.command(name="setreactionxp", description="Set XP earned when others react to your messages")
    @app_commands.describe(amount="XP per reaction (0-10)")
    async def setreactionxp(self, interaction: discord.Interaction, amount: int) -> None:
        await self._run(interaction, "setreactionxp", amount=amount)

    @app_commands.command(name="setwelcomebonus", description="Set welcome bonus XP for new members")
    @app_commands.describe(amount="Bonus XP (0-1000)", days="Boosted XP days (1-30)")
    async def setwelcomebonus(
        self, interaction: discord.Interaction, amount: int, days: int | None = None,
    ) -> None:
        await self._run(interaction, "setwelcomebonus", amount=amount, days=days)

    @app_commands.command(name="setquiethours", description="Set quiet hours with reduced XP")
    @app_commands.describe(
        start="Start hour (0-23)", end="End hour (0-23)", multiplier="XP multiplier (0.1-1)",
    )
    async def setquiethours(
        self, interaction: discord.Interaction, start: int, end: int, multiplier: float | None = None,
    ) -> None:
        await self._run(interaction, "setquiethours", start=start, end=end, multiplier=multiplier)

    # -------------------------------------------------------------------
    # Admin: catalogs
    # -------------------------------------------------------------------
    @app_commands.command(name="setreward", description="Set a role reward for a specific level")
    async def setreward(self, interaction: discord.Interaction, level: int, role: discord.Role) -> None:
        await self._run(interaction, "setreward", level=level, role=role)

    @app_commands.command(name="setmilestone", description="Set an auto-role milestone at a certain level")
    async def setmilestone(self, interaction: discord.Interaction, level: int, role: discord.Role) -> None:
        await self._run(interaction, "setmilestone", level=level, role=role)

    @app_commands.command(name="setrolemultiplier", description="Set XP multiplier for a role")
    @app_commands.describe(multiplier="Multiplier (0.1-10)")
    async def setrolemultiplier(
        self, interaction: discord.Interaction, role: discord.Role, multiplier: float,
    ) -> None:
        await self._run(interaction, "setrolemultiplier", role=role, multiplier=multiplier)

    @app_commands.command(name="setvoicemultiplier", description="Set XP multiplier for a voice channel")
    @app_commands.describe(multiplier="Multiplier (0.1-10)")
    async def setvoicemultiplier(
        self, interaction: discord.Interaction, channel: discord.VoiceChannel, multiplier: float,
    ) -> None:
        await self._run(interaction, "setvoicemultiplier", channel=channel, multiplier=multiplier)

    @app_commands.command(name="blacklist", description="Add or remove a channel from XP blacklist")
    @app_commands.choices(action=[
        app_commands.Choice(name="Add", value="add"),
        app_commands.Choice(name="Remove", value="remove"),
    ])
    async def blacklist(
        self,
        interaction: discord.Interaction,
        action: app_commands.Choice[str],
        channel: discord.abc.GuildChannel,
    ) -> None:
        await self._run(interaction, "blacklist", action=action, channel=channel)

    @app_commands.command(name="setmentor", description="Set a mentor-mentee relationship")
    @app_commands.describe(bonus="Share of the mentee's XP (0.1-1, default 0.2)")
    async def setmentor(
        self,
        interaction: discord.Interaction,
        mentor: discord.Member,
        mentee: discord.Member,
        bonus: float | None = None,
    ) -> None:
        await self._run(interaction, "setmentor", mentor=mentor, mentee=mentee, bonus=bonus)

    @app_commands.command(name="removementor", description="Remove a mentor-mentee relationship")
    async def removementor(
        self, interaction: discord.Interaction, mentor: discord.Member, mentee: discord.Member,
    ) -> None:
        await self._run(interaction, "removementor", mentor=mentor, mentee=mentee)

    # -------------------------------------------------------------------
    # Admin: members
    # -------------------------------------------------------------------
    @app_commands.command(name="addinvite", description="Add invites to a user (for tracking)")
    @app_commands.describe(amount="Number of invites (1-100, default 1)")
    async def addinvite(
        self, interaction: discord.Interaction, user: discord.Member, amount: int | None = None,
    ) -> None:
        await self._run(interaction, "addinvite", user=user, amount=amount)

    @app_commands.command(name="setvip", description="Set VIP status for a user")
    @app_commands.describe(days="VIP duration in days (1-365)")
    async def setvip(self, interaction: discord.Interaction, user: discord.Member, days: int) -> None:
        await self._run(interaction, "setvip", user=user, days=days)

    @app_commands.command(name="setstreak", description="Set streak for a user")
    @app_commands.describe(days="Streak length (0-365)")
    async def setstreak(self, interaction: discord.Interaction, user: discord.Member, days: int) -> None:
        await self._run(interaction, "setstreak", user=user, days=days)

    @app_commands.command(name="resetuser", description="Reset XP and level for a user")
    async def resetuser(self, interaction: discord.Interaction, user: discord.Member) -> None:
        await self._run(interaction, "resetuser", user=user)

    @app_commands.command(name="resetall", description="Reset all users XP and levels")
    async def resetall(self, interaction: discord.Interaction) -> None:
        await self._run(interaction, "resetall")

    @app_commands.command(name="stats", description="View server XP statistics")
    async def stats(self, interaction: discord.Interaction) -> None:
        await self._run(interaction, "stats")


async def setup(bot: CadenceBot) -> None:
    await bot.add_cog(Commands(bot))
