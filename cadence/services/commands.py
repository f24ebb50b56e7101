"""
cadence.services.commands — Command Handler Table
==================================================

Every slash command resolves to one entry in :data:`COMMANDS`.  A handler
is a plain function ``(CommandInput, Stores, Clock) -> CommandOutcome``:
no Discord objects go in, and only data comes out (text, an
:class:`EmbedSpec`, and any award or event the cog still has to
announce).  The cog layer parses arguments into ``CommandInput.options``
and renders the outcome.

Validation failures raise :class:`ValueError`; :func:`dispatch` turns
those (and :class:`~cadence.errors.InvalidEventCreate`) into an
ephemeral reply.  Store failures propagate to the cog boundary.
"""

from __future__ import annotations

import calendar
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from cadence.clock import Clock
from cadence.constants import (
    DEFAULT_BANNER,
    DEFAULT_COOLDOWN,
    DEFAULT_INVITE_XP,
    EMBED_COLOR,
    RANK_BADGES,
    required_xp,
)
from cadence.engine.activity import ActivitySignal, ActivitySource
from cadence.engine.award import AwardEngine, AwardOutcome
from cadence.engine.event_lifecycle import EventManager
from cadence.engine.leveling import progress_percent
from cadence.errors import InvalidEventCreate
from cadence.stores.base import (
    Birthday,
    Event,
    KeyedCatalog,
    Mentorship,
    QuietHours,
    Stores,
    UserRecord,
)

logger = logging.getLogger(__name__)

LEADERBOARD_SIZE = 10
DEFAULT_QUIET_MULTIPLIER = 0.5
DEFAULT_MENTOR_BONUS = 0.2


# ---------------------------------------------------------------------------
# Data passed in and out of handlers
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class MemberRef:
    id: int
    display_name: str


@dataclass
class CommandInput:
    """Parsed invocation.  ``options`` holds ints for roles/channels and
    :class:`MemberRef` for user options."""

    name: str
    invoker: MemberRef
    is_admin: bool = False
    options: dict[str, Any] = field(default_factory=dict)
    role_ids: tuple[int, ...] = ()

    def opt(self, key: str, default: Any = None) -> Any:
        value = self.options.get(key)
        return default if value is None else value


@dataclass
class EmbedSpec:
    """Backend-neutral embed description, rendered by :mod:`cadence.services.embeds`."""

    title: str
    description: str = ""
    fields: list[tuple[str, str, bool]] = field(default_factory=list)
    image_url: str | None = None
    color: int = EMBED_COLOR
    footer: str | None = None

    def add_field(self, name: str, value: str, inline: bool = True) -> EmbedSpec:
        self.fields.append((name, value, inline))
        return self


@dataclass
class CommandOutcome:
    content: str | None = None
    embed: EmbedSpec | None = None
    ephemeral: bool = False
    awards: list[AwardOutcome] = field(default_factory=list)
    started_event: Event | None = None
    ended_event: Event | None = None


Handler = Callable[[CommandInput, Stores, Clock], CommandOutcome]


@dataclass(frozen=True, slots=True)
class Command:
    name: str
    description: str
    handler: Handler
    admin: bool = False


COMMANDS: dict[str, Command] = {}


def command(name: str, description: str, *, admin: bool = False) -> Callable[[Handler], Handler]:
    """Register *handler* under *name*."""
    def decorator(handler: Handler) -> Handler:
        COMMANDS[name] = Command(name, description, handler, admin)
        return handler
    return decorator


def dispatch(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    """Look up and run the handler for ``inp.name``."""
    cmd = COMMANDS.get(inp.name)
    if cmd is None:
        return _private(f"Unknown command `{inp.name}`.")
    if cmd.admin and not inp.is_admin:
        return _private("You need administrator permissions to use this command.")
    try:
        return cmd.handler(inp, stores, clock)
    except InvalidEventCreate as exc:
        return _private(str(exc))
    except ValueError as exc:
        logger.debug("Command %s rejected: %s", inp.name, exc)
        return _private(str(exc))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _private(text: str) -> CommandOutcome:
    return CommandOutcome(content=text, ephemeral=True)


def _check_range(label: str, value: float, low: float, high: float) -> None:
    if not low <= value <= high:
        raise ValueError(f"{label} must be between {low:g} and {high:g}.")


def _target(inp: CommandInput, key: str = "user") -> MemberRef:
    return inp.opt(key, inp.invoker)


def _member(inp: CommandInput, key: str) -> MemberRef:
    member = inp.opt(key)
    if member is None:
        raise ValueError(f"Missing required option `{key}`.")
    return member


def _banner(stores: Stores) -> str:
    return stores.config.get("banner") or DEFAULT_BANNER


def _no_xp(member: MemberRef) -> CommandOutcome:
    return _private(f"{member.display_name} has not earned any XP yet!")


def _ensure_user(stores: Stores, member: MemberRef) -> UserRecord:
    user = stores.users.get(member.id)
    if user is None:
        user = UserRecord(id=member.id, display_name=member.display_name)
        stores.users.save(user)
    return user


def _timestamp(moment) -> str:
    """Discord dynamic timestamp markup."""
    return f"<t:{int(moment.timestamp())}:R>"


# ---------------------------------------------------------------------------
# Profile & leaderboards
# ---------------------------------------------------------------------------
@command("rank", "Check your or another user's rank")
def rank(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    target = _target(inp)
    user = stores.users.get(target.id)
    if user is None:
        return _no_xp(target)

    embed = EmbedSpec(title=f"{target.display_name}'s Rank", image_url=_banner(stores))
    embed.add_field("Level", str(user.level))
    embed.add_field("XP", f"{user.xp} / {required_xp(user.level)}")
    embed.add_field("Progress", f"{progress_percent(user.xp, user.level)}%")
    embed.add_field("Rank", f"#{stores.users.rank(user.id)}")
    embed.add_field("Total XP", str(user.total_xp_earned))
    embed.add_field("Streak", f"{user.streak} days")
    return CommandOutcome(embed=embed)


@command("level", "Check your or another user's level")
def level(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    target = _target(inp)
    user = stores.users.get(target.id)
    if user is None:
        return _no_xp(target)
    return CommandOutcome(
        content=f"{target.display_name} is at Level {user.level} with {user.xp} XP!"
    )


def _leaderboard(stores: Stores, order_by: str, title: str) -> CommandOutcome:
    rows = stores.users.find(order_by=order_by, limit=LEADERBOARD_SIZE)
    rows = [r for r in rows if getattr(r, order_by) > 0]
    if not rows:
        return _private("No users on the leaderboard yet!")

    lines = []
    for index, user in enumerate(rows):
        badge = RANK_BADGES[index] if index < len(RANK_BADGES) else f"{index + 1}."
        lines.append(
            f"{badge} <@{user.id}> - Level {user.level} ({getattr(user, order_by)} XP)"
        )
    return CommandOutcome(
        embed=EmbedSpec(title=title, description="\n".join(lines), image_url=_banner(stores))
    )


@command("leaderboard", "View the top 10 users on the leaderboard")
def leaderboard(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    return _leaderboard(stores, "total_xp_earned", "Leaderboard")


@command("weekly", "View the weekly leaderboard")
def weekly(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    return _leaderboard(stores, "weekly_xp", "Weekly Leaderboard")


@command("monthly", "View the monthly leaderboard")
def monthly(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    return _leaderboard(stores, "monthly_xp", "Monthly Leaderboard")


@command("compare", "Compare XP with another user")
def compare(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    first = _target(inp, "user1")
    second = _member(inp, "user2")
    a, b = stores.users.get(first.id), stores.users.get(second.id)
    if a is None:
        return _no_xp(first)
    if b is None:
        return _no_xp(second)

    embed = EmbedSpec(title=f"{first.display_name} vs {second.display_name}")
    for member, user in ((first, a), (second, b)):
        embed.add_field(
            member.display_name,
            f"Level {user.level}\n{user.total_xp_earned} total XP\n{user.weekly_xp} this week",
        )
    gap = a.total_xp_earned - b.total_xp_earned
    if gap == 0:
        embed.description = "Dead even!"
    else:
        leader = first if gap > 0 else second
        embed.description = f"**{leader.display_name}** leads by {abs(gap)} XP"
    return CommandOutcome(embed=embed)


@command("activity", "View your or another user's activity stats")
def activity(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    target = _target(inp)
    user = stores.users.get(target.id)
    if user is None:
        return _no_xp(target)

    today_xp = user.today_xp if user.today_date == clock.today() else 0
    embed = EmbedSpec(title=f"{target.display_name}'s Activity")
    embed.add_field("Today", f"{today_xp} XP")
    embed.add_field("This Week", f"{user.weekly_xp} XP")
    embed.add_field("This Month", f"{user.monthly_xp} XP")
    embed.add_field("All Time", f"{user.total_xp_earned} XP")
    embed.add_field("Streak", f"{user.streak} days")
    embed.add_field("Invites", str(user.invites))
    if user.last_active_date is not None:
        embed.footer = f"Last active {user.last_active_date.isoformat()}"
    return CommandOutcome(embed=embed)


# ---------------------------------------------------------------------------
# Catalog views
# ---------------------------------------------------------------------------
def _role_levels(catalog: KeyedCatalog, title: str, empty: str) -> CommandOutcome:
    entries = catalog.all()
    if not entries:
        return _private(empty)
    lines = [f"Level {lvl}: <@&{role_id}>" for lvl, role_id in entries.items()]
    return CommandOutcome(embed=EmbedSpec(title=title, description="\n".join(lines)))


@command("rewards", "View all level rewards")
def rewards(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    return _role_levels(stores.rewards, "Level Rewards", "No level rewards configured yet!")


@command("milestones", "View all level milestones")
def milestones(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    return _role_levels(stores.milestones, "Level Milestones", "No milestones configured yet!")


@command("rolemultipliers", "View all role multipliers")
def rolemultipliers(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    entries = stores.role_multipliers.all()
    if not entries:
        return _private("No role multipliers configured yet!")
    lines = [f"<@&{role_id}>: ×{value:g}" for role_id, value in entries.items()]
    return CommandOutcome(embed=EmbedSpec(title="Role Multipliers", description="\n".join(lines)))


@command("voicemultipliers", "View all voice channel multipliers")
def voicemultipliers(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    entries = stores.voice_multipliers.all()
    if not entries:
        return _private("No voice channel multipliers configured yet!")
    lines = [f"<#{channel_id}>: ×{value:g}" for channel_id, value in entries.items()]
    return CommandOutcome(
        embed=EmbedSpec(title="Voice Channel Multipliers", description="\n".join(lines))
    )


@command("quiethours", "View current quiet hours settings")
def quiethours(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    window = stores.quiet_hours.get()
    if window is None:
        return _private("No quiet hours configured.")
    return CommandOutcome(content=(
        f"Quiet hours: {window.start_hour:02d}:00 to {window.end_hour:02d}:00 "
        f"({clock.tz.key}), XP ×{window.multiplier:g}"
    ))


@command("blacklistchannels", "View all blacklisted channels")
def blacklistchannels(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    channels = stores.blacklist.all()
    if not channels:
        return _private("No channels are blacklisted.")
    return CommandOutcome(embed=EmbedSpec(
        title="Blacklisted Channels",
        description="\n".join(f"<#{channel_id}>" for channel_id in channels),
    ))


@command("invites", "Check a user's invite count")
def invites(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    target = _target(inp)
    user = stores.users.get(target.id)
    count = user.invites if user else 0
    return CommandOutcome(content=f"{target.display_name} has {count} invite(s).")


@command("checkvip", "Check a user's VIP status")
def checkvip(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    target = _target(inp)
    user = stores.users.get(target.id)
    if user is None or user.vip_until is None or user.vip_until <= clock.now():
        return CommandOutcome(content=f"{target.display_name} is not a VIP.")
    return CommandOutcome(
        content=f"{target.display_name} is a VIP (expires {_timestamp(user.vip_until)})."
    )


# ---------------------------------------------------------------------------
# Member preferences
# ---------------------------------------------------------------------------
@command("birthday", "Set your birthday for 2x XP on your special day")
def birthday(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    month, day, year = inp.opt("month"), inp.opt("day"), inp.opt("year")
    _check_range("Month", month, 1, 12)
    # 2000 is a leap year, so Feb 29 is accepted
    _check_range("Day", day, 1, calendar.monthrange(year or 2000, month)[1])
    if year is not None:
        _check_range("Year", year, 1900, 2100)

    stores.birthdays.set(Birthday(user_id=inp.invoker.id, month=month, day=day, year=year))
    return _private(f"Birthday set to {calendar.month_name[month]} {day}!")


@command("dmnotifications", "Enable or disable DM level-up notifications")
def dmnotifications(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    action = inp.opt("action")
    if action not in ("enable", "disable"):
        raise ValueError("Action must be `enable` or `disable`.")
    enabled = action == "enable"
    _ensure_user(stores, inp.invoker)
    stores.users.update(inp.invoker.id, dm_notifications=enabled)
    return _private(f"DM level-up notifications {'enabled' if enabled else 'disabled'}.")


@command("mentors", "View your mentors and mentees")
def mentors(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    target = _target(inp)
    mentees = stores.mentors.mentees_of(target.id)
    guides = stores.mentors.mentors_of(target.id)
    if not mentees and not guides:
        return _private(f"{target.display_name} has no mentor relationships.")

    embed = EmbedSpec(title=f"{target.display_name}'s Mentorships")
    if mentees:
        embed.add_field("Mentees", "\n".join(
            f"<@{m.mentee_id}> ({m.bonus:.0%} share)" for m in mentees
        ), inline=False)
    if guides:
        embed.add_field("Mentors", "\n".join(
            f"<@{m.mentor_id}> ({m.bonus:.0%} share)" for m in guides
        ), inline=False)
    return CommandOutcome(embed=embed)


# ---------------------------------------------------------------------------
# Challenges & events (read)
# ---------------------------------------------------------------------------
@command("challenge list", "View available challenges")
def challenge_list(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    catalog = stores.challenges.all()
    if not catalog:
        return _private("No challenges available.")
    lines = [f"**{c.name}** - {c.description} (+{c.xp_reward} XP)" for c in catalog]
    return CommandOutcome(embed=EmbedSpec(title="Daily Challenges", description="\n".join(lines)))


@command("challenge progress", "View your challenge progress")
def challenge_progress(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    today = clock.today()
    progress = {p.challenge_id: p for p in stores.challenges.progress(inp.invoker.id, today)}
    lines = []
    for challenge in stores.challenges.all():
        row = progress.get(challenge.id)
        done = row.progress if row else 0
        mark = "✅" if row and row.completed else "⬜"
        lines.append(f"{mark} {challenge.name}: {min(done, challenge.target)}/{challenge.target}")
    if not lines:
        return _private("No challenges available.")
    return CommandOutcome(
        embed=EmbedSpec(title="Today's Progress", description="\n".join(lines)),
        ephemeral=True,
    )


@command("event status", "Check current active event")
def event_status(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    event = EventManager(stores, clock).running()
    if event is None:
        return CommandOutcome(content="No XP event is running right now.")
    embed = EmbedSpec(title=f"\U0001f389 {event.name}")
    embed.add_field("Multiplier", f"×{event.multiplier:g}")
    embed.add_field("Ends", _timestamp(event.end_time))
    return CommandOutcome(embed=embed)


@command("event list", "View event history")
def event_list(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    events = EventManager(stores, clock).history()
    if not events:
        return _private("No events have been held yet.")
    now = clock.now()
    lines = []
    for event in events:
        state = "running" if event.is_running(now) else "ended"
        lines.append(f"**{event.name}** ×{event.multiplier:g} - {state}, started {_timestamp(event.start_time)}")
    return CommandOutcome(embed=EmbedSpec(title="Event History", description="\n".join(lines)))


@command("help", "Show all available commands")
def help_(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    embed = EmbedSpec(title="Commands")
    members = [c for c in COMMANDS.values() if not c.admin]
    admins = [c for c in COMMANDS.values() if c.admin]
    embed.add_field("Everyone", "\n".join(f"`/{c.name}` {c.description}" for c in members), False)
    if inp.is_admin:
        embed.add_field("Admin", "\n".join(f"`/{c.name}` {c.description}" for c in admins), False)
    return CommandOutcome(embed=embed, ephemeral=True)


# ---------------------------------------------------------------------------
# Admin: config setters
# ---------------------------------------------------------------------------
def _set(stores: Stores, key: str, value: Any, reply: str) -> CommandOutcome:
    stores.config.set(key, value)
    logger.info("Config %s set to %r", key, value)
    return _private(reply)


@command("setcooldown", "Set the XP gain cooldown (in seconds)", admin=True)
def setcooldown(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    seconds = inp.opt("seconds", DEFAULT_COOLDOWN)
    _check_range("Cooldown", seconds, 0, 300)
    return _set(stores, "cooldown", seconds, f"Cooldown set to {seconds} seconds!")


@command("setbanner", "Set the level-up announcement banner image", admin=True)
def setbanner(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    url = str(inp.opt("url", "")).strip()
    if not url.startswith(("http://", "https://")):
        raise ValueError("Banner must be an http(s) URL.")
    return _set(stores, "banner", url, "Banner image updated!")


@command("setmessage", "Set the level-up announcement message", admin=True)
def setmessage(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    message = str(inp.opt("message", "")).strip()
    if not message:
        raise ValueError("Message cannot be empty.")
    return _set(stores, "level_up_message", message, "Level-up message updated!")


@command("setchannel", "Set the level-up announcement channel", admin=True)
def setchannel(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    channel_id = inp.opt("channel")
    return _set(
        stores, "announcement_channel", channel_id,
        f"Level-up announcements will be sent to <#{channel_id}>!",
    )


@command("setdailybonus", "Set the daily bonus XP amount", admin=True)
def setdailybonus(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    amount = inp.opt("amount", 0)
    _check_range("Daily bonus", amount, 0, 100)
    return _set(stores, "daily_bonus", amount, f"Daily bonus set to {amount} XP!")


@command("setmultiplier", "Set the server-wide XP multiplier", admin=True)
def setmultiplier(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    value = float(inp.opt("multiplier", 1.0))
    _check_range("Multiplier", value, 0.1, 10)
    return _set(stores, "multiplier", value, f"Server XP multiplier set to ×{value:g}!")


@command("setxpcap", "Set the daily XP cap per user", admin=True)
def setxpcap(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    amount = inp.opt("amount", 0)
    _check_range("Daily XP cap", amount, 0, 10000)
    reply = "Daily XP cap disabled." if amount == 0 else f"Daily XP cap set to {amount} XP!"
    return _set(stores, "daily_xp_cap", amount, reply)


@command("setreactionxp", "Set XP earned when others react to your messages", admin=True)
def setreactionxp(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    amount = inp.opt("amount", 0)
    _check_range("Reaction XP", amount, 0, 10)
    return _set(stores, "reaction_xp", amount, f"Reaction XP set to {amount}!")


@command("setwelcomebonus", "Set welcome bonus XP for new members", admin=True)
def setwelcomebonus(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    amount, days = inp.opt("amount", 0), inp.opt("days", 7)
    _check_range("Welcome bonus", amount, 0, 1000)
    _check_range("Welcome days", days, 1, 30)
    stores.config.set("welcome_days", days)
    return _set(
        stores, "welcome_bonus", amount,
        f"New members get {amount} XP and boosted XP for {days} days!",
    )


# ---------------------------------------------------------------------------
# Admin: catalogs
# ---------------------------------------------------------------------------
@command("setreward", "Set a role reward for a specific level", admin=True)
def setreward(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    lvl, role_id = inp.opt("level", 0), inp.opt("role")
    if lvl < 1:
        raise ValueError("Level must be at least 1.")
    stores.rewards.put(lvl, role_id)
    return _private(f"Level {lvl} will now grant the <@&{role_id}> role!")


@command("setmilestone", "Set an auto-role milestone at a certain level", admin=True)
def setmilestone(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    lvl, role_id = inp.opt("level", 0), inp.opt("role")
    if lvl < 1:
        raise ValueError("Level must be at least 1.")
    stores.milestones.put(lvl, role_id)
    return _private(f"Members at level {lvl} and above will get <@&{role_id}>!")


@command("setrolemultiplier", "Set XP multiplier for a role", admin=True)
def setrolemultiplier(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    role_id, value = inp.opt("role"), float(inp.opt("multiplier", 1.0))
    _check_range("Multiplier", value, 0.1, 10)
    stores.role_multipliers.put(role_id, value)
    return _private(f"<@&{role_id}> now earns ×{value:g} XP!")


@command("setvoicemultiplier", "Set XP multiplier for a voice channel", admin=True)
def setvoicemultiplier(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    channel_id, value = inp.opt("channel"), float(inp.opt("multiplier", 1.0))
    _check_range("Multiplier", value, 0.1, 10)
    stores.voice_multipliers.put(channel_id, value)
    return _private(f"<#{channel_id}> now earns ×{value:g} voice XP!")


@command("setquiethours", "Set quiet hours with reduced XP", admin=True)
def setquiethours(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    start, end = inp.opt("start"), inp.opt("end")
    value = float(inp.opt("multiplier", DEFAULT_QUIET_MULTIPLIER))
    _check_range("Start hour", start, 0, 23)
    _check_range("End hour", end, 0, 23)
    _check_range("Multiplier", value, 0.1, 1)
    stores.quiet_hours.set(QuietHours(start_hour=start, end_hour=end, multiplier=value))
    return _private(f"Quiet hours set: {start:02d}:00 to {end:02d}:00 at ×{value:g} XP.")


@command("blacklist", "Add or remove a channel from XP blacklist", admin=True)
def blacklist(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    channel_id, action = inp.opt("channel"), inp.opt("action")
    if action == "add":
        if not stores.blacklist.add(channel_id):
            return _private(f"<#{channel_id}> is already blacklisted.")
        return _private(f"<#{channel_id}> will no longer earn XP.")
    if action == "remove":
        if not stores.blacklist.remove(channel_id):
            return _private(f"<#{channel_id}> was not blacklisted.")
        return _private(f"<#{channel_id}> earns XP again.")
    raise ValueError("Action must be `add` or `remove`.")


@command("setmentor", "Set a mentor-mentee relationship", admin=True)
def setmentor(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    mentor, mentee = _member(inp, "mentor"), _member(inp, "mentee")
    bonus = float(inp.opt("bonus", DEFAULT_MENTOR_BONUS))
    if mentor.id == mentee.id:
        raise ValueError("A member cannot mentor themselves.")
    _check_range("Bonus", bonus, 0.1, 1)
    stores.mentors.add(Mentorship(mentor_id=mentor.id, mentee_id=mentee.id, bonus=bonus))
    return _private(
        f"{mentor.display_name} now mentors {mentee.display_name} "
        f"and earns {bonus:.0%} of their XP."
    )


@command("removementor", "Remove a mentor-mentee relationship", admin=True)
def removementor(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    mentor, mentee = _member(inp, "mentor"), _member(inp, "mentee")
    if not stores.mentors.remove(mentor.id, mentee.id):
        return _private("That mentorship does not exist.")
    return _private(f"{mentor.display_name} no longer mentors {mentee.display_name}.")


# ---------------------------------------------------------------------------
# Admin: members
# ---------------------------------------------------------------------------
@command("addinvite", "Add invites to a user (for tracking)", admin=True)
def addinvite(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    member = _member(inp, "user")
    count = inp.opt("amount", 1)
    _check_range("Amount", count, 1, 100)

    per_invite = stores.config.get_int("invite_xp", DEFAULT_INVITE_XP)
    outcome = AwardEngine(stores, clock).award(ActivitySignal(
        user_id=member.id,
        display_name=member.display_name,
        source=ActivitySource.INVITE,
        amount=per_invite * count,
    ))
    stores.users.increment(member.id, invites=count)
    return CommandOutcome(
        content=f"Added {count} invite(s) to {member.display_name} (+{outcome.granted_xp} XP).",
        ephemeral=True,
        awards=[outcome],
    )


@command("setvip", "Set VIP status for a user", admin=True)
def setvip(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    member = _member(inp, "user")
    days = inp.opt("days", 0)
    _check_range("Days", days, 1, 365)
    _ensure_user(stores, member)
    until = clock.now() + timedelta(days=days)
    stores.users.update(member.id, vip_until=until)
    return _private(f"{member.display_name} is a VIP for {days} days!")


@command("setstreak", "Set streak for a user", admin=True)
def setstreak(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    member = _member(inp, "user")
    days = inp.opt("days", 0)
    _check_range("Days", days, 0, 365)
    _ensure_user(stores, member)
    stores.users.update(
        member.id, streak=days, last_active_date=clock.today() if days else None,
    )
    return _private(f"{member.display_name}'s streak set to {days} days.")


@command("resetuser", "Reset XP and level for a user", admin=True)
def resetuser(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    member = _member(inp, "user")
    if not stores.users.delete(member.id):
        return _no_xp(member)
    logger.info("User %s reset by %s", member.id, inp.invoker.id)
    return _private(f"{member.display_name}'s XP and level have been reset.")


@command("resetall", "Reset all users XP and levels", admin=True)
def resetall(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    removed = stores.users.delete_all()
    logger.warning("All %d users reset by %s", removed, inp.invoker.id)
    return _private(f"Reset {removed} users.")


@command("stats", "View server XP statistics", admin=True)
def stats(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    embed = EmbedSpec(title="Server XP Statistics")
    embed.add_field("Members", str(stores.users.count()))
    embed.add_field("Total XP", str(stores.users.total("total_xp_earned")))
    embed.add_field("XP This Week", str(stores.users.total("weekly_xp")))
    embed.add_field("XP This Month", str(stores.users.total("monthly_xp")))
    embed.add_field("Invites", str(stores.users.total("invites")))
    embed.add_field("Blacklisted Channels", str(len(stores.blacklist.all())))
    event = EventManager(stores, clock).running()
    embed.add_field("Active Event", f"{event.name} (×{event.multiplier:g})" if event else "None")
    return CommandOutcome(embed=embed)


# ---------------------------------------------------------------------------
# Admin: events
# ---------------------------------------------------------------------------
@command("event create", "Create a new XP event", admin=True)
def event_create(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    manager = EventManager(stores, clock)
    name, hours = str(inp.opt("name", "")), inp.opt("hours", 0)
    multiplier = float(inp.opt("multiplier", 2.0))
    manager.validate(name, hours, multiplier)
    # An overdue event is ended here so its end is announced too
    overdue = manager.expire_due()
    event = manager.create(name, hours, creator_id=inp.invoker.id, multiplier=multiplier)
    return CommandOutcome(
        content=f"Event **{event.name}** started: ×{event.multiplier:g} XP until {_timestamp(event.end_time)}.",
        ephemeral=True,
        started_event=event,
        ended_event=overdue[-1] if overdue else None,
    )


@command("event end", "End the active event", admin=True)
def event_end(inp: CommandInput, stores: Stores, clock: Clock) -> CommandOutcome:
    event = EventManager(stores, clock).end()
    if event is None:
        return _private("There is no active event.")
    return CommandOutcome(
        content=f"Event **{event.name}** ended.", ephemeral=True, ended_event=event,
    )
