"""
tests/test_cogs.py — Discord adapter cogs
==========================================

The cogs are driven with mocked gateway objects over a real award
engine, so each test checks what actually lands in the stores.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
from discord import app_commands

from cadence.bot.cogs.activity import Activity
from cadence.bot.cogs.commands import _option_value
from cadence.bot.cogs.membership import Membership
from cadence.bot.cogs.voice import Voice
from cadence.bot.core import CadenceBot
from cadence.engine.award import AwardEngine
from cadence.services import maintenance_service as ms
from cadence.services.commands import MemberRef
from cadence.stores.base import UserRecord
from conftest import WEDNESDAY_NOON, LowRng, run_async


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _make_bot(stores, clock) -> MagicMock:
    engine = AwardEngine(stores, clock, rng=LowRng())
    bot = MagicMock()
    bot.cfg = SimpleNamespace(announce_channel_id=None, admin_role_id=7)
    bot.stores = stores
    bot.clock = clock
    bot.award_engine = engine
    bot.award_sync = engine.award
    bot.get_channel = lambda ch_id: None
    return bot


def _make_channel(channel_id: int = 5) -> MagicMock:
    ch = MagicMock(spec=discord.TextChannel)
    ch.id = channel_id
    ch.send = AsyncMock()
    return ch


def _make_message(*, author_id=1, bot=False, guild=True, content="hello") -> MagicMock:
    message = MagicMock()
    message.id = 77
    message.content = content
    message.author.id = author_id
    message.author.bot = bot
    message.author.display_name = "Ada"
    message.author.roles = []
    message.channel = _make_channel()
    if guild:
        message.guild.get_member = lambda user_id: None
    else:
        message.guild = None
    return message


# ---------------------------------------------------------------------------
# Activity
# ---------------------------------------------------------------------------
class TestActivityCog:
    def test_message_awards_xp(self, stores, clock):
        cog = Activity(_make_bot(stores, clock))
        run_async(cog.on_message(_make_message()))
        user = stores.users.get(1)
        assert user.display_name == "Ada"
        assert user.total_xp_earned == 10

    def test_bot_and_dm_messages_ignored(self, stores, clock):
        cog = Activity(_make_bot(stores, clock))
        run_async(cog.on_message(_make_message(bot=True)))
        run_async(cog.on_message(_make_message(guild=False)))
        assert stores.users.get(1) is None

    def test_level_up_announced_in_message_channel(self, stores, clock):
        stores.users.save(UserRecord(id=1, display_name="Ada", xp=95))
        cog = Activity(_make_bot(stores, clock))
        message = _make_message()

        run_async(cog.on_message(message))

        assert stores.users.get(1).level == 2
        message.channel.send.assert_awaited_once()

    def test_store_failure_is_contained(self, stores, clock):
        bot = _make_bot(stores, clock)
        bot.award_sync = MagicMock(side_effect=RuntimeError("boom"))
        run_async(Activity(bot).on_message(_make_message()))


# ---------------------------------------------------------------------------
# Membership & voice
# ---------------------------------------------------------------------------
class TestMembershipCog:
    def test_welcome_bonus_and_join_time(self, stores, clock):
        member = MagicMock()
        member.bot = False
        member.id = 3
        member.display_name = "Newcomer"
        member.joined_at = WEDNESDAY_NOON

        run_async(Membership(_make_bot(stores, clock)).on_member_join(member))

        user = stores.users.get(3)
        assert user.total_xp_earned == 50
        assert user.weekly_xp == 0
        assert user.joined_at == WEDNESDAY_NOON


class TestVoiceCog:
    def test_join_then_leave_awards_minutes(self, stores, clock):
        cog = Voice(_make_bot(stores, clock))
        member = MagicMock()
        member.bot = False
        member.id = 1
        member.display_name = "Ada"
        member.roles = []
        idle = SimpleNamespace(channel=None)
        in_call = SimpleNamespace(channel=SimpleNamespace(id=300))

        run_async(cog.on_voice_state_update(member, idle, in_call))
        for _ in range(10):
            ms.tick_voice(stores, [1])
        run_async(cog.on_voice_state_update(member, in_call, idle))

        assert stores.users.get(1).total_xp_earned == 2


# ---------------------------------------------------------------------------
# Command adapter & admin check
# ---------------------------------------------------------------------------
class TestCommandAdapter:
    def test_member_becomes_ref(self):
        member = MagicMock(spec=discord.Member)
        member.id = 42
        member.display_name = "Ada"
        assert _option_value(member) == MemberRef(42, "Ada")

    def test_role_becomes_id(self):
        role = MagicMock(spec=discord.Role)
        role.id = 9
        assert _option_value(role) == 9

    def test_choice_and_scalars(self):
        assert _option_value(app_commands.Choice(name="Add", value="add")) == "add"
        assert _option_value(5) == 5
        assert _option_value(None) is None


class TestIsAdmin:
    def _bot(self):
        return SimpleNamespace(cfg=SimpleNamespace(admin_role_id=7))

    def test_admin_role(self):
        member = SimpleNamespace(roles=[SimpleNamespace(id=7)], guild_permissions=None)
        assert CadenceBot.is_admin(self._bot(), member)

    def test_administrator_permission(self):
        member = SimpleNamespace(
            roles=[], guild_permissions=SimpleNamespace(administrator=True),
        )
        assert CadenceBot.is_admin(self._bot(), member)

    def test_regular_member_and_plain_user(self):
        member = SimpleNamespace(
            roles=[SimpleNamespace(id=1)], guild_permissions=SimpleNamespace(administrator=False),
        )
        assert not CadenceBot.is_admin(self._bot(), member)
        assert not CadenceBot.is_admin(self._bot(), SimpleNamespace())
