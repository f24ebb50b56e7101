"""
tests/test_announcements.py — Unit Tests for Announcement Service
==================================================================

Tests role selection, channel resolution, embed builders, DM gating
with channel fallback, and event notices.
"""

from __future__ import annotations

from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from cadence.engine.award import LevelUpSignal
from cadence.errors import NotificationDeliveryFailure
from cadence.services.announcement_service import (
    _send_dm,
    _send_embed,
    announce_event_ended,
    announce_event_started,
    announce_level_up,
    apply_level_roles,
    resolve_announce_channel,
    roles_for_level,
)
from cadence.services.commands import EmbedSpec
from cadence.services.embeds import build_level_up_embed, to_discord
from cadence.stores.base import Event, UserRecord
from conftest import WEDNESDAY_NOON, run_async


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _make_bot(
    stores,
    *,
    config_ch_id: int | None = None,
    channels: dict[int, object] | None = None,
) -> MagicMock:
    """Create a lightweight mock CadenceBot."""
    bot = MagicMock()
    bot.cfg = SimpleNamespace(announce_channel_id=config_ch_id)
    bot.stores = stores

    def _get_channel(ch_id):
        if channels and ch_id in channels:
            return channels[ch_id]
        return None

    bot.get_channel = _get_channel
    return bot


def _make_messageable(channel_id: int = 100) -> MagicMock:
    """Create a mock Messageable channel."""
    ch = MagicMock(spec=discord.TextChannel)
    ch.id = channel_id
    ch.send = AsyncMock()
    return ch


def _make_member(user_id: int = 1, *, held: tuple[int, ...] = (), guild_roles=()) -> MagicMock:
    member = MagicMock()
    member.id = user_id
    member.display_name = "Ada"
    member.display_avatar.url = "https://cdn.example/avatar.png"
    member.roles = [SimpleNamespace(id=rid) for rid in held]
    roles = {rid: SimpleNamespace(id=rid) for rid in guild_roles}
    member.guild.get_role = lambda rid: roles.get(rid)
    member.add_roles = AsyncMock()
    member.send = AsyncMock()
    return member


def _forbidden() -> discord.Forbidden:
    return discord.Forbidden(MagicMock(status=403, reason="Forbidden"), "Cannot send messages to this user")


SIGNAL = LevelUpSignal(user_id=1, display_name="Ada", new_level=5, total_xp_earned=900)


# ---------------------------------------------------------------------------
# Role selection
# ---------------------------------------------------------------------------
class TestRolesForLevel:

    def test_reward_and_milestones(self, stores):
        stores.rewards.put(5, 500)
        stores.rewards.put(6, 600)
        stores.milestones.put(3, 300)
        stores.milestones.put(10, 1000)
        assert roles_for_level(stores, 5) == [500, 300]

    def test_held_roles_skipped(self, stores):
        stores.rewards.put(5, 500)
        stores.milestones.put(3, 300)
        assert roles_for_level(stores, 5, held=[300]) == [500]

    def test_duplicate_role_listed_once(self, stores):
        stores.rewards.put(5, 500)
        stores.milestones.put(5, 500)
        assert roles_for_level(stores, 5) == [500]

    def test_apply_level_roles(self, stores):
        stores.rewards.put(5, 500)
        stores.milestones.put(3, 300)
        member = _make_member(held=(300,), guild_roles=(300, 500))

        added = run_async(apply_level_roles(member, stores, 5))

        assert added == [500]
        member.add_roles.assert_awaited_once()

    def test_apply_level_roles_nothing_to_do(self, stores):
        member = _make_member()
        assert run_async(apply_level_roles(member, stores, 5)) == []
        member.add_roles.assert_not_awaited()


# ---------------------------------------------------------------------------
# Channel resolution
# ---------------------------------------------------------------------------
class TestResolveAnnounceChannel:

    def test_config_store_channel_first(self, stores):
        stored, yaml_ch = _make_messageable(1), _make_messageable(2)
        bot = _make_bot(stores, config_ch_id=2, channels={1: stored, 2: yaml_ch})
        assert resolve_announce_channel(bot, 1, _make_messageable(3)) is stored

    def test_config_file_second(self, stores):
        yaml_ch = _make_messageable(2)
        bot = _make_bot(stores, config_ch_id=2, channels={2: yaml_ch})
        assert resolve_announce_channel(bot, 999, _make_messageable(3)) is yaml_ch

    def test_fallback_last(self, stores):
        fallback = _make_messageable(3)
        assert resolve_announce_channel(_make_bot(stores), None, fallback) is fallback

    def test_returns_none_when_nothing_available(self, stores):
        assert resolve_announce_channel(_make_bot(stores), None, None) is None


# ---------------------------------------------------------------------------
# Embeds
# ---------------------------------------------------------------------------
class TestEmbedBuilders:

    def test_level_up_embed_uses_template(self):
        embed = build_level_up_embed(
            42, "Ada", 7, template="{mention} reached {level}", banner="https://img/b.png",
        )
        assert embed.description == "<@42> reached 7"
        assert embed.image.url == "https://img/b.png"

    def test_level_up_embed_defaults(self):
        embed = build_level_up_embed(42, "Ada", 7)
        assert embed.description == "Ada has reached level 7!"
        assert embed.image.url

    def test_to_discord(self):
        spec = EmbedSpec(title="T", description="D", footer="F").add_field("a", "1", False)
        embed = to_discord(spec)
        assert (embed.title, embed.description, embed.footer.text) == ("T", "D", "F")
        assert embed.fields[0].name == "a"
        assert embed.fields[0].inline is False


class TestSendEmbed:

    def test_send_embed_none_channel_noop(self):
        assert run_async(_send_embed(None, discord.Embed(title="x"))) is False

    def test_send_embed_http_failure_logged(self):
        ch = _make_messageable()
        ch.send.side_effect = _forbidden()
        assert run_async(_send_embed(ch, discord.Embed(title="x"))) is False

    def test_send_dm_wraps_discord_error(self):
        member = _make_member()
        member.send.side_effect = _forbidden()
        with pytest.raises(NotificationDeliveryFailure) as excinfo:
            run_async(_send_dm(member, discord.Embed(title="x")))
        assert isinstance(excinfo.value.__cause__, discord.Forbidden)


# ---------------------------------------------------------------------------
# Level-up delivery
# ---------------------------------------------------------------------------
class TestAnnounceLevelUp:

    def test_channel_announcement_by_default(self, stores):
        ch = _make_messageable(100)
        stores.config.set("announcement_channel", 100)
        bot = _make_bot(stores, channels={100: ch})

        assert run_async(announce_level_up(bot, SIGNAL, member=_make_member()))
        ch.send.assert_awaited_once()

    def test_dm_when_opted_in(self, stores):
        stores.users.save(UserRecord(id=1, display_name="Ada", dm_notifications=True))
        ch = _make_messageable(100)
        member = _make_member()
        bot = _make_bot(stores)

        assert run_async(announce_level_up(bot, SIGNAL, member=member, fallback_channel=ch))
        member.send.assert_awaited_once()
        ch.send.assert_not_awaited()

    def test_dm_failure_falls_back_to_channel(self, stores):
        stores.users.save(UserRecord(id=1, display_name="Ada", dm_notifications=True))
        ch = _make_messageable(100)
        member = _make_member()
        member.send.side_effect = _forbidden()
        bot = _make_bot(stores)

        assert run_async(announce_level_up(bot, SIGNAL, member=member, fallback_channel=ch))
        ch.send.assert_awaited_once()

    def test_grants_roles(self, stores):
        stores.rewards.put(5, 500)
        member = _make_member(guild_roles=(500,))
        run_async(announce_level_up(_make_bot(stores), SIGNAL, member=member))
        member.add_roles.assert_awaited_once()

    def test_no_channel_means_no_announcement(self, stores):
        assert run_async(announce_level_up(_make_bot(stores), SIGNAL)) is False


class TestEventNotices:

    def _event(self):
        return Event(
            name="Spooky", multiplier=2.0, start_time=WEDNESDAY_NOON,
            end_time=WEDNESDAY_NOON + timedelta(hours=2), creator_id=9, id=1,
        )

    def test_started(self, stores):
        ch = _make_messageable()
        assert run_async(announce_event_started(_make_bot(stores), self._event(), ch))
        embed = ch.send.await_args.kwargs["embed"]
        assert embed.title == "\U0001f389 Spooky has started!"

    def test_ended(self, stores):
        ch = _make_messageable()
        assert run_async(announce_event_ended(_make_bot(stores), self._event(), ch))
        assert "Spooky" in ch.send.await_args.kwargs["embed"].title
