"""
tests/test_maintenance.py — Scheduled jobs and voice presence
==============================================================
"""

from __future__ import annotations

from datetime import date, timedelta

from cadence.engine.award import AwardEngine
from cadence.engine.event_lifecycle import EventManager
from cadence.services import maintenance_service as ms
from cadence.stores.base import UserRecord
from conftest import LowRng

MONDAY = date(2026, 10, 19)
WEDNESDAY = date(2026, 10, 14)


def _user(stores, user_id=1, **fields):
    stores.users.save(UserRecord(id=user_id, display_name=f"user{user_id}", **fields))


# ---------------------------------------------------------------------------
# Period resets
# ---------------------------------------------------------------------------
class TestDailyReset:
    def test_zeroes_today_then_guards(self, stores):
        _user(stores, today_xp=40, weekly_xp=40)
        assert ms.run_daily_reset(stores, WEDNESDAY) is not None
        user = stores.users.get(1)
        assert user.today_xp == 0
        assert user.weekly_xp == 40
        assert stores.scheduler.get_marker(ms.JOB_DAILY) == WEDNESDAY

        stores.users.update(1, today_xp=15)
        assert ms.run_daily_reset(stores, WEDNESDAY) is None
        assert stores.users.get(1).today_xp == 15


class TestWeeklyReset:
    def test_fresh_deployment_mid_week_only_records_marker(self, stores):
        _user(stores, weekly_xp=70)
        assert ms.run_weekly_reset(stores, WEDNESDAY) is None
        assert stores.users.get(1).weekly_xp == 70
        assert stores.scheduler.get_marker(ms.JOB_WEEKLY) == WEDNESDAY

    def test_fires_on_monday(self, stores):
        _user(stores, weekly_xp=70)
        ms.run_weekly_reset(stores, WEDNESDAY)
        assert ms.run_weekly_reset(stores, MONDAY) is not None
        assert stores.users.get(1).weekly_xp == 0
        assert ms.run_weekly_reset(stores, MONDAY) is None

    def test_fresh_deployment_on_monday_fires(self, stores):
        _user(stores, weekly_xp=70)
        assert ms.run_weekly_reset(stores, MONDAY) is not None
        assert stores.users.get(1).weekly_xp == 0

    def test_catches_up_after_downtime(self, stores):
        _user(stores, weekly_xp=70)
        stores.scheduler.set_marker(ms.JOB_WEEKLY, date(2026, 10, 10))
        assert ms.run_weekly_reset(stores, WEDNESDAY) is not None
        assert stores.users.get(1).weekly_xp == 0


class TestMonthlyReset:
    def test_first_of_month(self, stores):
        _user(stores, monthly_xp=300, today_xp=20)
        first = date(2026, 11, 1)
        assert ms.run_monthly_reset(stores, first) is not None
        user = stores.users.get(1)
        assert (user.monthly_xp, user.today_xp) == (0, 0)
        assert ms.run_monthly_reset(stores, first + timedelta(days=1)) is None

    def test_mid_month_without_marker(self, stores):
        _user(stores, monthly_xp=300)
        assert ms.run_monthly_reset(stores, WEDNESDAY) is None
        assert stores.users.get(1).monthly_xp == 300


# ---------------------------------------------------------------------------
# Decay
# ---------------------------------------------------------------------------
class TestDecay:
    def test_decayed_xp_floors(self):
        assert ms.decayed_xp(1000) == 950
        assert ms.decayed_xp(15) == 14

    def test_inactive_members_decay_once_a_day(self, stores):
        _user(stores, 1, xp=1000, level=9, total_xp_earned=9000,
              last_active_date=date(2026, 9, 1))
        _user(stores, 2, xp=1000, last_active_date=date(2026, 10, 10))
        _user(stores, 3, xp=1000)

        assert ms.run_decay(stores, WEDNESDAY) == 1
        dormant = stores.users.get(1)
        assert dormant.xp == 950
        assert (dormant.level, dormant.total_xp_earned) == (9, 9000)
        assert stores.users.get(2).xp == 1000
        assert stores.users.get(3).xp == 1000

        assert ms.run_decay(stores, WEDNESDAY) is None
        assert stores.users.get(1).xp == 950

    def test_next_day_decays_again(self, stores):
        _user(stores, xp=1000, last_active_date=date(2026, 9, 1))
        ms.run_decay(stores, WEDNESDAY)
        ms.run_decay(stores, WEDNESDAY + timedelta(days=1))
        assert stores.users.get(1).xp == 902


class TestRunDueJobs:
    def test_summary_has_every_job(self, stores, clock):
        _user(stores, today_xp=5)
        summary = ms.run_due_jobs(stores, clock)
        assert set(summary) == {ms.JOB_DAILY, ms.JOB_WEEKLY, ms.JOB_MONTHLY, ms.JOB_DECAY}
        assert summary[ms.JOB_DAILY] is not None
        assert summary[ms.JOB_WEEKLY] is None

    def test_event_expiry(self, stores, clock):
        start = clock.now()
        EventManager(stores, clock).create("Double", 1, creator_id=9)
        clock.set(start + timedelta(hours=3))
        assert [e.name for e in ms.run_event_expiry(stores, clock)] == ["Double"]
        assert ms.run_event_expiry(stores, clock) == []


# ---------------------------------------------------------------------------
# Voice presence
# ---------------------------------------------------------------------------
class TestVoice:
    def test_join_tick_leave(self, stores, clock):
        engine = AwardEngine(stores, clock, rng=LowRng())
        ms.start_voice_session(stores, 1, "caller")
        assert stores.users.get(1).voice_time == 0

        for _ in range(12):
            ms.tick_voice(stores, [1])
        assert stores.users.get(1).voice_time == 12

        outcome = ms.end_voice_session(engine, 1, "caller", channel_id=None)
        assert outcome.granted_xp == 2
        assert stores.users.get(1).total_xp_earned == 2

    def test_paid_minutes_not_paid_again_without_connect(self, stores, clock):
        engine = AwardEngine(stores, clock, rng=LowRng())
        ms.start_voice_session(stores, 1, "caller")
        for _ in range(10):
            ms.tick_voice(stores, [1])
        assert ms.end_voice_session(engine, 1, "caller", channel_id=None).granted_xp == 2
        assert stores.users.get(1).voice_time == 0

        # Already in voice when the bot restarts: ticks without a connect
        for _ in range(5):
            ms.tick_voice(stores, [1])
        assert ms.end_voice_session(engine, 1, "caller", channel_id=None).granted_xp == 1
        user = stores.users.get(1)
        assert user.voice_time == 0
        assert user.total_xp_earned == 3

    def test_rejoin_resets_counter(self, stores):
        _user(stores, voice_time=40, xp=10)
        ms.start_voice_session(stores, 1, "caller")
        user = stores.users.get(1)
        assert user.voice_time == 0
        assert user.xp == 10

    def test_leave_without_minutes(self, stores, clock):
        engine = AwardEngine(stores, clock, rng=LowRng())
        assert ms.end_voice_session(engine, 1, "ghost", channel_id=None) is None
        ms.start_voice_session(stores, 1, "ghost")
        assert ms.end_voice_session(engine, 1, "ghost", channel_id=None) is None

    def test_tick_ignores_unknown_and_empty(self, stores):
        assert ms.tick_voice(stores, []) == 0
        _user(stores)
        assert ms.tick_voice(stores, [1, 404]) == 1
