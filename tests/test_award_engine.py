"""
tests/test_award_engine.py — XP Award Pipeline
===============================================

Drives :class:`AwardEngine` end to end against both storage backends
with a frozen clock and a low-end RNG (every message rolls 10 XP).
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from cadence.constants import required_xp
from cadence.engine.activity import ActivitySignal, ActivitySource
from cadence.engine.award import AwardEngine, AwardStatus
from cadence.stores.base import Challenge, Mentorship, UserRecord
from conftest import LowRng


def _engine(stores, clock) -> AwardEngine:
    return AwardEngine(stores, clock, rng=LowRng())


def _message(user_id=1, *, text="hi", channel_id=None, at=None, roles=()) -> ActivitySignal:
    return ActivitySignal(
        user_id=user_id,
        display_name=f"user{user_id}",
        source=ActivitySource.MESSAGE,
        channel_id=channel_id,
        text=text,
        role_ids=roles,
        timestamp=at,
    )


# ---------------------------------------------------------------------------
# Creation & leveling
# ---------------------------------------------------------------------------
class TestCreateAndLevel:
    def test_first_message_creates_user(self, stores, clock, today):
        outcome = _engine(stores, clock).award(_message())

        assert outcome.status == AwardStatus.AWARDED
        assert outcome.created
        assert outcome.granted_xp == 10
        user = stores.users.get(1)
        assert (user.xp, user.level, user.total_xp_earned) == (10, 1, 10)
        assert (user.weekly_xp, user.monthly_xp, user.today_xp) == (10, 10, 10)
        assert user.today_date == today
        assert user.streak == 1
        assert user.last_active_date == today
        assert user.last_message_time == clock.now()

    def test_level_up_carries_remainder(self, stores, clock):
        stores.users.save(UserRecord(id=1, display_name="a", level=2, xp=215, total_xp_earned=535))

        outcome = _engine(stores, clock).award(_message())

        assert outcome.leveled_up
        assert (outcome.new_level, outcome.new_xp, outcome.previous_level) == (3, 5, 2)
        assert outcome.level_up.new_level == 3
        assert outcome.level_up.total_xp_earned == 545
        user = stores.users.get(1)
        assert (user.level, user.xp, user.total_xp_earned) == (3, 5, 545)

    def test_no_level_up_below_threshold(self, stores, clock):
        stores.users.save(UserRecord(id=1, display_name="a", xp=20))
        outcome = _engine(stores, clock).award(_message())
        assert not outcome.leveled_up
        assert outcome.level_up is None
        assert stores.users.get(1).xp == 30


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------
class TestEligibility:
    def test_blacklisted_channel_rejected_without_record(self, stores, clock):
        stores.blacklist.add(7)
        outcome = _engine(stores, clock).award(_message(channel_id=7))
        assert outcome.status == AwardStatus.REJECTED_BLACKLIST
        assert not outcome.accepted
        assert stores.users.get(1) is None

    def test_cooldown(self, stores, clock):
        engine = _engine(stores, clock)
        start = clock.now()
        engine.award(_message(at=start))

        early = engine.award(_message(at=start + timedelta(seconds=30)))
        assert early.status == AwardStatus.REJECTED_COOLDOWN
        assert early.granted_xp == 0
        assert stores.users.get(1).total_xp_earned == 10

        later = engine.award(_message(at=start + timedelta(seconds=61)))
        assert later.status == AwardStatus.AWARDED
        assert stores.users.get(1).total_xp_earned == 20

    def test_cooldown_reads_config(self, stores, clock):
        stores.config.set("cooldown", 0)
        engine = _engine(stores, clock)
        engine.award(_message())
        assert engine.award(_message()).accepted

    def test_cooldown_only_gates_messages(self, stores, clock):
        engine = _engine(stores, clock)
        engine.award(_message())
        reaction = ActivitySignal(user_id=1, display_name="a", source=ActivitySource.REACTION)
        assert engine.award(reaction).status == AwardStatus.AWARDED


# ---------------------------------------------------------------------------
# Bonuses
# ---------------------------------------------------------------------------
class TestBonuses:
    def test_length_factor_and_multiplier_floor(self, stores, clock):
        stores.config.set("multiplier", 1.5)
        outcome = _engine(stores, clock).award(_message(text="x" * 30))
        # (10 × 1.2) × 1.5
        assert outcome.granted_xp == 18

    def test_fractional_result_is_floored(self, stores, clock):
        stores.config.set("multiplier", 1.25)
        assert _engine(stores, clock).award(_message()).granted_xp == 12

    def test_link_bonus(self, stores, clock):
        outcome = _engine(stores, clock).award(_message(text="https://a.io"))
        assert outcome.granted_xp == 13

    def test_first_message_in_new_channel(self, stores, clock):
        engine = _engine(stores, clock)
        start = clock.now()
        assert engine.award(_message(channel_id=5, at=start)).granted_xp == 10
        assert engine.award(_message(channel_id=6, at=start + timedelta(seconds=61))).granted_xp == 15
        assert engine.award(_message(channel_id=6, at=start + timedelta(seconds=122))).granted_xp == 10

    def test_daily_bonus_once_per_day(self, stores, clock, today):
        stores.config.set("daily_bonus", 20)
        stores.users.save(UserRecord(
            id=1, display_name="a", last_daily_bonus_date=today - timedelta(days=1),
        ))
        engine = _engine(stores, clock)
        start = clock.now()
        assert engine.award(_message(at=start)).granted_xp == 30
        assert engine.award(_message(at=start + timedelta(seconds=61))).granted_xp == 10
        assert stores.users.get(1).last_daily_bonus_date == today

    def test_streak_bonus(self, stores, clock, today):
        stores.users.save(UserRecord(
            id=1, display_name="a", streak=6, last_active_date=today - timedelta(days=1),
        ))
        outcome = _engine(stores, clock).award(_message())
        assert outcome.granted_xp == 12
        assert stores.users.get(1).streak == 7

    def test_streak_resets_after_gap(self, stores, clock, today):
        stores.users.save(UserRecord(
            id=1, display_name="a", streak=20, last_active_date=today - timedelta(days=3),
        ))
        _engine(stores, clock).award(_message())
        assert stores.users.get(1).streak == 1

    def test_role_multiplier_applies(self, stores, clock):
        stores.role_multipliers.put(99, 2.0)
        assert _engine(stores, clock).award(_message(roles=(99,))).granted_xp == 20


# ---------------------------------------------------------------------------
# Daily cap
# ---------------------------------------------------------------------------
class TestDailyCap:
    def _capped_user(self, stores, today, *, today_xp=90, today_date=None):
        stores.config.set("daily_xp_cap", 100)
        stores.users.save(UserRecord(
            id=1, display_name="a", today_xp=today_xp, today_date=today_date or today,
            streak=1, last_active_date=today,
        ))

    def _reaction(self, amount=50):
        return ActivitySignal(
            user_id=1, display_name="a", source=ActivitySource.REACTION, amount=amount,
        )

    def test_award_clipped_to_headroom(self, stores, clock, today):
        self._capped_user(stores, today)
        outcome = _engine(stores, clock).award(self._reaction())

        assert outcome.status == AwardStatus.CAPPED
        assert outcome.capped and outcome.accepted
        assert outcome.granted_xp == 10
        user = stores.users.get(1)
        assert user.today_xp == 100
        assert user.weekly_xp == 10

    def test_exhausted_cap_grants_nothing(self, stores, clock, today):
        self._capped_user(stores, today)
        engine = _engine(stores, clock)
        engine.award(self._reaction())

        again = engine.award(self._reaction())
        assert again.status == AwardStatus.CAPPED
        assert again.granted_xp == 0
        assert stores.users.get(1).total_xp_earned == 10

    def test_stale_today_counts_as_zero(self, stores, clock, today):
        self._capped_user(stores, today, today_date=today - timedelta(days=1))
        outcome = _engine(stores, clock).award(self._reaction())
        assert outcome.status == AwardStatus.AWARDED
        user = stores.users.get(1)
        assert user.today_xp == 50
        assert user.today_date == today

    def test_zero_cap_means_unlimited(self, stores, clock, today):
        self._capped_user(stores, today)
        stores.config.set("daily_xp_cap", 0)
        assert _engine(stores, clock).award(self._reaction(500)).granted_xp == 500

    def test_invites_are_not_capped(self, stores, clock, today):
        self._capped_user(stores, today)
        invite = ActivitySignal(user_id=1, display_name="a", source=ActivitySource.INVITE, amount=75)
        outcome = _engine(stores, clock).award(invite)
        assert outcome.status == AwardStatus.AWARDED
        assert outcome.granted_xp == 75


# ---------------------------------------------------------------------------
# Source policies
# ---------------------------------------------------------------------------
class TestSourcePolicies:
    def test_welcome_skips_period_counters(self, stores, clock):
        stores.users.save(UserRecord(id=1, display_name="a"))
        welcome = ActivitySignal(user_id=1, display_name="a", source=ActivitySource.WELCOME)
        outcome = _engine(stores, clock).award(welcome)
        user = stores.users.get(1)
        assert outcome.granted_xp == 50
        assert user.total_xp_earned == 50
        assert user.weekly_xp == 0
        assert user.streak == 0

    def test_voice_minutes(self, stores, clock):
        stores.voice_multipliers.put(300, 2.0)
        voice = ActivitySignal(
            user_id=1, display_name="a", source=ActivitySource.VOICE,
            voice_minutes=27, channel_id=300,
        )
        assert _engine(stores, clock).award(voice).granted_xp == 10


# ---------------------------------------------------------------------------
# Follow-up awards
# ---------------------------------------------------------------------------
class TestFollowUps:
    def test_mentor_share(self, stores, clock):
        stores.users.save(UserRecord(id=2, display_name="mentor"))
        stores.mentors.add(Mentorship(mentor_id=2, mentee_id=1, bonus=0.2))

        outcome = _engine(stores, clock).award(_message())

        assert len(outcome.follow_ups) == 1
        share = outcome.follow_ups[0]
        assert (share.user_id, share.granted_xp) == (2, 2)
        mentor = stores.users.get(2)
        assert mentor.total_xp_earned == 2
        assert mentor.weekly_xp == 0

    def test_mentor_share_does_not_cascade(self, stores, clock):
        stores.users.save(UserRecord(id=2, display_name="m"))
        stores.users.save(UserRecord(id=3, display_name="grand"))
        stores.mentors.add(Mentorship(mentor_id=2, mentee_id=1, bonus=0.5))
        stores.mentors.add(Mentorship(mentor_id=3, mentee_id=2, bonus=0.5))

        _engine(stores, clock).award(_message())

        assert stores.users.get(2).total_xp_earned == 5
        assert stores.users.get(3).total_xp_earned == 0

    def test_anniversary_once_per_year(self, stores, clock):
        stores.users.save(UserRecord(
            id=1, display_name="a", xp=80,
            joined_at=datetime(2024, 10, 14, 9, 0, tzinfo=UTC),
        ))
        engine = _engine(stores, clock)
        start = clock.now()

        first = engine.award(_message(at=start))
        anniversary = [f for f in first.follow_ups if f.granted_xp == 100]
        assert len(anniversary) == 1
        # 80 + 10 + 100 crosses 100 inside the follow-up
        assert [s.new_level for s in first.level_ups()] == [2]
        assert stores.users.get(1).last_anniversary_year == 2026

        second = engine.award(_message(at=start + timedelta(seconds=61)))
        assert second.follow_ups == []

    def test_not_an_anniversary_in_join_year(self, stores, clock):
        stores.users.save(UserRecord(
            id=1, display_name="a", joined_at=datetime(2026, 10, 14, 8, 0, tzinfo=UTC),
        ))
        assert _engine(stores, clock).award(_message()).follow_ups == []

    def test_challenge_completion_pays_once(self, stores, clock):
        stores.challenges.put(Challenge(
            id="duo", name="Duo", description="", metric="messages", target=2, xp_reward=30,
        ))
        engine = _engine(stores, clock)
        start = clock.now()

        assert engine.award(_message(at=start)).follow_ups == []
        second = engine.award(_message(at=start + timedelta(seconds=61)))
        assert [f.granted_xp for f in second.follow_ups] == [30]
        third = engine.award(_message(at=start + timedelta(seconds=122)))
        assert third.follow_ups == []

        user = stores.users.get(1)
        assert user.total_xp_earned == 60
        assert user.weekly_xp == 60

    def test_rejected_award_has_no_follow_ups(self, stores, clock):
        stores.blacklist.add(7)
        stores.mentors.add(Mentorship(mentor_id=2, mentee_id=1))
        outcome = _engine(stores, clock).award(_message(channel_id=7))
        assert outcome.follow_ups == []
        assert stores.users.get(2) is None


@pytest.mark.parametrize("source", [ActivitySource.MESSAGE, ActivitySource.REACTION])
def test_level_invariant_after_settle(stores, clock, source):
    stores.config.set("cooldown", 0)
    engine = _engine(stores, clock)
    for _ in range(30):
        outcome = engine.award(ActivitySignal(
            user_id=1, display_name="a", source=source, amount=25,
        ))
        if not outcome.created:
            assert 0 <= outcome.new_xp < required_xp(outcome.new_level)
