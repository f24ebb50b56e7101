"""
tests/test_multipliers.py — Multiplier Resolver
================================================

Each factor is exercised in isolation, then in combination, against
both storage backends.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from itertools import permutations

import pytest

from cadence.engine.multipliers import Factor, MultiplierResolver, compose, is_birthday
from cadence.stores.base import Birthday, Event, QuietHours, UserRecord
from conftest import WEDNESDAY_NOON, FixedClock

SATURDAY_NOON = datetime(2026, 10, 17, 12, 0, tzinfo=UTC)


def _factor(breakdown: list[Factor], name: str) -> float:
    return next(f.value for f in breakdown if f.name == name)


class TestCompose:
    def test_empty_is_identity(self):
        assert compose([]) == 1.0

    def test_mixed_factors_and_floats(self):
        assert compose([Factor("a", 2.0), 1.5, Factor("b", 0.5)]) == pytest.approx(1.5)

    @pytest.mark.parametrize("order", list(permutations([2.0, 1.5, 1.0])))
    def test_order_independent(self, order):
        assert compose(order) == pytest.approx(3.0)
        assert compose([Factor(str(i), v) for i, v in enumerate(order)]) == pytest.approx(3.0)


class TestBirthday:
    def test_exact_match(self):
        assert is_birthday(Birthday(1, 10, 14), WEDNESDAY_NOON)

    def test_leap_day_on_common_year(self):
        assert is_birthday(Birthday(1, 2, 29), datetime(2027, 2, 28, tzinfo=UTC))

    def test_leap_day_not_doubled_in_leap_year(self):
        assert not is_birthday(Birthday(1, 2, 29), datetime(2028, 2, 28, tzinfo=UTC))


class TestResolver:
    def test_neutral_is_one(self, stores, clock):
        assert MultiplierResolver(stores, clock).resolve(1) == 1.0

    def test_server_multiplier(self, stores, clock):
        stores.config.set("multiplier", 1.5)
        assert MultiplierResolver(stores, clock).resolve(1) == pytest.approx(1.5)

    def test_weekend(self, stores):
        resolver = MultiplierResolver(stores, FixedClock(SATURDAY_NOON))
        assert resolver.resolve(1) == pytest.approx(2.0)

    def test_weekend_uses_deployment_timezone(self, stores):
        # Friday 23:00 UTC is already Saturday in Tokyo
        friday_late = datetime(2026, 10, 16, 23, 0, tzinfo=UTC)
        assert MultiplierResolver(stores, FixedClock(friday_late)).resolve(1) == 1.0
        tokyo = FixedClock(friday_late, timezone="Asia/Tokyo")
        assert MultiplierResolver(stores, tokyo).resolve(1) == pytest.approx(2.0)

    def test_running_event_only(self, stores, clock):
        now = clock.now()
        stores.events.create(Event(
            name="Double", multiplier=3.0, start_time=now - timedelta(hours=1),
            end_time=now + timedelta(hours=1), creator_id=9,
        ))
        assert MultiplierResolver(stores, clock).resolve(1) == pytest.approx(3.0)

        clock.set(now + timedelta(hours=2))
        assert MultiplierResolver(stores, clock).resolve(1) == 1.0

    def test_vip_until_in_future(self, stores, clock):
        user = UserRecord(id=1, display_name="a", vip_until=clock.now() + timedelta(days=1))
        resolver = MultiplierResolver(stores, clock)
        assert resolver.resolve(1, user=user) == pytest.approx(1.5)
        expired = UserRecord(id=1, display_name="a", vip_until=clock.now() - timedelta(seconds=1))
        assert resolver.resolve(1, user=expired) == 1.0

    def test_roles_compose_multiplicatively(self, stores, clock):
        stores.role_multipliers.put(10, 1.5)
        stores.role_multipliers.put(11, 2.0)
        resolver = MultiplierResolver(stores, clock)
        assert resolver.resolve(1, role_ids=(10, 11, 12)) == pytest.approx(3.0)
        assert resolver.resolve(1, role_ids=(12,)) == 1.0

    @pytest.mark.parametrize("role_ids", list(permutations((10, 11, 12))))
    def test_role_order_does_not_matter(self, stores, clock, role_ids):
        stores.role_multipliers.put(10, 2.0)
        stores.role_multipliers.put(11, 1.5)
        stores.role_multipliers.put(12, 1.0)
        assert MultiplierResolver(stores, clock).resolve(1, role_ids=role_ids) == pytest.approx(3.0)

    def test_voice_channel(self, stores, clock):
        stores.voice_multipliers.put(500, 1.25)
        resolver = MultiplierResolver(stores, clock)
        assert resolver.resolve(1, channel_id=500) == pytest.approx(1.25)
        assert resolver.resolve(1, channel_id=501) == 1.0

    def test_quiet_hours_wrap_midnight(self, stores):
        stores.quiet_hours.set(QuietHours(start_hour=22, end_hour=6, multiplier=0.5))
        night = FixedClock(datetime(2026, 10, 14, 2, 0, tzinfo=UTC))
        assert MultiplierResolver(stores, night).resolve(1) == pytest.approx(0.5)
        assert MultiplierResolver(stores, FixedClock()).resolve(1) == 1.0

    def test_birthday(self, stores, clock):
        stores.birthdays.set(Birthday(user_id=1, month=10, day=14))
        assert MultiplierResolver(stores, clock).resolve(1) == pytest.approx(2.0)
        assert MultiplierResolver(stores, clock).resolve(2) == 1.0

    def test_welcome_window(self, stores, clock):
        stores.config.set("welcome_days", 7)
        fresh = UserRecord(id=1, display_name="a", joined_at=clock.now() - timedelta(days=2))
        old = UserRecord(id=1, display_name="a", joined_at=clock.now() - timedelta(days=8))
        resolver = MultiplierResolver(stores, clock)
        assert resolver.resolve(1, user=fresh) == pytest.approx(1.5)
        assert resolver.resolve(1, user=old) == 1.0

    def test_breakdown_order_and_product(self, stores):
        stores.config.set("multiplier", 2.0)
        stores.role_multipliers.put(10, 1.5)
        resolver = MultiplierResolver(stores, FixedClock(SATURDAY_NOON))
        breakdown = resolver.breakdown(1, role_ids=(10,))
        assert [f.name for f in breakdown] == [
            "server", "weekend", "event", "vip", "roles",
            "voice_channel", "quiet_hours", "birthday", "welcome",
        ]
        assert _factor(breakdown, "roles") == pytest.approx(1.5)
        assert compose(breakdown) == pytest.approx(2.0 * 2.0 * 1.5)
