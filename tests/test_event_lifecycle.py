"""
tests/test_event_lifecycle.py — XP event state machine
=======================================================
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from cadence.engine.event_lifecycle import EventManager
from cadence.errors import InvalidEventCreate


@pytest.fixture
def manager(stores, clock) -> EventManager:
    return EventManager(stores, clock)


class TestCreate:
    def test_creates_running_event(self, manager, clock):
        event = manager.create("Double XP", 2, creator_id=9, multiplier=2.0)

        assert event.id is not None
        assert event.active
        assert event.end_time - event.start_time == timedelta(hours=2)
        running = manager.running()
        assert running is not None
        assert (running.name, running.multiplier) == ("Double XP", 2.0)

    def test_name_is_stripped(self, manager):
        assert manager.create("  Spooky  ", 1, creator_id=9).name == "Spooky"

    @pytest.mark.parametrize("kwargs", [
        {"name": "", "hours": 1},
        {"name": "x" * 101, "hours": 1},
        {"name": "ok", "hours": 0},
        {"name": "ok", "hours": 169},
        {"name": "ok", "hours": 1, "multiplier": 1.0},
        {"name": "ok", "hours": 1, "multiplier": 10.5},
    ])
    def test_rejects_out_of_range(self, manager, kwargs):
        with pytest.raises(ValueError):
            manager.create(creator_id=9, **kwargs)
        assert manager.running() is None

    def test_single_active_event(self, manager):
        manager.create("First", 4, creator_id=9)
        with pytest.raises(InvalidEventCreate) as excinfo:
            manager.create("Second", 1, creator_id=9)
        assert excinfo.value.active_name == "First"
        assert manager.running().name == "First"

    def test_overdue_event_does_not_block_create(self, manager, clock):
        start = clock.now()
        manager.create("Old", 1, creator_id=9)
        clock.set(start + timedelta(hours=2))

        fresh = manager.create("New", 1, creator_id=9)

        assert manager.running().id == fresh.id
        history = manager.history()
        assert [e.name for e in history] == ["New", "Old"]
        assert not history[1].active
        assert history[1].ended_at is not None


class TestEndAndExpire:
    def test_end_returns_ended_event(self, manager):
        created = manager.create("Double", 1, creator_id=9)
        ended = manager.end()
        assert ended.id == created.id
        assert not ended.active
        assert ended.ended_at is not None
        assert manager.running() is None

    def test_end_without_event(self, manager):
        assert manager.end() is None

    def test_end_is_idempotent(self, manager):
        manager.create("Double", 1, creator_id=9)
        assert manager.end() is not None
        assert manager.end() is None

    def test_running_false_past_end_time(self, manager, clock):
        start = clock.now()
        manager.create("Double", 1, creator_id=9)
        clock.set(start + timedelta(hours=1))
        assert manager.running() is None

    def test_expire_due_once(self, manager, clock):
        start = clock.now()
        manager.create("Double", 1, creator_id=9)
        assert manager.expire_due() == []

        clock.set(start + timedelta(hours=1, minutes=1))
        expired = manager.expire_due()
        assert [e.name for e in expired] == ["Double"]
        assert manager.expire_due() == []

    def test_admin_end_then_expiry_race(self, manager, clock):
        start = clock.now()
        manager.create("Double", 1, creator_id=9)
        clock.set(start + timedelta(hours=2))
        assert manager.end() is not None
        assert manager.expire_due() == []
