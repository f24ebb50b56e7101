"""
cadence.engine.award — XP Award Pipeline
=========================================

Deterministic pipeline turning one :class:`ActivitySignal` into updated
user state plus a leveling outcome.  No Discord I/O; all state goes
through the :class:`~cadence.stores.base.Stores` bundle.

Pipeline stages:
  Eligibility → Base → Content → Streak → Length (+ flat bonuses)
              → Multiplier stack → Daily cap → Level settle → Persist

Follow-up awards (mentor shares, join anniversaries, challenge rewards)
run through the same pipeline after the primary award has been written.

Concurrency: xp/level are read-then-written; a scheduler job running
between the read and the write can be overwritten for those two fields.
Lifetime and rolling counters are applied with atomic increments.
"""

from __future__ import annotations

import enum
import logging
import math
import random
from dataclasses import dataclass, field
from datetime import date, datetime

from cadence.clock import Clock
from cadence.constants import DEFAULT_COOLDOWN, FIRST_IN_CHANNEL_BONUS
from cadence.engine import challenges
from cadence.engine.activity import ActivitySignal, ActivitySource, base_xp
from cadence.engine.content import content_bonus, length_factor
from cadence.engine.leveling import settle
from cadence.engine.multipliers import MultiplierResolver
from cadence.engine.streak import advance_streak, streak_bonus
from cadence.stores.base import Stores, UserRecord

logger = logging.getLogger(__name__)


class AwardStatus(enum.StrEnum):
    AWARDED = "awarded"
    CAPPED = "capped"
    REJECTED_BLACKLIST = "rejected_blacklist"
    REJECTED_COOLDOWN = "rejected_cooldown"


@dataclass(frozen=True, slots=True)
class LevelUpSignal:
    """Handed to collaborators that grant roles and announce."""

    user_id: int
    display_name: str
    new_level: int
    total_xp_earned: int


@dataclass
class AwardOutcome:
    """Final award output."""

    status: AwardStatus
    user_id: int
    new_xp: int = 0
    new_level: int = 0
    leveled_up: bool = False
    total_xp_earned: int = 0
    granted_xp: int = 0
    previous_level: int = 0
    created: bool = False
    multiplier: float = 1.0
    level_up: LevelUpSignal | None = None
    follow_ups: list[AwardOutcome] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return self.status in (AwardStatus.AWARDED, AwardStatus.CAPPED)

    @property
    def capped(self) -> bool:
        return self.status == AwardStatus.CAPPED

    def level_ups(self) -> list[LevelUpSignal]:
        """This award's level-up plus any from follow-up awards."""
        found = [self.level_up] if self.level_up is not None else []
        for follow_up in self.follow_ups:
            found.extend(follow_up.level_ups())
        return found


class AwardEngine:
    """Runs the award pipeline against one set of stores."""

    def __init__(
        self, stores: Stores, clock: Clock, rng: random.Random | None = None,
    ) -> None:
        self.stores = stores
        self.clock = clock
        self.rng = rng or random.Random()
        self.resolver = MultiplierResolver(stores, clock)

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------
    def award(self, signal: ActivitySignal) -> AwardOutcome:
        now = signal.timestamp or self.clock.now()
        today = self.clock.local(now).date()
        outcome = self._award(signal, now, today)

        if outcome.accepted and signal.source != ActivitySource.MENTOR:
            self._follow_ups(signal, outcome, now, today)
        return outcome

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    def _award(self, signal: ActivitySignal, now: datetime, today: date) -> AwardOutcome:
        stores = self.stores
        policy = signal.policy
        user = stores.users.get(signal.user_id)

        # 1. Eligibility
        if signal.channel_id is not None and stores.blacklist.contains(signal.channel_id):
            logger.debug("Rejected %s: channel %s blacklisted", signal.user_id, signal.channel_id)
            return self._rejected(AwardStatus.REJECTED_BLACKLIST, signal, user)

        if (
            signal.source == ActivitySource.MESSAGE
            and user is not None
            and user.last_message_time is not None
        ):
            cooldown = stores.config.get_int("cooldown", DEFAULT_COOLDOWN)
            if (now - user.last_message_time).total_seconds() < cooldown:
                logger.debug("Rejected %s: cooldown", signal.user_id)
                return self._rejected(AwardStatus.REJECTED_COOLDOWN, signal, user)

        changes: dict = {}
        is_message = signal.source == ActivitySource.MESSAGE

        # 2. Base
        running: float = base_xp(signal, stores.config, self.rng)

        # 3. Content bonus
        if is_message:
            running += content_bonus(signal.text)

        # 4. Streak
        if policy.user_driven:
            count, last = advance_streak(
                user.streak if user else 0,
                user.last_active_date if user else None,
                today,
            )
            changes["streak"] = count
            changes["last_active_date"] = last
            running += streak_bonus(count)

        # 5. Length factor, then flat per-day bonuses
        if is_message:
            running *= length_factor(signal.text)
            changes["last_message_time"] = now
            running += self._daily_flats(signal, user, today, changes)

        # 6. Multiplier stack
        multiplier = 1.0
        if policy.multiplied:
            multiplier = self.resolver.resolve(
                signal.user_id, signal.role_ids, signal.channel_id, user=user, now=now,
            )
        granted = math.floor(running * multiplier)

        # 7. Daily cap
        status = AwardStatus.AWARDED
        stale_today = user is None or user.today_date != today
        if policy.capped:
            cap = stores.config.get_int("daily_xp_cap", 0)
            if cap > 0:
                used = 0 if stale_today else user.today_xp
                headroom = max(0, cap - used)
                if granted > headroom or headroom == 0:
                    status = AwardStatus.CAPPED
                    granted = min(granted, headroom)
                if headroom == 0:
                    logger.debug("Capped %s: daily headroom exhausted", signal.user_id)
                    outcome = self._rejected(status, signal, user)
                    outcome.multiplier = multiplier
                    return outcome

        # 8 + 9. Settle and persist
        if user is None:
            return self._create(signal, granted, status, multiplier, today, changes)
        return self._apply(signal, user, granted, status, multiplier, today, stale_today, changes)

    def _daily_flats(
        self, signal: ActivitySignal, user: UserRecord | None, today: date, changes: dict,
    ) -> int:
        """First-in-channel and daily bonuses.  Tracked for new users, paid to existing ones."""
        bonus = 0
        channels = list(user.channels_today) if user and user.channel_day == today else []
        if signal.channel_id is not None and signal.channel_id not in channels:
            channels.append(signal.channel_id)
            if user is not None:
                bonus += FIRST_IN_CHANNEL_BONUS
        changes["channel_day"] = today
        changes["channels_today"] = channels

        if user is None or user.last_daily_bonus_date != today:
            changes["last_daily_bonus_date"] = today
            if user is not None:
                bonus += self.stores.config.get_int("daily_bonus", 0)
        return bonus

    def _create(
        self,
        signal: ActivitySignal,
        granted: int,
        status: AwardStatus,
        multiplier: float,
        today: date,
        changes: dict,
    ) -> AwardOutcome:
        """First qualifying activity: level 1, xp = granted, no settlement."""
        period = granted if signal.policy.period_eligible else 0
        record = UserRecord(
            id=signal.user_id,
            display_name=signal.display_name or str(signal.user_id),
            xp=granted,
            level=1,
            total_xp_earned=granted,
            weekly_xp=period,
            monthly_xp=period,
            today_xp=period,
            today_date=today,
            **changes,
        )
        self.stores.users.save(record)
        logger.info(
            "Created user %s with %d XP via %s", signal.user_id, granted, signal.source,
        )
        return AwardOutcome(
            status=status,
            user_id=signal.user_id,
            new_xp=record.xp,
            new_level=record.level,
            total_xp_earned=record.total_xp_earned,
            granted_xp=granted,
            previous_level=record.level,
            created=True,
            multiplier=multiplier,
        )

    def _apply(
        self,
        signal: ActivitySignal,
        user: UserRecord,
        granted: int,
        status: AwardStatus,
        multiplier: float,
        today: date,
        stale_today: bool,
        changes: dict,
    ) -> AwardOutcome:
        result = settle(user.xp, user.level, granted)
        changes["xp"] = result.xp
        changes["level"] = result.level
        if signal.display_name:
            changes["display_name"] = signal.display_name

        deltas = {"total_xp_earned": granted}
        if signal.policy.period_eligible:
            deltas["weekly_xp"] = granted
            deltas["monthly_xp"] = granted
            if stale_today:
                changes["today_xp"] = granted
                changes["today_date"] = today
            else:
                deltas["today_xp"] = granted

        self.stores.users.update(user.id, **changes)
        self.stores.users.increment(user.id, **deltas)

        total = user.total_xp_earned + granted
        outcome = AwardOutcome(
            status=status,
            user_id=user.id,
            new_xp=result.xp,
            new_level=result.level,
            leveled_up=result.leveled_up,
            total_xp_earned=total,
            granted_xp=granted,
            previous_level=user.level,
            multiplier=multiplier,
        )
        if result.leveled_up:
            outcome.level_up = LevelUpSignal(
                user_id=user.id,
                display_name=changes.get("display_name", user.display_name),
                new_level=result.level,
                total_xp_earned=total,
            )
            logger.info("User %s leveled up %d → %d", user.id, user.level, result.level)
        logger.info(
            "Awarded %d XP to %s via %s (×%.2f, %s)",
            granted, user.id, signal.source, multiplier, status,
        )
        return outcome

    @staticmethod
    def _rejected(
        status: AwardStatus, signal: ActivitySignal, user: UserRecord | None,
    ) -> AwardOutcome:
        """Zero-effect outcome mirroring the stored state."""
        if user is None:
            return AwardOutcome(status=status, user_id=signal.user_id)
        return AwardOutcome(
            status=status,
            user_id=user.id,
            new_xp=user.xp,
            new_level=user.level,
            total_xp_earned=user.total_xp_earned,
            previous_level=user.level,
        )

    # ------------------------------------------------------------------
    # Follow-up awards
    # ------------------------------------------------------------------
    def _follow_ups(
        self, signal: ActivitySignal, outcome: AwardOutcome, now: datetime, today: date,
    ) -> None:
        if outcome.granted_xp > 0:
            for link in self.stores.mentors.mentors_of(signal.user_id):
                share = math.floor(outcome.granted_xp * link.bonus)
                if share <= 0:
                    continue
                outcome.follow_ups.append(self._award(
                    ActivitySignal(
                        user_id=link.mentor_id,
                        display_name="",
                        source=ActivitySource.MENTOR,
                        amount=share,
                        timestamp=now,
                    ),
                    now,
                    today,
                ))

        if not signal.policy.user_driven:
            return

        anniversary = self._anniversary(signal, now, today)
        if anniversary is not None:
            outcome.follow_ups.append(anniversary)

        for challenge, _progress in challenges.record_progress(self.stores, signal, today):
            if challenges.claim(self.stores, signal.user_id, challenge, today):
                outcome.follow_ups.append(self.award(ActivitySignal(
                    user_id=signal.user_id,
                    display_name=signal.display_name,
                    source=ActivitySource.CHALLENGE,
                    amount=challenge.xp_reward,
                    role_ids=signal.role_ids,
                    timestamp=now,
                    metadata={"challenge_id": challenge.id},
                )))

    def _anniversary(
        self, signal: ActivitySignal, now: datetime, today: date,
    ) -> AwardOutcome | None:
        user = self.stores.users.get(signal.user_id)
        if user is None or user.joined_at is None:
            return None
        joined = self.clock.local(user.joined_at).date()
        if (
            today.year <= joined.year
            or (today.month, today.day) != (joined.month, joined.day)
            or user.last_anniversary_year == today.year
        ):
            return None
        self.stores.users.update(user.id, last_anniversary_year=today.year)
        logger.info("Join anniversary for %s (%d years)", user.id, today.year - joined.year)
        return self.award(ActivitySignal(
            user_id=user.id,
            display_name=signal.display_name,
            source=ActivitySource.ANNIVERSARY,
            role_ids=signal.role_ids,
            timestamp=now,
            metadata={"years": today.year - joined.year},
        ))
