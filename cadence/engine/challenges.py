"""
cadence.engine.challenges — Daily challenge progress
=====================================================

Each accepted user-driven award bumps today's progress on every challenge
whose metric matches the activity.  Progress rows are scoped to the local
day, so a new day starts from zero without any reset job.

Claiming is a conditional ``completed AND NOT claimed`` flip in the
store, so a reward is paid at most once per challenge per day no matter
how many times the claim races.
"""

from __future__ import annotations

import logging
from datetime import date

from cadence.engine.activity import ActivitySignal, ActivitySource
from cadence.stores.base import Challenge, ChallengeProgress, Stores

logger = logging.getLogger(__name__)

METRIC_FOR_SOURCE: dict[ActivitySource, str] = {
    ActivitySource.MESSAGE: "messages",
    ActivitySource.VOICE: "voice_minutes",
    ActivitySource.REACTION: "reactions",
}


def metric_amount(signal: ActivitySignal) -> int:
    if signal.source == ActivitySource.VOICE:
        return signal.voice_minutes
    return 1


def record_progress(
    stores: Stores, signal: ActivitySignal, day: date,
) -> list[tuple[Challenge, ChallengeProgress]]:
    """Advance matching challenges; return those now completed but unclaimed."""
    metric = METRIC_FOR_SOURCE.get(signal.source)
    amount = metric_amount(signal)
    if metric is None or amount <= 0:
        return []

    ready = []
    for challenge in stores.challenges.all():
        if challenge.metric != metric:
            continue
        progress = stores.challenges.increment_progress(signal.user_id, challenge, day, amount)
        if progress.completed and not progress.claimed:
            ready.append((challenge, progress))
    return ready


def claim(stores: Stores, user_id: int, challenge: Challenge, day: date) -> bool:
    """Mark a completed challenge as claimed.  True only for the first claim."""
    claimed = stores.challenges.claim(user_id, challenge.id, day)
    if claimed:
        logger.info("User %s completed challenge %s on %s", user_id, challenge.id, day)
    return claimed
