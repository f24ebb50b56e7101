"""
cadence.bot.cogs.tasks — Periodic Background Tasks
===================================================

Scheduled jobs that run on ``discord.ext.tasks`` loops:

- **Calendar jobs** — every minute, run whichever of the daily, weekly
  and monthly resets and the inactivity decay are due.  Each job keeps
  its own last-run marker, so polling often is safe.
- **Event expiry** — every 60 seconds, end overdue XP events and
  announce them.

Jobs run via ``run_db()`` so the event loop never blocks on storage.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from discord.ext import commands, tasks

from cadence.database.engine import run_db
from cadence.services.announcement_service import announce_event_ended
from cadence.services.maintenance_service import run_due_jobs, run_event_expiry

if TYPE_CHECKING:
    from cadence.bot.core import CadenceBot

logger = logging.getLogger(__name__)


class PeriodicTasks(commands.Cog):
    """Cog for scheduled maintenance tasks."""

    def __init__(self, bot: CadenceBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        self.calendar_loop.start()
        self.event_expiry_loop.start()

    async def cog_unload(self) -> None:
        self.calendar_loop.cancel()
        self.event_expiry_loop.cancel()

    # -------------------------------------------------------------------
    # Resets and decay
    # -------------------------------------------------------------------
    @tasks.loop(minutes=1)
    async def calendar_loop(self):
        try:
            summary = await run_db(run_due_jobs, self.bot.stores, self.bot.clock)
        except Exception:
            logger.exception("Calendar jobs failed", extra={"task": "calendar"})
            return
        ran = {job: n for job, n in summary.items() if n is not None}
        if ran:
            logger.info("Calendar jobs ran: %s", ran)

    @calendar_loop.before_loop
    async def _wait_calendar(self):
        await self.bot.wait_until_ready()

    # -------------------------------------------------------------------
    # Event expiry
    # -------------------------------------------------------------------
    @tasks.loop(seconds=60)
    async def event_expiry_loop(self):
        try:
            ended = await run_db(run_event_expiry, self.bot.stores, self.bot.clock)
        except Exception:
            logger.exception("Event expiry check failed", extra={"task": "event_expiry"})
            return
        for event in ended:
            logger.info("Event %r expired", event.name)
            await announce_event_ended(self.bot, event)

    @event_expiry_loop.before_loop
    async def _wait_event_expiry(self):
        await self.bot.wait_until_ready()


async def setup(bot: CadenceBot) -> None:
    await bot.add_cog(PeriodicTasks(bot))
