"""
cadence.bot.core — Bot Instance & Cog Loader
=============================================

Defines :class:`CadenceBot`, a ``commands.Bot`` subclass that:

1. Carries the shared config (``bot.cfg``), the storage bundle
   (``bot.stores``), the deployment clock (``bot.clock``) and the award
   engine, so every Cog reaches them through ``self.bot``.
2. Loads every Cog listed in :data:`EXTENSIONS`.
3. Syncs the slash-command tree on startup (guild-scoped for dev, global
   for production, controlled by the ``DEV_GUILD_ID`` env var).
"""

from __future__ import annotations

import logging
import os

import discord
from discord.ext import commands

from cadence.clock import Clock
from cadence.config import CadenceConfig
from cadence.engine.activity import ActivitySignal
from cadence.engine.award import AwardEngine, AwardOutcome
from cadence.stores.base import Stores

logger = logging.getLogger(__name__)

EXTENSIONS: list[str] = [
    "cadence.bot.cogs.activity",
    "cadence.bot.cogs.voice",
    "cadence.bot.cogs.membership",
    "cadence.bot.cogs.commands",
    "cadence.bot.cogs.tasks",
]


class CadenceBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state.

    Parameters
    ----------
    cfg:
        The parsed :class:`CadenceConfig` from ``config.yaml``.
    stores:
        The storage bundle for the configured backend.
    clock:
        Deployment clock; defaults to one built from ``cfg.timezone``.
    """

    def __init__(self, cfg: CadenceConfig, stores: Stores, clock: Clock | None = None) -> None:
        intents = discord.Intents.default()
        intents.message_content = True    # Privileged: link and length bonuses
        intents.members = True            # Privileged: welcome bonus, role grants
        intents.presences = False

        super().__init__(
            command_prefix=cfg.bot_prefix,
            intents=intents,
            description=f"{cfg.community_name} XP bot",
        )

        self.cfg = cfg
        self.stores = stores
        self.clock = clock or Clock(cfg.timezone)
        self.award_engine = AwardEngine(stores, self.clock)

    def award_sync(self, signal: ActivitySignal) -> AwardOutcome:
        """Run one award synchronously.  Call via ``run_db()``."""
        return self.award_engine.award(signal)

    def is_admin(self, member: discord.abc.User) -> bool:
        """Admin role holders and members with Administrator permission."""
        roles = getattr(member, "roles", None)
        if roles is None:
            return False
        if any(role.id == self.cfg.admin_role_id for role in roles):
            return True
        perms = getattr(member, "guild_permissions", None)
        return bool(perms and perms.administrator)

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load every extension; one broken Cog does not stop the rest."""
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

    async def on_ready(self) -> None:
        assert self.user is not None
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)

        dev_guild_id = os.getenv("DEV_GUILD_ID")
        if dev_guild_id:
            guild = discord.Object(id=int(dev_guild_id))
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
            logger.info("Synced %d commands to dev guild %s", len(synced), dev_guild_id)
        else:
            synced = await self.tree.sync()
            logger.info("Synced %d commands globally", len(synced))
