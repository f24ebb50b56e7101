"""
cadence.bot.__main__ — Entry point for ``python -m cadence.bot``
================================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (infrastructure settings).
3. Open the configured storage backend and seed gameplay defaults.
4. Create the CadenceBot and hand it config + stores.
5. Start the bot (blocking; runs the asyncio event loop).
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

from cadence.bot.core import CadenceBot
from cadence.config import load_config
from cadence.stores.factory import open_stores

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("cadence")


def main() -> None:
    """Bootstrap and run the Cadence bot."""
    load_dotenv()

    token = os.getenv("DISCORD_TOKEN")
    if not token or token == "your-discord-bot-token-here":
        logger.critical(
            "DISCORD_TOKEN is not set.  "
            "Copy .env.example → .env and paste your bot token."
        )
        sys.exit(1)

    cfg = load_config(os.getenv("CADENCE_CONFIG", "config.yaml"))
    logger.info(
        "Config loaded: %s (storage=%s, tz=%s)",
        cfg.community_name, cfg.storage_backend, cfg.timezone,
    )

    stores = open_stores(cfg)
    bot = CadenceBot(cfg=cfg, stores=stores)

    logger.info("Starting Cadence bot…")
    try:
        bot.run(token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
