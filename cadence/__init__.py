"""
Cadence — Community XP & Leveling Engine for Discord
=====================================================
Turns member activity (messages, voice presence, reactions, invites,
arrival, anniversaries) into experience points, layers bonuses and
multipliers on top, advances levels, and keeps lifetime plus
weekly/monthly/daily totals.

Package layout::

    cadence/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Tuning constants + leveling formula
    ├── errors.py          # Error taxonomy
    ├── clock.py           # Canonical deployment clock
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   ├── models.py      # All ORM models
    │   └── seed.py        # Default config + challenges
    ├── stores/
    │   ├── base.py        # Records + repository contracts
    │   ├── sql.py         # Row-oriented backend
    │   ├── document.py    # Document-oriented backend
    │   └── factory.py     # Backend selection
    ├── engine/
    │   ├── activity.py    # ActivitySignal + per-source rules
    │   ├── content.py     # Link/image bonus, length factor
    │   ├── streak.py      # Daily streak state machine
    │   ├── multipliers.py # Multiplier Resolver
    │   ├── leveling.py    # required_xp + settle
    │   ├── award.py       # XP Award Engine
    │   ├── event_lifecycle.py # Single-active-event manager
    │   └── challenges.py  # Daily challenges
    ├── services/
    │   ├── maintenance_service.py  # Resets, decay, event expiry
    │   ├── announcement_service.py # Level-up roles + notifications
    │   ├── embeds.py               # Embed builders
    │   └── commands.py             # Command → handler table
    ├── bot/
    │   ├── core.py        # Bot subclass, cog loader
    │   └── cogs/          # activity, voice, membership, commands, tasks
    └── api/
        ├── main.py        # FastAPI app
        └── routes/        # Read-only leaderboard endpoints
"""

__version__ = "1.0.0"
