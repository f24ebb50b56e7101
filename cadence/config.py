"""
cadence.config — YAML Configuration Loader
===========================================

This module reads ``config.yaml`` for **infrastructure-only** settings
(Discord identity, storage backend, clock, admin role).  All gameplay
tuning values (cooldown, caps, bonuses, multipliers) live in the Config
Store and are edited with admin slash commands.

Usage::

    from cadence.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.community_name)    # "Cadence Dev"
    print(cfg.storage_backend)   # "sql" or "document"
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

STORAGE_BACKENDS = ("sql", "document")


# ---------------------------------------------------------------------------
# Typed settings object: infrastructure/identity only.
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class CadenceConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    community_name: str

    # Discord
    bot_prefix: str
    guild_id: int

    # Admin
    admin_role_id: int

    # Storage
    storage_backend: str = "sql"
    document_path: str | None = None

    # Clock (IANA timezone name)
    timezone: str = "UTC"

    # Read-only API
    api_port: int = 8000

    # Optional
    announce_channel_id: int | None = None  # Fallback when no channel is configured in the store


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> CadenceConfig:
    """Read *path* and return a :class:`CadenceConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    ValueError
        If ``storage.backend`` names an unknown backend, or the document
        backend is selected without a ``storage.document_path``.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh)

    storage = raw.get("storage") or {}
    backend = storage.get("backend", "sql")
    if backend not in STORAGE_BACKENDS:
        raise ValueError(
            f"Unknown storage backend {backend!r}; expected one of {STORAGE_BACKENDS}"
        )
    document_path = storage.get("document_path")
    if backend == "document" and not document_path:
        raise ValueError("storage.document_path is required for the document backend")

    return CadenceConfig(
        community_name=raw["community_name"],
        bot_prefix=raw.get("bot_prefix", "!"),
        guild_id=int(raw["guild_id"]),
        admin_role_id=int(raw["admin_role_id"]),
        storage_backend=backend,
        document_path=document_path,
        timezone=raw.get("timezone", "UTC"),
        api_port=int(raw.get("api_port", 8000)),
        announce_channel_id=(
            int(raw["announce_channel_id"]) if raw.get("announce_channel_id") else None
        ),
    )
