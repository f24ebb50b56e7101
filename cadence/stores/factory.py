"""
cadence.stores.factory — Backend Selection
===========================================

The only place that knows which storage backend is live.  Everything
downstream receives a :class:`~cadence.stores.base.Stores` bundle.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine

from cadence.config import CadenceConfig
from cadence.database.engine import create_db_engine, init_db
from cadence.database.seed import seed_defaults
from cadence.stores.base import Stores
from cadence.stores.document import build_document_stores
from cadence.stores.sql import build_sql_stores

logger = logging.getLogger(__name__)


def open_stores(cfg: CadenceConfig, engine: Engine | None = None) -> Stores:
    """Open the configured backend, make sure its schema exists, seed defaults.

    *engine* overrides ``DATABASE_URL`` for the SQL backend (tests, API).
    """
    if cfg.storage_backend == "document":
        stores = build_document_stores(cfg.document_path)
        logger.info("Using document store at %s", cfg.document_path)
    else:
        engine = engine or create_db_engine()
        init_db(engine)
        stores = build_sql_stores(engine)
        logger.info("Using SQL store")

    seed_defaults(stores)
    return stores
