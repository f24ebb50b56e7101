"""
cadence.api.deps — FastAPI dependency injection
================================================
"""

from __future__ import annotations

import os
from functools import lru_cache

from cadence.clock import Clock
from cadence.config import CadenceConfig, load_config
from cadence.stores.base import Stores
from cadence.stores.factory import open_stores


@lru_cache(maxsize=1)
def get_config() -> CadenceConfig:
    return load_config(os.getenv("CADENCE_CONFIG", "config.yaml"))


@lru_cache(maxsize=1)
def get_stores() -> Stores:
    return open_stores(get_config())


def get_clock() -> Clock:
    return Clock(get_config().timezone)
