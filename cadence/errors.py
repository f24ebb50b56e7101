"""
cadence.errors — Error Taxonomy
================================

Only conditions that abort an operation are exceptions.  A missing config
key resolves to its default and an exhausted daily cap is an
``AwardStatus.CAPPED`` outcome; neither is raised.
"""

from __future__ import annotations


class CadenceError(Exception):
    """Base class for every error raised by Cadence."""


class TransientStoreError(CadenceError):
    """A persistence call failed.

    The current activity is aborted with no retry.  Raised by the store
    layer so callers never depend on backend-specific exception types.
    """


class InvalidEventCreate(CadenceError):
    """An XP event was requested while another one is still running."""

    def __init__(self, message: str, active_name: str | None = None) -> None:
        super().__init__(message)
        self.active_name = active_name


class NotificationDeliveryFailure(CadenceError):
    """A direct message could not be delivered (DMs closed, blocked, …)."""
