"""
cadence.api.routes.public — Read-only public endpoints
=======================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from cadence.api.deps import get_clock, get_stores
from cadence.clock import Clock
from cadence.constants import required_xp
from cadence.engine.event_lifecycle import EventManager
from cadence.engine.leveling import progress_percent
from cadence.stores.base import Event, Stores, UserRecord

router = APIRouter(tags=["public"])

PERIOD_FIELDS = {
    "lifetime": "total_xp_earned",
    "weekly": "weekly_xp",
    "monthly": "monthly_xp",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _user_dict(u: UserRecord) -> dict:
    return {
        "id": str(u.id),
        "display_name": u.display_name,
        "level": u.level,
        "xp": u.xp,
        "required_xp": required_xp(u.level),
        "progress": progress_percent(u.xp, u.level),
        "total_xp_earned": u.total_xp_earned,
        "weekly_xp": u.weekly_xp,
        "monthly_xp": u.monthly_xp,
        "streak": u.streak,
    }


def _event_dict(e: Event) -> dict:
    return {
        "id": e.id,
        "name": e.name,
        "multiplier": e.multiplier,
        "start_time": e.start_time.isoformat(),
        "end_time": e.end_time.isoformat(),
    }


# ---------------------------------------------------------------------------
# GET /leaderboard/{period}
# ---------------------------------------------------------------------------
@router.get("/leaderboard/{period}")
def get_leaderboard(
    period: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    stores: Stores = Depends(get_stores),
):
    """Paginated leaderboard for ``lifetime``, ``weekly`` or ``monthly``."""
    order_by = PERIOD_FIELDS.get(period)
    if order_by is None:
        raise HTTPException(status_code=404, detail=f"Unknown period {period!r}")

    offset = (page - 1) * page_size
    rows = stores.users.find(order_by=order_by, limit=page_size, offset=offset)
    return {
        "period": period,
        "total": stores.users.count(),
        "page": page,
        "page_size": page_size,
        "entries": [
            {"rank": offset + i + 1, "value": getattr(u, order_by), **_user_dict(u)}
            for i, u in enumerate(rows)
        ],
    }


# ---------------------------------------------------------------------------
# GET /users/{user_id}
# ---------------------------------------------------------------------------
@router.get("/users/{user_id}")
def get_user(user_id: int, stores: Stores = Depends(get_stores)):
    user = stores.users.get(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return {**_user_dict(user), "rank": stores.users.rank(user_id)}


# ---------------------------------------------------------------------------
# GET /events/active
# ---------------------------------------------------------------------------
@router.get("/events/active")
def get_active_event(
    stores: Stores = Depends(get_stores),
    clock: Clock = Depends(get_clock),
):
    event = EventManager(stores, clock).running()
    return {"event": _event_dict(event) if event else None}
