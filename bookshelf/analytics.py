"""Dashboard figures for administrators and reader profiles."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from . import db
from .errors import NotFoundError
from .models import User

ACTIVE_WINDOW = timedelta(days=7)
RECENT_USERS = 5


def _parse_time(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def library_stats(now: Optional[datetime] = None) -> Dict[str, Any]:
    """Totals for the admin dashboard.

    A user is active when their last login falls within the past seven
    days of ``now``. ``recentActivity`` lists the first five users in
    collection order.
    """
    now = now or datetime.now(timezone.utc)
    users = db.load_records(db.USERS, User)
    cutoff = now - ACTIVE_WINDOW
    active = 0
    for user in users:
        last_login = _parse_time(user.last_login)
        if last_login is not None and last_login > cutoff:
            active += 1
    return {
        "totalUsers": len(users),
        "activeUsers": active,
        "totalBooks": len(db.get_collection(db.BOOKS)),
        "engagement": len(db.get_collection(db.BOOKMARKS)) + len(db.get_collection(db.NOTES)),
        "recentActivity": [
            {"name": u.name, "booksRead": len(u.reading_history), "lastLogin": u.last_login}
            for u in users[:RECENT_USERS]
        ],
    }


def profile_stats(user_id: str) -> Dict[str, int]:
    user = next((u for u in db.load_records(db.USERS, User) if u.id == user_id), None)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return {
        "booksRead": len(user.reading_history),
        "bookmarks": sum(1 for b in db.get_collection(db.BOOKMARKS) if b.get("userId") == user_id),
        "notes": sum(1 for n in db.get_collection(db.NOTES) if n.get("userId") == user_id),
    }
