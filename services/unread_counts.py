# ================================================================
# services/unread_counts.py: shared unread-count cache
# ================================================================
"""
One process-wide cache of unread counts for notifications and messages.

Entries are keyed by kind and account id. An ORM write to a tracked row drops
the owning account's entry at flush, and again when the transaction commits.
Every drop bumps a per-entry version. A reader records the version before it
counts and only stores its result if the version has not moved, so a count
that raced a commit is returned once but never cached.
"""
from threading import Lock
from typing import Callable, Dict, Optional, Tuple
import logging

from sqlalchemy import event
from sqlalchemy.orm import object_session
from sqlmodel import Session

logger = logging.getLogger(__name__)

NOTIFICATIONS = "notifications"
MESSAGES = "messages"

_PENDING_KEY = "unread_counts_changed"

CacheKey = Tuple[str, int]


class UnreadCountCache:
    """Server-authoritative unread counts, keyed by kind and account id."""

    def __init__(self):
        self._counts: Dict[CacheKey, int] = {}
        self._versions: Dict[CacheKey, int] = {}
        self._lock = Lock()

    def get(self, user_id: int, kind: str = NOTIFICATIONS) -> Optional[int]:
        with self._lock:
            return self._counts.get((kind, user_id))

    def version(self, user_id: int, kind: str = NOTIFICATIONS) -> int:
        with self._lock:
            return self._versions.get((kind, user_id), 0)

    def set(self, user_id: int, count: int, kind: str = NOTIFICATIONS, version: Optional[int] = None) -> bool:
        """Store ``count`` unless the entry was invalidated since ``version`` was read."""
        key = (kind, user_id)
        with self._lock:
            if version is not None and self._versions.get(key, 0) != version:
                return False
            self._counts[key] = count
            return True

    def invalidate(self, user_id: int, kind: str = NOTIFICATIONS) -> None:
        key = (kind, user_id)
        with self._lock:
            self._counts.pop(key, None)
            self._versions[key] = self._versions.get(key, 0) + 1

    def clear(self) -> None:
        with self._lock:
            self._counts.clear()


unread_cache = UnreadCountCache()


def cached_count(user_id: int, kind: str, count_query: Callable[[], int]) -> int:
    cached = unread_cache.get(user_id, kind)
    if cached is not None:
        return cached

    version = unread_cache.version(user_id, kind)
    count = count_query()
    if not unread_cache.set(user_id, count, kind, version=version):
        logger.debug(f"Unread {kind} for user {user_id} changed while counting, result not cached")
    return count


# ------------------------------------------------------------
# Change-notification hooks
# ------------------------------------------------------------
def track_unread(model, owner_attr: str, kind: str) -> None:
    """Drop the owner's cached count whenever a ``model`` row is written through the ORM."""

    def on_change(mapper, connection, target) -> None:
        user_id = getattr(target, owner_attr)
        if user_id is None:
            return
        unread_cache.invalidate(user_id, kind)
        session = object_session(target)
        if session is not None:
            session.info.setdefault(_PENDING_KEY, set()).add((kind, user_id))

    for event_name in ("after_insert", "after_update", "after_delete"):
        event.listen(model, event_name, on_change)


@event.listens_for(Session, "after_commit")
def _invalidate_after_commit(session) -> None:
    for kind, user_id in session.info.pop(_PENDING_KEY, set()):
        unread_cache.invalidate(user_id, kind)


@event.listens_for(Session, "after_rollback")
def _forget_after_rollback(session) -> None:
    session.info.pop(_PENDING_KEY, None)
