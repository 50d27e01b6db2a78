"""Temporary key blocking.

A block maps a key to the instant it expires.  Expiry is lazy: lookups
treat ``blocked_until <= now`` as "not blocked", and expired entries are
physically removed only by :meth:`BlockRegistry.purge_expired` (called by
the janitor sweep).

All lookups are O(1) dict membership.  Like the history store, the registry
relies on the owning ``RateLimiter`` lock for thread safety.
"""

from __future__ import annotations

import logging

from ratewarden.core.types import BlockEntry

logger = logging.getLogger(__name__)


class BlockRegistry:
    """In-memory map of key -> block expiry (ms)."""

    def __init__(self) -> None:
        self._blocked: dict[str, float] = {}

    # ------------------------------------------------------------------
    # Lookup (O(1))
    # ------------------------------------------------------------------

    def blocked_until(self, key: str, now: float) -> float | None:
        """Return when *key*'s active block ends, or None if not blocked."""
        until = self._blocked.get(key)
        if until is None or until <= now:
            return None
        return until

    def is_blocked(self, key: str, now: float) -> bool:
        """Return True if *key* has a block that has not expired yet."""
        return self.blocked_until(key, now) is not None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def block(self, key: str, until: float, reason: str | None = None) -> None:
        """Block *key* until *until*, replacing any existing block."""
        self._blocked[key] = until
        logger.info("Blocked key %r until %.0f (reason: %s)", key, until, reason)

    def unblock(self, key: str) -> bool:
        """Remove *key*'s block.  Returns True if an entry existed."""
        if self._blocked.pop(key, None) is None:
            return False
        logger.info("Unblocked key %r", key)
        return True

    def purge_expired(self, now: float) -> int:
        """Delete every entry with ``blocked_until <= now``.  Returns the count."""
        expired = [key for key, until in self._blocked.items() if until <= now]
        for key in expired:
            del self._blocked[key]
        return len(expired)

    def clear(self) -> None:
        self._blocked.clear()

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def active(self, now: float) -> list[BlockEntry]:
        """Return all unexpired blocks."""
        return [
            BlockEntry(key=key, blocked_until=until)
            for key, until in self._blocked.items()
            if until > now
        ]

    def __len__(self) -> int:
        """Number of stored entries, expired ones included until purged."""
        return len(self._blocked)
