"""Time-bounded read cache for computed balances.

Entries are local to this process. Writes made through this process
invalidate the affected person; writes made elsewhere become visible once
the entry's TTL lapses.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Generic, TypeVar

from leave_ledger.config import get_settings
from leave_ledger.services.reconcile import get_full_balance

if TYPE_CHECKING:
    import uuid
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.schemas.balance import BalanceResponse

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")


class TTLCache(Generic[K, V]):
    """Fixed-window cache. Freshness is evaluated lazily on ``get``."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl_seconds < 0:
            msg = "ttl_seconds must be non-negative"
            raise ValueError(msg)
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[K, tuple[V, float]] = {}

    def _expired(self, stored_at: float, now: float) -> bool:
        return (now - stored_at) >= self.ttl_seconds

    def get(self, key: K) -> tuple[V | None, bool]:
        """Return ``(value, fresh)``. A missing or expired key yields ``(None, False)``.

        Expired entries are dropped on access.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None, False
        value, stored_at = entry
        if self._expired(stored_at, self._clock()):
            del self._entries[key]
            return None, False
        return value, True

    def put(self, key: K, value: V) -> None:
        now = self._clock()
        self.prune(now)
        self._entries[key] = (value, now)

    def prune(self, now: float | None = None) -> int:
        """Drop every expired entry. Returns how many were removed."""
        if now is None:
            now = self._clock()
        stale = [key for key, (_, stored_at) in self._entries.items() if self._expired(stored_at, now)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def invalidate(self, key: K) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries


class BalanceReader:
    """Serves person balances from the cache, falling back to a full ledger read."""

    def __init__(
        self,
        cache: TTLCache[uuid.UUID, BalanceResponse] | None = None,
        *,
        recent_limit: int | None = None,
    ) -> None:
        settings = get_settings()
        self.cache: TTLCache[uuid.UUID, BalanceResponse] = (
            cache if cache is not None else TTLCache(settings.balance_cache_ttl_seconds)
        )
        self.recent_limit = recent_limit
        self._generations: dict[uuid.UUID, int] = {}

    async def read(
        self,
        session: AsyncSession,
        person_id: uuid.UUID,
        *,
        force_reload: bool = False,
    ) -> BalanceResponse:
        """Return the person's balance, from cache when fresh unless ``force_reload``."""
        if not force_reload:
            cached, fresh = self.cache.get(person_id)
            if cached is not None and fresh:
                return cached.model_copy(update={"cached": True})

        generation = self._generations.get(person_id, 0)
        balance = await get_full_balance(session, person_id, recent_limit=self.recent_limit)
        # A write that invalidated this person while the read ran makes the result stale.
        if self._generations.get(person_id, 0) == generation:
            self.cache.put(person_id, balance)
            logger.debug("Balance cache refreshed for person=%s", person_id)
        else:
            logger.debug("Discarded balance read for person=%s overtaken by a write", person_id)
        return balance

    def invalidate(self, person_id: uuid.UUID) -> None:
        """Drop the cached balance of a person after a write."""
        self._generations[person_id] = self._generations.get(person_id, 0) + 1
        self.cache.invalidate(person_id)


_balance_reader: BalanceReader | None = None


def get_balance_reader() -> BalanceReader:
    """Return the process-wide balance reader, creating it on first call."""
    global _balance_reader
    if _balance_reader is None:
        _balance_reader = BalanceReader()
    return _balance_reader


def set_balance_reader(reader: BalanceReader | None) -> None:
    """Override the reader (for testing). ``None`` resets to a fresh default on next use."""
    global _balance_reader
    _balance_reader = reader
