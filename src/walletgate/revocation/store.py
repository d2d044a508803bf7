"""RevocationStore — a TTL-bounded denylist of token ids.

Learn: entries carry a TTL equal to the token's remaining lifetime, so
the store prunes itself: once a token would have expired anyway, its
revocation entry is no longer needed.

mark() is set-if-absent and reports whether THIS call created the entry.
Refresh-token rotation relies on that to stay single-use even when two
requests race with the same token: only one of them wins the mark.
"""

import time
from abc import ABC, abstractmethod
from typing import Callable


class RevocationStore(ABC):
    """Port for revoked-token lookups."""

    @abstractmethod
    async def mark(self, token_id: str, ttl_seconds: int) -> bool:
        """Revoke a token id for ttl_seconds.

        Returns True if newly marked, False if it was already revoked.
        """

    @abstractmethod
    async def is_marked(self, token_id: str) -> bool:
        """Return True if the token id is currently revoked."""


class InMemoryRevocationStore(RevocationStore):
    """Process-local store for tests and single-process development.

    Expired entries are swept on mark(), so ids that are never looked up
    again (spent refresh tokens) do not pile up.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, float] = {}

    async def mark(self, token_id: str, ttl_seconds: int) -> bool:
        now = self._clock()
        self._sweep(now)
        if token_id in self._entries:
            return False
        self._entries[token_id] = now + max(1, ttl_seconds)
        return True

    async def is_marked(self, token_id: str) -> bool:
        expires = self._entries.get(token_id)
        if expires is None:
            return False
        if expires <= self._clock():
            del self._entries[token_id]
            return False
        return True

    def _sweep(self, now: float) -> None:
        expired = [key for key, expires in self._entries.items() if expires <= now]
        for key in expired:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)
