"""
OAuth session-token store.

After a team member connects their calendar, the OAuth callback hands the
token bundle to a session store and gives the browser an opaque session
id. Entries carry an explicit expiry and are dropped on first access past
it, so tokens never outlive the configured TTL in memory.
"""

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    """Maps opaque session ids to OAuth token bundles."""

    def put(self, tokens: dict[str, Any]) -> str: ...

    def get(self, session_id: str) -> Optional[dict[str, Any]]: ...

    def revoke(self, session_id: str) -> bool: ...


@dataclass
class _Entry:
    tokens: dict[str, Any]
    expires_at: float


class InMemorySessionStore:
    """Process-local ``SessionStore`` with a fixed time-to-live."""

    def __init__(self, ttl_sec: int, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl_sec < 1:
            raise ValueError(f"ttl_sec must be >= 1, got {ttl_sec}")
        self.ttl_sec = ttl_sec
        self._clock = clock
        self._entries: dict[str, _Entry] = {}

    def put(self, tokens: dict[str, Any]) -> str:
        self.purge_expired()
        session_id = uuid.uuid4().hex
        self._entries[session_id] = _Entry(dict(tokens), self._clock() + self.ttl_sec)
        logger.debug("Session stored: %s", session_id)
        return session_id

    def get(self, session_id: str) -> Optional[dict[str, Any]]:
        entry = self._entries.get(session_id)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[session_id]
            logger.debug("Session expired: %s", session_id)
            return None
        return dict(entry.tokens)

    def revoke(self, session_id: str) -> bool:
        return self._entries.pop(session_id, None) is not None

    def purge_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self._clock()
        expired = [sid for sid, e in self._entries.items() if now >= e.expires_at]
        for sid in expired:
            del self._entries[sid]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
