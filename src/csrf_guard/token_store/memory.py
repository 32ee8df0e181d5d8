"""In-process CSRF token store."""

import logging
import math
from threading import Lock
from typing import Dict, Optional

from ..models import Token
from ..utils import mask_token
from .base import TokenStore

logger = logging.getLogger("csrf_guard.token_store")


class InMemoryTokenStore(TokenStore):
    """Process-local token map, pruned by explicit sweeps.

    Every read, insert and delete takes the instance lock so the store can be
    shared by a threaded server.
    """

    backend_name = "memory"

    def __init__(self, *, max_tokens: Optional[int] = None, warn_fraction: float = 0.8) -> None:
        self._tokens: Dict[str, Token] = {}
        self._lock = Lock()
        self._max_tokens = max_tokens if max_tokens and max_tokens > 0 else None
        self._warn_fraction = warn_fraction if 0 < warn_fraction < 1 else 0.8
        self._warned_high_water = False
        self._warned_capacity = False

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)

    def __contains__(self, value: object) -> bool:
        with self._lock:
            return value in self._tokens

    async def get(self, value: str) -> Optional[Token]:
        with self._lock:
            return self._tokens.get(value)

    async def set(self, token: Token, ttl_seconds: float) -> None:
        with self._lock:
            self._tokens[token.value] = token
            count = len(self._tokens)
        logger.debug("Stored CSRF token %s in memory (ttl=%ss)", mask_token(token.value), ttl_seconds)
        self._emit_usage_warnings(count)

    async def delete(self, value: str) -> None:
        with self._lock:
            removed = self._tokens.pop(value, None)
            count = len(self._tokens)
        if removed is not None:
            logger.debug("Removed CSRF token %s from memory", mask_token(value))
        self._emit_usage_warnings(count, triggered_by_removal=True)

    async def cleanup_expired(self, now: float) -> int:
        with self._lock:
            expired = [value for value, token in self._tokens.items() if token.is_expired(now)]
            for value in expired:
                del self._tokens[value]
            count = len(self._tokens)

        if expired:
            logger.info("Cleaned up %s expired CSRF tokens from memory", len(expired))
        # Keep usage flags accurate even when nothing expired
        self._emit_usage_warnings(count, triggered_by_removal=True)
        return len(expired)

    def _emit_usage_warnings(self, count: int, *, triggered_by_removal: bool = False) -> None:
        if self._max_tokens is None:
            return

        warn_threshold = max(1, math.ceil(self._max_tokens * self._warn_fraction))

        if count < warn_threshold:
            self._warned_high_water = False
        if count < self._max_tokens:
            self._warned_capacity = False

        if triggered_by_removal:
            return

        if not self._warned_high_water and warn_threshold <= count < self._max_tokens:
            logger.warning(
                "In-memory CSRF token store nearing capacity: %s/%s tokens in use (>= %s%% threshold)",
                count,
                self._max_tokens,
                int(self._warn_fraction * 100),
            )
            self._warned_high_water = True

        if not self._warned_capacity and count >= self._max_tokens:
            logger.error(
                "In-memory CSRF token store reached configured maximum of %s tokens; consider enabling Redis",
                self._max_tokens,
            )
            self._warned_capacity = True


__all__ = ["InMemoryTokenStore"]
