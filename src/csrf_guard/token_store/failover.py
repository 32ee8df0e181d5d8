"""Distributed store with transparent fallback to the in-process map."""

import logging
from typing import Optional

from ..errors import TransportFailure
from ..models import Token
from ..utils import mask_token
from .base import TokenStore

logger = logging.getLogger("csrf_guard.token_store")


class FailoverTokenStore(TokenStore):
    """Route every operation to ``primary`` and to ``fallback`` only on transport failure.

    A lookup is answered by exactly one backend: a successful primary read is
    final even when it finds nothing, so the two stores are never merged into
    one verdict.
    """

    backend_name = "redis"

    def __init__(self, primary: TokenStore, fallback: TokenStore) -> None:
        self.primary = primary
        self.fallback = fallback

    async def get(self, value: str) -> Optional[Token]:
        try:
            return await self.primary.get(value)
        except TransportFailure as exc:
            logger.warning("Primary token store unavailable (%s); reading %s from memory", exc.detail, mask_token(value))
            return await self.fallback.get(value)

    async def set(self, token: Token, ttl_seconds: float) -> None:
        try:
            await self.primary.set(token, ttl_seconds)
        except TransportFailure as exc:
            logger.warning("Primary token store unavailable (%s); storing %s in memory", exc.detail, mask_token(token.value))
            await self.fallback.set(token, ttl_seconds)

    async def delete(self, value: str) -> None:
        try:
            await self.primary.delete(value)
        except TransportFailure as exc:
            logger.warning("Primary token store unavailable (%s); deleting %s from memory only", exc.detail, mask_token(value))
        await self.fallback.delete(value)

    async def cleanup_expired(self, now: float) -> int:
        removed = await self.fallback.cleanup_expired(now)
        try:
            removed += await self.primary.cleanup_expired(now)
        except TransportFailure as exc:
            logger.warning("Primary token store cleanup skipped: %s", exc.detail)
        return removed

    async def close(self) -> None:
        await self.primary.close()
        await self.fallback.close()


__all__ = ["FailoverTokenStore"]
