"""
Server-side CSRF token authority.

The authority issues random tokens bound to a session identifier, stores them
in a :class:`~csrf_guard.token_store.TokenStore`, and answers the single
question request handling cares about: may this state-changing request proceed?

Validation fails closed. A token is accepted only when it exists, has not
reached ``expires_at``, and was issued to the same session that presents it.
Expired records are deleted on the lookup that finds them, so a token judged
expired once can never be matched again.

Tokens are multi-use within their lifetime. ``single_use=True`` is a separate,
explicitly configured mode that consumes a token on its first successful
validation.
"""

from __future__ import annotations

import logging
import random as _random
import secrets
import time
from typing import Callable, Optional

from .errors import NoSession
from .models import Token
from .protocol import DEFAULT_CLEANUP_PROBABILITY, DEFAULT_TOKEN_BYTES, DEFAULT_TOKEN_LIFETIME_SECONDS
from .token_store import TokenStore
from .utils import mask_identifier, mask_token

logger = logging.getLogger("csrf_guard.authority")


class TokenAuthority:
    """Issues, validates and expires CSRF tokens."""

    def __init__(
        self,
        store: TokenStore,
        *,
        lifetime_seconds: float = DEFAULT_TOKEN_LIFETIME_SECONDS,
        cleanup_probability: float = DEFAULT_CLEANUP_PROBABILITY,
        single_use: bool = False,
        token_bytes: int = DEFAULT_TOKEN_BYTES,
        clock: Callable[[], float] = time.time,
        random: Callable[[], float] = _random.random,
    ) -> None:
        if lifetime_seconds <= 0:
            raise ValueError("lifetime_seconds must be positive")
        if token_bytes < DEFAULT_TOKEN_BYTES:
            raise ValueError(f"token_bytes must be at least {DEFAULT_TOKEN_BYTES}")
        self.store = store
        self.lifetime_seconds = lifetime_seconds
        self.cleanup_probability = cleanup_probability
        self.single_use = single_use
        self.token_bytes = token_bytes
        self._clock = clock
        self._random = random

    @property
    def lifetime_ms(self) -> int:
        return int(self.lifetime_seconds * 1000)

    async def issue(self, session_id: Optional[str]) -> Token:
        """Issue a fresh token for ``session_id``.

        Raises:
            NoSession: If ``session_id`` is empty. Nothing is stored.
        """
        if not session_id:
            logger.warning("Refusing to issue CSRF token without a session")
            raise NoSession()

        now = self._clock()
        token = Token(
            value=secrets.token_hex(self.token_bytes),
            session_id=session_id,
            issued_at=now,
            expires_at=now + self.lifetime_seconds,
        )
        await self.store.set(token, self.lifetime_seconds)
        logger.debug(
            "Issued CSRF token %s for session %s (expires_at=%s)",
            mask_token(token.value),
            mask_identifier(session_id),
            token.expires_at,
        )

        # Sweep on a random subset of issuance calls to bound amortised cost.
        if self._random() < self.cleanup_probability:
            await self.store.cleanup_expired(now)

        return token

    async def validate(self, token_value: Optional[str], session_id: Optional[str]) -> bool:
        """Return ``True`` only if ``token_value`` is live and bound to ``session_id``."""
        if not token_value or not session_id:
            return False

        record = await self.store.get(token_value)
        if record is None:
            logger.info("CSRF token %s not found", mask_token(token_value))
            return False

        if record.is_expired(self._clock()):
            logger.info("CSRF token %s expired; removing", mask_token(token_value))
            await self.store.delete(token_value)
            return False

        if not secrets.compare_digest(record.session_id.encode("utf-8"), session_id.encode("utf-8")):
            logger.warning(
                "CSRF token %s presented by session %s was issued to another session",
                mask_token(token_value),
                mask_identifier(session_id),
            )
            return False

        if self.single_use:
            await self.revoke(token_value)
        return True

    async def revoke(self, token_value: str) -> None:
        await self.store.delete(token_value)
        logger.debug("Revoked CSRF token %s", mask_token(token_value))

    async def sweep(self) -> int:
        return await self.store.cleanup_expired(self._clock())

    async def close(self) -> None:
        await self.store.close()


__all__ = ["TokenAuthority"]
