"""Abstract CSRF token store definitions."""

import abc
from typing import Optional

from ..models import Token


class TokenStore(abc.ABC):
    """Abstract base class for ``token value -> Token`` storage."""

    backend_name = "abstract"

    @abc.abstractmethod
    async def get(self, value: str) -> Optional[Token]:
        """Return the record for ``value`` if present."""

    @abc.abstractmethod
    async def set(self, token: Token, ttl_seconds: float) -> None:
        """Store ``token`` so that it disappears after ``ttl_seconds`` at the latest."""

    @abc.abstractmethod
    async def delete(self, value: str) -> None:
        """Remove the record for ``value`` if it exists."""

    @abc.abstractmethod
    async def cleanup_expired(self, now: float) -> int:
        """Purge records expired at ``now``; return how many were removed."""

    async def close(self) -> None:
        """Release backend resources."""


__all__ = ["TokenStore"]
