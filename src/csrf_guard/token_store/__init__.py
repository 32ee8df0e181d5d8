"""Token store factory and exports."""

import asyncio
import logging
from typing import Optional

from ..config import CSRFSettings, load_settings
from ..utils import redact_redis_url
from .base import TokenStore
from .failover import FailoverTokenStore
from .memory import InMemoryTokenStore
from .redis_backend import REDIS_AVAILABLE, RedisTokenStore, redis as _redis_async

logger = logging.getLogger("csrf_guard.token_store")


def create_token_store(settings: Optional[CSRFSettings] = None) -> TokenStore:
    """Create the token store selected by configuration.

    With a reachable Redis the result is a :class:`FailoverTokenStore` that
    degrades to an in-process map on transport failure; otherwise it is the
    in-process map alone. The choice is made once, here.
    """
    settings = settings or load_settings()
    memory = InMemoryTokenStore(
        max_tokens=settings.memory_max_tokens,
        warn_fraction=settings.memory_warn_fraction,
    )
    redis_url = settings.redis_url

    if redis_url and REDIS_AVAILABLE:
        if _redis_connection_available(redis_url):
            logger.info("Using Redis CSRF token store: %s", redact_redis_url(redis_url))
            return FailoverTokenStore(RedisTokenStore(redis_url, key_prefix=settings.redis_prefix), memory)

        logger.warning(
            "Redis at %s unavailable - falling back to in-memory CSRF token store",
            redact_redis_url(redis_url),
        )
    elif redis_url and not REDIS_AVAILABLE:
        logger.warning("REDIS_URL provided but Redis not available - using in-memory CSRF token store")

    logger.info(
        "Using in-memory CSRF token store (max_tokens=%s warn_fraction=%.2f)",
        settings.memory_max_tokens,
        settings.memory_warn_fraction,
    )
    return memory


def _redis_connection_available(redis_url: str) -> bool:
    if not REDIS_AVAILABLE or _redis_async is None:
        return False

    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        client = _redis_async.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=1,
        )
        try:
            loop.run_until_complete(client.ping())
        finally:
            loop.run_until_complete(client.close())
        return True
    except Exception as exc:  # pragma: no cover - network failure handled by fallback
        logger.warning(
            "Redis connection test failed for %s: %s",
            redact_redis_url(redis_url),
            exc,
        )
        return False
    finally:
        asyncio.set_event_loop(None)
        loop.close()


__all__ = [
    "FailoverTokenStore",
    "InMemoryTokenStore",
    "RedisTokenStore",
    "TokenStore",
    "create_token_store",
]
