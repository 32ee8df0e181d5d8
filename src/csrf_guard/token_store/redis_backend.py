"""Redis-backed CSRF token store for multi-process deployments."""

import logging
import math
import time
from typing import Callable, Optional

from ..errors import TransportFailure
from ..models import Token
from ..utils import mask_token
from .base import TokenStore

logger = logging.getLogger("csrf_guard.token_store")

try:  # pragma: no cover - import guarded by runtime availability
    import redis.asyncio as redis
    from redis.exceptions import ConnectionError as RedisConnectionError
    from redis.exceptions import RedisError
    from redis.exceptions import TimeoutError as RedisTimeoutError
    REDIS_AVAILABLE = True
except ImportError:  # pragma: no cover - exercised when redis is absent
    redis = None  # type: ignore
    RedisError = Exception  # type: ignore[assignment, misc]
    RedisConnectionError = RedisTimeoutError = Exception  # type: ignore[assignment, misc]
    REDIS_AVAILABLE = False
    logger.warning("Redis not available - CSRF tokens will be kept in memory")


class RedisTokenStore(TokenStore):
    """Stores each token under its own key with a native TTL.

    Existence and expiry are judged by a single ``GET`` per lookup, so no
    distributed locking is needed.
    """

    backend_name = "redis"

    def __init__(
        self,
        redis_url: str,
        key_prefix: str = "csrf",
        *,
        reconnect_backoff: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not REDIS_AVAILABLE:
            raise RuntimeError("Redis dependency not available")

        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self._redis: Optional["redis.Redis"] = None
        self.reconnect_backoff = reconnect_backoff
        self._clock = clock
        self._reconnect_at: Optional[float] = None

    def _token_key(self, value: str) -> str:
        return f"{self.key_prefix}:{value}"

    async def _get_redis(self) -> "redis.Redis":
        if self._redis is None:
            # After a failed connect, fail fast until the backoff elapses.
            if self._reconnect_at is not None and self._clock() < self._reconnect_at:
                raise TransportFailure("Redis unavailable; waiting before reconnecting")
            try:
                client = redis.from_url(
                    self.redis_url,
                    decode_responses=True,
                    socket_connect_timeout=2,
                    socket_timeout=1,
                    health_check_interval=30,
                )
                await client.ping()
            except (RedisError, OSError) as exc:
                logger.error("Failed to connect to Redis: %s", exc)
                self._reconnect_at = self._clock() + self.reconnect_backoff
                raise TransportFailure(f"Redis connection failed: {exc}") from exc
            self._redis = client
            self._reconnect_at = None
            logger.info("Redis connection established")
        return self._redis

    async def _drop_connection(self, exc: Exception) -> None:
        if self._redis is None or not isinstance(exc, (RedisConnectionError, RedisTimeoutError, OSError)):
            return
        client, self._redis = self._redis, None
        self._reconnect_at = self._clock() + self.reconnect_backoff
        try:
            await client.close()
        except (RedisError, OSError) as close_exc:
            logger.debug("Ignoring error while closing Redis connection: %s", close_exc)

    async def get(self, value: str) -> Optional[Token]:
        redis_client = await self._get_redis()
        try:
            raw = await redis_client.get(self._token_key(value))
        except (RedisError, OSError) as exc:
            logger.error("Failed to read CSRF token from Redis: %s", exc)
            await self._drop_connection(exc)
            raise TransportFailure(f"Redis read failed: {exc}") from exc

        if raw is None:
            return None
        try:
            return Token.from_json(value, raw)
        except (KeyError, TypeError, ValueError) as exc:
            # A record we cannot parse can never validate.
            logger.warning("Discarding malformed CSRF record %s: %s", mask_token(value), exc)
            return None

    async def set(self, token: Token, ttl_seconds: float) -> None:
        redis_client = await self._get_redis()
        ttl = max(1, math.ceil(ttl_seconds))
        try:
            await redis_client.setex(self._token_key(token.value), ttl, token.to_json())
        except (RedisError, OSError) as exc:
            logger.error("Failed to store CSRF token in Redis: %s", exc)
            await self._drop_connection(exc)
            raise TransportFailure(f"Redis write failed: {exc}") from exc
        logger.debug("Stored CSRF token %s in Redis (ttl=%ss)", mask_token(token.value), ttl)

    async def delete(self, value: str) -> None:
        redis_client = await self._get_redis()
        try:
            await redis_client.delete(self._token_key(value))
        except (RedisError, OSError) as exc:
            logger.error("Failed to delete CSRF token from Redis: %s", exc)
            await self._drop_connection(exc)
            raise TransportFailure(f"Redis delete failed: {exc}") from exc
        logger.debug("Removed CSRF token %s from Redis", mask_token(value))

    async def cleanup_expired(self, now: float) -> int:
        # Keys expire natively.
        return 0

    async def close(self) -> None:
        if self._redis:
            await self._redis.close()
            self._redis = None
            logger.debug("Redis connection closed")


__all__ = ["RedisTokenStore", "REDIS_AVAILABLE"]
