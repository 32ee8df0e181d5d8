"""
Client-side CSRF token cache with single-flight issuance.

## State machine

``EMPTY -> FETCHING -> CACHED -> EXPIRED -> FETCHING -> ...``

- **EMPTY**: nothing cached; the next caller starts an issuance call
- **FETCHING**: one issuance call is outstanding; every concurrent caller
  awaits that same operation, so a burst of N requests costs one call
- **CACHED**: a token with a known expiry is handed out without a round-trip
- **EXPIRED**: the cached expiry passed locally; the next caller refetches

There is no background refresh. Expiry is checked against the cached
``expires_at`` before any request is sent.

## Failure handling

- ``401`` from the issuance endpoint raises :class:`NoSession` at once
- ``429`` records a cooldown and retries with capped exponential backoff;
  the next issuance operation waits for the cooldown before its first call
- other failures retry with a short exponential backoff, then surface
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import enum
import logging
import time
from typing import Awaitable, Callable, Optional

import httpx

from ..errors import CSRFError, NoSession, RateLimited, TokenFetchError, TransportFailure
from ..protocol import DEFAULT_EXPIRES_IN_MS, ISSUANCE_PATH, RATE_LIMITED_STATUS, SESSION_GONE_STATUS
from ..utils import mask_token

logger = logging.getLogger("csrf_guard.client")


class TokenState(enum.Enum):
    EMPTY = "empty"
    FETCHING = "fetching"
    CACHED = "cached"
    EXPIRED = "expired"


@dataclass
class ClientTokenCache:
    """The token mirrored from the last successful issuance response."""

    value: Optional[str] = None
    expires_at: Optional[float] = None
    rate_limited_until: Optional[float] = None

    def is_fresh(self, now: float) -> bool:
        return bool(self.value) and self.expires_at is not None and now < self.expires_at

    def store(self, value: str, expires_at: float) -> None:
        self.value = value
        self.expires_at = expires_at

    def clear(self) -> None:
        self.value = None
        self.expires_at = None


class CSRFTokenManager:
    """Fetches and caches the CSRF token for one client session."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        endpoint: str = ISSUANCE_PATH,
        retries: int = 2,
        retry_base_delay: float = 0.1,
        rate_limit_base_delay: float = 1.0,
        rate_limit_max_delay: float = 10.0,
        rate_limit_cooldown: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._http = http
        self.endpoint = endpoint
        self.retries = max(0, retries)
        self.retry_base_delay = retry_base_delay
        self.rate_limit_base_delay = rate_limit_base_delay
        self.rate_limit_max_delay = rate_limit_max_delay
        self.rate_limit_cooldown = rate_limit_cooldown
        self.cache = ClientTokenCache()
        self._clock = clock
        self._sleep = sleep
        self._in_flight: Optional[asyncio.Task] = None

    @property
    def state(self) -> TokenState:
        if self._in_flight is not None:
            return TokenState.FETCHING
        if self.cache.value is None:
            return TokenState.EMPTY
        if self.cache.is_fresh(self._clock()):
            return TokenState.CACHED
        return TokenState.EXPIRED

    def peek(self) -> Optional[str]:
        """Return the cached token if it is still fresh, without fetching."""
        if self.cache.is_fresh(self._clock()):
            return self.cache.value
        return None

    def invalidate(self) -> None:
        if self.cache.value is not None:
            logger.debug("Dropping cached CSRF token %s", mask_token(self.cache.value))
        self.cache.clear()

    async def get_token(self, force: bool = False) -> str:
        """Return a usable token, joining or starting the single issuance operation."""
        if not force and self.cache.is_fresh(self._clock()):
            return self.cache.value  # type: ignore[return-value]

        if self._in_flight is None:
            task = asyncio.ensure_future(self._run_issuance())
            task.add_done_callback(_observe_result)
            self._in_flight = task
        else:
            logger.debug("Joining in-flight CSRF token request")

        return await asyncio.shield(self._in_flight)

    async def _run_issuance(self) -> str:
        try:
            return await self._fetch()
        finally:
            # Cleared only once the operation has finished, success or failure.
            self._in_flight = None

    async def _fetch(self) -> str:
        await self._wait_for_cooldown()

        last_error: Optional[CSRFError] = None
        for attempt in range(self.retries + 1):
            try:
                return await self._attempt()
            except NoSession:
                self.cache.clear()
                raise
            except RateLimited as exc:
                last_error = exc
                cooldown = max(self.rate_limit_cooldown, exc.retry_after or 0.0)
                self.cache.rate_limited_until = self._clock() + cooldown
                if attempt < self.retries:
                    delay = min(self.rate_limit_base_delay * 2 ** attempt, self.rate_limit_max_delay)
                    logger.warning("CSRF token request rate limited; retrying in %.2fs", delay)
                    await self._sleep(delay)
            except (TransportFailure, TokenFetchError) as exc:
                last_error = exc
                if attempt < self.retries:
                    delay = self.retry_base_delay * 2 ** attempt
                    logger.warning("CSRF token request failed (%s); retrying in %.2fs", exc.detail, delay)
                    await self._sleep(delay)

        self.cache.clear()
        assert last_error is not None
        logger.error("CSRF token request failed after %s attempts: %s", self.retries + 1, last_error.detail)
        raise last_error

    async def _wait_for_cooldown(self) -> None:
        until = self.cache.rate_limited_until
        if until is None:
            return
        remaining = until - self._clock()
        if remaining > 0:
            logger.info("Waiting %.2fs for CSRF rate-limit cooldown", remaining)
            await self._sleep(remaining)

    async def _attempt(self) -> str:
        try:
            response = await self._http.get(self.endpoint, headers={"Cache-Control": "no-store"})
        except httpx.TransportError as exc:
            raise TransportFailure(f"CSRF token request failed: {exc}") from exc

        if response.status_code == SESSION_GONE_STATUS:
            raise NoSession("Session expired - please log in again", response=response)
        if response.status_code == RATE_LIMITED_STATUS:
            raise RateLimited(retry_after=_retry_after(response), response=response)
        if not response.is_success:
            raise TokenFetchError(f"CSRF fetch failed: {response.status_code}", response=response)

        try:
            data = response.json()
        except ValueError as exc:
            raise TokenFetchError("CSRF endpoint did not return JSON", response=response) from exc

        token = data.get("csrfToken") if isinstance(data, dict) else None
        if not token or not isinstance(token, str):
            raise TokenFetchError("CSRF token missing from response", response=response)

        expires_in = data.get("expiresIn")
        if not isinstance(expires_in, (int, float)) or isinstance(expires_in, bool) or expires_in <= 0:
            expires_in = DEFAULT_EXPIRES_IN_MS

        self.cache.store(token, self._clock() + expires_in / 1000.0)
        self.cache.rate_limited_until = None
        logger.debug("Fetched CSRF token %s (expires in %sms)", mask_token(token), expires_in)
        return token


def _retry_after(response: httpx.Response) -> Optional[float]:
    header = response.headers.get("Retry-After")
    if header:
        try:
            return float(header)
        except ValueError:
            pass
    try:
        data = response.json()
    except ValueError:
        return None
    value = data.get("retryAfter") if isinstance(data, dict) else None
    return float(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else None


def _observe_result(task: asyncio.Task) -> None:
    # Waiters receive the exception through the shield; this only keeps an
    # abandoned task from logging "exception was never retrieved".
    if not task.cancelled():
        task.exception()


__all__ = ["CSRFTokenManager", "ClientTokenCache", "TokenState"]
