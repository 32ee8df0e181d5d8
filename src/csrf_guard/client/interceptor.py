"""
HTTP client wrapper that attaches CSRF tokens to outgoing requests.

All application code sends same-origin state-changing calls through
:class:`CSRFClient` instead of a bare ``httpx.AsyncClient``. The wrapper:

1. Resolves the target URL against the client's origin
2. For a same-origin ``POST``/``PUT``/``PATCH``/``DELETE``, awaits the cached
   (or in-flight) token and sends it as ``X-CSRF-Token``
3. On a ``403``/``419`` rejection, drops the token, fetches a fresh one and
   retries exactly once; a second rejection raises :class:`TokenInvalid`
4. On ``401``, drops the token and returns the response untouched

Cross-origin requests and safe methods are sent unmodified. A token header is
never sent to another origin, even when the caller supplies one.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Tuple

import httpx

from ..errors import TokenInvalid, TransportFailure
from ..protocol import (
    CSRF_HEADER,
    ISSUANCE_PATH,
    REJECTION_STATUSES,
    SESSION_GONE_STATUS,
    is_state_changing,
)
from .migration import migrate_legacy_session
from .tokens import CSRFTokenManager

logger = logging.getLogger("csrf_guard.client")

Origin = Tuple[str, str, Optional[int]]


def origin_of(url: httpx.URL) -> Origin:
    return (url.scheme, url.host, url.port)


class CSRFClient:
    """Same-origin HTTP client with transparent CSRF token handling."""

    def __init__(
        self,
        base_url: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        tokens: Optional[CSRFTokenManager] = None,
        header_name: str = CSRF_HEADER,
        timeout: float = 30.0,
        **token_options: Any,
    ) -> None:
        self.base_url = httpx.URL(base_url)
        if not self.base_url.is_absolute_url:
            raise ValueError("base_url must be absolute, e.g. https://example.com")
        self.origin = origin_of(self.base_url)
        self.header_name = header_name
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None
        self.tokens = tokens or CSRFTokenManager(
            self._client,
            endpoint=str(self.base_url.join(ISSUANCE_PATH)),
            **token_options,
        )
        self._bootstrapped = False

    @property
    def cookies(self) -> httpx.Cookies:
        return self._client.cookies

    def is_same_origin(self, url: str) -> bool:
        return origin_of(self.base_url.join(url)) == self.origin

    def bootstrap(self, page_url: str) -> str:
        """Move a legacy ``?token=`` session id into the cookie jar, once.

        Returns the URL the page should continue with; it never contains the
        session id.
        """
        if self._bootstrapped:
            return page_url
        self._bootstrapped = True
        return migrate_legacy_session(page_url, self.cookies)

    async def prime(self) -> str:
        """Fetch the token eagerly, as a page does on load."""
        return await self.tokens.get_token()

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        method = method.upper()
        target = self.base_url.join(url)
        same_origin = origin_of(target) == self.origin
        protected = same_origin and is_state_changing(method)

        headers = httpx.Headers(kwargs.pop("headers", None))
        if not same_origin and self.header_name in headers:
            logger.warning("Stripping %s header from cross-origin request to %s", self.header_name, target.host)
            del headers[self.header_name]
        if protected:
            headers[self.header_name] = await self.tokens.get_token()

        response = await self._send(method, target, headers, kwargs)
        if not same_origin:
            return response

        if response.status_code == SESSION_GONE_STATUS:
            logger.info("Session rejected by %s %s; not retrying", method, target.path)
            self.tokens.invalidate()
            return response

        if protected and response.status_code in REJECTION_STATUSES:
            logger.info(
                "CSRF token rejected (%s) for %s %s; refreshing and retrying once",
                response.status_code,
                method,
                target.path,
            )
            self.tokens.invalidate()
            headers[self.header_name] = await self.tokens.get_token(force=True)
            retried = await self._send(method, target, headers, kwargs)
            if retried.status_code in REJECTION_STATUSES:
                logger.warning("CSRF token rejected again for %s %s; giving up", method, target.path)
                raise TokenInvalid(
                    "CSRF token rejected after refresh; please refresh and try again",
                    response=retried,
                )
            if retried.status_code == SESSION_GONE_STATUS:
                self.tokens.invalidate()
            return retried

        return response

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "CSRFClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def _send(self, method: str, target: httpx.URL, headers: httpx.Headers, kwargs: dict) -> httpx.Response:
        try:
            return await self._client.request(method, target, headers=headers, **kwargs)
        except httpx.TransportError as exc:
            raise TransportFailure(f"{method} {target.path} failed: {exc}") from exc


__all__ = ["CSRFClient", "origin_of"]
