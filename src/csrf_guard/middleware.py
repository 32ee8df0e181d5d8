"""
CSRF validation middleware for Starlette applications.

## Checked requests

Only state-changing methods (``POST``, ``PUT``, ``PATCH``, ``DELETE``) are
checked. Everything else passes through untouched.

For a checked request that is not on the exempt list:
1. **Origin**: a present ``Origin`` header must name this site (over
   either scheme) or a trusted origin
2. **Token** is read from the ``X-CSRF-Token`` header, falling back to the
   ``csrfToken`` field of a JSON or form body
3. **Session** is read from the ``sessionToken`` (or ``session``) cookie, never
   from the query string
4. The authority decides; anything but a clear "valid" rejects the request

## Error Responses

- **403 ORIGIN_MISMATCH**: foreign ``Origin``
- **403 CSRF_TOKEN_MISSING**: no token supplied
- **401 SESSION_TOKEN_MISSING**: no session cookie
- **403 CSRF_TOKEN_INVALID**: unknown, expired or session-mismatched token
- **503 CSRF_STORE_UNAVAILABLE**: the token store could not be reached

## Exempt paths

The exempt list trades attack surface for usability (login, registration,
the issuance endpoint itself, heartbeats). Review it whenever a new
state-changing endpoint is added. Entries ending in ``*`` match by prefix.
"""

from __future__ import annotations

import json
import logging
from typing import Iterable, Optional, Sequence, Tuple
from urllib.parse import parse_qs

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .authority import TokenAuthority
from .errors import CSRFError, NoSession, OriginMismatch, TokenInvalid, TokenMissing
from .protocol import (
    CSRF_BODY_FIELD,
    CSRF_HEADER,
    DEFAULT_EXEMPT_PATHS,
    SESSION_COOKIES,
    STATE_CHANGING_METHODS,
)
from .utils import mask_identifier, mask_token

logger = logging.getLogger("csrf_guard.middleware")


def error_response(error: CSRFError) -> JSONResponse:
    return JSONResponse(error.to_payload(), status_code=error.status_code, headers=error.headers)


class ExemptPaths:
    """Exact and prefix (``/path*``) path matcher."""

    def __init__(self, patterns: Iterable[str]) -> None:
        exact = set()
        prefixes = []
        for pattern in patterns:
            if pattern.endswith("*"):
                prefixes.append(pattern[:-1])
            else:
                exact.add(pattern)
        self._exact = frozenset(exact)
        self._prefixes: Tuple[str, ...] = tuple(prefixes)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, str):
            return False
        return path in self._exact or path.startswith(self._prefixes)


class CSRFMiddleware:
    """Reject state-changing requests that do not carry a valid CSRF token."""

    def __init__(
        self,
        app: ASGIApp,
        authority: TokenAuthority,
        *,
        exempt_paths: Iterable[str] = DEFAULT_EXEMPT_PATHS,
        header_name: str = CSRF_HEADER,
        body_field: str = CSRF_BODY_FIELD,
        session_cookies: Sequence[str] = SESSION_COOKIES,
        trusted_origins: Iterable[str] = (),
        check_origin: bool = True,
    ) -> None:
        self.app = app
        self.authority = authority
        self.exempt_paths = ExemptPaths(exempt_paths)
        self.header_name = header_name
        self.body_field = body_field
        self.session_cookies = tuple(session_cookies)
        self.trusted_origins = frozenset(origin.rstrip("/") for origin in trusted_origins)
        self.check_origin = check_origin

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"].upper() not in STATE_CHANGING_METHODS:
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        try:
            receive = await self._check(request, receive)
        except CSRFError as exc:
            logger.info(
                "Rejected %s %s: %s (%s)",
                request.method,
                request.url.path,
                exc.code,
                exc.status_code,
            )
            response = error_response(exc)
            await response(scope, receive, send)
            return

        await self.app(scope, receive, send)

    async def _check(self, request: Request, receive: Receive) -> Receive:
        """Validate ``request``; return the ``receive`` callable downstream should use."""
        if self.check_origin:
            self._check_origin(request)

        if request.url.path in self.exempt_paths:
            logger.debug("CSRF check skipped for exempt path %s", request.url.path)
            return receive

        token = request.headers.get(self.header_name)
        if not token:
            body = await request.body()
            token = self._token_from_body(body, request.headers.get("content-type", ""))
            receive = _replay_body(body, receive)

        session_id = self._session_from_cookies(request)

        if not token:
            raise TokenMissing()
        if not session_id:
            raise NoSession()

        if not await self.authority.validate(token, session_id):
            raise TokenInvalid()

        logger.debug(
            "CSRF token %s accepted for session %s",
            mask_token(token),
            mask_identifier(session_id),
        )
        return receive

    def _check_origin(self, request: Request) -> None:
        origin = request.headers.get("origin")
        if not origin:
            return
        origin = origin.rstrip("/")
        # Either scheme counts for our own host; TLS may end at a proxy.
        netloc = request.url.netloc
        own_origins = {f"{request.url.scheme}://{netloc}", f"http://{netloc}", f"https://{netloc}"}
        if origin in own_origins or origin in self.trusted_origins:
            return
        logger.warning("Origin validation failed: %s not in allowed list", origin)
        raise OriginMismatch()

    def _session_from_cookies(self, request: Request) -> Optional[str]:
        for name in self.session_cookies:
            value = request.cookies.get(name)
            if value:
                return value
        return None

    def _token_from_body(self, body: bytes, content_type: str) -> Optional[str]:
        if not body:
            return None
        media_type = content_type.split(";", 1)[0].strip().lower()
        try:
            if media_type == "application/json" or media_type.endswith("+json"):
                payload = json.loads(body)
                value = payload.get(self.body_field) if isinstance(payload, dict) else None
            elif media_type == "application/x-www-form-urlencoded":
                values = parse_qs(body.decode("latin-1"), keep_blank_values=False).get(self.body_field)
                value = values[0] if values else None
            else:
                return None
        except (ValueError, UnicodeDecodeError) as exc:
            logger.debug("Could not read CSRF token from request body: %s", exc)
            return None
        return value if isinstance(value, str) and value else None


def _replay_body(body: bytes, receive: Receive) -> Receive:
    """Hand the already-consumed body to the downstream app, then defer to ``receive``."""
    replayed = False

    async def replay() -> Message:
        nonlocal replayed
        if not replayed:
            replayed = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return replay


__all__ = ["CSRFMiddleware", "ExemptPaths", "error_response"]
