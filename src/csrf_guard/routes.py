"""HTTP endpoints owned by the CSRF layer."""

from datetime import datetime, timezone
import logging

from starlette.requests import Request
from starlette.responses import JSONResponse

from . import __version__
from .authority import TokenAuthority
from .errors import NoSession, RateLimited
from .protocol import NO_STORE_HEADERS
from .rate_limit import SlidingWindowRateLimiter
from .utils import mask_identifier

logger = logging.getLogger("csrf_guard.routes")


def _session_id(request: Request) -> str:
    for name in request.app.state.settings.session_cookies:
        value = request.cookies.get(name)
        if value:
            return value
    return ""


async def issue_csrf_token(request: Request) -> JSONResponse:
    """Issue a CSRF token bound to the caller's session cookie.

    The session is read from the cookie only; a ``token`` query parameter is
    ignored.
    """
    limiter: SlidingWindowRateLimiter = request.app.state.rate_limiter
    client_id = request.client.host if request.client else "unknown"
    retry_after = limiter.hit(client_id)
    if retry_after is not None:
        raise RateLimited(retry_after=retry_after)

    session_id = _session_id(request)
    if not session_id:
        raise NoSession("Session token required (must be in cookie)")

    authority: TokenAuthority = request.app.state.authority
    token = await authority.issue(session_id)
    logger.info("Issued CSRF token for session %s", mask_identifier(session_id))

    return JSONResponse(
        {"success": True, "csrfToken": token.value, "expiresIn": token.lifetime_ms},
        headers=NO_STORE_HEADERS,
    )


async def health_check(request: Request) -> JSONResponse:
    """Liveness endpoint for load balancers and monitoring."""
    authority: TokenAuthority = request.app.state.authority
    return JSONResponse(
        {
            "status": "healthy",
            "service": "csrf-guard",
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "version": __version__,
            "store": authority.store.backend_name,
        }
    )


__all__ = ["health_check", "issue_csrf_token"]
