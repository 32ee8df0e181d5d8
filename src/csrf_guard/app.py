"""Starlette application wiring for the CSRF token authority."""

from contextlib import asynccontextmanager
import logging
from typing import Optional

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from .authority import TokenAuthority
from .config import CSRFSettings, load_settings
from .errors import CSRFError
from .middleware import CSRFMiddleware, error_response
from .protocol import ISSUANCE_PATH, NO_STORE_HEADERS
from .rate_limit import SlidingWindowRateLimiter
from .routes import health_check, issue_csrf_token
from .token_store import create_token_store

logger = logging.getLogger("csrf_guard.app")


def create_authority(settings: CSRFSettings) -> TokenAuthority:
    return TokenAuthority(
        create_token_store(settings),
        lifetime_seconds=settings.token_lifetime_seconds,
        cleanup_probability=settings.cleanup_probability,
        single_use=settings.single_use,
    )


async def _csrf_error_handler(request: Request, exc: CSRFError) -> JSONResponse:
    response = error_response(exc)
    if request.url.path == ISSUANCE_PATH:
        response.headers.update(NO_STORE_HEADERS)
    return response


def create_app(
    settings: Optional[CSRFSettings] = None,
    authority: Optional[TokenAuthority] = None,
    *,
    routes: Optional[list] = None,
) -> Starlette:
    """Build the application.

    ``routes`` lets the host application mount its own (protected) endpoints
    next to the issuance endpoint.
    """
    settings = settings or load_settings()
    authority = authority or create_authority(settings)
    rate_limiter = SlidingWindowRateLimiter(settings.rate_limit_max, settings.rate_limit_window_seconds)

    @asynccontextmanager
    async def lifespan(app: Starlette):
        logger.info("CSRF authority ready (store=%s)", authority.store.backend_name)
        yield
        await authority.close()
        logger.info("CSRF authority closed")

    app = Starlette(
        routes=[
            Route(ISSUANCE_PATH, issue_csrf_token, methods=["GET"]),
            Route("/health", health_check, methods=["GET"]),
            *(routes or []),
        ],
        middleware=[
            Middleware(
                CSRFMiddleware,
                authority=authority,
                exempt_paths=settings.exempt_paths,
                header_name=settings.header_name,
                session_cookies=settings.session_cookies,
                trusted_origins=settings.trusted_origins,
                check_origin=settings.check_origin,
            )
        ],
        exception_handlers={CSRFError: _csrf_error_handler},
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.authority = authority
    app.state.rate_limiter = rate_limiter
    return app


__all__ = ["create_app", "create_authority"]
