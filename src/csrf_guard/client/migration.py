"""One-shot migration of a legacy ``?token=`` session id into the cookie jar."""

from http.cookiejar import Cookie
import logging
import time

import httpx

from ..protocol import (
    DEFAULT_TOKEN_LIFETIME_SECONDS,
    LEGACY_SESSION_QUERY_PARAM,
    SESSION_COOKIE,
    session_cookie_kwargs,
)
from ..utils import mask_identifier

logger = logging.getLogger("csrf_guard.client")


def migrate_legacy_session(
    url: str,
    cookies: httpx.Cookies,
    *,
    param: str = LEGACY_SESSION_QUERY_PARAM,
    cookie_name: str = SESSION_COOKIE,
    min_length: int = 32,
) -> str:
    """Copy a session id found in ``url`` into ``cookies`` and strip it from the URL.

    Values shorter than ``min_length`` are not treated as session ids and the
    URL is returned unchanged. An existing session cookie is never overwritten.
    """
    parsed = httpx.URL(url)
    session_id = parsed.params.get(param)
    if not session_id or len(session_id) < min_length:
        return url

    if _has_cookie(cookies, cookie_name):
        logger.debug("Session cookie already present; discarding URL session id")
    else:
        cookies.jar.set_cookie(_session_cookie(parsed, cookie_name, session_id))
        logger.info("Migrated session %s from URL to cookie", mask_identifier(session_id))

    return str(parsed.copy_remove_param(param))


def _has_cookie(cookies: httpx.Cookies, name: str) -> bool:
    return any(cookie.name == name for cookie in cookies.jar)


def _session_cookie(url: httpx.URL, name: str, value: str) -> Cookie:
    # cookielib matches dotless hosts (``localhost``) against "<host>.local".
    domain = url.host if "." in url.host else f"{url.host}.local"
    attrs = session_cookie_kwargs(secure=url.scheme == "https")
    rest = {"SameSite": str(attrs["samesite"]).capitalize()}
    if attrs["httponly"]:
        rest["HttpOnly"] = None
    return Cookie(
        version=0,
        name=name,
        value=value,
        port=None,
        port_specified=False,
        domain=domain,
        domain_specified=True,
        domain_initial_dot=False,
        path=str(attrs["path"]),
        path_specified=True,
        secure=bool(attrs["secure"]),
        expires=int(time.time()) + DEFAULT_TOKEN_LIFETIME_SECONDS,
        discard=False,
        comment=None,
        comment_url=None,
        rest=rest,
        rfc2109=False,
    )


__all__ = ["migrate_legacy_session"]
