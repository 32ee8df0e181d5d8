"""Wire-level constants shared by the token authority and the request interceptor."""

from typing import Dict, Union

CSRF_HEADER = "X-CSRF-Token"
CSRF_BODY_FIELD = "csrfToken"
ISSUANCE_PATH = "/api/csrf-token"

SESSION_COOKIE = "sessionToken"
LEGACY_SESSION_COOKIE = "session"
SESSION_COOKIES = (SESSION_COOKIE, LEGACY_SESSION_COOKIE)
LEGACY_SESSION_QUERY_PARAM = "token"

STATE_CHANGING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

DEFAULT_TOKEN_LIFETIME_SECONDS = 3600
DEFAULT_EXPIRES_IN_MS = DEFAULT_TOKEN_LIFETIME_SECONDS * 1000
DEFAULT_TOKEN_BYTES = 32
DEFAULT_CLEANUP_PROBABILITY = 0.1

# Statuses the interceptor treats as "token rejected, refresh and retry once".
REJECTION_STATUSES = frozenset({403, 419})
SESSION_GONE_STATUS = 401
RATE_LIMITED_STATUS = 429

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, private",
    "Pragma": "no-cache",
    "Expires": "0",
}

DEFAULT_EXEMPT_PATHS = (
    "/api/login",
    "/api/register",
    "/api/auth/check-session",
    "/login",
    "/register",
    "/logout",
    ISSUANCE_PATH,
    # Heartbeats and presence pings are frequent, low-risk and already session-bound.
    "/api/heartbeat*",
    "/api/presence/heartbeat*",
    "/api/user-offline*",
    "/metrics/presence-client*",
    "/api/user-logout*",
)


def is_state_changing(method: str) -> bool:
    return method.upper() in STATE_CHANGING_METHODS


def session_cookie_kwargs(secure: bool) -> Dict[str, Union[bool, str]]:
    """Cookie attributes the login layer must use when setting ``sessionToken``."""
    return {"httponly": True, "samesite": "strict", "secure": secure, "path": "/"}


__all__ = [
    "CSRF_BODY_FIELD",
    "CSRF_HEADER",
    "DEFAULT_CLEANUP_PROBABILITY",
    "DEFAULT_EXEMPT_PATHS",
    "DEFAULT_EXPIRES_IN_MS",
    "DEFAULT_TOKEN_BYTES",
    "DEFAULT_TOKEN_LIFETIME_SECONDS",
    "ISSUANCE_PATH",
    "LEGACY_SESSION_COOKIE",
    "LEGACY_SESSION_QUERY_PARAM",
    "NO_STORE_HEADERS",
    "RATE_LIMITED_STATUS",
    "REJECTION_STATUSES",
    "SESSION_COOKIE",
    "SESSION_COOKIES",
    "SESSION_GONE_STATUS",
    "STATE_CHANGING_METHODS",
    "is_state_changing",
    "session_cookie_kwargs",
]
