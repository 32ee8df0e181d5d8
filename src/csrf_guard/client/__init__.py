"""Client-side request interceptor."""

from .interceptor import CSRFClient, origin_of
from .migration import migrate_legacy_session
from .tokens import ClientTokenCache, CSRFTokenManager, TokenState

__all__ = [
    "CSRFClient",
    "CSRFTokenManager",
    "ClientTokenCache",
    "TokenState",
    "migrate_legacy_session",
    "origin_of",
]
