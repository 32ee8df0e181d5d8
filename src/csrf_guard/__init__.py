"""Public exports for the csrf-guard package."""

__version__ = "0.1.0"

from .app import create_app, create_authority
from .authority import TokenAuthority
from .client import CSRFClient, CSRFTokenManager, TokenState, migrate_legacy_session
from .config import CSRFSettings, load_settings
from .errors import (
    CSRFError,
    NoSession,
    OriginMismatch,
    RateLimited,
    TokenFetchError,
    TokenInvalid,
    TokenMissing,
    TransportFailure,
)
from .middleware import CSRFMiddleware
from .models import Token
from .token_store import (
    FailoverTokenStore,
    InMemoryTokenStore,
    RedisTokenStore,
    TokenStore,
    create_token_store,
)

__all__ = [
    "CSRFClient",
    "CSRFError",
    "CSRFMiddleware",
    "CSRFSettings",
    "CSRFTokenManager",
    "FailoverTokenStore",
    "InMemoryTokenStore",
    "NoSession",
    "OriginMismatch",
    "RateLimited",
    "RedisTokenStore",
    "Token",
    "TokenAuthority",
    "TokenFetchError",
    "TokenInvalid",
    "TokenMissing",
    "TokenState",
    "TokenStore",
    "TransportFailure",
    "create_app",
    "create_authority",
    "create_token_store",
    "load_settings",
    "migrate_legacy_session",
    "__version__",
]
