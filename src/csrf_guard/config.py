"""Environment helpers for CSRF protection settings."""

from dataclasses import dataclass
import logging
import os
from typing import Mapping, Optional, Tuple

from .protocol import (
    CSRF_HEADER,
    DEFAULT_CLEANUP_PROBABILITY,
    DEFAULT_EXEMPT_PATHS,
    DEFAULT_TOKEN_LIFETIME_SECONDS,
    SESSION_COOKIES,
)

logger = logging.getLogger("csrf_guard.config")

DEFAULT_REDIS_PREFIX = "csrf"
DEFAULT_RATE_LIMIT_MAX = 1000
DEFAULT_RATE_LIMIT_WINDOW_SECONDS = 60.0
DEFAULT_WARN_FRACTION = 0.8

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass
class CSRFSettings:
    redis_url: Optional[str] = None
    redis_prefix: str = DEFAULT_REDIS_PREFIX
    token_lifetime_seconds: float = DEFAULT_TOKEN_LIFETIME_SECONDS
    cleanup_probability: float = DEFAULT_CLEANUP_PROBABILITY
    single_use: bool = False
    exempt_paths: Tuple[str, ...] = DEFAULT_EXEMPT_PATHS
    trusted_origins: Tuple[str, ...] = ()
    check_origin: bool = True
    header_name: str = CSRF_HEADER
    session_cookies: Tuple[str, ...] = SESSION_COOKIES
    rate_limit_max: int = DEFAULT_RATE_LIMIT_MAX
    rate_limit_window_seconds: float = DEFAULT_RATE_LIMIT_WINDOW_SECONDS
    memory_max_tokens: Optional[int] = None
    memory_warn_fraction: float = DEFAULT_WARN_FRACTION


def load_settings(env: Optional[Mapping[str, str]] = None) -> CSRFSettings:
    env = _ensure_env(env)

    exempt_paths = _parse_list(env.get("CSRF_EXEMPT_PATHS"))
    settings = CSRFSettings(
        redis_url=env.get("REDIS_URL") or None,
        redis_prefix=env.get("CSRF_REDIS_PREFIX") or DEFAULT_REDIS_PREFIX,
        token_lifetime_seconds=_parse_positive_float(
            env.get("CSRF_TOKEN_LIFETIME_SECONDS"),
            "CSRF_TOKEN_LIFETIME_SECONDS",
            default=float(DEFAULT_TOKEN_LIFETIME_SECONDS),
        ),
        cleanup_probability=_parse_probability(
            env.get("CSRF_CLEANUP_PROBABILITY"),
            "CSRF_CLEANUP_PROBABILITY",
            default=DEFAULT_CLEANUP_PROBABILITY,
        ),
        single_use=_parse_bool(env.get("CSRF_SINGLE_USE"), "CSRF_SINGLE_USE", default=False),
        exempt_paths=exempt_paths if exempt_paths is not None else DEFAULT_EXEMPT_PATHS,
        trusted_origins=_parse_list(env.get("CSRF_TRUSTED_ORIGINS")) or (),
        check_origin=_parse_bool(env.get("CSRF_CHECK_ORIGIN"), "CSRF_CHECK_ORIGIN", default=True),
        rate_limit_max=_parse_int(env.get("CSRF_RATE_LIMIT_MAX"), "CSRF_RATE_LIMIT_MAX") or DEFAULT_RATE_LIMIT_MAX,
        rate_limit_window_seconds=_parse_positive_float(
            env.get("CSRF_RATE_LIMIT_WINDOW_SECONDS"),
            "CSRF_RATE_LIMIT_WINDOW_SECONDS",
            default=DEFAULT_RATE_LIMIT_WINDOW_SECONDS,
        ),
        memory_max_tokens=_parse_int(env.get("CSRF_MEMORY_MAX_TOKENS"), "CSRF_MEMORY_MAX_TOKENS"),
        memory_warn_fraction=_parse_fraction(
            env.get("CSRF_MEMORY_WARN_FRACTION"),
            "CSRF_MEMORY_WARN_FRACTION",
            default=DEFAULT_WARN_FRACTION,
        ),
    )

    if settings.single_use:
        logger.info("Single-use CSRF tokens enabled: every successful validation consumes the token")
    return settings


def _ensure_env(env: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    return env if env is not None else os.environ


def _parse_int(value: Optional[str], env_key: str) -> Optional[int]:
    if value is None:
        return None
    try:
        parsed = int(value)
        if parsed <= 0:
            logger.warning("%s must be > 0; ignoring value %s", env_key, value)
            return None
        return parsed
    except ValueError:
        logger.warning("%s must be an integer; ignoring value %s", env_key, value)
        return None


def _parse_positive_float(value: Optional[str], env_key: str, *, default: float) -> float:
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError:
        logger.warning("%s must be a number; using default %s", env_key, default)
        return default
    if parsed <= 0:
        logger.warning("%s must be > 0; using default %s", env_key, default)
        return default
    return parsed


def _parse_fraction(value: Optional[str], env_key: str, *, default: float) -> float:
    if value is None:
        return default
    try:
        parsed = float(value)
        if not 0 < parsed < 1:
            logger.warning("%s must be between 0 and 1; using default %.2f", env_key, default)
            return default
        return parsed
    except ValueError:
        logger.warning("%s must be a float; using default %.2f", env_key, default)
        return default


def _parse_probability(value: Optional[str], env_key: str, *, default: float) -> float:
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError:
        logger.warning("%s must be a float; using default %.2f", env_key, default)
        return default
    if not 0 <= parsed <= 1:
        logger.warning("%s must be between 0 and 1 inclusive; using default %.2f", env_key, default)
        return default
    return parsed


def _parse_bool(value: Optional[str], env_key: str, *, default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    logger.warning("%s must be a boolean; using default %s", env_key, default)
    return default


def _parse_list(value: Optional[str]) -> Optional[Tuple[str, ...]]:
    if value is None:
        return None
    return tuple(item.strip() for item in value.split(",") if item.strip())


__all__ = ["CSRFSettings", "load_settings", "DEFAULT_REDIS_PREFIX"]
