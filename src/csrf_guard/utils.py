"""Helpers for keeping secrets out of log output."""

from typing import Optional


def mask_token(token: Optional[str], visible: int = 8) -> str:
    """Return a log-safe prefix of ``token``."""
    if not token:
        return "<none>"
    if len(token) <= visible:
        return "***"
    return f"{token[:visible]}***"


def mask_identifier(identifier: Optional[str]) -> str:
    """Mask a session identifier, keeping only its first and last characters."""
    if not identifier:
        return "<none>"
    if len(identifier) <= 4:
        return "***"
    return f"{identifier[:2]}***{identifier[-2:]}"


def redact_redis_url(redis_url: str) -> str:
    if "@" in redis_url:
        return redis_url.split("@", 1)[-1]
    return redis_url


__all__ = ["mask_identifier", "mask_token", "redact_redis_url"]
