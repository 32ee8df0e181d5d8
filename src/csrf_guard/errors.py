"""
Error taxonomy for CSRF protection.

Every error carries an HTTP status and a stable machine-readable ``code`` so the
server can render it as a JSON body and the client can map a response back to
the same class.

- **NoSession** (401): no session context; never retried automatically.
- **TokenMissing** (403): state-changing request without a token.
- **TokenInvalid** (403): token unknown, expired, or bound to another session.
- **OriginMismatch** (403): ``Origin`` header names a foreign site.
- **RateLimited** (429): too many issuance calls; the client backs off.
- **TransportFailure** (503): the token store or the authority is unreachable.
- **TokenFetchError** (502): the issuance endpoint answered with garbage.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from starlette.exceptions import HTTPException


class CSRFError(HTTPException):
    """Base class for all CSRF protection failures."""

    status: int = 403
    code: str = "CSRF_ERROR"
    default_detail: str = "CSRF validation failed"

    def __init__(
        self,
        detail: Optional[str] = None,
        *,
        headers: Optional[Mapping[str, str]] = None,
        response: Any = None,
    ) -> None:
        super().__init__(
            status_code=self.status,
            detail=detail or self.default_detail,
            headers=dict(headers) if headers else None,
        )
        # The httpx response that triggered a client-side error, if any.
        self.response = response

    def to_payload(self) -> Dict[str, Any]:
        return {"success": False, "error": self.detail, "code": self.code}


class NoSession(CSRFError):
    status = 401
    code = "SESSION_TOKEN_MISSING"
    default_detail = "Session token required"


class TokenMissing(CSRFError):
    status = 403
    code = "CSRF_TOKEN_MISSING"
    default_detail = "CSRF token is required"


class TokenInvalid(CSRFError):
    status = 403
    code = "CSRF_TOKEN_INVALID"
    default_detail = "Invalid CSRF token"


class OriginMismatch(CSRFError):
    status = 403
    code = "ORIGIN_MISMATCH"
    default_detail = "Origin validation failed"


class RateLimited(CSRFError):
    status = 429
    code = "CSRF_RATE_LIMITED"
    default_detail = "Too many CSRF token requests. Please wait before trying again."

    def __init__(self, detail: Optional[str] = None, *, retry_after: Optional[float] = None, **kwargs: Any) -> None:
        self.retry_after = retry_after
        headers = kwargs.pop("headers", None)
        if headers is None and retry_after is not None:
            headers = {"Retry-After": str(max(1, int(retry_after + 0.999)))}
        super().__init__(detail, headers=headers, **kwargs)

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        if self.retry_after is not None:
            payload["retryAfter"] = max(1, int(self.retry_after + 0.999))
        return payload


class TransportFailure(CSRFError):
    status = 503
    code = "CSRF_STORE_UNAVAILABLE"
    default_detail = "CSRF token service unavailable"


class TokenFetchError(CSRFError):
    status = 502
    code = "CSRF_FETCH_FAILED"
    default_detail = "CSRF token could not be fetched"


__all__ = [
    "CSRFError",
    "NoSession",
    "OriginMismatch",
    "RateLimited",
    "TokenFetchError",
    "TokenInvalid",
    "TokenMissing",
    "TransportFailure",
]
