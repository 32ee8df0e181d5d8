"""Token record bound to a session."""

from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Any, Dict


@dataclass(frozen=True)
class Token:
    """An issued CSRF token.

    Timestamps are absolute epoch seconds. Records are never updated in place;
    rotation produces a new ``Token``.
    """

    value: str
    session_id: str
    issued_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    @property
    def lifetime_ms(self) -> int:
        return int(round((self.expires_at - self.issued_at) * 1000))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "issuedAt": self.issued_at,
            "expiresAt": self.expires_at,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, value: str, data: Dict[str, Any]) -> "Token":
        return cls(
            value=value,
            session_id=str(data["sessionId"]),
            issued_at=float(data["issuedAt"]),
            expires_at=float(data["expiresAt"]),
        )

    @classmethod
    def from_json(cls, value: str, raw: str) -> "Token":
        return cls.from_dict(value, json.loads(raw))


__all__ = ["Token"]
