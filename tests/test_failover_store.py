"""Tests for distributed-store failover to the in-process map."""

from typing import Optional

import pytest

from csrf_guard.errors import TransportFailure
from csrf_guard.models import Token
from csrf_guard.token_store import FailoverTokenStore, InMemoryTokenStore, TokenStore


pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FlakyStore(TokenStore):
    """Primary store that can be switched into a failing state."""

    backend_name = "redis"

    def __init__(self) -> None:
        self.records: dict[str, Token] = {}
        self.down = False
        self.calls: list[str] = []
        self.closed = False

    def _check(self, op: str) -> None:
        self.calls.append(op)
        if self.down:
            raise TransportFailure("redis down")

    async def get(self, value: str) -> Optional[Token]:
        self._check("get")
        return self.records.get(value)

    async def set(self, token: Token, ttl_seconds: float) -> None:
        self._check("set")
        self.records[token.value] = token

    async def delete(self, value: str) -> None:
        self._check("delete")
        self.records.pop(value, None)

    async def cleanup_expired(self, now: float) -> int:
        self._check("cleanup")
        return 0

    async def close(self) -> None:
        self.closed = True


def make_token(value="token-1"):
    return Token(value=value, session_id="session-1", issued_at=0.0, expires_at=3600.0)


@pytest.mark.anyio
async def test_primary_handles_everything_while_healthy():
    primary, fallback = FlakyStore(), InMemoryTokenStore()
    store = FailoverTokenStore(primary, fallback)

    await store.set(make_token(), 3600)

    assert await store.get("token-1") == make_token()
    assert "token-1" in primary.records
    assert len(fallback) == 0


@pytest.mark.anyio
async def test_writes_and_reads_degrade_to_memory_on_transport_failure():
    primary, fallback = FlakyStore(), InMemoryTokenStore()
    store = FailoverTokenStore(primary, fallback)
    primary.down = True

    await store.set(make_token(), 3600)

    assert "token-1" in fallback
    assert await store.get("token-1") == make_token()


@pytest.mark.anyio
async def test_successful_primary_miss_does_not_consult_memory():
    primary, fallback = FlakyStore(), InMemoryTokenStore()
    store = FailoverTokenStore(primary, fallback)
    await fallback.set(make_token(), 3600)

    assert await store.get("token-1") is None


@pytest.mark.anyio
async def test_delete_clears_memory_even_when_primary_is_down():
    primary, fallback = FlakyStore(), InMemoryTokenStore()
    store = FailoverTokenStore(primary, fallback)
    await fallback.set(make_token(), 3600)
    primary.down = True

    await store.delete("token-1")

    assert "token-1" not in fallback


@pytest.mark.anyio
async def test_cleanup_sweeps_memory_and_survives_primary_outage():
    primary, fallback = FlakyStore(), InMemoryTokenStore()
    store = FailoverTokenStore(primary, fallback)
    await fallback.set(Token("old", "session-1", 0.0, 5.0), 5)
    primary.down = True

    assert await store.cleanup_expired(now=10) == 1
    assert len(fallback) == 0


@pytest.mark.anyio
async def test_close_closes_both_backends():
    primary, fallback = FlakyStore(), InMemoryTokenStore()
    store = FailoverTokenStore(primary, fallback)

    await store.close()

    assert primary.closed is True
