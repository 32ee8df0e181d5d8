"""Tests for the in-memory token store and its capacity guardrails."""

import logging

import pytest

from csrf_guard.models import Token
from csrf_guard.token_store.memory import InMemoryTokenStore


pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture
def anyio_backend():
    return "asyncio"


def make_token(value, session_id="session-1", issued_at=0.0, lifetime=3600.0):
    return Token(value=value, session_id=session_id, issued_at=issued_at, expires_at=issued_at + lifetime)


@pytest.mark.anyio
async def test_set_get_delete():
    store = InMemoryTokenStore()
    token = make_token("token-1")

    await store.set(token, 3600)
    assert await store.get("token-1") == token

    await store.delete("token-1")
    assert await store.get("token-1") is None
    # Deleting twice is harmless
    await store.delete("token-1")


@pytest.mark.anyio
async def test_cleanup_removes_only_expired_records():
    store = InMemoryTokenStore()
    await store.set(make_token("old", lifetime=10), 10)
    await store.set(make_token("fresh", lifetime=100), 100)

    removed = await store.cleanup_expired(now=10)

    assert removed == 1
    assert "old" not in store
    assert "fresh" in store
    assert len(store) == 1


@pytest.mark.anyio
async def test_warn_threshold_triggers(caplog):
    store = InMemoryTokenStore(max_tokens=3, warn_fraction=0.5)
    caplog.set_level(logging.WARNING, "csrf_guard.token_store")

    await store.set(make_token("token-1"), 3600)
    assert "nearing capacity" not in caplog.text

    await store.set(make_token("token-2"), 3600)
    assert "nearing capacity" in caplog.text


@pytest.mark.anyio
async def test_max_capacity_warning_resets_after_removal(caplog):
    store = InMemoryTokenStore(max_tokens=2, warn_fraction=0.5)
    caplog.set_level(logging.WARNING, "csrf_guard.token_store")

    await store.set(make_token("token-1"), 3600)
    await store.set(make_token("token-2"), 3600)
    assert "reached configured maximum" in caplog.text

    caplog.clear()
    await store.delete("token-1")
    await store.set(make_token("token-3"), 3600)
    assert "reached configured maximum" in caplog.text


@pytest.mark.anyio
async def test_cleanup_updates_usage_flags(caplog):
    store = InMemoryTokenStore(max_tokens=2, warn_fraction=0.5)
    caplog.set_level(logging.WARNING, "csrf_guard.token_store")

    await store.set(make_token("token-1", lifetime=3600), 3600)
    await store.set(make_token("token-2", lifetime=5), 5)

    caplog.clear()
    await store.cleanup_expired(now=10)
    assert caplog.text == ""

    caplog.clear()
    await store.set(make_token("token-3"), 3600)
    assert "reached configured maximum" in caplog.text
