"""Tests for token issuance, validation and expiry."""

import pytest

from csrf_guard.authority import TokenAuthority
from csrf_guard.errors import NoSession
from csrf_guard.token_store import InMemoryTokenStore


pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeClock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingStore(InMemoryTokenStore):
    def __init__(self) -> None:
        super().__init__()
        self.sweeps = 0

    async def cleanup_expired(self, now: float) -> int:
        self.sweeps += 1
        return await super().cleanup_expired(now)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return CountingStore()


@pytest.fixture
def authority(store, clock):
    return TokenAuthority(store, clock=clock, random=lambda: 1.0)


@pytest.mark.anyio
@pytest.mark.parametrize("session_id", ["session-a", "s", "ünïcode-session"])
async def test_issued_token_validates_for_its_session(authority, session_id):
    token = await authority.issue(session_id)

    assert await authority.validate(token.value, session_id) is True


@pytest.mark.anyio
async def test_token_is_random_and_long(authority, clock):
    first = await authority.issue("session-a")
    second = await authority.issue("session-a")

    assert first.value != second.value
    assert len(first.value) == 64
    assert first.issued_at == clock.now
    assert first.expires_at == clock.now + 3600


@pytest.mark.anyio
async def test_token_does_not_validate_for_another_session(authority):
    token = await authority.issue("session-a")

    assert await authority.validate(token.value, "session-b") is False
    # A mismatch is not an expiry: the owner can still use it.
    assert await authority.validate(token.value, "session-a") is True


@pytest.mark.anyio
@pytest.mark.parametrize("session_id", [None, ""])
async def test_issue_without_session_fails_and_stores_nothing(authority, store, session_id):
    with pytest.raises(NoSession) as exc_info:
        await authority.issue(session_id)

    assert exc_info.value.status_code == 401
    assert exc_info.value.code == "SESSION_TOKEN_MISSING"
    assert len(store) == 0


@pytest.mark.anyio
@pytest.mark.parametrize("token_value,session_id", [(None, "session-a"), ("", "session-a"), ("abc", None), ("abc", "")])
async def test_validate_fails_closed_on_missing_input(authority, token_value, session_id):
    assert await authority.validate(token_value, session_id) is False


@pytest.mark.anyio
async def test_unknown_token_is_invalid(authority):
    assert await authority.validate("deadbeef", "session-a") is False


@pytest.mark.anyio
async def test_expired_token_is_removed_on_validation(store, clock):
    authority = TokenAuthority(store, lifetime_seconds=1.0, clock=clock, random=lambda: 1.0)
    token = await authority.issue("session-a")

    clock.advance(1.1)

    assert await authority.validate(token.value, "session-a") is False
    assert token.value not in store


@pytest.mark.anyio
async def test_expiry_is_one_way(store, clock):
    authority = TokenAuthority(store, lifetime_seconds=10.0, clock=clock, random=lambda: 1.0)
    token = await authority.issue("session-a")

    clock.advance(9)
    assert await authority.validate(token.value, "session-a") is True

    clock.advance(1)
    assert await authority.validate(token.value, "session-a") is False

    # Even if the clock steps back the record is gone for good.
    clock.advance(-5)
    assert await authority.validate(token.value, "session-a") is False


@pytest.mark.anyio
async def test_tokens_are_multi_use_by_default(authority):
    token = await authority.issue("session-a")

    for _ in range(3):
        assert await authority.validate(token.value, "session-a") is True


@pytest.mark.anyio
async def test_single_use_mode_consumes_token(store, clock):
    authority = TokenAuthority(store, single_use=True, clock=clock, random=lambda: 1.0)
    token = await authority.issue("session-a")

    assert await authority.validate(token.value, "session-a") is True
    assert await authority.validate(token.value, "session-a") is False


@pytest.mark.anyio
async def test_single_use_mode_keeps_token_on_session_mismatch(store, clock):
    authority = TokenAuthority(store, single_use=True, clock=clock, random=lambda: 1.0)
    token = await authority.issue("session-a")

    assert await authority.validate(token.value, "session-b") is False
    assert await authority.validate(token.value, "session-a") is True


@pytest.mark.anyio
async def test_cleanup_runs_only_when_random_draw_is_below_probability(store, clock):
    draws = iter([0.05, 0.5, 0.09, 0.1])
    authority = TokenAuthority(store, cleanup_probability=0.1, clock=clock, random=lambda: next(draws))

    for _ in range(4):
        await authority.issue("session-a")

    assert store.sweeps == 2


@pytest.mark.anyio
async def test_issuance_sweep_removes_expired_tokens(store, clock):
    authority = TokenAuthority(store, lifetime_seconds=5.0, cleanup_probability=1.0, clock=clock, random=lambda: 0.0)
    stale = await authority.issue("session-a")

    clock.advance(6)
    fresh = await authority.issue("session-a")

    assert stale.value not in store
    assert fresh.value in store


@pytest.mark.anyio
async def test_sweep_and_revoke(store, clock):
    authority = TokenAuthority(store, lifetime_seconds=5.0, clock=clock, random=lambda: 1.0)
    first = await authority.issue("session-a")
    second = await authority.issue("session-b")

    await authority.revoke(second.value)
    clock.advance(5)

    assert await authority.sweep() == 1
    assert first.value not in store
    assert len(store) == 0


def test_rejects_weak_configuration(store):
    with pytest.raises(ValueError):
        TokenAuthority(store, lifetime_seconds=0)
    with pytest.raises(ValueError):
        TokenAuthority(store, token_bytes=16)
