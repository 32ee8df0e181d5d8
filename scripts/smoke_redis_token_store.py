"""Quick smoke test for the Redis-backed CSRF token store.

Run with REDIS_URL set to a reachable Redis instance.
"""

from __future__ import annotations

import asyncio
import os
import sys

from csrf_guard.authority import TokenAuthority
from csrf_guard.token_store.redis_backend import RedisTokenStore


class SmokeFailure(RuntimeError):
    pass


async def run_smoke(redis_url: str) -> None:
    store = RedisTokenStore(redis_url, key_prefix="csrf-smoke")
    authority = TokenAuthority(store, lifetime_seconds=3)

    print(f"[+] Connected to Redis at {redis_url}")

    token = await authority.issue("smoke-session")
    if not await authority.validate(token.value, "smoke-session"):
        raise SmokeFailure("Freshly issued token did not validate")
    if not await authority.validate(token.value, "smoke-session"):
        raise SmokeFailure("Token did not validate a second time within its lifetime")
    print("[+] Token issued and validated")

    if await authority.validate(token.value, "other-session"):
        raise SmokeFailure("Token validated for a different session")
    print("[+] Token rejected for a different session")

    print("[+] Waiting for TTL to expire...")
    await asyncio.sleep(4)

    if await store.get(token.value) is not None:
        raise SmokeFailure("Token record still present after TTL expiry")
    if await authority.validate(token.value, "smoke-session"):
        raise SmokeFailure("Expired token still validates")
    print("[+] Token expired as expected")

    second = await authority.issue("smoke-session")
    await authority.revoke(second.value)
    if await authority.validate(second.value, "smoke-session"):
        raise SmokeFailure("Revoked token still validates")
    print("[+] Revoked token rejected")

    await authority.close()
    print("[✓] Redis token store smoke test passed")


def main() -> int:
    redis_url = os.environ.get("REDIS_URL")
    if not redis_url:
        print("ERROR: REDIS_URL environment variable not set", file=sys.stderr)
        return 2

    try:
        asyncio.run(run_smoke(redis_url))
    except SmokeFailure as exc:
        print(f"SMOKE FAILURE: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return 130
    except Exception as exc:  # pragma: no cover
        print(f"Unexpected error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
