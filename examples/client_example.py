#!/usr/bin/env python3
"""
Example client for a csrf-guard protected site.

This client demonstrates how application code sends state-changing
requests through CSRFClient, which fetches, caches and attaches the
CSRF token on its own.
"""

import asyncio
import getpass
import json
import sys

from csrf_guard import CSRFClient, CSRFError


async def run(server_url):
    """Run the example against ``server_url``."""
    async with CSRFClient(server_url) as client:
        # A page opened from an old email link may still carry ?token=...
        page_url = client.bootstrap(f"{server_url}/inbox")
        print(f"Continuing at {page_url}")

        if client.cookies.get("sessionToken") is None:
            session = getpass.getpass("Enter your session token: ")
            client.cookies.set("sessionToken", session)

        # Fetch the token up front, as a page does on load
        token = await client.prime()
        print(f"CSRF token ready ({token[:6]}...)")

        # Safe requests go out unmodified
        health = await client.get("/health")
        print(json.dumps(health.json(), indent=2))

        # State-changing requests carry X-CSRF-Token automatically
        text = input("Message to send: ")
        response = await client.post("/api/messages", json={"text": text})
        print(f"POST /api/messages -> {response.status_code}")

        # Cross-origin requests never see the token
        if client.is_same_origin("https://cdn.example.net/upload"):
            print("Unexpected: CDN treated as same origin")


def main():
    """Run the example client."""
    server_url = sys.argv[1] if len(sys.argv) > 1 else "http://127.0.0.1:9000"
    try:
        asyncio.run(run(server_url))
    except CSRFError as e:
        print(f"Request failed: {e.detail} ({e.code})")
        sys.exit(1)


if __name__ == "__main__":
    main()
