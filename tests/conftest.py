import pytest
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from csrf_guard.app import create_app
from csrf_guard.authority import TokenAuthority
from csrf_guard.config import CSRFSettings
from csrf_guard.token_store import InMemoryTokenStore


async def echo(request: Request) -> JSONResponse:
    body = await request.body()
    return JSONResponse({"ok": True, "method": request.method, "received": body.decode()})


def app_routes():
    return [
        Route("/api/messages", echo, methods=["GET", "POST", "PUT", "PATCH", "DELETE"]),
        Route("/api/heartbeat", echo, methods=["POST"]),
        Route("/api/presence/heartbeat/ping", echo, methods=["POST"]),
        Route("/api/login", echo, methods=["POST"]),
    ]


@pytest.fixture
def token_store():
    return InMemoryTokenStore()


@pytest.fixture
def authority(token_store):
    return TokenAuthority(token_store, random=lambda: 1.0)


@pytest.fixture
def make_app(authority):
    def _make(settings=None, authority_override=None):
        return create_app(settings or CSRFSettings(), authority_override or authority, routes=app_routes())

    return _make


@pytest.fixture
def app(make_app):
    return make_app()
