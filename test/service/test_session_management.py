import re
from datetime import datetime, timezone

import pytest
from fastapi import Depends, FastAPI
from fastapi.responses import PlainTextResponse, StreamingResponse
from httpx import AsyncClient, ASGITransport

from sessionstate import Manager, MemoryStore, SessionScope, StoreError
from sessionstate.config import CookieSettings
from sessionstate.middleware import SessionMiddleware, get_session_scope

from conftest import FailingStore


def build_app(manager: Manager, cookie: CookieSettings = None, **middleware_kwargs) -> FastAPI:
    app = FastAPI()
    app.add_middleware(
        SessionMiddleware,
        manager=manager,
        cookie=cookie or CookieSettings(secure=False),
        **middleware_kwargs,
    )

    @app.get("/noop")
    async def noop():
        return PlainTextResponse("ok")

    @app.post("/put")
    async def put(value: str, scope: SessionScope = Depends(get_session_scope)):
        await manager.put(scope, "value", value)
        return PlainTextResponse("stored")

    @app.get("/get")
    async def get(scope: SessionScope = Depends(get_session_scope)):
        return {"value": await manager.get_string(scope, "value")}

    @app.post("/stream")
    async def stream(value: str, scope: SessionScope = Depends(get_session_scope)):
        await manager.put(scope, "value", value)

        async def body():
            yield "streamed"

        return StreamingResponse(body(), media_type="text/plain")

    @app.post("/destroy")
    async def destroy(scope: SessionScope = Depends(get_session_scope)):
        await manager.destroy(scope)
        return PlainTextResponse("session deleted")

    @app.post("/login")
    async def login(scope: SessionScope = Depends(get_session_scope)):
        await manager.renew_token(scope)
        await manager.remember_me(scope, True)
        return PlainTextResponse("logged in")

    return app


def client_for(app: FastAPI) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


def session_cookie(response) -> str:
    cookies = [c for c in response.headers.get_list("set-cookie") if c.startswith("session=")]
    assert len(cookies) == 1
    return cookies[0]


def cookie_token(header: str) -> str:
    return header.split(";", 1)[0].split("=", 1)[1]


def max_age(header: str):
    match = re.search(r"Max-Age=(-?\d+)", header)
    return int(match.group(1)) if match else None


@pytest.fixture
def manager():
    return Manager(store=MemoryStore())


@pytest.mark.asyncio
async def test_unmodified_session_sets_no_cookie(manager):
    async with client_for(build_app(manager)) as client:
        response = await client.get("/noop")

    assert response.status_code == 200
    assert response.headers.get_list("set-cookie") == []
    assert "Cookie" in response.headers.get_list("vary")


@pytest.mark.asyncio
async def test_modified_session_sets_cookie(manager):
    async with client_for(build_app(manager)) as client:
        response = await client.post("/put", params={"value": "hello"})

    header = session_cookie(response)
    token = cookie_token(header)
    assert re.fullmatch(r"[A-Za-z0-9_-]{43}", token)
    assert 86_000 < max_age(header) <= 86_401
    assert "HttpOnly" in header
    assert "Path=/" in header
    assert "samesite=lax" in header.lower()
    assert "Secure" not in header
    assert response.headers["cache-control"] == 'no-cache="Set-Cookie"'
    assert "Cookie" in response.headers.get_list("vary")


@pytest.mark.asyncio
async def test_session_is_loaded_from_cookie(manager):
    async with client_for(build_app(manager)) as client:
        first = await client.post("/put", params={"value": "hello"})
        token = cookie_token(session_cookie(first))

        response = await client.get("/get", headers={"Cookie": f"session={token}"})

    assert response.json() == {"value": "hello"}
    assert response.headers.get_list("set-cookie") == []


@pytest.mark.asyncio
async def test_destroy_expires_cookie(manager):
    async with client_for(build_app(manager)) as client:
        first = await client.post("/put", params={"value": "hello"})
        token = cookie_token(session_cookie(first))

        response = await client.post("/destroy", headers={"Cookie": f"session={token}"})

    header = session_cookie(response)
    assert response.text == "session deleted"
    assert cookie_token(header) in ("", '""')
    assert max_age(header) == 0
    assert "1970" in header
    assert await manager.store.find(token) is None


@pytest.mark.asyncio
async def test_non_persistent_cookie_has_no_expiry(manager):
    app = build_app(manager, cookie=CookieSettings(secure=False, persist=False))

    async with client_for(app) as client:
        response = await client.post("/put", params={"value": "hello"})

    header = session_cookie(response)
    assert max_age(header) is None
    assert "expires" not in header.lower()


@pytest.mark.asyncio
async def test_remember_me_makes_cookie_persistent(manager):
    app = build_app(manager, cookie=CookieSettings(secure=False, persist=False))

    async with client_for(app) as client:
        response = await client.post("/login")

    assert max_age(session_cookie(response)) > 0


@pytest.mark.asyncio
async def test_secure_cookie_and_custom_name(manager):
    app = build_app(manager, cookie=CookieSettings(name="sid", secure=True, domain="example.com"))

    async with client_for(app) as client:
        response = await client.post("/put", params={"value": "hello"})

    header = response.headers["set-cookie"]
    assert header.startswith("sid=")
    assert "Secure" in header
    assert "Domain=example.com" in header


@pytest.mark.asyncio
async def test_load_error_returns_500():
    store = FailingStore()
    store.fail_on.add("find")
    app = build_app(Manager(store=store))

    async with client_for(app) as client:
        response = await client.get("/noop", headers={"Cookie": "session=abc"})

    assert response.status_code == 500
    assert response.json()["error_code"] == "session_error"


@pytest.mark.asyncio
async def test_save_error_uses_custom_handler():
    store = FailingStore()
    store.fail_on.add("commit")
    seen = []

    async def handler(request, exc):
        seen.append(exc)
        return PlainTextResponse("session unavailable", status_code=503)

    app = build_app(Manager(store=store), error_handler=handler)

    async with client_for(app) as client:
        response = await client.post("/put", params={"value": "hello"})

    assert response.status_code == 503
    assert isinstance(seen[0], StoreError)


@pytest.mark.asyncio
async def test_changes_before_streaming_response_are_saved(manager):
    async with client_for(build_app(manager)) as client:
        response = await client.post("/stream", params={"value": "flowing"})
        assert response.status_code == 200
        assert response.text == "streamed"
        token = cookie_token(session_cookie(response))

        response = await client.get("/get", headers={"Cookie": f"session={token}"})

    assert response.json() == {"value": "flowing"}
