"""HTTP surface tests: Store contract routes, redirect, add form, health."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from urlstore.config import Settings
from urlstore.contract import RPC_GET_PATH, RPC_PUT_PATH
from urlstore.enums import HealthStatus, StoreRole
from urlstore.errors import UnencodableValueError
from urlstore.main import create_app
from urlstore.primary import PrimaryStore
from urlstore.replica import ReplicaStore


@pytest.mark.asyncio
async def test_rpc_put_then_get(client: AsyncClient) -> None:
    put_resp = await client.post(RPC_PUT_PATH, json={"url": "http://example.com"})
    assert put_resp.status_code == 200
    assert put_resp.json() == {"key": "0"}

    get_resp = await client.post(RPC_GET_PATH, json={"key": "0"})
    assert get_resp.status_code == 200
    assert get_resp.json() == {"url": "http://example.com"}


@pytest.mark.asyncio
async def test_rpc_get_unknown_key(client: AsyncClient) -> None:
    response = await client.post(RPC_GET_PATH, json={"key": "missing"})
    assert response.status_code == 404
    assert response.json()["detail"] == "key not found"


@pytest.mark.asyncio
async def test_rpc_rejects_malformed_body(client: AsyncClient) -> None:
    response = await client.post(RPC_PUT_PATH, json={"link": "http://example.com"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_rpc_put_exhausted_is_503(settings) -> None:
    store = PrimaryStore(max_put_attempts=1)
    store.set("0", "http://taken.com")
    store.set("1", "http://taken.com")
    store.delete("0")
    app = create_app(settings, store=store)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post(RPC_PUT_PATH, json={"url": "http://example.com"})
    assert response.status_code == 503
    store.close()


@pytest.mark.asyncio
async def test_rpc_put_unencodable_value_is_400(settings) -> None:
    store = MagicMock()
    store.put.side_effect = UnencodableValueError("0")
    app = create_app(settings, store=store)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post(RPC_PUT_PATH, json={"url": "http://example.com"})
    assert response.status_code == 400
    assert response.json()["detail"] == "value cannot be encoded for the log"


def test_rpc_routes_absent_when_disabled(settings, primary_store: PrimaryStore) -> None:
    app = create_app(settings.model_copy(update={"RPC_ENABLED": False}), store=primary_store)
    with TestClient(app) as tc:
        response = tc.post(RPC_PUT_PATH, json={"url": "http://example.com"})
    assert response.status_code in (404, 405)
    assert primary_store.count() == 0


@pytest.mark.asyncio
async def test_redirect_valid_key(client: AsyncClient, primary_store: PrimaryStore) -> None:
    key = primary_store.put("https://www.python.org")
    response = await client.get(f"/{key}", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "https://www.python.org"


@pytest.mark.asyncio
async def test_redirect_unknown_key(client: AsyncClient) -> None:
    response = await client.get("/nonexistent", follow_redirects=False)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_root_is_not_found(client: AsyncClient) -> None:
    response = await client.get("/", follow_redirects=False)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_add_without_url_shows_form(client: AsyncClient) -> None:
    response = await client.get("/add")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert '<form method="POST" action="/add">' in response.text


@pytest.mark.asyncio
async def test_add_with_query_url(client: AsyncClient, primary_store: PrimaryStore) -> None:
    response = await client.get("/add", params={"url": "http://example.com"})
    assert response.status_code == 200
    assert response.text == "http://short.test/0"
    assert primary_store.get("0") == "http://example.com"


@pytest.mark.asyncio
async def test_add_with_form_post(client: AsyncClient, primary_store: PrimaryStore) -> None:
    await client.post("/add", data={"url": "http://first.com"})
    response = await client.post("/add", data={"url": "http://other.com"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert response.text == "http://short.test/1"
    assert primary_store.get("1") == "http://other.com"


@pytest.mark.asyncio
async def test_add_empty_post_shows_form(client: AsyncClient) -> None:
    response = await client.post("/add", data={"url": ""})
    assert response.status_code == 200
    assert "<form" in response.text


@pytest.mark.asyncio
async def test_add_then_redirect(client: AsyncClient) -> None:
    short_url = (await client.post("/add", data={"url": "https://www.github.com"})).text
    key = short_url.rsplit("/", 1)[1]
    response = await client.get(f"/{key}", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "https://www.github.com"


@pytest.mark.asyncio
async def test_health_on_primary(client: AsyncClient, primary_store: PrimaryStore) -> None:
    primary_store.put("http://a.com")
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == HealthStatus.HEALTHY.value
    assert data["role"] == StoreRole.PRIMARY.value
    assert data["entries"] == 1
    assert data["pending_writes"] >= 0


@pytest.mark.asyncio
async def test_health_on_replica(settings, replica_store: ReplicaStore) -> None:
    app = create_app(settings, store=replica_store)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.get("/health")
    assert response.json()["role"] == StoreRole.REPLICA.value


def test_replica_redirect_and_not_found(settings, primary_store, replica_store) -> None:
    primary_store.put("http://a.com")
    app = create_app(settings, store=replica_store)
    with TestClient(app) as tc:
        response = tc.get("/0", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "http://a.com"
        assert tc.get("/9", follow_redirects=False).status_code == 404


def test_replica_unreachable_primary_is_502(settings) -> None:
    store = ReplicaStore.connect("127.0.0.1:1", connect_timeout=0.2, call_timeout=0.2)
    app = create_app(settings, store=store)
    with TestClient(app) as tc:
        assert tc.get("/0", follow_redirects=False).status_code == 502
        assert tc.get("/add", params={"url": "http://a.com"}).status_code == 502
    store.close()


def test_lifespan_builds_and_closes_store(tmp_path) -> None:
    log = tmp_path / "store.json"
    settings = Settings(DATA_FILE=str(log), MASTER_ADDR="", METRICS_ENABLED=False)
    app = create_app(settings)
    with TestClient(app) as tc:
        assert isinstance(app.state.store, PrimaryStore)
        key = tc.post(RPC_PUT_PATH, json={"url": "http://persisted.com"}).json()["key"]
    assert app.state.store is None

    reopened = PrimaryStore(log)
    try:
        assert reopened.get(key) == "http://persisted.com"
    finally:
        reopened.close()


def test_lifespan_builds_replica_when_master_set(settings) -> None:
    app = create_app(settings.model_copy(update={"MASTER_ADDR": "127.0.0.1:1"}))
    with TestClient(app):
        assert isinstance(app.state.store, ReplicaStore)
