"""Shared pytest fixtures for store, replica, and API tests."""

from collections.abc import AsyncGenerator, Generator
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from urlstore.config import Settings
from urlstore.main import create_app
from urlstore.primary import PrimaryStore
from urlstore.replica import ReplicaStore


class CallCounter:
    """httpx request hook recording every remote call by path."""

    def __init__(self) -> None:
        self.paths: list[str] = []

    def __call__(self, request: httpx.Request) -> None:
        self.paths.append(request.url.path)

    def count(self, path: str | None = None) -> int:
        if path is None:
            return len(self.paths)
        return sum(1 for p in self.paths if p == path)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DATA_FILE="",
        MASTER_ADDR="",
        PUBLIC_HOST="short.test",
        METRICS_ENABLED=False,
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def log_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "store.json"


@pytest.fixture
def primary_store(log_path: Path) -> Generator[PrimaryStore, None, None]:
    store = PrimaryStore(log_path)
    yield store
    store.close()


@pytest.fixture
def primary_app(settings: Settings, primary_store: PrimaryStore) -> FastAPI:
    return create_app(settings, store=primary_store)


@pytest.fixture
def remote_calls() -> CallCounter:
    return CallCounter()


@pytest.fixture
def replica_store(primary_app: FastAPI, remote_calls: CallCounter) -> Generator[ReplicaStore, None, None]:
    client = TestClient(primary_app)
    client.event_hooks = {"request": [remote_calls], "response": []}
    store = ReplicaStore(client)
    yield store
    store.close()
    client.close()


@pytest_asyncio.fixture
async def client(primary_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=primary_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
