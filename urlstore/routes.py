"""FastAPI route definitions for the URL store.

API Endpoint Overview
=====================
::
    POST /rpc/Store.Get          (remote Store contract)
        ├─ GetRequest (request body)
        └─ GetResponse (200) or 404 "key not found" / 502

    POST /rpc/Store.Put          (remote Store contract)
        ├─ PutRequest (request body)
        └─ PutResponse (200) or 400 / 502 / 503

    GET  /health
        └─ HealthResponse (200)

    GET  /add                    (form, or ?url=... to shorten)
    POST /add                    (form-encoded url=...)
        └─ text/plain short URL (200) or 400 / 502 / 503

    GET  /:key
        └─ 302 Redirect or 404 / 502

Key Behaviours
===============
- Handlers are plain ``def`` functions so blocking store calls run in the
  server thread pool, never on the event loop.
- Store errors become HTTPException in each handler; nothing falls back to
  a default value.
- The RPC router is mounted only when RPC_ENABLED is set.
"""

import logging
from urllib.parse import parse_qs

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse

from urlstore.config import Settings
from urlstore.contract import RPC_GET_PATH, RPC_PUT_PATH, ManagedStore
from urlstore.dependencies import get_app_settings, get_store, get_store_role
from urlstore.enums import HealthStatus
from urlstore.errors import (
    KeyNotFoundError,
    KeySpaceExhaustedError,
    RemoteStoreError,
    StoreClosedError,
    UnencodableValueError,
)
from urlstore.schemas import GetRequest, GetResponse, HealthResponse, PutRequest, PutResponse

__all__ = ["router", "rpc_router", "ADD_FORM"]

logger = logging.getLogger(__name__)

router = APIRouter()
rpc_router = APIRouter(tags=["rpc"])

ADD_FORM = """<!DOCTYPE html>
<html>
<head>
	<title>Add URL</title>
</head>
<body>
	<h1>Add URL</h1>
	<form method="POST" action="/add">
		URL: <input type="text" name="url">
		<input type="submit" value="Add">
	</form>
</body>
</html>
"""


def _put_or_raise(store: ManagedStore, url: str) -> str:
    try:
        return store.put(url)
    except (KeySpaceExhaustedError, StoreClosedError) as exc:
        logger.error(f"Put failed: {exc}")
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except UnencodableValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RemoteStoreError as exc:
        logger.warning(f"Put failed upstream: {exc}")
        raise HTTPException(status_code=502, detail=str(exc)) from exc


def _get_or_raise(store: ManagedStore, key: str) -> str:
    try:
        return store.get(key)
    except KeyNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except RemoteStoreError as exc:
        logger.warning(f"Get failed upstream for {key}: {exc}")
        raise HTTPException(status_code=502, detail=str(exc)) from exc


# ============================================================================
# REMOTE STORE CONTRACT
# ============================================================================


@rpc_router.post(RPC_GET_PATH, response_model=GetResponse)
def store_get(payload: GetRequest, store: ManagedStore = Depends(get_store)) -> GetResponse:
    return GetResponse(url=_get_or_raise(store, payload.key))


@rpc_router.post(RPC_PUT_PATH, response_model=PutResponse)
def store_put(payload: PutRequest, store: ManagedStore = Depends(get_store)) -> PutResponse:
    key = _put_or_raise(store, payload.url)
    logger.info(f"Store.Put: {key} -> {payload.url}")
    return PutResponse(key=key)


# ============================================================================
# PUBLIC ROUTES
# ============================================================================


@router.get("/health", response_model=HealthResponse, tags=["health"])
def health_check(store: ManagedStore = Depends(get_store)) -> HealthResponse:
    return HealthResponse(
        status=HealthStatus.HEALTHY,
        role=get_store_role(store),
        entries=store.count(),
        pending_writes=store.pending_writes(),
    )


@router.get("/add", tags=["urls"])
def add_form(
    url: str | None = None,
    store: ManagedStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    if not url:
        return HTMLResponse(ADD_FORM)
    return _shorten(store, settings, url)


@router.post("/add", tags=["urls"])
async def add_submit(
    request: Request,
    store: ManagedStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    form = parse_qs((await request.body()).decode("utf-8", errors="replace"))
    url = (form.get("url") or [request.query_params.get("url", "")])[0]
    if not url:
        return HTMLResponse(ADD_FORM)
    return await run_in_threadpool(_shorten, store, settings, url)


def _shorten(store: ManagedStore, settings: Settings, url: str) -> PlainTextResponse:
    key = _put_or_raise(store, url)
    logger.info(f"Add: {key} -> {url}")
    return PlainTextResponse(f"http://{settings.PUBLIC_HOST}/{key}")


@router.get("/{key}", tags=["redirect"])
def redirect_to_url(key: str, store: ManagedStore = Depends(get_store)) -> RedirectResponse:
    url = _get_or_raise(store, key)
    logger.info(f"Redirect: {key} -> {url}")
    return RedirectResponse(url=url, status_code=302)
