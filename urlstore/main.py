"""FastAPI application entry point for the URL store service.

Application Lifecycle Diagram
===========================
::
    ┌─────────────┐
    │ create_app()│
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Mount RPC   │
    │ routes (if  │
    │ RPC_ENABLED)│
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Expose      │
    │ /metrics    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ startup:    │
    │ build_store │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Serve HTTP  │
    │ requests    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ shutdown:   │
    │ store.close │
    └─────────────┘

How to Use
===========
**Step 1 — Run with uvicorn**::
    uvicorn urlstore.main:create_app --factory --port 8081

**Step 2 — Or through the CLI**::
    python -m urlstore --http :8081
    python -m urlstore --master 127.0.0.1:8081

**Step 3 — Embed with an existing store**::
    store = PrimaryStore("file/store.json")
    app = create_app(settings, store=store)

Key Behaviours
===============
- A store passed to create_app() is used as-is and closed by its owner.
- Without one, the lifespan builds it from settings and closes it on
  shutdown, which drains the persistence queue.
"""

__all__ = ["create_app"]

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

from urlstore.config import Settings, get_settings
from urlstore.contract import ManagedStore
from urlstore.dependencies import build_store, setup_logger
from urlstore.routes import router, rpc_router

__version__ = "1.0.0"


def create_app(settings: Settings | None = None, store: ManagedStore | None = None) -> FastAPI:
    settings = settings or get_settings()
    logger = setup_logger(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # Startup
        owned = app.state.store is None
        if owned:
            app.state.store = build_store(settings)
        yield
        # Shutdown
        if owned:
            app.state.store.close()
            app.state.store = None
            logger.info("Store closed")

    app = FastAPI(
        title=settings.APP_NAME,
        version=__version__,
        description="Short key to URL store with a primary/replica split",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store

    if settings.RPC_ENABLED:
        app.include_router(rpc_router)

    if settings.METRICS_ENABLED:
        Instrumentator(
            should_group_status_codes=True,
            should_ignore_untemplated=False,
            should_respect_env_var=False,
        ).instrument(app).expose(app)

    app.include_router(router)
    return app
