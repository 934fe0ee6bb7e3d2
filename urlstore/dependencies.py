"""Store construction and dependency injection for the HTTP layer.

The process holds exactly one store. It is built once (by the application
lifespan or by the caller of ``create_app``), kept on ``app.state`` and
handed to the routes through ``get_store``; nothing reads it from a module
global.
"""

import logging

from fastapi import Request

from urlstore.config import Settings
from urlstore.contract import ManagedStore
from urlstore.enums import StoreRole
from urlstore.primary import PrimaryStore
from urlstore.replica import ReplicaStore

__all__ = ["build_store", "get_app_settings", "get_store", "get_store_role", "setup_logger"]

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(settings: Settings) -> logging.Logger:
    """Configure the package logger once."""
    logger = logging.getLogger("urlstore")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(settings.LOG_LEVEL.upper())
    return logger


def build_store(settings: Settings) -> ManagedStore:
    """Create the store this process should serve.

    A non-empty MASTER_ADDR selects a ReplicaStore delegating to that
    primary; otherwise a PrimaryStore backed by DATA_FILE.
    """
    logger = logging.getLogger("urlstore")
    if settings.is_replica:
        logger.info(f"Starting as replica of {settings.MASTER_ADDR}")
        return ReplicaStore.from_settings(settings)
    logger.info(f"Starting as primary with log {settings.DATA_FILE or '<memory>'}")
    return PrimaryStore.from_settings(settings)


def get_store(request: Request) -> ManagedStore:
    """FastAPI dependency returning the process store."""
    store = request.app.state.store
    if store is None:
        raise RuntimeError("store is not initialised; is the application lifespan running?")
    return store


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store_role(store: ManagedStore) -> StoreRole:
    return StoreRole.REPLICA if isinstance(store, ReplicaStore) else StoreRole.PRIMARY
