"""Configuration management for the URL store service.

This module provides centralized configuration management using Pydantic BaseSettings
with environment variable support and caching for performance.

Flow Diagram — get_settings()
=============================
::
    ┌─────────────┐
    │  Call get_  │
    │  settings() │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check cache  │
    │ (lru_cache)  │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Create  │  │ Return  │
│ Settings│  │ cached  │
│ instance│  │ value   │
└─────────┘  └─────────┘

How to Use
===========
**Step 1 — Import**::
    from urlstore.config import get_settings

**Step 2 — Get settings**::
    settings = get_settings()
    data_file = settings.DATA_FILE

**Step 3 — Override for one process (CLI, tests)**::
    settings = Settings(MASTER_ADDR="127.0.0.1:8081", RPC_ENABLED=False)
    app = create_app(settings=settings)

Key Behaviours
===============
- Settings are cached after first access for performance.
- Environment variables override defaults automatically.
- A non-empty MASTER_ADDR switches the process to the replica role.

Classes:
    Settings:  Pydantic model for all configuration values.

"""

__all__ = ["Settings", "get_settings"]

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "url-store"
    APP_ENV: str = "development"

    # HTTP listener
    HTTP_HOST: str = "0.0.0.0"
    HTTP_PORT: int = 8080
    # Host used when printing short URLs back to the client
    PUBLIC_HOST: str = "localhost:8080"

    # Primary store
    DATA_FILE: str = "file/store.json"
    SAVE_QUEUE_LENGTH: int = 1000
    PUT_MAX_ATTEMPTS: int = 100

    # Replica role: primary address, empty means this process is the primary
    MASTER_ADDR: str = ""
    RPC_ENABLED: bool = True
    RPC_CONNECT_TIMEOUT: float = 2.0
    RPC_CALL_TIMEOUT: float = 5.0

    # Observability
    LOG_LEVEL: str = "INFO"
    METRICS_ENABLED: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )

    @property
    def is_replica(self) -> bool:
        return bool(self.MASTER_ADDR)


@lru_cache()
def get_settings() -> Settings:
    return Settings()
