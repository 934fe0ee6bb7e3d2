"""Replica store: a read cache that delegates to a primary over HTTP.

Flow Diagram — get()
====================
::
    ┌─────────────┐
    │ get(key)    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ local cache │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ POST    │  │ return  │
│ Store.  │  │ cached  │
│ Get     │  └─────────┘
└────┬────┘
     ▼
┌─────────┐
│ cache + │
│ return  │
└─────────┘

Flow Diagram — put()
====================
::
    put(url) ─▶ POST Store.Put ─▶ cache (key, url) ─▶ return key

Key Behaviours
===============
- The replica never mints keys; every put goes to the primary.
- A cache hit makes no remote call; a miss makes exactly one.
- A failed remote call leaves the cache untouched.
- Cached entries are never invalidated; the primary never rebinds a key.
"""

import logging

import httpx
from prometheus_client import Counter
from pydantic import BaseModel, ValidationError

from urlstore.config import Settings
from urlstore.contract import RPC_GET_PATH, RPC_PUT_PATH
from urlstore.enums import CacheStatus, RequestStatus
from urlstore.errors import KeyExistsError, KeyNotFoundError, RemoteStoreError
from urlstore.primary import PrimaryStore
from urlstore.schemas import GetRequest, GetResponse, PutRequest, PutResponse

__all__ = ["ReplicaStore"]

logger = logging.getLogger(__name__)

NOT_FOUND_DETAIL = "key not found"

REPLICA_LOOKUPS_TOTAL = Counter(
    "urlstore_replica_lookups_total",
    "Replica get() calls by local cache outcome",
    ["cache_hit"],
)
REMOTE_CALLS_TOTAL = Counter(
    "urlstore_remote_calls_total",
    "Calls delegated from a replica to its primary",
    ["operation", "status"],
)


class ReplicaStore:
    """Store contract backed by a local cache and a remote primary.

    Example:
        >>> store = ReplicaStore.connect("127.0.0.1:8081")
        >>> key = store.put("http://example.com")   # one remote call
        >>> store.get(key)                          # served from cache
        'http://example.com'
    """

    def __init__(self, client: httpx.Client, *, owns_client: bool = False):
        self._cache = PrimaryStore()
        self._client = client
        self._owns_client = owns_client

    @classmethod
    def connect(
        cls,
        addr: str,
        *,
        connect_timeout: float = 2.0,
        call_timeout: float = 5.0,
    ) -> "ReplicaStore":
        """Create a replica bound to the primary at ``addr``.

        Args:
            addr: ``host:port`` or a full base URL of the primary
            connect_timeout: Seconds allowed to establish a connection
            call_timeout: Seconds allowed for the rest of each call
        """
        base_url = addr if "://" in addr else f"http://{addr}"
        client = httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(call_timeout, connect=connect_timeout),
        )
        logger.info(f"Replica delegating to primary at {base_url}")
        return cls(client, owns_client=True)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReplicaStore":
        return cls.connect(
            settings.MASTER_ADDR,
            connect_timeout=settings.RPC_CONNECT_TIMEOUT,
            call_timeout=settings.RPC_CALL_TIMEOUT,
        )

    # ========================================================================
    # STORE CONTRACT
    # ========================================================================

    def get(self, key: str) -> str:
        try:
            url = self._cache.get(key)
        except KeyNotFoundError:
            REPLICA_LOOKUPS_TOTAL.labels(cache_hit=CacheStatus.MISS).inc()
        else:
            REPLICA_LOOKUPS_TOTAL.labels(cache_hit=CacheStatus.HIT).inc()
            return url

        response = self._post(RPC_GET_PATH, GetRequest(key=key), "get")
        if response.status_code == httpx.codes.NOT_FOUND and _error_detail(response) == NOT_FOUND_DETAIL:
            REMOTE_CALLS_TOTAL.labels(operation="get", status=RequestStatus.NOT_FOUND).inc()
            raise KeyNotFoundError(key)
        url = self._parse(response, GetResponse, "get").url
        self._remember(key, url)
        return url

    def put(self, url: str) -> str:
        response = self._post(RPC_PUT_PATH, PutRequest(url=url), "put")
        key = self._parse(response, PutResponse, "put").key
        self._remember(key, url)
        return key

    # ========================================================================
    # HOUSEKEEPING
    # ========================================================================

    def count(self) -> int:
        """Number of entries currently cached."""
        return self._cache.count()

    def pending_writes(self) -> int:
        return 0

    def close(self) -> None:
        self._cache.close()
        if self._owns_client:
            self._client.close()

    # ========================================================================
    # PRIVATE HELPER METHODS
    # ========================================================================

    def _post(self, path: str, body: BaseModel, operation: str) -> httpx.Response:
        try:
            return self._client.post(path, json=body.model_dump())
        except httpx.HTTPError as exc:
            REMOTE_CALLS_TOTAL.labels(operation=operation, status=RequestStatus.ERROR).inc()
            logger.error(f"Remote {operation} failed: {exc!r}")
            raise RemoteStoreError(f"remote {operation} failed: {exc}") from exc

    def _parse(self, response: httpx.Response, model: type[BaseModel], operation: str):
        if response.is_error:
            REMOTE_CALLS_TOTAL.labels(operation=operation, status=RequestStatus.ERROR).inc()
            detail = _error_detail(response)
            logger.error(f"Remote {operation} returned {response.status_code}: {detail}")
            raise RemoteStoreError(f"remote {operation} failed: {detail}", status_code=response.status_code)
        try:
            parsed = model.model_validate_json(response.content)
        except ValidationError as exc:
            REMOTE_CALLS_TOTAL.labels(operation=operation, status=RequestStatus.ERROR).inc()
            logger.error(f"Remote {operation} returned an unreadable body: {exc}")
            raise RemoteStoreError(
                f"remote {operation} returned an unreadable body", status_code=response.status_code
            ) from exc
        REMOTE_CALLS_TOTAL.labels(operation=operation, status=RequestStatus.SUCCESS).inc()
        return parsed

    def _remember(self, key: str, url: str) -> None:
        try:
            self._cache.set(key, url)
        except KeyExistsError:
            logger.debug(f"Key {key} already cached")


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text
    if isinstance(payload, dict) and "detail" in payload:
        return str(payload["detail"])
    return response.text
