"""Primary store: the authoritative key → URL map.

The primary is the only component that mints keys. It keeps every entry in
memory behind one reader-writer lock and, when given a log file, persists
each committed entry through an ``AppendLog``.

Flow Diagram — put()
====================
::
    ┌─────────────┐
    │ put(url)    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ candidate = │◀──────────────┐
    │ key(count + │               │
    │   attempt)  │               │
    └──────┬──────┘               │
           ▼                      │
    ┌─────────────┐  exists   ┌───┴─────────┐
    │ set() under │ ────────▶ │ attempt += 1│── > max ──▶ KeySpaceExhaustedError
    │ write lock  │           └─────────────┘
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ enqueue     │
    │ Record      │
    └──────┬──────┘
           ▼
       return key

Key Behaviours
===============
- get/count/snapshot take the lock shared; set/delete take it exclusive.
- Keys are never rebound: set() rejects an existing key.
- put() never mints a key in RESERVED_KEYS, since fixed routes shadow them.
- The record is queued while the write lock is held, so log order equals
  commit order.
- delete() only touches memory; it is not part of the Store contract.
"""

import logging
from pathlib import Path

from prometheus_client import Counter, Gauge

from urlstore.config import Settings
from urlstore.contract import RESERVED_KEYS
from urlstore.enums import RequestStatus
from urlstore.errors import (
    KeyExistsError,
    KeyNotFoundError,
    KeySpaceExhaustedError,
    StoreClosedError,
    UnencodableValueError,
)
from urlstore.journal import SAVE_QUEUE_LENGTH, AppendLog
from urlstore.keygen import generate_key
from urlstore.locks import ReadWriteLock
from urlstore.schemas import Record

__all__ = ["PrimaryStore", "PUT_MAX_ATTEMPTS"]

logger = logging.getLogger(__name__)

PUT_MAX_ATTEMPTS = 100

PUT_REQUESTS_TOTAL = Counter(
    "urlstore_put_requests_total",
    "put() calls handled by a primary store",
    ["status"],
)
KEY_COLLISIONS_TOTAL = Counter(
    "urlstore_key_collisions_total",
    "Candidate keys rejected because they were already bound",
)
STORE_ENTRIES = Gauge(
    "urlstore_primary_entries",
    "Entries held by the most recently updated persistent primary store",
)


class PrimaryStore:
    """Concurrent key → URL map with an optional durable log.

    Without ``log_path`` the store is purely in memory; replicas use it that
    way as their local cache.

    Example:
        >>> store = PrimaryStore("file/store.json")
        >>> key = store.put("http://example.com")
        >>> store.get(key)
        'http://example.com'
        >>> store.close()
    """

    def __init__(
        self,
        log_path: str | Path | None = None,
        *,
        queue_size: int = SAVE_QUEUE_LENGTH,
        max_put_attempts: int = PUT_MAX_ATTEMPTS,
    ):
        if max_put_attempts < 1:
            raise ValueError("max_put_attempts must be at least 1")
        self._urls: dict[str, str] = {}
        self._lock = ReadWriteLock()
        self._max_put_attempts = max_put_attempts
        self._closed = False
        self._log: AppendLog | None = None

        if log_path:
            self._log = AppendLog(log_path, queue_size=queue_size)
            self._load()
            self._log.start()

    @classmethod
    def from_settings(cls, settings: Settings) -> "PrimaryStore":
        return cls(
            settings.DATA_FILE or None,
            queue_size=settings.SAVE_QUEUE_LENGTH,
            max_put_attempts=settings.PUT_MAX_ATTEMPTS,
        )

    # ========================================================================
    # STORE CONTRACT
    # ========================================================================

    def get(self, key: str) -> str:
        with self._lock.read():
            try:
                return self._urls[key]
            except KeyError:
                raise KeyNotFoundError(key) from None

    def put(self, url: str) -> str:
        """Bind ``url`` to a fresh key.

        Args:
            url: Value to store; not validated

        Returns:
            str: The newly assigned key

        Raises:
            KeySpaceExhaustedError: If every candidate up to the attempt
                limit was already bound
            StoreClosedError: If close() has been called
            UnencodableValueError: If the value cannot be written to the log;
                the store is left unchanged
        """
        for attempt in range(self._max_put_attempts):
            key = generate_key(self.count() + attempt)
            if key in RESERVED_KEYS:
                logger.debug(f"Skipping reserved key {key}")
                continue
            try:
                self.set(key, url, persist=True)
            except KeyExistsError:
                KEY_COLLISIONS_TOTAL.inc()
                logger.debug(f"Key collision on {key}, retrying (attempt {attempt + 1})")
                continue
            except UnencodableValueError:
                PUT_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR).inc()
                logger.warning(f"Rejected a value that cannot be logged (candidate key {key})")
                raise
            PUT_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
            return key

        PUT_REQUESTS_TOTAL.labels(status=RequestStatus.EXHAUSTED).inc()
        logger.error(f"No free key after {self._max_put_attempts} attempts")
        raise KeySpaceExhaustedError(self._max_put_attempts)

    # ========================================================================
    # INTERNAL PRIMITIVES
    # ========================================================================

    def set(self, key: str, url: str, persist: bool = False) -> None:
        """Install ``key`` only if it is absent.

        With ``persist`` the record is queued for the durable log before the
        key is installed, so a value the log rejects leaves the map unchanged.
        """
        with self._lock.write():
            if persist and self._closed:
                raise StoreClosedError("store is closed")
            if key in self._urls:
                raise KeyExistsError(key)
            logged = persist and self._log is not None
            if logged:
                self._log.append(Record(key=key, url=url))
            self._urls[key] = url
            if logged:
                STORE_ENTRIES.set(len(self._urls))

    def delete(self, key: str) -> None:
        with self._lock.write():
            self._urls.pop(key, None)

    def count(self) -> int:
        with self._lock.read():
            return len(self._urls)

    def snapshot(self) -> dict[str, str]:
        with self._lock.read():
            return dict(self._urls)

    def pending_writes(self) -> int:
        return self._log.pending() if self._log is not None else 0

    def flush(self) -> None:
        """Wait until every queued record has reached the log file."""
        if self._log is not None:
            self._log.flush()

    def close(self) -> None:
        """Refuse further puts, drain the log queue and stop the writer."""
        with self._lock.write():
            if self._closed:
                return
            self._closed = True
        if self._log is not None:
            self._log.close()
            logger.info(f"Closed store log {self._log.path}")

    def _load(self) -> None:
        for record in self._log.replay():
            try:
                self.set(record.key, record.url)
            except KeyExistsError:
                logger.warning(f"Duplicate key {record.key} in {self._log.path}, keeping the first value")
        STORE_ENTRIES.set(len(self._urls))
        logger.info(f"Loaded {len(self._urls)} entries from {self._log.path}")
