"""Durable append-only log of committed records.

Every committed ``put`` on a primary produces one ``Record``. Records are
queued and written by a single background thread as self-contained JSON
objects, one per line, so request latency never includes disk I/O. Replay
decodes the objects as a stream and does not depend on the line breaks.

Flow Diagram — Write Path
=========================
::
    ┌─────────────┐
    │ PrimaryStore│
    │ .set(...,   │
    │ persist=True)│
    └──────┬──────┘
           ▼
    ┌─────────────┐   full?   ┌─────────────┐
    │ queue.put() │ ────────▶ │ block until │
    │ (bounded)   │           │ writer frees│
    └──────┬──────┘           └─────────────┘
           ▼
    ┌─────────────┐
    │ writer      │
    │ thread:     │
    │ FIFO drain  │
    └──────┬──────┘
    OK?   │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ log +   │  │ append  │
│ drop    │  │ + flush │
└─────────┘  └─────────┘

Flow Diagram — Replay
=====================
::
    ┌─────────────┐
    │ open log    │── missing/unreadable ──▶ start empty
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ decode next │── malformed ──▶ stop, truncate tail
    │ JSON object │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ yield Record│
    └─────────────┘

Key Behaviours
===============
- The queue is bounded; a full queue blocks the producer (backpressure).
- Records are appended in FIFO order and prior bytes are never rewritten.
- A record that cannot be encoded is rejected by append() before it is queued.
- A failed write is logged and the record dropped (at-most-once); the writer
  keeps running.
- A malformed or truncated final object is the natural end of the log.
- No fsync: a flush per record hands data to the OS, nothing more.
"""

import json
import logging
import queue
import threading
from pathlib import Path

from prometheus_client import Counter, Gauge
from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from urlstore.errors import UnencodableValueError
from urlstore.schemas import Record

__all__ = ["AppendLog", "SAVE_QUEUE_LENGTH"]

logger = logging.getLogger(__name__)

SAVE_QUEUE_LENGTH = 1000

RECORDS_PERSISTED_TOTAL = Counter(
    "urlstore_records_persisted_total",
    "Records appended to the durable log",
)
RECORDS_DROPPED_TOTAL = Counter(
    "urlstore_records_dropped_total",
    "Records dropped because the log append failed",
)
RECORDS_REPLAYED_TOTAL = Counter(
    "urlstore_records_replayed_total",
    "Records decoded from the durable log at startup",
)
SAVE_QUEUE_DEPTH = Gauge(
    "urlstore_save_queue_depth",
    "Records waiting for the background writer",
)

_STOP = object()
_JSON_WHITESPACE = " \t\r\n"


class AppendLog:
    """Append-only record file with a bounded queue and one writer thread.

    Example:
        >>> log = AppendLog("file/store.json")
        >>> records = log.replay()
        >>> log.start()
        >>> log.append(Record(key="0", url="http://example.com"))
        >>> log.close()
    """

    def __init__(self, path: str | Path, queue_size: int = SAVE_QUEUE_LENGTH):
        self.path = Path(path)
        self._queue: queue.Queue = queue.Queue(maxsize=queue_size)
        self._thread: threading.Thread | None = None
        self._file = None
        self._closed = False

    # ========================================================================
    # REPLAY
    # ========================================================================

    def replay(self) -> list[Record]:
        """Decode every well-formed record from the start of the file.

        Records are self-contained JSON objects written one after another;
        whitespace between them, including newlines, is ignored.

        Returns:
            list[Record]: Records in append order; empty if the file is
            missing or cannot be read
        """
        records: list[Record] = []

        try:
            data = self.path.read_bytes()
        except FileNotFoundError:
            logger.info(f"No log at {self.path}, starting empty")
            return records
        except OSError as exc:
            logger.error(f"Error opening log {self.path}: {exc}")
            return records

        malformed = False
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            malformed = True
            text = data[: exc.start].decode("utf-8")
            logger.warning(f"Undecodable bytes at offset {exc.start} of {self.path}, treating them as end of log")

        decoder = json.JSONDecoder()
        last_end = 0
        pos = 0
        while True:
            pos = _skip_whitespace(text, pos)
            if pos == len(text):
                break
            try:
                obj, end = decoder.raw_decode(text, pos)
                record = Record.model_validate(obj)
            except (json.JSONDecodeError, ValidationError) as exc:
                malformed = True
                logger.warning(
                    f"Malformed record at byte {len(text[:pos].encode('utf-8'))} of {self.path}, "
                    f"treating it as end of log: {exc}"
                )
                break
            records.append(record)
            last_end = pos = end

        RECORDS_REPLAYED_TOTAL.inc(len(records))
        if malformed:
            self._truncate(len(text[:pos].encode("utf-8")))
        if records and "\n" not in text[last_end:pos]:
            self._terminate_last_line()
        return records

    def _truncate(self, size: int) -> None:
        try:
            with self.path.open("r+b") as fh:
                fh.truncate(size)
            logger.warning(f"Truncated {self.path} to its last well-formed record ({size} bytes)")
        except OSError as exc:
            logger.error(f"Error truncating log {self.path}: {exc}")

    def _terminate_last_line(self) -> None:
        try:
            with self.path.open("ab") as fh:
                fh.write(b"\n")
        except OSError as exc:
            logger.error(f"Error repairing log {self.path}: {exc}")

    # ========================================================================
    # WRITE PATH
    # ========================================================================

    def start(self) -> None:
        """Start the background writer thread."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._save_loop, name="urlstore-append-log", daemon=True)
        self._thread.start()

    def append(self, record: Record) -> None:
        """Encode a record and queue it, blocking while the queue is full.

        Raises:
            UnencodableValueError: If the record cannot be written as JSON;
                nothing is queued
            RuntimeError: If the log has been closed
        """
        if self._closed:
            raise RuntimeError(f"append log {self.path} is closed")
        try:
            line = record.to_line()
        except PydanticSerializationError as exc:
            raise UnencodableValueError(record.key) from exc
        self._queue.put((record.key, line))
        SAVE_QUEUE_DEPTH.set(self._queue.qsize())

    def pending(self) -> int:
        return self._queue.qsize()

    def flush(self) -> None:
        """Block until every queued record has been handled by the writer."""
        self._queue.join()

    def close(self, timeout: float | None = None) -> None:
        """Drain the queue and stop the writer thread."""
        if self._closed:
            return
        self._closed = True
        if self._thread is None:
            if self._queue.qsize():
                logger.warning(f"Closing {self.path} with {self._queue.qsize()} unwritten records")
            return
        self._queue.put(_STOP)
        self._thread.join(timeout)

    def _save_loop(self) -> None:
        try:
            while True:
                item = self._queue.get()
                try:
                    if item is _STOP:
                        return
                    self._write(item)
                finally:
                    self._queue.task_done()
                    SAVE_QUEUE_DEPTH.set(self._queue.qsize())
        finally:
            if self._file is not None:
                self._file.close()
                self._file = None

    def _open_for_append(self):
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            return self.path.open("a", encoding="utf-8")
        except OSError as exc:
            logger.error(f"Error opening log {self.path} for append: {exc}")
            return None

    def _write(self, item: tuple[str, str]) -> None:
        key, line = item
        if self._file is None:
            self._file = self._open_for_append()
        if self._file is None:
            RECORDS_DROPPED_TOTAL.inc()
            logger.error(f"Error saving record {key}: log file unavailable")
            return

        try:
            self._file.write(line)
            self._file.flush()
        except Exception as exc:
            RECORDS_DROPPED_TOTAL.inc()
            logger.error(f"Error saving record {key}: {exc}")
            return
        RECORDS_PERSISTED_TOTAL.inc()


def _skip_whitespace(text: str, pos: int) -> int:
    while pos < len(text) and text[pos] in _JSON_WHITESPACE:
        pos += 1
    return pos
