"""Pydantic schemas for the durable log and the remote Store contract.

Schema Hierarchy
=================
::
    Record (log line)
    ├─ Key: str
    └─ URL: str

    GetRequest  (POST /rpc/Store.Get)     GetResponse
    └─ key: str                           └─ url: str

    PutRequest  (POST /rpc/Store.Put)     PutResponse
    └─ url: str                           └─ key: str

    HealthResponse (GET /health)
    ├─ status: HealthStatus
    ├─ role: StoreRole
    ├─ entries: int
    └─ pending_writes: int

How to Use
===========
**Step 1 — Append a record**::
    line = Record(key="0", url="http://example.com").to_line()
    # '{"Key":"0","URL":"http://example.com"}\\n'

**Step 2 — Replay a record**::
    record = Record.model_validate_json(line)

Key Behaviours
===============
- Log lines use the capitalised field names ``Key`` and ``URL``.
- Values are opaque strings; nothing here validates URLs.
"""

from pydantic import BaseModel, ConfigDict, Field

from urlstore.enums import HealthStatus, StoreRole

__all__ = [
    "Record",
    "GetRequest",
    "GetResponse",
    "PutRequest",
    "PutResponse",
    "HealthResponse",
]


class Record(BaseModel):
    """One committed entry as it is written to the append log."""

    key: str = Field(..., alias="Key", description="Short key, e.g. '3D7'")
    url: str = Field(..., alias="URL", description="Long value bound to the key")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_line(self) -> str:
        return self.model_dump_json(by_alias=True) + "\n"


class GetRequest(BaseModel):
    key: str


class GetResponse(BaseModel):
    url: str


class PutRequest(BaseModel):
    url: str


class PutResponse(BaseModel):
    key: str


class HealthResponse(BaseModel):
    status: HealthStatus
    role: StoreRole
    entries: int
    pending_writes: int = 0
