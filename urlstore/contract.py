"""The two-operation Store contract.

Both ``PrimaryStore`` and ``ReplicaStore`` satisfy it, so the HTTP layer can
hold either without branching. Remotely the operations are exposed as
``Store.Get`` and ``Store.Put`` (see ``urlstore.routes``); nothing else a
store offers is remotely callable.
"""

from typing import Protocol, runtime_checkable

__all__ = ["Store", "ManagedStore", "RPC_GET_PATH", "RPC_PUT_PATH", "RESERVED_KEYS"]

RPC_GET_PATH = "/rpc/Store.Get"
RPC_PUT_PATH = "/rpc/Store.Put"

# Single-segment paths served by fixed routes; a key equal to one of them
# could never be reached through GET /{key}.
RESERVED_KEYS = frozenset({"add", "health", "metrics", "docs", "redoc"})


@runtime_checkable
class Store(Protocol):
    def put(self, url: str) -> str:
        """Bind ``url`` to a fresh key and return the key."""
        ...

    def get(self, key: str) -> str:
        """Return the URL bound to ``key`` or raise KeyNotFoundError."""
        ...


@runtime_checkable
class ManagedStore(Store, Protocol):
    """What the service needs on top of the contract: sizing and shutdown."""

    def count(self) -> int: ...

    def pending_writes(self) -> int: ...

    def close(self) -> None: ...
