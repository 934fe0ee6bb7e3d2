"""Typed failures raised by the stores.

Everything a caller can observe derives from ``StoreError``; the HTTP layer
maps each subclass to a status code.
"""

__all__ = [
    "StoreError",
    "KeyNotFoundError",
    "KeyExistsError",
    "KeySpaceExhaustedError",
    "RemoteStoreError",
    "StoreClosedError",
    "UnencodableValueError",
]


class StoreError(Exception):
    """Base class for store failures."""


class KeyNotFoundError(StoreError, KeyError):
    """Raised by get() when the key is not bound."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(key)

    def __str__(self) -> str:
        return "key not found"


class KeyExistsError(StoreError):
    """Raised by set() when the key is already bound."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"key '{key}' already exists")


class KeySpaceExhaustedError(StoreError):
    """put() gave up after too many colliding candidates."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"no free key found after {attempts} attempts")


class RemoteStoreError(StoreError):
    """A call delegated to the primary failed.

    ``status_code`` is the upstream HTTP status when a response was received,
    ``None`` for transport failures (refused connection, timeout).
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class StoreClosedError(StoreError):
    """put() was called after close()."""


class UnencodableValueError(StoreError, ValueError):
    """The value cannot be written to the durable log (e.g. a lone surrogate)."""

    def __init__(self, key: str):
        self.key = key
        super().__init__("value cannot be encoded for the log")
