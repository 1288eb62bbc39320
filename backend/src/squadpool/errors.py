"""Typed errors raised by the engine.

Each error carries a short machine-readable ``code`` so callers (CLI, HTTP
layers) can map failures without string matching on messages.
"""

from __future__ import annotations


class PoolError(Exception):
    code = "internal"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class InvalidArgument(PoolError):
    code = "invalid-argument"


class FailedPrecondition(PoolError):
    code = "failed-precondition"


class NotFound(PoolError):
    code = "not-found"


class PermissionDenied(PoolError):
    code = "permission-denied"


class Unauthenticated(PoolError):
    code = "unauthenticated"


class ProviderError(PoolError):
    """Terminal failure talking to an upstream match provider."""

    code = "unavailable"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StoreError(PoolError):
    code = "internal"


class TransactionConflict(StoreError):
    """A document read inside a transaction changed before commit."""

    code = "aborted"
