"""Structured error types for redmodel."""

from __future__ import annotations


class RedmodelError(Exception):
    """Base error for all redmodel errors."""


class MissingIDError(RedmodelError):
    """Raised when an operation needs a persisted id and the object has none.

    Save the object first (or declare the model with ``auto_id=True``).
    """

    def __init__(self, type_name: str) -> None:
        self.type_name = type_name
        super().__init__(f"'{type_name}' instance has no id; save it first")


class IndexNotFoundError(RedmodelError):
    """Raised when a filter references a field that is not declared as an index."""

    def __init__(self, type_name: str, field: str) -> None:
        self.type_name = type_name
        self.field = field
        super().__init__(
            f"'{type_name}' has no index on '{field}'. "
            f"Declare it with Field(index=True) or @computed_index."
        )


class CasViolationError(RedmodelError):
    """Raised when a serial attribute save loses the compare-and-set race.

    The caller owns the retry: reload the object, reapply the change, save again.
    """

    def __init__(self, key: str, token: int | None) -> None:
        self.key = key
        self.token = token
        super().__init__(f"CAS token {token!r} is stale for '{key}'; reload and retry")


class StorageBackendError(RedmodelError):
    """Raised when a store round-trip fails (connection, timeout, bad reply)."""

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage backend error during {operation}: {detail}")


class UnknownModelError(RedmodelError):
    """Raised when a relation or reference names a type missing from the registry."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Model type '{name}' is not registered with this session")
