from __future__ import annotations


class StoreError(RuntimeError):
    """Base class for store errors."""


class IntegrityViolation(StoreError):
    """Raised when an operation references a missing or mismatched parent."""


class NotFound(IntegrityViolation):
    """Raised when the addressed row does not exist."""

    def __init__(self, kind: str, ident: object) -> None:
        super().__init__(f"{kind} {ident} not found")
        self.kind = kind
        self.ident = ident


class MigrationFailure(StoreError):
    """Raised when the schema cannot be brought up to date; the store does not open."""


class ValidationFailure(StoreError, ValueError):
    """Raised for blank names or malformed arguments, before storage is touched."""
