"""Error taxonomy shared by the contact store, the resolver and the HTTP layer."""

from __future__ import annotations

# SQLSTATE codes a caller can safely retry: serialization_failure, deadlock_detected.
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})


class IdentityError(Exception):
    """Base class for every failure raised by identity reconciliation."""


class InvalidRequest(IdentityError):
    """Neither an email nor a phone number was supplied."""


class StoreError(IdentityError):
    """The persistence engine was unreachable or rejected a statement."""

    def __init__(self, message: str, *, operation: str = "", retryable: bool = False) -> None:
        super().__init__(message)
        self.operation = operation
        self.retryable = retryable


class MalformedContactRow(StoreError):
    """A persisted contact row failed validation while being mapped."""


class InconsistentState(IdentityError):
    """An identity group does not have exactly one primary contact."""
