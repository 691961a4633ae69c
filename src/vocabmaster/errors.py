"""Exceptions raised by the scheduling core and the progress store."""
from typing import Any, Iterable


class VocabMasterError(Exception):
    """Base class for all recoverable package errors."""


class InvalidQuality(VocabMasterError, ValueError):
    """A recall signal outside Forgot / Vague / Fluent / Perfect."""

    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"Unrecognized recall quality: {value!r}")


class DuplicateUser(VocabMasterError):
    """Registration with a username that is already taken."""

    def __init__(self, username: str):
        self.username = username
        super().__init__(f"Username already exists: {username}")


class SessionClosed(VocabMasterError):
    """An answer was reported after the session queue was exhausted."""


class StoreUnavailable(VocabMasterError):
    """The backing database failed to initialize or to commit."""

    def __init__(self, operation: str, reason: str = ""):
        self.operation = operation
        message = f"Store operation '{operation}' failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class StoreNotReady(StoreUnavailable):
    """An operation was issued before ProgressStore.initialize() completed."""

    def __init__(self, operation: str):
        super().__init__(operation, "store is not initialized")


class StoreTimeout(StoreUnavailable):
    """A store operation did not finish within the configured timeout."""

    def __init__(self, operation: str, timeout: float):
        self.timeout = timeout
        super().__init__(operation, f"timed out after {timeout:g}s")


class PartitionViolation(AssertionError):
    """A per-user query returned rows owned by somebody else.

    This is a defect, never an expected runtime condition.
    """

    def __init__(self, collection: str, user_id: str, foreign_owners: Iterable[str]):
        self.collection = collection
        self.user_id = user_id
        self.foreign_owners = sorted(set(foreign_owners))
        super().__init__(
            f"{collection} query for {user_id!r} returned rows owned by {self.foreign_owners!r}"
        )
