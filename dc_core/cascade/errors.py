# dc_core/cascade/errors.py
from __future__ import annotations

from typing import Any


class StoreError(Exception):
    """
    Raised by a RecordStore when the backing database rejects an operation
    (connectivity, timeout, constraint, malformed filter).
    """


class CascadeError(Exception):
    """
    Hard cascade failure. The transaction was rolled back: the root and all of
    its dependents are exactly as they were before the call.
    """

    kind = "cascade_error"

    def __init__(
        self,
        message: str,
        *,
        root_type: str,
        root_id: Any,
        collection: str | None = None,
        record_id: Any = None,
    ):
        super().__init__(message)
        self.root_type = root_type
        self.root_id = root_id
        self.collection = collection
        self.record_id = record_id

    def as_details(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "root_type": self.root_type,
            "root_id": str(self.root_id),
            "collection": self.collection,
            "record_id": str(self.record_id) if self.record_id is not None else None,
        }


class QueryFailure(CascadeError):
    """Locating dependents (or locking the root) failed."""

    kind = "query_failure"


class DeleteFailure(CascadeError):
    """A specific record could not be removed."""

    kind = "delete_failure"


class CommitFailure(CascadeError):
    """The transaction could not be finalized."""

    kind = "commit_failure"


class RootNotFound(LookupError):
    """
    The root record is already gone. Not a CascadeError: callers treat it as
    "already deleted", nothing was changed.
    """

    def __init__(self, root_type: str, root_id: Any):
        super().__init__(f"{root_type} {root_id} not found")
        self.root_type = root_type
        self.root_id = root_id
