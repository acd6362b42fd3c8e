# dc_core/cascade/executor.py
"""
Transactional referential cascade.

cascade_delete(root_type, root_id) removes a root record and every record the
DependencyCatalog says depends on it, in one transaction:

    atomic
      lock root row (SELECT ... FOR UPDATE)      -> RootNotFound if absent
      for each (collection, fk) in catalog:
          page through dependents by pk, delete each
      delete root
      before_commit(result)
    commit                                       -> CommitFailure on error

Any failure rolls the whole unit back. Nothing is retried.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional

from dc_core.cascade.catalog import DependencyCatalog, DependencyEntry
from dc_core.cascade.errors import (
    CommitFailure,
    DeleteFailure,
    QueryFailure,
    RootNotFound,
    StoreError,
)
from dc_core.cascade.store import RecordStore

logger = logging.getLogger(__name__)

# Roots whose cascade_delete() is running in the current thread / task.
# Values are frozensets, each context swaps in its own copy.
_in_flight: ContextVar[frozenset] = ContextVar("dc_cascade_in_flight", default=frozenset())


def _root_key(root_type: str, root_id: Any) -> tuple[str, str]:
    return root_type, str(root_id)


@contextmanager
def _mark_in_flight(root_type: str, root_id: Any) -> Iterator[None]:
    token = _in_flight.set(_in_flight.get() | {_root_key(root_type, root_id)})
    try:
        yield
    finally:
        _in_flight.reset(token)


@dataclass
class CascadeResult:
    root_type: str
    root_id: Any
    removed: dict[str, int] = field(default_factory=dict)

    @property
    def dependents_removed(self) -> int:
        return sum(self.removed.values())

    @property
    def records_removed(self) -> int:
        return self.dependents_removed + 1


class CascadeExecutor:
    """
    Stateless apart from its configuration; one instance serves concurrent
    cascades for different roots.
    """

    def __init__(self, store: RecordStore, catalog: DependencyCatalog, *, batch_size: int | None = 500):
        if batch_size is not None and batch_size < 0:
            raise ValueError("batch_size must be positive, 0 or None")
        self.store = store
        self.catalog = catalog
        # 0 / None: fetch each collection in one unlimited query
        self.batch_size = batch_size or None

    # -------------------------
    # Public API
    # -------------------------
    def cascade_delete(
        self,
        root_type: str,
        root_id: Any,
        *,
        before_commit: Optional[Callable[[CascadeResult], None]] = None,
    ) -> CascadeResult:
        """
        Delete `root_id` from `root_type` and all of its dependents atomically.

        Raises RootNotFound if the root does not exist (nothing is changed),
        QueryFailure / DeleteFailure / CommitFailure on hard failure (the
        transaction is rolled back).

        `before_commit` runs inside the transaction after the root delete;
        an exception from it aborts the cascade.
        """
        result = CascadeResult(root_type=root_type, root_id=root_id)
        body_done = False

        try:
            with self.store.atomic():
                root = self._lock_root(root_type, root_id)
                self._purge(root_type, root_id, result)

                with _mark_in_flight(root_type, root_id):
                    self._delete_root(root_type, root)

                if before_commit is not None:
                    before_commit(result)
                body_done = True
        except StoreError as exc:
            # a bare StoreError comes from atomic() itself: opening it, a
            # DatabaseError raised in the body (e.g. before_commit), or commit
            if body_done:
                raise CommitFailure(
                    f"Commit of {root_type} {root_id} cascade failed: {exc}",
                    root_type=root_type,
                    root_id=root_id,
                ) from exc
            raise QueryFailure(
                f"Cascade of {root_type} {root_id} aborted by the store: {exc}",
                root_type=root_type,
                root_id=root_id,
            ) from exc

        logger.info(
            "Cascade deleted %s %s with %d dependent records",
            root_type,
            root_id,
            result.dependents_removed,
            extra={"root_type": root_type, "root_id": str(root_id), "removed": dict(result.removed)},
        )
        return result

    def purge_dependents(self, root_type: str, root_id: Any) -> dict[str, int]:
        """
        Delete every dependent of `root_id` without touching the root.
        Must run inside the caller's transaction (the delete being cascaded).
        """
        if not self.store.in_transaction():
            raise RuntimeError("purge_dependents() must run inside an open transaction")

        result = CascadeResult(root_type=root_type, root_id=root_id)
        self._purge(root_type, root_id, result)
        return result.removed

    def count_dependents(self, root_type: str, root_id: Any) -> dict[str, int]:
        """Read-only preview of what cascade_delete would remove."""
        counts: dict[str, int] = {}
        for entry in self.catalog.entries_for(root_type):
            try:
                n = self.store.count(entry.collection, {entry.foreign_key_field: root_id})
            except StoreError as exc:
                raise QueryFailure(
                    f"Counting {entry.collection} for {root_type} {root_id} failed: {exc}",
                    root_type=root_type,
                    root_id=root_id,
                    collection=entry.collection,
                ) from exc
            counts[entry.collection] = counts.get(entry.collection, 0) + n
        return counts

    def handle_before_delete(self, collection: str, record) -> None:
        """
        Pre-delete hook for root collections. The triggering delete continues
        in the same transaction once this returns.
        """
        if _root_key(collection, record.pk) in _in_flight.get():
            # cascade_delete() already purged this root and is deleting it now
            return

        try:
            self.store.apply_timeouts()
        except StoreError as exc:
            raise QueryFailure(
                f"Could not bound {collection} {record.pk} delete: {exc}",
                root_type=collection,
                root_id=record.pk,
            ) from exc

        try:
            self._lock_root(collection, record.pk)
        except RootNotFound:
            # stale instance: Django deletes nothing and returns, so do we
            logger.debug("Skipping cascade for %s %s: already deleted", collection, record.pk)
            return
        self.purge_dependents(collection, record.pk)

    # -------------------------
    # Steps
    # -------------------------
    def _lock_root(self, root_type: str, root_id: Any):
        try:
            root = self.store.get_for_update(root_type, root_id)
        except StoreError as exc:
            raise QueryFailure(
                f"Could not lock {root_type} {root_id}: {exc}",
                root_type=root_type,
                root_id=root_id,
            ) from exc

        if root is None:
            raise RootNotFound(root_type, root_id)
        return root

    def _purge(self, root_type: str, root_id: Any, result: CascadeResult) -> None:
        for entry in self.catalog.entries_for(root_type):
            removed = self._purge_collection(root_type, root_id, entry)
            result.removed[entry.collection] = result.removed.get(entry.collection, 0) + removed

            logger.info(
                "Deleted %d records from %s for %s %s",
                removed,
                entry.collection,
                root_type,
                root_id,
                extra={
                    "root_type": root_type,
                    "root_id": str(root_id),
                    "collection": entry.collection,
                    "removed": removed,
                },
            )

    def _purge_collection(self, root_type: str, root_id: Any, entry: DependencyEntry) -> int:
        """
        Keyset pagination over the primary key: every page starts after the
        last pk seen, so no dependent is skipped however many there are.
        """
        filters = {entry.foreign_key_field: root_id}
        removed = 0
        last_pk = None

        while True:
            try:
                batch = self.store.find_by_filter(entry.collection, filters, after=last_pk, limit=self.batch_size)
            except StoreError as exc:
                raise QueryFailure(
                    f"Looking up {entry.collection} for {root_type} {root_id} failed: {exc}",
                    root_type=root_type,
                    root_id=root_id,
                    collection=entry.collection,
                ) from exc

            for record in batch:
                # delete() clears record.pk
                record_pk = record.pk
                try:
                    self.store.delete_record(record)
                except StoreError as exc:
                    raise DeleteFailure(
                        f"Could not delete {entry.collection} {record_pk}: {exc}",
                        root_type=root_type,
                        root_id=root_id,
                        collection=entry.collection,
                        record_id=record_pk,
                    ) from exc
                removed += 1
                last_pk = record_pk

            if self.batch_size is None or len(batch) < self.batch_size:
                return removed

    def _delete_root(self, root_type: str, root) -> None:
        root_pk = root.pk
        try:
            deleted = self.store.delete_record(root)
        except StoreError as exc:
            raise DeleteFailure(
                f"Could not delete {root_type} {root_pk}: {exc}",
                root_type=root_type,
                root_id=root_pk,
                collection=root_type,
                record_id=root_pk,
            ) from exc

        if not deleted:
            # removed under us (store without row locks): roll everything back
            raise RootNotFound(root_type, root_pk)
