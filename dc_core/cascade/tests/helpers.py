# dc_core/cascade/tests/helpers.py
from __future__ import annotations

import itertools
import threading
from contextlib import contextmanager
from types import SimpleNamespace

from dc_core.cascade.store import RecordStore


class MemoryStore(RecordStore):
    """
    Dict-backed RecordStore for engine tests that must not touch the test
    database (e.g. several threads at once). No rollback.

    `relations`: {collection: {field: target collection}}.
    """

    def __init__(self, relations):
        self.relations = relations
        self.rows = {name: {} for name in relations}
        self.on_delete = None
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._local = threading.local()

    def add(self, collection, **fields):
        record = SimpleNamespace(pk=next(self._ids), collection=collection, **fields)
        with self._lock:
            self.rows[collection][record.pk] = record
        return record

    @contextmanager
    def atomic(self):
        self._local.depth = getattr(self._local, "depth", 0) + 1
        try:
            yield
        finally:
            self._local.depth -= 1

    def in_transaction(self):
        return getattr(self._local, "depth", 0) > 0

    def get_for_update(self, collection, record_id):
        with self._lock:
            return self.rows[collection].get(record_id)

    def find_by_filter(self, collection, filters, *, after=None, limit=None):
        with self._lock:
            found = sorted(
                (r for r in self.rows[collection].values() if all(getattr(r, k) == v for k, v in filters.items())),
                key=lambda r: r.pk,
            )
        if after is not None:
            found = [r for r in found if r.pk > after]
        return found[:limit] if limit else found

    def count(self, collection, filters):
        return len(self.find_by_filter(collection, filters))

    def delete_record(self, record):
        if self.on_delete is not None:
            self.on_delete(record)
        with self._lock:
            return 1 if self.rows[record.collection].pop(record.pk, None) is not None else 0

    def on_before_delete(self, collection, handler):
        return lambda: None

    def has_collection(self, collection):
        return collection in self.relations

    def relation_target(self, collection, field):
        return self.relations.get(collection, {}).get(field)
