# dc_core/cascade/store.py
"""
Record store seam used by the cascade engine.

The engine only talks to RecordStore; DjangoRecordStore maps collection names
(the names the clinic frontend and the catalog use, e.g. "appointments") to
Django models and runs everything through the ORM on one database alias.
"""
from __future__ import annotations

import abc
from contextlib import contextmanager
from typing import Any, Callable, ContextManager, Iterator, Mapping

from django.apps import apps
from django.conf import settings
from django.core.exceptions import FieldDoesNotExist, FieldError
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DEFAULT_DB_ALIAS, DatabaseError, models, transaction
from django.db.models.signals import pre_delete

from dc_core.cascade.errors import StoreError

BeforeDeleteHandler = Callable[[str, models.Model], None]

# dispatch_uids connected by on_before_delete()
_bound_hooks: set[str] = set()


class RecordStore(abc.ABC):
    @abc.abstractmethod
    def atomic(self) -> ContextManager[None]:
        """Unit of work: commits on clean exit, rolls back on any exception."""

    @abc.abstractmethod
    def in_transaction(self) -> bool:
        ...

    def apply_timeouts(self) -> None:
        """
        Bound every following statement of the open transaction.
        Stores without per-transaction timeouts do nothing.
        """

    @abc.abstractmethod
    def get_for_update(self, collection: str, record_id: Any) -> models.Model | None:
        """Fetch and lock one record; None when it does not exist."""

    @abc.abstractmethod
    def find_by_filter(
        self,
        collection: str,
        filters: Mapping[str, Any],
        *,
        after: Any = None,
        limit: int | None = None,
    ) -> list[models.Model]:
        """
        Records matching `filters`, ordered by primary key, starting strictly
        after `after`. `limit=None` means no limit.
        """

    @abc.abstractmethod
    def count(self, collection: str, filters: Mapping[str, Any]) -> int:
        ...

    @abc.abstractmethod
    def delete_record(self, record: models.Model) -> int:
        """Delete one record; returns the number of rows removed."""

    @abc.abstractmethod
    def on_before_delete(self, collection: str, handler: BeforeDeleteHandler) -> Callable[[], None]:
        """
        Run `handler(collection, record)` inside the transaction of every delete
        in `collection`. An exception from the handler aborts that delete.
        Returns a callable that unbinds the handler.
        """

    @abc.abstractmethod
    def has_collection(self, collection: str) -> bool:
        ...

    @abc.abstractmethod
    def relation_target(self, collection: str, field: str) -> str | None:
        """Collection referenced by `collection.field`, or None if it is not a relation."""


class DjangoRecordStore(RecordStore):
    def __init__(
        self,
        collections: Mapping[str, str] | None = None,
        *,
        using: str | None = None,
        statement_timeout_ms: int | None = None,
        lock_timeout_ms: int | None = None,
    ):
        if collections is None:
            collections = getattr(settings, "DC_COLLECTIONS", {})
        self.collections: dict[str, str] = dict(collections)
        self.using = using or DEFAULT_DB_ALIAS
        self.statement_timeout_ms = statement_timeout_ms
        self.lock_timeout_ms = lock_timeout_ms

    @classmethod
    def from_settings(cls) -> "DjangoRecordStore":
        return cls(
            statement_timeout_ms=getattr(settings, "DC_CASCADE_STATEMENT_TIMEOUT_MS", None),
            lock_timeout_ms=getattr(settings, "DC_CASCADE_LOCK_TIMEOUT_MS", None),
        )

    # -------------------------
    # Collection registry
    # -------------------------
    def model_for(self, collection: str) -> type[models.Model]:
        try:
            label = self.collections[collection]
        except KeyError:
            raise StoreError(f"Unknown collection '{collection}'.")
        try:
            return apps.get_model(label)
        except (LookupError, ValueError) as exc:
            raise StoreError(f"Collection '{collection}' maps to unknown model '{label}'.") from exc

    def collection_for(self, model: type[models.Model]) -> str | None:
        for name, label in self.collections.items():
            if label.lower() == model._meta.label_lower:
                return name
        return None

    def has_collection(self, collection: str) -> bool:
        try:
            self.model_for(collection)
        except StoreError:
            return False
        return True

    def relation_target(self, collection: str, field: str) -> str | None:
        model = self.model_for(collection)
        try:
            f = model._meta.get_field(field)
        except FieldDoesNotExist:
            return None

        # only forward FK / one-to-one columns can hold the root id
        if not (f.is_relation and getattr(f, "concrete", False) and (f.many_to_one or f.one_to_one)):
            return None
        return self.collection_for(f.related_model)

    # -------------------------
    # Transactions
    # -------------------------
    @contextmanager
    def atomic(self) -> Iterator[None]:
        try:
            with transaction.atomic(using=self.using):
                self.apply_timeouts()
                yield
        except DatabaseError as exc:
            raise StoreError(str(exc)) from exc

    def in_transaction(self) -> bool:
        return transaction.get_connection(self.using).in_atomic_block

    def timeout_statements(self) -> list[str]:
        # SET does not accept bind parameters
        statements = []
        if self.statement_timeout_ms:
            statements.append(f"SET LOCAL statement_timeout = {int(self.statement_timeout_ms)}")
        if self.lock_timeout_ms:
            statements.append(f"SET LOCAL lock_timeout = {int(self.lock_timeout_ms)}")
        return statements

    def apply_timeouts(self) -> None:
        """
        Bound every following statement of the open transaction so an
        unresponsive database or a held row lock surfaces as an error instead
        of hanging the request. Called by atomic() and by the pre-delete hook,
        which runs inside Django's own delete transaction.

        SET LOCAL lasts until that transaction ends. SQLite relies on the
        connection's busy `timeout` option instead.
        """
        connection = transaction.get_connection(self.using)
        if connection.vendor != "postgresql":
            return

        try:
            with connection.cursor() as cursor:
                for sql in self.timeout_statements():
                    cursor.execute(sql)
        except DatabaseError as exc:
            raise StoreError(f"Could not set timeouts: {exc}") from exc

    # -------------------------
    # Reads
    # -------------------------
    def get_for_update(self, collection: str, record_id: Any) -> models.Model | None:
        model = self.model_for(collection)
        try:
            return (
                model._default_manager.using(self.using)
                .select_for_update()
                .filter(pk=record_id)
                .first()
            )
        except (DatabaseError, DjangoValidationError, ValueError, TypeError) as exc:
            raise StoreError(f"Could not load {collection} {record_id}: {exc}") from exc

    def find_by_filter(
        self,
        collection: str,
        filters: Mapping[str, Any],
        *,
        after: Any = None,
        limit: int | None = None,
    ) -> list[models.Model]:
        model = self.model_for(collection)
        try:
            qs = model._default_manager.using(self.using).filter(**filters).order_by("pk")
            if after is not None:
                qs = qs.filter(pk__gt=after)
            if limit:
                qs = qs[:limit]
            return list(qs)
        except (DatabaseError, FieldError, DjangoValidationError, ValueError, TypeError) as exc:
            raise StoreError(f"Query on {collection} {dict(filters)!r} failed: {exc}") from exc

    def count(self, collection: str, filters: Mapping[str, Any]) -> int:
        model = self.model_for(collection)
        try:
            return model._default_manager.using(self.using).filter(**filters).count()
        except (DatabaseError, FieldError, DjangoValidationError, ValueError, TypeError) as exc:
            raise StoreError(f"Count on {collection} {dict(filters)!r} failed: {exc}") from exc

    # -------------------------
    # Writes
    # -------------------------
    def delete_record(self, record: models.Model) -> int:
        try:
            deleted, _ = record.delete(using=self.using)
        except DatabaseError as exc:
            # ProtectedError / RestrictedError are IntegrityErrors
            raise StoreError(f"Delete of {record._meta.label} {record.pk} rejected: {exc}") from exc
        return deleted

    def on_before_delete(self, collection: str, handler: BeforeDeleteHandler) -> Callable[[], None]:
        model = self.model_for(collection)
        # one hook per (alias, collection, handler owner): binding the same
        # executor twice is a no-op, a second executor gets its own receiver
        owner = getattr(handler, "__self__", handler)
        dispatch_uid = f"dc_core.cascade.before_delete.{self.using}.{collection}.{id(owner)}"
        if dispatch_uid in _bound_hooks:
            # already bound: the caller does not own that binding
            return lambda: None

        def _receiver(sender, instance, using=None, **kwargs):
            if using is not None and using != self.using:
                return
            handler(collection, instance)

        # Collector.delete() sends pre_delete inside its own atomic block, so
        # the handler shares the triggering delete's transaction.
        pre_delete.connect(_receiver, sender=model, weak=False, dispatch_uid=dispatch_uid)
        _bound_hooks.add(dispatch_uid)

        def _unbind() -> None:
            pre_delete.disconnect(sender=model, dispatch_uid=dispatch_uid)
            _bound_hooks.discard(dispatch_uid)

        return _unbind
