# dc_core/cascade/hooks.py
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Callable

from django.conf import settings

from dc_core.cascade.catalog import DependencyCatalog
from dc_core.cascade.executor import CascadeExecutor
from dc_core.cascade.store import DjangoRecordStore

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_executor() -> CascadeExecutor:
    """
    Process-wide executor built from settings. Immutable once built.
    """
    return CascadeExecutor(
        DjangoRecordStore.from_settings(),
        DependencyCatalog.from_settings(),
        batch_size=getattr(settings, "DC_CASCADE_BATCH_SIZE", 500),
    )


def bind_cascade_hooks(executor: CascadeExecutor | None = None) -> list[Callable[[], None]]:
    """
    Validate the catalog against the store, then attach the executor as the
    pre-delete hook of every root collection. Returns the unbind callables.
    """
    executor = executor or get_executor()
    executor.catalog.validate(executor.store)

    unbinders = []
    for root_type in executor.catalog.root_types():
        unbinders.append(executor.store.on_before_delete(root_type, executor.handle_before_delete))
        logger.debug(
            "Cascade hook bound for %s -> %s",
            root_type,
            ", ".join(f"{e.collection}.{e.foreign_key_field}" for e in executor.catalog.entries_for(root_type)),
        )
    return unbinders
