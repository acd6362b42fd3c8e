# dc_core/cascade/catalog.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Union

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured


@dataclass(frozen=True)
class DependencyEntry:
    collection: str
    foreign_key_field: str


EntryLike = Union[DependencyEntry, tuple]


def _coerce(entry: EntryLike) -> DependencyEntry:
    if isinstance(entry, DependencyEntry):
        return entry
    collection, field = entry
    return DependencyEntry(collection=str(collection), foreign_key_field=str(field))


class DependencyCatalog:
    """
    For each root collection, the ordered (collection, foreign_key_field)
    pairs that must be emptied before the root row can go.

    Order only affects log readability; all deletes share one transaction.
    """

    def __init__(self, entries: Mapping[str, Iterable[EntryLike]]):
        self._entries: dict[str, tuple[DependencyEntry, ...]] = {
            root_type: tuple(_coerce(e) for e in deps) for root_type, deps in entries.items()
        }

    @classmethod
    def from_settings(cls) -> "DependencyCatalog":
        return cls(getattr(settings, "DC_CASCADE_DEPENDENCIES", {}))

    def entries_for(self, root_type: str) -> tuple[DependencyEntry, ...]:
        # unknown root type == nothing registered, which is valid
        return self._entries.get(root_type, ())

    def root_types(self) -> tuple[str, ...]:
        return tuple(self._entries)

    def validate(self, store) -> None:
        """
        Every entry must name a collection the store knows and a relation field
        on it that points at the root collection.
        """
        for root_type, deps in self._entries.items():
            if not store.has_collection(root_type):
                raise ImproperlyConfigured(f"Cascade root collection '{root_type}' is not registered in DC_COLLECTIONS.")

            seen: set[DependencyEntry] = set()
            for entry in deps:
                if entry in seen:
                    raise ImproperlyConfigured(
                        f"Duplicate cascade entry {entry.collection}.{entry.foreign_key_field} for '{root_type}'."
                    )
                seen.add(entry)

                if not store.has_collection(entry.collection):
                    raise ImproperlyConfigured(
                        f"Cascade dependent collection '{entry.collection}' is not registered in DC_COLLECTIONS."
                    )

                target = store.relation_target(entry.collection, entry.foreign_key_field)
                if target != root_type:
                    raise ImproperlyConfigured(
                        f"{entry.collection}.{entry.foreign_key_field} does not reference '{root_type}'."
                    )

    def __len__(self) -> int:
        return sum(len(deps) for deps in self._entries.values())

    def __repr__(self) -> str:
        return f"DependencyCatalog({self._entries!r})"
