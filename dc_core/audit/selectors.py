# dc_core/audit/selectors.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping
from uuid import UUID

from django.db.models import QuerySet

from dc_core.audit.models import AuditEvent

DEFAULT_LIMIT = 200
MAX_LIMIT = 500


@dataclass(frozen=True)
class AuditQuery:
    entity_type: str | None = None
    entity_id: UUID | None = None
    event_code: str | None = None
    actor_user_id: int | None = None
    limit: int = DEFAULT_LIMIT

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> "AuditQuery":
        """
        Parse timeline query params. Raises ValueError naming the bad param.
        A missing or unparsable limit falls back to the default; it is clamped to 1..MAX_LIMIT.
        """
        entity_id = None
        if params.get("entity_id"):
            try:
                entity_id = UUID(str(params["entity_id"]))
            except ValueError:
                raise ValueError("Invalid entity_id (UUID expected)")

        actor_user_id = None
        if params.get("actor_user_id"):
            try:
                actor_user_id = int(params["actor_user_id"])
            except ValueError:
                raise ValueError("Invalid actor_user_id (int expected)")

        try:
            limit = int(params.get("limit") or DEFAULT_LIMIT)
        except ValueError:
            limit = DEFAULT_LIMIT

        return cls(
            entity_type=params.get("entity_type") or None,
            entity_id=entity_id,
            event_code=params.get("event_code") or None,
            actor_user_id=actor_user_id,
            limit=max(1, min(limit, MAX_LIMIT)),
        )


def patient_timeline(*, tenant_id: UUID, facility_id: UUID, query: AuditQuery) -> QuerySet[AuditEvent]:
    """Newest first, at most query.limit events."""
    filters = {
        name: value
        for name, value in (
            ("entity_type", query.entity_type),
            ("entity_id", query.entity_id),
            ("event_code", query.event_code),
            ("actor_user_id", query.actor_user_id),
        )
        if value is not None
    }
    qs = AuditEvent.objects.filter(tenant_id=tenant_id, facility_id=facility_id, **filters)
    return qs.order_by("-occurred_at")[: query.limit]
