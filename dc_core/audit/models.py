# dc_core/audit/models.py
from django.db import models

from dc_core.common.models import ScopedModel


class AuditEventCode(models.TextChoices):
    PATIENT_CREATED = "patient.created", "Patient created"
    PATIENT_UPDATED = "patient.updated", "Patient updated"
    PATIENT_DELETED = "patient.deleted", "Patient deleted with dependents"


class AuditEvent(ScopedModel):
    """
    Immutable audit record.
    Outlives the entity it describes: a deleted patient keeps its
    "patient.deleted" event with the per-collection removal counts.
    """
    event_code = models.CharField(max_length=128, choices=AuditEventCode.choices, db_index=True)
    entity_type = models.CharField(max_length=128, db_index=True)  # e.g. "Patient"
    entity_id = models.UUIDField(db_index=True)

    actor_user_id = models.BigIntegerField(null=True, blank=True, db_index=True)

    occurred_at = models.DateTimeField(auto_now_add=True, db_index=True)
    metadata = models.JSONField(default=dict)

    class Meta:
        db_table = "audit_audit_event"
        indexes = [
            models.Index(fields=["tenant_id", "facility_id", "occurred_at"]),
            models.Index(fields=["entity_type", "entity_id"]),
            models.Index(fields=["tenant_id", "facility_id", "event_code"]),
        ]
