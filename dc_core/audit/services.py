# dc_core/audit/services.py
from __future__ import annotations

from typing import Any
from uuid import UUID

from dc_core.audit.models import AuditEvent, AuditEventCode
from dc_core.cascade.executor import CascadeResult
from dc_core.patients.models import Patient

PATIENT_ENTITY = "Patient"


class AuditService:
    """
    Writes the patient timeline.
    Never opens its own transaction: every event commits or rolls back with
    the change it describes.
    """

    @staticmethod
    def _record(
        patient: Patient,
        *,
        event_code: AuditEventCode,
        actor_user_id: int | None,
        metadata: dict[str, Any],
        entity_id: UUID | None = None,
    ) -> AuditEvent:
        return AuditEvent.objects.create(
            tenant_id=patient.tenant_id,
            facility_id=patient.facility_id,
            event_code=event_code,
            entity_type=PATIENT_ENTITY,
            entity_id=entity_id or patient.id,
            actor_user_id=actor_user_id,
            metadata=metadata,
        )

    @staticmethod
    def patient_created(patient: Patient, *, actor_user_id: int | None) -> AuditEvent:
        return AuditService._record(
            patient,
            event_code=AuditEventCode.PATIENT_CREATED,
            actor_user_id=actor_user_id,
            metadata={"mrn": patient.mrn},
        )

    @staticmethod
    def patient_updated(patient: Patient, *, actor_user_id: int | None, fields) -> AuditEvent:
        return AuditService._record(
            patient,
            event_code=AuditEventCode.PATIENT_UPDATED,
            actor_user_id=actor_user_id,
            metadata={"updated_fields": sorted(fields)},
        )

    @staticmethod
    def patient_deleted(patient: Patient, result: CascadeResult, *, actor_user_id: int | None) -> AuditEvent:
        """
        `result` is the cascade's tally: per-collection removal counts, and
        records_removed including the patient row itself.
        The patient instance is the pre-delete snapshot (its pk may be cleared).
        """
        return AuditService._record(
            patient,
            event_code=AuditEventCode.PATIENT_DELETED,
            actor_user_id=actor_user_id,
            entity_id=result.root_id,
            metadata={
                "mrn": patient.mrn,
                "removed": dict(result.removed),
                "records_removed": result.records_removed,
            },
        )
