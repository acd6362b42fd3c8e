# dc_core/patients/services.py
from __future__ import annotations

from uuid import UUID

from django.db import IntegrityError, transaction

from dc_core.audit.services import AuditService
from dc_core.cascade.executor import CascadeResult
from dc_core.cascade.hooks import get_executor
from dc_core.patients.models import Patient
from dc_core.patients.selectors import PatientSelector

PATIENTS_COLLECTION = "patients"


class PatientService:
    UPDATABLE_FIELDS = {"full_name", "mrn", "phone", "email", "gender", "date_of_birth", "status", "notes"}

    @staticmethod
    @transaction.atomic
    def create_patient(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        actor_user_id: int | None,
        full_name: str,
        mrn: str,
        phone: str = "",
        email: str = "",
        gender: str = "",
        date_of_birth=None,
        notes: str = "",
    ) -> Patient:
        try:
            patient = Patient.objects.create(
                tenant_id=tenant_id,
                facility_id=facility_id,
                full_name=full_name,
                mrn=mrn,
                phone=phone or "",
                email=email or "",
                gender=gender or "",
                date_of_birth=date_of_birth,
                notes=notes or "",
            )
        except IntegrityError:
            # MRN uniqueness is enforced by constraint; surface readable error.
            raise ValueError("MRN already exists for this tenant/facility.")

        AuditService.patient_created(patient, actor_user_id=actor_user_id)
        return patient

    @staticmethod
    @transaction.atomic
    def update_patient(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        actor_user_id: int | None,
        patient_id: UUID,
        data: dict,
    ) -> Patient:
        patient = PatientSelector.get_patient(tenant_id=tenant_id, facility_id=facility_id, patient_id=patient_id)

        updates = {k: v for k, v in (data or {}).items() if k in PatientService.UPDATABLE_FIELDS}

        for k, v in updates.items():
            setattr(patient, k, v)

        try:
            patient.save()
        except IntegrityError:
            raise ValueError("MRN already exists for this tenant/facility.")

        AuditService.patient_updated(patient, actor_user_id=actor_user_id, fields=updates.keys())
        return patient

    @staticmethod
    def delete_patient(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        actor_user_id: int | None,
        patient_id: UUID,
    ) -> CascadeResult:
        """
        Remove the patient and everything that references it in one transaction.

        Raises:
          PatientSelector.NotFound - patient not in this scope
          RootNotFound             - patient vanished between lookup and delete
          CascadeError subclasses  - nothing was removed
        """
        patient = PatientSelector.get_patient(tenant_id=tenant_id, facility_id=facility_id, patient_id=patient_id)

        def _audit(result: CascadeResult) -> None:
            # same transaction as the cascade: no event without the delete, and vice versa
            AuditService.patient_deleted(patient, result, actor_user_id=actor_user_id)

        return get_executor().cascade_delete(PATIENTS_COLLECTION, patient.id, before_commit=_audit)

    @staticmethod
    def dependents_summary(*, tenant_id: UUID, facility_id: UUID, patient_id: UUID) -> dict[str, int]:
        patient = PatientSelector.get_patient(tenant_id=tenant_id, facility_id=facility_id, patient_id=patient_id)
        return get_executor().count_dependents(PATIENTS_COLLECTION, patient.id)
