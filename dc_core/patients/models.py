# dc_core/patients/models.py
from django.db import models

from dc_core.common.models import ScopedModel


class PatientStatus(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    INACTIVE = "INACTIVE", "Inactive"
    ARCHIVED = "ARCHIVED", "Archived"


class Patient(ScopedModel):
    """
    Root of the clinic's record graph.
    Deleting a patient cascades to every collection registered in
    DC_CASCADE_DEPENDENCIES (see dc_core.cascade).
    """
    full_name = models.CharField(max_length=255)
    phone = models.CharField(max_length=32, blank=True)
    email = models.EmailField(blank=True)
    date_of_birth = models.DateField(null=True, blank=True)
    gender = models.CharField(max_length=32, blank=True)
    status = models.CharField(max_length=16, choices=PatientStatus.choices, default=PatientStatus.ACTIVE)
    notes = models.TextField(blank=True)

    # facility-local medical record number
    mrn = models.CharField(max_length=64)

    class Meta:
        db_table = "patients_patient"
        constraints = [
            models.UniqueConstraint(
                fields=["tenant_id", "facility_id", "mrn"],
                name="uq_patient_scope_mrn",
            ),
        ]
        indexes = [
            models.Index(fields=["tenant_id", "facility_id", "full_name"]),
            models.Index(fields=["tenant_id", "facility_id", "phone"]),
        ]

    def __str__(self) -> str:
        return f"{self.full_name} ({self.mrn})"
