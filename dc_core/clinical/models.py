# dc_core/clinical/models.py
from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.utils import timezone

from dc_core.common.models import ScopedModel
from dc_core.patients.models import Patient


class TreatmentRecord(ScopedModel):
    """
    A procedure performed on a patient (per tooth / surface where relevant).
    """
    patient = models.ForeignKey(Patient, on_delete=models.DO_NOTHING, related_name="treatment_records")

    tooth_number = models.CharField(max_length=10, blank=True)
    surface = models.CharField(max_length=100, blank=True)
    diagnosis = models.TextField(blank=True, max_length=1000)
    procedure = models.TextField(blank=True, max_length=2000)
    notes = models.TextField(blank=True, max_length=2000)

    actual_cost = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    treatment_date = models.DateField(default=timezone.localdate)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "clinical_treatment_record"
        indexes = [
            models.Index(fields=["tenant_id", "facility_id", "treatment_date"]),
        ]


class TransferStatus(models.TextChoices):
    REQUESTED = "REQUESTED", "Requested"
    COMPLETED = "COMPLETED", "Completed"
    CANCELLED = "CANCELLED", "Cancelled"


class PatientTransfer(ScopedModel):
    """
    Referral of a patient to another practice / specialist.
    """
    patient = models.ForeignKey(Patient, on_delete=models.DO_NOTHING, related_name="transfers")

    destination = models.CharField(max_length=255)
    reason = models.TextField(blank=True, max_length=2000)
    status = models.CharField(max_length=16, choices=TransferStatus.choices, default=TransferStatus.REQUESTED)
    transferred_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "clinical_patient_transfer"
        indexes = [
            models.Index(fields=["tenant_id", "facility_id", "status"]),
        ]


class MedicalHistory(ScopedModel):
    patient = models.ForeignKey(Patient, on_delete=models.DO_NOTHING, related_name="medical_history")

    # lists of free-text entries, e.g. ["diabetes", "hypertension"]
    conditions = models.JSONField(default=list, blank=True)
    allergies = models.JSONField(default=list, blank=True)
    medications = models.JSONField(default=list, blank=True)

    previous_dental_work = models.TextField(blank=True, max_length=2000)
    dental_concerns = models.TextField(blank=True, max_length=2000)
    smoking = models.BooleanField(default=False)
    alcohol = models.BooleanField(default=False)
    notes = models.TextField(blank=True, max_length=2000)

    record_date = models.DateField(default=timezone.localdate)

    class Meta:
        db_table = "clinical_medical_history"
        verbose_name_plural = "medical history"
