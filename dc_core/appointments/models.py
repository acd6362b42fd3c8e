# dc_core/appointments/models.py
from django.core.validators import MinValueValidator
from django.db import models

from dc_core.common.models import ScopedModel
from dc_core.patients.models import Patient


class AppointmentStatus(models.TextChoices):
    SCHEDULED = "SCHEDULED", "Scheduled"
    CONFIRMED = "CONFIRMED", "Confirmed"
    COMPLETED = "COMPLETED", "Completed"
    CANCELLED = "CANCELLED", "Cancelled"
    NO_SHOW = "NO_SHOW", "No Show"


class AppointmentType(models.TextChoices):
    CHECKUP = "CHECKUP", "Checkup"
    CLEANING = "CLEANING", "Cleaning"
    FILLING = "FILLING", "Filling"
    EXTRACTION = "EXTRACTION", "Extraction"
    ROOT_CANAL = "ROOT_CANAL", "Root Canal"
    CROWN = "CROWN", "Crown"
    CONSULTATION = "CONSULTATION", "Consultation"
    EMERGENCY = "EMERGENCY", "Emergency"
    OTHER = "OTHER", "Other"


class Appointment(ScopedModel):
    # DO_NOTHING: removal is owned by the patient cascade, the FK constraint
    # rejects any orphan at commit.
    patient = models.ForeignKey(Patient, on_delete=models.DO_NOTHING, related_name="appointments")

    dentist_name = models.CharField(max_length=255)
    start_time = models.DateTimeField(db_index=True)
    duration_minutes = models.PositiveIntegerField(default=30, validators=[MinValueValidator(1)])

    status = models.CharField(max_length=16, choices=AppointmentStatus.choices, default=AppointmentStatus.SCHEDULED)
    appointment_type = models.CharField(max_length=16, choices=AppointmentType.choices, default=AppointmentType.CHECKUP)
    room = models.CharField(max_length=50, blank=True)
    notes = models.TextField(blank=True, max_length=2000)

    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.CharField(max_length=500, blank=True)

    class Meta:
        db_table = "appointments_appointment"
        indexes = [
            models.Index(fields=["tenant_id", "facility_id", "start_time"]),
            models.Index(fields=["tenant_id", "facility_id", "status"]),
        ]

    def __str__(self) -> str:
        return f"{self.appointment_type} @ {self.start_time:%Y-%m-%d %H:%M}"
