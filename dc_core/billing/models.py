# dc_core/billing/models.py
from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.utils import timezone

from dc_core.common.models import ScopedModel
from dc_core.patients.models import Patient


class ClaimStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    SUBMITTED = "SUBMITTED", "Submitted"
    APPROVED = "APPROVED", "Approved"
    PARTIAL = "PARTIAL", "Partial"
    DENIED = "DENIED", "Denied"
    PAID = "PAID", "Paid"


class InsuranceClaim(ScopedModel):
    """
    Claim filed with the patient's insurer.
    A claim without its patient is unbillable, which is why it is part of the
    patient cascade rather than left behind.
    """
    patient = models.ForeignKey(Patient, on_delete=models.DO_NOTHING, related_name="insurance_claims")

    claim_number = models.CharField(max_length=100, blank=True)
    claim_date = models.DateField(default=timezone.localdate)

    claimed_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    approved_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    status = models.CharField(max_length=16, choices=ClaimStatus.choices, default=ClaimStatus.PENDING)
    submitted_date = models.DateField(null=True, blank=True)
    denial_reason = models.CharField(max_length=500, blank=True)

    class Meta:
        db_table = "billing_insurance_claim"
        indexes = [
            models.Index(fields=["tenant_id", "facility_id", "status"]),
        ]

    def __str__(self) -> str:
        return self.claim_number or str(self.id)
