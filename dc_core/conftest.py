# dc_core/conftest.py
import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient

from dc_core.appointments.models import Appointment
from dc_core.billing.models import InsuranceClaim
from dc_core.clinical.models import MedicalHistory, PatientTransfer, TreatmentRecord
from dc_core.patients.models import Patient


@pytest.fixture
def tenant_id():
    return uuid.UUID("00000000-0000-0000-0000-000000000001")


@pytest.fixture
def facility_id():
    return uuid.UUID("00000000-0000-0000-0000-000000000101")


@pytest.fixture
def user(db):
    User = get_user_model()
    return User.objects.create_user(username="frontdesk", password="testpass", is_active=True)


@pytest.fixture
def api_client(user):
    c = APIClient()
    c.force_authenticate(user=user)
    return c


@pytest.fixture
def make_patient(db, tenant_id, facility_id):
    counter = {"n": 0}

    def _make(**kwargs):
        counter["n"] += 1
        defaults = {
            "tenant_id": tenant_id,
            "facility_id": facility_id,
            "full_name": f"Patient {counter['n']}",
            "mrn": f"MRN-{counter['n']:04d}",
        }
        defaults.update(kwargs)
        return Patient.objects.create(**defaults)

    return _make


@pytest.fixture
def patient(make_patient):
    return make_patient(full_name="Asha Rao", mrn="MRN-ROOT")


def _scope_of(patient):
    return {"tenant_id": patient.tenant_id, "facility_id": patient.facility_id}


@pytest.fixture
def add_appointment(db):
    def _add(patient, **kwargs):
        defaults = {
            "dentist_name": "Dr. Mehta",
            "start_time": timezone.now() + timedelta(days=1),
        }
        defaults.update(kwargs)
        return Appointment.objects.create(patient=patient, **_scope_of(patient), **defaults)

    return _add


@pytest.fixture
def add_treatment(db):
    def _add(patient, **kwargs):
        defaults = {"tooth_number": "16", "procedure": "Composite filling", "actual_cost": Decimal("80.00")}
        defaults.update(kwargs)
        return TreatmentRecord.objects.create(patient=patient, **_scope_of(patient), **defaults)

    return _add


@pytest.fixture
def add_transfer(db):
    def _add(patient, **kwargs):
        defaults = {"destination": "City Orthodontics"}
        defaults.update(kwargs)
        return PatientTransfer.objects.create(patient=patient, **_scope_of(patient), **defaults)

    return _add


@pytest.fixture
def add_claim(db):
    def _add(patient, **kwargs):
        defaults = {"claim_number": "CLM-1", "claimed_amount": Decimal("120.00")}
        defaults.update(kwargs)
        return InsuranceClaim.objects.create(patient=patient, **_scope_of(patient), **defaults)

    return _add


@pytest.fixture
def add_history(db):
    def _add(patient, **kwargs):
        defaults = {"conditions": ["hypertension"], "allergies": ["penicillin"]}
        defaults.update(kwargs)
        return MedicalHistory.objects.create(patient=patient, **_scope_of(patient), **defaults)

    return _add
