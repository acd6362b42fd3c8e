# dc_core/cascade/tests/test_executor.py
import logging
from contextlib import contextmanager

import pytest
from django.db import DEFAULT_DB_ALIAS, DatabaseError, IntegrityError, connections, transaction
from django.db.models.signals import pre_delete

from dc_core.appointments.models import Appointment
from dc_core.billing.models import InsuranceClaim
from dc_core.cascade.catalog import DependencyCatalog
from dc_core.cascade.errors import (
    CascadeError,
    CommitFailure,
    DeleteFailure,
    QueryFailure,
    RootNotFound,
    StoreError,
)
from dc_core.cascade.executor import CascadeExecutor
from dc_core.cascade.store import DjangoRecordStore
from dc_core.clinical.models import MedicalHistory, PatientTransfer, TreatmentRecord
from dc_core.patients.models import Patient

pytestmark = pytest.mark.django_db


class CountingStore(DjangoRecordStore):
    """Counts units of work and lookups."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.units = 0
        self.lookups = []

    @contextmanager
    def atomic(self):
        self.units += 1
        with super().atomic():
            yield

    def find_by_filter(self, collection, filters, *, after=None, limit=None):
        self.lookups.append((collection, limit))
        return super().find_by_filter(collection, filters, after=after, limit=limit)


@pytest.fixture
def store():
    return CountingStore()


@pytest.fixture
def executor(store):
    return CascadeExecutor(store, DependencyCatalog.from_settings(), batch_size=50)


@contextmanager
def failing_delete(model):
    def _reject(sender, instance, **kwargs):
        raise IntegrityError(f"{model.__name__} {instance.pk} is referenced elsewhere")

    pre_delete.connect(_reject, sender=model, weak=False, dispatch_uid="test.failing_delete")
    try:
        yield
    finally:
        pre_delete.disconnect(sender=model, dispatch_uid="test.failing_delete")


def dependents_of(patient_id):
    return {
        "appointments": Appointment.objects.filter(patient_id=patient_id).count(),
        "patient_transfers": PatientTransfer.objects.filter(patient_id=patient_id).count(),
        "treatment_records": TreatmentRecord.objects.filter(patient_id=patient_id).count(),
        "insurance_claims": InsuranceClaim.objects.filter(patient_id=patient_id).count(),
        "medical_history": MedicalHistory.objects.filter(patient_id=patient_id).count(),
    }


NONE_LEFT = {
    "appointments": 0,
    "patient_transfers": 0,
    "treatment_records": 0,
    "insurance_claims": 0,
    "medical_history": 0,
}


# -------------------------
# cascade_delete
# -------------------------
def test_cascade_removes_patient_and_dependents_in_one_unit(executor, store, patient, add_appointment, add_treatment):
    add_appointment(patient)
    add_appointment(patient)
    add_treatment(patient)

    result = executor.cascade_delete("patients", patient.pk)

    assert result.removed == {
        "appointments": 2,
        "patient_transfers": 0,
        "treatment_records": 1,
        "insurance_claims": 0,
        "medical_history": 0,
    }
    assert result.dependents_removed == 3
    assert result.records_removed == 4
    assert store.units == 1
    assert not Patient.objects.filter(pk=patient.pk).exists()
    assert dependents_of(patient.pk) == NONE_LEFT


def test_failed_dependent_delete_rolls_back_everything(executor, patient, add_appointment, add_treatment):
    add_appointment(patient)
    add_appointment(patient)
    treatment = add_treatment(patient)

    with failing_delete(TreatmentRecord):
        with pytest.raises(DeleteFailure) as exc:
            executor.cascade_delete("patients", patient.pk)

    err = exc.value
    assert err.collection == "treatment_records"
    assert err.record_id == treatment.pk
    assert err.root_type == "patients"
    assert isinstance(err.__cause__, StoreError)

    # appointments were deleted before the failure and must be back
    assert Patient.objects.filter(pk=patient.pk).exists()
    assert dependents_of(patient.pk)["appointments"] == 2
    assert dependents_of(patient.pk)["treatment_records"] == 1


def test_cascade_leaves_other_patients_alone(
    executor, patient, make_patient, add_appointment, add_transfer, add_treatment, add_claim, add_history
):
    other = make_patient()
    for p in (patient, other):
        add_appointment(p)
        add_transfer(p)
        add_treatment(p)
        add_treatment(p)
        add_claim(p)
        add_history(p)

    executor.cascade_delete("patients", patient.pk)

    assert dependents_of(patient.pk) == NONE_LEFT
    assert dependents_of(other.pk) == {
        "appointments": 1,
        "patient_transfers": 1,
        "treatment_records": 2,
        "insurance_claims": 1,
        "medical_history": 1,
    }
    assert Patient.objects.filter(pk=other.pk).exists()


def test_second_cascade_reports_root_not_found(executor, patient, add_appointment):
    add_appointment(patient)
    executor.cascade_delete("patients", patient.pk)

    with pytest.raises(RootNotFound) as exc:
        executor.cascade_delete("patients", patient.pk)

    assert not isinstance(exc.value, CascadeError)
    assert exc.value.root_id == patient.pk


def test_cascade_walks_ten_thousand_dependents(store, patient):
    scope = {"tenant_id": patient.tenant_id, "facility_id": patient.facility_id}
    Appointment.objects.bulk_create(
        [Appointment(patient=patient, dentist_name="Dr. Mehta", start_time=patient.created_at, **scope) for _ in range(4000)]
    )
    TreatmentRecord.objects.bulk_create([TreatmentRecord(patient=patient, **scope) for _ in range(3000)])
    InsuranceClaim.objects.bulk_create([InsuranceClaim(patient=patient, **scope) for _ in range(3000)])

    executor = CascadeExecutor(store, DependencyCatalog.from_settings(), batch_size=500)
    result = executor.cascade_delete("patients", patient.pk)

    assert result.dependents_removed == 10_000
    assert result.removed["appointments"] == 4000
    assert store.units == 1
    assert dependents_of(patient.pk) == NONE_LEFT


def test_unlimited_batch_fetches_each_collection_once(store, patient, add_appointment):
    for _ in range(3):
        add_appointment(patient)

    executor = CascadeExecutor(store, DependencyCatalog.from_settings(), batch_size=0)
    executor.cascade_delete("patients", patient.pk)

    assert store.lookups == [
        ("appointments", None),
        ("patient_transfers", None),
        ("treatment_records", None),
        ("insurance_claims", None),
        ("medical_history", None),
    ]


def test_negative_batch_size_is_rejected(store):
    with pytest.raises(ValueError):
        CascadeExecutor(store, DependencyCatalog.from_settings(), batch_size=-1)


def test_root_without_catalog_entries_is_deleted_alone(store, patient):
    executor = CascadeExecutor(store, DependencyCatalog({}))

    result = executor.cascade_delete("patients", patient.pk)

    assert result.removed == {}
    assert result.records_removed == 1
    assert not Patient.objects.filter(pk=patient.pk).exists()


def test_bad_lookup_is_a_query_failure(store, patient, add_appointment):
    add_appointment(patient)
    executor = CascadeExecutor(store, DependencyCatalog({"patients": [("appointments", "no_such_field")]}))

    with pytest.raises(QueryFailure) as exc:
        executor.cascade_delete("patients", patient.pk)

    assert exc.value.collection == "appointments"
    assert Patient.objects.filter(pk=patient.pk).exists()
    assert dependents_of(patient.pk)["appointments"] == 1


def test_commit_failure_is_reported_and_rolled_back(patient, add_appointment):
    class CommitFailingStore(DjangoRecordStore):
        @contextmanager
        def atomic(self):
            with super().atomic():
                yield
                raise DatabaseError("could not serialize access")

    add_appointment(patient)
    executor = CascadeExecutor(CommitFailingStore(), DependencyCatalog.from_settings())

    with pytest.raises(CommitFailure):
        executor.cascade_delete("patients", patient.pk)

    assert Patient.objects.filter(pk=patient.pk).exists()
    assert dependents_of(patient.pk)["appointments"] == 1


def test_before_commit_runs_inside_the_unit(executor, patient, add_appointment):
    add_appointment(patient)
    seen = []

    def _check(result):
        seen.append((result.removed["appointments"], Patient.objects.filter(pk=patient.pk).exists()))
        raise RuntimeError("audit write failed")

    with pytest.raises(RuntimeError):
        executor.cascade_delete("patients", patient.pk, before_commit=_check)

    assert seen == [(1, False)]
    assert Patient.objects.filter(pk=patient.pk).exists()
    assert dependents_of(patient.pk)["appointments"] == 1


def test_cascade_logs_each_collection(executor, patient, add_appointment, caplog):
    add_appointment(patient)
    add_appointment(patient)
    caplog.set_level(logging.INFO, logger="dc_core.cascade.executor")

    executor.cascade_delete("patients", patient.pk)

    per_collection = [r for r in caplog.records if getattr(r, "collection", None)]
    assert [r.collection for r in per_collection] == [
        "appointments",
        "patient_transfers",
        "treatment_records",
        "insurance_claims",
        "medical_history",
    ]
    assert per_collection[0].removed == 2
    assert f"Deleted 2 records from appointments for patients {patient.pk}" in caplog.text


# -------------------------
# count / purge
# -------------------------
def test_count_dependents(executor, patient, add_appointment, add_claim):
    add_appointment(patient)
    add_claim(patient)
    add_claim(patient)

    counts = executor.count_dependents("patients", patient.pk)

    assert counts["appointments"] == 1
    assert counts["insurance_claims"] == 2
    assert sum(counts.values()) == 3
    assert Patient.objects.filter(pk=patient.pk).exists()


def test_purge_dependents_requires_a_transaction(patient):
    class NoTransactionStore(DjangoRecordStore):
        def in_transaction(self):
            return False

    executor = CascadeExecutor(NoTransactionStore(), DependencyCatalog.from_settings())

    with pytest.raises(RuntimeError):
        executor.purge_dependents("patients", patient.pk)


# -------------------------
# pre-delete hook
# -------------------------
def test_orm_delete_cascades(patient, add_appointment, add_history):
    add_appointment(patient)
    add_history(patient)
    patient_id = patient.pk

    patient.delete()

    assert dependents_of(patient_id) == NONE_LEFT


def test_queryset_delete_cascades(make_patient, add_treatment):
    a, b = make_patient(), make_patient()
    add_treatment(a)
    add_treatment(b)

    Patient.objects.filter(pk__in=[a.pk, b.pk]).delete()

    assert dependents_of(a.pk) == NONE_LEFT
    assert dependents_of(b.pk) == NONE_LEFT


def test_hook_failure_aborts_the_triggering_delete(patient, add_appointment, add_treatment):
    add_appointment(patient)
    add_treatment(patient)

    with failing_delete(TreatmentRecord):
        with pytest.raises(DeleteFailure):
            with transaction.atomic():
                patient.delete()

    assert Patient.objects.filter(pk=patient.pk).exists()
    assert dependents_of(patient.pk)["appointments"] == 1
    assert dependents_of(patient.pk)["treatment_records"] == 1


def test_hook_skips_root_already_being_cascaded(executor, patient, add_appointment, monkeypatch):
    from dc_core.cascade.hooks import get_executor

    calls = []
    bound = get_executor()
    monkeypatch.setattr(bound, "purge_dependents", lambda *a: calls.append(a) or {})

    add_appointment(patient)
    executor.cascade_delete("patients", patient.pk)
    assert calls == []

    other = Patient.objects.create(tenant_id=patient.tenant_id, facility_id=patient.facility_id, full_name="B", mrn="B-1")
    other_id = other.pk
    other.delete()
    assert calls == [("patients", other_id)]


def test_stale_instance_delete_is_a_quiet_no_op(patient):
    stale = Patient.objects.get(pk=patient.pk)
    Patient.objects.filter(pk=patient.pk).delete()

    deleted, _ = stale.delete()

    assert deleted == 0


def test_store_error_inside_the_unit_is_not_reported_as_open_failure(executor, patient, add_appointment):
    add_appointment(patient)

    def _audit(result):
        raise DatabaseError("audit insert failed")

    with pytest.raises(QueryFailure) as exc:
        executor.cascade_delete("patients", patient.pk, before_commit=_audit)

    assert "open transaction" not in str(exc.value)
    assert "audit insert failed" in str(exc.value)
    assert Patient.objects.filter(pk=patient.pk).exists()
    assert dependents_of(patient.pk)["appointments"] == 1


# -------------------------
# timeouts
# -------------------------
@pytest.fixture
def set_local_statements(monkeypatch):
    """
    Pretend to be PostgreSQL and capture the SET LOCAL statements instead of
    sending them to SQLite.
    """
    conn = connections[DEFAULT_DB_ALIAS]
    monkeypatch.setattr(conn, "vendor", "postgresql")
    statements = []

    def _capture(execute, sql, params, many, context):
        if sql.startswith("SET LOCAL"):
            statements.append(sql)
            return None
        return execute(sql, params, many, context)

    with conn.execute_wrapper(_capture):
        yield statements


def test_cascade_transaction_is_bounded(patient, set_local_statements):
    store = DjangoRecordStore(statement_timeout_ms=15000, lock_timeout_ms=5000)

    CascadeExecutor(store, DependencyCatalog.from_settings()).cascade_delete("patients", patient.pk)

    assert set_local_statements == ["SET LOCAL statement_timeout = 15000", "SET LOCAL lock_timeout = 5000"]


def test_orm_delete_is_bounded_too(patient, add_appointment, set_local_statements):
    from dc_core.cascade.hooks import get_executor

    add_appointment(patient)

    patient.delete()

    expected = get_executor().store.timeout_statements()
    assert expected
    assert set_local_statements == expected
