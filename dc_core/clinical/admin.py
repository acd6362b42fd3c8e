from django.contrib import admin

from dc_core.clinical.models import MedicalHistory, PatientTransfer, TreatmentRecord


@admin.register(TreatmentRecord)
class TreatmentRecordAdmin(admin.ModelAdmin):
    list_display = ("patient", "tooth_number", "surface", "treatment_date", "actual_cost")
    list_filter = ("tenant_id", "facility_id", "treatment_date")
    search_fields = ("patient__full_name", "patient__mrn", "diagnosis", "procedure")
    ordering = ("-treatment_date",)


@admin.register(PatientTransfer)
class PatientTransferAdmin(admin.ModelAdmin):
    list_display = ("patient", "destination", "status", "transferred_at")
    list_filter = ("tenant_id", "facility_id", "status")
    search_fields = ("patient__full_name", "destination")


@admin.register(MedicalHistory)
class MedicalHistoryAdmin(admin.ModelAdmin):
    list_display = ("patient", "record_date", "smoking", "alcohol")
    list_filter = ("tenant_id", "facility_id")
    search_fields = ("patient__full_name", "patient__mrn")
