from django.contrib import admin

from dc_core.patients.models import Patient


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    # deleting from here runs the same pre-delete cascade as the API
    list_display = (
        "full_name",
        "mrn",
        "phone",
        "email",
        "status",
        "tenant_id",
        "facility_id",
        "created_at",
    )
    list_filter = ("tenant_id", "facility_id", "status")
    search_fields = ("full_name", "mrn", "phone", "email")
    readonly_fields = ("created_at", "updated_at")
    ordering = ("-created_at",)
