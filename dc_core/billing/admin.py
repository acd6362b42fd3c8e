from django.contrib import admin

from dc_core.billing.models import InsuranceClaim


@admin.register(InsuranceClaim)
class InsuranceClaimAdmin(admin.ModelAdmin):
    list_display = ("claim_number", "patient", "claim_date", "claimed_amount", "status")
    list_filter = ("tenant_id", "facility_id", "status")
    search_fields = ("claim_number", "patient__full_name", "patient__mrn")
    readonly_fields = ("created_at", "updated_at")
