from django.contrib import admin

from dc_core.appointments.models import Appointment


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ("patient", "dentist_name", "start_time", "appointment_type", "status", "room")
    list_filter = ("tenant_id", "facility_id", "status", "appointment_type")
    search_fields = ("patient__full_name", "patient__mrn", "dentist_name")
    readonly_fields = ("created_at", "updated_at")
    ordering = ("-start_time",)
