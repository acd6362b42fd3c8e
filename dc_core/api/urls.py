# dc_core/api/urls.py
from __future__ import annotations

from rest_framework.routers import DefaultRouter

from dc_core.audit.api.views import AuditEventViewSet
from dc_core.patients.api.views import PatientViewSet

router = DefaultRouter()

router.register(r"patients", PatientViewSet, basename="patients")
router.register(r"audit/events", AuditEventViewSet, basename="audit-events")

urlpatterns = router.urls
