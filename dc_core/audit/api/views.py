# dc_core/audit/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.response import Response

from dc_core.audit.api.serializers import AuditEventSerializer
from dc_core.audit.models import AuditEvent, AuditEventCode
from dc_core.audit.selectors import AuditQuery, patient_timeline
from dc_core.common.scope import get_scope_or_400


class AuditEventViewSet(viewsets.GenericViewSet):
    """
    Patient timeline: created / updated / deleted events, scoped.
    """
    serializer_class = AuditEventSerializer
    queryset = AuditEvent.objects.none()

    @extend_schema(
        tags=["Audit"],
        responses={200: AuditEventSerializer(many=True)},
        parameters=[
            OpenApiParameter(
                name="entity_type",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Filter by entity type (e.g. Patient).",
            ),
            OpenApiParameter(
                name="entity_id",
                type=OpenApiTypes.UUID,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Filter by entity UUID.",
            ),
            OpenApiParameter(
                name="event_code",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                enum=AuditEventCode.values,
                description="Filter by event code.",
            ),
            OpenApiParameter(
                name="actor_user_id",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Filter by actor user id (int).",
            ),
            OpenApiParameter(
                name="limit",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Max records to return (default 200, max 500).",
            ),
        ],
    )
    def list(self, request):
        tenant_id, facility_id, err = get_scope_or_400(request)
        if err is not None:
            return err

        try:
            query = AuditQuery.from_params(request.query_params)
        except ValueError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        qs = patient_timeline(tenant_id=tenant_id, facility_id=facility_id, query=query)
        return Response(AuditEventSerializer(qs, many=True).data, status=status.HTTP_200_OK)
