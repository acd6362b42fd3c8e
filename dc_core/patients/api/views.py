# dc_core/patients/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.utils import extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, ValidationError as DRFValidationError
from rest_framework.response import Response

from dc_core.cascade.errors import CascadeError, DeleteFailure, RootNotFound
from dc_core.common.api.exceptions import CascadeBlocked, CascadeUnavailable
from dc_core.common.scope import get_scope_or_400
from dc_core.patients.api.serializers import (
    PatientCreateSerializer,
    PatientDependentsSerializer,
    PatientSerializer,
    PatientUpdateSerializer,
)
from dc_core.patients.models import Patient
from dc_core.patients.selectors import PatientSelector
from dc_core.patients.services import PatientService


def _patient_id_or_404(pk) -> UUID:
    try:
        return UUID(str(pk))
    except ValueError:
        raise NotFound("Patient not found in this scope.")


def _actor_id(request) -> int | None:
    return request.user.id if request.user and request.user.is_authenticated else None


def _cascade_details(exc: CascadeError) -> dict:
    # DRF stringifies every leaf, drop the empty ones
    return {k: v for k, v in exc.as_details().items() if v is not None}


class PatientViewSet(viewsets.GenericViewSet):
    """
    Thin API layer: scope parsing + serializer validation,
    writes go to PatientService, reads to PatientSelector.
    """

    serializer_class = PatientSerializer
    queryset = Patient.objects.none()

    @extend_schema(tags=["Patients"], responses={200: PatientSerializer(many=True)})
    def list(self, request):
        tenant_id, facility_id, err = get_scope_or_400(request)
        if err is not None:
            return err

        q = request.query_params.get("q", "").strip()
        qs = PatientSelector.search_patients(tenant_id=tenant_id, facility_id=facility_id, q=q)
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(PatientSerializer(page, many=True).data)
        return Response(PatientSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Patients"],
        request=PatientCreateSerializer,
        responses={201: PatientSerializer},
    )
    def create(self, request):
        tenant_id, facility_id, err = get_scope_or_400(request)
        if err is not None:
            return err

        ser = PatientCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        try:
            patient = PatientService.create_patient(
                tenant_id=tenant_id,
                facility_id=facility_id,
                actor_user_id=_actor_id(request),
                **ser.validated_data,
            )
        except ValueError as e:
            raise DRFValidationError({"detail": str(e)})

        return Response(PatientSerializer(patient).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Patients"], responses={200: PatientSerializer})
    def retrieve(self, request, pk=None):
        tenant_id, facility_id, err = get_scope_or_400(request)
        if err is not None:
            return err

        try:
            patient = PatientSelector.get_patient(
                tenant_id=tenant_id,
                facility_id=facility_id,
                patient_id=_patient_id_or_404(pk),
            )
        except PatientSelector.NotFound:
            raise NotFound("Patient not found in this scope.")

        return Response(PatientSerializer(patient).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Patients"],
        request=PatientUpdateSerializer,
        responses={200: PatientSerializer},
    )
    def partial_update(self, request, pk=None):
        tenant_id, facility_id, err = get_scope_or_400(request)
        if err is not None:
            return err

        ser = PatientUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        try:
            patient = PatientService.update_patient(
                tenant_id=tenant_id,
                facility_id=facility_id,
                actor_user_id=_actor_id(request),
                patient_id=_patient_id_or_404(pk),
                data=ser.validated_data,
            )
        except PatientSelector.NotFound:
            raise NotFound("Patient not found in this scope.")
        except ValueError as e:
            raise DRFValidationError({"detail": str(e)})

        return Response(PatientSerializer(patient).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Patients"], responses={204: None})
    def destroy(self, request, pk=None):
        """
        Deletes the patient together with appointments, transfers, treatment
        records, insurance claims and medical history. All or nothing.
        """
        tenant_id, facility_id, err = get_scope_or_400(request)
        if err is not None:
            return err

        try:
            PatientService.delete_patient(
                tenant_id=tenant_id,
                facility_id=facility_id,
                actor_user_id=_actor_id(request),
                patient_id=_patient_id_or_404(pk),
            )
        except PatientSelector.NotFound:
            raise NotFound("Patient not found in this scope.")
        except RootNotFound:
            # removed by a concurrent request after our lookup: already deleted
            return Response(status=status.HTTP_204_NO_CONTENT)
        except DeleteFailure as e:
            raise CascadeBlocked(detail={"detail": str(e), **_cascade_details(e)})
        except CascadeError as e:
            raise CascadeUnavailable(detail={"detail": CascadeUnavailable.default_detail, **_cascade_details(e)})

        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(tags=["Patients"], responses={200: PatientDependentsSerializer})
    @action(detail=True, methods=["get"])
    def dependents(self, request, pk=None):
        """
        What a delete would remove, per collection.
        """
        tenant_id, facility_id, err = get_scope_or_400(request)
        if err is not None:
            return err

        try:
            counts = PatientService.dependents_summary(
                tenant_id=tenant_id,
                facility_id=facility_id,
                patient_id=_patient_id_or_404(pk),
            )
        except PatientSelector.NotFound:
            raise NotFound("Patient not found in this scope.")
        except CascadeError as e:
            raise CascadeUnavailable(detail={"detail": str(e), **_cascade_details(e)})

        data = {"patient_id": pk, "dependents": counts, "total": sum(counts.values())}
        return Response(PatientDependentsSerializer(data).data, status=status.HTTP_200_OK)
