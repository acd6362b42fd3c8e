# dc_core/common/scope.py
from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response


@dataclass(frozen=True)
class Scope:
    tenant_id: UUID
    facility_id: UUID


# Preferred header names (what we standardize on)
HDR_TENANT = "X-Tenant-Id"
HDR_FACILITY = "X-Facility-Id"

MISSING_SCOPE_MSG = "Missing scope headers. Provide X-Tenant-Id and X-Facility-Id."


def _parse_uuid(value: str, header_name: str) -> UUID:
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError({header_name: "Invalid UUID"})


def resolve_scope_from_headers(request) -> Scope | None:
    """
    Reads scope headers. Returns Scope if both are present.
    - If neither is present: returns None.
    - If only one is present: raises ValidationError with MISSING_SCOPE_MSG.
    """
    tenant_raw = request.headers.get(HDR_TENANT)
    facility_raw = request.headers.get(HDR_FACILITY)

    if not tenant_raw and not facility_raw:
        return None

    if not tenant_raw or not facility_raw:
        raise ValidationError(MISSING_SCOPE_MSG)

    return Scope(
        tenant_id=_parse_uuid(tenant_raw, HDR_TENANT),
        facility_id=_parse_uuid(facility_raw, HDR_FACILITY),
    )


def get_scope_or_400(request) -> tuple[UUID | None, UUID | None, Response | None]:
    """
    Standard scope resolver for views:
    returns (tenant_id, facility_id, None) or (None, None, <400 Response>).
    """
    try:
        scope = resolve_scope_from_headers(request)
    except ValidationError:
        scope = None

    if scope is None:
        return None, None, Response({"detail": MISSING_SCOPE_MSG}, status=status.HTTP_400_BAD_REQUEST)

    return scope.tenant_id, scope.facility_id, None
