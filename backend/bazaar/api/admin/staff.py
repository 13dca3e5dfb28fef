"""
Admin staff management.

Creating and changing staff accounts is reserved for super admins; listing is
open to every admin-tier role. Deletion is a soft deactivation.
"""
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...auth.guards import require_admin, require_super_admin
from ...auth.identity_provider import IdentityProvider
from ...auth.principal import AuthenticatedUser
from ...dependencies import get_db, get_identity_provider
from ...schemas.staff import (
    StaffCreated,
    StaffCreateRequest,
    StaffCreateResponse,
    StaffListResponse,
    StaffResponse,
    StaffUpdateRequest,
)
from ...services.staff import StaffService


router = APIRouter(prefix="/auth/admin", tags=["admin-staff"])


@router.post(
    "/create-staff",
    response_model=StaffCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_staff(
    payload: StaffCreateRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity_provider: IdentityProvider = Depends(get_identity_provider),
    current_user: AuthenticatedUser = Depends(require_super_admin()),
) -> StaffCreateResponse:
    service = StaffService(db, identity_provider)
    staff_id, email, role, permissions = await service.create_staff(
        email=payload.email,
        password=payload.password,
        full_name=payload.full_name,
        role=payload.role,
        permissions=payload.permissions,
        actor=current_user,
        request=request,
    )
    return StaffCreateResponse(
        message="Admin staff account created successfully",
        data=StaffCreated(
            staff_id=staff_id,
            email=email,
            role=role.value,
            permissions=permissions,
        ),
    )


@router.get("/staff", response_model=StaffListResponse)
async def list_staff(
    db: AsyncSession = Depends(get_db),
    identity_provider: IdentityProvider = Depends(get_identity_provider),
    _user: AuthenticatedUser = Depends(require_admin()),
) -> StaffListResponse:
    staff = await StaffService(db, identity_provider).list_staff()
    return StaffListResponse(data=[StaffResponse.model_validate(item) for item in staff])


@router.patch("/staff/{staff_id}", response_model=StaffResponse)
async def update_staff(
    staff_id: UUID,
    payload: StaffUpdateRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity_provider: IdentityProvider = Depends(get_identity_provider),
    current_user: AuthenticatedUser = Depends(require_super_admin()),
) -> StaffResponse:
    staff = await StaffService(db, identity_provider).update_staff(
        staff_id,
        role=payload.role,
        permissions=payload.permissions,
        # An explicit null clears the override back to role defaults
        permissions_set="permissions" in payload.model_fields_set,
        is_active=payload.is_active,
        actor=current_user,
        request=request,
    )
    return StaffResponse.model_validate(staff)


@router.delete("/staff/{staff_id}", response_model=StaffResponse)
async def deactivate_staff(
    staff_id: UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity_provider: IdentityProvider = Depends(get_identity_provider),
    current_user: AuthenticatedUser = Depends(require_super_admin()),
) -> StaffResponse:
    staff = await StaffService(db, identity_provider).deactivate_staff(
        staff_id, current_user, request
    )
    return StaffResponse.model_validate(staff)
