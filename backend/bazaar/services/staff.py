from __future__ import annotations

import logging
import uuid

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.identity_provider import IdentityProvider, IdentityServiceError, ProviderRejectedError
from ..auth.principal import AuthenticatedUser
from ..auth.rbac_contract import ASSIGNABLE_STAFF_ROLES, Role, parse_role, permissions_for_role
from ..crud.admin_staff import AdminStaffRepository
from ..crud.profile import ProfileRepository
from ..errors import (
    AuthForbiddenEscalation,
    AuthServiceUnavailable,
    NotFoundError,
    StaffCreateFailed,
    ValidationError,
)
from ..models.admin_staff import AdminStaff
from .audit.audit_service import (
    ADMIN_STAFF_CREATED,
    ADMIN_STAFF_DEACTIVATED,
    ADMIN_STAFF_UPDATED,
    AdminAuditService,
)


logger = logging.getLogger("bazaar.staff")


def resolve_staff_role(value: str) -> Role:
    """Parse a requested staff role; super_admin is never assignable here."""
    role = parse_role(value)
    if role is Role.SUPER_ADMIN:
        raise AuthForbiddenEscalation()
    if role not in ASSIGNABLE_STAFF_ROLES:
        raise ValidationError(
            f"Invalid staff role '{value}'",
            details={"allowed": sorted(r.value for r in ASSIGNABLE_STAFF_ROLES)},
        )
    return role


class StaffService:
    def __init__(self, session: AsyncSession, identity_provider: IdentityProvider):
        self.session = session
        self.identity_provider = identity_provider
        self.staff_repo = AdminStaffRepository(session)
        self.profile_repo = ProfileRepository(session)
        self.audit = AdminAuditService(session)

    async def create_staff(
        self,
        *,
        email: str,
        password: str,
        full_name: str,
        role: str,
        permissions: list[str] | None,
        actor: AuthenticatedUser,
        request: Request | None = None,
    ) -> tuple[str, str, Role, list[str]]:
        staff_role = resolve_staff_role(role)

        try:
            created = await self.identity_provider.admin_create_user(
                email=email,
                password=password,
                user_metadata={"full_name": full_name, "role": staff_role.value},
            )
        except ProviderRejectedError as exc:
            logger.warning("Admin staff creation rejected email=%s: %s", email, exc.message)
            raise StaffCreateFailed(exc.message) from exc
        except IdentityServiceError as exc:
            logger.error("Admin staff creation failed email=%s: %s", email, exc)
            raise AuthServiceUnavailable("Failed to create staff account") from exc

        profile_id = uuid.UUID(created.id)
        try:
            await self.profile_repo.ensure(profile_id, created.email or email, full_name)
            await self.staff_repo.create(
                profile_id=profile_id,
                role=staff_role.value,
                permissions=permissions,
                created_by=uuid.UUID(actor.id),
            )
            await self.profile_repo.set_role(
                profile_id, staff_role.value, must_change_password=True
            )
            await self.audit.log(
                ADMIN_STAFF_CREATED,
                actor.id,
                {"staffId": created.id, "email": email, "role": staff_role.value},
                request,
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            # The provider account exists without a staff record
            logger.error(
                "Provider user created but staff record failed user_id=%s email=%s",
                created.id,
                email,
            )
            raise

        effective = permissions if permissions is not None else sorted(
            permissions_for_role(staff_role)
        )
        logger.info(
            "Admin staff account created by=%s staff_id=%s role=%s",
            actor.id,
            created.id,
            staff_role.value,
        )
        return created.id, created.email or email, staff_role, list(effective)

    async def list_staff(self) -> list[AdminStaff]:
        return await self.staff_repo.list_all()

    async def update_staff(
        self,
        staff_id: uuid.UUID,
        *,
        role: str | None,
        permissions: list[str] | None,
        permissions_set: bool,
        is_active: bool | None,
        actor: AuthenticatedUser,
        request: Request | None = None,
    ) -> AdminStaff:
        new_role = resolve_staff_role(role) if role is not None else None

        staff = await self.staff_repo.get_by_id(staff_id)
        if staff is None:
            raise NotFoundError("Staff member not found")

        changes: dict[str, object] = {}
        if new_role is not None and new_role.value != staff.role:
            await self._sync_role_claim(staff.profile_id, new_role)
            changes["role"] = {"from": staff.role, "to": new_role.value}
            staff.role = new_role.value
            await self.profile_repo.set_role(staff.profile_id, new_role.value)
        if permissions_set:
            changes["permissions"] = {"from": staff.permissions, "to": permissions}
            staff.permissions = permissions
        if is_active is not None and is_active != staff.is_active:
            changes["isActive"] = {"from": staff.is_active, "to": is_active}
            staff.is_active = is_active

        staff = await self.staff_repo.update(staff)
        if changes:
            await self.audit.log(
                ADMIN_STAFF_UPDATED,
                actor.id,
                {"staffId": str(staff_id), "changes": changes},
                request,
            )
        await self.session.commit()
        return staff

    async def _sync_role_claim(self, profile_id: uuid.UUID, role: Role) -> None:
        # Authentication reads the role from the provider's user metadata
        try:
            await self.identity_provider.admin_update_user(
                str(profile_id), user_metadata={"role": role.value}
            )
        except ProviderRejectedError as exc:
            logger.warning("Role claim update rejected profile_id=%s: %s", profile_id, exc.message)
            raise ValidationError(exc.message, code="AUTH_UPDATE_FAILED") from exc
        except IdentityServiceError as exc:
            logger.error("Role claim update failed profile_id=%s: %s", profile_id, exc)
            raise AuthServiceUnavailable("Failed to update staff role") from exc

    async def deactivate_staff(
        self,
        staff_id: uuid.UUID,
        actor: AuthenticatedUser,
        request: Request | None = None,
    ) -> AdminStaff:
        staff = await self.staff_repo.get_by_id(staff_id)
        if staff is None:
            raise NotFoundError("Staff member not found")
        staff.is_active = False
        staff = await self.staff_repo.update(staff)
        await self.audit.log(
            ADMIN_STAFF_DEACTIVATED, actor.id, {"staffId": str(staff_id)}, request
        )
        await self.session.commit()
        logger.info("Admin staff deactivated staff_id=%s by=%s", staff_id, actor.id)
        return staff
