import logging
import uuid
from typing import Any

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from ...crud.admin_audit_log import AdminAuditLogRepository


logger = logging.getLogger("bazaar.audit")

MFA_ENABLED = "MFA_ENABLED"
MFA_VERIFIED = "MFA_VERIFIED"
ADMIN_STAFF_CREATED = "ADMIN_STAFF_CREATED"
ADMIN_STAFF_UPDATED = "ADMIN_STAFF_UPDATED"
ADMIN_STAFF_DEACTIVATED = "ADMIN_STAFF_DEACTIVATED"
ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"

AUDIT_ACTIONS = frozenset({
    MFA_ENABLED,
    MFA_VERIFIED,
    ADMIN_STAFF_CREATED,
    ADMIN_STAFF_UPDATED,
    ADMIN_STAFF_DEACTIVATED,
    ORDER_STATUS_CHANGED,
})


def client_ip(request: Request | None) -> str | None:
    if request is None:
        return None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None


class AdminAuditService:
    """Writes admin audit entries inside the caller's transaction."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.audit_repo = AdminAuditLogRepository(session)

    async def log(
        self,
        action: str,
        admin_id: str | uuid.UUID | None,
        details: dict[str, Any] | None = None,
        request: Request | None = None,
    ) -> None:
        if action not in AUDIT_ACTIONS:
            raise ValueError(f"Unknown audit action '{action}'")
        if isinstance(admin_id, str):
            admin_id = uuid.UUID(admin_id)
        await self.audit_repo.create(
            admin_id=admin_id,
            action=action,
            details=details,
            ip_address=client_ip(request),
        )
        logger.info("Audit action=%s admin_id=%s", action, admin_id)
