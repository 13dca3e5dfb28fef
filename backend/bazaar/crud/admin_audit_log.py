import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ..models.admin_audit_log import AdminAuditLog


class AdminAuditLogRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        admin_id: uuid.UUID | None,
        action: str,
        details: dict[str, Any] | None = None,
        ip_address: str | None = None,
    ) -> AdminAuditLog:
        entry = AdminAuditLog(
            admin_id=admin_id,
            action=action,
            details=details,
            ip_address=ip_address,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry
