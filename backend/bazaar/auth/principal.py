from __future__ import annotations

from dataclasses import dataclass, field

from .rbac_contract import Role, is_admin_role


@dataclass(frozen=True)
class AuthenticatedUser:
    """Per-request identity resolved by the authenticator. Never persisted."""

    id: str
    email: str
    role: Role
    permissions: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return is_admin_role(self.role)

    @property
    def is_super_admin(self) -> bool:
        return self.role == Role.SUPER_ADMIN

    def log_context(self) -> dict[str, object]:
        return {
            "user_id": self.id,
            "role": self.role.value,
            "permissions": sorted(self.permissions),
        }
