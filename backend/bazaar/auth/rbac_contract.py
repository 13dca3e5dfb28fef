"""
RBAC Security Contract - role, permission and module registry for The Bazaar.

This module is the single source of truth for:
- Roles (admin tier and marketplace tier)
- Permissions in ``resource:action`` form
- Default role-to-permission grants
- Admin module access requirements

All tables are read-only after import. The contract is validated at import
time and a broken contract prevents the application from starting.
"""
from __future__ import annotations

from enum import Enum
from typing import Final


# ============================================================================
# ROLES
# ============================================================================

class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    MANAGER = "manager"
    STAFF = "staff"
    VIEWER = "viewer"
    VENDOR = "vendor"
    BUYER = "buyer"


ADMIN_ROLES: Final[frozenset[Role]] = frozenset({
    Role.SUPER_ADMIN,
    Role.ADMIN,
    Role.MANAGER,
    Role.STAFF,
    Role.VIEWER,
})

USER_ROLES: Final[frozenset[Role]] = frozenset({
    Role.VENDOR,
    Role.BUYER,
})

# Lowest-privilege role, used whenever the identity carries no usable claim
DEFAULT_ROLE: Final[Role] = Role.BUYER

# Roles a super admin may hand out through the staff endpoints
ASSIGNABLE_STAFF_ROLES: Final[frozenset[Role]] = ADMIN_ROLES - {Role.SUPER_ADMIN}

# Roles the public sign-up endpoint accepts; admin roles are never self-assigned
SELF_REGISTRATION_ROLES: Final[frozenset[Role]] = USER_ROLES


# ============================================================================
# PERMISSIONS - EXPLICIT ONLY, NO WILDCARDS
# ============================================================================

USERS_PERMISSIONS: Final[frozenset[str]] = frozenset({
    "users:read",
    "users:create",
    "users:update",
    "users:delete",
    "users:suspend",
    "users:verify",
})

VENDORS_PERMISSIONS: Final[frozenset[str]] = frozenset({
    "vendors:read",
    "vendors:create",
    "vendors:update",
    "vendors:delete",
    "vendors:approve",
    "vendors:suspend",
    "vendors:verify_kyc",
    "vendors:payouts",
})

PRODUCTS_PERMISSIONS: Final[frozenset[str]] = frozenset({
    "products:read",
    "products:create",
    "products:update",
    "products:delete",
    "products:approve",
    "products:feature",
})

ORDERS_PERMISSIONS: Final[frozenset[str]] = frozenset({
    "orders:read",
    "orders:update",
    "orders:cancel",
    "orders:refund",
    "orders:dispute",
})

CATEGORIES_PERMISSIONS: Final[frozenset[str]] = frozenset({
    "categories:read",
    "categories:create",
    "categories:update",
    "categories:delete",
})

# Internal staff management, admin portal only
ADMIN_PERMISSIONS: Final[frozenset[str]] = frozenset({
    "admin:staff:read",
    "admin:staff:create",
    "admin:staff:update",
    "admin:staff:delete",
    "admin:roles:manage",
    "admin:permissions:manage",
})

SETTINGS_PERMISSIONS: Final[frozenset[str]] = frozenset({
    "settings:read",
    "settings:update",
    "settings:security",
})

ANALYTICS_PERMISSIONS: Final[frozenset[str]] = frozenset({
    "analytics:read",
    "analytics:export",
    "analytics:dashboard",
})

SERVICES_PERMISSIONS: Final[frozenset[str]] = frozenset({
    "services:read",
    "services:configure",
    "services:payment",
    "services:shipping",
    "services:notifications",
})

AUDIT_PERMISSIONS: Final[frozenset[str]] = frozenset({
    "audit:read",
    "audit:export",
    "security:alerts",
    "security:manage",
})

SUPPORT_PERMISSIONS: Final[frozenset[str]] = frozenset({
    "support:read",
    "support:respond",
    "support:escalate",
    "support:close",
})

FINANCE_PERMISSIONS: Final[frozenset[str]] = frozenset({
    "finance:read",
    "finance:transactions",
    "finance:escrow",
    "finance:reports",
})

ALL_PERMISSIONS: Final[frozenset[str]] = (
    USERS_PERMISSIONS
    | VENDORS_PERMISSIONS
    | PRODUCTS_PERMISSIONS
    | ORDERS_PERMISSIONS
    | CATEGORIES_PERMISSIONS
    | ADMIN_PERMISSIONS
    | SETTINGS_PERMISSIONS
    | ANALYTICS_PERMISSIONS
    | SERVICES_PERMISSIONS
    | AUDIT_PERMISSIONS
    | SUPPORT_PERMISSIONS
    | FINANCE_PERMISSIONS
)


# ============================================================================
# ROLE-PERMISSION MAPPINGS
# ============================================================================

ROLE_PERMISSION_MAPPINGS: Final[dict[Role, frozenset[str]]] = {
    # Always the full universe; new permissions are picked up automatically
    Role.SUPER_ADMIN: ALL_PERMISSIONS,

    Role.ADMIN: frozenset({
        "users:read",
        "users:create",
        "users:update",
        "users:suspend",
        "users:verify",
        "vendors:read",
        "vendors:update",
        "vendors:approve",
        "vendors:suspend",
        "vendors:verify_kyc",
        "products:read",
        "products:update",
        "products:approve",
        "products:feature",
        "orders:read",
        "orders:update",
        "orders:cancel",
        "orders:refund",
        "categories:read",
        "categories:create",
        "categories:update",
        "analytics:read",
        "analytics:dashboard",
        "support:read",
        "support:respond",
        "support:escalate",
        # Read only
        "settings:read",
        "audit:read",
    }),

    Role.MANAGER: frozenset({
        "users:read",
        "users:update",
        "vendors:read",
        "vendors:update",
        "products:read",
        "products:update",
        "products:approve",
        "orders:read",
        "orders:update",
        "categories:read",
        "analytics:read",
        "support:read",
        "support:respond",
    }),

    Role.STAFF: frozenset({
        "users:read",
        "vendors:read",
        "products:read",
        "orders:read",
        "orders:update",
        "support:read",
        "support:respond",
    }),

    Role.VIEWER: frozenset({
        "users:read",
        "vendors:read",
        "products:read",
        "orders:read",
        "categories:read",
        "analytics:read",
        "audit:read",
    }),

    # Marketplace roles carry no admin permissions
    Role.VENDOR: frozenset(),
    Role.BUYER: frozenset(),
}


# ============================================================================
# ADMIN PORTAL MODULES
# ============================================================================

class AdminModule(str, Enum):
    USERS_MANAGEMENT = "users_management"
    VENDORS_MANAGEMENT = "vendors_management"
    PRODUCTS_MANAGEMENT = "products_management"
    ORDERS_MANAGEMENT = "orders_management"
    ADMIN_MANAGEMENT = "admin_management"
    SETTINGS = "settings"
    ANALYTICS = "analytics"
    SERVICES = "services"
    SUPPORT = "support"
    FINANCE = "finance"
    AUDIT = "audit"


# Minimum permissions needed to open each module (any one suffices)
MODULE_PERMISSIONS: Final[dict[AdminModule, frozenset[str]]] = {
    AdminModule.USERS_MANAGEMENT: frozenset({"users:read"}),
    AdminModule.VENDORS_MANAGEMENT: frozenset({"vendors:read"}),
    AdminModule.PRODUCTS_MANAGEMENT: frozenset({"products:read"}),
    AdminModule.ORDERS_MANAGEMENT: frozenset({"orders:read"}),
    AdminModule.ADMIN_MANAGEMENT: frozenset({"admin:staff:read"}),
    AdminModule.SETTINGS: frozenset({"settings:read"}),
    AdminModule.ANALYTICS: frozenset({"analytics:read"}),
    AdminModule.SERVICES: frozenset({"services:read"}),
    AdminModule.SUPPORT: frozenset({"support:read"}),
    AdminModule.FINANCE: frozenset({"finance:read"}),
    AdminModule.AUDIT: frozenset({"audit:read"}),
}


# ============================================================================
# LOOKUPS
# ============================================================================

def parse_role(value: object) -> Role | None:
    """Return the Role for a raw claim value, or None when unrecognized."""
    if isinstance(value, Role):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Role(value.strip().lower())
    except ValueError:
        return None


def is_admin_role(role: Role | str | None) -> bool:
    return parse_role(role) in ADMIN_ROLES


def permissions_for_role(role: Role | str | None) -> frozenset[str]:
    """Default permission set for a role.

    Unknown roles yield an empty set instead of failing; callers gate on
    known roles upstream.
    """
    parsed = parse_role(role)
    if parsed is None:
        return frozenset()
    return ROLE_PERMISSION_MAPPINGS.get(parsed, frozenset())


def permissions_for_module(module: AdminModule | str) -> frozenset[str]:
    try:
        key = AdminModule(module)
    except ValueError:
        return frozenset()
    return MODULE_PERMISSIONS.get(key, frozenset())


# ============================================================================
# HARD INVARIANTS - FAIL-FAST ENFORCEMENT
# ============================================================================

def validate_permission(permission: str) -> None:
    """
    Validate that a permission is explicitly allowed.

    Raises:
        ValueError: If permission contains wildcards or is not in the universe
    """
    if permission.endswith("*"):
        raise ValueError(
            f"Wildcard permission '{permission}' is forbidden. "
            "All permissions must be explicit."
        )

    if permission not in ALL_PERMISSIONS:
        raise ValueError(f"Invalid permission '{permission}'")


def _validate_contract() -> None:
    """Validate the entire RBAC contract at module import time."""
    errors = []

    for role in Role:
        if role not in ROLE_PERMISSION_MAPPINGS:
            errors.append(f"Role '{role.value}' has no permission mapping")

    for role, permissions in ROLE_PERMISSION_MAPPINGS.items():
        for permission in permissions:
            try:
                validate_permission(permission)
            except ValueError as e:
                errors.append(f"Role '{role.value}' has invalid permission: {e}")

    super_admin = ROLE_PERMISSION_MAPPINGS.get(Role.SUPER_ADMIN, frozenset())
    missing = ALL_PERMISSIONS - super_admin
    if missing:
        errors.append(f"super_admin is missing permissions: {sorted(missing)}")

    for role in USER_ROLES:
        if ROLE_PERMISSION_MAPPINGS.get(role):
            errors.append(f"Marketplace role '{role.value}' must not carry admin permissions")

    if SELF_REGISTRATION_ROLES & ADMIN_ROLES:
        errors.append("Admin roles must not be open to self-registration")

    for module in AdminModule:
        required = MODULE_PERMISSIONS.get(module)
        if not required:
            errors.append(f"Module '{module.value}' has no required permissions")
            continue
        unknown = required - ALL_PERMISSIONS
        if unknown:
            errors.append(f"Module '{module.value}' requires unknown permissions: {sorted(unknown)}")

    if errors:
        raise RuntimeError(
            "RBAC Contract validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        )


_validate_contract()
