import pytest

from bazaar.auth import rbac_contract
from bazaar.auth.rbac_contract import (
    ADMIN_ROLES,
    ALL_PERMISSIONS,
    ASSIGNABLE_STAFF_ROLES,
    MODULE_PERMISSIONS,
    ROLE_PERMISSION_MAPPINGS,
    SELF_REGISTRATION_ROLES,
    AdminModule,
    Role,
    is_admin_role,
    parse_role,
    permissions_for_module,
    permissions_for_role,
    validate_permission,
)
from bazaar.errors import AuthInvalidRole
from bazaar.use_cases.auth.register_user import resolve_registration_role


def test_super_admin_maps_to_full_universe() -> None:
    assert ROLE_PERMISSION_MAPPINGS[Role.SUPER_ADMIN] == ALL_PERMISSIONS


def test_every_role_is_mapped() -> None:
    assert set(ROLE_PERMISSION_MAPPINGS) == set(Role)


def test_marketplace_roles_carry_no_admin_permissions() -> None:
    assert permissions_for_role(Role.VENDOR) == frozenset()
    assert permissions_for_role(Role.BUYER) == frozenset()


def test_role_grants_are_subsets_of_universe() -> None:
    for permissions in ROLE_PERMISSION_MAPPINGS.values():
        assert permissions <= ALL_PERMISSIONS


def test_every_module_requires_known_permissions() -> None:
    for module in AdminModule:
        required = MODULE_PERMISSIONS[module]
        assert required
        assert required <= ALL_PERMISSIONS


def test_admin_role_grants() -> None:
    admin = permissions_for_role("admin")
    assert "orders:refund" in admin
    assert "settings:read" in admin
    assert "settings:update" not in admin
    assert "admin:staff:create" not in admin


def test_permission_names_are_explicit() -> None:
    for permission in ALL_PERMISSIONS:
        assert ":" in permission
        assert "*" not in permission


def test_validate_permission_rejects_wildcards_and_unknowns() -> None:
    with pytest.raises(ValueError, match="Wildcard"):
        validate_permission("orders:*")
    with pytest.raises(ValueError, match="Invalid permission"):
        validate_permission("orders:teleport")
    validate_permission("orders:read")


def test_parse_role_is_lenient_on_case_and_whitespace() -> None:
    assert parse_role(" Admin ") is Role.ADMIN
    assert parse_role(Role.VENDOR) is Role.VENDOR
    assert parse_role("wizard") is None
    assert parse_role(None) is None
    assert parse_role(3) is None


def test_unknown_role_has_no_permissions() -> None:
    assert permissions_for_role("wizard") == frozenset()
    assert permissions_for_role(None) == frozenset()


def test_admin_tier_membership() -> None:
    assert is_admin_role("viewer")
    assert not is_admin_role("vendor")
    assert not is_admin_role(None)
    assert Role.SUPER_ADMIN not in ASSIGNABLE_STAFF_ROLES
    assert ASSIGNABLE_STAFF_ROLES < ADMIN_ROLES


def test_permissions_for_module() -> None:
    assert permissions_for_module("orders_management") == frozenset({"orders:read"})
    assert permissions_for_module(AdminModule.AUDIT) == frozenset({"audit:read"})
    assert permissions_for_module("no_such_module") == frozenset()


def test_contract_validation_fails_fast(monkeypatch: pytest.MonkeyPatch) -> None:
    broken = dict(ROLE_PERMISSION_MAPPINGS)
    broken[Role.SUPER_ADMIN] = ALL_PERMISSIONS - {"orders:read"}
    monkeypatch.setattr(rbac_contract, "ROLE_PERMISSION_MAPPINGS", broken)
    with pytest.raises(RuntimeError, match="super_admin is missing permissions"):
        rbac_contract._validate_contract()


def test_contract_validation_rejects_unknown_module_permission(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    broken = dict(MODULE_PERMISSIONS)
    broken[AdminModule.FINANCE] = frozenset({"finance:launder"})
    monkeypatch.setattr(rbac_contract, "MODULE_PERMISSIONS", broken)
    with pytest.raises(RuntimeError, match="finance"):
        rbac_contract._validate_contract()


def test_self_registration_is_marketplace_only() -> None:
    assert SELF_REGISTRATION_ROLES == {Role.BUYER, Role.VENDOR}
    assert not SELF_REGISTRATION_ROLES & ADMIN_ROLES


@pytest.mark.parametrize(
    ("value", "expected"),
    [(None, Role.BUYER), ("buyer", Role.BUYER), (" Vendor ", Role.VENDOR)],
)
def test_resolve_registration_role(value, expected: Role) -> None:
    assert resolve_registration_role(value) is expected


@pytest.mark.parametrize("value", ["admin", "super_admin", "staff", "", "owner"])
def test_resolve_registration_role_refuses_others(value: str) -> None:
    with pytest.raises(AuthInvalidRole):
        resolve_registration_role(value)
