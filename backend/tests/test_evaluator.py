from bazaar.auth.evaluator import has_all_permissions, has_any_permission, has_permission
from bazaar.auth.rbac_contract import Role

from fakes import make_user


def test_super_admin_passes_every_predicate() -> None:
    user = make_user(Role.SUPER_ADMIN, permissions=set())
    assert has_permission(user, "finance:escrow")
    assert has_permission(user, "not:registered")
    assert has_any_permission(user, [])
    assert has_all_permissions(user, ["orders:read", "not:registered"])


def test_has_permission_uses_resolved_set() -> None:
    user = make_user(Role.STAFF)
    assert has_permission(user, "orders:update")
    assert not has_permission(user, "orders:refund")


def test_any_and_all() -> None:
    user = make_user(Role.MANAGER, permissions={"products:read", "orders:read"})
    assert has_any_permission(user, ["finance:read", "orders:read"])
    assert not has_any_permission(user, ["finance:read"])
    assert not has_any_permission(user, [])
    assert has_all_permissions(user, ["products:read", "orders:read"])
    assert not has_all_permissions(user, ["products:read", "finance:read"])
    assert has_all_permissions(user, [])


def test_principal_flags() -> None:
    assert make_user(Role.VIEWER).is_admin
    assert not make_user(Role.VIEWER).is_super_admin
    assert not make_user(Role.BUYER).is_admin
    context = make_user(Role.ADMIN, permissions={"b:x", "a:y"}).log_context()
    assert context["permissions"] == ["a:y", "b:x"]
    assert context["role"] == "admin"
