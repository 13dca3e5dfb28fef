"""Permission predicates over an already-resolved AuthenticatedUser.

Super admin is defined as "all permissions": every predicate returns True for
a super admin, even for permissions the registry does not grant explicitly.
"""
from __future__ import annotations

from collections.abc import Iterable

from .principal import AuthenticatedUser


def has_permission(user: AuthenticatedUser, permission: str) -> bool:
    if user.is_super_admin:
        return True
    return permission in user.permissions


def has_any_permission(user: AuthenticatedUser, permissions: Iterable[str]) -> bool:
    if user.is_super_admin:
        return True
    return any(permission in user.permissions for permission in permissions)


def has_all_permissions(user: AuthenticatedUser, permissions: Iterable[str]) -> bool:
    if user.is_super_admin:
        return True
    return all(permission in user.permissions for permission in permissions)
