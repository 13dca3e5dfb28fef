"""
Route guards for the backend API.

Every guard is a FastAPI dependency factory. The returned dependency runs the
authenticator first (through ``get_current_user``), so a request that fails
authentication is answered with 401 before any policy is evaluated. Policy
denials raise an ``AuthorizationError`` subclass and are logged on
``bazaar.guards``.

Usage:
    @router.get("/admin/users", dependencies=[Depends(require_permission("users:read"))])

    @router.get("/me")
    async def me(user: AuthenticatedUser = Depends(require_auth())): ...
"""
from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import Depends, Request

from ..dependencies import get_current_user
from ..errors import (
    AuthAdminRequired,
    AuthInsufficientPermission,
    AuthInsufficientRole,
    AuthModuleDenied,
    AuthNotOwner,
    AuthorizationError,
    AuthSuperAdminRequired,
    AuthVendorRequired,
)
from .evaluator import has_all_permissions, has_any_permission, has_permission
from .principal import AuthenticatedUser
from .rbac_contract import AdminModule, Role, parse_role, permissions_for_module


logger = logging.getLogger("bazaar.guards")

OwnerIdExtractor = Callable[[Request], "str | None | Awaitable[str | None]"]
Guard = Callable[..., Awaitable[AuthenticatedUser]]


def _deny(
    request: Request,
    user: AuthenticatedUser,
    error: AuthorizationError,
    required: Any,
) -> AuthorizationError:
    logger.warning(
        "Access denied code=%s method=%s path=%s user_id=%s role=%s permissions=%s required=%s",
        error.code,
        request.method,
        request.url.path,
        user.id,
        user.role.value,
        sorted(user.permissions),
        required,
    )
    return error


def require_auth() -> Guard:
    async def dependency(
        user: AuthenticatedUser = Depends(get_current_user),
    ) -> AuthenticatedUser:
        return user

    return dependency


def require_role(*roles: Role | str) -> Guard:
    allowed = frozenset(role for role in (parse_role(r) for r in roles) if role is not None)

    async def dependency(
        request: Request,
        user: AuthenticatedUser = Depends(get_current_user),
    ) -> AuthenticatedUser:
        if user.is_super_admin:
            return user
        if user.role not in allowed:
            raise _deny(
                request,
                user,
                AuthInsufficientRole(),
                {"roles": sorted(role.value for role in allowed)},
            )
        return user

    return dependency


def require_permission(permission: str) -> Guard:
    async def dependency(
        request: Request,
        user: AuthenticatedUser = Depends(get_current_user),
    ) -> AuthenticatedUser:
        if not has_permission(user, permission):
            raise _deny(
                request,
                user,
                AuthInsufficientPermission(f"Missing required permission: {permission}"),
                {"permission": permission},
            )
        return user

    return dependency


def require_any_permission(*permissions: str) -> Guard:
    required = list(permissions)

    async def dependency(
        request: Request,
        user: AuthenticatedUser = Depends(get_current_user),
    ) -> AuthenticatedUser:
        if not has_any_permission(user, required):
            raise _deny(
                request,
                user,
                AuthInsufficientPermission(requiredAny=required),
                {"any": required},
            )
        return user

    return dependency


def require_all_permissions(*permissions: str) -> Guard:
    required = list(permissions)

    async def dependency(
        request: Request,
        user: AuthenticatedUser = Depends(get_current_user),
    ) -> AuthenticatedUser:
        if not has_all_permissions(user, required):
            raise _deny(
                request,
                user,
                AuthInsufficientPermission(requiredAll=required),
                {"all": required},
            )
        return user

    return dependency


def require_admin() -> Guard:
    async def dependency(
        request: Request,
        user: AuthenticatedUser = Depends(get_current_user),
    ) -> AuthenticatedUser:
        if not user.is_admin:
            raise _deny(request, user, AuthAdminRequired(), "admin")
        return user

    return dependency


def require_super_admin() -> Guard:
    async def dependency(
        request: Request,
        user: AuthenticatedUser = Depends(get_current_user),
    ) -> AuthenticatedUser:
        if not user.is_super_admin:
            raise _deny(request, user, AuthSuperAdminRequired(), "super_admin")
        return user

    return dependency


def require_module_access(module: AdminModule | str) -> Guard:
    module_name = module.value if isinstance(module, AdminModule) else str(module)
    required = sorted(permissions_for_module(module))

    async def dependency(
        request: Request,
        user: AuthenticatedUser = Depends(get_current_user),
    ) -> AuthenticatedUser:
        if user.is_super_admin:
            return user
        if not user.is_admin:
            raise _deny(request, user, AuthAdminRequired(), {"module": module_name})
        # An unknown module has no grantable permissions, so only super admin passes
        if not has_any_permission(user, required):
            raise _deny(
                request,
                user,
                AuthModuleDenied(f"Access to {module_name} module denied", module=module_name),
                {"module": module_name, "any": required},
            )
        return user

    return dependency


def require_owner_or_admin(extract_owner_id: OwnerIdExtractor) -> Guard:
    """Allow admins, or the user whose id the extractor pulls from the request.

    The extractor may be a plain function or a coroutine function. A missing
    owner id is treated as "not the owner".
    """

    async def dependency(
        request: Request,
        user: AuthenticatedUser = Depends(get_current_user),
    ) -> AuthenticatedUser:
        if user.is_admin:
            return user
        owner_id = extract_owner_id(request)
        if inspect.isawaitable(owner_id):
            owner_id = await owner_id
        if owner_id is None or str(owner_id) != user.id:
            raise _deny(request, user, AuthNotOwner(), "owner")
        return user

    return dependency


def require_vendor() -> Guard:
    async def dependency(
        request: Request,
        user: AuthenticatedUser = Depends(get_current_user),
    ) -> AuthenticatedUser:
        if user.is_admin:
            return user
        if user.role != Role.VENDOR:
            raise _deny(request, user, AuthVendorRequired(), "vendor")
        return user

    return dependency
