from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from starlette.requests import Request

from ..auth.rbac_contract import ADMIN_ROLES, parse_role
from .middleware import AUTH_ERROR_MESSAGE, AccessDecision, EdgeAuthMiddleware, EdgeSession
from .routes import RouteTable, matches_path


logger = logging.getLogger("bazaar.edge")

SESSION_TIMEOUT = timedelta(minutes=30)

ADMIN_PORTAL_ROUTES = RouteTable(
    login_path="/auth/login",
    after_login_path="/dashboard",
    redirect_param="redirect",
    auth_routes=(
        "/auth/login",
        "/auth/forgot-password",
        "/auth/callback",
        "/auth/reset-password",
    ),
    session_exempt_auth_routes=(
        "/auth/callback",
        "/auth/reset-password",
    ),
    protect_unlisted=True,
)

MFA_ROUTES: tuple[str, ...] = ("/auth/mfa/setup", "/auth/mfa/verify")
MFA_VERIFY_ROUTE = "/auth/mfa/verify"
CHANGE_PASSWORD_ROUTE = "/auth/change-password"

SESSION_EXPIRED_MESSAGE = "Session expired. Please sign in again."
ADMIN_REQUIRED_MESSAGE = "Access denied. Administrator privileges required."
ACCOUNT_DEACTIVATED_MESSAGE = "Your account has been deactivated."


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def session_expired(started_at: datetime | None, now: datetime) -> bool:
    # No known start time counts as expired
    if started_at is None:
        return True
    return now - _as_utc(started_at) > SESSION_TIMEOUT


def mfa_pending(
    mfa_enabled: bool, mfa_verified_at: datetime | None, session_started_at: datetime
) -> bool:
    if not mfa_enabled:
        return False
    if mfa_verified_at is None:
        return True
    return _as_utc(mfa_verified_at) < _as_utc(session_started_at)


class AdminPortalMiddleware(EdgeAuthMiddleware):
    """Strict admin-tier gate: session age, role, forced password change, MFA."""

    route_table = ADMIN_PORTAL_ROUTES

    async def authorize(self, request: Request, session: EdgeSession) -> AccessDecision:
        path = request.url.path
        try:
            started_at = session.user.session_started_at
            if session_expired(started_at, datetime.now(timezone.utc)):
                logger.info("Admin session expired user_id=%s", session.user.id)
                return AccessDecision(
                    redirect=await self.sign_out(request, session, SESSION_EXPIRED_MESSAGE)
                )

            if self.profile_lookup is None:
                raise RuntimeError("Admin portal has no profile lookup configured")
            profile = await self.profile_lookup.get_profile(session.user.id)
            role = parse_role(profile.role) if profile is not None else None
            if profile is None or role not in ADMIN_ROLES:
                logger.warning(
                    "Non-admin identity on admin portal user_id=%s role=%s path=%s",
                    session.user.id,
                    profile.role if profile else None,
                    path,
                )
                return AccessDecision(
                    redirect=await self.sign_out(request, session, ADMIN_REQUIRED_MESSAGE)
                )

            if not profile.is_active:
                logger.warning(
                    "Deactivated staff on admin portal user_id=%s path=%s",
                    session.user.id,
                    path,
                )
                return AccessDecision(
                    redirect=await self.sign_out(request, session, ACCOUNT_DEACTIVATED_MESSAGE)
                )

            if profile.must_change_password and path != CHANGE_PASSWORD_ROUTE:
                return AccessDecision(redirect=self.redirect(request, CHANGE_PASSWORD_ROUTE))

            # TODO: decide whether admins without MFA should be sent to /auth/mfa/setup
            if not matches_path(path, MFA_ROUTES) and path != CHANGE_PASSWORD_ROUTE:
                if mfa_pending(profile.mfa_enabled, profile.mfa_verified_at, started_at):
                    return AccessDecision(
                        redirect=self.redirect(request, MFA_VERIFY_ROUTE, {"redirect": path})
                    )

            return AccessDecision.allow(
                {"x-admin-id": session.user.id, "x-admin-role": role.value}
            )
        except Exception:
            logger.exception("Admin portal check failed path=%s", path)
            return AccessDecision(
                redirect=self.redirect(
                    request, self.route_table.login_path, {"error": AUTH_ERROR_MESSAGE}
                )
            )
