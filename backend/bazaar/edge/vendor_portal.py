from __future__ import annotations

import logging

from starlette.requests import Request

from ..auth.rbac_contract import Role, parse_role
from .middleware import AUTH_ERROR_MESSAGE, AccessDecision, EdgeAuthMiddleware, EdgeSession
from .routes import RouteTable


logger = logging.getLogger("bazaar.edge")

VENDOR_PORTAL_ROUTES = RouteTable(
    login_path="/auth/login",
    after_login_path="/dashboard",
    redirect_param="redirect",
    auth_routes=(
        "/auth/login",
        "/auth/register",
        "/auth/forgot-password",
        "/auth/callback",
        "/auth/reset-password",
    ),
    protected_routes=(
        "/dashboard",
        "/products",
        "/orders",
        "/inventory",
        "/payouts",
        "/settings",
        "/analytics",
    ),
    session_exempt_auth_routes=(
        "/auth/callback",
        "/auth/register",
        "/auth/reset-password",
    ),
    protect_unlisted=True,
)

VENDOR_PORTAL_ROLES = frozenset({Role.VENDOR, Role.ADMIN, Role.SUPER_ADMIN})

BUSINESS_REGISTRATION_PATH = "/auth/register?step=business"
PENDING_APPROVAL_PATH = "/pending-approval"

VENDOR_ONLY_MESSAGE = "Access denied. This portal is for registered vendors only."
VENDOR_SUSPENDED_MESSAGE = "Your vendor account has been suspended. Please contact support."


class VendorPortalMiddleware(EdgeAuthMiddleware):
    route_table = VENDOR_PORTAL_ROUTES

    async def authorize(self, request: Request, session: EdgeSession) -> AccessDecision:
        path = request.url.path
        if not self.route_table.is_listed_protected(path):
            return AccessDecision.allow()
        if self.profile_lookup is None:
            logger.error("Vendor portal has no profile lookup configured")
            return AccessDecision(
                redirect=self.redirect(
                    request, self.route_table.login_path, {"error": AUTH_ERROR_MESSAGE}
                )
            )

        try:
            profile = await self.profile_lookup.get_profile(session.user.id)
            if profile is None or parse_role(profile.role) not in VENDOR_PORTAL_ROLES:
                logger.warning(
                    "Vendor portal access denied user_id=%s role=%s",
                    session.user.id,
                    profile.role if profile else None,
                )
                return AccessDecision(
                    redirect=await self.sign_out(request, session, VENDOR_ONLY_MESSAGE)
                )

            if not profile.vendor_id:
                return AccessDecision(redirect=self.redirect(request, BUSINESS_REGISTRATION_PATH))

            vendor_status = await self.profile_lookup.get_vendor_status(profile.vendor_id)
        except Exception:
            logger.exception("Vendor portal check failed user_id=%s", session.user.id)
            return AccessDecision(
                redirect=self.redirect(
                    request, self.route_table.login_path, {"error": AUTH_ERROR_MESSAGE}
                )
            )

        if vendor_status == "pending" and not path.startswith(PENDING_APPROVAL_PATH):
            return AccessDecision(redirect=self.redirect(request, PENDING_APPROVAL_PATH))

        if vendor_status in {"rejected", "suspended"}:
            logger.warning(
                "Vendor portal blocked user_id=%s vendor_id=%s status=%s",
                session.user.id,
                profile.vendor_id,
                vendor_status,
            )
            return AccessDecision(
                redirect=await self.sign_out(request, session, VENDOR_SUSPENDED_MESSAGE)
            )

        return AccessDecision.allow()
