"""Wiring for mounting the edge middleware in front of a front-end ASGI app."""
from __future__ import annotations

from ..auth.identity_provider import IdentityProvider
from ..config import settings
from .admin_portal import AdminPortalMiddleware
from .middleware import EdgeAuthMiddleware
from .profiles import ProfileLookup, SqlProfileLookup
from .storefront import StorefrontMiddleware
from .vendor_portal import VendorPortalMiddleware


PORTAL_MIDDLEWARE: dict[str, type[EdgeAuthMiddleware]] = {
    "storefront": StorefrontMiddleware,
    "vendor": VendorPortalMiddleware,
    "admin": AdminPortalMiddleware,
}


def install_edge_auth(
    app,
    portal: str,
    *,
    identity_provider: IdentityProvider | None = None,
    profile_lookup: ProfileLookup | None = None,
) -> None:
    """Register the portal's edge middleware on a Starlette/FastAPI app."""
    try:
        middleware_class = PORTAL_MIDDLEWARE[portal]
    except KeyError as exc:
        raise ValueError(f"Unknown portal '{portal}'") from exc

    if identity_provider is None:
        from ..dependencies import get_identity_provider

        identity_provider = get_identity_provider()
    if profile_lookup is None and middleware_class is not StorefrontMiddleware:
        from ..database import AsyncSessionLocal

        profile_lookup = SqlProfileLookup(AsyncSessionLocal)

    app.add_middleware(
        middleware_class,
        identity_provider=identity_provider,
        profile_lookup=profile_lookup,
        session_cookie_name=settings.session_cookie_name,
        refresh_cookie_name=settings.refresh_cookie_name,
    )
