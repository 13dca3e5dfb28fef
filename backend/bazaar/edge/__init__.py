from .admin_portal import AdminPortalMiddleware
from .middleware import AccessDecision, EdgeAuthMiddleware, EdgeSession
from .portals import PORTAL_MIDDLEWARE, install_edge_auth
from .profiles import EdgeProfile, ProfileLookup, SqlProfileLookup
from .routes import RouteClass, RouteTable, matches_path
from .storefront import StorefrontMiddleware
from .vendor_portal import VendorPortalMiddleware

__all__ = [
    "AccessDecision",
    "AdminPortalMiddleware",
    "EdgeAuthMiddleware",
    "EdgeProfile",
    "EdgeSession",
    "PORTAL_MIDDLEWARE",
    "ProfileLookup",
    "RouteClass",
    "RouteTable",
    "SqlProfileLookup",
    "StorefrontMiddleware",
    "VendorPortalMiddleware",
    "install_edge_auth",
    "matches_path",
]
