from __future__ import annotations

from starlette.requests import Request

from .middleware import EdgeAuthMiddleware
from .routes import RouteTable


STOREFRONT_ROUTES = RouteTable(
    login_path="/login",
    after_login_path="/",
    redirect_param="redirectTo",
    protected_routes=(
        "/dashboard",
        "/profile",
        "/orders",
        "/checkout",
        "/wishlist",
        "/settings",
    ),
    auth_routes=(
        "/login",
        "/register",
        "/forgot-password",
        "/reset-password",
    ),
    public_routes=(
        "/",
        "/products",
        "/product",
        "/categories",
        "/vendors",
        "/about",
        "/contact",
        "/help",
        "/faqs",
        "/terms",
        "/privacy",
        "/cookies",
        "/shipping",
        "/careers",
        "/press",
        "/blog",
        "/resources",
        "/pricing",
        "/auth/callback",
    ),
    session_exempt_auth_routes=("/reset-password",),
    protect_unlisted=False,
)


def safe_redirect_target(value: str | None, default: str = "/") -> str:
    """Only same-site absolute paths are followed after login."""
    if not value or not value.startswith("/") or value.startswith("//") or "\\" in value:
        return default
    return value


class StorefrontMiddleware(EdgeAuthMiddleware):
    route_table = STOREFRONT_ROUTES

    def after_login_target(self, request: Request) -> str:
        return safe_redirect_target(
            request.query_params.get(self.route_table.redirect_param),
            self.route_table.after_login_path,
        )
