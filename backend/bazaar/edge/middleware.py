"""
Edge authentication middleware shared by the three front ends.

Each request is classified against a RouteTable. Public and skipped paths pass
straight through. For auth-only and protected paths the session is resolved
from the access-token cookie through the identity provider, refreshing it with
the refresh-token cookie when the access token is rejected. Subclasses add
their portal-specific checks in ``authorize``.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from urllib.parse import urlencode

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.types import ASGIApp

from ..auth.identity_provider import (
    IdentityProvider,
    IdentityProviderError,
    IdentityServiceError,
    InvalidCredentialError,
    ProviderSession,
    ProviderUser,
)
from .profiles import ProfileLookup
from .routes import RouteClass, RouteTable


logger = logging.getLogger("bazaar.edge")

DEFAULT_SESSION_COOKIE = "sb-access-token"
DEFAULT_REFRESH_COOKIE = "sb-refresh-token"
REFRESH_COOKIE_MAX_AGE = 60 * 60 * 24 * 30

AUTH_ERROR_MESSAGE = "Authentication error. Please sign in again."


@dataclass
class EdgeSession:
    user: ProviderUser
    access_token: str
    refreshed: ProviderSession | None = None


@dataclass
class AccessDecision:
    """Outcome of a portal check: either a redirect or headers to annotate."""

    redirect: Response | None = None
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def allow(cls, headers: Mapping[str, str] | None = None) -> "AccessDecision":
        return cls(headers=dict(headers or {}))


class EdgeAuthMiddleware(BaseHTTPMiddleware):
    route_table: RouteTable

    def __init__(
        self,
        app: ASGIApp,
        *,
        identity_provider: IdentityProvider,
        profile_lookup: ProfileLookup | None = None,
        route_table: RouteTable | None = None,
        session_cookie_name: str = DEFAULT_SESSION_COOKIE,
        refresh_cookie_name: str = DEFAULT_REFRESH_COOKIE,
    ) -> None:
        super().__init__(app)
        self.identity_provider = identity_provider
        self.profile_lookup = profile_lookup
        if route_table is not None:
            self.route_table = route_table
        self.session_cookie_name = session_cookie_name
        self.refresh_cookie_name = refresh_cookie_name

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        route_class = self.route_table.classify(path)
        if route_class in {RouteClass.SKIP, RouteClass.PUBLIC}:
            return await call_next(request)

        session = await self._resolve_session_safely(request)

        if route_class is RouteClass.AUTH_ONLY:
            if session is not None and not self.route_table.is_session_exempt(path):
                response = self.redirect(request, self.after_login_target(request))
                return self._finalize(request, response, session)
            response = await call_next(request)
            return self._finalize(request, response, session)

        if session is None:
            return self.redirect(
                request,
                self.route_table.login_path,
                {self.route_table.redirect_param: path},
            )

        decision = await self.authorize(request, session)
        if decision.redirect is not None:
            return self._finalize(request, decision.redirect, session)

        request.state.edge_user = session.user
        response = await call_next(request)
        for name, value in decision.headers.items():
            response.headers[name] = value
        return self._finalize(request, response, session)

    async def authorize(self, request: Request, session: EdgeSession) -> AccessDecision:
        return AccessDecision.allow()

    def after_login_target(self, request: Request) -> str:
        return self.route_table.after_login_path

    # ------------------------------------------------------------------
    # Session handling
    # ------------------------------------------------------------------

    async def resolve_session(self, request: Request) -> EdgeSession | None:
        access_token = request.cookies.get(self.session_cookie_name)
        refresh_token = request.cookies.get(self.refresh_cookie_name)

        if access_token:
            try:
                user = await self.identity_provider.get_user(access_token)
                return EdgeSession(user=user, access_token=access_token)
            except InvalidCredentialError:
                logger.debug("Access token rejected path=%s", request.url.path)

        if not refresh_token:
            return None

        try:
            refreshed = await self.identity_provider.refresh_session(refresh_token)
        except InvalidCredentialError:
            logger.info("Refresh token rejected path=%s", request.url.path)
            return None
        return EdgeSession(
            user=refreshed.user,
            access_token=refreshed.access_token,
            refreshed=refreshed,
        )

    async def _resolve_session_safely(self, request: Request) -> EdgeSession | None:
        try:
            return await self.resolve_session(request)
        except IdentityServiceError as exc:
            # No session is assumed, so protected paths still redirect to login
            logger.error("Session lookup failed path=%s: %s", request.url.path, exc)
            return None

    async def sign_out(
        self, request: Request, session: EdgeSession, message: str
    ) -> Response:
        try:
            await self.identity_provider.sign_out(session.access_token)
        except IdentityProviderError as exc:
            logger.warning("Sign-out failed user_id=%s: %s", session.user.id, exc)
        session.refreshed = None
        response = self.redirect(
            request, self.route_table.login_path, {"error": message}
        )
        self.clear_session_cookies(response)
        return response

    def redirect(
        self,
        request: Request,
        target: str,
        params: Mapping[str, str] | None = None,
    ) -> RedirectResponse:
        target_path, _, target_query = target.partition("?")
        query = target_query
        if params:
            extra = urlencode(dict(params))
            query = f"{query}&{extra}" if query else extra
        url = request.url.replace(path=target_path, query=query)
        return RedirectResponse(str(url))

    def clear_session_cookies(self, response: Response) -> None:
        response.delete_cookie(self.session_cookie_name, path="/")
        response.delete_cookie(self.refresh_cookie_name, path="/")

    def _finalize(
        self, request: Request, response: Response, session: EdgeSession | None
    ) -> Response:
        if session is None or session.refreshed is None:
            return response
        secure = request.url.scheme == "https"
        response.set_cookie(
            self.session_cookie_name,
            session.refreshed.access_token,
            max_age=session.refreshed.expires_in,
            path="/",
            httponly=True,
            secure=secure,
            samesite="lax",
        )
        response.set_cookie(
            self.refresh_cookie_name,
            session.refreshed.refresh_token,
            max_age=REFRESH_COOKIE_MAX_AGE,
            path="/",
            httponly=True,
            secure=secure,
            samesite="lax",
        )
        return response
