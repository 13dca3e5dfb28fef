from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse
from types import SimpleNamespace

import pytest
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import PlainTextResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from bazaar.auth.identity_provider import IdentityServiceError, ProviderSession
from bazaar.edge import (
    PORTAL_MIDDLEWARE,
    AdminPortalMiddleware,
    EdgeProfile,
    StorefrontMiddleware,
    VendorPortalMiddleware,
    install_edge_auth,
)
from bazaar.edge import profiles as edge_profiles
from bazaar.edge.admin_portal import (
    ACCOUNT_DEACTIVATED_MESSAGE,
    ADMIN_REQUIRED_MESSAGE,
    SESSION_EXPIRED_MESSAGE,
    mfa_pending,
    session_expired,
)
from bazaar.edge.middleware import AUTH_ERROR_MESSAGE
from bazaar.edge.vendor_portal import VENDOR_ONLY_MESSAGE, VENDOR_SUSPENDED_MESSAGE

from fakes import FakeIdentityProvider, FakeProfileLookup, make_provider_user


ACCESS_COOKIE = "sb-access-token"
REFRESH_COOKIE = "sb-refresh-token"


async def page(request: Request) -> PlainTextResponse:
    return PlainTextResponse(f"page {request.url.path}")


def build_client(middleware_class, provider, lookup=None, cookies=None) -> TestClient:
    app = Starlette(routes=[Route("/{path:path}", page)])
    app.add_middleware(middleware_class, identity_provider=provider, profile_lookup=lookup)
    return TestClient(app, follow_redirects=False, cookies=cookies or {})


def location(response) -> tuple[str, dict[str, str]]:
    parsed = urlparse(response.headers["location"])
    return parsed.path, {key: values[0] for key, values in parse_qs(parsed.query).items()}


def cleared_cookies(response) -> set[str]:
    cleared = set()
    for header in response.headers.get_list("set-cookie"):
        name = header.split("=", 1)[0]
        if "max-age=0" in header.lower():
            cleared.add(name)
    return cleared


@pytest.fixture
def provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


# ---------------------------------------------------------------------------
# Storefront
# ---------------------------------------------------------------------------


def test_storefront_public_and_skipped_paths_pass(provider: FakeIdentityProvider) -> None:
    client = build_client(StorefrontMiddleware, provider)
    assert client.get("/products/42").status_code == 200
    assert client.get("/").status_code == 200
    assert client.get("/_next/static/app.js").status_code == 200
    assert client.get("/new-landing-page").status_code == 200


def test_storefront_protected_path_redirects_to_login(provider: FakeIdentityProvider) -> None:
    client = build_client(StorefrontMiddleware, provider)
    response = client.get("/checkout")
    assert response.status_code == 307
    assert location(response) == ("/login", {"redirectTo": "/checkout"})


def test_storefront_session_reaches_protected_page(provider: FakeIdentityProvider) -> None:
    provider.add_user("tok", make_provider_user("buyer"))
    client = build_client(StorefrontMiddleware, provider, cookies={ACCESS_COOKIE: "tok"})
    response = client.get("/orders")
    assert response.status_code == 200
    assert response.text == "page /orders"


def test_storefront_auth_route_with_session_redirects(provider: FakeIdentityProvider) -> None:
    provider.add_user("tok", make_provider_user("buyer"))
    client = build_client(StorefrontMiddleware, provider, cookies={ACCESS_COOKIE: "tok"})

    assert location(client.get("/login"))[0] == "/"
    assert location(client.get("/login", params={"redirectTo": "/wishlist"}))[0] == "/wishlist"
    assert location(client.get("/login", params={"redirectTo": "//evil.example"}))[0] == "/"
    # Password reset links arrive with a session and must stay reachable
    assert client.get("/reset-password").status_code == 200


def test_storefront_auth_route_without_session_renders(provider: FakeIdentityProvider) -> None:
    client = build_client(StorefrontMiddleware, provider)
    assert client.get("/login").status_code == 200


def test_expired_access_token_is_refreshed(provider: FakeIdentityProvider) -> None:
    user = make_provider_user("buyer")
    provider.refresh_sessions["refresh-1"] = ProviderSession(
        access_token="fresh-access", refresh_token="refresh-2", expires_in=3600, user=user
    )
    client = build_client(
        StorefrontMiddleware,
        provider,
        cookies={ACCESS_COOKIE: "stale", REFRESH_COOKIE: "refresh-1"},
    )

    response = client.get("/orders")

    assert response.status_code == 200
    set_cookies = response.headers.get_list("set-cookie")
    assert any(c.startswith(f"{ACCESS_COOKIE}=fresh-access") for c in set_cookies)
    assert any(c.startswith(f"{REFRESH_COOKIE}=refresh-2") for c in set_cookies)
    assert all("httponly" in c.lower() for c in set_cookies)


def test_rejected_refresh_token_means_no_session(provider: FakeIdentityProvider) -> None:
    client = build_client(
        StorefrontMiddleware,
        provider,
        cookies={ACCESS_COOKIE: "stale", REFRESH_COOKIE: "revoked"},
    )
    response = client.get("/orders")
    assert location(response) == ("/login", {"redirectTo": "/orders"})


def test_provider_outage_fails_closed(provider: FakeIdentityProvider) -> None:
    provider.add_user("tok", make_provider_user("buyer"))
    provider.unavailable = True
    client = build_client(StorefrontMiddleware, provider, cookies={ACCESS_COOKIE: "tok"})
    response = client.get("/orders")
    assert location(response)[0] == "/login"


# ---------------------------------------------------------------------------
# Vendor portal
# ---------------------------------------------------------------------------


@pytest.fixture
def vendor_setup(provider: FakeIdentityProvider):
    user = provider.add_user("tok", make_provider_user("vendor", user_id="vendor-user"))
    lookup = FakeProfileLookup()
    client = build_client(VendorPortalMiddleware, provider, lookup, cookies={ACCESS_COOKIE: "tok"})
    return user, lookup, client


def test_vendor_portal_requires_session_everywhere(provider: FakeIdentityProvider) -> None:
    client = build_client(VendorPortalMiddleware, provider, FakeProfileLookup())
    response = client.get("/reports/weekly")
    assert location(response) == ("/auth/login", {"redirect": "/reports/weekly"})


def test_vendor_portal_approved_vendor_passes(vendor_setup) -> None:
    user, lookup, client = vendor_setup
    lookup.profiles[user.id] = EdgeProfile(role="vendor", vendor_id="v1")
    lookup.vendor_statuses["v1"] = "approved"
    assert client.get("/dashboard").status_code == 200


def test_vendor_portal_rejects_non_vendor_roles(vendor_setup, provider: FakeIdentityProvider) -> None:
    user, lookup, client = vendor_setup
    lookup.profiles[user.id] = EdgeProfile(role="buyer")

    response = client.get("/dashboard")

    assert location(response) == ("/auth/login", {"error": VENDOR_ONLY_MESSAGE})
    assert provider.signed_out == ["tok"]
    assert {ACCESS_COOKIE, REFRESH_COOKIE} <= cleared_cookies(response)


def test_vendor_portal_missing_business_goes_to_registration(vendor_setup) -> None:
    user, lookup, client = vendor_setup
    lookup.profiles[user.id] = EdgeProfile(role="vendor", vendor_id=None)
    assert location(client.get("/products")) == ("/auth/register", {"step": "business"})


def test_vendor_portal_pending_vendor_waits_for_approval(vendor_setup) -> None:
    user, lookup, client = vendor_setup
    lookup.profiles[user.id] = EdgeProfile(role="vendor", vendor_id="v1")
    lookup.vendor_statuses["v1"] = "pending"
    assert location(client.get("/orders"))[0] == "/pending-approval"
    assert client.get("/pending-approval").status_code == 200


@pytest.mark.parametrize("status", ["rejected", "suspended"])
def test_vendor_portal_blocked_vendor_is_signed_out(vendor_setup, status: str) -> None:
    user, lookup, client = vendor_setup
    lookup.profiles[user.id] = EdgeProfile(role="vendor", vendor_id="v1")
    lookup.vendor_statuses["v1"] = status
    assert location(client.get("/payouts")) == ("/auth/login", {"error": VENDOR_SUSPENDED_MESSAGE})


def test_vendor_portal_lookup_failure_fails_closed(vendor_setup) -> None:
    _user, lookup, client = vendor_setup
    lookup.error = RuntimeError("db down")
    assert location(client.get("/dashboard")) == ("/auth/login", {"error": AUTH_ERROR_MESSAGE})


def test_vendor_portal_unlisted_path_needs_only_a_session(vendor_setup) -> None:
    _user, _lookup, client = vendor_setup
    assert client.get("/help-center").status_code == 200


def test_vendor_portal_session_on_login_goes_to_dashboard(vendor_setup) -> None:
    _user, _lookup, client = vendor_setup
    assert location(client.get("/auth/login"))[0] == "/dashboard"
    assert client.get("/auth/register").status_code == 200


# ---------------------------------------------------------------------------
# Admin portal
# ---------------------------------------------------------------------------


def admin_client(provider, lookup, *, role="admin", signed_in_minutes_ago=5):
    signed_in = datetime.now(timezone.utc) - timedelta(minutes=signed_in_minutes_ago)
    user = provider.add_user(
        "tok", make_provider_user(role, user_id="admin-user", last_sign_in_at=signed_in)
    )
    client = build_client(AdminPortalMiddleware, provider, lookup, cookies={ACCESS_COOKIE: "tok"})
    return user, client


def test_admin_portal_annotates_allowed_requests(provider: FakeIdentityProvider) -> None:
    lookup = FakeProfileLookup(profiles={"admin-user": EdgeProfile(role="manager")})
    _user, client = admin_client(provider, lookup)

    response = client.get("/dashboard")

    assert response.status_code == 200
    assert response.headers["x-admin-id"] == "admin-user"
    assert response.headers["x-admin-role"] == "manager"


def test_admin_portal_expires_old_sessions(provider: FakeIdentityProvider) -> None:
    lookup = FakeProfileLookup(profiles={"admin-user": EdgeProfile(role="admin")})
    _user, client = admin_client(provider, lookup, signed_in_minutes_ago=31)

    response = client.get("/dashboard")

    assert location(response) == ("/auth/login", {"error": SESSION_EXPIRED_MESSAGE})
    assert provider.signed_out == ["tok"]


def test_admin_portal_rejects_marketplace_roles(provider: FakeIdentityProvider) -> None:
    lookup = FakeProfileLookup(profiles={"admin-user": EdgeProfile(role="vendor")})
    _user, client = admin_client(provider, lookup)
    assert location(client.get("/dashboard")) == ("/auth/login", {"error": ADMIN_REQUIRED_MESSAGE})


def test_admin_portal_missing_profile_is_denied(provider: FakeIdentityProvider) -> None:
    _user, client = admin_client(provider, FakeProfileLookup())
    assert location(client.get("/dashboard")) == ("/auth/login", {"error": ADMIN_REQUIRED_MESSAGE})


def test_admin_portal_signs_out_deactivated_staff(provider: FakeIdentityProvider) -> None:
    lookup = FakeProfileLookup(
        profiles={"admin-user": EdgeProfile(role="admin", is_active=False)}
    )
    _user, client = admin_client(provider, lookup)

    response = client.get("/dashboard")

    assert location(response) == ("/auth/login", {"error": ACCOUNT_DEACTIVATED_MESSAGE})
    assert "x-admin-id" not in response.headers
    assert provider.signed_out == ["tok"]
    assert ACCESS_COOKIE in cleared_cookies(response)


class _SessionContext:
    async def __aenter__(self):
        return object()

    async def __aexit__(self, *exc_info):
        return False


@pytest.mark.anyio
@pytest.mark.parametrize("staff_active, expected", [(None, True), (True, True), (False, False)])
async def test_sql_profile_lookup_reads_staff_active_flag(
    monkeypatch: pytest.MonkeyPatch, staff_active, expected: bool
) -> None:
    user_id = "6f1c1f86-8d0e-4f4e-9d7a-3f0a4c2b1e11"
    profile = SimpleNamespace(
        role="admin",
        must_change_password=False,
        mfa_enabled=False,
        mfa_verified_at=None,
        vendor_id=None,
    )

    class StubProfileRepository:
        def __init__(self, session) -> None:
            pass

        async def get_with_staff_status(self, profile_id):
            assert str(profile_id) == user_id
            return profile, staff_active

    monkeypatch.setattr(edge_profiles, "ProfileRepository", StubProfileRepository)
    lookup = edge_profiles.SqlProfileLookup(lambda: _SessionContext())

    result = await lookup.get_profile(user_id)

    assert result is not None
    assert result.role == "admin"
    assert result.is_active is expected


def test_admin_portal_forces_password_change(provider: FakeIdentityProvider) -> None:
    lookup = FakeProfileLookup(
        profiles={"admin-user": EdgeProfile(role="staff", must_change_password=True)}
    )
    _user, client = admin_client(provider, lookup)
    assert location(client.get("/dashboard")) == ("/auth/change-password", {})
    assert client.get("/auth/change-password").status_code == 200


def test_admin_portal_requires_mfa_for_this_session(provider: FakeIdentityProvider) -> None:
    verified_before_sign_in = datetime.now(timezone.utc) - timedelta(hours=2)
    lookup = FakeProfileLookup(
        profiles={
            "admin-user": EdgeProfile(
                role="admin", mfa_enabled=True, mfa_verified_at=verified_before_sign_in
            )
        }
    )
    _user, client = admin_client(provider, lookup)

    assert location(client.get("/users")) == ("/auth/mfa/verify", {"redirect": "/users"})
    assert client.get("/auth/mfa/verify").status_code == 200
    assert client.get("/auth/mfa/setup").status_code == 200

    lookup.profiles["admin-user"] = EdgeProfile(
        role="admin", mfa_enabled=True, mfa_verified_at=datetime.now(timezone.utc)
    )
    assert client.get("/users").status_code == 200


def test_admin_portal_lookup_failure_fails_closed(provider: FakeIdentityProvider) -> None:
    lookup = FakeProfileLookup(error=RuntimeError("db down"))
    _user, client = admin_client(provider, lookup)
    assert location(client.get("/dashboard")) == ("/auth/login", {"error": AUTH_ERROR_MESSAGE})


def test_admin_portal_sign_out_failure_still_redirects(provider: FakeIdentityProvider) -> None:
    provider.sign_out_error = IdentityServiceError("down")
    lookup = FakeProfileLookup(profiles={"admin-user": EdgeProfile(role="buyer")})
    _user, client = admin_client(provider, lookup)
    response = client.get("/dashboard")
    assert location(response) == ("/auth/login", {"error": ADMIN_REQUIRED_MESSAGE})
    assert ACCESS_COOKIE in cleared_cookies(response)


def test_session_expiry_rules() -> None:
    now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    assert not session_expired(now - timedelta(minutes=30), now)
    assert session_expired(now - timedelta(minutes=30, seconds=1), now)
    assert session_expired(None, now)
    # Naive timestamps are read as UTC
    assert not session_expired(datetime(2024, 6, 1, 11, 45), now)


def test_mfa_pending_rules() -> None:
    started = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    assert not mfa_pending(False, None, started)
    assert mfa_pending(True, None, started)
    assert mfa_pending(True, started - timedelta(seconds=1), started)
    assert not mfa_pending(True, started, started)


def test_install_edge_auth_registers_portal_middleware(provider: FakeIdentityProvider) -> None:
    app = Starlette(routes=[Route("/{path:path}", page)])
    install_edge_auth(app, "admin", identity_provider=provider, profile_lookup=FakeProfileLookup())
    assert app.user_middleware[0].cls is PORTAL_MIDDLEWARE["admin"]

    with pytest.raises(ValueError, match="Unknown portal"):
        install_edge_auth(app, "kiosk", identity_provider=provider)
