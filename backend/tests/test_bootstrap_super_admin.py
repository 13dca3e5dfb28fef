import uuid
from contextlib import asynccontextmanager
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from scripts import bootstrap_super_admin as bootstrap

from fakes import FakeIdentityProvider


class FakeProfiles:
    by_email: dict[str, SimpleNamespace] = {}
    roles: dict[uuid.UUID, str] = {}

    def __init__(self, session) -> None:
        pass

    async def get_by_email(self, email):
        return FakeProfiles.by_email.get(email)

    async def set_role(self, profile_id, role, *, must_change_password=None):
        FakeProfiles.roles[profile_id] = role


@pytest.fixture
def environment(monkeypatch: pytest.MonkeyPatch):
    provider = FakeIdentityProvider()
    session = MagicMock()
    session.commit = AsyncMock()

    @asynccontextmanager
    async def session_factory():
        yield session

    FakeProfiles.by_email = {}
    FakeProfiles.roles = {}
    monkeypatch.setattr(bootstrap, "AsyncSessionLocal", session_factory)
    monkeypatch.setattr(bootstrap, "ProfileRepository", FakeProfiles)
    monkeypatch.setattr(bootstrap, "get_identity_provider", lambda: provider)
    return provider, session


@pytest.mark.anyio
async def test_promotes_existing_account(environment) -> None:
    provider, session = environment
    profile_id = uuid.uuid4()
    FakeProfiles.by_email["owner@example.com"] = SimpleNamespace(id=profile_id, role="buyer")

    assert await bootstrap.bootstrap_super_admin("owner@example.com") == 0

    assert provider.updated == [(str(profile_id), {"role": "super_admin"})]
    assert FakeProfiles.roles[profile_id] == "super_admin"
    session.commit.assert_awaited_once()


@pytest.mark.anyio
async def test_unknown_account_fails(environment) -> None:
    assert await bootstrap.bootstrap_super_admin("ghost@example.com") == 1


@pytest.mark.anyio
async def test_existing_super_admin_is_a_no_op(environment) -> None:
    provider, session = environment
    FakeProfiles.by_email["owner@example.com"] = SimpleNamespace(id=uuid.uuid4(), role="super_admin")

    assert await bootstrap.bootstrap_super_admin("owner@example.com") == 0
    assert provider.updated == []
    session.commit.assert_not_awaited()


@pytest.mark.anyio
async def test_provider_failure_leaves_profile_untouched(environment) -> None:
    provider, session = environment
    provider.unavailable = True
    FakeProfiles.by_email["owner@example.com"] = SimpleNamespace(id=uuid.uuid4(), role="admin")

    assert await bootstrap.bootstrap_super_admin("owner@example.com") == 1
    assert FakeProfiles.roles == {}
    session.commit.assert_not_awaited()
