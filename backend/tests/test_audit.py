import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from bazaar.services.audit.audit_service import (
    ADMIN_STAFF_CREATED,
    AdminAuditService,
    client_ip,
)


def make_request(headers: dict[str, str] | None = None, host: str | None = "10.0.0.5"):
    return SimpleNamespace(
        headers=headers or {},
        client=SimpleNamespace(host=host) if host else None,
    )


def test_client_ip_prefers_first_forwarded_address() -> None:
    request = make_request({"x-forwarded-for": "203.0.113.7, 10.0.0.1"})
    assert client_ip(request) == "203.0.113.7"


def test_client_ip_falls_back_to_peer() -> None:
    assert client_ip(make_request()) == "10.0.0.5"
    assert client_ip(make_request(host=None)) is None
    assert client_ip(None) is None


@pytest.mark.anyio
async def test_log_writes_entry_in_callers_transaction() -> None:
    session = MagicMock()
    service = AdminAuditService(session)
    service.audit_repo = MagicMock()
    service.audit_repo.create = AsyncMock()
    admin_id = uuid.uuid4()

    await service.log(
        ADMIN_STAFF_CREATED,
        str(admin_id),
        {"staffId": "s-1"},
        make_request({"x-forwarded-for": "198.51.100.2"}),
    )

    service.audit_repo.create.assert_awaited_once_with(
        admin_id=admin_id,
        action=ADMIN_STAFF_CREATED,
        details={"staffId": "s-1"},
        ip_address="198.51.100.2",
    )
    session.commit.assert_not_called()


@pytest.mark.anyio
async def test_unknown_action_is_refused() -> None:
    service = AdminAuditService(MagicMock())
    service.audit_repo = MagicMock()
    service.audit_repo.create = AsyncMock()

    with pytest.raises(ValueError, match="Unknown audit action"):
        await service.log("ROCKET_LAUNCHED", None)
    service.audit_repo.create.assert_not_awaited()
