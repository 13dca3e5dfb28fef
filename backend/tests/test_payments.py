import json
import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from bazaar.dependencies import get_db
from bazaar.main import app
from bazaar.routers import payments as payment_routes
from bazaar.services.payments import (
    PaymentWebhookService,
    compute_signature,
    verify_webhook_signature,
)


SECRET = "paystack-test-secret"


class FakeOrderRepository:
    def __init__(self, *orders: SimpleNamespace) -> None:
        self.orders = {order.payment_reference: order for order in orders}
        self.updated: list[SimpleNamespace] = []

    async def get_by_payment_reference(self, reference):
        return self.orders.get(reference)

    async def update(self, order):
        self.updated.append(order)
        return order


def build_service(*orders: SimpleNamespace) -> PaymentWebhookService:
    session = MagicMock()
    session.commit = AsyncMock()
    service = PaymentWebhookService(session)
    service.order_repo = FakeOrderRepository(*orders)
    return service


def make_order(reference: str = "ref-1") -> SimpleNamespace:
    return SimpleNamespace(id=uuid.uuid4(), payment_reference=reference, payment_status="pending")


def test_signature_round_trip() -> None:
    body = b'{"event":"charge.success"}'
    signature = compute_signature(SECRET, body)
    assert len(signature) == 128
    assert verify_webhook_signature(SECRET, body, signature)
    assert verify_webhook_signature(SECRET, body, signature.upper())
    assert not verify_webhook_signature(SECRET, body + b" ", signature)
    assert not verify_webhook_signature("other-secret", body, signature)


@pytest.mark.parametrize(
    ("secret", "body", "signature"),
    [
        (None, b"{}", "abc"),
        ("", b"{}", "abc"),
        (SECRET, b"{}", None),
        (SECRET, b"", compute_signature(SECRET, b"")),
    ],
)
def test_signature_fails_closed(secret, body: bytes, signature) -> None:
    assert verify_webhook_signature(secret, body, signature) is False


@pytest.mark.anyio
@pytest.mark.parametrize(("event", "expected"), [("charge.success", "paid"), ("charge.failed", "failed")])
async def test_charge_events_update_payment_status(event: str, expected: str) -> None:
    order = make_order()
    service = build_service(order)

    await service.process_event({"event": event, "data": {"reference": "ref-1"}})

    assert order.payment_status == expected
    service.session.commit.assert_awaited_once()


@pytest.mark.anyio
async def test_transfer_events_are_only_logged(caplog: pytest.LogCaptureFixture) -> None:
    order = make_order()
    service = build_service(order)

    with caplog.at_level("INFO", logger="bazaar.payments"):
        await service.process_event({"event": "transfer.success", "data": {"reference": "ref-1"}})

    assert order.payment_status == "pending"
    assert "transfer.success" in caplog.text
    service.session.commit.assert_not_awaited()


@pytest.mark.anyio
async def test_unknown_reference_is_ignored() -> None:
    service = build_service()
    await service.process_event({"event": "charge.success", "data": {"reference": "missing"}})
    service.session.commit.assert_not_awaited()


@pytest.mark.anyio
async def test_charge_without_reference_is_an_error() -> None:
    with pytest.raises(ValueError, match="without reference"):
        await build_service().process_event({"event": "charge.success", "data": {}})


# ---------------------------------------------------------------------------
# Route
# ---------------------------------------------------------------------------


class StubWebhookService:
    events: list[dict] = []
    error: Exception | None = None

    def __init__(self, session) -> None:
        pass

    async def process_event(self, event):
        if StubWebhookService.error is not None:
            raise StubWebhookService.error
        StubWebhookService.events.append(event)


@pytest.fixture
def webhook_client(monkeypatch: pytest.MonkeyPatch):
    session = MagicMock()
    session.rollback = AsyncMock()
    StubWebhookService.events = []
    StubWebhookService.error = None
    monkeypatch.setattr(payment_routes, "PaymentWebhookService", StubWebhookService)
    monkeypatch.setattr(
        payment_routes, "settings", SimpleNamespace(paystack_webhook_secret=SECRET)
    )
    app.dependency_overrides[get_db] = lambda: session
    try:
        yield TestClient(app), session
    finally:
        app.dependency_overrides.clear()


def _post(client: TestClient, body: bytes, signature: str | None):
    headers = {"content-type": "application/json"}
    if signature is not None:
        headers["x-paystack-signature"] = signature
    return client.post("/v1/payments/webhook", content=body, headers=headers)


def test_webhook_accepts_signed_delivery(webhook_client) -> None:
    client, _session = webhook_client
    body = json.dumps({"event": "charge.success", "data": {"reference": "ref-1"}}).encode()

    response = _post(client, body, compute_signature(SECRET, body))

    assert response.status_code == 200
    assert response.json() == {"received": True}
    assert StubWebhookService.events[0]["event"] == "charge.success"


@pytest.mark.parametrize("signature", [None, "deadbeef"])
def test_webhook_rejects_bad_signature(webhook_client, signature) -> None:
    client, _session = webhook_client

    response = _post(client, b'{"event":"charge.success"}', signature)

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_SIGNATURE"
    assert StubWebhookService.events == []


def test_webhook_without_secret_rejects_everything(webhook_client, monkeypatch) -> None:
    client, _session = webhook_client
    monkeypatch.setattr(payment_routes, "settings", SimpleNamespace(paystack_webhook_secret=None))
    body = b'{"event":"charge.success"}'

    response = _post(client, body, compute_signature(SECRET, body))

    assert response.status_code == 401


def test_webhook_processing_error_is_acknowledged(webhook_client) -> None:
    client, session = webhook_client
    StubWebhookService.error = RuntimeError("db down")
    body = b'{"event":"charge.success","data":{"reference":"ref-1"}}'

    response = _post(client, body, compute_signature(SECRET, body))

    assert response.status_code == 200
    assert response.json() == {"received": True, "error": "Processing error"}
    session.rollback.assert_awaited_once()


def test_webhook_non_object_payload_is_acknowledged(webhook_client) -> None:
    client, _session = webhook_client
    body = b"[1, 2, 3]"

    response = _post(client, body, compute_signature(SECRET, body))

    assert response.json() == {"received": True, "error": "Processing error"}
