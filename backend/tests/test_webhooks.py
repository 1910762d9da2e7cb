"""
Tests for the Stripe webhook receiver.
"""
import hashlib
import hmac
import json
import time

from conftest import WEBHOOK_SECRET, FakeStripeSessions, stripe_session
from fastapi.testclient import TestClient


def signed(payload: dict, secret: str = WEBHOOK_SECRET) -> tuple[bytes, dict[str, str]]:
    """Body and headers signed the way Stripe signs deliveries."""
    body = json.dumps(payload).encode()
    timestamp = int(time.time())
    signature = hmac.new(
        secret.encode(),
        f"{timestamp}.".encode() + body,
        hashlib.sha256,
    ).hexdigest()
    return body, {
        "Stripe-Signature": f"t={timestamp},v1={signature}",
        "Content-Type": "application/json",
    }


def event(event_type: str, obj: dict) -> dict:
    return {
        "id": "evt_test_1",
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    }


def test_completed_session_creates_order(client: TestClient, stripe_sessions: FakeStripeSessions):
    stripe_sessions.add(stripe_session("cs_test_hook"))
    body, headers = signed(event("checkout.session.completed", {"id": "cs_test_hook", "object": "checkout.session"}))

    response = client.post("/api/stripe/webhooks", content=body, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"received": True, "eventType": "checkout.session.completed", "outcome": "created"}
    assert client.get("/invoice-status", params={"session_id": "cs_test_hook"}).json()["ready"] is True


def test_redelivery_and_redirect_share_one_order(client: TestClient, stripe_sessions: FakeStripeSessions):
    stripe_sessions.add(stripe_session("cs_test_both"))
    body, headers = signed(event("checkout.session.completed", {"id": "cs_test_both", "object": "checkout.session"}))

    client.post("/api/stripe/webhooks", content=body, headers=headers)
    redelivered = client.post("/api/stripe/webhooks", content=body, headers=headers)
    redirect = client.get("/checkout/success", params={"session_id": "cs_test_both"})

    assert redelivered.json()["outcome"] == "already_processed"
    assert redirect.json()["status"] == "already_processed"
    assert client.get("/api/users/user-1/orders").json()["total"] == 1


def test_other_events_are_acknowledged(client: TestClient, stripe_sessions: FakeStripeSessions):
    body, headers = signed(event("payment_intent.created", {"id": "pi_123", "object": "payment_intent"}))

    response = client.post("/api/stripe/webhooks", content=body, headers=headers)

    assert response.status_code == 200
    assert response.json()["outcome"] is None
    assert stripe_sessions.calls == []


def test_bad_signature(client: TestClient):
    body, headers = signed(
        event("checkout.session.completed", {"id": "cs_test_x", "object": "checkout.session"}),
        secret="whsec_wrong",
    )

    response = client.post("/api/stripe/webhooks", content=body, headers=headers)

    assert response.status_code == 400


def test_missing_signature(client: TestClient):
    response = client.post("/api/stripe/webhooks", content=b"{}", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Missing Stripe-Signature header"
