"""Test module for the /notify endpoints."""
import pytest
from firebase_admin import exceptions as firebase_exceptions

from pushdelivery.core.config import settings
from pushdelivery.main import app
from pushdelivery.modules.notifications.dependencies import get_push_gateway
from tests.fakes import unregistered


def _notify(client, **overrides):
    payload = {"receiverId": "u1", "title": "New message", "body": "hello"}
    payload.update(overrides)
    return client.post("/notify", json=payload)


def test_notify_delivers_and_prunes(client, register, gateway, store):
    """Test case for a mixed delivery over HTTP."""
    register("u1", "A", "A", "B")
    gateway.failures["B"] = unregistered("B")

    res = _notify(client, url="/chat/7", type="text")

    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["status"] == "done"
    assert body["sentCount"] == 1
    assert body["failureCount"] == 1
    assert body["prunedCount"] == 1
    assert body["warnings"] == []
    assert gateway.call_count == 1
    assert store.tokens_for("u1") == frozenset({"A"})


def test_notify_unknown_recipient_404(client, gateway):
    res = _notify(client, receiverId="u2")

    assert res.status_code == 404
    body = res.json()
    assert body["success"] is False
    assert body["code"] == "recipient_not_found"
    assert body["details"]["requestedId"] == "u2"
    assert body["path"] == "/notify"
    assert gateway.call_count == 0


def test_notify_no_devices_200(client, store, gateway):
    store.ensure_recipient("u3")

    res = _notify(client, receiverId="u3")

    assert res.status_code == 200
    assert res.json()["sentCount"] == 0
    assert res.json()["failureCount"] == 0
    assert res.json()["status"] == "no_devices"
    assert gateway.call_count == 0


@pytest.mark.parametrize(
    "overrides",
    [{"title": ""}, {"body": "   "}, {"receiverId": ""}],
)
def test_notify_blank_fields_400(client, register, gateway, overrides):
    """Test case for blank content rejected without a gateway call."""
    register("u1", "A")

    res = _notify(client, **overrides)

    assert res.status_code == 400
    assert res.json()["success"] is False
    assert gateway.call_count == 0


def test_notify_missing_fields_400(client, gateway):
    res = client.post("/notify", json={"receiverId": "u1"})

    assert res.status_code == 400
    body = res.json()
    assert body["code"] == "missing_required_fields"
    fields = {error["field"] for error in body["details"]["errors"]}
    assert {"title", "body"} <= fields


@pytest.mark.parametrize("method", ["get", "put", "delete"])
def test_notify_rejects_other_methods(client, method):
    res = getattr(client, method)("/notify")

    assert res.status_code == 405
    assert res.json()["code"] == "method_not_allowed"


def test_notify_gateway_outage_500(client, register, gateway):
    register("u1", "A")
    gateway.error = firebase_exceptions.UnavailableError("FCM is down")

    res = _notify(client)

    assert res.status_code == 500
    body = res.json()
    assert body["code"] == "dispatch_unavailable"
    assert body["error"]
    assert body["details"]["service"] == "fcm"


def test_notify_without_gateway_500(client, register):
    register("u1", "A")
    app.dependency_overrides[get_push_gateway] = lambda: None

    res = _notify(client)

    assert res.status_code == 500
    assert res.json()["code"] == "dispatch_unavailable"


def test_notify_suppressed_by_preference(client, register, store, gateway):
    register("u1", "A")
    store.set_preferences("u1", follows=False)

    res = _notify(client, type="follow")

    assert res.status_code == 200
    assert res.json()["status"] == "suppressed"
    assert gateway.call_count == 0


def test_notify_cors_preflight(client):
    """Test case for permissive CORS on the notify endpoint."""
    res = client.options(
        "/notify",
        headers={
            "Origin": "https://events.example.com",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Content-Type",
        },
    )

    assert res.status_code == 200
    assert res.headers["access-control-allow-origin"] in (
        "*",
        "https://events.example.com",
    )
    assert "POST" in res.headers["access-control-allow-methods"]


def test_notify_echoes_request_id(client, store):
    store.ensure_recipient("u3")

    res = client.post(
        "/notify",
        json={"receiverId": "u3", "title": "t", "body": "b"},
        headers={"X-Request-ID": "evt-123"},
    )

    assert res.headers["X-Request-ID"] == "evt-123"


def test_notify_malformed_json_400(client, gateway):
    res = client.post(
        "/notify", content=b"{not json", headers={"Content-Type": "application/json"}
    )

    assert res.status_code == 400
    assert res.json()["success"] is False
    assert gateway.call_count == 0


def test_notify_plain_http_url_200(client, register, gateway, monkeypatch):
    """Test case for an http:// deep link never turning into a server error."""
    monkeypatch.setattr(settings, "PUBLIC_BASE_URL", "https://chat.example.com")
    register("u1", "A")

    res = _notify(client, url="http://example.com/post/1", entityId="1")

    assert res.status_code == 200
    assert res.json()["sentCount"] == 1
    message = gateway.messages[0]
    assert message.webpush.fcm_options is None
    assert message.data["entityId"] == "1"


def test_notify_batch_fans_out(client, register, store, gateway):
    """Test case for one payload sent to several receivers over HTTP."""
    register("u1", "A", "B")
    register("u2", "C")
    gateway.failures["B"] = unregistered("B")

    res = client.post(
        "/notify/batch",
        json={
            "receiverIds": ["u1", "u2", "ghost"],
            "title": "Group",
            "body": "new message",
            "type": "text",
        },
    )

    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["recipientCount"] == 3
    assert body["sentCount"] == 2
    assert body["failureCount"] == 1
    assert body["prunedCount"] == 1
    assert body["errors"] == {"ghost": "recipient_not_found"}
    assert gateway.call_count == 2
    assert store.tokens_for("u1") == frozenset({"A"})


def test_notify_batch_requires_receivers(client, gateway):
    res = client.post(
        "/notify/batch", json={"receiverIds": [], "title": "t", "body": "b"}
    )

    assert res.status_code == 400
    assert res.json()["success"] is False
    assert gateway.call_count == 0
