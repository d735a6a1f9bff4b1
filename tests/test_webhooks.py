"""
Tests for outbound webhooks: signed delivery, retries, logs and admin routes
"""
import asyncio
import hashlib
import hmac
import json
import pytest
import httpx
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient
from app.main import app
from app.database import SessionLocal, Base, engine
from app.models.user import User
from app.models.webhook import Webhook, WebhookLog
from app.services import webhook_service
from app.utils.jwt_utils import create_session_token

client = TestClient(app)


@pytest.fixture(scope="function")
def db_session():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def admin_headers(db_session):
    admin = User(email="admin@example.com", name="Admin", credits=0, role="admin")
    db_session.add(admin)
    db_session.commit()
    return {"Authorization": f"Bearer {create_session_token(admin.email)}"}


@pytest.fixture
def webhook(db_session):
    return webhook_service.create_webhook(
        db_session,
        name="Orders",
        url="https://hooks.example.com/pixelift",
        events="image.processed, video.completed",
        secret="s3cret",
        headers={"X-Team": "growth"},
        retry_attempts=3,
    )


def recording_client(statuses):
    requests = []
    responses = iter(statuses)

    def handler(request):
        requests.append(request)
        return httpx.Response(next(responses))

    return httpx.AsyncClient(transport=httpx.MockTransport(handler)), requests


def test_normalize_events():
    assert webhook_service.normalize_events("a, b,,c ") == ["a", "b", "c"]
    assert webhook_service.normalize_events(["a", " ", "b"]) == ["a", "b"]
    assert webhook_service.normalize_events(None) == []


def test_delivery_is_signed(db_session, webhook):
    http, requests = recording_client([200])

    delivered = asyncio.run(webhook_service.trigger_webhook(
        db_session, webhook, "image.processed", {"imageId": "abc"}, http, retry_delay=0
    ))

    assert delivered is True
    request = requests[0]
    body = json.loads(request.content)
    assert body["event"] == "image.processed"
    assert body["payload"] == {"imageId": "abc"}
    assert "timestamp" in body
    expected = hmac.new(b"s3cret", request.content, hashlib.sha256).hexdigest()
    assert request.headers["X-Pixelift-Signature"] == expected
    assert request.headers["X-Team"] == "growth"

    log = db_session.query(WebhookLog).one()
    assert log.status == "success"
    assert log.response_code == 200
    assert log.attempt == 1


def test_unsigned_without_secret(db_session):
    hook = webhook_service.create_webhook(db_session, "Plain", "https://hooks.example.com/x", ["image.processed"])
    http, requests = recording_client([204])

    asyncio.run(webhook_service.trigger_webhook(db_session, hook, "image.processed", {}, http, retry_delay=0))

    assert "X-Pixelift-Signature" not in requests[0].headers


def test_failed_attempts_are_retried_and_logged(db_session, webhook):
    http, requests = recording_client([500, 502, 200])

    delivered = asyncio.run(webhook_service.trigger_webhook(
        db_session, webhook, "image.processed", {}, http, retry_delay=0
    ))

    assert delivered is True
    assert len(requests) == 3
    logs = db_session.query(WebhookLog).order_by(WebhookLog.attempt).all()
    assert [(log.attempt, log.status) for log in logs] == [(1, "failed"), (2, "failed"), (3, "success")]
    assert logs[0].error == "HTTP 500"


def test_gives_up_after_retry_attempts(db_session, webhook):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    delivered = asyncio.run(webhook_service.trigger_webhook(
        db_session, webhook, "image.processed", {}, http, retry_delay=0
    ))

    assert delivered is False
    assert db_session.query(WebhookLog).filter(WebhookLog.status == "failed").count() == 3


def test_dispatch_only_to_enabled_subscribers(db_session, webhook):
    webhook_service.create_webhook(db_session, "Videos", "https://hooks.example.com/v", ["video.completed"])
    webhook_service.create_webhook(
        db_session, "Disabled", "https://hooks.example.com/d", ["image.processed"], enabled=False
    )
    http, requests = recording_client([200, 200, 200])

    delivered = asyncio.run(webhook_service.dispatch_event(
        "image.processed", {"imageId": "abc"}, db=db_session, client=http, retry_delay=0
    ))

    assert delivered == 1
    assert [str(r.url) for r in requests] == ["https://hooks.example.com/pixelift"]


def test_dispatch_never_raises(db_session):
    with patch.object(webhook_service, "SessionLocal") as mock_session:
        mock_session.return_value.query.side_effect = RuntimeError("db gone")
        delivered = asyncio.run(webhook_service.dispatch_event("image.processed", {}))

    assert delivered == 0


class TestAdminRoutes:

    def test_requires_admin(self, db_session):
        user = User(email="user@example.com", credits=0)
        db_session.add(user)
        db_session.commit()

        response = client.get(
            "/api/admin/webhooks",
            headers={"Authorization": f"Bearer {create_session_token(user.email)}"},
        )

        assert response.status_code == 403
        assert response.json() == {"error": "Admin access required"}

    def test_create_and_list(self, db_session, admin_headers):
        created = client.post("/api/admin/webhooks", json={
            "name": "Slack relay",
            "url": "https://hooks.example.com/slack",
            "events": ["image.processed"],
            "secret": "abc",
            "retryAttempts": 5,
        }, headers=admin_headers)
        listed = client.get("/api/admin/webhooks", headers=admin_headers)

        assert created.status_code == 200
        assert created.json()["success"] is True
        assert created.json()["webhook"]["retry_attempts"] == 5
        assert "secret" not in created.json()["webhook"]
        assert [w["name"] for w in listed.json()] == ["Slack relay"]

    def test_create_missing_fields(self, db_session, admin_headers):
        response = client.post("/api/admin/webhooks", json={"name": "No url"}, headers=admin_headers)

        assert response.status_code == 400
        assert response.json() == {"error": "Missing required fields"}

    def test_update(self, db_session, admin_headers, webhook):
        response = client.patch("/api/admin/webhooks", json={
            "id": str(webhook.id),
            "updates": {"enabled": False, "retryAttempts": 1, "events": "video.completed", "id": "ignored"},
        }, headers=admin_headers)

        assert response.status_code == 200
        updated = response.json()["webhook"]
        assert updated["enabled"] is False
        assert updated["retry_attempts"] == 1
        assert updated["events"] == ["video.completed"]
        assert updated["id"] == str(webhook.id)

    def test_update_unknown(self, db_session, admin_headers):
        response = client.patch("/api/admin/webhooks", json={
            "id": "00000000-0000-0000-0000-000000000001", "updates": {"enabled": False},
        }, headers=admin_headers)

        assert response.status_code == 404

    def test_delete(self, db_session, admin_headers, webhook):
        response = client.delete(f"/api/admin/webhooks?id={webhook.id}", headers=admin_headers)

        assert response.json() == {"success": True}
        db_session.expire_all()
        assert db_session.query(Webhook).count() == 0

    def test_test_delivery(self, db_session, admin_headers, webhook):
        with patch("app.services.webhook_service.trigger_webhook", new_callable=AsyncMock) as mock_trigger:
            mock_trigger.return_value = True
            response = client.post("/api/admin/webhooks", json={
                "action": "test", "webhookId": str(webhook.id),
            }, headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["delivered"] is True
        args = mock_trigger.call_args.args
        assert args[2] == "test.event"
        assert args[3]["test"] is True

    def test_logs(self, db_session, admin_headers, webhook):
        http, _ = recording_client([404, 404, 404])
        asyncio.run(webhook_service.trigger_webhook(db_session, webhook, "image.processed", {}, http, retry_delay=0))

        response = client.get(f"/api/admin/webhooks/{webhook.id}/logs", headers=admin_headers)

        assert response.status_code == 200
        assert len(response.json()) == 3
        assert {log["response_code"] for log in response.json()} == {404}
