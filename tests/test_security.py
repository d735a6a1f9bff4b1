"""
Security tests: session tokens, API keys, authentication and rate limits
"""
import asyncio
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from fastapi.testclient import TestClient
from app.main import app
from app.database import SessionLocal, Base, engine
from app.errors import RateLimitError
from app.middleware.rate_limit import MemoryBackend, RateLimiter, get_client_identifier
from app.models.api_key import ApiKey
from app.models.user import User
from app.services import api_keys
from app.utils.jwt_utils import create_session_token, verify_session_token

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
def user(db_session):
    user = User(email="owner@example.com", name="Owner", credits=150)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class TestSessionTokens:

    def test_create_and_verify(self):
        token = create_session_token("someone@example.com")
        payload = verify_session_token(token)

        assert payload["email"] == "someone@example.com"
        assert payload["type"] == "session"

    def test_expired_token_rejected(self):
        token = create_session_token("someone@example.com", expires_min=-1)

        with pytest.raises(ValueError, match="expired"):
            verify_session_token(token)

    def test_wrong_signature_rejected(self):
        token = create_session_token("someone@example.com")

        with patch("app.utils.jwt_utils.settings") as mock_settings:
            mock_settings.SECRET_KEY = "another-secret"
            mock_settings.JWT_ALGORITHM = "HS256"
            with pytest.raises(ValueError, match="Invalid signature"):
                verify_session_token(token)

    def test_garbage_rejected(self):
        with pytest.raises(ValueError):
            verify_session_token("not.a.token")


class TestApiKeyService:

    def test_generated_key_format(self):
        live = api_keys.generate_api_key("live")
        test = api_keys.generate_api_key("test")

        assert live.startswith("pk_live_")
        assert test.startswith("pk_test_")
        assert api_keys.looks_like_api_key(live)
        assert not api_keys.looks_like_api_key("eyJhbGciOi")

    def test_prefix_hides_the_secret(self):
        key = "pk_live_abcdefghijklmnopqrstuvwxyz012345"
        assert api_keys.get_key_prefix(key) == "pk_live_abcd...2345"

    @pytest.mark.parametrize("credits,expected", [
        (0, 10), (99, 10), (100, 60), (500, 300), (2000, 500), (30000, 1000),
    ])
    def test_rate_limit_tiers(self, credits, expected):
        assert api_keys.get_rate_limit_for_credits(credits) == expected

    def test_only_hash_is_stored(self, db_session, user):
        record, plain = api_keys.create_api_key(db_session, user, "ci")

        assert record.key_hash == api_keys.hash_api_key(plain)
        assert plain not in (record.key_hash, record.key_prefix)
        assert record.rate_limit == 60

    def test_validate_updates_usage(self, db_session, user):
        record, plain = api_keys.create_api_key(db_session, user, "ci")

        validated = api_keys.validate_api_key(db_session, plain)

        assert validated.id == record.id
        assert validated.usage_count == 1
        assert validated.last_used_at is not None

    def test_revoked_key_is_invalid(self, db_session, user):
        record, plain = api_keys.create_api_key(db_session, user, "ci")
        assert api_keys.revoke_api_key(db_session, user.id, record.id) is True

        assert api_keys.validate_api_key(db_session, plain) is None

    def test_expired_key_is_invalid(self, db_session, user):
        record, plain = api_keys.create_api_key(db_session, user, "ci", expires_in_days=1)
        record.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        db_session.commit()

        assert api_keys.validate_api_key(db_session, plain) is None


class TestAuthentication:

    def test_session_token_authenticates(self, db_session, user):
        response = client.get("/api/user", headers=bearer(create_session_token(user.email)))

        assert response.status_code == 200
        assert response.json()["email"] == "owner@example.com"
        assert response.json()["credits"] == 150

    def test_bare_token_accepted(self, db_session, user):
        response = client.get("/api/user", headers={"Authorization": create_session_token(user.email)})

        assert response.status_code == 200

    def test_session_cookie_authenticates(self, db_session, user):
        cookie_client = TestClient(app, cookies={"pixelift_session": create_session_token(user.email)})
        response = cookie_client.get("/api/user")

        assert response.status_code == 200

    def test_api_key_authenticates(self, db_session, user):
        _, plain = api_keys.create_api_key(db_session, user, "server")

        response = client.get("/api/user/credits", headers=bearer(plain))

        assert response.status_code == 200
        assert response.json() == {"credits": 150, "totalUsage": 0}

    def test_unknown_api_key_rejected(self, db_session, user):
        response = client.get("/api/user", headers=bearer("pk_live_doesnotexist"))

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid API key"}

    def test_missing_credentials(self, db_session):
        response = client.get("/api/user")

        assert response.status_code == 401
        assert response.json() == {"error": "Authentication required"}

    def test_dev_token_only_in_dev_mode(self, db_session):
        dev = User(email="dev@example.com", credits=5)
        db_session.add(dev)
        db_session.commit()

        assert client.get("/api/user", headers=bearer("test")).status_code == 401

        with patch("app.dependencies.auth.settings") as mock_settings:
            mock_settings.DEV_MODE = True
            mock_settings.SESSION_COOKIE_NAME = "pixelift_session"
            response = client.get("/api/user", headers=bearer("test"))

        assert response.status_code == 200
        assert response.json()["email"] == "dev@example.com"


class TestApiKeyRoutes:

    def test_create_returns_full_key_once(self, db_session, user):
        headers = bearer(create_session_token(user.email))

        created = client.post("/api/v1/keys", json={"name": "ci", "environment": "test"}, headers=headers)
        listed = client.get("/api/v1/keys", headers=headers)

        assert created.status_code == 200
        assert created.json()["key"].startswith("pk_test_")
        assert listed.status_code == 200
        assert len(listed.json()) == 1
        assert "key" not in listed.json()[0]

    def test_active_key_cap(self, db_session, user):
        for i in range(10):
            api_keys.create_api_key(db_session, user, f"key-{i}")

        response = client.post(
            "/api/v1/keys", json={"name": "one-too-many"},
            headers=bearer(create_session_token(user.email)),
        )

        assert response.status_code == 400
        assert "Maximum of 10" in response.json()["error"]

    def test_revoke(self, db_session, user):
        record, _ = api_keys.create_api_key(db_session, user, "ci")
        headers = bearer(create_session_token(user.email))

        response = client.delete(f"/api/v1/keys/{record.id}", headers=headers)
        again = client.delete(f"/api/v1/keys/{record.id}", headers=headers)

        assert response.status_code == 200
        db_session.expire_all()
        assert db_session.query(ApiKey).filter(ApiKey.id == record.id).first().is_active is False
        # revoking is idempotent for the owner
        assert again.status_code == 200

    def test_cannot_revoke_another_users_key(self, db_session, user):
        other = User(email="other@example.com", credits=0)
        db_session.add(other)
        db_session.commit()
        record, _ = api_keys.create_api_key(db_session, other, "theirs")

        response = client.delete(
            f"/api/v1/keys/{record.id}", headers=bearer(create_session_token(user.email))
        )

        assert response.status_code == 404
        assert response.json() == {"error": "API key not found"}


class TestRateLimiter:

    def test_allows_up_to_limit_then_denies(self):
        limiter = RateLimiter("test", 2, 60)

        results = [asyncio.run(limiter.check("ip:1")) for _ in range(3)]

        assert [r.allowed for r in results] == [True, True, False]
        assert results[0].remaining == 1
        assert results[2].remaining == 0

    def test_keys_are_independent(self):
        limiter = RateLimiter("test", 1, 60)

        assert asyncio.run(limiter.check("ip:1")).allowed
        assert asyncio.run(limiter.check("ip:2")).allowed
        assert not asyncio.run(limiter.check("ip:1")).allowed

    def test_window_slides(self):
        backend = MemoryBackend()
        allowed, _, _ = asyncio.run(backend.hit("k", 1, 60, now=1000.0))
        denied, _, reset_ts = asyncio.run(backend.hit("k", 1, 60, now=1030.0))
        later, _, _ = asyncio.run(backend.hit("k", 1, 60, now=1061.0))

        assert allowed and not denied and later
        assert reset_ts == 1060.0

    def test_idle_keys_are_evicted(self):
        backend = MemoryBackend()
        for i in range(1000):
            asyncio.run(backend.hit(f"ip:10.0.{i // 256}.{i % 256}", 5, 1, now=100.0))
        assert backend.key_count == 1000

        asyncio.run(backend.hit("ip:198.51.100.1", 5, 1, now=101.2))

        assert backend.key_count == 1

    def test_active_keys_survive_a_sweep(self):
        backend = MemoryBackend()
        asyncio.run(backend.hit("busy", 2, 60, now=1000.0))
        asyncio.run(backend.hit("idle", 2, 60, now=1000.0))
        asyncio.run(backend.hit("busy", 2, 60, now=1050.0))

        allowed, count, _ = asyncio.run(backend.hit("busy", 2, 60, now=1070.0))

        assert backend.key_count == 1
        assert allowed and count == 2

    def test_limit_override_per_identifier(self):
        limiter = RateLimiter("api-key", 10, 60)

        first = asyncio.run(limiter.check("key:1", limit=1))
        second = asyncio.run(limiter.check("key:1", limit=1))

        assert first.allowed and first.limit == 1 and first.remaining == 0
        assert not second.allowed

    def test_enforce_error_carries_limit_headers(self):
        limiter = RateLimiter("api-key", 1, 60)
        asyncio.run(limiter.enforce("key:1"))

        with pytest.raises(RateLimitError) as exc:
            asyncio.run(limiter.enforce("key:1"))

        headers = exc.value.to_response().headers
        assert headers["X-RateLimit-Limit"] == "1"
        assert headers["X-RateLimit-Remaining"] == "0"
        assert "X-RateLimit-Reset" in headers
        assert int(headers["Retry-After"]) >= 1

    def test_backend_error_fails_open(self):
        backend = MagicMock()
        backend.hit = AsyncMock(side_effect=ConnectionError("redis down"))
        limiter = RateLimiter("test", 1, 60, backend=backend)

        assert asyncio.run(limiter.check("ip:1")).allowed

    def test_client_identifier_prefers_user_then_proxy_headers(self):
        request = MagicMock()
        request.headers = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}
        request.client.host = "10.0.0.1"

        assert get_client_identifier(request, user_id="abc") == "user:abc"
        assert get_client_identifier(request) == "ip:203.0.113.7"

        request.headers = {}
        assert get_client_identifier(request) == "ip:10.0.0.1"
