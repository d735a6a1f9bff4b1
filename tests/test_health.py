"""
Health check endpoints
"""
from unittest.mock import patch
from fastapi.testclient import TestClient
from app.main import app

client = TestClient(app)


def test_root():
    assert client.get("/").json() == {"message": "Pixelift API is running"}


def test_health():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_health_db():
    response = client.get("/health/db")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_health_provider_reports_missing_key():
    with patch("app.main.settings") as mock_settings:
        mock_settings.FAL_API_KEY = None
        response = client.get("/health/provider")

    assert response.json()["status"] == "not_configured"


def test_health_provider_configured():
    assert client.get("/health/provider").json()["status"] == "healthy"
