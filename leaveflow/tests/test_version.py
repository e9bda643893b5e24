"""
Tests for version endpoint
"""
from fastapi import status

from leaveflow.core.config import settings


def test_version_endpoint_returns_version(client):
    response = client.get("/api/v1/version")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()

    assert data["service"] == "leaveflow-backend"
    assert "version" in data
    assert data["env"] in ["local", "staging", "prod"]
    assert data["automation_enabled"] is True


def test_version_reflects_automation_switch(client, monkeypatch):
    monkeypatch.setattr(settings, "AUTOMATION_ENABLED", False)

    response = client.get("/api/v1/version")

    assert response.json()["automation_enabled"] is False
