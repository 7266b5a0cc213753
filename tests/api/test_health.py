# tests/api/test_health.py
"""Tests for the service info endpoints."""

from fastapi import status
from fastapi.testclient import TestClient


def test_health_check(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok"}


def test_root_describes_the_api(client: TestClient) -> None:
    body = client.get("/").json()
    assert body["name"] == "Hyperlocal Stage"
    assert body["docs"] == "/docs"
