"""
tests/helpers.py -- HTTP helpers shared by the route test modules.

Kept out of conftest.py so test modules can import them directly.
"""

from __future__ import annotations

import uuid

from fastapi.testclient import TestClient

PASSWORD = "p1"


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}@example.com"


def register_account(client: TestClient, email: str | None = None, password: str = PASSWORD, **extra) -> dict:
    """POST /auth/register and return the JSON body. Fails the test on non-201."""
    body = {"email": email or unique_email(), "password": password, "confirm_password": password, **extra}
    resp = client.post("/api/v1/auth/register", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


def login_account(client: TestClient, email: str, password: str = PASSWORD) -> dict:
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
