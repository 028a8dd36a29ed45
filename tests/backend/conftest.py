from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from backend.app.auth import AuthContext
from backend.app.main import create_app
from backend.app.models import UserRole


@pytest.fixture()
def client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    monkeypatch.setenv("PERSISTENCE_ENABLED", "false")
    monkeypatch.setenv("AUTH_ENABLED", "false")
    app = create_app()
    return TestClient(app)


@pytest.fixture()
def user_actor() -> AuthContext:
    return AuthContext(user_id="user-1", role=UserRole.user)


@pytest.fixture()
def guest_actor() -> AuthContext:
    return AuthContext(user_id="guest", role=UserRole.guest)
