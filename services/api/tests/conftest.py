from collections.abc import Generator
import json
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from vault_api.core.config import get_settings
from vault_api.db.base import Base
from vault_api.db.session import get_db, init_schema
from vault_api.main import create_app

PASSWORD = "StrongPassw0rd!"


@pytest.fixture
def sqlite_engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    init_schema(engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(sqlite_engine) -> Generator[Session, None, None]:
    local_session = sessionmaker(bind=sqlite_engine, autoflush=False, autocommit=False, class_=Session)
    db = local_session()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def app(monkeypatch: pytest.MonkeyPatch, tmp_path, sqlite_engine) -> Generator[FastAPI, None, None]:
    monkeypatch.setenv("KV_RATE_LIMIT_REQUESTS", "10000")
    monkeypatch.setenv("KV_ROUTE_RATE_LIMIT_REQUESTS", "10000")
    monkeypatch.setenv("KV_AUTH_PASSWORD_HASH_ITERATIONS", "1000")
    monkeypatch.setenv("KV_AUTH_JWT_SECRET", "http-test-secret-key-at-least-32-bytes")
    monkeypatch.setenv("KV_STORAGE_ROOT", str(tmp_path / "storage"))
    monkeypatch.delenv("KV_REDIS_URL", raising=False)
    get_settings.cache_clear()

    application = create_app()
    testing_session_local = sessionmaker(bind=sqlite_engine, autoflush=False, autocommit=False, class_=Session)

    def override_get_db() -> Generator[Session, None, None]:
        db = testing_session_local()
        try:
            yield db
        finally:
            db.close()

    application.dependency_overrides[get_db] = override_get_db
    yield application
    application.dependency_overrides.clear()
    get_settings.cache_clear()


@pytest.fixture
def api_client(app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(app) as client:
        yield client


@pytest.fixture
def client_factory(app: FastAPI):
    """为每个用户创建独立 Cookie 的客户端。"""

    def _make(ip: str = "10.0.0.1") -> TestClient:
        return TestClient(app, headers={"X-Forwarded-For": ip})

    return _make


def csrf(client: TestClient) -> dict[str, str]:
    """获取 CSRF 令牌并返回写请求需要携带的请求头。"""
    resp = client.get("/api/auth/csrf")
    assert resp.status_code == 200, resp.text
    return {"X-CSRF-Token": resp.json()["data"]["csrf_token"]}


def signup(client: TestClient, email: str, display_name: str, password: str = PASSWORD) -> dict[str, Any]:
    resp = client.post(
        "/api/auth/signup",
        json={
            "email": email,
            "password": password,
            "confirm_password": password,
            "display_name": display_name,
        },
        headers=csrf(client),
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


def login(client: TestClient, email: str, password: str = PASSWORD) -> dict[str, Any]:
    resp = client.post("/api/auth/login", json={"email": email, "password": password}, headers=csrf(client))
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


def signup_and_login(client: TestClient, email: str, display_name: str) -> dict[str, Any]:
    data = signup(client, email, display_name)
    login(client, email)
    return data["user"]


def otp_code(app: FastAPI, email: str) -> str:
    raw = app.state.services.store.get(f"auth:otp:{email}")
    return json.loads(raw)["code"]


def personal_space_id(client: TestClient, user_id: str) -> str:
    resp = client.get("/api/spaces")
    assert resp.status_code == 200, resp.text
    spaces = [
        space
        for space in resp.json()["data"]
        if space["type"] == "personal" and space["owner_id"] == user_id
    ]
    return spaces[0]["id"]
