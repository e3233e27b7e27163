from __future__ import annotations

import pytest

from app.core.config import AppConfig, ConfigError

_ENV_KEYS = (
    "ACCESS_TOKEN_SECRET",
    "REFRESH_TOKEN_SECRET",
    "ACCESS_TOKEN_TTL_SECONDS",
    "REFRESH_TOKEN_TTL_SECONDS",
    "AUTH_ISSUER",
    "AUTH_AUDIENCE",
    "AUTH_ADMIN_EMAIL",
    "AUTH_ADMIN_USERNAME",
    "AUTH_ADMIN_PASSWORD",
    "STORE_BACKEND",
    "MONGODB_URI",
    "MONGODB_DB",
    "APP_BASE_URL",
    "CORS_ALLOWED_ORIGINS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_from_env_applies_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ACCESS_TOKEN_SECRET", "a")
    monkeypatch.setenv("REFRESH_TOKEN_SECRET", "r")
    monkeypatch.setenv("STORE_BACKEND", "file")

    config = AppConfig.from_env()

    assert config.auth.access_token_ttl_seconds == 900
    assert config.auth.refresh_token_ttl_seconds == 604800
    assert config.auth.issuer == "myapp"
    assert config.auth.audience == "myapp-users"
    assert config.auth.bootstrap_admin_enabled is False
    assert config.store.backend == "file"
    assert config.store.mongo_db == "todo_api"
    assert config.base_url == "http://localhost:8000"
    assert config.security.cors_allowed_origins == [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]


def test_from_env_requires_both_secrets(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ACCESS_TOKEN_SECRET", "a")
    monkeypatch.setenv("STORE_BACKEND", "file")

    with pytest.raises(ConfigError):
        AppConfig.from_env()


def test_from_env_rejects_shared_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ACCESS_TOKEN_SECRET", "same")
    monkeypatch.setenv("REFRESH_TOKEN_SECRET", "same")
    monkeypatch.setenv("STORE_BACKEND", "file")

    with pytest.raises(ConfigError):
        AppConfig.from_env()


def test_from_env_requires_mongo_uri_for_mongo_backend(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ACCESS_TOKEN_SECRET", "a")
    monkeypatch.setenv("REFRESH_TOKEN_SECRET", "r")

    with pytest.raises(ConfigError):
        AppConfig.from_env()


def test_from_env_reads_admin_bootstrap_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ACCESS_TOKEN_SECRET", "a")
    monkeypatch.setenv("REFRESH_TOKEN_SECRET", "r")
    monkeypatch.setenv("STORE_BACKEND", "mongo")
    monkeypatch.setenv("MONGODB_URI", "mongodb://localhost:27017")
    monkeypatch.setenv("AUTH_ADMIN_EMAIL", " Admin@Test.Local ")
    monkeypatch.setenv("AUTH_ADMIN_USERNAME", "admin")
    monkeypatch.setenv("AUTH_ADMIN_PASSWORD", "pw")

    config = AppConfig.from_env()

    assert config.auth.admin_email == "admin@test.local"
    assert config.auth.bootstrap_admin_enabled is True
    assert config.store.mongo_uri == "mongodb://localhost:27017"
