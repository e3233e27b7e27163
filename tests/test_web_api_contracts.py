from __future__ import annotations

from pathlib import Path

from fastapi import FastAPI
from fastapi.routing import APIRoute

from app.auth.repository import UserRepository
from app.core.config import AppConfig, AuthConfig, LoggingConfig, SecurityConfig, StoreConfig
from app.todos.repository import TodoRepository
from web_api import Repositories, create_app, open_repositories


def _config(store_dir: str) -> AppConfig:
    return AppConfig(
        auth=AuthConfig(
            access_token_secret="access",
            refresh_token_secret="refresh",
            access_token_ttl_seconds=900,
            refresh_token_ttl_seconds=3600,
            issuer="test",
            audience="test-users",
        ),
        store=StoreConfig(
            backend="file",
            mongo_uri="",
            mongo_db="todo_api",
            timeout_ms=1000,
            file_store_dir=store_dir,
        ),
        logging=LoggingConfig(level="WARNING"),
        security=SecurityConfig(
            cors_allowed_origins=["http://localhost:3000"], request_max_bytes=1024
        ),
    )


def _app(tmp_path: Path) -> FastAPI:
    repos = Repositories(
        users=UserRepository(fallback_dir=tmp_path),
        todos=TodoRepository(fallback_dir=tmp_path),
    )
    return create_app(_config(str(tmp_path)), repos=repos)


def test_health_endpoint_contract_function(tmp_path: Path) -> None:
    app = _app(tmp_path)
    route = next(
        (
            candidate
            for candidate in app.routes
            if isinstance(candidate, APIRoute) and candidate.path == "/api/health"
        ),
        None,
    )

    assert route is not None
    payload = route.endpoint()
    assert payload.model_dump() == {"status": "ok"}


def test_openapi_contains_auth_error_contracts(tmp_path: Path) -> None:
    schema = _app(tmp_path).openapi()

    login = schema["paths"]["/api/auth/login"]["post"]
    refresh = schema["paths"]["/api/auth/refresh"]["post"]

    assert login["responses"]["401"]["content"]["application/json"]["schema"][
        "$ref"
    ].endswith("ApiErrorResponse")
    assert refresh["responses"]["403"]["content"]["application/json"]["schema"][
        "$ref"
    ].endswith("ApiErrorResponse")


def test_openapi_token_pair_uses_camel_case(tmp_path: Path) -> None:
    schema = _app(tmp_path).openapi()

    token_pair = schema["components"]["schemas"]["TokenPair"]

    assert set(token_pair["properties"]) == {"accessToken", "refreshToken"}


def test_openapi_exposes_admin_and_todo_routes(tmp_path: Path) -> None:
    paths = _app(tmp_path).openapi()["paths"]

    assert "/api/admin/users/{user_id}/role" in paths
    assert "/api/admin/statistics" in paths
    assert "/api/protected/todos/{todo_id}" in paths
    assert "/api/profile/{user_id}/follow" in paths


def test_open_repositories_uses_relative_file_store_under_app_root(tmp_path: Path) -> None:
    repos = open_repositories(_config("store"), app_root=tmp_path)

    assert isinstance(repos.users, UserRepository)
    assert (tmp_path / "store").is_dir()
