from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.http_setup import register_exception_handlers, register_http_middleware
from app.auth.guard import AccessGuard
from app.auth.notifications import LoggingVerificationNotifier, VerificationNotifier
from app.auth.registration import RegistrationService
from app.auth.repository import UserRepository
from app.auth.router import create_auth_router
from app.auth.service import AuthService
from app.core.config import AppConfig
from app.core.logging import setup_logging
from app.core.mongo import apply_mongo_migrations, connect_mongo
from app.todos.repository import TodoRepository
from app.todos.router import create_todos_router
from app.todos.service import TodoService
from app.users.admin_router import create_admin_router
from app.users.profile_router import create_profile_router
from app.users.service import UserService

LOGGER = logging.getLogger(__name__)

APP_ROOT = Path(__file__).resolve().parent


@dataclass(frozen=True)
class Repositories:
    """Store handles shared by all services of one application."""

    users: UserRepository
    todos: TodoRepository


def open_repositories(config: AppConfig, app_root: Path = APP_ROOT) -> Repositories:
    """Open the configured store; MongoDB failures propagate and abort startup."""
    if config.store.backend == "mongo":
        db = connect_mongo(config.store)
        apply_mongo_migrations(db)
        return Repositories(users=UserRepository(db), todos=TodoRepository(db))

    store_dir = Path(config.store.file_store_dir)
    if not store_dir.is_absolute():
        store_dir = app_root / store_dir
    return Repositories(
        users=UserRepository(fallback_dir=store_dir),
        todos=TodoRepository(fallback_dir=store_dir),
    )


def create_app(
    config: AppConfig | None = None,
    *,
    repos: Repositories | None = None,
    notifier: VerificationNotifier | None = None,
) -> FastAPI:
    if config is None:
        load_dotenv()
        config = AppConfig.from_env()
    setup_logging(config.logging.level)
    if repos is None:
        repos = open_repositories(config)

    app = FastAPI(title="Todo Auth API", version="1.0.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )
    register_http_middleware(app, config=config, logger=LOGGER)
    register_exception_handlers(app, logger=LOGGER)

    auth_service = AuthService(repos.users, config.auth)
    auth_service.bootstrap_admin_user()
    registration_service = RegistrationService(
        repos.users,
        auth_service,
        notifier or LoggingVerificationNotifier(config.base_url),
    )
    todo_service = TodoService(repos.todos)
    user_service = UserService(repos.users, registration_service, todo_service)
    guard = AccessGuard(auth_service)

    app.include_router(
        create_auth_router(auth_service, registration_service, user_service, guard)
    )
    app.include_router(create_admin_router(user_service, guard))
    app.include_router(create_profile_router(user_service, guard))
    app.include_router(create_todos_router(todo_service, guard))
    return app
