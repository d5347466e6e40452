"""Dependency injection factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from taskflow.auth import AuthEventBus
from taskflow.config import Config
from taskflow.persistence.kv_store import FileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from taskflow.persistence.local_store import LocalPersistence
from taskflow.remote import OfflineRemoteTaskService, RemoteTaskService
from taskflow.store import TaskStore
from taskflow.websocket.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)

# Global instances for dependency injection
_config: Config | None = None
_store: TaskStore | None = None
_connection_manager: ConnectionManager | None = None
_auth_events: AuthEventBus | None = None
_remote: RemoteTaskService | None = None


def get_config() -> Config:
    """Get or create Config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def get_auth_events() -> AuthEventBus:
    """Get or create the auth event bus."""
    global _auth_events
    if _auth_events is None:
        _auth_events = AuthEventBus()
    return _auth_events


def get_remote_service() -> RemoteTaskService:
    """Remote task service; offline unless one was injected."""
    global _remote
    if _remote is None:
        _remote = OfflineRemoteTaskService()
    return _remote


def set_remote_service(remote: RemoteTaskService) -> None:
    """Inject a remote service before the store is created."""
    global _remote
    _remote = remote


def create_kv_store(config: Config) -> KeyValueStore:
    if not config.storage_dir:
        logger.warning("[Factory] No storage_dir configured; tasks will not survive restarts")
        return MemoryKeyValueStore()
    return FileKeyValueStore(config.storage_dir)


def get_store() -> TaskStore:
    """Get or create TaskStore singleton."""
    global _store
    if _store is None:
        config = get_config()
        _store = TaskStore(
            persistence=LocalPersistence(create_kv_store(config)),
            remote=get_remote_service(),
            auth_events=get_auth_events(),
            max_session_ms=config.max_session_ms,
            cap_check_interval_seconds=config.cap_check_interval_seconds,
            seed_default_tasks=config.seed_default_tasks,
        )
    return _store


def get_connection_manager() -> ConnectionManager:
    """Get or create ConnectionManager singleton."""
    global _connection_manager
    if _connection_manager is None:
        _connection_manager = ConnectionManager()
    return _connection_manager


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle - startup and shutdown."""
    store = get_store()
    logger.info("[Lifespan] Loading tasks...")
    await store.init()
    unsubscribe = store.subscribe(get_connection_manager().publish)
    try:
        yield
    finally:
        logger.info("[Lifespan] Shutting down task store...")
        unsubscribe()
        await store.dispose()


def create_app() -> FastAPI:
    """Create FastAPI application (composition root)."""
    from taskflow.api.tasks import router as tasks_router
    from taskflow.api.websocket import router as ws_router

    app = FastAPI(
        title="Taskflow",
        description="Task hierarchy with time tracking and local/remote sync",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(tasks_router, prefix="/api")
    app.include_router(ws_router)  # WebSocket at /ws

    return app
