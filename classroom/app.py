from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from tortoise.contrib.fastapi import register_tortoise

from .config import Settings, configure_logging, get_settings
from .handlers import EventDispatcher
from .hub import ConnectionHub
from .identity import IdentityResolver
from .lifecycle import ConnectionLifecycleManager
from .membership import MembershipCoordinator
from .registry import RoomRegistry
from .routers import health as health_router
from .routers import websockets as ws_router
from .store import ClassStore, TortoiseClassStore


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[ClassStore] = None,
    init_db: bool = True,
) -> FastAPI:
    """Build the application with its own registry, hub and coordinator."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Classroom Sync")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -----------------------------
    # Runtime state (one set per app instance)
    # -----------------------------

    registry = RoomRegistry()
    hub = ConnectionHub()
    coordinator = MembershipCoordinator(
        registry,
        IdentityResolver(settings.handle_bytes),
        store or TortoiseClassStore(),
        settings,
    )
    dispatcher = EventDispatcher(coordinator, hub)

    app.state.settings = settings
    app.state.registry = registry
    app.state.hub = hub
    app.state.coordinator = coordinator
    app.state.lifecycle = ConnectionLifecycleManager(hub, coordinator, dispatcher)

    app.include_router(health_router.router)
    app.include_router(ws_router.router)

    # -----------------------------
    # Database (Tortoise ORM)
    # -----------------------------

    if init_db:
        register_tortoise(
            app,
            db_url=settings.database_url,
            modules={"models": ["classroom.models"]},
            generate_schemas=True,
            add_exception_handlers=True,
        )

    return app


app = create_app()

__all__ = ["app", "create_app"]
