"""
Study Planner - FastAPI Application Entry Point.

One process serves one signed-in user: the lifespan builds the Supabase client,
the SessionManager, the AuthService and the StudyStore, and wires auth changes
into store reloads.

Run: uvicorn studyplanner.main:create_app --factory
"""

import logging
from contextlib import asynccontextmanager
from typing import Awaitable, Callable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from supabase import AsyncClient

from studyplanner.config import Settings, get_settings
from studyplanner.core.database import create_supabase_client
from studyplanner.core.logging_config import setup_logging
from studyplanner.core.storage import FileSessionStorage, MemorySessionStorage

# ── Feature Routers ──────────────────────────────────────
from studyplanner.features.auth.router import router as auth_router
from studyplanner.features.auth.service import AuthService
from studyplanner.features.auth.session import SessionManager
from studyplanner.features.dashboard.router import router as dashboard_router
from studyplanner.features.study.router import router as study_router
from studyplanner.features.study.store import StudyStore

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Settings, FileSessionStorage], Awaitable[AsyncClient]]


def create_app(
    settings: Settings | None = None,
    client_factory: ClientFactory = create_supabase_client,
) -> FastAPI:
    """Application factory."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifecycle: startup & shutdown."""
        setup_logging(settings.LOG_LEVEL)
        logger.info(f"{settings.APP_NAME} v{settings.APP_VERSION} starting...")
        logger.info(f"Supabase: {settings.SUPABASE_URL[:40]}...")

        durable = FileSessionStorage(settings.SESSION_STORAGE_PATH)
        scoped = MemorySessionStorage()
        db = await client_factory(settings, durable)

        sessions = SessionManager(
            db,
            stores=[durable, scoped],
            key_prefix=settings.SESSION_KEY_PREFIX,
            skew_seconds=settings.TOKEN_EXPIRY_SKEW_SECONDS,
        )
        store = StudyStore(db, sessions, load_timeout=settings.DATA_LOAD_TIMEOUT_SECONDS)
        auth = AuthService(db, sessions, settings)
        auth.add_user_listener(store.set_user)

        app.state.settings = settings
        app.state.sessions = sessions
        app.state.store = store
        app.state.auth = auth

        await auth.initialize()
        yield
        logger.info("Shutting down...")
        await auth.close()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Homework, calendar, grades and timetable for one student",
        lifespan=lifespan,
    )

    # ── CORS ─────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Register Feature Routers ─────────────────────────
    app.include_router(auth_router, prefix="/api/auth", tags=["Auth"])
    app.include_router(study_router, prefix="/api/study", tags=["Study"])
    app.include_router(dashboard_router, prefix="/api/dashboard", tags=["Dashboard"])

    # ── Health Check ─────────────────────────────────────
    @app.get("/health", tags=["System"])
    async def health_check():
        return {
            "status": "healthy",
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
        }

    return app


def run() -> None:
    """Console entry point."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "studyplanner.main:create_app",
        factory=True,
        host="127.0.0.1",
        port=8000,
        reload=settings.DEBUG,
    )
