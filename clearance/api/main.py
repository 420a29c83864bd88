from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import sessionmaker

from clearance import __version__
from clearance.api.errors import register_exception_handlers
from clearance.api.routers import health, stages, submissions, people, reviewers, notifications, webhooks
from clearance.common.catalog_config import load_catalog
from clearance.common.logger import configure_logging
from clearance.core.config import Settings, get_settings
from clearance.core.workflow import (
    NotificationSink,
    NullNotificationSink,
    StageCatalog,
    SubmissionStore,
    WorkflowEngine,
)
from clearance.db.session import get_session_factory
from clearance.services.notifications import DatabaseNotificationSink
from clearance.workers.notification_tasks import CeleryNotificationSink


def build_notification_sink(settings: Settings, session_factory: sessionmaker) -> NotificationSink:
    """Pick the notification sink named by ``settings.notification_backend``."""
    backend = settings.notification_backend.lower()
    if backend == "database":
        return DatabaseNotificationSink(session_factory, settings)
    if backend == "celery":
        return CeleryNotificationSink(settings)
    if backend == "none":
        return NullNotificationSink()
    raise ValueError(f"Unknown notification backend: {settings.notification_backend}")


def create_app(
    settings: Optional[Settings] = None,
    *,
    session_factory: Optional[sessionmaker] = None,
    catalog: Optional[StageCatalog] = None,
    sink: Optional[NotificationSink] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings (environment by default)
        session_factory: Database sessions (configured database by default)
        catalog: Stage catalog (``stage_catalog_path`` or the built-in catalog by default)
        sink: Notification sink (chosen by ``notification_backend`` by default)
    """
    settings = settings or get_settings()

    configure_logging(settings)

    catalog = catalog or load_catalog(settings.stage_catalog_path)
    session_factory = session_factory or get_session_factory(settings)
    sink = sink or build_notification_sink(settings, session_factory)

    app = FastAPI(
        title=settings.app_name,
        description="Multi-stage clearance approval workflow",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.catalog = catalog
    app.state.engine = WorkflowEngine(
        catalog,
        SubmissionStore(session_factory),
        sink,
        max_write_attempts=settings.write_retry_attempts,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Include routers
    app.include_router(health.router)
    app.include_router(stages.router, prefix="/api")
    app.include_router(submissions.router, prefix="/api")
    app.include_router(people.router, prefix="/api")
    app.include_router(reviewers.router, prefix="/api")
    app.include_router(notifications.router, prefix="/api")
    app.include_router(webhooks.router, prefix="/api")

    @app.get("/")
    def root():
        return {
            "name": settings.app_name,
            "version": __version__,
            "stages": len(catalog),
            "docs": "/docs" if settings.debug else None,
        }

    return app


app = create_app()
