from typing import Generator

from fastapi import Request

from clearance.core.config import Settings
from clearance.core.workflow.catalog import StageCatalog
from clearance.core.workflow.engine import WorkflowEngine
from clearance.core.workflow.projector import ProgressProjector


def get_db(request: Request) -> Generator:
    """Database session dependency."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_catalog(request: Request) -> StageCatalog:
    return request.app.state.catalog


def get_engine(request: Request) -> WorkflowEngine:
    """Workflow engine built once by the application factory."""
    return request.app.state.engine


def get_projector(request: Request) -> ProgressProjector:
    return request.app.state.engine.projector
