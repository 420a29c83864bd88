"""Mapping of workflow errors onto the HTTP error envelope.

Every error response has the shape ``{"error": ..., "detail": ..., "code": ...}``.
"""

import logging
from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from clearance.api.schemas.common import ErrorResponse
from clearance.core.workflow.errors import (
    AlreadyFinalizedError,
    GatingViolation,
    InternalError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
    WorkflowError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    GatingViolation: status.HTTP_409_CONFLICT,
    AlreadyFinalizedError: status.HTTP_409_CONFLICT,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    InternalError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(exc: WorkflowError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[error_type]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_payload(error: str, code: str, detail: Any = None) -> Dict[str, Any]:
    return jsonable_encoder(ErrorResponse(error=error, detail=detail, code=code))


async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content=error_payload(exc.message, exc.code, exc.details or None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_payload("Invalid request", "validation_error", jsonable_encoder(exc.errors())),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(str(exc.detail), f"http_{exc.status_code}"),
        headers=getattr(exc, "headers", None),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(WorkflowError, workflow_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
