"""Health probes for the clearance service.

``/health`` and ``/health/live`` never touch dependencies. ``/health/ready``
checks the database and, when notifications go through Celery, the Redis
broker. ``/health/detailed`` adds host resources and the loaded catalog.
"""

from datetime import datetime, timezone
from typing import Any, Dict

import psutil
import redis
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clearance import __version__
from clearance.api.deps import get_app_settings, get_catalog, get_db
from clearance.core.config import Settings
from clearance.core.workflow import StageCatalog

router = APIRouter(tags=["health"])

# (warning, critical) percent used
DISK_THRESHOLDS = (85, 95)
MEMORY_THRESHOLDS = (85, 95)

GIB = 1024 ** 3


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _grade(percent_used: float, thresholds) -> str:
    warning, critical = thresholds
    if percent_used >= critical:
        return "critical"
    if percent_used >= warning:
        return "warning"
    return "healthy"


def check_database(db: Session) -> Dict[str, Any]:
    try:
        db.execute(text("SELECT 1")).scalar_one()
    except SQLAlchemyError as e:
        return {"status": "unhealthy", "error": str(e)}
    dialect = db.get_bind().dialect
    version = dialect.server_version_info
    return {
        "status": "healthy",
        "dialect": dialect.name,
        "version": ".".join(map(str, version)) if version else "unknown",
    }


def check_redis(settings: Settings) -> Dict[str, Any]:
    """Ping the Celery broker; skipped for the database and none backends."""
    if settings.notification_backend != "celery":
        return {"status": "skipped", "reason": f"notification backend is {settings.notification_backend}"}
    client = None
    try:
        client = redis.from_url(settings.celery_broker, socket_connect_timeout=2, socket_timeout=2)
        client.ping()
        version = client.info("server").get("redis_version", "unknown")
    except (redis.RedisError, OSError) as e:
        return {"status": "unhealthy", "error": str(e)}
    finally:
        if client is not None:
            client.close()
    return {"status": "healthy", "version": version}


def check_resources() -> Dict[str, Dict[str, Any]]:
    """Disk and memory usage graded against their thresholds."""
    disk = psutil.disk_usage("/")
    memory = psutil.virtual_memory()
    return {
        "disk": {
            "status": _grade(disk.percent, DISK_THRESHOLDS),
            "total_gb": round(disk.total / GIB, 2),
            "free_gb": round(disk.free / GIB, 2),
            "percent_used": disk.percent,
        },
        "memory": {
            "status": _grade(memory.percent, MEMORY_THRESHOLDS),
            "total_gb": round(memory.total / GIB, 2),
            "available_gb": round(memory.available / GIB, 2),
            "percent_used": memory.percent,
        },
    }


@router.get("/health")
def health_check():
    return {"status": "healthy", "version": __version__, "timestamp": _now()}


@router.get("/health/live")
def liveness_probe():
    """Liveness: the process answers requests."""
    return {"status": "alive", "timestamp": _now()}


@router.get("/health/ready")
def readiness_probe(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Readiness: 503 while the database or the Celery broker is unreachable."""
    checks = {"database": check_database(db), "redis": check_redis(settings)}
    failed = [name for name, check in checks.items() if check["status"] == "unhealthy"]

    body = {"status": "not_ready" if failed else "ready", "checks": checks, "timestamp": _now()}
    if failed:
        body["failed"] = failed
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE if failed else status.HTTP_200_OK,
        content=body,
    )


@router.get("/health/detailed")
def detailed_health_check(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    catalog: StageCatalog = Depends(get_catalog),
):
    checks = {"database": check_database(db), "redis": check_redis(settings), **check_resources()}
    states = {check["status"] for check in checks.values()}

    if states & {"unhealthy", "critical"}:
        overall, code = "unhealthy", status.HTTP_503_SERVICE_UNAVAILABLE
    elif "warning" in states:
        overall, code = "degraded", status.HTTP_200_OK
    else:
        overall, code = "healthy", status.HTTP_200_OK

    return JSONResponse(
        status_code=code,
        content={
            "status": overall,
            "version": __version__,
            "checks": checks,
            "catalog": {"stages": len(catalog), "ids": catalog.ids},
            "notification_backend": settings.notification_backend,
            "timestamp": _now(),
        },
    )
