"""Health probes.

- /health: process is up
- /health/live: liveness, no dependencies touched
- /health/ready: readiness, with one entry per dependency

Readiness fails only when the database is unreachable or the document
storage volume is full. An unreachable broker or a backlog the sweeper
has not caught up with reports "degraded".
"""

import time
from datetime import datetime, timedelta
from typing import Dict, Any, Optional

import psutil
import redis
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import func, select, text
from sqlalchemy.orm import Session

from sopgate import __version__
from sopgate.api.deps import get_db, get_app_settings
from sopgate.core.approval import OperationStatus
from sopgate.core.config import Settings
from sopgate.db.models import PendingOperation

router = APIRouter(tags=["health"])

STORAGE_WARNING_PERCENT = 85
STORAGE_CRITICAL_PERCENT = 95

# Checks whose failure makes the instance unready
REQUIRED_CHECKS = ("database",)


def check_database(db: Session) -> Dict[str, Any]:
    started = time.perf_counter()
    try:
        db.execute(text("SELECT 1")).scalar()
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}
    return {
        "status": "healthy",
        "dialect": db.get_bind().dialect.name,
        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
    }


def check_broker(settings: Settings) -> Dict[str, Any]:
    """Ping the Celery broker (notifications, audit retries, sweep schedule)."""
    client = redis.from_url(settings.celery_broker, socket_connect_timeout=2, socket_timeout=2)
    try:
        client.ping()
        return {"status": "healthy"}
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}
    finally:
        client.close()


def check_storage(settings: Settings) -> Dict[str, Any]:
    """Free space on the volume that holds the SOP files."""
    try:
        usage = psutil.disk_usage(settings.document_storage_path)
    except OSError as e:
        return {"status": "unknown", "error": str(e)}

    if usage.percent >= STORAGE_CRITICAL_PERCENT:
        storage_status = "critical"
    elif usage.percent >= STORAGE_WARNING_PERCENT:
        storage_status = "warning"
    else:
        storage_status = "healthy"

    return {
        "status": storage_status,
        "path": settings.document_storage_path,
        "free_gb": round(usage.free / (1024**3), 2),
        "percent_used": usage.percent,
    }


def check_backlog(db: Session, settings: Settings, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Pending operation backlog.

    Anything older than the auto-approval threshold plus two sweep
    intervals should already have been swept, so the sweeper is lagging.
    """
    try:
        count, oldest = db.execute(
            select(func.count(PendingOperation.id), func.min(PendingOperation.requested_at))
            .where(PendingOperation.status == OperationStatus.PENDING.value)
        ).one()
    except Exception as e:
        return {"status": "unknown", "error": str(e)}

    now = now or datetime.utcnow()
    overdue_after = timedelta(
        days=settings.approval_auto_approve_days,
        seconds=2 * settings.approval_sweep_interval_seconds,
    )
    lagging = oldest is not None and now - oldest > overdue_after
    return {
        "status": "warning" if lagging else "healthy",
        "pending": count,
        "oldest_requested_at": oldest.isoformat() if oldest else None,
    }


def overall_status(checks: Dict[str, Dict[str, Any]]) -> str:
    """Fold individual check results into ready / degraded / not_ready."""
    statuses = {name: check["status"] for name, check in checks.items()}
    if "critical" in statuses.values():
        return "not_ready"
    if any(statuses.get(name) == "unhealthy" for name in REQUIRED_CHECKS):
        return "not_ready"
    if any(value != "healthy" for value in statuses.values()):
        return "degraded"
    return "ready"


@router.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.get("/health/live")
async def liveness_probe():
    return {"status": "alive", "timestamp": datetime.utcnow().isoformat()}


@router.get("/health/ready")
def readiness_probe(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    checks = {
        "database": check_database(db),
        "broker": check_broker(settings),
        "storage": check_storage(settings),
    }
    if checks["database"]["status"] == "healthy":
        checks["backlog"] = check_backlog(db, settings)

    ready_status = overall_status(checks)
    return JSONResponse(
        status_code=(
            status.HTTP_503_SERVICE_UNAVAILABLE if ready_status == "not_ready" else status.HTTP_200_OK
        ),
        content={
            "status": ready_status,
            "checks": checks,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )
