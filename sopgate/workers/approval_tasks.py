"""Celery tasks for the approval workflow.

Provides:
- The periodic auto-approval sweep (Celery beat)
- Notification delivery with retry backoff
- Retried writes of audit entries that failed inside a decision
"""

from datetime import datetime
from typing import Dict, Any, Optional
from uuid import UUID
import logging

from celery import Celery, shared_task

from sopgate.core.config import get_settings
from sopgate.db import session as db_session

logger = logging.getLogger(__name__)
settings = get_settings()

# Initialize Celery
celery_app = Celery(
    'sopgate',
    broker=settings.celery_broker,
    backend=settings.celery_backend,
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    task_always_eager=settings.celery_task_always_eager,
    task_routes={
        'sopgate.workers.approval_tasks.send_notification': {'queue': 'notifications'},
    },
    task_default_queue='default',
)

if settings.approval_sweeper_enabled:
    celery_app.conf.beat_schedule = {
        'auto-approve-stale-operations': {
            'task': 'sopgate.workers.approval_tasks.run_auto_approval_sweep',
            'schedule': float(settings.approval_sweep_interval_seconds),
        },
    }


def _backoff(retries: int, base_delay: int) -> int:
    """Exponential backoff: base, 2x base, 4x base, ..."""
    return base_delay * (2 ** retries)


@shared_task(name='sopgate.workers.approval_tasks.run_auto_approval_sweep')
def run_auto_approval_sweep(now: Optional[str] = None) -> Dict[str, Any]:
    """
    Auto-approve every operation left PENDING past the threshold.

    Args:
        now: ISO timestamp overriding the reference time

    Returns:
        Sweep summary
    """
    from sopgate.core.approval.sweeper import AutoApprovalSweeper

    current = get_settings()
    if not current.approval_sweeper_enabled:
        logger.info("Auto-approval sweeper disabled, skipping sweep")
        return {"skipped": "sweeper disabled"}

    sweeper = AutoApprovalSweeper(db_session.SessionLocal, settings=current)
    result = sweeper.sweep(now=_parse_time(now))
    return result.to_dict()


@shared_task(
    bind=True,
    name='sopgate.workers.approval_tasks.send_notification',
    max_retries=settings.notification_max_retries,
    default_retry_delay=settings.notification_retry_delay,
)
def send_notification(self, recipient: str, event: str, context: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deliver one notification email.

    Args:
        recipient: Email address
        event: NotificationEvent value
        context: Template values

    Returns:
        Delivery status
    """
    from sopgate.services.notifications import EmailNotifier, NotificationEvent

    notifier = EmailNotifier(get_settings())
    try:
        sent = notifier.send(recipient, NotificationEvent(event), context)
    except Exception as exc:
        if self.request.retries >= self.max_retries:
            logger.exception(f"Giving up on {event} notification to {recipient}")
            return {"status": "failed", "error": str(exc)}
        raise self.retry(
            exc=exc,
            countdown=_backoff(self.request.retries, settings.notification_retry_delay),
        )

    return {"status": "sent" if sent else "skipped"}


@shared_task(
    bind=True,
    name='sopgate.workers.approval_tasks.append_audit_entry',
    max_retries=settings.audit_retry_max,
    default_retry_delay=30,
)
def append_audit_entry(self, entry: Dict[str, Any]) -> Dict[str, Any]:
    """
    Write an audit entry that could not be written with its decision.

    Args:
        entry: Keyword arguments of ``AuditLog.append`` with string ids

    Returns:
        The id of the written entry
    """
    from sopgate.services.audit import AuditLog

    db = db_session.SessionLocal()
    try:
        written = AuditLog(db).append(
            action=entry["action"],
            document_id=_parse_uuid(entry.get("document_id")),
            pending_operation_id=_parse_uuid(entry.get("pending_operation_id")),
            actor_name=entry["actor_name"],
            comments=entry.get("comments"),
            document=entry.get("document"),
            details=entry.get("details"),
        )
        db.commit()
        logger.info(f"Audit entry {written.action} for operation {entry.get('pending_operation_id')} written on retry")
        return {"id": str(written.id)}

    except Exception as exc:
        db.rollback()
        logger.exception(f"Audit retry failed for operation {entry.get('pending_operation_id')}")
        raise self.retry(exc=exc, countdown=_backoff(self.request.retries, 30))

    finally:
        db.close()


def _parse_uuid(value: Optional[str]) -> Optional[UUID]:
    return UUID(value) if value else None


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)
