"""Celery workers for SOP Gate."""

from sopgate.workers.approval_tasks import (
    celery_app,
    run_auto_approval_sweep,
    send_notification,
    append_audit_entry,
)

__all__ = [
    "celery_app",
    "run_auto_approval_sweep",
    "send_notification",
    "append_audit_entry",
]
