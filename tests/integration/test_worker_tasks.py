"""Celery tasks run eagerly against the per-test database."""

from datetime import datetime, timedelta
from unittest.mock import patch
from uuid import UUID, uuid4

import pytest

from sopgate.core.config import Settings
from sopgate.db.models import AuditEntry, Document, PendingOperation
from sopgate.services.notifications import CeleryNotifier, EmailNotifier, get_notifier
from sopgate.workers import approval_tasks
from sopgate.workers.approval_tasks import (
    _backoff,
    append_audit_entry,
    run_auto_approval_sweep,
    send_notification,
)
from tests.factories import create_pending_operation

pytestmark = pytest.mark.integration


def test_backoff_doubles():
    assert [_backoff(n, 30) for n in range(4)] == [30, 60, 120, 240]


class TestAutoApprovalSweepTask:

    def test_sweep_approves_stale_operations(self, db_session):
        stale = create_pending_operation(
            db_session, requested_at=datetime.utcnow() - timedelta(days=10)
        )
        fresh = create_pending_operation(db_session, requested_at=datetime.utcnow())
        db_session.commit()
        stale_id, fresh_id = stale.id, fresh.id

        result = run_auto_approval_sweep.apply().get()

        assert result["approved"] == [str(stale_id)]
        assert result["failed"] == {}
        db_session.expire_all()
        assert db_session.get(PendingOperation, stale_id) is None
        assert db_session.get(PendingOperation, fresh_id) is not None
        assert db_session.query(Document).count() == 1

    def test_reference_time_argument(self, db_session):
        operation = create_pending_operation(db_session, requested_at=datetime(2026, 1, 1))
        db_session.commit()

        early = run_auto_approval_sweep.apply(kwargs={"now": "2026-01-05T00:00:00"}).get()
        late = run_auto_approval_sweep.apply(kwargs={"now": "2026-01-09T00:00:00"}).get()

        assert early["found"] == 0
        assert late["approved"] == [str(operation.id)]

    def test_disabled_sweeper(self, db_session, monkeypatch):
        create_pending_operation(db_session, requested_at=datetime.utcnow() - timedelta(days=30))
        db_session.commit()
        monkeypatch.setattr(
            approval_tasks, "get_settings", lambda: Settings(_env_file=None, approval_sweeper_enabled=False)
        )

        result = run_auto_approval_sweep.apply().get()

        assert "skipped" in result
        assert db_session.query(Document).count() == 0


class TestAppendAuditEntryTask:

    def test_writes_entry(self, db_session):
        operation_id = uuid4()
        entry = {
            "action": "CREATE_APPROVED",
            "document_id": str(uuid4()),
            "pending_operation_id": str(operation_id),
            "actor_name": "Bob",
            "comments": "ok",
            "document": {"fileName": "a.pdf", "brand": "acme", "category": "ops"},
            "details": {"transition": {"decision": "APPROVE"}},
        }

        result = append_audit_entry.apply(args=[entry]).get()

        written = db_session.get(AuditEntry, UUID(result["id"]))
        assert written.pending_operation_id == operation_id
        assert written.action == "CREATE_APPROVED"
        assert written.document_file_name == "a.pdf"


class TestSendNotificationTask:

    CONTEXT = {
        "operation_id": "op-1",
        "operation_kind": "CREATE",
        "document_name": "a.pdf",
        "requested_by": "alice@example.com",
        "reviewed_by": "Bob",
        "reviewed_at": "2026-03-01T09:00:00",
        "comments": "",
    }

    def test_skipped_when_disabled(self):
        result = send_notification.apply(args=["alice@example.com", "operation_approved", self.CONTEXT]).get()

        assert result == {"status": "skipped"}

    def test_gives_up_after_retries(self):
        with patch.object(EmailNotifier, "send", side_effect=ConnectionRefusedError("no SMTP")) as send:
            result = send_notification.apply(
                args=["alice@example.com", "operation_approved", self.CONTEXT]
            ).get()

        assert result["status"] == "failed"
        assert send.call_count == send_notification.max_retries + 1


class TestNotifierSelection:

    def test_eager_mode_sends_inline(self):
        assert isinstance(get_notifier(Settings(_env_file=None, celery_task_always_eager=True)), EmailNotifier)

    def test_queued_delivery(self):
        notifier = get_notifier(Settings(_env_file=None, celery_task_always_eager=False))
        assert isinstance(notifier, CeleryNotifier)

        with patch.object(send_notification, "delay") as delay:
            notifier.notify("bob@example.com", "approval_requested", {"operation_id": "op-1"})

        delay.assert_called_once_with("bob@example.com", "approval_requested", {"operation_id": "op-1"})
