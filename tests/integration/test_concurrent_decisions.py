"""Concurrent decisions on the same operation, each caller on its own session."""

import threading

import pytest

from sopgate.core.approval import ApprovalEngine, OperationKind
from sopgate.core.errors import ConflictError, NotFoundError
from sopgate.db.models import Document
from sopgate.services.audit import AuditLog
from tests.factories import create_document, create_pending_operation

pytestmark = pytest.mark.integration

CONTENDERS = 6


def _race(session_factory, settings, notifier, operation_id, decide):
    """Start all contenders together; return (winners, losers, unexpected errors)."""
    barrier = threading.Barrier(CONTENDERS)
    lock = threading.Lock()
    winners, losers, errors = [], [], []

    def contender(n):
        session = session_factory()
        engine = ApprovalEngine(session, notifier, settings=settings, audit_retry=lambda entry: None)
        try:
            barrier.wait()
            decide(engine, operation_id, n)
            with lock:
                winners.append(n)
        except (ConflictError, NotFoundError) as e:
            with lock:
                losers.append(type(e))
        except Exception as e:  # surfaced by the assertions below
            with lock:
                errors.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=contender, args=(n,)) for n in range(CONTENDERS)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    return winners, losers, errors


def test_concurrent_approvals_create_one_document(db_session, session_factory, settings, notifier):
    operation = create_pending_operation(db_session, kind=OperationKind.CREATE)
    db_session.commit()
    operation_id = operation.id

    winners, losers, errors = _race(
        session_factory, settings, notifier, operation_id,
        lambda engine, op_id, n: engine.approve(op_id, f"approver-{n}"),
    )

    assert errors == []
    assert len(winners) == 1
    assert len(losers) == CONTENDERS - 1

    db_session.expire_all()
    assert db_session.query(Document).count() == 1
    entries, total = AuditLog(db_session).list(pending_operation_id=operation_id, action="CREATE_APPROVED")
    assert total == 1
    assert entries[0].actor_name == f"approver-{winners[0]}"


def test_approve_and_reject_race_has_one_outcome(db_session, session_factory, settings, notifier):
    document = create_document(db_session)
    operation = create_pending_operation(db_session, kind=OperationKind.DELETE, document=document)
    db_session.commit()
    operation_id, document_id = operation.id, document.id

    def decide(engine, op_id, n):
        if n % 2:
            engine.approve(op_id, f"approver-{n}")
        else:
            engine.reject(op_id, f"approver-{n}", "keep it")

    winners, losers, errors = _race(session_factory, settings, notifier, operation_id, decide)

    assert errors == []
    assert len(winners) == 1

    db_session.expire_all()
    entries, total = AuditLog(db_session).list(pending_operation_id=operation_id)
    assert total == 1
    deleted = db_session.get(Document, document_id) is None
    assert entries[0].action == ("DELETE_APPROVED" if deleted else "DELETE_REJECTED")


def test_sweeper_and_human_race(db_session, session_factory, settings, notifier):
    operation = create_pending_operation(db_session, kind=OperationKind.CREATE)
    db_session.commit()
    operation_id = operation.id

    def decide(engine, op_id, n):
        if n == 0:
            if not engine.auto_approve(op_id):
                raise ConflictError("auto-approval lost")
        else:
            engine.approve(op_id, f"approver-{n}")

    winners, _, errors = _race(session_factory, settings, notifier, operation_id, decide)

    assert errors == []
    assert len(winners) == 1
    db_session.expire_all()
    assert db_session.query(Document).count() == 1
