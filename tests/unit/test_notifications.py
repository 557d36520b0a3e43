"""Tests for notification rendering and delivery."""

from unittest.mock import AsyncMock, patch

import pytest
from jinja2.exceptions import UndefinedError

from sopgate.core.config import Settings
from sopgate.services.notifications import (
    EMAIL_TEMPLATES,
    EmailNotifier,
    NotificationEvent,
    render_notification,
)


REQUEST_CONTEXT = {
    "operation_id": "op-1",
    "operation_kind": "DELETE",
    "document_name": "forklift.pdf",
    "requested_by": "alice@example.com",
    "requested_at": "2026-03-01T09:00:00",
    "comments": "superseded",
    "approver_name": "Bob",
    "review_url": "http://localhost:5173/approvals/op-1",
    "auto_approve_days": 7,
}

DECISION_CONTEXT = {
    "operation_id": "op-1",
    "operation_kind": "MODIFY",
    "document_name": "lockout.pdf",
    "requested_by": "alice@example.com",
    "reviewed_by": "Bob",
    "reviewed_at": "2026-03-02T10:00:00",
    "comments": "wrong brand",
}


def test_every_event_has_a_template():
    assert set(EMAIL_TEMPLATES) == set(NotificationEvent)


def test_render_request():
    subject, body = render_notification(NotificationEvent.APPROVAL_REQUESTED, REQUEST_CONTEXT)

    assert subject == "[SOP Gate] Approval required: DELETE forklift.pdf"
    assert "Requested By: alice@example.com" in body
    assert "Notes: superseded" in body
    assert "http://localhost:5173/approvals/op-1" in body
    assert "after 7 days" in body


@pytest.mark.parametrize(
    "event, expected_subject",
    [
        (NotificationEvent.OPERATION_APPROVED, "[SOP Gate] Approved: MODIFY lockout.pdf"),
        (NotificationEvent.OPERATION_AUTO_APPROVED, "[SOP Gate] Auto-approved: MODIFY lockout.pdf"),
        (NotificationEvent.OPERATION_REJECTED, "[SOP Gate] Rejected: MODIFY lockout.pdf"),
    ],
)
def test_render_decisions(event, expected_subject):
    subject, body = render_notification(event, DECISION_CONTEXT)

    assert subject == expected_subject
    assert "wrong brand" in body


def test_render_accepts_event_value():
    subject, _ = render_notification("operation_rejected", DECISION_CONTEXT)

    assert subject.startswith("[SOP Gate] Rejected")


def test_render_missing_context_fails():
    with pytest.raises(UndefinedError):
        render_notification(NotificationEvent.OPERATION_REJECTED, {"operation_kind": "DELETE"})


def test_send_skipped_when_disabled():
    notifier = EmailNotifier(Settings(notifications_enabled=False, smtp_host="smtp.example.com"))

    with patch("sopgate.services.notifications.aiosmtplib.send", new_callable=AsyncMock) as send:
        assert notifier.send("a@example.com", NotificationEvent.OPERATION_APPROVED, DECISION_CONTEXT) is False

    send.assert_not_called()


def test_send_skipped_without_smtp_host():
    notifier = EmailNotifier(Settings(notifications_enabled=True, smtp_host=None))

    assert notifier.send("a@example.com", NotificationEvent.OPERATION_APPROVED, DECISION_CONTEXT) is False


def test_send_delivers_over_smtp():
    settings = Settings(
        notifications_enabled=True,
        smtp_host="smtp.example.com",
        smtp_port=2525,
        smtp_from_email="sop@example.com",
    )
    notifier = EmailNotifier(settings)

    with patch("sopgate.services.notifications.aiosmtplib.send", new_callable=AsyncMock) as send:
        assert notifier.send("alice@example.com", NotificationEvent.OPERATION_REJECTED, DECISION_CONTEXT) is True

    message = send.call_args.args[0]
    assert message["To"] == "alice@example.com"
    assert message["Subject"] == "[SOP Gate] Rejected: MODIFY lockout.pdf"
    assert send.call_args.kwargs["hostname"] == "smtp.example.com"
    assert send.call_args.kwargs["port"] == 2525


def test_notify_swallows_delivery_errors():
    notifier = EmailNotifier(Settings(notifications_enabled=True, smtp_host="smtp.example.com"))

    with patch(
        "sopgate.services.notifications.aiosmtplib.send",
        new_callable=AsyncMock,
        side_effect=ConnectionRefusedError("no SMTP"),
    ):
        notifier.notify("alice@example.com", NotificationEvent.OPERATION_APPROVED, DECISION_CONTEXT)
