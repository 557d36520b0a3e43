"""Notification delivery for approval events.

Handles:
- Approval request emails to the assigned approver
- Approval, auto-approval and rejection emails to the requester
- Queued delivery through Celery with retry backoff

Notifications are best-effort. Callers never see a delivery failure.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import aiosmtplib
from jinja2 import Environment, StrictUndefined

from sopgate.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class NotificationEvent(str, Enum):
    """Events that produce a notification."""

    APPROVAL_REQUESTED = "approval_requested"
    OPERATION_APPROVED = "operation_approved"
    OPERATION_AUTO_APPROVED = "operation_auto_approved"
    OPERATION_REJECTED = "operation_rejected"


_env = Environment(undefined=StrictUndefined, autoescape=False, trim_blocks=True)


# Email templates
EMAIL_TEMPLATES = {
    NotificationEvent.APPROVAL_REQUESTED: {
        "subject": "[SOP Gate] Approval required: {{ operation_kind }} {{ document_name }}",
        "body": """
A document change is waiting for your review:

Operation: {{ operation_kind }}
Document: {{ document_name }}
Requested By: {{ requested_by }}
Requested At: {{ requested_at }}
{% if comments %}Notes: {{ comments }}
{% endif %}

Please review at: {{ review_url }}

Unreviewed requests are approved automatically after {{ auto_approve_days }} days.

---
SOP Gate
""",
    },
    NotificationEvent.OPERATION_APPROVED: {
        "subject": "[SOP Gate] Approved: {{ operation_kind }} {{ document_name }}",
        "body": """
Your request has been approved and applied:

Operation: {{ operation_kind }}
Document: {{ document_name }}
Approved By: {{ reviewed_by }}
Approved At: {{ reviewed_at }}
{% if comments %}Comments: {{ comments }}
{% endif %}

---
SOP Gate
""",
    },
    NotificationEvent.OPERATION_AUTO_APPROVED: {
        "subject": "[SOP Gate] Auto-approved: {{ operation_kind }} {{ document_name }}",
        "body": """
Your request was not reviewed in time and has been approved automatically:

Operation: {{ operation_kind }}
Document: {{ document_name }}
Approved At: {{ reviewed_at }}
{{ comments }}

---
SOP Gate
""",
    },
    NotificationEvent.OPERATION_REJECTED: {
        "subject": "[SOP Gate] Rejected: {{ operation_kind }} {{ document_name }}",
        "body": """
Your request has been rejected:

Operation: {{ operation_kind }}
Document: {{ document_name }}
Rejected By: {{ reviewed_by }}
Reason: {{ comments }}

No change was made to the document repository.

---
SOP Gate
""",
    },
}


def render_notification(event: NotificationEvent, context: Dict[str, Any]) -> Tuple[str, str]:
    """
    Render the subject and body for an event.

    Raises:
        ValueError: If no template exists for the event
    """
    template = EMAIL_TEMPLATES.get(NotificationEvent(event))
    if not template:
        raise ValueError(f"No email template for event type: {event}")
    subject = _env.from_string(template["subject"]).render(**context)
    body = _env.from_string(template["body"]).render(**context)
    return subject.strip(), body.strip() + "\n"


class Notifier(ABC):
    """Sends one notification. Implementations must not raise."""

    @abstractmethod
    def notify(
        self,
        recipient: str,
        subject_context: NotificationEvent,
        template_context: Dict[str, Any],
    ) -> None:
        """
        Deliver a notification.

        Args:
            recipient: Email address
            subject_context: Event selecting subject and template
            template_context: Values rendered into the template
        """


class EmailNotifier(Notifier):
    """Renders the event template and sends it over SMTP."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def notify(self, recipient, subject_context, template_context) -> None:
        try:
            self.send(recipient, subject_context, template_context)
        except Exception:
            logger.exception(f"Failed to send {subject_context} notification to {recipient}")

    def send(self, recipient: str, event: NotificationEvent, context: Dict[str, Any]) -> bool:
        """
        Render and deliver, raising on delivery errors.

        Returns:
            False when delivery was skipped (disabled or SMTP not configured)
        """
        if not self.settings.notifications_enabled:
            logger.info(f"Notifications disabled, skipping {event} for {recipient}")
            return False

        subject, body = render_notification(event, context)

        if not self.settings.smtp_host:
            logger.warning("SMTP not configured, skipping email delivery")
            return False

        asyncio.run(self._deliver_email(recipient, subject, body))
        logger.info(f"Sent {NotificationEvent(event).value} notification to {recipient}")
        return True

    async def _deliver_email(self, to_email: str, subject: str, body: str) -> None:
        """Actually deliver the email via SMTP."""
        msg = MIMEMultipart()
        msg["From"] = f"{self.settings.smtp_from_name} <{self.settings.smtp_from_email}>"
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(body, "plain"))

        await aiosmtplib.send(
            msg,
            hostname=self.settings.smtp_host,
            port=self.settings.smtp_port,
            username=self.settings.smtp_user,
            password=self.settings.smtp_password,
            use_tls=self.settings.smtp_use_tls,
            start_tls=self.settings.smtp_start_tls and not self.settings.smtp_use_tls,
        )


class CeleryNotifier(Notifier):
    """Queues delivery on the ``send_notification`` worker task."""

    def notify(self, recipient, subject_context, template_context) -> None:
        from sopgate.workers.approval_tasks import send_notification

        try:
            send_notification.delay(
                recipient,
                NotificationEvent(subject_context).value,
                template_context,
            )
        except Exception:
            logger.exception(f"Failed to queue {subject_context} notification for {recipient}")


def get_notifier(settings: Optional[Settings] = None) -> Notifier:
    """Notifier used by the API and the sweeper."""
    settings = settings or get_settings()
    if settings.celery_task_always_eager:
        return EmailNotifier(settings)
    return CeleryNotifier()
