"""
Run notifications: the success or failure email an extraction type can ask
for once a workflow run ends.

The template comes from the notification store: the one the extraction
type names, else the global default for the outcome.  Sending is
best-effort from the engine's point of view; every attempt, sent or not,
is written to the notification log.
"""

from __future__ import annotations

import re
from datetime import timezone
from typing import Any, Callable

from docflow.core.constants import NotificationStatus, NotificationType
from docflow.core.logging import get_logger
from docflow.pipeline.context import WorkflowContext
from docflow.pipeline.errors import EmailDeliveryError
from docflow.pipeline.interfaces import (
    DocumentType,
    EmailAttachment,
    EmailMessage,
    LogStore,
    NotificationTemplate,
    StepServices,
)
from docflow.pipeline.paths import get_value
from docflow.pipeline.templating import render

logger = get_logger(__name__)

UNKNOWN_PDF = "unknown.pdf"

_LINE_BREAK = re.compile(r"\r?\n")


def html_body(text: str) -> str:
    """Line breaks (real or written as a literal backslash-n) become <br> inside a plain HTML page."""
    formatted = _LINE_BREAK.sub("<br>", text or "").replace("\\n", "<br>")
    return f'<html><body style="font-family: Arial, sans-serif;">{formatted}</body></html>'


def notification_resolver(values: dict[str, Any], ctx: WorkflowContext) -> Callable[[str], Any]:
    """Exact keys of `values` first (dotted names included), then dotted paths, then the context."""

    def resolve(path: str) -> Any:
        if path in values:
            return values[path]
        value = get_value(values, path)
        return value if value is not None else ctx.get(path)

    return resolve


def notification_values(
    ctx: WorkflowContext,
    extraction_type_name: str | None,
    error_message: str | None = None,
) -> dict[str, Any]:
    sender = ctx.get("senderEmail")
    submitter = ctx.get("submitterEmail")
    values = dict(ctx.data)
    if error_message is not None:
        values["error_message"] = error_message
    values.update({
        "pdf_filename": ctx.get("originalPdfFilename") or ctx.get("pdfFilename") or UNKNOWN_PDF,
        "extraction_type_name": extraction_type_name,
        "sender_email": sender or submitter or "unknown",
        "submitter_email": submitter or sender or "unknown",
    })
    return values


class RunNotifier:
    """Sends the outcome email configured on an extraction type."""

    def __init__(self, services: StepServices, log_store: LogStore) -> None:
        self.services = services
        self.log_store = log_store

    async def notify(
        self,
        kind: NotificationType,
        document_type: DocumentType,
        ctx: WorkflowContext,
        *,
        error_message: str | None = None,
    ) -> bool:
        """
        Send the notification for `kind` if the extraction type enables it.

        Returns:
            True when an email was sent, False when none was due.

        Raises:
            EmailDeliveryError: the email was due but could not be sent
                (already written to the notification log).
        """
        settings = document_type.notifications
        success = kind == NotificationType.SUCCESS
        log = logger.bind(notification_type=str(kind), extraction_type_id=document_type.id)

        if not (settings.enable_success if success else settings.enable_failure):
            log.debug("Notifications not enabled for this extraction type")
            return False

        store = self.services.notifications
        if store is None:
            log.warning("No notification store configured, skipping notification")
            return False

        template = await self._template(kind, settings.success_template_id if success else settings.failure_template_id)
        if template is None:
            log.warning("No notification template found")
            return False

        values = notification_values(ctx, document_type.name, None if success else error_message)
        if success:
            recipient = (
                settings.success_recipient_override
                or template.recipient_email
                or ctx.get("senderEmail")
                or ctx.get("submitterEmail")
            )
        else:
            recipient = settings.failure_recipient_override or template.recipient_email
        if not recipient:
            log.warning("No recipient email configured for notifications")
            return False

        resolve = notification_resolver(values, ctx)
        recipient = render(recipient, resolve).result
        subject = render(template.subject_template, resolve).result
        body = render(template.body_template, resolve).result

        document = ctx.get("pdfBase64")
        attachment = None
        if template.attach_pdf and document:
            attachment = EmailAttachment(filename=values["pdf_filename"], content_base64=str(document))

        log.info("Sending run notification", to=recipient, subject=subject, template_id=template.id)
        status, send_error = NotificationStatus.SENT, None
        try:
            await self._send(recipient, subject, body, template, attachment)
        except Exception as exc:
            status, send_error = NotificationStatus.FAILED, str(exc)
            log.error("Run notification could not be sent", error=send_error)

        await self._log(ctx, document_type, kind, template, recipient, subject, body, status, send_error, attachment)

        if status != NotificationStatus.SENT:
            raise EmailDeliveryError(f"Failed to send notification: {send_error}")

        if ctx.execution_log_id:
            await self.log_store.update_execution_log(ctx.execution_log_id, {
                f"{kind}_notification_sent": True,
                "notification_sent_at": self.services.clock().astimezone(timezone.utc),
            })
        return True

    async def _template(self, kind: NotificationType, template_id: str | None) -> NotificationTemplate | None:
        store = self.services.notifications
        template = await store.get_template(template_id) if template_id else None
        if template is None:
            template = await store.get_default_template(kind)
        return template

    async def _send(
        self,
        recipient: str,
        subject: str,
        body: str,
        template: NotificationTemplate,
        attachment: EmailAttachment | None,
    ) -> None:
        provider = await self.services.credentials.get_email_provider_settings()
        if provider is None:
            raise EmailDeliveryError("Email configuration not found")
        sender = self.services.email_senders.get(provider.provider)
        if sender is None:
            raise EmailDeliveryError(f"Unsupported email provider '{provider.provider}'")

        result = await sender.send(provider, EmailMessage(
            to=recipient,
            subject=subject,
            body=html_body(body),
            from_address=provider.default_send_from_email,
            cc=template.cc_emails or None,
            attachment=attachment,
        ))
        if not result.success:
            raise EmailDeliveryError(f"Email sending failed: {result.error}")

    async def _log(
        self,
        ctx: WorkflowContext,
        document_type: DocumentType,
        kind: NotificationType,
        template: NotificationTemplate,
        recipient: str,
        subject: str,
        body: str,
        status: NotificationStatus,
        error: str | None,
        attachment: EmailAttachment | None,
    ) -> None:
        try:
            await self.services.notifications.create_notification_log({
                "workflow_execution_log_id": ctx.execution_log_id,
                "extraction_type_id": document_type.id,
                "notification_type": str(kind),
                "recipient_email": recipient,
                "subject": subject,
                "body": body,
                "cc_emails": template.cc_emails,
                "bcc_emails": template.bcc_emails,
                "send_status": str(status),
                "error_message": error,
                "pdf_attached": template.attach_pdf,
                "template_id": template.id,
                "sent_at": self.services.clock().astimezone(timezone.utc),
            })
        except Exception as exc:
            logger.warning("Notification log write failed (non-fatal)", error=str(exc))
