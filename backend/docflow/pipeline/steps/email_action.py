"""
EmailActionStep: send a templated email through the configured provider.

``to``, ``subject``, ``body`` and ``from`` are templates.  Every placeholder
and the value it resolved to is returned as ``fieldMappings`` so the step
log shows what the recipient actually received.  The source document can be
attached whole or as a single page.

With ``isNotificationEmail`` and a ``notificationTemplateId`` the step sends
a stored notification template instead, and logs it like a run
notification.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any

from docflow.core.constants import AttachmentSource, NotificationStatus, PdfEmailStrategy
from docflow.core.logging import get_logger
from docflow.pipeline.context import StepResult, WorkflowContext
from docflow.pipeline.definitions import EmailActionConfig
from docflow.pipeline.errors import EmailDeliveryError, PageExtractionError, StepConfigurationError
from docflow.pipeline.interfaces import EmailAttachment, EmailMessage, EmailProviderSettings, EmailSender
from docflow.pipeline.notifications import UNKNOWN_PDF, notification_resolver
from docflow.pipeline.step import WorkflowStep
from docflow.pipeline.templating import render

logger = get_logger(__name__)

DEFAULT_ATTACHMENT_NAME = "attachment.pdf"


class EmailActionStep(WorkflowStep):
    description = "Send an email, optionally with the document attached"

    async def execute(self, ctx: WorkflowContext) -> StepResult:
        started_at = self._now()
        config: EmailActionConfig = self.config

        if config.notification_mode:
            return await self._send_notification(ctx, config, started_at)

        field_mappings: dict[str, Any] = {}

        def _render(template: str | None) -> str:
            outcome = render(template, ctx.get)
            field_mappings.update(outcome.field_mappings)
            return outcome.result

        to = _render(config.to)
        subject = _render(config.subject)
        body = _render(config.body)
        from_address = _render(config.from_) if config.from_ else ""

        attachment = await self._attachment(ctx, config, _render)
        cc = await self._cc_address(ctx, config)
        provider_settings, sender = await self._provider(ctx)

        message = EmailMessage(
            to=to,
            subject=subject,
            body=body,
            from_address=from_address or provider_settings.default_send_from_email,
            cc=cc,
            attachment=attachment,
        )

        logger.info(
            "Sending email",
            step=self.name,
            provider=provider_settings.provider,
            to=to,
            has_attachment=attachment is not None,
            cc=bool(cc),
        )
        result = await sender.send(provider_settings, message)
        if not result.success:
            raise EmailDeliveryError(f"Email sending failed: {result.error}", **self._error_context(ctx))

        return self._success(started_at, output={
            "success": True,
            "message": "Email sent successfully",
            "emailResult": {"success": result.success, **result.provider_response},
            "processedConfig": {
                "to": to,
                "subject": subject,
                "from": message.from_address,
                "cc": cc,
            },
            "fieldMappings": field_mappings,
            "attachmentIncluded": attachment is not None,
            "attachmentFilename": attachment.filename if attachment else None,
        })

    # ─── Notification mode ─────────────────────────────

    async def _send_notification(self, ctx: WorkflowContext, config: EmailActionConfig, started_at: datetime) -> StepResult:
        store = self.services.notifications
        template = await store.get_template(config.notification_template_id) if store else None
        if template is None:
            raise StepConfigurationError("Notification template not found", **self._error_context(ctx))

        values = dict(ctx.data)
        values.update({
            "timestamp": self.services.clock().isoformat(),
            "pdf_filename": ctx.get("originalPdfFilename") or ctx.get("pdfFilename") or UNKNOWN_PDF,
            "sender_email": ctx.get("senderEmail") or ctx.get("sender_email"),
        })
        custom_fields: list[str] = []
        for name, value in config.custom_field_mappings.items():
            if isinstance(value, str) and value.strip():
                values[name] = render(value, ctx.get).result
                custom_fields.append(name)

        resolve = notification_resolver(values, ctx)
        to = render(config.recipient_email_override or template.recipient_email or "", resolve).result
        subject = render(template.subject_template, resolve).result
        body = render(template.body_template, resolve).result
        cc = render(template.cc_emails, resolve).result if template.cc_emails else None

        attach = template.attach_pdf if config.include_attachment is None else config.include_attachment
        document = ctx.get("pdfBase64")
        attachment = None
        if attach and document:
            filename = ctx.get("pdfFilename") or ctx.get("originalPdfFilename") or DEFAULT_ATTACHMENT_NAME
            attachment = EmailAttachment(filename=filename, content_base64=str(document))

        provider_settings, sender = await self._provider(ctx)
        logger.info(
            "Sending notification email",
            step=self.name,
            template=template.template_name,
            to=to,
            has_attachment=attachment is not None,
        )
        result = await sender.send(provider_settings, EmailMessage(
            to=to,
            subject=subject,
            body=body.replace("\n", "<br>"),
            from_address=provider_settings.default_send_from_email,
            cc=cc,
            attachment=attachment,
        ))
        if not result.success:
            raise EmailDeliveryError(
                f"Notification email sending failed: {result.error}", **self._error_context(ctx)
            )

        try:
            await store.create_notification_log({
                "workflow_execution_log_id": ctx.execution_log_id,
                "extraction_type_id": ctx.get("extractionTypeId"),
                "notification_type": template.template_type,
                "recipient_email": to,
                "subject": subject,
                "body": body,
                "cc_emails": template.cc_emails or None,
                "bcc_emails": template.bcc_emails or None,
                "send_status": str(NotificationStatus.SENT),
                "pdf_attached": attachment is not None,
                "template_id": template.id,
                "sent_at": self.services.clock(),
            })
        except Exception as exc:
            logger.warning("Notification log write failed (non-fatal)", step=self.name, error=str(exc))

        return self._success(started_at, output={
            "success": True,
            "message": "Notification email sent successfully",
            "emailResult": {"success": result.success, **result.provider_response},
            "notificationMode": True,
            "templateUsed": template.template_name,
            "processedConfig": {
                "to": to,
                "subject": subject,
                "body": body,
                "cc": template.cc_emails or None,
            },
            "customFieldsApplied": custom_fields or None,
            "attachmentIncluded": attachment is not None,
            "attachmentFilename": attachment.filename if attachment else None,
        })

    # ─── Provider ──────────────────────────────────────

    async def _provider(self, ctx: WorkflowContext) -> tuple[EmailProviderSettings, EmailSender]:
        provider_settings = await self.services.credentials.get_email_provider_settings()
        if provider_settings is None:
            raise StepConfigurationError("Email configuration not found", **self._error_context(ctx))

        sender = self.services.email_senders.get(provider_settings.provider)
        if sender is None:
            raise StepConfigurationError(
                f"Unsupported email provider '{provider_settings.provider}'",
                **self._error_context(ctx),
            )
        return provider_settings, sender

    # ─── Attachment ────────────────────────────────────

    async def _attachment(self, ctx: WorkflowContext, config: EmailActionConfig, render_template) -> EmailAttachment | None:
        document = ctx.get("pdfBase64")
        if not config.include_attachment or not document:
            return None

        filename = self._attachment_filename(ctx, config, render_template)
        content = str(document)

        page = config.specific_page_to_email
        if config.pdf_email_strategy == PdfEmailStrategy.SPECIFIC_PAGE_IN_GROUP and page:
            try:
                content = await asyncio.to_thread(self.services.page_extractor.extract_page, content, page)
            except Exception as exc:
                raise PageExtractionError(
                    f"Failed to extract page {page} from PDF: {exc}",
                    **self._error_context(ctx),
                ) from exc

        return EmailAttachment(filename=filename, content_base64=content)

    @staticmethod
    def _attachment_filename(ctx: WorkflowContext, config: EmailActionConfig, render_template) -> str:
        """Filename by attachment source; the extraction type filename is a template."""
        source = config.attachment_source

        def _type_filename() -> str | None:
            template = ctx.get("extractionTypeFilename")
            return render_template(template) if template else None

        if source == AttachmentSource.RENAMED_PDF_STEP:
            candidates = [lambda: ctx.get("renamedFilename")]
        elif source == AttachmentSource.TRANSFORM_SETUP_PDF:
            candidates = [lambda: ctx.get("transformSetupFilename"), lambda: ctx.get("pdfFilename")]
        elif source == AttachmentSource.ORIGINAL_PDF:
            candidates = []
        elif source == AttachmentSource.EXTRACTION_TYPE_FILENAME:
            candidates = [_type_filename]
        else:
            candidates = [lambda: ctx.get("renamedFilename"), _type_filename]

        # Evaluated lazily: a rendered template adds to the step's field mappings.
        for candidate in candidates:
            filename = candidate()
            if filename:
                return str(filename)
        return ctx.get("originalPdfFilename") or DEFAULT_ATTACHMENT_NAME

    # ─── CC ────────────────────────────────────────────

    async def _cc_address(self, ctx: WorkflowContext, config: EmailActionConfig) -> str | None:
        user_id = ctx.get("userId")
        if not config.cc_user or not user_id:
            return None
        try:
            return await self.services.users.get_email(str(user_id))
        except Exception as exc:
            logger.warning("Could not look up user email for CC (non-fatal)", user_id=user_id, error=str(exc))
            return None
