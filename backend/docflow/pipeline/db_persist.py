"""
SQL-backed collaborators for the workflow engine.

Each store owns a session factory and opens one short transaction per
call, so a run's log writes land as they happen and a failed write never
poisons the next one.  Pass the factory from ``docflow.db.session`` in the
API process, or one from ``make_session_factory()`` in a Celery worker
(which uses asyncio.run() per task and cannot share the API's pool).
"""

from __future__ import annotations

import json
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docflow.core.constants import DocumentKind, EmailProvider
from docflow.pipeline.interfaces import (
    ApiProfile,
    DocumentType,
    EmailProviderSettings,
    NotificationSettings,
    NotificationTemplate,
    SftpTarget,
)
from docflow.repositories import execution_logs as log_repo
from docflow.repositories import integrations as integration_repo
from docflow.repositories import notifications as notification_repo
from docflow.repositories import workflows as workflow_repo

SessionFactory = async_sessionmaker[AsyncSession]

# Columns whose values go through a JSON column and must be plain JSON.
_JSON_COLUMNS = ("context_data", "input_data", "output_data")


def _json_safe(value: Any) -> Any:
    """Round-trip through json so datetimes and other objects become strings."""
    return json.loads(json.dumps(value, default=str))


def _prepare(values: dict[str, Any]) -> dict[str, Any]:
    prepared = dict(values)
    for column in _JSON_COLUMNS:
        if prepared.get(column) is not None:
            prepared[column] = _json_safe(prepared[column])
    return prepared


class SqlDefinitionStore:
    """Workflow steps, document types and earlier page-group data."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self.session_factory = session_factory

    async def list_steps(self, workflow_id: str) -> list[dict[str, Any]]:
        async with self.session_factory() as session:
            steps = await workflow_repo.list_steps(session, workflow_id)
            return [workflow_repo.step_to_record(step) for step in steps]

    async def get_document_type(self, type_id: str, kind: str) -> DocumentType | None:
        async with self.session_factory() as session:
            row = await workflow_repo.get_document_type(session, type_id, kind)
            if row is None:
                return None
            return DocumentType(
                id=row.id,
                kind=row.kind or DocumentKind.EXTRACTION,
                name=row.name,
                format_type=row.format_type,
                filename_template=row.filename_template,
                field_mappings=list(row.field_mappings or []),
                notifications=NotificationSettings(
                    enable_success=bool(row.enable_success_notifications),
                    enable_failure=bool(row.enable_failure_notifications),
                    success_template_id=row.success_notification_template_id,
                    failure_template_id=row.failure_notification_template_id,
                    success_recipient_override=row.success_recipient_email_override,
                    failure_recipient_override=row.failure_recipient_email_override,
                ),
            )

    async def get_previous_group_fields(self, session_id: str, group_order: int) -> dict[str, Any]:
        """Fields of earlier groups flattened as ``group<N>_<field>``."""
        async with self.session_factory() as session:
            groups = await workflow_repo.list_previous_groups(session, session_id, group_order)
        fields: dict[str, Any] = {}
        for group in groups:
            for name, value in (group.extracted_fields or {}).items():
                fields[f"group{group.group_order}_{name}"] = value
        return fields


class SqlLogStore:
    """Extraction, run and step log writer."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self.session_factory = session_factory

    async def create_extraction_log(self, values: dict[str, Any]) -> str | None:
        async with self.session_factory() as session:
            async with session.begin():
                log = await log_repo.create_extraction_log(session, **_prepare(values))
                return log.id

    async def create_execution_log(self, values: dict[str, Any]) -> str | None:
        async with self.session_factory() as session:
            async with session.begin():
                log = await log_repo.create_execution_log(session, **_prepare(values))
                return log.id

    async def update_execution_log(self, execution_log_id: str, values: dict[str, Any]) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                await log_repo.update_execution_log(session, execution_log_id, **_prepare(values))

    async def create_step_log(self, values: dict[str, Any]) -> str | None:
        async with self.session_factory() as session:
            async with session.begin():
                log = await log_repo.create_step_log(session, **_prepare(values))
                return log.id


class SqlNotificationStore:
    """Notification templates and the notification log."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self.session_factory = session_factory

    async def get_template(self, template_id: str) -> NotificationTemplate | None:
        async with self.session_factory() as session:
            return _template(await notification_repo.get_template(session, template_id))

    async def get_default_template(self, template_type: str) -> NotificationTemplate | None:
        async with self.session_factory() as session:
            return _template(await notification_repo.get_default_template(session, str(template_type)))

    async def create_notification_log(self, values: dict[str, Any]) -> str | None:
        async with self.session_factory() as session:
            async with session.begin():
                log = await notification_repo.create_notification_log(session, **values)
                return log.id


def _template(row) -> NotificationTemplate | None:
    if row is None:
        return None
    return NotificationTemplate(
        id=row.id,
        template_type=row.template_type,
        template_name=row.template_name or "",
        recipient_email=row.recipient_email,
        subject_template=row.subject_template or "",
        body_template=row.body_template or "",
        cc_emails=row.cc_emails,
        bcc_emails=row.bcc_emails,
        attach_pdf=bool(row.attach_pdf),
    )


class SqlCredentialStore:
    """API profiles, email provider settings and the SFTP target."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self.session_factory = session_factory

    async def get_api_profile(self, source_type: str, profile_id: str | None) -> ApiProfile | None:
        async with self.session_factory() as session:
            row = await integration_repo.get_api_profile(session, source_type, profile_id)
            if row is None:
                return None
            return ApiProfile(base_url=row.base_url, bearer_token=row.auth_token)

    async def get_email_provider_settings(self) -> EmailProviderSettings | None:
        async with self.session_factory() as session:
            row = await integration_repo.get_email_provider_config(session)
            if row is None:
                return None
            return EmailProviderSettings(
                provider=row.provider or EmailProvider.OFFICE365,
                default_send_from_email=row.default_send_from_email or "",
                tenant_id=row.tenant_id or "",
                client_id=row.client_id or "",
                client_secret=row.client_secret or "",
                refresh_token=row.refresh_token or "",
            )

    async def get_sftp_target(self) -> SftpTarget | None:
        async with self.session_factory() as session:
            row = await integration_repo.get_sftp_config(session)
            if row is None:
                return None
            return SftpTarget(
                host=row.host,
                port=row.port or 22,
                username=row.username,
                password=row.password or "",
                pdf_path=row.pdf_path,
                json_path=row.json_path,
                xml_path=row.xml_path,
                csv_path=row.csv_path,
            )


class SqlUserDirectory:
    def __init__(self, session_factory: SessionFactory) -> None:
        self.session_factory = session_factory

    async def get_email(self, user_id: str) -> str | None:
        async with self.session_factory() as session:
            return await integration_repo.get_active_user_email(session, user_id)
