"""
Production wiring: SQL-backed stores plus the real transports.

The API process passes the shared ``async_session`` factory; Celery tasks
pass a fresh one from ``make_session_factory()``.
"""

from __future__ import annotations

from docflow.core.config import settings
from docflow.core.constants import EmailProvider
from docflow.pipeline.db_persist import (
    SessionFactory,
    SqlCredentialStore,
    SqlDefinitionStore,
    SqlLogStore,
    SqlNotificationStore,
    SqlUserDirectory,
)
from docflow.pipeline.engine import WorkflowEngine
from docflow.pipeline.interfaces import StepServices
from docflow.transport.blob_store import HttpBlobStore
from docflow.transport.email_senders import GmailSender, Office365Sender
from docflow.transport.pdf_pages import PypdfPageExtractor
from docflow.transport.sftp import ParamikoFileTransport


def build_services(session_factory: SessionFactory) -> StepServices:
    return StepServices(
        credentials=SqlCredentialStore(session_factory),
        users=SqlUserDirectory(session_factory),
        file_transport=ParamikoFileTransport(),
        email_senders={
            EmailProvider.OFFICE365: Office365Sender(),
            EmailProvider.GMAIL: GmailSender(),
        },
        page_extractor=PypdfPageExtractor(),
        notifications=SqlNotificationStore(session_factory),
        http_timeout=settings.HTTP_TIMEOUT_SECONDS,
    )


def build_engine(session_factory: SessionFactory) -> WorkflowEngine:
    return WorkflowEngine(
        definition_store=SqlDefinitionStore(session_factory),
        log_store=SqlLogStore(session_factory),
        services=build_services(session_factory),
        blob_store=HttpBlobStore(),
        max_step_executions=settings.MAX_STEP_EXECUTIONS,
    )
