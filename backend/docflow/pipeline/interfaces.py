"""
Collaborator interfaces the engine and steps depend on.

The engine never talks to a database, an SFTP server, or a mail provider
directly.  It is handed objects satisfying these protocols: SQL-backed ones
in production (``docflow.pipeline.db_persist``, ``docflow.transport``),
in-memory fakes in tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Protocol

import httpx

from docflow.core.constants import DocumentKind, EmailProvider


# ═══════════════════════════════════════════════════════════
#  Value objects
# ═══════════════════════════════════════════════════════════

@dataclass(frozen=True)
class NotificationSettings:
    """Per extraction type switches for run outcome emails."""

    enable_success: bool = False
    enable_failure: bool = False
    success_template_id: str | None = None
    failure_template_id: str | None = None
    success_recipient_override: str | None = None
    failure_recipient_override: str | None = None


@dataclass(frozen=True)
class DocumentType:
    """Extraction/transformation type details a run needs."""

    id: str
    kind: str = DocumentKind.EXTRACTION
    name: str | None = None
    format_type: str | None = None
    filename_template: str | None = None
    field_mappings: list[dict[str, Any]] = field(default_factory=list)
    notifications: NotificationSettings = field(default_factory=NotificationSettings)


@dataclass(frozen=True)
class ApiProfile:
    base_url: str
    bearer_token: str | None = None


@dataclass(frozen=True)
class EmailProviderSettings:
    provider: str = EmailProvider.OFFICE365
    default_send_from_email: str = ""
    tenant_id: str = ""
    client_id: str = ""
    client_secret: str = ""
    refresh_token: str = ""


@dataclass(frozen=True)
class SftpTarget:
    host: str
    port: int = 22
    username: str = ""
    password: str = ""
    pdf_path: str | None = None
    json_path: str | None = None
    xml_path: str | None = None
    csv_path: str | None = None


@dataclass
class TransferRequest:
    """Everything the file transport needs for one upload."""

    target: SftpTarget
    content: str
    filename: str
    upload_type: str
    exact_filename: str | None = None
    original_filename: str | None = None
    format_type: str | None = None
    path_override: str | None = None
    content_is_base64: bool = False

    @property
    def file_types(self) -> dict[str, bool]:
        return {self.upload_type: True}


@dataclass
class EmailAttachment:
    filename: str
    content_base64: str
    content_type: str = "application/pdf"


@dataclass
class EmailMessage:
    to: str
    subject: str
    body: str
    from_address: str
    cc: str | None = None
    attachment: EmailAttachment | None = None


@dataclass
class SendResult:
    success: bool
    error: str | None = None
    provider_response: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NotificationTemplate:
    """A stored email template; subject, body, recipient and cc take {{path}} placeholders."""

    id: str
    template_type: str
    template_name: str = ""
    recipient_email: str | None = None
    subject_template: str = ""
    body_template: str = ""
    cc_emails: str | None = None
    bcc_emails: str | None = None
    attach_pdf: bool = False


# ═══════════════════════════════════════════════════════════
#  Protocols
# ═══════════════════════════════════════════════════════════

class DefinitionStore(Protocol):
    async def list_steps(self, workflow_id: str) -> list[dict[str, Any]]: ...

    async def get_document_type(self, type_id: str, kind: str) -> DocumentType | None: ...

    async def get_previous_group_fields(self, session_id: str, group_order: int) -> dict[str, Any]: ...


class BlobStore(Protocol):
    async def fetch_text(self, location: str) -> str: ...


class LogStore(Protocol):
    async def create_extraction_log(self, values: dict[str, Any]) -> str | None: ...

    async def create_execution_log(self, values: dict[str, Any]) -> str | None: ...

    async def update_execution_log(self, execution_log_id: str, values: dict[str, Any]) -> None: ...

    async def create_step_log(self, values: dict[str, Any]) -> str | None: ...


class CredentialStore(Protocol):
    async def get_api_profile(self, source_type: str, profile_id: str | None) -> ApiProfile | None: ...

    async def get_email_provider_settings(self) -> EmailProviderSettings | None: ...

    async def get_sftp_target(self) -> SftpTarget | None: ...


class UserDirectory(Protocol):
    async def get_email(self, user_id: str) -> str | None: ...


class FileTransport(Protocol):
    async def upload(self, request: TransferRequest) -> dict[str, Any]: ...


class EmailSender(Protocol):
    async def send(self, settings: EmailProviderSettings, message: EmailMessage) -> SendResult: ...


class NotificationStore(Protocol):
    async def get_template(self, template_id: str) -> NotificationTemplate | None: ...

    async def get_default_template(self, template_type: str) -> NotificationTemplate | None: ...

    async def create_notification_log(self, values: dict[str, Any]) -> str | None: ...


class PageExtractor(Protocol):
    def extract_page(self, document_base64: str, page_number: int) -> str: ...


# ═══════════════════════════════════════════════════════════
#  StepServices
# ═══════════════════════════════════════════════════════════

@dataclass
class StepServices:
    """The collaborators a step may call, bundled so steps take one argument."""

    credentials: CredentialStore
    users: UserDirectory
    file_transport: FileTransport
    email_senders: dict[str, EmailSender]
    page_extractor: PageExtractor
    notifications: NotificationStore | None = None
    http_timeout: float | None = None
    http_transport: httpx.AsyncBaseTransport | None = None
    clock: Callable[[], datetime] = datetime.now

    def http_client(self) -> httpx.AsyncClient:
        """A fresh client; use it as an async context manager."""
        return httpx.AsyncClient(timeout=self.http_timeout, transport=self.http_transport)
