"""Shared pytest fixtures for the docflow test suite.

Provides:
- In-memory fakes for every engine collaborator (stores, transports, senders)
- A StepServices bundle whose HTTP calls go to an httpx.MockTransport
- Step-definition builders
- In-memory async SQLite database for the SQL-backed stores and the API
"""

import os
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Callable

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("LOG_FORMAT", "console")

from docflow.core.constants import EmailProvider  # noqa: E402
from docflow.db.models import Base  # noqa: E402
from docflow.pipeline.context import WorkflowContext  # noqa: E402
from docflow.pipeline.definitions import StepDefinition  # noqa: E402
from docflow.pipeline.interfaces import (  # noqa: E402
    ApiProfile,
    DocumentType,
    EmailMessage,
    EmailProviderSettings,
    NotificationTemplate,
    SendResult,
    SftpTarget,
    StepServices,
    TransferRequest,
)

FIXED_NOW = datetime(2024, 3, 15, 9, 30, 45, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------

class InMemoryDefinitionStore:
    def __init__(self) -> None:
        self.steps: dict[str, list[dict[str, Any]]] = {}
        self.document_types: dict[tuple[str, str], DocumentType] = {}
        self.group_fields: dict[str, Any] = {}

    async def list_steps(self, workflow_id: str) -> list[dict[str, Any]]:
        return list(self.steps.get(workflow_id, []))

    async def get_document_type(self, type_id: str, kind: str) -> DocumentType | None:
        return self.document_types.get((type_id, kind))

    async def get_previous_group_fields(self, session_id: str, group_order: int) -> dict[str, Any]:
        return dict(self.group_fields)


class InMemoryLogStore:
    def __init__(self) -> None:
        self.extraction_logs: list[dict[str, Any]] = []
        self.execution_logs: dict[str, dict[str, Any]] = {}
        self.step_logs: list[dict[str, Any]] = []
        self.fail_writes = False

    def _check(self) -> None:
        if self.fail_writes:
            raise ConnectionError("log store unavailable")

    async def create_extraction_log(self, values: dict[str, Any]) -> str | None:
        self._check()
        self.extraction_logs.append(values)
        return f"extraction-{len(self.extraction_logs)}"

    async def create_execution_log(self, values: dict[str, Any]) -> str | None:
        self._check()
        log_id = f"execution-{len(self.execution_logs) + 1}"
        self.execution_logs[log_id] = dict(values)
        return log_id

    async def update_execution_log(self, execution_log_id: str, values: dict[str, Any]) -> None:
        self._check()
        self.execution_logs[execution_log_id].update(values)

    async def create_step_log(self, values: dict[str, Any]) -> str | None:
        self._check()
        self.step_logs.append(values)
        return f"step-log-{len(self.step_logs)}"


class InMemoryNotificationStore:
    def __init__(self) -> None:
        self.templates: dict[str, NotificationTemplate] = {}
        self.defaults: dict[str, NotificationTemplate] = {}
        self.logs: list[dict[str, Any]] = []
        self.fail_writes = False

    def add(self, template: NotificationTemplate, *, default: bool = False) -> NotificationTemplate:
        self.templates[template.id] = template
        if default:
            self.defaults[template.template_type] = template
        return template

    async def get_template(self, template_id: str) -> NotificationTemplate | None:
        return self.templates.get(template_id)

    async def get_default_template(self, template_type: str) -> NotificationTemplate | None:
        return self.defaults.get(str(template_type))

    async def create_notification_log(self, values: dict[str, Any]) -> str | None:
        if self.fail_writes:
            raise ConnectionError("notification log unavailable")
        self.logs.append(values)
        return f"notification-{len(self.logs)}"


class FakeCredentialStore:
    def __init__(self) -> None:
        self.api_profiles: dict[tuple[str, str | None], ApiProfile] = {
            ("main", None): ApiProfile(base_url="https://api.example.com", bearer_token="secret-token"),
        }
        self.email_settings: EmailProviderSettings | None = EmailProviderSettings(
            provider=EmailProvider.OFFICE365,
            default_send_from_email="noreply@example.com",
        )
        self.sftp_target: SftpTarget | None = SftpTarget(
            host="sftp.example.com", username="upload", password="pw", pdf_path="/in/pdf",
        )

    async def get_api_profile(self, source_type: str, profile_id: str | None) -> ApiProfile | None:
        key = (str(source_type), profile_id if source_type == "secondary" else None)
        return self.api_profiles.get(key)

    async def get_email_provider_settings(self) -> EmailProviderSettings | None:
        return self.email_settings

    async def get_sftp_target(self) -> SftpTarget | None:
        return self.sftp_target


class FakeUserDirectory:
    def __init__(self) -> None:
        self.emails: dict[str, str] = {"user-1": "clerk@example.com"}
        self.fail = False

    async def get_email(self, user_id: str) -> str | None:
        if self.fail:
            raise ConnectionError("directory unavailable")
        return self.emails.get(user_id)


class RecordingTransport:
    def __init__(self) -> None:
        self.requests: list[TransferRequest] = []

    async def upload(self, request: TransferRequest) -> dict[str, Any]:
        self.requests.append(request)
        return {"success": True, "remotePath": f"/remote/{request.filename}"}


class FakeEmailSender:
    def __init__(self, result: SendResult | None = None) -> None:
        self.result = result or SendResult(success=True, provider_response={"messageId": "m-1"})
        self.sent: list[tuple[EmailProviderSettings, EmailMessage]] = []

    async def send(self, settings: EmailProviderSettings, message: EmailMessage) -> SendResult:
        self.sent.append((settings, message))
        return self.result


class FakePageExtractor:
    def __init__(self) -> None:
        self.calls: list[tuple[str, int]] = []

    def extract_page(self, document_base64: str, page_number: int) -> str:
        self.calls.append((document_base64, page_number))
        if page_number > 3:
            raise ValueError(f"Page {page_number} is out of range (document has 3 pages)")
        return f"page-{page_number}-of-{document_base64}"


class HttpRecorder:
    """Routes MockTransport requests to a handler and keeps every request."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.handler: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(200, json={})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def http() -> HttpRecorder:
    return HttpRecorder()


@pytest.fixture
def credentials() -> FakeCredentialStore:
    return FakeCredentialStore()


@pytest.fixture
def users() -> FakeUserDirectory:
    return FakeUserDirectory()


@pytest.fixture
def file_transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture
def page_extractor() -> FakePageExtractor:
    return FakePageExtractor()


@pytest.fixture
def notification_store() -> InMemoryNotificationStore:
    return InMemoryNotificationStore()


@pytest.fixture
def services(http, credentials, users, file_transport, email_sender, page_extractor, notification_store) -> StepServices:
    return StepServices(
        credentials=credentials,
        users=users,
        file_transport=file_transport,
        email_senders={EmailProvider.OFFICE365: email_sender, EmailProvider.GMAIL: email_sender},
        page_extractor=page_extractor,
        notifications=notification_store,
        http_transport=httpx.MockTransport(http),
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def definition_store() -> InMemoryDefinitionStore:
    return InMemoryDefinitionStore()


@pytest.fixture
def log_store() -> InMemoryLogStore:
    return InMemoryLogStore()


def step_record(
    step_id: str,
    order: int,
    step_type: str,
    config: dict[str, Any] | None = None,
    *,
    name: str | None = None,
    on_success: str | None = None,
    on_failure: str | None = None,
    user_response: str | None = None,
    workflow_id: str = "wf-1",
) -> dict[str, Any]:
    """A stored step row as the definition store returns it."""
    return {
        "id": step_id,
        "workflow_id": workflow_id,
        "step_order": order,
        "step_type": step_type,
        "step_name": name or f"{step_type} {order}",
        "config_json": config or {},
        "next_step_on_success_id": on_success,
        "next_step_on_failure_id": on_failure,
        "user_response_template": user_response,
    }


def make_definition(step_type: str, config: dict[str, Any] | None = None, **kwargs: Any) -> StepDefinition:
    kwargs.setdefault("step_id", "step-1")
    kwargs.setdefault("order", 1)
    step_id = kwargs.pop("step_id")
    order = kwargs.pop("order")
    return StepDefinition.from_record(step_record(step_id, order, step_type, config, **kwargs))


def make_context(data: Any = None, **kwargs: Any) -> WorkflowContext:
    metadata = kwargs.pop("metadata", {"pdfFilename": "invoice.pdf"})
    return WorkflowContext.seed(
        kwargs.pop("workflow_id", "wf-1"),
        extracted_data=data if data is not None else {},
        metadata=metadata,
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db_engine():
    """A fresh in-memory SQLite database per test, all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.commit()
