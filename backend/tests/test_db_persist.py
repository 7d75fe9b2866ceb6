"""Tests for the SQL-backed stores (in-memory SQLite)."""

from datetime import datetime, timedelta, timezone

import pytest

from docflow.core.constants import RunStatus, StepStatus
from docflow.db.models import (
    ApiProfile,
    DocumentType,
    EmailProviderConfig,
    NotificationTemplate,
    PageGroupData,
    SftpConfig,
    User,
)
from docflow.pipeline.db_persist import (
    SqlCredentialStore,
    SqlDefinitionStore,
    SqlLogStore,
    SqlNotificationStore,
    SqlUserDirectory,
)
from docflow.pipeline.definitions import load_definitions
from docflow.pipeline.engine import WorkflowEngine
from docflow.pipeline.request import WorkflowRunRequest
from docflow.repositories import execution_logs as log_repo
from docflow.repositories import notifications as notification_repo
from docflow.repositories import workflows as workflow_repo

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.mark.unit
class TestSqlDefinitionStore:
    async def test_list_steps_in_order(self, db_session, session_factory):
        await workflow_repo.create_step(db_session, id="b", workflow_id="wf-1", step_order=2,
                                        step_type="rename_file", step_name="Rename",
                                        config_json={"renamePdf": True})
        await workflow_repo.create_step(db_session, id="a", workflow_id="wf-1", step_order=1,
                                        step_type="conditional_check", step_name="Check",
                                        config_json={"fieldPath": "total"}, next_step_on_success_id="b")
        await workflow_repo.create_step(db_session, id="z", workflow_id="wf-2", step_order=1,
                                        step_type="rename_file", step_name="Other")
        await db_session.commit()

        records = await SqlDefinitionStore(session_factory).list_steps("wf-1")
        steps = load_definitions(records)

        assert [s.id for s in steps] == ["a", "b"]
        assert steps[0].next_on_success_id == "b"
        assert steps[1].config.rename_pdf is True

    async def test_document_type(self, db_session, session_factory):
        db_session.add(DocumentType(id="dt-1", kind="extraction", name="Invoice", format_type="CSV",
                                    filename_template="{{invoiceNumber}}",
                                    field_mappings=[{"fieldName": "b", "isWorkflowOnly": True}]))
        await db_session.commit()
        store = SqlDefinitionStore(session_factory)

        document_type = await store.get_document_type("dt-1", "extraction")

        assert document_type.format_type == "CSV"
        assert document_type.filename_template == "{{invoiceNumber}}"
        assert document_type.name == "Invoice"
        assert document_type.field_mappings == [{"fieldName": "b", "isWorkflowOnly": True}]
        assert document_type.notifications.enable_success is False
        assert await store.get_document_type("dt-1", "transformation") is None

    async def test_document_type_notification_settings(self, db_session, session_factory):
        db_session.add(DocumentType(id="dt-2", kind="extraction", name="Receipt",
                                    enable_success_notifications=True,
                                    success_notification_template_id="tpl-1",
                                    failure_recipient_email_override="oncall@example.com"))
        await db_session.commit()

        settings = (await SqlDefinitionStore(session_factory).get_document_type("dt-2", "extraction")).notifications

        assert settings.enable_success is True
        assert settings.enable_failure is False
        assert settings.success_template_id == "tpl-1"
        assert settings.failure_recipient_override == "oncall@example.com"

    async def test_previous_group_fields(self, db_session, session_factory):
        db_session.add_all([
            PageGroupData(session_id="sess-1", group_order=1, extracted_fields={"po": "PO-1"}),
            PageGroupData(session_id="sess-1", group_order=2, extracted_fields={"po": "PO-2", "vendor": "ACME"}),
            PageGroupData(session_id="sess-1", group_order=3, extracted_fields={"po": "PO-3"}),
            PageGroupData(session_id="sess-2", group_order=1, extracted_fields={"po": "other"}),
        ])
        await db_session.commit()

        fields = await SqlDefinitionStore(session_factory).get_previous_group_fields("sess-1", 3)

        assert fields == {"group1_po": "PO-1", "group2_po": "PO-2", "group2_vendor": "ACME"}


@pytest.mark.unit
class TestSqlLogStore:
    async def test_execution_and_step_logs(self, db_session, session_factory):
        store = SqlLogStore(session_factory)

        extraction_id = await store.create_extraction_log({"pdf_filename": "scan.pdf", "processing_mode": "extraction"})
        execution_id = await store.create_execution_log({
            "extraction_log_id": extraction_id,
            "workflow_id": "wf-1",
            "status": RunStatus.RUNNING,
            "context_data": {"seenAt": T0},
            "started_at": T0,
        })
        await store.create_step_log({
            "workflow_execution_log_id": execution_id,
            "workflow_id": "wf-1",
            "step_id": "s1",
            "step_name": "Rename",
            "step_type": "rename_file",
            "step_order": 1,
            "status": StepStatus.COMPLETED,
            "started_at": T0,
            "completed_at": T0 + timedelta(milliseconds=5),
            "duration_ms": 5,
            "input_data": {"config": {}},
            "output_data": {"primaryFilename": "INV-42.pdf"},
            "user_response": "Renamed",
        })
        await store.update_execution_log(execution_id, {"status": RunStatus.COMPLETED, "completed_at": T0})

        run = await log_repo.get_execution_log(db_session, execution_id)

        assert run.status == RunStatus.COMPLETED
        assert run.extraction_log_id == extraction_id
        assert run.context_data == {"seenAt": T0.isoformat(sep=" ")}
        assert [s.step_id for s in run.step_logs] == ["s1"]
        assert run.step_logs[0].output_data == {"primaryFilename": "INV-42.pdf"}


@pytest.mark.unit
class TestSqlNotificationStore:
    async def test_templates(self, db_session, session_factory):
        db_session.add_all([
            NotificationTemplate(id="tpl-1", template_type="success", template_name="Received",
                                 subject_template="Got {{pdf_filename}}", attach_pdf=True),
            NotificationTemplate(id="tpl-old", template_type="failure", is_global_default=True, created_at=T0),
            NotificationTemplate(id="tpl-new", template_type="failure", is_global_default=True,
                                 created_at=T0 + timedelta(days=1)),
        ])
        await db_session.commit()
        store = SqlNotificationStore(session_factory)

        template = await store.get_template("tpl-1")

        assert template.template_name == "Received"
        assert template.subject_template == "Got {{pdf_filename}}"
        assert template.attach_pdf is True
        assert (await store.get_default_template("failure")).id == "tpl-new"
        assert await store.get_default_template("success") is None
        assert await store.get_template("missing") is None

    async def test_notification_log(self, db_session, session_factory):
        store = SqlNotificationStore(session_factory)

        log_id = await store.create_notification_log({
            "workflow_execution_log_id": "run-1",
            "notification_type": "success",
            "recipient_email": "ops@example.com",
            "subject": "Done",
            "send_status": "sent",
            "sent_at": T0,
        })

        logs = await notification_repo.list_notification_logs(db_session, "run-1")
        assert [log.id for log in logs] == [log_id]
        assert logs[0].recipient_email == "ops@example.com"


@pytest.mark.unit
class TestSqlCredentialStore:
    async def test_api_profiles(self, db_session, session_factory):
        db_session.add_all([
            ApiProfile(id="old", source_type="main", name="Old", base_url="https://old", auth_token="t1",
                       updated_at=T0),
            ApiProfile(id="new", source_type="main", name="New", base_url="https://new", auth_token="t2",
                       updated_at=T0 + timedelta(days=1)),
            ApiProfile(id="off", source_type="main", name="Off", base_url="https://off", is_active=False,
                       updated_at=T0 + timedelta(days=2)),
            ApiProfile(id="sec-1", source_type="secondary", name="Carrier", base_url="https://carrier"),
        ])
        await db_session.commit()
        store = SqlCredentialStore(session_factory)

        main = await store.get_api_profile("main", None)
        secondary = await store.get_api_profile("secondary", "sec-1")

        assert (main.base_url, main.bearer_token) == ("https://new", "t2")
        assert secondary.base_url == "https://carrier"
        assert await store.get_api_profile("secondary", None) is None
        assert await store.get_api_profile("secondary", "old") is None

    async def test_email_and_sftp(self, db_session, session_factory):
        db_session.add(EmailProviderConfig(provider="gmail", default_send_from_email="ap@example.com",
                                           client_id="cid", refresh_token="rt"))
        db_session.add(SftpConfig(host="sftp.example.com", port=2222, username="u", password="p", csv_path="/csv"))
        await db_session.commit()
        store = SqlCredentialStore(session_factory)

        email = await store.get_email_provider_settings()
        target = await store.get_sftp_target()

        assert (email.provider, email.default_send_from_email, email.refresh_token) == ("gmail", "ap@example.com", "rt")
        assert email.tenant_id == ""
        assert (target.host, target.port, target.csv_path, target.pdf_path) == ("sftp.example.com", 2222, "/csv", None)

    async def test_nothing_configured(self, session_factory):
        store = SqlCredentialStore(session_factory)
        assert await store.get_email_provider_settings() is None
        assert await store.get_sftp_target() is None
        assert await store.get_api_profile("main", None) is None


@pytest.mark.unit
class TestSqlUserDirectory:
    async def test_active_users_only(self, db_session, session_factory):
        db_session.add_all([
            User(id="u1", email="clerk@example.com"),
            User(id="u2", email="gone@example.com", is_active=False),
        ])
        await db_session.commit()
        directory = SqlUserDirectory(session_factory)

        assert await directory.get_email("u1") == "clerk@example.com"
        assert await directory.get_email("u2") is None


@pytest.mark.integration
class TestEngineWithSqlStores:
    async def test_run_is_fully_logged(self, db_session, session_factory, services):
        await workflow_repo.create_step(db_session, id="s1", workflow_id="wf-1", step_order=1,
                                        step_type="rename_file", step_name="Rename",
                                        config_json={"filenameTemplate": "{{invoiceNumber}}", "renamePdf": True},
                                        user_response_template="Renamed to {renamedFilename}")
        await workflow_repo.create_step(db_session, id="s2", workflow_id="wf-1", step_order=2,
                                        step_type="rename_file", step_name="Guarded",
                                        config_json={"runIf": "approved"})
        await db_session.commit()

        engine = WorkflowEngine(
            definition_store=SqlDefinitionStore(session_factory),
            log_store=SqlLogStore(session_factory),
            services=services,
        )
        result = await engine.run(WorkflowRunRequest.model_validate({
            "workflowId": "wf-1",
            "extractedData": '{"invoiceNumber": "INV-42"}',
            "pdfFilename": "scan.pdf",
            "pdfBase64": "QUJD",
        }))

        assert result.success is True
        run = await log_repo.get_execution_log(db_session, result.execution_log_id)
        assert run.status == RunStatus.COMPLETED
        assert run.context_data["pdfBase64"] == "<base64: 4 chars>"
        assert run.context_data["renamedPdfFilename"] == "INV-42.pdf"
        assert [(s.step_id, s.status) for s in run.step_logs] == [
            ("s1", StepStatus.COMPLETED),
            ("s2", StepStatus.SKIPPED),
        ]
        assert run.step_logs[0].user_response == "Renamed to INV-42.pdf"
        assert run.step_logs[1].error_message == "runIf condition not met: approved = null"
