"""Tests for the sftp_upload step."""

import json

import pytest

from conftest import make_context, make_definition
from docflow.core.constants import FormatType, UploadType
from docflow.pipeline.errors import StepConfigurationError, StepDataError
from docflow.pipeline.steps.rename_file import RenameFileStep
from docflow.pipeline.steps.sftp_upload import SftpUploadStep

MAPPINGS = [
    {"fieldName": "a", "isWorkflowOnly": False},
    {"fieldName": "b", "isWorkflowOnly": True},
    {"fieldName": "c"},
]


def _upload(config, services):
    return SftpUploadStep(make_definition("sftp_upload", config, name="Upload"), services)


@pytest.mark.unit
class TestSftpUploadStep:
    async def test_pdf_uses_renamed_filename(self, services, file_transport):
        ctx = make_context({"x": 1}, metadata={"pdfFilename": "scan.pdf", "pdfBase64": "JVBERi0x"})
        ctx.set("renamedPdfFilename", "INV-42.pdf")

        result = await _upload({"uploadType": "pdf", "sftpPathOverride": "/custom"}, services).execute(ctx)

        request = file_transport.requests[0]
        assert request.filename == "INV-42.pdf"
        assert request.exact_filename == "INV-42"
        assert request.content == "JVBERi0x"
        assert request.content_is_base64 is True
        assert request.path_override == "/custom"
        assert request.original_filename == "scan.pdf"
        assert request.file_types == {UploadType.PDF: True}
        assert result.output["uploadResult"] == {"success": True, "remotePath": "/remote/INV-42.pdf"}

    async def test_pdf_requires_document(self, services):
        with pytest.raises(StepDataError, match="PDF base64 data not available"):
            await _upload({"uploadType": "pdf"}, services).execute(make_context({"x": 1}))

    async def test_json_filtered_and_pretty(self, services, file_transport):
        ctx = make_context({"a": 1, "b": 2}, field_mappings=MAPPINGS)
        await _upload({"uploadType": "json"}, services).execute(ctx)

        request = file_transport.requests[0]
        assert request.filename == "invoice.json"
        assert request.content == json.dumps({"a": 1}, indent=2)
        assert request.content_is_base64 is False

    async def test_csv_filtered(self, services, file_transport):
        ctx = make_context("a,b,c\n1,2,3", format_type=FormatType.CSV, field_mappings=MAPPINGS)
        await _upload({"uploadType": "CSV"}, services).execute(ctx)

        request = file_transport.requests[0]
        assert request.filename == "invoice.csv"
        assert request.content == "a,c\n1,3"

    async def test_csv_requires_text(self, services):
        with pytest.raises(StepDataError, match="CSV data not available or not in string format"):
            await _upload({"uploadType": "csv"}, services).execute(make_context({"a": 1}))

    async def test_xml_text_sent_as_is(self, services, file_transport):
        ctx = make_context("<invoice><id>1</id></invoice>", format_type=FormatType.XML)
        await _upload({"uploadType": "xml"}, services).execute(ctx)
        assert file_transport.requests[0].content == "<invoice><id>1</id></invoice>"

    async def test_empty_content_fails_before_transfer(self, services, file_transport):
        ctx = make_context("", format_type=FormatType.CSV)
        with pytest.raises(StepDataError, match="CSV content is empty before SFTP upload"):
            await _upload({"uploadType": "csv"}, services).execute(ctx)
        assert file_transport.requests == []

    async def test_missing_target(self, services, credentials):
        credentials.sftp_target = None
        with pytest.raises(StepConfigurationError, match="No SFTP configuration found"):
            await _upload({"uploadType": "json"}, services).execute(make_context({"a": 1}))

    async def test_json_after_rename_uploads_only_the_record(self, services, file_transport):
        ctx = make_context({"invoice": "INV-1"})
        rename = RenameFileStep(
            make_definition("rename_file", {"filenameTemplate": "{{invoice}}", "renameJson": True}, name="Rename"),
            services,
        )
        await rename.execute(ctx)
        await _upload({"uploadType": "json"}, services).execute(ctx)

        request = file_transport.requests[0]
        assert request.filename == "INV-1.json"
        assert json.loads(request.content) == {"invoice": "INV-1"}
