"""Tests for the rename_file step."""

import pytest

from conftest import FIXED_NOW, make_context, make_definition
from docflow.core.constants import FormatType
from docflow.pipeline.steps.rename_file import RenameFileStep, format_timestamp, strip_known_extension


def _rename(config, services, step_type="rename_file"):
    return RenameFileStep(make_definition(step_type, config), services)


@pytest.mark.unit
class TestRenameFileStep:
    async def test_typed_filenames_from_template(self, services):
        ctx = make_context({"invoiceNumber": "INV-42"})
        step = _rename({"filenameTemplate": "{{invoiceNumber}}.pdf", "renamePdf": True, "renameCsv": True}, services)

        result = await step.execute(ctx)

        assert ctx.get("renamedPdfFilename") == "INV-42.pdf"
        assert ctx.get("renamedCsvFilename") == "INV-42.csv"
        assert ctx.get("renamedFilename") == "INV-42.pdf"
        assert ctx.get("actualFilename") == "INV-42.pdf"
        assert result.output["baseFilename"] == "INV-42"
        assert result.output["resolvedPaths"] == {"invoiceNumber": "INV-42"}

    async def test_format_matching_name_is_primary(self, services):
        ctx = make_context("a,b\n1,2", format_type=FormatType.CSV)
        ctx.last_api_response = {"invoiceNumber": "INV-42"}
        step = _rename({"filenameTemplate": "{{invoiceNumber}}", "renamePdf": True, "renameCsv": True}, services)

        await step.execute(ctx)

        assert ctx.get("renamedFilename") == "INV-42.csv"

    async def test_json_before_csv_when_format_has_no_match(self, services):
        ctx = make_context("<x/>", format_type=FormatType.XML)
        step = _rename({"filenameTemplate": "X", "renameCsv": True, "renameJson": True}, services)

        await step.execute(ctx)

        assert ctx.get("renamedFilename") == "X.json"

    async def test_timestamp_suffix(self, services):
        ctx = make_context({"invoiceNumber": "INV-42"})
        step = _rename({
            "filenameTemplate": "{{invoiceNumber}}",
            "appendTimestamp": True,
            "timestampFormat": "YYYYMMDD_HHMMSS",
            "renameJson": True,
        }, services)

        await step.execute(ctx)

        assert ctx.get("renamedJsonFilename") == "INV-42_20240315_093045.json"

    async def test_default_template(self, services):
        ctx = make_context({})
        result = await _rename({}, services).execute(ctx)
        assert result.output["template"] == "Remit_{{pdfFilename}}"
        assert ctx.get("renamedFilename") == "Remit_invoice"

    async def test_context_template_precedence(self, services):
        ctx = make_context(
            {"po": "PO-7"},
            metadata={"pdfFilename": "x.pdf", "pageGroupFilenameTemplate": "group_{{po}}", "extractionTypeFilename": "type_{{po}}"},
        )
        await _rename({"template": "legacy_{{po}}", "renamePdf": True}, services, "rename_pdf").execute(ctx)
        assert ctx.get("renamedPdfFilename") == "group_PO-7.pdf"

    async def test_unresolved_placeholder_kept(self, services):
        ctx = make_context({})
        await _rename({"filenameTemplate": "out_{{missing}}", "renameXml": True}, services).execute(ctx)
        assert ctx.get("renamedXmlFilename") == "out_{{missing}}.xml"


@pytest.mark.unit
class TestFilenameHelpers:
    @pytest.mark.parametrize("name, expected", [
        ("report.PDF", "report"),
        ("data.json", "data"),
        ("archive.tar.gz", "archive.tar.gz"),
        ("plain", "plain"),
    ])
    def test_strip_known_extension(self, name, expected):
        assert strip_known_extension(name) == expected

    def test_format_timestamp(self):
        assert format_timestamp("YYYY-MM-DD_HH-MM-SS", FIXED_NOW) == "2024-03-15_09-30-45"
        assert format_timestamp("unknown", FIXED_NOW) == "20240315"
