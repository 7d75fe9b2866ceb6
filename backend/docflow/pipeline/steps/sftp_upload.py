"""
SftpUploadStep: push one artefact of the run to the configured SFTP target.

``uploadType`` picks what is sent:

    pdf   the source document (base64, required)
    json  the extracted record, workflow-only fields removed
    xml   raw XML text when the data is text, otherwise the record as JSON
    csv   the CSV text, workflow-only columns removed

Filenames come from an earlier rename_file step when one ran.
"""

from __future__ import annotations

import json
from typing import Any

from docflow.core.constants import UploadType
from docflow.core.logging import get_logger
from docflow.pipeline.context import StepResult, WorkflowContext
from docflow.pipeline.definitions import SftpUploadConfig
from docflow.pipeline.errors import StepConfigurationError, StepDataError
from docflow.pipeline.interfaces import TransferRequest
from docflow.pipeline.output_filter import filter_csv_workflow_only_fields, filter_json_workflow_only_fields
from docflow.pipeline.step import WorkflowStep
from docflow.pipeline.steps.rename_file import strip_known_extension

logger = get_logger(__name__)

_RENAMED_KEYS = {
    UploadType.PDF: "renamedPdfFilename",
    UploadType.JSON: "renamedJsonFilename",
    UploadType.XML: "renamedXmlFilename",
    UploadType.CSV: "renamedCsvFilename",
}


class SftpUploadStep(WorkflowStep):
    description = "Upload a file to the SFTP target"

    async def execute(self, ctx: WorkflowContext) -> StepResult:
        started_at = self._now()
        config: SftpUploadConfig = self.config
        upload_type = config.upload_type

        target = await self.services.credentials.get_sftp_target()
        if target is None:
            raise StepConfigurationError(
                "No SFTP configuration found. Please configure SFTP settings.",
                **self._error_context(ctx),
            )

        filename = self._filename(ctx, upload_type)
        content, is_base64 = self._content(ctx, upload_type)
        if not content.strip():
            raise StepDataError(
                f"{upload_type.upper()} content is empty before SFTP upload",
                **self._error_context(ctx),
            )

        request = TransferRequest(
            target=target,
            content=content,
            filename=filename,
            upload_type=upload_type,
            exact_filename=strip_known_extension(filename),
            original_filename=ctx.get("originalPdfFilename") or ctx.get("pdfFilename"),
            format_type=ctx.format_type,
            path_override=config.sftp_path_override or None,
            content_is_base64=is_base64,
        )

        logger.info(
            "Uploading to SFTP",
            step=self.name,
            upload_type=upload_type,
            filename=filename,
            host=target.host,
            path_override=request.path_override,
        )
        upload_result = await self.services.file_transport.upload(request)

        return self._success(started_at, output={
            "uploadResult": upload_result,
            "filename": filename,
            "uploadType": upload_type,
        })

    @staticmethod
    def _filename(ctx: WorkflowContext, upload_type: UploadType) -> str:
        renamed = ctx.get(_RENAMED_KEYS[upload_type])
        if isinstance(renamed, str) and renamed:
            return renamed
        generic = (
            ctx.get("renamedFilename")
            or ctx.get("actualFilename")
            or ctx.get("pdfFilename")
            or "document"
        )
        return f"{strip_known_extension(str(generic))}.{upload_type}"

    def _content(self, ctx: WorkflowContext, upload_type: UploadType) -> tuple[str, bool]:
        """Return (content, content_is_base64)."""
        if upload_type == UploadType.PDF:
            document = ctx.get("pdfBase64")
            if not document:
                raise StepDataError("PDF base64 data not available", **self._error_context(ctx))
            return str(document), True

        if upload_type == UploadType.CSV:
            csv_text = ctx.get("extractedData")
            if not isinstance(csv_text, str):
                csv_text = ctx.get("originalExtractedData")
            if not isinstance(csv_text, str):
                raise StepDataError(
                    "CSV data not available or not in string format",
                    **self._error_context(ctx),
                )
            return filter_csv_workflow_only_fields(csv_text, ctx.field_mappings), False

        payload = ctx.extracted_payload()
        if upload_type == UploadType.XML and isinstance(payload, str):
            return payload, False
        return _serialise(filter_json_workflow_only_fields(payload, ctx.field_mappings)), False


def _serialise(payload: Any) -> str:
    if payload is None:
        return ""
    return json.dumps(payload, indent=2, ensure_ascii=False)
