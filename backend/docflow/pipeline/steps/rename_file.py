"""
RenameFileStep: compute output filenames from a template.

Template lookup order:
    1. config ``filenameTemplate``
    2. context ``pageGroupFilenameTemplate``
    3. context ``extractionTypeFilename``
    4. config ``template`` (older rename_pdf steps)
    5. ``Remit_{{pdfFilename}}``

Placeholders resolve against the context first and the last API response
second.  The rendered name loses any known extension, optionally gains a
timestamp, and is then written back per requested file type.
"""

from __future__ import annotations

import re
from datetime import datetime

from docflow.core.constants import FormatType, TimestampFormat
from docflow.core.logging import get_logger
from docflow.pipeline.context import StepResult, WorkflowContext
from docflow.pipeline.definitions import RenameFileConfig
from docflow.pipeline.step import WorkflowStep
from docflow.pipeline.templating import render

logger = get_logger(__name__)

DEFAULT_TEMPLATE = "Remit_{{pdfFilename}}"

_KNOWN_EXTENSION_RE = re.compile(r"\.(pdf|csv|json|xml)$", re.IGNORECASE)

_TIMESTAMP_FORMATS: dict[str, str] = {
    TimestampFormat.YYYYMMDD: "%Y%m%d",
    TimestampFormat.YYYY_MM_DD: "%Y-%m-%d",
    TimestampFormat.YYYYMMDD_HHMMSS: "%Y%m%d_%H%M%S",
    TimestampFormat.YYYY_MM_DD_HH_MM_SS: "%Y-%m-%d_%H-%M-%S",
}

# (config flag attribute, extension, context key)
_RENAME_TARGETS = (
    ("rename_pdf", "pdf", "renamedPdfFilename"),
    ("rename_csv", "csv", "renamedCsvFilename"),
    ("rename_json", "json", "renamedJsonFilename"),
    ("rename_xml", "xml", "renamedXmlFilename"),
)

_FORMAT_EXTENSION = {
    FormatType.CSV: "csv",
    FormatType.JSON: "json",
    FormatType.XML: "xml",
}


def strip_known_extension(filename: str) -> str:
    return _KNOWN_EXTENSION_RE.sub("", filename)


def format_timestamp(fmt: str, now: datetime) -> str:
    return now.strftime(_TIMESTAMP_FORMATS.get(fmt, _TIMESTAMP_FORMATS[TimestampFormat.YYYYMMDD]))


class RenameFileStep(WorkflowStep):
    description = "Build output filenames from a template"

    async def execute(self, ctx: WorkflowContext) -> StepResult:
        started_at = self._now()
        config: RenameFileConfig = self.config

        template = self._select_template(ctx, config)
        rendered = render(template, ctx.lookup_with_fallback)
        if rendered.missing_paths:
            logger.warning(
                "Filename template placeholders unresolved",
                step=self.name,
                missing=rendered.missing_paths,
            )

        base_filename = strip_known_extension(rendered.result.strip())
        if config.append_timestamp:
            base_filename = f"{base_filename}_{format_timestamp(config.timestamp_format, self.services.clock())}"

        renamed: dict[str, str] = {}
        for flag, extension, key in _RENAME_TARGETS:
            if getattr(config, flag):
                renamed[extension] = f"{base_filename}.{extension}"
                ctx.set(key, renamed[extension])

        primary = self._primary_filename(ctx.format_type, renamed, base_filename)
        ctx.set("renamedFilename", primary)
        ctx.set("actualFilename", primary)

        logger.info("Filename resolved", step=self.name, primary_filename=primary, types=list(renamed))

        return self._success(started_at, output={
            "renamedFilenames": renamed,
            "primaryFilename": primary,
            "baseFilename": base_filename,
            "template": template,
            "resolvedPaths": rendered.resolved_paths,
        })

    @staticmethod
    def _select_template(ctx: WorkflowContext, config: RenameFileConfig) -> str:
        for candidate in (
            config.filename_template,
            ctx.get("pageGroupFilenameTemplate"),
            ctx.get("extractionTypeFilename"),
            config.template,
        ):
            if isinstance(candidate, str) and candidate.strip():
                return candidate
        return DEFAULT_TEMPLATE

    @staticmethod
    def _primary_filename(format_type: str, renamed: dict[str, str], base_filename: str) -> str:
        """Format-matching name first, then pdf, json, csv, xml, then the bare base name."""
        matching = _FORMAT_EXTENSION.get(format_type)
        if matching and matching in renamed:
            return renamed[matching]
        for extension in ("pdf", "json", "csv", "xml"):
            if extension in renamed:
                return renamed[extension]
        return base_filename
