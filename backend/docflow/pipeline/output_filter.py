"""
Output filters: strip workflow-only fields before data leaves the system.

A document type's field mappings mark some fields ``isWorkflowOnly``: they
exist so steps can use them (lookup keys, routing flags) but must not be
delivered.  Field mapping items look like::

    {"fieldName": "vendorCode", "isWorkflowOnly": true, ...}
"""

from __future__ import annotations

import csv
import io
from typing import Any

from docflow.core.logging import get_logger

logger = get_logger(__name__)


def workflow_only_names(field_mappings: list[dict[str, Any]]) -> set[str]:
    return {
        str(m.get("fieldName"))
        for m in field_mappings or []
        if m.get("isWorkflowOnly") and m.get("fieldName")
    }


def filter_csv_workflow_only_fields(csv_text: str, field_mappings: list[dict[str, Any]]) -> str:
    """
    Drop workflow-only columns from CSV text.

    Line endings and the presence of a trailing newline are preserved.
    """
    excluded = workflow_only_names(field_mappings)
    if not excluded or not csv_text:
        return csv_text

    rows = list(csv.reader(io.StringIO(csv_text)))
    if not rows:
        return csv_text

    header = rows[0]
    keep = [i for i, name in enumerate(header) if name.strip() not in excluded]
    if len(keep) == len(header):
        return csv_text

    line_terminator = "\r\n" if "\r\n" in csv_text else "\n"
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator=line_terminator)
    for row in rows:
        writer.writerow([row[i] for i in keep if i < len(row)])

    filtered = buffer.getvalue()
    if not csv_text.endswith(("\n", "\r")):
        filtered = filtered[: -len(line_terminator)]

    logger.info(
        "CSV workflow-only columns removed",
        removed=[header[i] for i in range(len(header)) if i not in keep],
        kept=len(keep),
    )
    return filtered


def filter_json_workflow_only_fields(data: Any, field_mappings: list[dict[str, Any]]) -> Any:
    """
    Keep only the output (non workflow-only) fields of record-like data.

    Lists are filtered item by item.  Without any workflow-only mapping the
    data is returned unchanged.
    """
    if not data or not field_mappings or not workflow_only_names(field_mappings):
        return data

    output_names = {
        str(m.get("fieldName"))
        for m in field_mappings
        if not m.get("isWorkflowOnly") and m.get("fieldName")
    }

    def _filter(value: Any) -> Any:
        if isinstance(value, list):
            return [_filter(item) for item in value]
        if isinstance(value, dict):
            return {k: v for k, v in value.items() if k in output_names}
        return value

    return _filter(data)
