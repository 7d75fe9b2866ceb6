"""
WorkflowContext: mutable state object carried through every step.

This is the single source of truth for a workflow run.  Each step reads
from and writes to ``ctx.data`` through dotted paths; writes are visible to
every later step.  The engine serialises snapshots of the context to the
execution log for auditability.

Record-like extracted data (a JSON object) is merged into the root of the
context, so ``invoiceNumber`` and ``extractedData.invoiceNumber`` name the
same slot.  The context remembers which root keys belong to the record, so
bookkeeping written by steps (renamed filenames, condition results, mapped
API values) never leaks into uploaded or posted payloads.  Tabular data (CSV text) stays an opaque string under
``extractedData``.
"""

from __future__ import annotations

import copy
import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from docflow.core.constants import FormatType, TriggerSource
from docflow.core.logging import get_logger
from docflow.pipeline.paths import get_value, set_value

logger = get_logger(__name__)

EXTRACTED_DATA_KEY = "extractedData"
_EXTRACTED_PREFIX = EXTRACTED_DATA_KEY + "."
_RECORD_HEAD = re.compile(r"[^.\[]*")

_REDACTED_KEYS = ("pdfBase64",)


# ═══════════════════════════════════════════════════════════
#  StepResult
# ═══════════════════════════════════════════════════════════

@dataclass
class StepResult:
    """Outcome of a single step execution."""

    step_id: str
    step_name: str
    status: str                     # StepStatus value
    step_type: str = ""
    step_order: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0
    error: str | None = None
    output: dict[str, Any] = field(default_factory=dict)
    condition_met: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialise for JSON storage."""
        return {
            "step_id": self.step_id,
            "step_name": self.step_name,
            "step_type": self.step_type,
            "step_order": self.step_order,
            "status": self.status,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "error": self.error,
        }


# ═══════════════════════════════════════════════════════════
#  WorkflowContext
# ═══════════════════════════════════════════════════════════

@dataclass
class WorkflowContext:
    """Carries all state between workflow steps."""

    # ─── Identity ──────────────────────────────────────
    workflow_id: str
    execution_log_id: str | None = None
    extraction_log_id: str | None = None
    trigger_source: str = TriggerSource.MANUAL

    # ─── Data ──────────────────────────────────────────
    data: dict[str, Any] = field(default_factory=dict)
    format_type: str = FormatType.JSON
    merged_record: bool = False
    record_keys: list[str] = field(default_factory=list)
    field_mappings: list[dict[str, Any]] = field(default_factory=list)
    last_api_response: Any = None

    # ─── Execution tracking ────────────────────────────
    total_steps: int = 0
    steps_executed: int = 0
    step_results: list[StepResult] = field(default_factory=list)

    # ─── Construction ──────────────────────────────────

    @classmethod
    def seed(
        cls,
        workflow_id: str,
        *,
        extracted_data: Any,
        format_type: str = FormatType.JSON,
        metadata: dict[str, Any] | None = None,
        field_mappings: list[dict[str, Any]] | None = None,
        group_fields: dict[str, Any] | None = None,
        workflow_only: dict[str, Any] | None = None,
    ) -> WorkflowContext:
        """
        Build the initial context for a run.

        Args:
            extracted_data: Raw extracted data (JSON text, mapping, or CSV text).
            format_type: FormatType of the document type that produced it.
            metadata: Seed keys (pdfFilename, pdfBase64, userId, ...).
            field_mappings: Document-type field definitions, used by output filters.
            group_fields: Prefixed fields from earlier page groups of the session.
            workflow_only: Values that feed templates but are never part of the record.
        """
        parsed = parse_extracted_data(extracted_data, format_type)
        data: dict[str, Any] = {
            EXTRACTED_DATA_KEY: parsed,
            "originalExtractedData": extracted_data,
            "formatType": format_type,
        }
        data.update({k: v for k, v in (metadata or {}).items() if v is not None})
        data.update(workflow_only or {})

        merged = format_type != FormatType.CSV and isinstance(parsed, dict)
        if merged:
            del data[EXTRACTED_DATA_KEY]
            data.update(parsed)

        if group_fields:
            data.update(group_fields)

        return cls(
            workflow_id=workflow_id,
            data=data,
            format_type=format_type,
            merged_record=merged,
            record_keys=list(parsed) if merged else [],
            field_mappings=list(field_mappings or []),
        )

    # ─── Path access ───────────────────────────────────

    def get(self, path: str) -> Any:
        """Resolve a dotted path; None when anything along it is missing."""
        path = path.strip()
        if self.merged_record:
            if path == EXTRACTED_DATA_KEY:
                return self.record_view()
            if path.startswith(_EXTRACTED_PREFIX):
                path = path[len(_EXTRACTED_PREFIX):]
        return get_value(self.data, path)

    def set(self, path: str, value: Any) -> None:
        """Write a value at a dotted path, creating intermediate containers."""
        path = path.strip()
        if self.merged_record:
            if path == EXTRACTED_DATA_KEY and isinstance(value, dict):
                self.data.update(value)
                self.record_keys = list(value)
                return
            if path.startswith(_EXTRACTED_PREFIX):
                path = path[len(_EXTRACTED_PREFIX):]
                head = _RECORD_HEAD.match(path).group(0)
                if head and head not in self.record_keys:
                    self.record_keys.append(head)
        set_value(self.data, path, value)

    def lookup_with_fallback(self, path: str) -> Any:
        """Resolve against the context, then against the last API response."""
        value = self.get(path)
        if value is None and self.last_api_response is not None:
            value = get_value(self.last_api_response, path.strip())
        return value

    # ─── Views ─────────────────────────────────────────

    @property
    def is_tabular(self) -> bool:
        return self.format_type == FormatType.CSV

    def record_view(self) -> dict[str, Any]:
        """The extracted record: its own keys, without anything steps added at the root."""
        return {k: self.data[k] for k in self.record_keys if k in self.data}

    def extracted_payload(self) -> Any:
        """The extracted data as steps should serialise it."""
        if self.merged_record:
            return self.record_view()
        return self.data.get(EXTRACTED_DATA_KEY)

    def snapshot(self) -> dict[str, Any]:
        """Deep copy of the data for log storage, with document bytes redacted."""
        snap = copy.deepcopy(self.data)
        if self.merged_record:
            snap[EXTRACTED_DATA_KEY] = self.record_view()
        for key in _REDACTED_KEYS:
            value = snap.get(key)
            if isinstance(value, str) and value:
                snap[key] = f"<base64: {len(value)} chars>"
        return snap


def parse_extracted_data(raw: Any, format_type: str) -> Any:
    """Decode JSON text for record-like formats; tabular text stays a string."""
    if not isinstance(raw, str) or format_type == FormatType.CSV:
        return raw
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning(
            "Extracted data is not valid JSON, keeping it as text",
            format_type=format_type,
            length=len(raw),
        )
        return raw
