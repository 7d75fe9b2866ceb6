"""
WorkflowRunRequest: the invocation payload for one workflow run.

Field names follow the camelCase wire format of the upstream extraction
service; older payload names are accepted through alias choices.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from docflow.core.constants import DocumentKind, TriggerSource


class WorkflowRunRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    workflow_id: str = Field(alias="workflowId", min_length=1)

    extracted_data: Any = Field(default=None, alias="extractedData")
    extracted_data_location: str | None = Field(
        default=None,
        validation_alias=AliasChoices("extractedDataLocation", "extractedDataStoragePath", "extracted_data_location"),
    )

    extraction_type_id: str | None = Field(default=None, alias="extractionTypeId")
    transformation_type_id: str | None = Field(default=None, alias="transformationTypeId")

    pdf_filename: str | None = Field(default=None, alias="pdfFilename")
    original_pdf_filename: str | None = Field(default=None, alias="originalPdfFilename")
    pdf_page_count: int | None = Field(
        default=None,
        validation_alias=AliasChoices("pdfPageCount", "pdfPages", "pdf_page_count"),
    )
    pdf_location: str | None = Field(
        default=None,
        validation_alias=AliasChoices("pdfLocation", "pdfStoragePath", "pdf_location"),
    )
    pdf_bytes_base64: str | None = Field(
        default=None,
        validation_alias=AliasChoices("pdfBytesBase64", "pdfBase64", "pdf_bytes_base64"),
    )

    user_id: str | None = Field(default=None, alias="userId")
    page_group_filename_template: str | None = Field(default=None, alias="pageGroupFilenameTemplate")
    extraction_type_filename: str | None = Field(default=None, alias="extractionTypeFilename")

    # Multi-page-group documents: earlier groups of the same session feed later ones.
    session_id: str | None = Field(default=None, alias="sessionId")
    group_order: int | None = Field(default=None, alias="groupOrder")

    # Runs started by email monitoring carry the sender and an existing extraction log.
    trigger_source: str = Field(default=TriggerSource.MANUAL, alias="triggerSource")
    sender_email: str | None = Field(default=None, alias="senderEmail")
    extraction_log_id: str | None = Field(default=None, alias="extractionLogId")

    # Values templates may use that are never part of the uploaded record (JSON text or object).
    workflow_only_data: Any = Field(default=None, alias="workflowOnlyData")

    @field_validator("trigger_source", mode="before")
    @classmethod
    def _default_trigger(cls, value: Any) -> Any:
        return value or TriggerSource.MANUAL

    @model_validator(mode="after")
    def _has_data_source(self) -> WorkflowRunRequest:
        if self.extracted_data is None and not self.extracted_data_location:
            raise ValueError("Either extractedData or extractedDataLocation is required")
        return self

    @property
    def document_kind(self) -> str:
        if self.transformation_type_id:
            return DocumentKind.TRANSFORMATION
        return DocumentKind.EXTRACTION

    @property
    def document_type_id(self) -> str | None:
        return self.transformation_type_id or self.extraction_type_id
