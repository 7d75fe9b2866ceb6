"""
Step definitions: the immutable per-run description of each step.

Stored step rows carry a free-form ``config_json``.  Here it is parsed into
one pydantic model per step type, accepting the camelCase keys the step
editor writes and normalising the older config shapes still found in
saved workflows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from docflow.core.constants import (
    OPERATOR_ALIASES,
    STEP_TYPE_ALIASES,
    ApiSourceType,
    AttachmentSource,
    ConditionOperator,
    PdfEmailStrategy,
    StepType,
    TimestampFormat,
    UploadType,
)
from docflow.core.logging import get_logger
from docflow.pipeline.errors import StepConfigurationError, WorkflowDefinitionError

logger = get_logger(__name__)


# ═══════════════════════════════════════════════════════════
#  Config models
# ═══════════════════════════════════════════════════════════

class StepConfig(BaseModel):
    """Fields every step type accepts."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    skip_if: str | None = Field(default=None, alias="skipIf")
    run_if: str | None = Field(default=None, alias="runIf")


class ResponseMapping(BaseModel):
    """Copy one value from an API response into the context."""

    model_config = ConfigDict(populate_by_name=True)

    response_path: str = Field(default="", alias="responsePath")
    update_path: str = Field(default="", alias="updatePath")

    @property
    def is_complete(self) -> bool:
        return bool(self.response_path.strip() and self.update_path.strip())


def _lift_legacy_mapping(data: Any, response_key: str) -> Any:
    """Turn a single `<response_key>` + `updateJsonPath` pair into responseDataMappings."""
    if not isinstance(data, dict) or data.get("responseDataMappings"):
        return data
    response_path = data.get(response_key)
    update_path = data.get("updateJsonPath")
    if response_path and update_path:
        data = {
            **data,
            "responseDataMappings": [{"responsePath": response_path, "updatePath": update_path}],
        }
    return data


class ApiCallConfig(StepConfig):
    url: str = ""
    method: str = "POST"
    headers: dict[str, str] = Field(default_factory=dict)
    request_body: str = Field(default="", alias="requestBody")
    escape_single_quotes_in_body: bool = Field(default=False, alias="escapeSingleQuotesInBody")
    response_data_mappings: list[ResponseMapping] = Field(default_factory=list, alias="responseDataMappings")

    @model_validator(mode="before")
    @classmethod
    def _legacy_mapping(cls, data: Any) -> Any:
        return _lift_legacy_mapping(data, "responseDataPath")

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> str:
        return str(value or "POST").upper()


class QueryParameter(BaseModel):
    enabled: bool = False
    value: str | None = ""


class PathVariable(BaseModel):
    enabled: bool | None = True  # None counts as enabled
    value: str | None = ""


class RequestBodyFieldMapping(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    field_name: str = Field(default="", alias="fieldName")
    type: str = ""  # hardcoded | variable
    value: Any = None
    data_type: str = Field(default="string", alias="dataType")  # integer | number | boolean | string


class ApiEndpointConfig(StepConfig):
    api_source_type: ApiSourceType = Field(default=ApiSourceType.MAIN, alias="apiSourceType")
    secondary_api_id: str | None = Field(default=None, alias="secondaryApiId")
    api_path: str = Field(default="", alias="apiPath")
    http_method: str = Field(default="GET", alias="httpMethod")
    path_variable_config: dict[str, PathVariable] = Field(default_factory=dict, alias="pathVariableConfig")
    query_parameter_config: dict[str, QueryParameter] = Field(default_factory=dict, alias="queryParameterConfig")
    request_body_template: str = Field(default="", alias="requestBodyTemplate")
    request_body_field_mappings: list[RequestBodyFieldMapping] = Field(
        default_factory=list, alias="requestBodyFieldMappings"
    )
    response_data_mappings: list[ResponseMapping] = Field(default_factory=list, alias="responseDataMappings")

    @model_validator(mode="before")
    @classmethod
    def _legacy_mapping(cls, data: Any) -> Any:
        return _lift_legacy_mapping(data, "responsePath")

    @field_validator("path_variable_config", mode="before")
    @classmethod
    def _simple_path_variables(cls, value: Any) -> Any:
        # A bare string is the short form: always enabled.
        if isinstance(value, Mapping):
            return {
                name: {"enabled": True, "value": entry} if isinstance(entry, str) else entry
                for name, entry in value.items()
            }
        return value or {}

    @field_validator("request_body_template", mode="before")
    @classmethod
    def _blank_template(cls, value: Any) -> Any:
        return value or ""

    @field_validator("api_source_type", mode="before")
    @classmethod
    def _default_source(cls, value: Any) -> Any:
        return value or ApiSourceType.MAIN

    @field_validator("http_method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> str:
        return str(value or "GET").upper()


class RenameFileConfig(StepConfig):
    filename_template: str | None = Field(default=None, alias="filenameTemplate")
    template: str | None = None  # older rename_pdf steps
    append_timestamp: bool = Field(default=False, alias="appendTimestamp")
    timestamp_format: TimestampFormat = Field(default=TimestampFormat.YYYYMMDD, alias="timestampFormat")
    rename_pdf: bool = Field(default=False, alias="renamePdf")
    rename_csv: bool = Field(default=False, alias="renameCsv")
    rename_json: bool = Field(default=False, alias="renameJson")
    rename_xml: bool = Field(default=False, alias="renameXml")

    @field_validator("timestamp_format", mode="before")
    @classmethod
    def _known_format(cls, value: Any) -> Any:
        if value not in {f.value for f in TimestampFormat}:
            return TimestampFormat.YYYYMMDD
        return value


class SftpUploadConfig(StepConfig):
    upload_type: UploadType = Field(default=UploadType.PDF, alias="uploadType")
    sftp_path_override: str | None = Field(default=None, alias="sftpPathOverride")

    @field_validator("upload_type", mode="before")
    @classmethod
    def _lower_upload_type(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value


class EmailActionConfig(StepConfig):
    to: str = ""
    subject: str = ""
    body: str = ""
    from_: str | None = Field(default=None, alias="from")
    # None: regular emails attach nothing, notification emails follow the template.
    include_attachment: bool | None = Field(default=None, alias="includeAttachment")
    attachment_source: AttachmentSource = Field(default=AttachmentSource.TRANSFORM_SETUP_PDF, alias="attachmentSource")
    pdf_email_strategy: PdfEmailStrategy = Field(default=PdfEmailStrategy.ALL_PAGES_IN_GROUP, alias="pdfEmailStrategy")
    specific_page_to_email: int | None = Field(default=None, alias="specificPageToEmail")
    cc_user: bool = Field(default=False, alias="ccUser")

    # Notification mode: subject, body and recipient come from a stored template.
    is_notification_email: bool | None = Field(default=False, alias="isNotificationEmail")
    notification_template_id: str | None = Field(default=None, alias="notificationTemplateId")
    recipient_email_override: str | None = Field(default=None, alias="recipientEmailOverride")
    custom_field_mappings: dict[str, Any] = Field(default_factory=dict, alias="customFieldMappings")

    @property
    def notification_mode(self) -> bool:
        return self.is_notification_email is True and bool(self.notification_template_id)

    @field_validator("attachment_source", mode="before")
    @classmethod
    def _unknown_source_is_legacy(cls, value: Any) -> Any:
        if value is None:
            return AttachmentSource.TRANSFORM_SETUP_PDF
        if value not in {s.value for s in AttachmentSource}:
            return AttachmentSource.LEGACY
        return value

    @field_validator("pdf_email_strategy", mode="before")
    @classmethod
    def _default_strategy(cls, value: Any) -> Any:
        return value or PdfEmailStrategy.ALL_PAGES_IN_GROUP

    @field_validator("custom_field_mappings", mode="before")
    @classmethod
    def _mapping_or_empty(cls, value: Any) -> Any:
        return value if isinstance(value, Mapping) else {}


class ConditionalCheckConfig(StepConfig):
    field_path: str = Field(default="", validation_alias=AliasChoices("fieldPath", "jsonPath", "checkField", "field_path"))
    operator: ConditionOperator = Field(
        default=ConditionOperator.EXISTS,
        validation_alias=AliasChoices("operator", "conditionType"),
    )
    expected_value: Any = Field(default=None, alias="expectedValue")
    store_result_as: str | None = Field(default=None, alias="storeResultAs")

    @field_validator("field_path", mode="before")
    @classmethod
    def _strip_braces(cls, value: Any) -> str:
        text = str(value or "").strip()
        if text.startswith("{{") and text.endswith("}}"):
            text = text[2:-2]
        return text.strip()

    @field_validator("operator", mode="before")
    @classmethod
    def _canonical_operator(cls, value: Any) -> ConditionOperator:
        if not value:
            return ConditionOperator.EXISTS
        if value in OPERATOR_ALIASES:
            return OPERATOR_ALIASES[value]
        try:
            return ConditionOperator(value)
        except ValueError:
            logger.warning("Unknown condition operator, defaulting to exists", operator=value)
            return ConditionOperator.EXISTS


CONFIG_MODELS: dict[StepType, type[StepConfig]] = {
    StepType.API_CALL: ApiCallConfig,
    StepType.API_ENDPOINT: ApiEndpointConfig,
    StepType.RENAME_FILE: RenameFileConfig,
    StepType.SFTP_UPLOAD: SftpUploadConfig,
    StepType.EMAIL_ACTION: EmailActionConfig,
    StepType.CONDITIONAL_CHECK: ConditionalCheckConfig,
}


# ═══════════════════════════════════════════════════════════
#  StepDefinition
# ═══════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StepDefinition:
    """One configured step of a workflow, immutable for the whole run."""

    id: str
    order: int
    type: StepType
    name: str
    config: StepConfig
    raw_config: dict[str, Any] = field(default_factory=dict)
    next_on_success_id: str | None = None
    next_on_failure_id: str | None = None
    user_response_template: str | None = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> StepDefinition:
        """
        Parse a stored step row (column names, snake_case).

        Raises:
            StepConfigurationError: unknown step type or invalid config.
        """
        step_id = str(record["id"])
        name = record.get("step_name") or f"Step {record.get('step_order')}"
        step_type = parse_step_type(record.get("step_type"), step_id=step_id, step_name=name)
        raw_config = dict(record.get("config_json") or {})

        try:
            config = CONFIG_MODELS[step_type].model_validate(raw_config)
        except ValidationError as exc:
            raise StepConfigurationError(
                f"Invalid configuration for step '{name}': {exc.errors(include_url=False)}",
                step_id=step_id,
                step_name=name,
            ) from exc

        return cls(
            id=step_id,
            order=int(record.get("step_order") or 0),
            type=step_type,
            name=name,
            config=config,
            raw_config=raw_config,
            next_on_success_id=_optional_id(record.get("next_step_on_success_id")),
            next_on_failure_id=_optional_id(record.get("next_step_on_failure_id")),
            user_response_template=record.get("user_response_template"),
        )


def parse_step_type(value: Any, *, step_id: str | None = None, step_name: str | None = None) -> StepType:
    if value in STEP_TYPE_ALIASES:
        return STEP_TYPE_ALIASES[value]
    try:
        return StepType(value)
    except ValueError:
        raise StepConfigurationError(
            f"Unknown step type '{value}'",
            step_id=step_id,
            step_name=step_name,
        ) from None


def _optional_id(value: Any) -> str | None:
    return str(value) if value else None


def load_definitions(records: list[Mapping[str, Any]]) -> list[StepDefinition]:
    """
    Parse and validate a workflow's step rows, returning them sorted by order.

    Raises:
        WorkflowDefinitionError: no steps, duplicate orders, or dangling branch targets.
        StepConfigurationError: a step row does not parse.
    """
    if not records:
        raise WorkflowDefinitionError("No steps found in workflow")

    steps = sorted((StepDefinition.from_record(r) for r in records), key=lambda s: s.order)

    orders = [s.order for s in steps]
    if len(set(orders)) != len(orders):
        raise WorkflowDefinitionError(f"Duplicate step orders in workflow: {orders}")

    known_ids = {s.id for s in steps}
    for step in steps:
        for target in (step.next_on_success_id, step.next_on_failure_id):
            if target and target not in known_ids:
                raise WorkflowDefinitionError(
                    f"Step '{step.name}' branches to unknown step '{target}'",
                    step_id=step.id,
                    step_name=step.name,
                )
    return steps
