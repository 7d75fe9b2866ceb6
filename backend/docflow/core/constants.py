"""Shared constants and enums used across the application."""

from enum import StrEnum


class RunStatus(StrEnum):
    """Overall status of a workflow execution."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class StepStatus(StrEnum):
    """Status of an individual workflow step."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class StepType(StrEnum):
    """The closed set of step variants the dispatcher knows how to run."""

    API_CALL = "api_call"
    API_ENDPOINT = "api_endpoint"
    RENAME_FILE = "rename_file"
    SFTP_UPLOAD = "sftp_upload"
    EMAIL_ACTION = "email_action"
    CONDITIONAL_CHECK = "conditional_check"


# Older step definitions still use these names.
STEP_TYPE_ALIASES: dict[str, StepType] = {
    "rename_pdf": StepType.RENAME_FILE,
    "csv_upload": StepType.SFTP_UPLOAD,
    "json_upload": StepType.SFTP_UPLOAD,
}


class FormatType(StrEnum):
    """Shape of the extracted data a workflow receives."""

    JSON = "JSON"
    CSV = "CSV"
    XML = "XML"


class DocumentKind(StrEnum):
    """Which kind of document type produced the data."""

    EXTRACTION = "extraction"
    TRANSFORMATION = "transformation"


class UploadType(StrEnum):
    """Content an sftp_upload step sends."""

    PDF = "pdf"
    JSON = "json"
    XML = "xml"
    CSV = "csv"


class TimestampFormat(StrEnum):
    """Timestamp suffix formats for rename_file."""

    YYYYMMDD = "YYYYMMDD"
    YYYY_MM_DD = "YYYY-MM-DD"
    YYYYMMDD_HHMMSS = "YYYYMMDD_HHMMSS"
    YYYY_MM_DD_HH_MM_SS = "YYYY-MM-DD_HH-MM-SS"


class ConditionOperator(StrEnum):
    """Comparison operators for conditional_check."""

    EXISTS = "exists"
    NOT_EXISTS = "not_exists"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_THAN_OR_EQUAL = "greater_than_or_equal"
    LESS_THAN_OR_EQUAL = "less_than_or_equal"


OPERATOR_ALIASES: dict[str, ConditionOperator] = {
    "eq": ConditionOperator.EQUALS,
    "ne": ConditionOperator.NOT_EQUALS,
    "notEquals": ConditionOperator.NOT_EQUALS,
    "notExists": ConditionOperator.NOT_EXISTS,
    "isNull": ConditionOperator.IS_NULL,
    "isNotNull": ConditionOperator.IS_NOT_NULL,
    "notContains": ConditionOperator.NOT_CONTAINS,
    "gt": ConditionOperator.GREATER_THAN,
    "lt": ConditionOperator.LESS_THAN,
    "gte": ConditionOperator.GREATER_THAN_OR_EQUAL,
    "lte": ConditionOperator.LESS_THAN_OR_EQUAL,
}


class AttachmentSource(StrEnum):
    """Where email_action takes the attachment filename from."""

    RENAMED_PDF_STEP = "renamed_pdf_step"
    TRANSFORM_SETUP_PDF = "transform_setup_pdf"
    ORIGINAL_PDF = "original_pdf"
    EXTRACTION_TYPE_FILENAME = "extraction_type_filename"
    LEGACY = "legacy"


class PdfEmailStrategy(StrEnum):
    """Which pages of the document an email attaches."""

    ALL_PAGES_IN_GROUP = "all_pages_in_group"
    SPECIFIC_PAGE_IN_GROUP = "specific_page_in_group"


class EmailProvider(StrEnum):
    """Supported outbound email providers."""

    OFFICE365 = "office365"
    GMAIL = "gmail"


class ApiSourceType(StrEnum):
    """Which API profile an api_endpoint step targets."""

    MAIN = "main"
    SECONDARY = "secondary"


class APIRequestMethod(StrEnum):
    """HTTP methods used in workflow API steps."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class TriggerSource(StrEnum):
    """What started a run; notification email steps need email monitoring."""

    MANUAL = "manual"
    EMAIL_MONITORING = "email_monitoring"


class NotificationType(StrEnum):
    """Run outcome a notification template is written for."""

    SUCCESS = "success"
    FAILURE = "failure"


class NotificationStatus(StrEnum):
    SENT = "sent"
    FAILED = "failed"
