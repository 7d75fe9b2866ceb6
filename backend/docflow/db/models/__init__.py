"""
Models package: re-exports Base and all models.

Import models here so `Base.metadata` picks up every table automatically.

When adding a new model:
    1. Create `docflow/db/models/<table_name>.py`
    2. Import it here
"""

from docflow.db.models.base import Base
from docflow.db.models.api_profile import ApiProfile
from docflow.db.models.document_type import DocumentType
from docflow.db.models.email_provider_config import EmailProviderConfig
from docflow.db.models.extraction_log import ExtractionLog
from docflow.db.models.notification_log import NotificationLog
from docflow.db.models.notification_template import NotificationTemplate
from docflow.db.models.page_group_data import PageGroupData
from docflow.db.models.sftp_config import SftpConfig
from docflow.db.models.user import User
from docflow.db.models.workflow_execution_log import WorkflowExecutionLog
from docflow.db.models.workflow_step import WorkflowStep
from docflow.db.models.workflow_step_log import WorkflowStepLog

__all__ = [
    "Base",
    "ApiProfile",
    "DocumentType",
    "EmailProviderConfig",
    "ExtractionLog",
    "NotificationLog",
    "NotificationTemplate",
    "PageGroupData",
    "SftpConfig",
    "User",
    "WorkflowExecutionLog",
    "WorkflowStep",
    "WorkflowStepLog",
]
