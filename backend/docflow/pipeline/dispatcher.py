"""
StepDispatcher: maps a step definition to the class that runs it.

STEP_REGISTRY covers every StepType member; a missing entry is caught at
import time rather than halfway through somebody's run.

To add a new step type:
    1. Add the member to StepType in core/constants.py
    2. Add its config model to CONFIG_MODELS in pipeline/definitions.py
    3. Implement the step in pipeline/steps/ and register it below
"""

from __future__ import annotations

from docflow.core.constants import StepType
from docflow.pipeline.definitions import StepDefinition
from docflow.pipeline.errors import StepConfigurationError
from docflow.pipeline.interfaces import StepServices
from docflow.pipeline.step import WorkflowStep
from docflow.pipeline.steps.api_call import ApiCallStep
from docflow.pipeline.steps.api_endpoint import ApiEndpointStep
from docflow.pipeline.steps.conditional_check import ConditionalCheckStep
from docflow.pipeline.steps.email_action import EmailActionStep
from docflow.pipeline.steps.rename_file import RenameFileStep
from docflow.pipeline.steps.sftp_upload import SftpUploadStep

# ═══════════════════════════════════════════════════════════
#  Step Registry
# ═══════════════════════════════════════════════════════════

STEP_REGISTRY: dict[StepType, type[WorkflowStep]] = {
    StepType.API_CALL: ApiCallStep,
    StepType.API_ENDPOINT: ApiEndpointStep,
    StepType.RENAME_FILE: RenameFileStep,
    StepType.SFTP_UPLOAD: SftpUploadStep,
    StepType.EMAIL_ACTION: EmailActionStep,
    StepType.CONDITIONAL_CHECK: ConditionalCheckStep,
}

_unregistered = set(StepType) - set(STEP_REGISTRY)
if _unregistered:
    raise RuntimeError(f"Step types without an implementation: {sorted(_unregistered)}")


class StepDispatcher:
    """Builds runnable step objects for one workflow run."""

    def __init__(
        self,
        services: StepServices,
        definitions: list[StepDefinition],
        registry: dict[StepType, type[WorkflowStep]] | None = None,
    ) -> None:
        self.services = services
        self.registry = registry or STEP_REGISTRY
        self.steps_by_id = {d.id: d for d in definitions}

    def build(self, definition: StepDefinition) -> WorkflowStep:
        """
        Return the step object for a definition.

        Raises:
            StepConfigurationError: no class registered for the step type.
        """
        step_class = self.registry.get(definition.type)
        if step_class is None:
            raise StepConfigurationError(
                f"No implementation registered for step type '{definition.type}'",
                step_id=definition.id,
                step_name=definition.name,
            )
        return step_class(definition, self.services, self.steps_by_id)
