"""
Branch controller: pre-step guards and post-step routing.

Guards:
    skipIf  skip the step when the path resolves to exactly True
    runIf   skip the step unless the path resolves to exactly True

Notification email steps (email_action with ``isNotificationEmail``) are
skipped unless the run was started by email monitoring.

Routing: only conditional_check steps branch.  A true condition follows
``next_on_success_id``, a false one ``next_on_failure_id``; with no target
set execution continues with the next step in order.
"""

from __future__ import annotations

from docflow.core.constants import StepType, TriggerSource
from docflow.pipeline.context import StepResult, WorkflowContext
from docflow.pipeline.definitions import StepDefinition

NOTIFICATION_STEP_SKIP_REASON = "Notification email steps only run when triggered by email monitoring"


def skip_reason(definition: StepDefinition, ctx: WorkflowContext) -> str | None:
    """Return why the step should be skipped, or None to run it."""
    config = definition.config

    if config.skip_if:
        value = ctx.get(config.skip_if)
        if value is True:
            return f"skipIf condition met: {config.skip_if} = true"

    if config.run_if:
        value = ctx.get(config.run_if)
        if value is not True:
            return f"runIf condition not met: {config.run_if} = {_describe(value)}"

    if (
        definition.type == StepType.EMAIL_ACTION
        and config.is_notification_email is True
        and ctx.trigger_source == TriggerSource.MANUAL
    ):
        return NOTIFICATION_STEP_SKIP_REASON

    return None


def next_index(
    steps: list[StepDefinition],
    current_index: int,
    result: StepResult | None = None,
) -> int:
    """Index of the step to run after `steps[current_index]`."""
    definition = steps[current_index]
    if (
        result is not None
        and definition.type == StepType.CONDITIONAL_CHECK
        and result.condition_met is not None
    ):
        target = definition.next_on_success_id if result.condition_met else definition.next_on_failure_id
        if target:
            for index, candidate in enumerate(steps):
                if candidate.id == target:
                    return index
    return current_index + 1


def _describe(value) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
