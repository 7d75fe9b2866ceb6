"""
ConditionalCheckStep: evaluate one condition and record the outcome.

The boolean result is stored in the context (``storeResultAs``, default
``condition_<order>_result``) so later guards can use it, and is handed to
the engine for routing to ``nextStepOnSuccess`` / ``nextStepOnFailure``.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any

from docflow.core.constants import ConditionOperator
from docflow.core.logging import get_logger
from docflow.pipeline.context import StepResult, WorkflowContext
from docflow.pipeline.definitions import ConditionalCheckConfig
from docflow.pipeline.step import WorkflowStep

logger = get_logger(__name__)

_LEADING_NUMBER_RE = re.compile(r"^\s*[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")


def as_text(value: Any) -> str:
    """Text form used by string comparisons."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def as_number(value: Any) -> float | None:
    """Parse the leading number of a value; None when there is none."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return None if math.isnan(value) else float(value)
    match = _LEADING_NUMBER_RE.match(str(value))
    return float(match.group(0)) if match else None


def evaluate_condition(operator: ConditionOperator, actual: Any, expected: Any) -> bool:
    if operator == ConditionOperator.EXISTS:
        return actual is not None and actual != ""
    if operator == ConditionOperator.NOT_EXISTS:
        return actual is None or actual == ""
    if operator == ConditionOperator.IS_NULL:
        return actual is None
    if operator == ConditionOperator.IS_NOT_NULL:
        return actual is not None
    if operator == ConditionOperator.EQUALS:
        return as_text(actual) == as_text(expected)
    if operator == ConditionOperator.NOT_EQUALS:
        return as_text(actual) != as_text(expected)
    if operator == ConditionOperator.CONTAINS:
        return as_text(expected) in as_text(actual)
    if operator == ConditionOperator.NOT_CONTAINS:
        return as_text(expected) not in as_text(actual)

    left, right = as_number(actual), as_number(expected)
    if left is None or right is None:
        return False
    if operator == ConditionOperator.GREATER_THAN:
        return left > right
    if operator == ConditionOperator.LESS_THAN:
        return left < right
    if operator == ConditionOperator.GREATER_THAN_OR_EQUAL:
        return left >= right
    if operator == ConditionOperator.LESS_THAN_OR_EQUAL:
        return left <= right
    return actual is not None and actual != ""


class ConditionalCheckStep(WorkflowStep):
    description = "Evaluate a condition and choose the next step"

    async def execute(self, ctx: WorkflowContext) -> StepResult:
        started_at = self._now()
        config: ConditionalCheckConfig = self.config

        actual = ctx.get(config.field_path) if config.field_path else None
        met = evaluate_condition(config.operator, actual, config.expected_value)
        store_as = config.store_result_as or f"condition_{self.definition.order}_result"
        # A flat top-level key, even when the name contains dots.
        ctx.data[store_as] = met

        on_success = self.workflow_steps.get(self.definition.next_on_success_id or "")
        on_failure = self.workflow_steps.get(self.definition.next_on_failure_id or "")
        selected = on_success if met else on_failure

        logger.info(
            "Condition evaluated",
            step=self.name,
            field_path=config.field_path,
            operator=config.operator,
            condition_met=met,
            next_step=selected.name if selected else "sequential",
        )

        return self._success(started_at, condition_met=met, output={
            "conditionMet": met,
            "fieldPath": config.field_path,
            "operator": config.operator,
            "actualValue": actual,
            "expectedValue": config.expected_value,
            "storeResultAs": store_as,
            "nextStepOnSuccess": on_success.name if on_success else None,
            "nextStepOnSuccessOrder": on_success.order if on_success else None,
            "nextStepOnFailure": on_failure.name if on_failure else None,
            "nextStepOnFailureOrder": on_failure.order if on_failure else None,
            "selectedNextStep": selected.name if selected else None,
            "selectedNextStepOrder": selected.order if selected else None,
            "routingDecision": (
                f"Jumping to '{selected.name}'" if selected else "Continuing to the next step in order"
            ),
        })
