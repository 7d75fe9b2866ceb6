"""Tests for skip/run guards and post-step routing."""

import pytest

from conftest import make_context, make_definition, step_record
from docflow.core.constants import StepStatus, TriggerSource
from docflow.pipeline.branching import NOTIFICATION_STEP_SKIP_REASON, next_index, skip_reason
from docflow.pipeline.context import StepResult
from docflow.pipeline.definitions import load_definitions


def _result(condition_met):
    return StepResult(step_id="x", step_name="x", status=StepStatus.COMPLETED, condition_met=condition_met)


@pytest.mark.unit
class TestSkipReason:
    def test_no_guards(self):
        assert skip_reason(make_definition("rename_file"), make_context()) is None

    def test_skip_if_true(self):
        definition = make_definition("rename_file", {"skipIf": "flags.skip"})
        ctx = make_context({"flags": {"skip": True}})
        assert skip_reason(definition, ctx) == "skipIf condition met: flags.skip = true"

    def test_skip_if_truthy_but_not_true(self):
        definition = make_definition("rename_file", {"skipIf": "flags.skip"})
        assert skip_reason(definition, make_context({"flags": {"skip": "yes"}})) is None

    def test_run_if_missing(self):
        definition = make_definition("rename_file", {"runIf": "approved"})
        assert skip_reason(definition, make_context()) == "runIf condition not met: approved = null"

    def test_run_if_false(self):
        definition = make_definition("rename_file", {"runIf": "approved"})
        assert skip_reason(definition, make_context({"approved": False})) == "runIf condition not met: approved = false"

    def test_run_if_true(self):
        definition = make_definition("rename_file", {"runIf": "approved"})
        assert skip_reason(definition, make_context({"approved": True})) is None

    def test_notification_email_skipped_on_manual_trigger(self):
        definition = make_definition("email_action", {"isNotificationEmail": True, "notificationTemplateId": "tpl-1"})
        assert skip_reason(definition, make_context()) == NOTIFICATION_STEP_SKIP_REASON

    def test_notification_email_runs_for_email_monitoring(self):
        definition = make_definition("email_action", {"isNotificationEmail": True, "notificationTemplateId": "tpl-1"})
        ctx = make_context()
        ctx.trigger_source = TriggerSource.EMAIL_MONITORING
        assert skip_reason(definition, ctx) is None

    def test_regular_email_runs_on_manual_trigger(self):
        definition = make_definition("email_action", {"to": "x@example.com"})
        assert skip_reason(definition, make_context()) is None


@pytest.mark.unit
class TestNextIndex:
    steps = load_definitions([
        step_record("s1", 1, "conditional_check", on_success="s3", on_failure="s4"),
        step_record("s2", 2, "rename_file"),
        step_record("s3", 3, "rename_file"),
        step_record("s4", 4, "conditional_check"),
        step_record("s5", 5, "rename_file"),
    ])

    def test_condition_met_follows_success(self):
        assert next_index(self.steps, 0, _result(True)) == 2

    def test_condition_not_met_follows_failure(self):
        assert next_index(self.steps, 0, _result(False)) == 3

    def test_no_target_is_sequential(self):
        assert next_index(self.steps, 3, _result(True)) == 4

    def test_non_conditional_is_sequential(self):
        assert next_index(self.steps, 1, _result(None)) == 2
