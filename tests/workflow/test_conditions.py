"""Tests for the workflow-finish condition evaluator."""

import json

import pytest

from appdelivery.workflow.conditions import ConditionReason, StepOutcome, evaluate, parse_observed_generation


def _target(status="True", reason="Succeeded", message=None, generation=2):
    obj = {"metadata": {"name": "t", "generation": generation}}
    if reason is not None:
        obj["status"] = {
            "conditions": [
                {
                    "type": "workflow-finish",
                    "status": status,
                    "reason": reason,
                    "message": message if message is not None else json.dumps({"observedGeneration": generation}),
                }
            ]
        }
    return obj


class TestParseObservedGeneration:
    @pytest.mark.parametrize(
        "message,expected",
        [
            ('{"observedGeneration": 3}', 3),
            ('{"observedGeneration": "3"}', 3),
            ('{"observedGeneration": true}', None),
            ('{"observedGeneration": "x"}', None),
            ("{}", None),
            ("[1]", None),
            ("done", None),
            ("", None),
        ],
    )
    def test_parse(self, message, expected):
        assert parse_observed_generation(message) == expected


class TestEvaluate:
    def test_no_condition_is_pending(self):
        reading = evaluate(_target(reason=None), 2)
        assert reading.outcome is StepOutcome.PENDING
        assert not reading.stale

    def test_false_status_is_pending(self):
        assert evaluate(_target(status="False"), 2).outcome is StepOutcome.PENDING

    def test_succeeded_at_applied_generation(self):
        reading = evaluate(_target(), 2)
        assert reading.outcome is StepOutcome.SUCCEEDED
        assert reading.observed_generation == 2

    def test_bool_status_accepted(self):
        assert evaluate(_target(status=True), 2).outcome is StepOutcome.SUCCEEDED

    def test_older_generation_is_stale(self):
        reading = evaluate(_target(message='{"observedGeneration": 1}'), 2)
        assert reading.outcome is StepOutcome.PENDING
        assert reading.stale
        assert reading.observed_generation == 1

    def test_missing_generation_is_stale(self):
        reading = evaluate(_target(message="done"), 2)
        assert reading.outcome is StepOutcome.PENDING
        assert reading.stale

    def test_failed_keeps_message(self):
        reading = evaluate(_target(reason="Failed", message="rollout aborted"), 2)
        assert reading.outcome is StepOutcome.FAILED
        assert reading.message == "rollout aborted"

    def test_stopped(self):
        assert evaluate(_target(reason="Stopped", message=""), 2).outcome is StepOutcome.STOPPED

    def test_unknown_reason_is_pending(self):
        assert evaluate(_target(reason="Paused"), 2).outcome is StepOutcome.PENDING

    @pytest.mark.parametrize(
        "reason,outcome",
        [
            (ConditionReason.SUCCEEDED, StepOutcome.SUCCEEDED),
            (ConditionReason.FAILED, StepOutcome.FAILED),
            (ConditionReason.STOPPED, StepOutcome.STOPPED),
        ],
    )
    def test_reported_reasons(self, reason, outcome):
        # controllers write the plain string value
        assert evaluate(_target(reason=reason.value), 2).outcome is outcome
        assert evaluate(_target(reason=reason), 2).outcome is outcome

    def test_reason_is_case_sensitive(self):
        assert evaluate(_target(reason="succeeded"), 2).outcome is StepOutcome.PENDING
