"""Workflow engine: context handoff, condition evaluation, step dispatch."""

from appdelivery.workflow.conditions import ConditionReading, StepOutcome, evaluate
from appdelivery.workflow.context import WorkflowContext
from appdelivery.workflow.dispatcher import AppliedStep, DefaultStepRenderer, StepDispatcher, StepRenderer
from appdelivery.workflow.engine import ReconcileResult, WorkflowEngine

__all__ = [
    "ConditionReading",
    "StepOutcome",
    "evaluate",
    "WorkflowContext",
    "AppliedStep",
    "DefaultStepRenderer",
    "StepDispatcher",
    "StepRenderer",
    "ReconcileResult",
    "WorkflowEngine",
]
