"""Workflow Engine - per-application, level-triggered step state machine.

The engine is re-entered on every reconciliation pass. All of its state lives
in ``Application.status.workflow`` (a :class:`~appdelivery.models.WorkflowStatus`),
so a pass can resume where the previous one stopped, in this process or
another. A pass never blocks waiting for a step: when the step under the
cursor is not terminal the pass ends with a requeue delay.

ARCHITECTURE
────────────
::

    Idle ──► PreRendering ──► Rendered ──► Running ──► Succeeded
                 │   assemble +                │
                 │   persist artifact          ├──► Failed
                 ├──► Failed                   └──► Stopped
                 └──► Stopped

    per stage:  cursor = first step of the stage whose phase is not terminal
                apply(cursor)  ─►  evaluate(workflow-finish)
                   pending    → stay running, requeue
                   succeeded  → advance cursor (same pass)
                   failed     → halt stage, state Failed
                   stopped    → halt stage, state Stopped

Ordering:
    Steps run strictly by index within a stage; step N+1 is never applied
    in a pass that has not seen step N succeed (now or in an earlier pass).

Revision changes:
    A status recorded for another revision is discarded and the workflow
    restarts from its first step against the new revision. A revision older
    than the recorded one is a stale read and is ignored.

Persistence:
    ``reconcile`` mutates ``app.obj['status']``; the caller writes it back
    with the Application's resourceVersion as precondition.
"""

from __future__ import annotations

from dataclasses import dataclass

from appdelivery.assemble.assembler import AppManifests, AssemblyResult
from appdelivery.assemble.bundle import persist_artifact
from appdelivery.assemble.options import WorkloadOption
from appdelivery.core.errors import (
    AssemblyError,
    BadRevisionNameError,
    DeliveryError,
    get_retry_after,
    is_retryable,
)
from appdelivery.core.labels import CONDITION_ASSEMBLED, CONDITION_WORKFLOW_FINISHED
from appdelivery.core.logging import get_logger
from appdelivery.core.naming import extract_revision_num
from appdelivery.core.objects import set_condition
from appdelivery.core.settings import ControllerSettings
from appdelivery.core.store import ObjectStore
from appdelivery.models import (
    Application,
    ApplicationRevision,
    StepPhase,
    StepStage,
    WorkflowState,
    WorkflowStatus,
    WorkflowStepStatus,
)
from appdelivery.workflow.conditions import StepOutcome, evaluate
from appdelivery.workflow.dispatcher import StepDispatcher

logger = get_logger(__name__)

STALE_CONDITION_MESSAGE = "waiting for a terminal condition at the applied generation"


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of one reconciliation pass."""

    state: WorkflowState | None = None
    requeue_after: float | None = None
    message: str = ""

    @property
    def requeue(self) -> bool:
        return self.requeue_after is not None


def condition(condition_type: str, ok: bool, reason: str, message: str = "") -> dict[str, str]:
    return {
        "type": condition_type,
        "status": "True" if ok else "False",
        "reason": reason,
        "message": message,
    }


class WorkflowEngine:
    """
    Drives one Application's workflow for its current revision.

    Args:
        store: object store for step targets and the revision artifact.
        dispatcher: applies step targets.
        settings: requeue delays and assembler option configuration.
        options: explicit workload option chain for assembly (defaults to
            the chain enabled by ``settings``).
    """

    def __init__(
        self,
        store: ObjectStore,
        dispatcher: StepDispatcher,
        *,
        settings: ControllerSettings | None = None,
        options: list[WorkloadOption] | None = None,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.settings = settings or ControllerSettings()
        self.options = options
        self.last_assembly: AssemblyResult | None = None

    def reconcile(self, app: Application, revision: ApplicationRevision) -> ReconcileResult:
        """Advance the workflow as far as it can go in one pass."""
        status = self._status_for(app, revision)
        if status is None:
            return ReconcileResult(
                requeue_after=self.settings.requeue_after_seconds,
                message=f"revision {revision.name} is older than the recorded one",
            )

        requeue: float | None = None
        while not status.state.is_terminal and requeue is None:
            match status.state:
                case WorkflowState.IDLE:
                    self._transition(status, WorkflowState.PRE_RENDERING)
                case WorkflowState.PRE_RENDERING:
                    requeue = self._run_stage(app, revision, status, StepStage.PRE_RENDER)
                    if requeue is None and status.state is WorkflowState.PRE_RENDERING:
                        requeue = self._render(app, revision, status)
                case WorkflowState.RENDERED:
                    self._transition(status, WorkflowState.RUNNING)
                case WorkflowState.RUNNING:
                    requeue = self._run_stage(app, revision, status, StepStage.POST_RENDER)
                    if requeue is None and status.state is WorkflowState.RUNNING:
                        self._transition(status, WorkflowState.SUCCEEDED)

        if status.state.is_terminal:
            self._finish(app, status)
        app.workflow_status = status
        return ReconcileResult(state=status.state, requeue_after=requeue, message=status.message)

    # ------------------------------------------------------------------ #
    # State handling
    # ------------------------------------------------------------------ #

    def _status_for(self, app: Application, revision: ApplicationRevision) -> WorkflowStatus | None:
        status = app.workflow_status
        if status is not None and status.app_revision == revision.name:
            return status

        if status is not None and status.app_revision:
            try:
                recorded = extract_revision_num(status.app_revision)
            except BadRevisionNameError:
                recorded = -1
            if revision.number < recorded:
                logger.warning(
                    "workflow.stale_revision",
                    revision=revision.name,
                    recorded=status.app_revision,
                )
                return None
            logger.info("workflow.restart", previous=status.app_revision, revision=revision.name)

        return WorkflowStatus.start(revision.name, revision.workflow_steps)

    def _transition(self, status: WorkflowStatus, state: WorkflowState) -> None:
        logger.info(
            "workflow.transition",
            revision=status.app_revision,
            from_state=status.state.value,
            to_state=state.value,
        )
        status.state = state

    def _finish(self, app: Application, status: WorkflowStatus) -> None:
        ok = status.state is WorkflowState.SUCCEEDED
        set_condition(
            app.obj,
            condition(CONDITION_WORKFLOW_FINISHED, ok, status.state.value, status.message),
        )

    # ------------------------------------------------------------------ #
    # Stages
    # ------------------------------------------------------------------ #

    def _run_stage(
        self,
        app: Application,
        revision: ApplicationRevision,
        status: WorkflowStatus,
        stage: StepStage,
    ) -> float | None:
        """Run the stage's steps from the cursor; a delay means "come back later"."""
        steps = revision.workflow_steps
        while (cursor := status.cursor(stage)) is not None:
            step = steps[cursor.index]
            try:
                applied = self.dispatcher.apply(step, cursor.index, app, revision.name)
            except DeliveryError as e:
                if is_retryable(e):
                    raise
                self._halt(status, cursor, StepPhase.FAILED, WorkflowState.FAILED, str(e))
                return None

            cursor.resource_ref = applied.ref
            cursor.applied_generation = applied.generation
            reading = evaluate(applied.object, applied.generation)

            match reading.outcome:
                case StepOutcome.PENDING:
                    cursor.phase = StepPhase.RUNNING
                    cursor.message = STALE_CONDITION_MESSAGE if reading.stale else ""
                    return self.settings.requeue_after_seconds
                case StepOutcome.SUCCEEDED:
                    cursor.phase = StepPhase.SUCCEEDED
                    cursor.message = ""
                    logger.info("workflow.step.succeeded", index=cursor.index, step=cursor.type)
                case StepOutcome.FAILED:
                    self._halt(status, cursor, StepPhase.FAILED, WorkflowState.FAILED, reading.message)
                    return None
                case StepOutcome.STOPPED:
                    self._halt(status, cursor, StepPhase.STOPPED, WorkflowState.STOPPED, reading.message)
                    return None
        return None

    def _halt(
        self,
        status: WorkflowStatus,
        cursor: WorkflowStepStatus,
        phase: StepPhase,
        state: WorkflowState,
        message: str,
    ) -> None:
        cursor.phase = phase
        cursor.message = message
        status.message = f"step {cursor.index} ({cursor.type}) {phase.value}"
        if message:
            status.message += f": {message}"
        logger.warning(
            "workflow.step.halted",
            index=cursor.index,
            step=cursor.type,
            phase=phase.value,
            message=message,
        )
        self._transition(status, state)

    def _render(self, app: Application, revision: ApplicationRevision, status: WorkflowStatus) -> float | None:
        """Assemble the revision and persist its artifact once pre-render steps are done."""
        manifests = AppManifests(revision, settings=self.settings, store=self.store, options=self.options)
        try:
            result = manifests.assemble()
            self.last_assembly = result
            result.raise_for_errors()
            persist_artifact(self.store, revision, result.to_bundle())
        except DeliveryError as e:
            set_condition(app.obj, condition(CONDITION_ASSEMBLED, False, type(e).__name__, str(e)))
            status.message = str(e)
            if is_retryable(e):
                logger.info("workflow.assembly_pending", revision=revision.name, error=str(e))
                return get_retry_after(e) or self.settings.requeue_after_seconds
            if isinstance(e, AssemblyError):
                logger.error("workflow.assembly_failed", revision=revision.name, components=sorted(e.errors))
            self._transition(status, WorkflowState.FAILED)
            return None

        set_condition(app.obj, condition(CONDITION_ASSEMBLED, True, "Assembled"))
        status.message = ""
        self._transition(status, WorkflowState.RENDERED)
        return None


__all__ = ["ReconcileResult", "WorkflowEngine", "condition"]
