"""
Workflow engine tests.

Each test drives the engine pass by pass against the in-memory store, with
``FakeStepController`` standing in for the external controllers that report
``workflow-finish`` conditions on step targets.
"""

import json

import pytest

from appdelivery.assemble.bundle import BUNDLE_API_VERSION, BUNDLE_KIND, artifact_name
from appdelivery.core.errors import ConflictError, NotFoundError
from appdelivery.core.labels import CONDITION_ASSEMBLED, CONDITION_WORKFLOW_FINISHED
from appdelivery.core.objects import get_condition
from appdelivery.models import ApplicationRevision, StepPhase, WorkflowState
from appdelivery.workflow.dispatcher import DefaultStepRenderer, StepDispatcher
from appdelivery.workflow.engine import STALE_CONDITION_MESSAGE, WorkflowEngine
from tests._support.builders import ROLLOUT_STEPS, make_revision_object, step_target_name

ROLLOUT = step_target_name("blue-green-rollout", 0)
SHIFT = step_target_name("traffic-shift", 1)
PROMOTION = step_target_name("rollout-promotion", 2)


@pytest.fixture
def engine(store, renderer, settings):
    return WorkflowEngine(store, StepDispatcher(store, renderer), settings=settings)


def _phases(app):
    return [s.phase for s in app.workflow_status.steps]


class TestManualApprovalRollout:
    """Three post-render steps; the last one waits for a human approval."""

    def test_end_to_end(self, engine, application, workflow_revision, step_controller, store):
        result = engine.reconcile(application, workflow_revision)
        assert result.state is WorkflowState.RUNNING
        assert result.requeue_after == 30.0
        assert _phases(application) == [StepPhase.RUNNING, None, None]
        # assembly happened before the first post-render step
        store.get(BUNDLE_API_VERSION, BUNDLE_KIND, "default", artifact_name(workflow_revision.name))
        assert get_condition(application.obj, CONDITION_ASSEMBLED)["status"] == "True"
        with pytest.raises(NotFoundError):
            step_controller.target(SHIFT)

        step_controller.succeed(ROLLOUT)
        engine.reconcile(application, workflow_revision)
        assert _phases(application) == [StepPhase.SUCCEEDED, StepPhase.RUNNING, None]

        step_controller.succeed(SHIFT)
        engine.reconcile(application, workflow_revision)
        assert _phases(application) == [StepPhase.SUCCEEDED, StepPhase.SUCCEEDED, StepPhase.RUNNING]
        assert step_controller.target(PROMOTION)["spec"] == {"manualApproval": True}

        # the step controller reports success for the pre-approval generation
        step_controller.approve(PROMOTION)
        step_controller.succeed(PROMOTION, observed_generation=1)
        result = engine.reconcile(application, workflow_revision)
        assert result.state is WorkflowState.RUNNING
        promotion = application.workflow_status.steps[2]
        assert promotion.phase is StepPhase.RUNNING
        assert promotion.applied_generation == 2
        assert promotion.message == STALE_CONDITION_MESSAGE

        step_controller.succeed(PROMOTION)
        result = engine.reconcile(application, workflow_revision)
        assert result.state is WorkflowState.SUCCEEDED
        assert not result.requeue
        assert _phases(application) == [StepPhase.SUCCEEDED] * 3
        finished = get_condition(application.obj, CONDITION_WORKFLOW_FINISHED)
        assert finished["status"] == "True"
        assert finished["reason"] == "Succeeded"
        # the approval flag survived every re-apply
        assert step_controller.target(PROMOTION)["spec"]["approved"] is True

    def test_steps_advance_within_one_pass(self, engine, application, workflow_revision, step_controller):
        engine.reconcile(application, workflow_revision)
        step_controller.succeed(ROLLOUT)
        engine.reconcile(application, workflow_revision)
        step_controller.succeed(SHIFT)
        # step 1 completes and step 2 is applied in the same pass
        engine.reconcile(application, workflow_revision)
        assert application.workflow_status.steps[2].resource_ref.name == PROMOTION

    def test_terminal_state_is_stable(self, engine, application, workflow_revision, step_controller, store):
        engine.reconcile(application, workflow_revision)
        for name in (ROLLOUT, SHIFT, PROMOTION):
            step_controller.succeed(name)
            engine.reconcile(application, workflow_revision)
        assert application.workflow_status.state is WorkflowState.SUCCEEDED
        before = step_controller.target(PROMOTION)["metadata"]["resourceVersion"]
        assert engine.reconcile(application, workflow_revision).state is WorkflowState.SUCCEEDED
        assert step_controller.target(PROMOTION)["metadata"]["resourceVersion"] == before

    def test_status_round_trips_through_the_object(self, engine, application, workflow_revision):
        engine.reconcile(application, workflow_revision)
        data = application.obj["status"]["workflow"]
        assert data["appRevision"] == "test-assemble-v1"
        assert data["state"] == "Running"
        assert data["steps"][0]["resourceRef"]["name"] == ROLLOUT
        assert data["steps"][0]["appliedGeneration"] == 1
        json.dumps(data)


class TestHalting:
    def test_failed_step(self, engine, application, workflow_revision, step_controller):
        engine.reconcile(application, workflow_revision)
        step_controller.fail(ROLLOUT, "canary unhealthy")
        result = engine.reconcile(application, workflow_revision)
        assert result.state is WorkflowState.FAILED
        assert not result.requeue
        status = application.workflow_status
        assert status.steps[0].phase is StepPhase.FAILED
        assert status.steps[0].message == "canary unhealthy"
        assert status.message == "step 0 (blue-green-rollout) failed: canary unhealthy"
        finished = get_condition(application.obj, CONDITION_WORKFLOW_FINISHED)
        assert finished["status"] == "False"
        assert finished["reason"] == "Failed"
        with pytest.raises(NotFoundError):
            step_controller.target(SHIFT)

    def test_stopped_step(self, engine, application, workflow_revision, step_controller):
        engine.reconcile(application, workflow_revision)
        step_controller.succeed(ROLLOUT)
        engine.reconcile(application, workflow_revision)
        step_controller.stop(SHIFT)
        result = engine.reconcile(application, workflow_revision)
        assert result.state is WorkflowState.STOPPED
        assert application.workflow_status.steps[1].phase is StepPhase.STOPPED
        assert application.workflow_status.steps[2].phase is None

    def test_unrenderable_step_fails(self, store, settings, application, workflow_revision):
        engine = WorkflowEngine(store, StepDispatcher(store, DefaultStepRenderer()), settings=settings)
        result = engine.reconcile(application, workflow_revision)
        assert result.state is WorkflowState.FAILED
        assert "blue-green-rollout" in application.workflow_status.steps[0].message

    def test_conflict_propagates_without_halting(self, engine, application, workflow_revision, store, monkeypatch):
        def conflicting_create(obj):
            raise ConflictError("changed underneath")

        engine.reconcile(application, workflow_revision)
        store.delete("standard.oam.dev/v1alpha1", "BlueGreenRollout", "default", ROLLOUT)
        monkeypatch.setattr(store, "create", conflicting_create)
        with pytest.raises(ConflictError):
            engine.reconcile(application, workflow_revision)
        assert application.workflow_status.state is WorkflowState.RUNNING
        assert application.workflow_status.steps[0].phase is StepPhase.RUNNING


class TestPreRenderStage:
    STEPS = [
        {"type": "render-config", "stage": "pre-render", "properties": {"env": "prod"}},
        {"type": "blue-green-rollout"},
    ]

    def test_assembly_waits_for_pre_render_steps(self, engine, application, step_controller, store):
        revision = ApplicationRevision.from_object(make_revision_object(steps=self.STEPS))
        result = engine.reconcile(application, revision)
        assert result.state is WorkflowState.PRE_RENDERING
        assert engine.last_assembly is None
        with pytest.raises(NotFoundError):
            store.get(BUNDLE_API_VERSION, BUNDLE_KIND, "default", artifact_name(revision.name))

        step_controller.succeed(step_target_name("render-config", 0))
        result = engine.reconcile(application, revision)
        assert result.state is WorkflowState.RUNNING
        assert engine.last_assembly is not None and engine.last_assembly.ok
        assert _phases(application) == [StepPhase.SUCCEEDED, StepPhase.RUNNING]


class TestAssemblyOutcomes:
    def test_malformed_component_fails_workflow(self, engine, application):
        obj = make_revision_object(steps=ROLLOUT_STEPS)
        obj["spec"]["bundle"][0]["workload"]["metadata"]["annotations"] = {"app.oam.dev/app-context": "{}"}
        result = engine.reconcile(application, ApplicationRevision.from_object(obj))
        assert result.state is WorkflowState.FAILED
        assembled = get_condition(application.obj, CONDITION_ASSEMBLED)
        assert assembled["status"] == "False"
        assert assembled["reason"] == "AssemblyError"

    def test_unready_release_requeues(self, engine, application):
        obj = make_revision_object(steps=ROLLOUT_STEPS)
        obj["spec"]["bundle"][0]["helm"] = {
            "release": {"metadata": {"name": "podinfo"}, "spec": {"chart": {"spec": {"chart": "podinfo"}}}}
        }
        result = engine.reconcile(application, ApplicationRevision.from_object(obj))
        assert result.state is WorkflowState.PRE_RENDERING
        assert result.requeue_after == 30.0

    def test_missing_bundle_ref_requeues_until_created(self, engine, application, store):
        obj = make_revision_object(steps=ROLLOUT_STEPS)
        bundle = obj["spec"].pop("bundle")
        obj["spec"]["bundleRef"] = "test-assemble-v1-raw"
        revision = ApplicationRevision.from_object(obj)

        result = engine.reconcile(application, revision)
        assert result.state is WorkflowState.PRE_RENDERING
        assert result.requeue_after == 30.0
        assembled = get_condition(application.obj, CONDITION_ASSEMBLED)
        assert assembled["status"] == "False"
        assert assembled["reason"] == "BundleNotReadyError"

        store.create(
            {
                "apiVersion": BUNDLE_API_VERSION,
                "kind": BUNDLE_KIND,
                "metadata": {"name": "test-assemble-v1-raw", "namespace": "default"},
                "data": {"bundle": json.dumps(bundle)},
            }
        )
        result = engine.reconcile(application, revision)
        assert result.state is WorkflowState.RUNNING
        assert get_condition(application.obj, CONDITION_ASSEMBLED)["status"] == "True"


class TestRevisionChanges:
    def test_new_revision_restarts(self, engine, application, workflow_revision, step_controller):
        engine.reconcile(application, workflow_revision)
        step_controller.succeed(ROLLOUT)
        engine.reconcile(application, workflow_revision)
        assert _phases(application)[0] is StepPhase.SUCCEEDED

        steps = [dict(s) for s in ROLLOUT_STEPS]
        steps[0]["properties"] = {"partition": 2}
        v2 = ApplicationRevision.from_object(make_revision_object(number=2, steps=steps))
        engine.reconcile(application, v2)
        status = application.workflow_status
        assert status.app_revision == "test-assemble-v2"
        # the v1 success was reported for generation 1; the changed spec is generation 2
        assert status.steps[0].phase is StepPhase.RUNNING
        assert status.steps[0].applied_generation == 2
        assert [s.phase for s in status.steps[1:]] == [None, None]
        target = step_controller.target(ROLLOUT)
        assert "test-assemble-v2" in target["metadata"]["annotations"]["app.oam.dev/workflow-context"]

    def test_unchanged_converged_step_is_not_rerun(self, engine, application, workflow_revision, step_controller):
        engine.reconcile(application, workflow_revision)
        step_controller.succeed(ROLLOUT)
        engine.reconcile(application, workflow_revision)

        v2 = ApplicationRevision.from_object(make_revision_object(number=2, steps=ROLLOUT_STEPS))
        engine.reconcile(application, v2)
        assert _phases(application) == [StepPhase.SUCCEEDED, StepPhase.RUNNING, None]

    def test_older_revision_is_ignored(self, engine, application, workflow_revision):
        v2 = ApplicationRevision.from_object(make_revision_object(number=2, steps=ROLLOUT_STEPS))
        engine.reconcile(application, v2)
        before = application.obj["status"]["workflow"]
        result = engine.reconcile(application, workflow_revision)
        assert result.state is None
        assert result.requeue
        assert application.obj["status"]["workflow"] == before
