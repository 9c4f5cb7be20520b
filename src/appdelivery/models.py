"""
Application, revision and workflow-status models.

Two flavors of model live here:

- **Pydantic schemas** for the externally produced inputs (the revision
  bundle of rendered component manifests, workflow step declarations). These
  are validated once when a revision is loaded; anything malformed becomes an
  ``InvalidBundleError`` before the assembler runs.
- **Dataclasses** for the state the controller owns (``WorkflowStatus`` and
  its per-step records). They round-trip through ``to_dict``/``from_dict``
  into the Application's ``status.workflow`` field in the object store so the
  state machine survives process restarts.

Object shapes in the store::

    Application
      metadata: {name, namespace, uid, generation}
      spec:     {components, policies, workflow: {steps}}
      status:   {latestRevision, workflow, conditions}

    ApplicationRevision  (name: <app>-v<N>)
      metadata: {labels: {app.oam.dev/name, app.oam.dev/app-revision-hash}}
      spec:     {application, bundle | bundleRef, traitDefinitions,
                 policies, workflow: {steps}}

Tags:
    models, pydantic, dataclass, workflow-status
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from appdelivery.core.errors import InvalidBundleError
from appdelivery.core.labels import LABEL_APP_NAME, LABEL_APP_REVISION_HASH
from appdelivery.core.naming import extract_revision_num
from appdelivery.core.objects import (
    TypedReference,
    get_generation,
    get_labels,
    get_name,
    get_namespace,
)

DEFAULT_WORKLOAD_REF_PATH = "spec.workloadRef"


class StepStage(str, Enum):
    """When a workflow step runs relative to resource assembly."""

    PRE_RENDER = "pre-render"
    POST_RENDER = "post-render"


class StepPhase(str, Enum):
    """Phase of one executed workflow step."""

    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    STOPPED = "stopped"

    @property
    def is_terminal(self) -> bool:
        return self is not StepPhase.RUNNING


class WorkflowState(str, Enum):
    """Per-application workflow state machine."""

    IDLE = "Idle"
    PRE_RENDERING = "PreRendering"
    RENDERED = "Rendered"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    STOPPED = "Stopped"

    @property
    def is_terminal(self) -> bool:
        return self in (WorkflowState.SUCCEEDED, WorkflowState.FAILED, WorkflowState.STOPPED)


# =============================================================================
# Revision bundle schemas
# =============================================================================


class _Schema(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ScopeRef(_Schema):
    """A scope a component's workload participates in."""

    api_version: str = Field(..., alias="apiVersion")
    kind: str
    name: str

    def to_ref(self) -> TypedReference:
        return TypedReference(self.api_version, self.kind, self.name)


class HelmSettings(_Schema):
    """External release that owns a component's workload.

    ``release`` is the release object as rendered; its ``metadata.name`` is
    the release name and ``spec.chart.spec.chart`` the chart name.
    """

    release: dict[str, Any]

    @property
    def release_name(self) -> str:
        return self.release.get("metadata", {}).get("name", "")

    @property
    def chart_name(self) -> str:
        return self.release.get("spec", {}).get("chart", {}).get("spec", {}).get("chart", "")


class ComponentManifest(_Schema):
    """Rendered, pre-assembly manifests for one component."""

    name: str = Field(..., min_length=1)
    revision_name: str = Field(default="", alias="revisionName")
    workload_type: str = Field(default="", alias="workloadType")
    workload: dict[str, Any]
    traits: list[dict[str, Any]] = Field(default_factory=list)
    scopes: list[ScopeRef] = Field(default_factory=list)
    helm: HelmSettings | None = None


class TraitDefinition(_Schema):
    workload_ref_path: str = Field(default=DEFAULT_WORKLOAD_REF_PATH, alias="workloadRefPath")


class ApplicationMeta(_Schema):
    """Identity of the Application a revision was cut from."""

    name: str = Field(..., min_length=1)
    namespace: str = "default"
    uid: str = ""
    generation: int = 0


class WorkflowStep(_Schema):
    """One declared workflow step; its identity is its index in the list."""

    name: str = ""
    type: str = Field(..., min_length=1)
    stage: StepStage = StepStage.POST_RENDER
    properties: dict[str, Any] = Field(default_factory=dict)


class WorkflowSpec(_Schema):
    steps: list[WorkflowStep] = Field(default_factory=list)


class RevisionSpec(_Schema):
    application: ApplicationMeta
    bundle: list[ComponentManifest] | str | None = None
    bundle_ref: str | None = Field(default=None, alias="bundleRef")
    trait_definitions: dict[str, TraitDefinition] = Field(default_factory=dict, alias="traitDefinitions")
    policies: list[dict[str, Any]] = Field(default_factory=list)
    workflow: WorkflowSpec | None = None


def parse_components(data: Any) -> list[ComponentManifest]:
    """Validate a decoded bundle (a list of component entries)."""
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise InvalidBundleError(f"bundle is not valid JSON: {e}", cause=e) from e
    if not isinstance(data, list):
        raise InvalidBundleError(f"bundle must be a list of components, got {type(data).__name__}")
    try:
        return [c if isinstance(c, ComponentManifest) else ComponentManifest.model_validate(c) for c in data]
    except ValidationError as e:
        raise InvalidBundleError(f"invalid component entry: {e}", cause=e) from e


@dataclass
class ApplicationRevision:
    """Immutable snapshot of an Application's rendered inputs."""

    name: str
    namespace: str
    revision_hash: str
    spec: RevisionSpec

    @classmethod
    def from_object(cls, obj: dict[str, Any]) -> ApplicationRevision:
        try:
            spec = RevisionSpec.model_validate(obj.get("spec") or {})
        except ValidationError as e:
            raise InvalidBundleError(
                f"invalid revision {get_name(obj)!r}: {e}", cause=e
            ).with_context(revision=get_name(obj))
        return cls(
            name=get_name(obj),
            namespace=get_namespace(obj) or spec.application.namespace,
            revision_hash=get_labels(obj).get(LABEL_APP_REVISION_HASH, ""),
            spec=spec,
        )

    @property
    def application(self) -> ApplicationMeta:
        return self.spec.application

    @property
    def number(self) -> int:
        return extract_revision_num(self.name)

    @property
    def workflow_steps(self) -> list[WorkflowStep]:
        return list(self.spec.workflow.steps) if self.spec.workflow else []

    def workload_ref_path(self, trait_type: str) -> str:
        definition = self.spec.trait_definitions.get(trait_type)
        return definition.workload_ref_path if definition else DEFAULT_WORKLOAD_REF_PATH


# =============================================================================
# Workflow status (persisted in Application status)
# =============================================================================


@dataclass
class WorkflowStepStatus:
    """Status record of one step, addressed by its index in the step list."""

    index: int
    type: str
    stage: StepStage = StepStage.POST_RENDER
    name: str = ""
    phase: StepPhase | None = None
    resource_ref: TypedReference | None = None
    applied_generation: int | None = None
    message: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowStepStatus:
        ref = data.get("resourceRef")
        phase = data.get("phase")
        return cls(
            index=data["index"],
            type=data["type"],
            stage=StepStage(data.get("stage", StepStage.POST_RENDER.value)),
            name=data.get("name", ""),
            phase=StepPhase(phase) if phase else None,
            resource_ref=TypedReference.from_dict(ref) if ref else None,
            applied_generation=data.get("appliedGeneration"),
            message=data.get("message", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "index": self.index,
            "type": self.type,
            "stage": self.stage.value,
        }
        if self.name:
            result["name"] = self.name
        if self.phase is not None:
            result["phase"] = self.phase.value
        if self.resource_ref is not None:
            result["resourceRef"] = self.resource_ref.to_dict()
        if self.applied_generation is not None:
            result["appliedGeneration"] = self.applied_generation
        if self.message:
            result["message"] = self.message
        return result


@dataclass
class WorkflowStatus:
    """Persisted state of an Application's workflow for one revision."""

    app_revision: str
    state: WorkflowState = WorkflowState.IDLE
    steps: list[WorkflowStepStatus] = field(default_factory=list)
    message: str = ""

    @classmethod
    def start(cls, revision_name: str, steps: list[WorkflowStep]) -> WorkflowStatus:
        """Fresh status with one record per declared step, none executed."""
        return cls(
            app_revision=revision_name,
            steps=[
                WorkflowStepStatus(index=i, type=s.type, stage=s.stage, name=s.name)
                for i, s in enumerate(steps)
            ],
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowStatus:
        return cls(
            app_revision=data.get("appRevision", ""),
            state=WorkflowState(data.get("state", WorkflowState.IDLE.value)),
            steps=[WorkflowStepStatus.from_dict(s) for s in data.get("steps", [])],
            message=data.get("message", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "appRevision": self.app_revision,
            "state": self.state.value,
            "steps": [s.to_dict() for s in self.steps],
        }
        if self.message:
            result["message"] = self.message
        return result

    def cursor(self, stage: StepStage) -> WorkflowStepStatus | None:
        """First step of ``stage`` whose phase is not terminal."""
        for step in self.steps:
            if step.stage is stage and (step.phase is None or not step.phase.is_terminal):
                return step
        return None


# =============================================================================
# Application
# =============================================================================


@dataclass
class Application:
    """Thin typed view over an Application object from the store.

    ``obj`` is the raw object; status updates are written back into it and
    persisted with its ``resourceVersion`` as the write precondition.
    """

    obj: dict[str, Any]

    @property
    def name(self) -> str:
        return get_name(self.obj)

    @property
    def namespace(self) -> str:
        return get_namespace(self.obj)

    @property
    def uid(self) -> str:
        return self.obj.get("metadata", {}).get("uid", "")

    @property
    def generation(self) -> int:
        return get_generation(self.obj)

    @property
    def status(self) -> dict[str, Any]:
        return self.obj.setdefault("status", {})

    @property
    def workflow_status(self) -> WorkflowStatus | None:
        data = self.obj.get("status", {}).get("workflow")
        return WorkflowStatus.from_dict(data) if data else None

    @workflow_status.setter
    def workflow_status(self, value: WorkflowStatus | None) -> None:
        if value is None:
            self.status.pop("workflow", None)
        else:
            self.status["workflow"] = value.to_dict()

    @property
    def latest_revision(self) -> str:
        return self.obj.get("status", {}).get("latestRevision", {}).get("name", "")

    def set_latest_revision(self, revision: ApplicationRevision) -> None:
        self.status["latestRevision"] = {
            "name": revision.name,
            "revision": revision.number,
            "revisionHash": revision.revision_hash,
        }

    def revision_selector(self) -> dict[str, str]:
        return {LABEL_APP_NAME: self.name}


__all__ = [
    "StepStage",
    "StepPhase",
    "WorkflowState",
    "ScopeRef",
    "HelmSettings",
    "ComponentManifest",
    "TraitDefinition",
    "ApplicationMeta",
    "WorkflowStep",
    "WorkflowSpec",
    "RevisionSpec",
    "parse_components",
    "ApplicationRevision",
    "WorkflowStepStatus",
    "WorkflowStatus",
    "Application",
]
