"""
Step Dispatcher.

Applies a workflow step's target object, carrying the workflow context
annotation, with create-or-update semantics under optimistic concurrency.
Rendering the target from the step's type and properties is delegated to a
:class:`StepRenderer`; the dispatcher never looks inside the result.

Re-applying an unchanged step is a no-op: the desired fields are merged onto
the live object and nothing is written when the merge changes nothing.
Fields set by other actors (a manual-approval flag, say) survive the merge.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from appdelivery.core.errors import NotFoundError, UnknownCapabilityError
from appdelivery.core.labels import (
    ANNOTATION_WORKFLOW_CONTEXT,
    APPLICATION_API_VERSION,
    APPLICATION_KIND,
    LABEL_APP_NAME,
)
from appdelivery.core.logging import get_logger
from appdelivery.core.naming import merge_map_override_with_dst
from appdelivery.core.objects import (
    TypedReference,
    get_annotations,
    get_generation,
    get_labels,
    get_name,
    owner_reference,
    set_annotations,
    set_labels,
    set_namespace,
    set_owner_references,
)
from appdelivery.core.store import ObjectStore, merge_patch
from appdelivery.models import Application, WorkflowStep
from appdelivery.workflow.context import WorkflowContext

logger = get_logger(__name__)


@runtime_checkable
class StepRenderer(Protocol):
    """Produces the target object manifest for a step."""

    def render(self, step: WorkflowStep, index: int, app_name: str) -> dict[str, Any]:
        ...


class DefaultStepRenderer:
    """
    Renders a step as ``<app>-<type>-<index>`` of a registered kind with the
    step's properties as its ``spec``.

    Args:
        kinds: step type -> ``(apiVersion, kind)`` of its target object.
        default: target for step types not in ``kinds``; unregistered types
            are an ``UnknownCapabilityError`` when None.
    """

    def __init__(
        self,
        kinds: dict[str, tuple[str, str]] | None = None,
        default: tuple[str, str] | None = None,
    ):
        self.kinds = dict(kinds or {})
        self.default = default

    def render(self, step: WorkflowStep, index: int, app_name: str) -> dict[str, Any]:
        target = self.kinds.get(step.type, self.default)
        if target is None:
            raise UnknownCapabilityError(f"no target kind registered for workflow step type {step.type!r}")
        api_version, kind = target
        return {
            "apiVersion": api_version,
            "kind": kind,
            "metadata": {"name": f"{app_name}-{step.type}-{index}"},
            "spec": dict(step.properties),
        }


@dataclass(frozen=True)
class AppliedStep:
    """A step target as it stands right after this pass applied it."""

    ref: TypedReference
    namespace: str
    generation: int
    object: dict[str, Any]
    written: bool


class StepDispatcher:
    """Applies step targets to the object store."""

    def __init__(self, store: ObjectStore, renderer: StepRenderer):
        self.store = store
        self.renderer = renderer

    def desired(self, step: WorkflowStep, index: int, app: Application, revision_name: str) -> dict[str, Any]:
        """Rendered target with namespace, labels, owner and context annotation."""
        obj = self.renderer.render(step, index, app.name)
        set_namespace(obj, app.namespace)
        set_labels(obj, merge_map_override_with_dst(get_labels(obj), {LABEL_APP_NAME: app.name}))
        context = WorkflowContext(app.name, revision_name, index)
        set_annotations(
            obj,
            merge_map_override_with_dst(get_annotations(obj), {ANNOTATION_WORKFLOW_CONTEXT: context.to_annotation()}),
        )
        set_owner_references(obj, [owner_reference(APPLICATION_API_VERSION, APPLICATION_KIND, app.name, app.uid)])
        return obj

    def apply(self, step: WorkflowStep, index: int, app: Application, revision_name: str) -> AppliedStep:
        """Create or update the step's target.

        Raises:
            ConflictError: the target changed between read and write.
            AlreadyExistsError: the target appeared between read and create.
        """
        desired = self.desired(step, index, app, revision_name)
        api_version, kind, name = desired["apiVersion"], desired["kind"], get_name(desired)

        try:
            existing = self.store.get(api_version, kind, app.namespace, name)
        except NotFoundError:
            created = self.store.create(desired)
            logger.info("workflow.step.created", step=step.type, index=index, target=name)
            return self._applied(created, written=True)

        merged = merge_patch(existing, {k: v for k, v in desired.items() if k not in ("metadata", "status")})
        merged["metadata"] = dict(existing["metadata"])
        set_labels(merged, merge_map_override_with_dst(get_labels(existing), get_labels(desired)))
        set_annotations(merged, merge_map_override_with_dst(get_annotations(existing), get_annotations(desired)))
        set_owner_references(merged, desired["metadata"]["ownerReferences"])
        if merged == existing:
            return self._applied(existing, written=False)

        updated = self.store.update(merged)
        logger.info(
            "workflow.step.updated",
            step=step.type,
            index=index,
            target=name,
            generation=get_generation(updated),
        )
        return self._applied(updated, written=True)

    @staticmethod
    def _applied(obj: dict[str, Any], written: bool) -> AppliedStep:
        return AppliedStep(
            ref=TypedReference.of(obj),
            namespace=obj["metadata"].get("namespace", ""),
            generation=get_generation(obj),
            object=obj,
            written=written,
        )


__all__ = ["StepRenderer", "DefaultStepRenderer", "AppliedStep", "StepDispatcher"]
