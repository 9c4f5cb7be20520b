"""
Metadata stamping for assembled resources.

Pure functions: given the application/revision identity and a component's
raw manifests, compute the deterministic name, label set, owner reference
and context annotation of each workload, trait and policy. Nothing here
reads the store.

Label sets::

    workload                      trait
    ─────────────────────────     ─────────────────────────
    app.oam.dev/name              app.oam.dev/name
    app.oam.dev/appRevision       app.oam.dev/appRevision
    app.oam.dev/app-revision-hash app.oam.dev/app-revision-hash
    app.oam.dev/component         app.oam.dev/component
    app.oam.dev/revision          app.oam.dev/revision
    workload.oam.dev/type         trait.oam.dev/type
    app.oam.dev/resourceType=workload  app.oam.dev/resourceType=trait
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any

from appdelivery.core.errors import AnnotationConflictError
from appdelivery.core.labels import (
    ANNOTATION_APP_CONTEXT,
    APPLICATION_API_VERSION,
    APPLICATION_KIND,
    LABEL_APP_COMPONENT,
    LABEL_APP_COMPONENT_REVISION,
    LABEL_APP_NAME,
    LABEL_APP_REVISION,
    LABEL_APP_REVISION_HASH,
    LABEL_RESOURCE_ROLE,
    ROLE_POLICY,
    ROLE_TRAIT,
    ROLE_WORKLOAD,
    TRAIT_TYPE_LABEL,
    WORKLOAD_TYPE_LABEL,
)
from appdelivery.core.naming import canonical_json, gen_trait_name, merge_map_override_with_dst
from appdelivery.core.objects import (
    get_annotations,
    get_labels,
    get_name,
    owner_reference,
    set_annotations,
    set_labels,
    set_name,
    set_namespace,
    set_owner_references,
)
from appdelivery.models import ApplicationRevision, ComponentManifest


@dataclass(frozen=True)
class StampContext:
    """Application and revision identity shared by every stamped resource."""

    app_name: str
    namespace: str
    app_uid: str
    app_generation: int
    revision_name: str
    revision_hash: str

    @classmethod
    def from_revision(cls, revision: ApplicationRevision) -> StampContext:
        app = revision.application
        return cls(
            app_name=app.name,
            namespace=revision.namespace or app.namespace,
            app_uid=app.uid,
            app_generation=app.generation,
            revision_name=revision.name,
            revision_hash=revision.revision_hash,
        )

    def owner_references(self) -> list[dict[str, Any]]:
        return [owner_reference(APPLICATION_API_VERSION, APPLICATION_KIND, self.app_name, self.app_uid)]

    def context_annotation(self) -> str:
        return canonical_json(
            {
                "applicationGeneration": self.app_generation,
                "applicationName": self.app_name,
                "applicationRevisionName": self.revision_name,
            }
        )

    def app_labels(self) -> dict[str, str]:
        return {
            LABEL_APP_NAME: self.app_name,
            LABEL_APP_REVISION: self.revision_name,
            LABEL_APP_REVISION_HASH: self.revision_hash,
        }


def component_revision_name(component: ComponentManifest) -> str:
    return component.revision_name or component.name


def workload_labels(ctx: StampContext, component: ComponentManifest) -> dict[str, str]:
    return {
        **ctx.app_labels(),
        LABEL_APP_COMPONENT: component.name,
        LABEL_APP_COMPONENT_REVISION: component_revision_name(component),
        WORKLOAD_TYPE_LABEL: component.workload_type,
        LABEL_RESOURCE_ROLE: ROLE_WORKLOAD,
    }


def trait_labels(ctx: StampContext, component: ComponentManifest, trait_type: str) -> dict[str, str]:
    return {
        **ctx.app_labels(),
        LABEL_APP_COMPONENT: component.name,
        LABEL_APP_COMPONENT_REVISION: component_revision_name(component),
        TRAIT_TYPE_LABEL: trait_type,
        LABEL_RESOURCE_ROLE: ROLE_TRAIT,
    }


def _stamp_common(ctx: StampContext, obj: dict[str, Any], labels: dict[str, str]) -> None:
    set_namespace(obj, ctx.namespace)
    set_labels(obj, merge_map_override_with_dst(get_labels(obj), labels))

    annotations = get_annotations(obj)
    wanted = ctx.context_annotation()
    existing = annotations.get(ANNOTATION_APP_CONTEXT)
    if existing is not None and existing != wanted:
        raise AnnotationConflictError(ANNOTATION_APP_CONTEXT, existing, wanted)
    annotations[ANNOTATION_APP_CONTEXT] = wanted
    set_annotations(obj, annotations)

    set_owner_references(obj, ctx.owner_references())


def stamp_workload(ctx: StampContext, component: ComponentManifest) -> dict[str, Any]:
    """Stamped copy of the component's raw workload, named after the component."""
    workload = copy.deepcopy(component.workload)
    set_name(workload, component.name)
    _stamp_common(ctx, workload, workload_labels(ctx, component))
    return workload


def trait_type_of(raw_trait: dict[str, Any]) -> str:
    return get_labels(raw_trait).get(TRAIT_TYPE_LABEL, "")


def stamp_trait(ctx: StampContext, component: ComponentManifest, raw_trait: dict[str, Any]) -> dict[str, Any]:
    """Stamped copy of a raw trait.

    A trait without an explicit name is named from the component name, its
    type and a hash of its rendered content, so two traits of the same type
    on one component never collide.
    """
    trait_type = trait_type_of(raw_trait)
    trait = copy.deepcopy(raw_trait)
    if not get_name(trait):
        set_name(trait, gen_trait_name(component.name, raw_trait, trait_type))
    _stamp_common(ctx, trait, trait_labels(ctx, component, trait_type))
    return trait


def stamp_policy(ctx: StampContext, raw_policy: dict[str, Any]) -> dict[str, Any]:
    policy = copy.deepcopy(raw_policy)
    _stamp_common(ctx, policy, {**ctx.app_labels(), LABEL_RESOURCE_ROLE: ROLE_POLICY})
    return policy


__all__ = [
    "StampContext",
    "component_revision_name",
    "workload_labels",
    "trait_labels",
    "stamp_workload",
    "stamp_trait",
    "stamp_policy",
    "trait_type_of",
]
