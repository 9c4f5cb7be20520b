"""
Resource assembler.

Turns a revision's rendered component manifests into the canonical set of
platform resources: stamped, uniquely named, owned by the Application, with
traits linked to their workload and workloads linked to their scopes.

Architecture:
    ::

        ApplicationRevision
              │ load_components()
              ▼
        ComponentManifest ×N ──► per component (independent):
                                   stamp_workload()
                                   option chain (naming, discovery, rollout)
                                   stamp_trait() + workloadRef
                                   scope bindings
              │
              ▼
        AssemblyResult
          results: {component: Ok(AssembledComponent) | Err(error)}
          policies: [stamped policy]

One component failing never prevents its siblings from assembling; callers
decide what to do with ``AssemblyResult.errors``.

Example:
    >>> manifests = AppManifests(revision, settings=settings, store=store)
    >>> workloads, traits, scopes = manifests.group_assembled_manifests()
    >>> traits["test-comp"][2]["spec"]["workloadRef"]["kind"]
    'Deployment'
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from appdelivery.core.errors import AssemblyError, DeliveryError
from appdelivery.core.logging import get_logger
from appdelivery.core.naming import canonical_json
from appdelivery.core.objects import TypedReference, set_path
from appdelivery.core.result import Err, Result, partition_keyed, try_result
from appdelivery.core.settings import ControllerSettings
from appdelivery.core.store import ObjectStore
from appdelivery.assemble.bundle import load_components
from appdelivery.assemble.options import WorkloadOption, build_option_chain
from appdelivery.assemble.stamper import StampContext, stamp_policy, stamp_trait, stamp_workload, trait_type_of
from appdelivery.models import ApplicationRevision, ComponentManifest

logger = get_logger(__name__)


@dataclass
class AssembledComponent:
    """Finalized workload and traits of one component."""

    name: str
    workload: dict[str, Any]
    traits: list[dict[str, Any]] = field(default_factory=list)
    scopes: list[TypedReference] = field(default_factory=list)

    @property
    def workload_ref(self) -> TypedReference:
        return TypedReference.of(self.workload)

    def resources(self) -> list[dict[str, Any]]:
        return [self.workload, *self.traits]


@dataclass
class AssemblyResult:
    """Per-component outcome of assembling one revision."""

    revision: str
    results: dict[str, Result[AssembledComponent]]
    policies: list[dict[str, Any]] = field(default_factory=list)

    @property
    def components(self) -> dict[str, AssembledComponent]:
        return partition_keyed(self.results)[0]

    @property
    def errors(self) -> dict[str, Exception]:
        return partition_keyed(self.results)[1]

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def workloads(self) -> dict[str, dict[str, Any]]:
        return {name: c.workload for name, c in self.components.items()}

    @property
    def traits(self) -> dict[str, list[dict[str, Any]]]:
        return {name: c.traits for name, c in self.components.items()}

    @property
    def scopes(self) -> dict[TypedReference, list[TypedReference]]:
        """Scope reference map; only workloads that declared a scope appear."""
        return {c.workload_ref: list(c.scopes) for c in self.components.values() if c.scopes}

    def resources(self) -> list[dict[str, Any]]:
        """Workloads and traits in component order, then policies."""
        out: list[dict[str, Any]] = []
        for component in self.components.values():
            out.extend(component.resources())
        out.extend(self.policies)
        return out

    def raise_for_errors(self) -> None:
        if self.errors:
            raise AssemblyError(self.errors).with_context(revision=self.revision)

    def to_bundle(self) -> str:
        """Canonical JSON of the assembled output (the revision artifact)."""
        self.raise_for_errors()
        return canonical_json(
            {
                "revision": self.revision,
                "components": [
                    {
                        "name": c.name,
                        "workload": c.workload,
                        "traits": c.traits,
                        "scopes": [s.to_dict() for s in c.scopes],
                    }
                    for c in self.components.values()
                ],
                "policies": self.policies,
            }
        )


class AppManifests:
    """
    Assembles all components of one revision.

    Configuration (option toggles, non-upgradable kinds, name length) comes
    from the ``settings`` passed in; the only external read is the discovery
    option's single ``get`` per release-managed component.
    """

    def __init__(
        self,
        revision: ApplicationRevision,
        *,
        settings: ControllerSettings | None = None,
        store: ObjectStore | None = None,
        options: list[WorkloadOption] | None = None,
    ):
        self.revision = revision
        self.settings = settings or ControllerSettings()
        self.store = store
        self.options = options if options is not None else build_option_chain(self.settings, store)
        self._result: AssemblyResult | None = None

    @classmethod
    def from_object(cls, obj: dict[str, Any], **kwargs: Any) -> AppManifests:
        return cls(ApplicationRevision.from_object(obj), **kwargs)

    def assemble(self) -> AssemblyResult:
        """Assemble every component once; later calls return the cached result."""
        if self._result is not None:
            return self._result

        ctx = StampContext.from_revision(self.revision)
        components = load_components(self.revision, self.store)
        results: dict[str, Result[AssembledComponent]] = {}
        for component in components:
            result = try_result(lambda c=component: self._assemble_component(ctx, c))
            if isinstance(result, Err):
                if isinstance(result.error, DeliveryError) and result.error.context.component is None:
                    result.error.with_context(component=component.name)
                logger.warning(
                    "assembly.component_failed",
                    revision=self.revision.name,
                    component=component.name,
                    error=str(result.error),
                )
            results[component.name] = result

        policies = [stamp_policy(ctx, p) for p in self.revision.spec.policies]
        self._result = AssemblyResult(revision=self.revision.name, results=results, policies=policies)
        logger.info(
            "assembly.completed",
            revision=self.revision.name,
            components=len(results),
            failed=len(self._result.errors),
        )
        return self._result

    def _assemble_component(self, ctx: StampContext, component: ComponentManifest) -> AssembledComponent:
        workload = stamp_workload(ctx, component)
        for option in self.options:
            try:
                option.apply(workload, component)
            except DeliveryError as e:
                e.with_context(component=component.name, option=option.name)
                raise

        ref = TypedReference.of(workload)
        traits = []
        for raw in component.traits:
            trait = stamp_trait(ctx, component, raw)
            set_path(trait, self.revision.workload_ref_path(trait_type_of(raw)), ref.to_dict())
            traits.append(trait)

        scopes = []
        for scope in component.scopes:
            scope_ref = scope.to_ref()
            if scope_ref not in scopes:
                scopes.append(scope_ref)

        return AssembledComponent(name=component.name, workload=workload, traits=traits, scopes=scopes)

    def group_assembled_manifests(
        self,
    ) -> tuple[dict[str, dict[str, Any]], dict[str, list[dict[str, Any]]], dict[TypedReference, list[TypedReference]]]:
        """``(workloads, traits, scopes)`` keyed by component / workload ref.

        Raises:
            AssemblyError: one or more components failed.
        """
        result = self.assemble()
        result.raise_for_errors()
        return result.workloads, result.traits, result.scopes

    def assembled_manifests(self) -> list[dict[str, Any]]:
        """Flat list of every assembled workload and trait."""
        workloads, traits, _ = self.group_assembled_manifests()
        out: list[dict[str, Any]] = []
        for name, workload in workloads.items():
            out.append(workload)
            out.extend(traits[name])
        return out

    def referenced_scopes(self) -> dict[TypedReference, list[TypedReference]]:
        return self.assemble().scopes


__all__ = ["AssembledComponent", "AssemblyResult", "AppManifests"]
