"""
Workload option chain.

Options are mutators applied in order to a stamped workload before its
traits are linked to it. Each one is independently toggleable through
:class:`~appdelivery.core.settings.ControllerSettings`; any option that raises
aborts assembly of that component only.

Built-in options, in default order:

1. :class:`NameNonInplaceUpgradableWorkload` - rename workloads whose kind
   cannot be mutated in place to the component-revision identity.
2. :class:`DiscoverHelmBasedWorkload` - replace the rendered workload of a
   release-managed component with the live object the release created.
3. :class:`PrepareWorkloadForRollout` - pause updates and release the
   controller owner bit for a progressive-delivery controller.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from appdelivery.core.errors import (
    ForeignObjectError,
    InvalidBundleError,
    NotFoundError,
    WorkloadNotReadyError,
)
from appdelivery.core.labels import (
    ANNOTATION_HELM_RELEASE_NAME,
    ANNOTATION_HELM_RELEASE_NAMESPACE,
    HELM_MANAGER,
    LABEL_APP_COMPONENT_REVISION,
    LABEL_MANAGED_BY,
)
from appdelivery.core.logging import get_logger
from appdelivery.core.objects import (
    get_annotations,
    get_controller_of,
    get_labels,
    get_name,
    get_namespace,
    set_name,
    set_path,
)
from appdelivery.core.settings import ControllerSettings
from appdelivery.core.store import ObjectStore
from appdelivery.assemble.kinds import (
    ReleaseMechanism,
    is_inplace_upgradable,
    qualified_release_name,
    rollout_pause_path,
)
from appdelivery.models import ComponentManifest

logger = get_logger(__name__)


@runtime_checkable
class WorkloadOption(Protocol):
    """A mutator applied to an in-progress assembled workload."""

    name: str

    def apply(self, workload: dict[str, Any], component: ComponentManifest) -> None:
        ...


class NameNonInplaceUpgradableWorkload:
    """Use the component-revision name for kinds that cannot be updated in place."""

    name = "naming-override"

    def __init__(self, non_inplace_kinds: list[str]):
        self.non_inplace_kinds = list(non_inplace_kinds)

    def apply(self, workload: dict[str, Any], component: ComponentManifest) -> None:
        if is_inplace_upgradable(workload, self.non_inplace_kinds):
            return
        revision_name = get_labels(workload).get(LABEL_APP_COMPONENT_REVISION)
        if revision_name:
            set_name(workload, revision_name)


class DiscoverHelmBasedWorkload:
    """Replace a release-managed workload with the live object the release created.

    The rendered template is not trusted for such components: the release
    controller owns the object's lifecycle, so the assembled workload becomes
    whatever currently exists under the release's qualified name.

    Raises:
        WorkloadNotReadyError: the release has not created the object yet.
        ForeignObjectError: an object with that name exists but belongs to
            another release (or to no release at all).
        InvalidBundleError: the release names no release or no chart.
    """

    name = "external-discovery"

    def __init__(self, store: ObjectStore, max_name_length: int = 63):
        self.store = store
        self.max_name_length = max_name_length

    def apply(self, workload: dict[str, Any], component: ComponentManifest) -> None:
        if component.helm is None:
            return
        release = component.helm.release_name
        chart = component.helm.chart_name
        if not release or not chart:
            raise InvalidBundleError(
                f"cannot get helm release name ({release!r}) and chart name ({chart!r})"
            ).with_context(component=component.name)
        namespace = get_namespace(workload)
        qualified = qualified_release_name(ReleaseMechanism.HELM, release, chart, self.max_name_length)

        try:
            live = self.store.get(workload.get("apiVersion", ""), workload.get("kind", ""), namespace, qualified)
        except NotFoundError as e:
            raise WorkloadNotReadyError(
                f"{workload.get('kind')} {namespace}/{qualified} of release {release!r} not found",
                cause=e,
            ).with_context(component=component.name, kind=workload.get("kind"), name=qualified) from e

        annotations = get_annotations(live)
        labels = get_labels(live)
        if (
            annotations.get(ANNOTATION_HELM_RELEASE_NAME) != release
            or annotations.get(ANNOTATION_HELM_RELEASE_NAMESPACE) != namespace
            or labels.get(LABEL_MANAGED_BY) != HELM_MANAGER
        ):
            raise ForeignObjectError(
                f"{workload.get('kind')} {namespace}/{qualified} exists but is not managed by release {release!r}"
            ).with_context(component=component.name, kind=workload.get("kind"), name=qualified)

        logger.debug("option.discovered", component=component.name, name=qualified, release=release)
        workload.clear()
        workload.update(live)


class PrepareWorkloadForRollout:
    """Pause the workload and hand controller ownership to a rollout controller."""

    name = "rollout-preparation"

    def apply(self, workload: dict[str, Any], component: ComponentManifest) -> None:
        set_path(workload, rollout_pause_path(workload), True)
        owner = get_controller_of(workload)
        if owner is not None:
            owner["controller"] = False
        logger.debug("option.prepared_for_rollout", component=component.name, name=get_name(workload))


def build_option_chain(settings: ControllerSettings, store: ObjectStore | None) -> list[WorkloadOption]:
    """Options enabled by ``settings``, in their fixed order."""
    chain: list[WorkloadOption] = []
    if settings.enable_naming_override:
        chain.append(NameNonInplaceUpgradableWorkload(settings.non_inplace_upgradable_kinds))
    if settings.enable_external_discovery and store is not None:
        chain.append(DiscoverHelmBasedWorkload(store, settings.max_name_length))
    if settings.enable_rollout_preparation:
        chain.append(PrepareWorkloadForRollout())
    return chain


__all__ = [
    "WorkloadOption",
    "NameNonInplaceUpgradableWorkload",
    "DiscoverHelmBasedWorkload",
    "PrepareWorkloadForRollout",
    "build_option_chain",
]
