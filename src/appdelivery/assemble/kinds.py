"""
Closed per-kind capability tables.

Behavior that depends on a resource's kind is resolved here through explicit
``match`` tables with a mandatory default arm. A kind that is not listed is
an :class:`~appdelivery.core.errors.UnknownCapabilityError`, never a silent
skip.

Tables:
    - rollout pause field per workload kind (pre-rollout preparation)
    - qualified-name rule per external release mechanism (discovery)
    - in-place upgradability per configured ``group/Kind``
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from appdelivery.core.errors import UnknownCapabilityError, UnknownWorkloadKindError
from appdelivery.core.naming import helm_qualified_name
from appdelivery.core.objects import api_group, get_name, gvk_string


class ApiGroup(str, Enum):
    # str-valued so a plain group string matches the table arms
    KRUISE = "apps.kruise.io"
    APPS = "apps"


@dataclass(frozen=True)
class GroupKind:
    """A resource kind qualified by its API group (``""`` for the core group)."""

    group: str
    kind: str

    @classmethod
    def parse(cls, value: str) -> GroupKind:
        """Parse ``group/Kind``; ``/Pod`` is the core-group Pod."""
        group, _, kind = value.rpartition("/")
        return cls(group=group, kind=kind)

    @classmethod
    def of(cls, obj: dict[str, Any]) -> GroupKind:
        return cls(group=api_group(obj), kind=obj.get("kind", ""))

    def __str__(self) -> str:
        return f"{self.group}/{self.kind}"


def rollout_pause_path(workload: dict[str, Any]) -> str:
    """Field path that pauses updates of ``workload`` for a rollout controller.

    Raises:
        UnknownWorkloadKindError: the kind has no known pause field.
    """
    gk = GroupKind.of(workload)
    match (gk.group, gk.kind):
        case (ApiGroup.KRUISE, "CloneSet"):
            return "spec.updateStrategy.paused"
        case (ApiGroup.KRUISE, "StatefulSet"):
            return "spec.updateStrategy.rollingUpdate.paused"
        case (ApiGroup.APPS, "Deployment"):
            return "spec.paused"
        case _:
            raise UnknownWorkloadKindError(get_name(workload), gvk_string(workload))


class ReleaseMechanism(str, Enum):
    # str-valued so plain strings match the table arms
    HELM = "helm"


def qualified_release_name(
    mechanism: ReleaseMechanism | str,
    release_name: str,
    chart_name: str,
    max_length: int = 63,
) -> str:
    """Name an external release mechanism gives to the workload it creates."""
    match mechanism:
        case ReleaseMechanism.HELM:
            return helm_qualified_name(release_name, chart_name, max_length)
        case _:
            raise UnknownCapabilityError(f"unknown release mechanism {mechanism!r}")


def is_inplace_upgradable(workload: dict[str, Any], non_inplace_kinds: list[str]) -> bool:
    """False when the workload's ``group/Kind`` is configured as immutable."""
    return GroupKind.of(workload) not in {GroupKind.parse(k) for k in non_inplace_kinds}


__all__ = [
    "ApiGroup",
    "GroupKind",
    "rollout_pause_path",
    "ReleaseMechanism",
    "qualified_release_name",
    "is_inplace_upgradable",
]
