"""
Helpers over plain-dict platform objects.

Assembled resources are kept as JSON-compatible dicts (``apiVersion``,
``kind``, ``metadata``, ``spec``, ``status``), the same shape the object
store persists and the revision bundle serializes. These helpers give them
typed accessors without wrapping them in classes.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, order=True)
class TypedReference:
    """Reference to an object by apiVersion, kind and name (hashable)."""

    api_version: str
    kind: str
    name: str

    @classmethod
    def of(cls, obj: dict[str, Any]) -> TypedReference:
        return cls(api_version=obj.get("apiVersion", ""), kind=obj.get("kind", ""), name=get_name(obj))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TypedReference:
        return cls(api_version=data.get("apiVersion", ""), kind=data.get("kind", ""), name=data.get("name", ""))

    def to_dict(self) -> dict[str, str]:
        return {"apiVersion": self.api_version, "kind": self.kind, "name": self.name}

    def __str__(self) -> str:
        return f"{self.api_version}/{self.kind}/{self.name}"


# =============================================================================
# Metadata accessors
# =============================================================================


def metadata(obj: dict[str, Any]) -> dict[str, Any]:
    return obj.setdefault("metadata", {})


def get_name(obj: dict[str, Any]) -> str:
    return obj.get("metadata", {}).get("name", "")


def set_name(obj: dict[str, Any], name: str) -> None:
    metadata(obj)["name"] = name


def get_namespace(obj: dict[str, Any]) -> str:
    return obj.get("metadata", {}).get("namespace", "")


def set_namespace(obj: dict[str, Any], namespace: str) -> None:
    metadata(obj)["namespace"] = namespace


def get_labels(obj: dict[str, Any]) -> dict[str, str]:
    return dict(obj.get("metadata", {}).get("labels") or {})


def set_labels(obj: dict[str, Any], labels: dict[str, str] | None) -> None:
    if labels is None:
        metadata(obj).pop("labels", None)
    else:
        metadata(obj)["labels"] = dict(labels)


def get_annotations(obj: dict[str, Any]) -> dict[str, str]:
    return dict(obj.get("metadata", {}).get("annotations") or {})


def set_annotations(obj: dict[str, Any], annotations: dict[str, str] | None) -> None:
    if annotations is None:
        metadata(obj).pop("annotations", None)
    else:
        metadata(obj)["annotations"] = dict(annotations)


def get_generation(obj: dict[str, Any]) -> int:
    return int(obj.get("metadata", {}).get("generation") or 0)


def get_resource_version(obj: dict[str, Any]) -> str:
    return str(obj.get("metadata", {}).get("resourceVersion") or "")


def api_group(obj: dict[str, Any]) -> str:
    """Group part of ``apiVersion`` (empty for the core group)."""
    api_version = obj.get("apiVersion", "")
    return api_version.rsplit("/", 1)[0] if "/" in api_version else ""


def gvk_string(obj: dict[str, Any]) -> str:
    api_version = obj.get("apiVersion", "")
    group, _, version = api_version.rpartition("/")
    return f"{group}/{version}, Kind={obj.get('kind', '')}"


def object_key(obj: dict[str, Any]) -> str:
    """``<apiVersion>/<kind>/<namespace>/<name>`` for logging and indexing."""
    return f"{obj.get('apiVersion', '')}/{obj.get('kind', '')}/{get_namespace(obj)}/{get_name(obj)}"


# =============================================================================
# Owner references
# =============================================================================


def owner_reference(
    api_version: str,
    kind: str,
    name: str,
    uid: str,
    controller: bool = True,
) -> dict[str, Any]:
    return {
        "apiVersion": api_version,
        "kind": kind,
        "name": name,
        "uid": uid,
        "controller": controller,
        "blockOwnerDeletion": True,
    }


def get_owner_references(obj: dict[str, Any]) -> list[dict[str, Any]]:
    return list(obj.get("metadata", {}).get("ownerReferences") or [])


def set_owner_references(obj: dict[str, Any], refs: list[dict[str, Any]]) -> None:
    metadata(obj)["ownerReferences"] = [dict(r) for r in refs]


def get_controller_of(obj: dict[str, Any]) -> dict[str, Any] | None:
    """The owner reference flagged as controller, if any (live dict, not a copy)."""
    for ref in obj.get("metadata", {}).get("ownerReferences") or []:
        if ref.get("controller"):
            return ref
    return None


# =============================================================================
# Field paths
# =============================================================================


def _split(path: str | list[str]) -> list[str]:
    return path.split(".") if isinstance(path, str) else list(path)


def get_path(obj: dict[str, Any], path: str | list[str], default: Any = None) -> Any:
    """Read a nested field; ``default`` when any segment is missing."""
    current: Any = obj
    for segment in _split(path):
        if not isinstance(current, dict) or segment not in current:
            return default
        current = current[segment]
    return current


def set_path(obj: dict[str, Any], path: str | list[str], value: Any) -> None:
    """Write a nested field, creating intermediate objects as needed.

    Raises:
        TypeError: an intermediate segment exists but is not an object.
    """
    segments = _split(path)
    current = obj
    for segment in segments[:-1]:
        child = current.get(segment)
        if child is None:
            child = current[segment] = {}
        elif not isinstance(child, dict):
            raise TypeError(f"cannot set {'.'.join(segments)}: {segment!r} is not an object")
        current = child
    current[segments[-1]] = value


# =============================================================================
# Conditions
# =============================================================================


def get_condition(obj: dict[str, Any], condition_type: str) -> dict[str, Any] | None:
    for condition in obj.get("status", {}).get("conditions") or []:
        if condition.get("type") == condition_type:
            return condition
    return None


def set_condition(obj: dict[str, Any], condition: dict[str, Any]) -> None:
    """Insert or replace the condition with the same ``type``."""
    status = obj.setdefault("status", {})
    conditions = [c for c in status.get("conditions") or [] if c.get("type") != condition["type"]]
    conditions.append(dict(condition))
    status["conditions"] = conditions


def deep_copy(obj: dict[str, Any]) -> dict[str, Any]:
    return copy.deepcopy(obj)
