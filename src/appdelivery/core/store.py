"""
Object store contract and an in-memory implementation.

The platform's object store is the single source of truth for applications,
revisions, assembled resources and workflow step targets. The core talks to
it only through :class:`ObjectStore`; the production binding (an API-server
client) lives outside this package.

Every write is guarded by optimistic concurrency: if the object carries a
``metadata.resourceVersion`` it must equal the stored one, otherwise the
write is rejected with :class:`~appdelivery.core.errors.ConflictError` and
the caller re-reads and retries the whole reconciliation pass.

Generation semantics follow the platform: ``metadata.generation`` starts at
1 and is bumped only when the desired state (anything outside ``metadata``
and ``status``) changes. Status writes never bump it.

Tags:
    storage, optimistic-concurrency, protocol, testing
"""

from __future__ import annotations

import copy
import itertools
import threading
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import yaml

from appdelivery.core.errors import AlreadyExistsError, ConflictError, NotFoundError
from appdelivery.core.logging import get_logger
from appdelivery.core.objects import get_labels, get_name, get_namespace, get_resource_version

logger = get_logger(__name__)

ObjectKey = tuple[str, str, str, str]
Listener = Callable[[str, dict[str, Any]], None]


@runtime_checkable
class ObjectStore(Protocol):
    """Platform object store: get/list/create/update/patch with preconditions."""

    def get(self, api_version: str, kind: str, namespace: str, name: str) -> dict[str, Any]:
        """Return a copy of the object or raise ``NotFoundError``."""
        ...

    def list(
        self,
        api_version: str | None = None,
        kind: str | None = None,
        namespace: str | None = None,
        labels: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        ...

    def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        ...

    def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        ...

    def update_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        ...

    def patch(
        self,
        api_version: str,
        kind: str,
        namespace: str,
        name: str,
        patch: dict[str, Any],
        resource_version: str | None = None,
    ) -> dict[str, Any]:
        ...

    def delete(self, api_version: str, kind: str, namespace: str, name: str) -> None:
        ...


def _key(obj: dict[str, Any]) -> ObjectKey:
    return (obj.get("apiVersion", ""), obj.get("kind", ""), get_namespace(obj), get_name(obj))


def _desired_state(obj: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in obj.items() if k not in ("metadata", "status")}


def merge_patch(target: Any, patch: Any) -> Any:
    """Apply a JSON merge patch (``None`` deletes a key)."""
    if not isinstance(patch, dict):
        return copy.deepcopy(patch)
    result = dict(target) if isinstance(target, dict) else {}
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        else:
            result[key] = merge_patch(result.get(key), value)
    return result


class InMemoryObjectStore:
    """
    Thread-safe in-memory :class:`ObjectStore`.

    Used by the test suite and by local dry runs. Objects are deep-copied on
    the way in and on the way out so callers can never mutate stored state
    behind the store's back.
    """

    def __init__(self) -> None:
        self._objects: dict[ObjectKey, dict[str, Any]] = {}
        self._lock = threading.RLock()
        self._versions = itertools.count(1)
        self._listeners: list[Listener] = []

    # ── notifications ────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> None:
        """Call ``listener(event, obj)`` after every successful write."""
        self._listeners.append(listener)

    def _notify(self, event: str, obj: dict[str, Any]) -> None:
        for listener in list(self._listeners):
            listener(event, copy.deepcopy(obj))

    # ── reads ────────────────────────────────────────────────────

    def get(self, api_version: str, kind: str, namespace: str, name: str) -> dict[str, Any]:
        with self._lock:
            obj = self._objects.get((api_version, kind, namespace, name))
            if obj is None:
                raise NotFoundError(kind, namespace, name)
            return copy.deepcopy(obj)

    def list(
        self,
        api_version: str | None = None,
        kind: str | None = None,
        namespace: str | None = None,
        labels: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        with self._lock:
            found = []
            for (av, k, ns, _), obj in sorted(self._objects.items()):
                if api_version is not None and av != api_version:
                    continue
                if kind is not None and k != kind:
                    continue
                if namespace is not None and ns != namespace:
                    continue
                if labels:
                    have = get_labels(obj)
                    if any(have.get(lk) != lv for lk, lv in labels.items()):
                        continue
                found.append(copy.deepcopy(obj))
            return found

    # ── writes ───────────────────────────────────────────────────

    def _next_version(self) -> str:
        return str(next(self._versions))

    def _check_precondition(self, key: ObjectKey, current: dict[str, Any], wanted: str) -> None:
        if wanted and wanted != get_resource_version(current):
            raise ConflictError(
                f"{key[1]} {key[2]}/{key[3]}: resourceVersion {wanted} does not match "
                f"stored {get_resource_version(current)}"
            ).with_context(kind=key[1], namespace=key[2], name=key[3])

    def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        key = _key(obj)
        with self._lock:
            if key in self._objects:
                raise AlreadyExistsError(f"{key[1]} {key[2]}/{key[3]} already exists").with_context(
                    kind=key[1], namespace=key[2], name=key[3]
                )
            stored = copy.deepcopy(obj)
            meta = stored.setdefault("metadata", {})
            meta.setdefault("uid", str(uuid.uuid4()))
            meta["generation"] = 1
            meta["resourceVersion"] = self._next_version()
            self._objects[key] = stored
            logger.debug("store.created", kind=key[1], namespace=key[2], name=key[3])
        self._notify("created", stored)
        return copy.deepcopy(stored)

    def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Replace desired state and metadata; the stored status is kept."""
        key = _key(obj)
        with self._lock:
            current = self._objects.get(key)
            if current is None:
                raise NotFoundError(key[1], key[2], key[3])
            self._check_precondition(key, current, get_resource_version(obj))

            stored = copy.deepcopy(obj)
            stored.pop("status", None)
            if "status" in current:
                stored["status"] = copy.deepcopy(current["status"])
            meta = stored.setdefault("metadata", {})
            meta["uid"] = current["metadata"]["uid"]
            generation = current["metadata"]["generation"]
            if _desired_state(stored) != _desired_state(current):
                generation += 1
            meta["generation"] = generation
            meta["resourceVersion"] = self._next_version()
            self._objects[key] = stored
        self._notify("updated", stored)
        return copy.deepcopy(stored)

    def update_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Replace only ``status``; generation is unchanged."""
        key = _key(obj)
        with self._lock:
            current = self._objects.get(key)
            if current is None:
                raise NotFoundError(key[1], key[2], key[3])
            self._check_precondition(key, current, get_resource_version(obj))

            stored = copy.deepcopy(current)
            stored["status"] = copy.deepcopy(obj.get("status", {}))
            stored["metadata"]["resourceVersion"] = self._next_version()
            self._objects[key] = stored
        self._notify("updated", stored)
        return copy.deepcopy(stored)

    def patch(
        self,
        api_version: str,
        kind: str,
        namespace: str,
        name: str,
        patch: dict[str, Any],
        resource_version: str | None = None,
    ) -> dict[str, Any]:
        """Apply a JSON merge patch to the whole object, status included."""
        key = (api_version, kind, namespace, name)
        with self._lock:
            current = self._objects.get(key)
            if current is None:
                raise NotFoundError(kind, namespace, name)
            self._check_precondition(key, current, resource_version or "")

            stored = merge_patch(current, patch)
            meta = stored.setdefault("metadata", {})
            meta["name"] = name
            meta["namespace"] = namespace
            meta["uid"] = current["metadata"]["uid"]
            generation = current["metadata"]["generation"]
            if _desired_state(stored) != _desired_state(current):
                generation += 1
            meta["generation"] = generation
            meta["resourceVersion"] = self._next_version()
            self._objects[key] = stored
        self._notify("updated", stored)
        return copy.deepcopy(stored)

    def delete(self, api_version: str, kind: str, namespace: str, name: str) -> None:
        key = (api_version, kind, namespace, name)
        with self._lock:
            obj = self._objects.pop(key, None)
            if obj is None:
                raise NotFoundError(kind, namespace, name)
        self._notify("deleted", obj)

    def __len__(self) -> int:
        with self._lock:
            return len(self._objects)

    def seed(self, objects: list[dict[str, Any]]) -> None:
        """Create every object in ``objects`` (for local runs and fixtures)."""
        for obj in objects:
            self.create(obj)


def load_manifests(source: str | Path) -> list[dict[str, Any]]:
    """Parse a multi-document YAML string or file into plain-dict objects."""
    text = source.read_text(encoding="utf-8") if isinstance(source, Path) else source
    return [doc for doc in yaml.safe_load_all(text) if doc]


__all__ = ["ObjectStore", "InMemoryObjectStore", "merge_patch", "load_manifests"]
