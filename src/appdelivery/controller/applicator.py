"""
Direct-apply path for applications without a workflow.

Create-or-update each assembled resource with the stored resourceVersion as
precondition. The assembled object is authoritative for everything it sets;
``status`` and server-populated metadata are left to the store. Resources
that already match are not written.
"""

from __future__ import annotations

from typing import Any

from appdelivery.core.errors import NotFoundError
from appdelivery.core.logging import get_logger
from appdelivery.core.objects import get_name, get_namespace, object_key
from appdelivery.core.store import ObjectStore

logger = get_logger(__name__)

_SERVER_FIELDS = ("resourceVersion", "generation", "uid")


def _comparable(obj: dict[str, Any]) -> dict[str, Any]:
    out = {k: v for k, v in obj.items() if k != "status"}
    out["metadata"] = {k: v for k, v in obj.get("metadata", {}).items() if k not in _SERVER_FIELDS}
    return out


class Applicator:
    """Applies assembled resources to the object store."""

    def __init__(self, store: ObjectStore):
        self.store = store

    def apply(self, resources: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Apply ``resources`` in order; returns the stored objects.

        Raises:
            ConflictError: a resource changed between read and write.
        """
        applied = []
        for desired in resources:
            applied.append(self.apply_one(desired))
        return applied

    def apply_one(self, desired: dict[str, Any]) -> dict[str, Any]:
        try:
            existing = self.store.get(
                desired.get("apiVersion", ""), desired.get("kind", ""), get_namespace(desired), get_name(desired)
            )
        except NotFoundError:
            created = self.store.create(desired)
            logger.info("apply.created", resource=object_key(created))
            return created

        if _comparable(existing) == _comparable(desired):
            return existing

        obj = dict(desired)
        obj["metadata"] = dict(desired.get("metadata", {}))
        obj["metadata"]["resourceVersion"] = existing["metadata"]["resourceVersion"]
        updated = self.store.update(obj)
        logger.info("apply.updated", resource=object_key(updated))
        return updated


__all__ = ["Applicator"]
