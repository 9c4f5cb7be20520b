"""
Revision bundle loading and artifact persistence.

A revision's rendered component manifests arrive either inline in the
revision (``spec.bundle`` as a list or a JSON string) or in a separate
store object referenced by ``spec.bundleRef`` whose ``data.bundle`` holds the
JSON. After assembly the serialized result is persisted once as an immutable
artifact named ``<revision>-bundle``.
"""

from __future__ import annotations

from typing import Any

from appdelivery.core.errors import (
    AlreadyExistsError,
    BundleNotReadyError,
    InvalidBundleError,
    NotFoundError,
)
from appdelivery.core.labels import (
    APPLICATION_API_VERSION,
    APPLICATION_KIND,
    LABEL_APP_NAME,
    LABEL_APP_REVISION,
)
from appdelivery.core.logging import get_logger
from appdelivery.core.objects import owner_reference
from appdelivery.core.store import ObjectStore
from appdelivery.models import ApplicationRevision, ComponentManifest, parse_components

logger = get_logger(__name__)

BUNDLE_API_VERSION = "v1"
BUNDLE_KIND = "ConfigMap"
BUNDLE_DATA_KEY = "bundle"


def artifact_name(revision_name: str) -> str:
    return f"{revision_name}-bundle"


def load_components(revision: ApplicationRevision, store: ObjectStore | None = None) -> list[ComponentManifest]:
    """Decode the revision's component manifests.

    Raises:
        InvalidBundleError: no bundle, an undecodable bundle, or a
            ``bundleRef`` without a store to resolve it.
        BundleNotReadyError: the referenced bundle object does not exist yet.
    """
    spec = revision.spec
    if spec.bundle is not None:
        return parse_components(spec.bundle)
    if spec.bundle_ref:
        if store is None:
            raise InvalidBundleError(
                f"revision {revision.name} references bundle {spec.bundle_ref!r} but no store is configured"
            )
        try:
            obj = store.get(BUNDLE_API_VERSION, BUNDLE_KIND, revision.namespace, spec.bundle_ref)
        except NotFoundError as e:
            raise BundleNotReadyError(
                f"bundle {spec.bundle_ref!r} of revision {revision.name} not created yet", cause=e
            ).with_context(revision=revision.name) from e
        data = obj.get("data", {}).get(BUNDLE_DATA_KEY)
        if data is None:
            raise InvalidBundleError(f"bundle object {spec.bundle_ref!r} has no data.{BUNDLE_DATA_KEY}")
        return parse_components(data)
    raise InvalidBundleError(f"revision {revision.name} has neither bundle nor bundleRef").with_context(
        revision=revision.name
    )


def persist_artifact(store: ObjectStore, revision: ApplicationRevision, payload: str) -> dict[str, Any]:
    """Store ``payload`` as the revision's immutable artifact.

    Persisting identical content again is a no-op. Different content for an
    existing artifact is rejected.
    """
    name = artifact_name(revision.name)
    app = revision.application
    obj = {
        "apiVersion": BUNDLE_API_VERSION,
        "kind": BUNDLE_KIND,
        "metadata": {
            "name": name,
            "namespace": revision.namespace,
            "labels": {LABEL_APP_NAME: app.name, LABEL_APP_REVISION: revision.name},
            "ownerReferences": [owner_reference(APPLICATION_API_VERSION, APPLICATION_KIND, app.name, app.uid)],
        },
        "immutable": True,
        "data": {BUNDLE_DATA_KEY: payload},
    }
    try:
        created = store.create(obj)
        logger.info("bundle.persisted", revision=revision.name, artifact=name)
        return created
    except AlreadyExistsError:
        pass

    try:
        existing = store.get(BUNDLE_API_VERSION, BUNDLE_KIND, revision.namespace, name)
    except NotFoundError as e:
        # deleted between create and get; the next pass recreates it
        raise AlreadyExistsError(f"artifact {name} changed concurrently", cause=e) from e
    if existing.get("data", {}).get(BUNDLE_DATA_KEY) != payload:
        raise InvalidBundleError(
            f"artifact {name} already exists with different content; revisions are immutable"
        ).with_context(revision=revision.name)
    return existing


__all__ = [
    "BUNDLE_API_VERSION",
    "BUNDLE_KIND",
    "artifact_name",
    "load_components",
    "persist_artifact",
]
