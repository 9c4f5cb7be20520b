"""Tests for bundle loading and artifact persistence."""

import json

import pytest

from appdelivery.assemble.bundle import (
    BUNDLE_API_VERSION,
    BUNDLE_KIND,
    artifact_name,
    load_components,
    persist_artifact,
)
from appdelivery.core.errors import BundleNotReadyError, InvalidBundleError, NotFoundError
from appdelivery.models import ApplicationRevision
from tests._support.builders import make_revision_object


def _ref_revision(ref="test-assemble-v1-input"):
    obj = make_revision_object()
    obj["spec"].pop("bundle")
    obj["spec"]["bundleRef"] = ref
    return ApplicationRevision.from_object(obj)


class TestLoadComponents:
    def test_inline_list(self, revision):
        (component,) = load_components(revision)
        assert component.name == "test-comp"
        assert component.revision_name == "test-comp-v1"
        assert len(component.traits) == 3

    def test_inline_json_string(self):
        bundle = json.dumps(make_revision_object()["spec"]["bundle"])
        revision = ApplicationRevision.from_object(make_revision_object(bundle=bundle))
        assert [c.name for c in load_components(revision)] == ["test-comp"]

    def test_bundle_ref(self, store):
        data = json.dumps(make_revision_object()["spec"]["bundle"])
        store.create(
            {
                "apiVersion": BUNDLE_API_VERSION,
                "kind": BUNDLE_KIND,
                "metadata": {"name": "test-assemble-v1-input", "namespace": "default"},
                "data": {"bundle": data},
            }
        )
        assert [c.name for c in load_components(_ref_revision(), store)] == ["test-comp"]

    def test_bundle_ref_missing_object_is_transient(self, store):
        with pytest.raises(BundleNotReadyError) as exc:
            load_components(_ref_revision(), store)
        assert exc.value.retryable
        assert isinstance(exc.value.cause, NotFoundError)
        assert exc.value.context.revision == "test-assemble-v1"

    def test_bundle_ref_without_store(self):
        with pytest.raises(InvalidBundleError):
            load_components(_ref_revision())

    def test_neither(self):
        obj = make_revision_object()
        obj["spec"].pop("bundle")
        with pytest.raises(InvalidBundleError):
            load_components(ApplicationRevision.from_object(obj))

    def test_component_without_name(self):
        revision = ApplicationRevision.from_object(make_revision_object())
        revision.spec.bundle = [{"workload": {}}]
        with pytest.raises(InvalidBundleError):
            load_components(revision)


class TestPersistArtifact:
    def test_creates_owned_immutable_object(self, store, revision):
        persist_artifact(store, revision, '{"a":1}')
        obj = store.get(BUNDLE_API_VERSION, BUNDLE_KIND, "default", artifact_name(revision.name))
        assert obj["immutable"] is True
        assert obj["data"]["bundle"] == '{"a":1}'
        assert obj["metadata"]["ownerReferences"][0]["kind"] == "Application"

    def test_identical_payload_is_noop(self, store, revision):
        first = persist_artifact(store, revision, '{"a":1}')
        second = persist_artifact(store, revision, '{"a":1}')
        assert first["metadata"]["resourceVersion"] == second["metadata"]["resourceVersion"]

    def test_different_payload_rejected(self, store, revision):
        persist_artifact(store, revision, '{"a":1}')
        with pytest.raises(InvalidBundleError):
            persist_artifact(store, revision, '{"a":2}')
