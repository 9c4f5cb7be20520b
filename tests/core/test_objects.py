"""Tests for plain-dict object helpers."""

import pytest

from appdelivery.core.objects import (
    TypedReference,
    api_group,
    get_condition,
    get_controller_of,
    get_path,
    gvk_string,
    owner_reference,
    set_condition,
    set_path,
)


class TestTypedReference:
    def test_of_and_to_dict(self):
        ref = TypedReference.of({"apiVersion": "apps/v1", "kind": "Deployment", "metadata": {"name": "web"}})
        assert ref.to_dict() == {"apiVersion": "apps/v1", "kind": "Deployment", "name": "web"}
        assert TypedReference.from_dict(ref.to_dict()) == ref

    def test_hashable(self):
        a = TypedReference("apps/v1", "Deployment", "web")
        assert {a: 1}[TypedReference("apps/v1", "Deployment", "web")] == 1


class TestGroups:
    @pytest.mark.parametrize(
        "api_version,group",
        [("apps/v1", "apps"), ("v1", ""), ("apps.kruise.io/v1alpha1", "apps.kruise.io")],
    )
    def test_api_group(self, api_version, group):
        assert api_group({"apiVersion": api_version}) == group

    def test_gvk_string(self):
        assert gvk_string({"apiVersion": "apps/v1", "kind": "ReplicaSet"}) == "apps/v1, Kind=ReplicaSet"


class TestPaths:
    def test_get_path(self):
        obj = {"spec": {"updateStrategy": {"paused": False}}}
        assert get_path(obj, "spec.updateStrategy.paused") is False
        assert get_path(obj, "spec.missing.x", "d") == "d"
        assert get_path(obj, ["spec", "updateStrategy"]) == {"paused": False}

    def test_set_path_creates_intermediates(self):
        obj = {}
        set_path(obj, "spec.updateStrategy.rollingUpdate.paused", True)
        assert obj == {"spec": {"updateStrategy": {"rollingUpdate": {"paused": True}}}}

    def test_set_path_through_scalar(self):
        with pytest.raises(TypeError):
            set_path({"spec": "x"}, "spec.paused", True)


class TestOwnersAndConditions:
    def test_controller_owner(self):
        obj = {"metadata": {"ownerReferences": [owner_reference("v1", "A", "a", "u", controller=False),
                                                owner_reference("v1", "B", "b", "u")]}}
        assert get_controller_of(obj)["kind"] == "B"
        assert get_controller_of({}) is None

    def test_set_condition_replaces_same_type(self):
        obj = {}
        set_condition(obj, {"type": "Assembled", "status": "False"})
        set_condition(obj, {"type": "Other", "status": "True"})
        set_condition(obj, {"type": "Assembled", "status": "True"})
        assert get_condition(obj, "Assembled")["status"] == "True"
        assert len(obj["status"]["conditions"]) == 2
        assert get_condition(obj, "Missing") is None
