"""Tests for the closed per-kind capability tables."""

import pytest

from appdelivery.assemble.kinds import (
    ApiGroup,
    GroupKind,
    ReleaseMechanism,
    is_inplace_upgradable,
    qualified_release_name,
    rollout_pause_path,
)
from appdelivery.core.errors import UnknownCapabilityError, UnknownWorkloadKindError


def _obj(api_version, kind, name="w"):
    return {"apiVersion": api_version, "kind": kind, "metadata": {"name": name}}


class TestGroupKind:
    def test_parse_core_group(self):
        assert GroupKind.parse("/Pod") == GroupKind("", "Pod")
        assert GroupKind.parse("batch/Job") == GroupKind("batch", "Job")

    def test_of(self):
        assert GroupKind.of(_obj("v1", "Pod")) == GroupKind("", "Pod")
        assert str(GroupKind.of(_obj("apps/v1", "Deployment"))) == "apps/Deployment"


class TestRolloutPausePath:
    @pytest.mark.parametrize(
        "api_version,kind,path",
        [
            ("apps.kruise.io/v1alpha1", "CloneSet", "spec.updateStrategy.paused"),
            ("apps.kruise.io/v1beta1", "StatefulSet", "spec.updateStrategy.rollingUpdate.paused"),
            ("apps/v1", "Deployment", "spec.paused"),
        ],
    )
    def test_known_kinds(self, api_version, kind, path):
        assert rollout_pause_path(_obj(api_version, kind)) == path

    def test_unknown_kind(self):
        with pytest.raises(UnknownWorkloadKindError) as exc:
            rollout_pause_path(_obj("apps/v1", "ReplicaSet", "web"))
        assert "web" in str(exc.value)
        assert "apps/v1, Kind=ReplicaSet" in str(exc.value)

    def test_same_kind_other_group(self):
        # a core-group StatefulSet is not the kruise one
        with pytest.raises(UnknownWorkloadKindError):
            rollout_pause_path(_obj("apps/v1", "StatefulSet"))

    @pytest.mark.parametrize(
        "api_version,kind",
        [
            ("apps/v1", "StatefulSet"),
            ("example.com/v1", "Deployment"),
            ("foo.io/v1", "CloneSet"),
            ("v1", "Deployment"),
        ],
    )
    def test_known_kind_in_foreign_group(self, api_version, kind):
        with pytest.raises(UnknownWorkloadKindError):
            rollout_pause_path(_obj(api_version, kind))

    def test_group_table_values(self):
        assert ApiGroup.KRUISE == "apps.kruise.io"
        assert GroupKind.of(_obj("apps/v1", "Deployment")).group == ApiGroup.APPS


class TestQualifiedReleaseName:
    def test_helm(self):
        assert qualified_release_name(ReleaseMechanism.HELM, "rel", "podinfo") == "rel-podinfo"
        assert qualified_release_name("helm", "podinfo", "podinfo") == "podinfo"

    def test_unknown_mechanism(self):
        with pytest.raises(UnknownCapabilityError):
            qualified_release_name("kustomize", "rel", "chart")


class TestInplaceUpgradable:
    def test_configured_kinds(self):
        kinds = ["batch/Job", "/Pod"]
        assert is_inplace_upgradable(_obj("apps/v1", "Deployment"), kinds)
        assert not is_inplace_upgradable(_obj("batch/v1", "Job"), kinds)
        assert not is_inplace_upgradable(_obj("v1", "Pod"), kinds)
