"""Tests for the managed object reconciler."""

from __future__ import annotations

import pytest
from kubernetes.client.exceptions import ApiException

from pingsource_operator.builders.rbac import make_service_account
from pingsource_operator.constants import KIND_DEPLOYMENT, KIND_SERVICE_ACCOUNT
from pingsource_operator.handlers.managed import (
    MT_RECEIVE_ADAPTER,
    SERVICE_ACCOUNT,
    Action,
    ManagedObjectReconciler,
    apply_deployment_template_fields,
    deployment_template_fields,
    is_controlled_by,
)
from pingsource_operator.services.kube.lister import CachedLister
from pingsource_operator.utils.cache import make_cache_key, set_cached_object
from pingsource_operator.utils.errors import ManagedObjectError, OwnershipConflictError

from .fakes import FakeClusterClient, make_source


class BlindLister(CachedLister):
    """A lister that has not seen anything yet."""

    def get(self, kind, namespace, name):
        return None


def shared_deployment(image="registry.example/mtping:1"):
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": "pingsource-mt-adapter", "namespace": "knative-eventing"},
        "spec": {
            "template": {
                "metadata": {"labels": {"app": "mt"}},
                "spec": {"containers": [{"name": "receive-adapter", "image": image}]},
            }
        },
    }


@pytest.fixture
def cluster():
    return FakeClusterClient()


@pytest.fixture
def source():
    return make_source()


class TestIsControlledBy:
    """Test cases for is_controlled_by function."""

    def test_controller_reference_matches(self, source):
        """Test that an object built for the source is controlled by it."""
        assert is_controlled_by(make_service_account(source, "sa"), source)

    def test_non_controller_reference(self, source):
        """Test that a plain owner reference does not imply control."""
        obj = {"metadata": {"ownerReferences": [{"uid": "abc", "controller": False}]}}
        assert not is_controlled_by(obj, source)

    def test_other_owner(self, source):
        """Test that a controller with another uid is rejected."""
        obj = {"metadata": {"ownerReferences": [{"uid": "someone-else", "controller": True}]}}
        assert not is_controlled_by(obj, source)


class TestDeploymentTemplateFields:
    """Test cases for the Deployment owned-field projection."""

    def test_projection(self):
        """Test that pod labels and pod spec are projected."""
        fields = deployment_template_fields(shared_deployment())
        assert fields == {
            "labels": {"app": "mt"},
            "spec": {"containers": [{"name": "receive-adapter", "image": "registry.example/mtping:1"}]},
        }

    def test_apply_keeps_foreign_labels(self):
        """Test that applying owned fields merges pod labels."""
        live = shared_deployment(image="old")
        live["spec"]["template"]["metadata"]["labels"]["injected"] = "yes"
        live["spec"]["replicas"] = 3

        apply_deployment_template_fields(live, shared_deployment())

        assert live["spec"]["template"]["metadata"]["labels"] == {"app": "mt", "injected": "yes"}
        assert live["spec"]["template"]["spec"]["containers"][0]["image"] == "registry.example/mtping:1"
        assert live["spec"]["replicas"] == 3


class TestEnsure:
    """Test cases for ManagedObjectReconciler.ensure."""

    def test_creates_missing_object(self, cluster, source):
        """Test that a missing object is created and reported."""
        reconciler = ManagedObjectReconciler(CachedLister(cluster), cluster)

        live, action = reconciler.ensure(SERVICE_ACCOUNT, make_service_account(source, "sa"), source)

        assert action is Action.CREATED
        assert live["metadata"]["resourceVersion"]
        assert len(cluster.verbs("create")) == 1

    def test_before_create_runs_only_on_create(self, cluster, source):
        """Test that the pre-create hook is skipped for existing objects."""
        reconciler = ManagedObjectReconciler(CachedLister(cluster), cluster)
        calls = []

        reconciler.ensure(SERVICE_ACCOUNT, make_service_account(source, "sa"), source, before_create=lambda: calls.append(1))
        reconciler.ensure(SERVICE_ACCOUNT, make_service_account(source, "sa"), source, before_create=lambda: calls.append(2))

        assert calls == [1]

    def test_lost_create_race_adopts_existing(self, cluster, source):
        """Test that AlreadyExists falls back to an authoritative read."""
        cluster.put(KIND_SERVICE_ACCOUNT, make_service_account(source, "sa"))
        reconciler = ManagedObjectReconciler(BlindLister(cluster), cluster)

        live, action = reconciler.ensure(SERVICE_ACCOUNT, make_service_account(source, "sa"), source)

        assert action is Action.UNCHANGED
        assert live["metadata"]["name"] == "sa"
        assert len(cluster.verbs("get")) == 1

    def test_lost_create_race_checks_ownership(self, cluster, source):
        """Test that an object won by someone else is still ownership-checked."""
        cluster.put(KIND_SERVICE_ACCOUNT, {"metadata": {"name": "sa", "namespace": "ns"}})
        reconciler = ManagedObjectReconciler(BlindLister(cluster), cluster)

        with pytest.raises(OwnershipConflictError):
            reconciler.ensure(SERVICE_ACCOUNT, make_service_account(source, "sa"), source)

    def test_shared_object_created_once(self, cluster, source):
        """Test that two reconcilers racing on the shared adapter create it once."""
        first = ManagedObjectReconciler(BlindLister(cluster), cluster)
        second = ManagedObjectReconciler(BlindLister(cluster), cluster)

        _, first_action = first.ensure(MT_RECEIVE_ADAPTER, shared_deployment(), source)
        _, second_action = second.ensure(MT_RECEIVE_ADAPTER, shared_deployment(), make_source(name="p2", uid="u2"))

        assert first_action is Action.CREATED
        assert second_action is Action.UNCHANGED
        assert len([k for k in cluster.objects if k[0] == KIND_DEPLOYMENT]) == 1

    def test_drift_updates_shared_object(self, cluster, source):
        """Test that drift on the shared adapter is corrected."""
        cluster.put(KIND_DEPLOYMENT, shared_deployment(image="old"))
        reconciler = ManagedObjectReconciler(CachedLister(cluster), cluster)

        live, action = reconciler.ensure(MT_RECEIVE_ADAPTER, shared_deployment(), source)

        assert action is Action.UPDATED
        assert live["spec"]["template"]["spec"]["containers"][0]["image"] == "registry.example/mtping:1"

    def test_stale_cache_update_conflict(self, cluster, source):
        """Test that an update from a stale cached copy fails and is forgotten."""
        cluster.put(KIND_DEPLOYMENT, shared_deployment(image="old"))
        stale = cluster.get(KIND_DEPLOYMENT, "knative-eventing", "pingsource-mt-adapter")
        stale["metadata"]["resourceVersion"] = "0"
        key = make_cache_key(KIND_DEPLOYMENT, "knative-eventing", "pingsource-mt-adapter")
        set_cached_object(key, stale)
        reconciler = ManagedObjectReconciler(CachedLister(cluster), cluster)

        with pytest.raises(ManagedObjectError) as exc_info:
            reconciler.ensure(MT_RECEIVE_ADAPTER, shared_deployment(), source)
        assert exc_info.value.status == 409

        _, action = reconciler.ensure(MT_RECEIVE_ADAPTER, shared_deployment(), source)
        assert action is Action.UPDATED

    def test_create_failure(self, cluster, source):
        """Test that a failed create carries the kind's failure reason."""
        cluster.failures[("create", KIND_SERVICE_ACCOUNT)] = ApiException(status=403, reason="Forbidden")
        reconciler = ManagedObjectReconciler(CachedLister(cluster), cluster)

        with pytest.raises(ManagedObjectError) as exc_info:
            reconciler.ensure(SERVICE_ACCOUNT, make_service_account(source, "sa"), source)

        assert exc_info.value.reason == "PingSourceServiceAccountFailed"
        assert exc_info.value.retryable
        assert "403 Forbidden" in str(exc_info.value)

    def test_desired_not_mutated(self, cluster, source):
        """Test that the desired object is left untouched."""
        cluster.put(KIND_DEPLOYMENT, shared_deployment(image="old"))
        desired = shared_deployment()
        reconciler = ManagedObjectReconciler(CachedLister(cluster), cluster)

        reconciler.ensure(MT_RECEIVE_ADAPTER, desired, source)

        assert desired == shared_deployment()
