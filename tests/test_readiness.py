"""Tests for the readiness engine and the ownership graph."""

import pytest

from freighter.core.ownership import OwnershipGraph, dangling_pods
from freighter.core.readiness import deployment_status
from freighter.core.resource import to_object
from freighter.pacts.errors import NotAppliedError, StatusQueryError

NS = "ns"


def _deployment(store, replicas=3, available=0, updated=0, conditions=None):
    return store.put({
        "apiVersion": "apps/v1", "kind": "Deployment",
        "metadata": {"name": "db", "namespace": NS, "uid": "dep-1"},
        "spec": {"replicas": replicas},
        "status": {"availableReplicas": available, "updatedReplicas": updated,
                   "conditions": conditions or []},
    })


def _owned(store, kind, name, owner_uid, owner_kind, uid=None):
    api_version = "apps/v1" if kind == "ReplicaSet" else "v1"
    meta = {"name": name, "namespace": NS,
            "ownerReferences": [{"uid": owner_uid, "kind": owner_kind, "name": "x"}]}
    if uid:
        meta["uid"] = uid
    return store.put({"apiVersion": api_version, "kind": kind, "metadata": meta})


class TestSteadyState:
    def test_partially_available(self, store):
        _deployment(store, replicas=3, available=2)
        status = deployment_status(store, NS, "db", "base")
        assert not status.ready
        assert status.message == "deployment not fully available yet"

    def test_fully_available(self, store):
        _deployment(store, replicas=3, available=3)
        status = deployment_status(store, NS, "db", "base")
        assert status.ready
        assert status.message == "deployment available"

    def test_require_updated(self, store):
        _deployment(store, replicas=3, available=3, updated=1)
        assert deployment_status(store, NS, "db", "base").ready
        assert not deployment_status(store, NS, "db", "base", require_updated=True).ready

    def test_conditions_surface(self, store):
        _deployment(store, replicas=1, available=1, conditions=[
            {"type": "Available", "status": "True", "reason": "MinimumReplicasAvailable",
             "message": "ok", "lastTransitionTime": "2024-01-01T00:00:00Z"},
        ])
        status = deployment_status(store, NS, "db", "base")
        assert [(c.type, c.status, c.reason) for c in status.conditions] == [
            ("Available", "True", "MinimumReplicasAvailable"),
        ]

    def test_bad_condition_fails_status(self, store):
        _deployment(store, replicas=1, available=1, conditions=[{"reason": "no type"}])
        with pytest.raises(StatusQueryError, match="condition"):
            deployment_status(store, NS, "db", "base")

    def test_not_applied(self, store):
        with pytest.raises(NotAppliedError):
            deployment_status(store, NS, "db", "")

    def test_missing_deployment(self, store):
        with pytest.raises(StatusQueryError, match="unable to get deployment"):
            deployment_status(store, NS, "db", "base")


class TestScaleDown:
    def test_pod_still_owned_through_replica_set(self, store):
        _deployment(store, replicas=0, available=0)
        _owned(store, "ReplicaSet", "db-rs", "dep-1", "Deployment", uid="rs-1")
        _owned(store, "Pod", "db-rs-abc", "rs-1", "ReplicaSet")
        status = deployment_status(store, NS, "db", "scale-down")
        assert not status.ready
        assert status.message == "deployment scaling down"

    def test_pod_gone(self, store):
        _deployment(store, replicas=0, available=0)
        _owned(store, "ReplicaSet", "db-rs", "dep-1", "Deployment", uid="rs-1")
        _owned(store, "Pod", "db-rs-abc", "rs-1", "ReplicaSet")
        store.remove("v1", "Pod", NS, "db-rs-abc")
        status = deployment_status(store, NS, "db", "scale-down")
        assert status.ready
        assert status.message == "deployment scaled down"

    def test_counters_are_not_trusted(self, store):
        # counters already say zero, the pod is what matters
        _deployment(store, replicas=0, available=0, updated=0)
        _owned(store, "ReplicaSet", "db-rs", "dep-1", "Deployment", uid="rs-1")
        _owned(store, "Pod", "db-rs-abc", "rs-1", "ReplicaSet")
        assert not deployment_status(store, NS, "db", "scale-down").ready

    def test_unrelated_pods_ignored(self, store):
        _deployment(store, replicas=0)
        _owned(store, "ReplicaSet", "other-rs", "dep-2", "Deployment", uid="rs-2")
        _owned(store, "Pod", "other-pod", "rs-2", "ReplicaSet")
        # owner uid matches but kind does not
        _owned(store, "Pod", "odd-pod", "dep-1", "Deployment")
        assert deployment_status(store, NS, "db", "scale-down").ready


class TestOwnershipGraph:
    def _obj(self, kind, uid, owner_uid=None, owner_kind=None):
        api_version = "apps/v1" if kind in ("ReplicaSet", "Deployment") else "v1"
        meta = {"name": uid, "uid": uid}
        if owner_uid:
            meta["ownerReferences"] = [{"uid": owner_uid, "kind": owner_kind}]
        return to_object({"apiVersion": api_version, "kind": kind, "metadata": meta})

    def test_two_hops(self):
        dep = self._obj("Deployment", "d")
        rs_a = self._obj("ReplicaSet", "a", "d", "Deployment")
        rs_b = self._obj("ReplicaSet", "b", "d", "Deployment")
        pods = [self._obj("Pod", "p1", "a", "ReplicaSet"),
                self._obj("Pod", "p2", "b", "ReplicaSet"),
                self._obj("Pod", "p3", "zz", "ReplicaSet")]
        found = dangling_pods(dep, [rs_a, rs_b], pods)
        assert sorted(p.name for p in found) == ["p1", "p2"]

    def test_children(self):
        graph = OwnershipGraph([self._obj("ReplicaSet", "a", "d", "Deployment")])
        assert [c.name for c in graph.children("d", "Deployment")] == ["a"]
        assert graph.children("d", "StatefulSet") == []

    def test_no_replica_sets(self):
        dep = self._obj("Deployment", "d")
        assert dangling_pods(dep, [], [self._obj("Pod", "p", "a", "ReplicaSet")]) == []
