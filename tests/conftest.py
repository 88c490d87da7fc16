"""Shared fixtures: an in-memory object store standing in for the cluster."""

from __future__ import annotations

import base64
import copy
import itertools

import pytest

from freighter.core.resource import Resource, to_object
from freighter.core.store import FIELD_MANAGER, ObjectExists, ObjectNotFound, ObjectStore, StoreError


class MemoryStore(ObjectStore):
    """Dict-backed ObjectStore with just enough API-server behaviour for tests.

    Assigns uids on first write, folds Secret stringData into base64 data,
    and keeps an existing object's status across applies.
    """

    def __init__(self):
        self.objects: dict[tuple, dict] = {}
        self.applied: list[Resource] = []
        self.created: list[Resource] = []
        self.fail_apply_on: str | None = None
        self._uids = itertools.count(1)

    @staticmethod
    def _key(api_version, kind, namespace, name):
        return (api_version, kind, namespace, name)

    def _normalise(self, manifest: dict) -> dict:
        manifest = copy.deepcopy(manifest)
        meta = manifest.setdefault("metadata", {})
        meta.setdefault("uid", f"uid-{next(self._uids)}")
        string_data = manifest.pop("stringData", None)
        if string_data:
            data = manifest.setdefault("data", {})
            for k, v in string_data.items():
                data[k] = base64.b64encode(v.encode("utf-8")).decode("ascii")
        return manifest

    def put(self, manifest: dict) -> Resource:
        """Seed an object directly (apiVersion/kind included)."""
        stored = self._normalise(manifest)
        meta = stored["metadata"]
        key = self._key(stored["apiVersion"], stored["kind"], meta.get("namespace", ""), meta["name"])
        self.objects[key] = stored
        return to_object(stored)

    def remove(self, api_version, kind, namespace, name) -> None:
        del self.objects[self._key(api_version, kind, namespace, name)]

    def get(self, api_version, kind, namespace, name):
        try:
            return to_object(copy.deepcopy(self.objects[self._key(api_version, kind, namespace, name)]))
        except KeyError:
            raise ObjectNotFound(f"{kind} {namespace}/{name} not found") from None

    def list(self, api_version, kind, namespace):
        return [to_object(copy.deepcopy(m)) for (av, k, ns, _), m in sorted(self.objects.items())
                if (av, k, ns) == (api_version, kind, namespace)]

    def create(self, obj):
        key = self._key(obj.api_version, obj.kind, obj.namespace, obj.name)
        if key in self.objects:
            raise ObjectExists(f"{obj.kind} {obj.namespace}/{obj.name} already exists")
        self.created.append(obj)
        self.objects[key] = self._normalise(obj.to_dict())
        return to_object(copy.deepcopy(self.objects[key]))

    def apply(self, obj, field_manager=FIELD_MANAGER):
        if self.fail_apply_on and obj.kind == self.fail_apply_on:
            raise StoreError(f"refusing {obj!r}")
        key = self._key(obj.api_version, obj.kind, obj.namespace, obj.name)
        incoming = obj.to_dict()
        previous = self.objects.get(key)
        if previous is not None:
            incoming.setdefault("metadata", {})["uid"] = previous["metadata"]["uid"]
            if "status" in previous:
                incoming["status"] = previous["status"]
        self.applied.append(obj)
        self.objects[key] = self._normalise(incoming)
        return to_object(copy.deepcopy(self.objects[key]))

    # helpers for driving the fake "cluster"

    def set_status(self, kind, namespace, name, status: dict, api_version="apps/v1") -> None:
        self.objects[self._key(api_version, kind, namespace, name)]["status"] = status

    def keys_of(self, kind: str) -> list[str]:
        return sorted(k[3] for k in self.objects if k[1] == kind)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def tree(tmp_path):
    """A tiny manifest tree with base and scale-down overlays."""
    files = {
        "base/kustomization.yaml": (
            "resources:\n- deployment.yaml\n- service.yaml\n"
        ),
        "base/deployment.yaml": (
            "apiVersion: apps/v1\nkind: Deployment\nmetadata:\n  name: web\n"
            "spec:\n  replicas: 2\n  template:\n    spec:\n"
            "      serviceAccountName: web\n      containers:\n      - name: web\n"
            "        image: nginx\n"
        ),
        "base/service.yaml": (
            "apiVersion: v1\nkind: Service\nmetadata:\n  name: web\n"
            "spec:\n  ports:\n  - port: 80\n"
        ),
        "scale-down/kustomization.yaml": (
            "resources:\n- ../base\nreplicas:\n- name: web\n  count: 0\n"
        ),
    }
    for rel, text in files.items():
        path = tmp_path / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
    return tmp_path
