"""Typed resources — decode rendered or fetched manifests by apiVersion/kind."""

import copy

from freighter.pacts.errors import CompositionError
from freighter.pacts.helpers import secret_value
from freighter.pacts.types import OwnerRef


class Resource:
    """A concrete object of a known kind, backed by its manifest dict."""
    api_version = ""
    kind = ""

    def __init__(self, manifest: dict):
        self.manifest = manifest

    @property
    def metadata(self) -> dict:
        return self.manifest.setdefault("metadata", {})

    @property
    def name(self) -> str:
        return self.metadata.get("name", "")

    @property
    def namespace(self) -> str:
        return self.metadata.get("namespace", "")

    @namespace.setter
    def namespace(self, value: str) -> None:
        self.metadata["namespace"] = value

    @property
    def uid(self) -> str:
        return self.metadata.get("uid", "")

    @property
    def owner_references(self) -> list[dict]:
        return list(self.metadata.get("ownerReferences") or [])

    @owner_references.setter
    def owner_references(self, refs: list[dict]) -> None:
        self.metadata["ownerReferences"] = list(refs)

    def owners(self) -> list[OwnerRef]:
        """Return this object's owner references as graph edges."""
        return [OwnerRef(uid=r.get("uid", ""), kind=r.get("kind", ""))
                for r in self.owner_references]

    def to_dict(self) -> dict:
        """Return a deep copy of the manifest, apiVersion and kind included."""
        out = copy.deepcopy(self.manifest)
        out["apiVersion"] = self.api_version
        out["kind"] = self.kind
        return out

    def __repr__(self) -> str:
        ns = f"{self.namespace}/" if self.namespace else ""
        return f"<{self.kind} {ns}{self.name}>"


class Secret(Resource):
    api_version = "v1"
    kind = "Secret"

    def value(self, key: str) -> str | None:
        return secret_value(self.manifest, key)


class ConfigMap(Resource):
    api_version = "v1"
    kind = "ConfigMap"


class Service(Resource):
    api_version = "v1"
    kind = "Service"


class ServiceAccount(Resource):
    api_version = "v1"
    kind = "ServiceAccount"


class PersistentVolumeClaim(Resource):
    api_version = "v1"
    kind = "PersistentVolumeClaim"


class Pod(Resource):
    api_version = "v1"
    kind = "Pod"


class ReplicaSet(Resource):
    api_version = "apps/v1"
    kind = "ReplicaSet"


class HorizontalPodAutoscaler(Resource):
    api_version = "autoscaling/v2"
    kind = "HorizontalPodAutoscaler"


class Deployment(Resource):
    api_version = "apps/v1"
    kind = "Deployment"

    @property
    def desired_replicas(self) -> int:
        """Declared replicas; the platform default of 1 applies when unset."""
        replicas = (self.manifest.get("spec") or {}).get("replicas")
        return 1 if replicas is None else int(replicas)

    def _status(self) -> dict:
        return self.manifest.get("status") or {}

    @property
    def available_replicas(self) -> int:
        return int(self._status().get("availableReplicas") or 0)

    @property
    def updated_replicas(self) -> int:
        return int(self._status().get("updatedReplicas") or 0)

    @property
    def conditions(self) -> list:
        return list(self._status().get("conditions") or [])


# (apiVersion, kind) → typed class; anything else cannot be round-tripped
KINDS: dict[tuple[str, str], type[Resource]] = {
    (cls.api_version, cls.kind): cls
    for cls in (Secret, ConfigMap, Service, ServiceAccount, PersistentVolumeClaim,
                Pod, ReplicaSet, HorizontalPodAutoscaler, Deployment)
}


def to_object(manifest: dict) -> Resource:
    """Decode a manifest dict into its typed Resource, or raise CompositionError."""
    gvk = (manifest.get("apiVersion", ""), manifest.get("kind", ""))
    cls = KINDS.get(gvk)
    if cls is None:
        raise CompositionError(f"unmapped type apiVersion={gvk[0]!r} kind={gvk[1]!r}")
    body = copy.deepcopy(manifest)
    body.pop("apiVersion", None)
    body.pop("kind", None)
    return cls(body)
