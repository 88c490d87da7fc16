"""Remote object store — the orchestration API the engine reads and writes."""

import logging
from abc import ABC, abstractmethod

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes import dynamic
from kubernetes.dynamic.exceptions import (
    ConflictError, DynamicApiError, NotFoundError, ResourceNotFoundError, ResourceNotUniqueError,
)

from freighter.core.resource import Resource, to_object
from freighter.pacts.errors import FreighterError

logger = logging.getLogger(__name__)

FIELD_MANAGER = "freighter"


class StoreError(FreighterError):
    """A remote store call failed."""


class ObjectNotFound(StoreError):
    """The requested object does not exist."""


class ObjectExists(StoreError):
    """Create refused because an object with that name already exists."""


class ObjectStore(ABC):
    """Typed get/list/create/apply keyed by (namespace, name, apiVersion/kind).

    Implementations must make ``create`` fail with ObjectExists when the
    object is already present, and ``apply`` an idempotent upsert.
    """

    @abstractmethod
    def get(self, api_version: str, kind: str, namespace: str, name: str) -> Resource:
        """Return the object, or raise ObjectNotFound."""

    @abstractmethod
    def list(self, api_version: str, kind: str, namespace: str) -> list[Resource]:
        """Return every object of a kind in a namespace."""

    @abstractmethod
    def create(self, obj: Resource) -> Resource:
        """Create obj, or raise ObjectExists."""

    @abstractmethod
    def apply(self, obj: Resource, field_manager: str = FIELD_MANAGER) -> Resource:
        """Create or patch obj so the store matches it."""


def load_kube_config() -> None:
    """Load in-cluster config, falling back to the local kubeconfig."""
    try:
        k8s_config.load_incluster_config()
    except k8s_config.ConfigException:
        k8s_config.load_kube_config()


class KubeStore(ObjectStore):
    """ObjectStore backed by a live cluster through the dynamic client."""

    def __init__(self, api_client: k8s_client.ApiClient | None = None):
        if api_client is None:
            load_kube_config()
            api_client = k8s_client.ApiClient()
        self._dyn = dynamic.DynamicClient(api_client)

    def _api(self, api_version: str, kind: str):
        try:
            return self._dyn.resources.get(api_version=api_version, kind=kind)
        except (ResourceNotFoundError, ResourceNotUniqueError) as err:
            raise StoreError(f"unable to discover {api_version}/{kind}: {err}") from err

    def get(self, api_version: str, kind: str, namespace: str, name: str) -> Resource:
        api = self._api(api_version, kind)
        try:
            found = api.get(name=name, namespace=namespace)
        except NotFoundError as err:
            raise ObjectNotFound(f"{kind} {namespace}/{name} not found") from err
        except DynamicApiError as err:
            raise StoreError(f"error reading {kind} {namespace}/{name}: {err.summary()}") from err
        return to_object(found.to_dict())

    def list(self, api_version: str, kind: str, namespace: str) -> list[Resource]:
        api = self._api(api_version, kind)
        try:
            found = api.get(namespace=namespace)
        except DynamicApiError as err:
            raise StoreError(f"error listing {kind} in {namespace}: {err.summary()}") from err
        out = []
        for item in found.to_dict().get("items") or []:
            # list items come back without apiVersion/kind
            item.setdefault("apiVersion", api_version)
            item.setdefault("kind", kind)
            out.append(to_object(item))
        return out

    def create(self, obj: Resource) -> Resource:
        api = self._api(obj.api_version, obj.kind)
        try:
            created = api.create(body=obj.to_dict(), namespace=obj.namespace or None)
        except ConflictError as err:
            raise ObjectExists(f"{obj.kind} {obj.namespace}/{obj.name} already exists") from err
        except DynamicApiError as err:
            raise StoreError(f"error creating {obj!r}: {err.summary()}") from err
        logger.debug("created %r", obj)
        return to_object(created.to_dict())

    def apply(self, obj: Resource, field_manager: str = FIELD_MANAGER) -> Resource:
        api = self._api(obj.api_version, obj.kind)
        try:
            applied = self._dyn.server_side_apply(
                api, body=obj.to_dict(), name=obj.name,
                namespace=obj.namespace or None,
                field_manager=field_manager, force_conflicts=True,
            )
        except DynamicApiError as err:
            raise StoreError(f"error applying {obj!r}: {err.summary()}") from err
        logger.debug("applied %r", obj)
        return to_object(applied.to_dict())
