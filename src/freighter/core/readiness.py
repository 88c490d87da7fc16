"""Readiness engine — live Status of a deployment-backed component."""

import logging

from freighter.core.ownership import dangling_pods
from freighter.core.resource import Deployment, Pod, ReplicaSet
from freighter.core.store import ObjectStore, StoreError
from freighter.pacts.errors import NotAppliedError, StatusQueryError
from freighter.pacts.helpers import to_condition
from freighter.pacts.types import NOT_APPLIED_OVERLAY, SCALE_DOWN_OVERLAY, Condition, Status

logger = logging.getLogger(__name__)

MSG_NOT_AVAILABLE = "deployment not fully available yet"
MSG_AVAILABLE = "deployment available"
MSG_SCALING_DOWN = "deployment scaling down"
MSG_SCALED_DOWN = "deployment scaled down"


def _conditions(dep: Deployment) -> list[Condition]:
    conds = []
    for raw in dep.conditions:
        try:
            conds.append(to_condition(raw))
        except ValueError as err:
            raise StatusQueryError(f"error converting condition of {dep!r}: {err}") from err
    return conds


def _has_dangling_pods(store: ObjectStore, dep: Deployment) -> bool:
    try:
        rsets = store.list(ReplicaSet.api_version, ReplicaSet.kind, dep.namespace)
        pods = store.list(Pod.api_version, Pod.kind, dep.namespace)
    except StoreError as err:
        raise StatusQueryError(f"error listing replica sets or pods: {err}") from err
    return bool(dangling_pods(dep, rsets, pods))


def deployment_status(store: ObjectStore, namespace: str, name: str, overlay: str,
                      require_updated: bool = False) -> Status:
    """Compute a fresh Status for the deployment backing a component.

    Steady-state overlays are ready once available (and, with
    require_updated, updated) replicas reach the declared count. The
    scale-down overlay cannot trust those counters while pods terminate,
    so it is ready only when no pod still descends from the deployment.
    """
    if overlay == NOT_APPLIED_OVERLAY:
        raise NotAppliedError()

    try:
        dep = store.get(Deployment.api_version, Deployment.kind, namespace, name)
    except StoreError as err:
        raise StatusQueryError(f"unable to get deployment: {err}") from err
    conds = _conditions(dep)

    if overlay == SCALE_DOWN_OVERLAY:
        if _has_dangling_pods(store, dep):
            logger.debug("%r still has pods", dep)
            return Status(ready=False, message=MSG_SCALING_DOWN, conditions=conds)
        return Status(ready=True, message=MSG_SCALED_DOWN, conditions=conds)

    replicas = dep.desired_replicas
    fresh = not require_updated or dep.updated_replicas == replicas
    if dep.available_replicas != replicas or not fresh:
        logger.debug("%r: %d/%d available, %d updated", dep, dep.available_replicas,
                     replicas, dep.updated_replicas)
        return Status(ready=False, message=MSG_NOT_AVAILABLE, conditions=conds)
    return Status(ready=True, message=MSG_AVAILABLE, conditions=conds)
