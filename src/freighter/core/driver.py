"""Sequential driver — apply, wait for ready, pass advertisements along."""

import logging
import time
from typing import Callable

from freighter.core.mutators import owner_reference
from freighter.core.resource import ConfigMap
from freighter.core.store import ObjectExists, ObjectNotFound, ObjectStore
from freighter.pacts.errors import ReadinessTimeout
from freighter.pacts.types import Ads, MicroController

logger = logging.getLogger(__name__)


def wait_ready(ctrl: MicroController, interval: float = 1.0,
               timeout: float | None = None,
               sleep: Callable[[float], None] = time.sleep,
               clock: Callable[[], float] = time.monotonic) -> None:
    """Poll ctrl.status() until ready.

    Errors from status() propagate at once. With no timeout this waits
    forever; with one it raises ReadinessTimeout once the deadline passes.
    """
    deadline = None if timeout is None else clock() + timeout
    status = ctrl.status()
    while not status.ready:
        if deadline is not None and clock() >= deadline:
            raise ReadinessTimeout(f"not ready after {timeout}s: {status.message}")
        logger.debug("waiting: %s", status.message)
        sleep(interval)
        status = ctrl.status()
    logger.info("ready: %s", status.message)


def apply_and_wait(ctrl: MicroController, overlay: str, ads: Ads,
                   interval: float = 1.0, timeout: float | None = None,
                   sleep: Callable[[float], None] = time.sleep) -> Ads:
    """Apply overlay, wait until ready, then return what ctrl advertises."""
    ctrl.apply(overlay, ads)
    wait_ready(ctrl, interval=interval, timeout=timeout, sleep=sleep)
    return ctrl.advertise()


def deploy_chain(ctrls: list[MicroController], overlay: str, ads: Ads | None = None,
                 interval: float = 1.0, timeout: float | None = None,
                 sleep: Callable[[float], None] = time.sleep) -> Ads:
    """Deploy ctrls one after another, each fed the previous one's Ads."""
    ads = ads if ads is not None else Ads()
    for ctrl in ctrls:
        logger.info("deploying %s", getattr(ctrl, "name", type(ctrl).__name__))
        ads = apply_and_wait(ctrl, overlay, ads, interval=interval, timeout=timeout, sleep=sleep)
    return ads


def ensure_owner(store: ObjectStore, namespace: str, name: str) -> dict:
    """Get or create an empty ConfigMap and return an owner reference to it."""
    try:
        owner = store.get(ConfigMap.api_version, ConfigMap.kind, namespace, name)
    except ObjectNotFound:
        cm = ConfigMap({"metadata": {"name": name, "namespace": namespace}, "data": {}})
        try:
            owner = store.create(cm)
        except ObjectExists:
            owner = store.get(ConfigMap.api_version, ConfigMap.kind, namespace, name)
    return owner_reference(owner)
