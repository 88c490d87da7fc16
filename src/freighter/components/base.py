"""Shared plumbing for the bundled deployment-backed components."""

import logging
from pathlib import Path

from freighter.core.compose import Compositor, render_overlay
from freighter.core.kustctrl import KustomizeController
from freighter.core.mutators import with_namespace, with_owner_reference
from freighter.core.readiness import deployment_status
from freighter.core.store import ObjectStore
from freighter.pacts.errors import NotAppliedError
from freighter.pacts.types import NOT_APPLIED_OVERLAY, SCALE_DOWN_OVERLAY, Ads, Status

logger = logging.getLogger(__name__)

MANIFESTS_DIR = Path(__file__).parent / "manifests"


class Component:
    """A single service deployed from its own manifest tree.

    Subclasses set ``name`` (the manifest tree under manifests/), ``workload``
    (the un-prefixed Deployment name checked for readiness) and, when
    readiness must also wait for every replica to be updated,
    ``require_updated``. Customisation happens through the mutator lists of
    the underlying KustomizeController, not through overriding apply.
    """
    name = ""
    workload = ""
    require_updated = False

    def __init__(self, store: ObjectStore, namespace: str = "default",
                 name_prefix: str = "undefined", owner_ref: dict | None = None,
                 compositor: Compositor = render_overlay):
        self.store = store
        self.namespace = namespace
        self.name_prefix = name_prefix
        self.owner_ref = owner_ref
        self.kust = KustomizeController(store, MANIFESTS_DIR / self.name, compositor=compositor)
        self.kust.template_mutators.append(self.mutate_descriptor)
        if owner_ref is not None:
            self.kust.object_mutators.append(with_owner_reference(owner_ref))
        self.kust.object_mutators.append(with_namespace(namespace))

    def prefixed(self, name: str) -> str:
        return f"{self.name_prefix}-{name}"

    def mutate_descriptor(self, kust: dict, ads: Ads, overlay: str) -> None:
        """Prefix every object name with this instance's name prefix."""
        kust["namePrefix"] = f"{self.name_prefix}-"

    def apply(self, overlay: str, ads: Ads) -> None:
        self.kust.apply(overlay, ads)

    def current_overlay(self) -> str:
        return self.kust.current_overlay()

    def advertise(self) -> Ads:
        """Return what dependents need; nothing while scaled down."""
        overlay = self.current_overlay()
        if overlay == NOT_APPLIED_OVERLAY:
            raise NotAppliedError()
        if overlay == SCALE_DOWN_OVERLAY:
            return Ads()
        return self.advertised()

    def advertised(self) -> Ads:
        return Ads()

    def status(self) -> Status:
        status = deployment_status(self.store, self.namespace, self.prefixed(self.workload),
                                   self.current_overlay(), require_updated=self.require_updated)
        logger.debug("%s status: %s", self.name, status.message)
        return status

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.namespace}/{self.name_prefix}>"
