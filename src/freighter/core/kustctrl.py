"""Template composition engine — render an overlay and upsert its objects.

The manifest tree is laid out as::

    base/kustomization.yaml
    base/<resources>.yaml
    <overlay>/kustomization.yaml
    <overlay>/<patches>.yaml

Each non-base directory is an overlay rendered on top of base. Template
mutators get the base descriptor, the inbound Ads and the overlay being
rendered; object mutators see every rendered object right before it is
submitted.
"""

import logging
from pathlib import Path
from typing import Callable

from freighter.core.compose import Compositor, render_overlay
from freighter.core.loader import BASE_DESCRIPTOR, load_tree, read_descriptor, write_descriptor
from freighter.core.resource import Resource, to_object
from freighter.core.store import FIELD_MANAGER, ObjectStore, StoreError
from freighter.pacts.errors import FreighterError, MutationError, SubmitError
from freighter.pacts.types import NOT_APPLIED_OVERLAY, Ads

logger = logging.getLogger(__name__)

TemplateMutator = Callable[[dict, Ads, str], None]
ObjectMutator = Callable[[Resource], None]


class KustomizeController:
    """Renders and applies overlays of one manifest tree.

    Not a full component on its own: components hold one and add their own
    advertise and status logic. Apply is fail-fast with no rollback, so a
    failure halfway leaves earlier objects applied; re-running the same
    Apply converges because every submit is an idempotent upsert.
    """

    def __init__(self, store: ObjectStore, tree: str | Path,
                 compositor: Compositor = render_overlay,
                 field_manager: str = FIELD_MANAGER):
        self.store = store
        self.tree = Path(tree)
        self.compositor = compositor
        self.field_manager = field_manager
        self.template_mutators: list[TemplateMutator] = []
        self.object_mutators: list[ObjectMutator] = []
        self._overlay = NOT_APPLIED_OVERLAY

    def apply(self, overlay: str, ads: Ads) -> None:
        """Render overlay and submit every object it yields."""
        logger.info("applying overlay '%s' from %s", overlay, self.tree)
        for obj in self.render(overlay, ads):
            self._mutate_object(obj)
            try:
                self.store.apply(obj, field_manager=self.field_manager)
            except StoreError as err:
                raise SubmitError(f"error patching object {obj!r}: {err}") from err
            logger.debug("submitted %r", obj)
        self._overlay = overlay
        logger.info("overlay '%s' applied", overlay)

    def render(self, overlay: str, ads: Ads) -> list[Resource]:
        """Load the tree, run template mutators, compose and decode objects."""
        files = load_tree(self.tree)
        self._mutate_descriptor(files, ads, overlay)
        return [to_object(manifest) for manifest in self.compositor(files, overlay)]

    def _mutate_descriptor(self, files: dict[str, str], ads: Ads, overlay: str) -> None:
        if not self.template_mutators:
            return
        kust = read_descriptor(files, BASE_DESCRIPTOR)
        for mutate in self.template_mutators:
            _run_mutator(mutate, "descriptor", kust, ads, overlay)
        write_descriptor(files, kust, BASE_DESCRIPTOR)

    def _mutate_object(self, obj: Resource) -> None:
        for mutate in self.object_mutators:
            _run_mutator(mutate, repr(obj), obj)

    def current_overlay(self) -> str:
        """Return the last successfully applied overlay."""
        return self._overlay


def _run_mutator(mutate: Callable, target: str, *args) -> None:
    """Call a mutator, wrapping anything but our own errors in MutationError."""
    try:
        mutate(*args)
    except FreighterError:
        raise
    except Exception as err:
        raise MutationError(f"error mutating {target}: {err}") from err
