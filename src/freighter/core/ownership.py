"""Ownership graph — who owns what, as explicit (uid, kind) edges."""

from collections.abc import Iterable

from freighter.core.resource import Resource
from freighter.pacts.types import OwnerRef


class OwnershipGraph:
    """Child objects indexed by the owner each of them points at."""

    def __init__(self, objects: Iterable[Resource] = ()):
        self._children: dict[OwnerRef, list[Resource]] = {}
        for obj in objects:
            self.add(obj)

    def add(self, obj: Resource) -> None:
        for edge in obj.owners():
            self._children.setdefault(edge, []).append(obj)

    def children(self, uid: str, kind: str) -> list[Resource]:
        """Objects whose owner references include (uid, kind)."""
        return list(self._children.get(OwnerRef(uid=uid, kind=kind), []))

    def descendants(self, uid: str, path: list[str]) -> list[Resource]:
        """Follow kinds along path starting at uid; return the last hop's objects.

        ``path`` names the owner kind at each hop, e.g. for a deployment
        ``["Deployment", "ReplicaSet"]`` yields the pods of its replica sets.
        """
        frontier = {uid}
        found: list[Resource] = []
        for kind in path:
            found = [child for owner in frontier for child in self.children(owner, kind)]
            frontier = {child.uid for child in found}
        return found


def dangling_pods(workload: Resource, replica_sets: list[Resource],
                  pods: list[Resource]) -> list[Resource]:
    """Return pods still descending from workload through its replica sets."""
    graph = OwnershipGraph(replica_sets + pods)
    return graph.descendants(workload.uid, [workload.kind, "ReplicaSet"])
