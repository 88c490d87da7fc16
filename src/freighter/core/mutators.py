"""Reusable object-level mutators."""

from freighter.core.resource import Resource


def with_namespace(namespace: str):
    """Return a mutator placing every object in namespace."""
    def _mutate(obj: Resource) -> None:
        obj.namespace = namespace
    return _mutate


def with_owner_reference(owner_ref: dict):
    """Return a mutator appending owner_ref to every object's owner references."""
    def _mutate(obj: Resource) -> None:
        refs = obj.owner_references
        refs.append(dict(owner_ref))
        obj.owner_references = refs
    return _mutate


def owner_reference(owner: Resource) -> dict:
    """Build an owner reference pointing at an existing object."""
    return {
        "apiVersion": owner.api_version,
        "kind": owner.kind,
        "name": owner.name,
        "uid": owner.uid,
    }
