"""Contracts shared by the engine and every component: Ads, Status, lifecycle."""

from dataclasses import dataclass, field
from typing import Protocol

from freighter.pacts.errors import MissingAdvertisementError

# Overlay names shared by the bundled components. Components are free to
# ship others; these are the conventions the readiness engine knows about.
NOT_APPLIED_OVERLAY = ""
BASE_OVERLAY = "base"
SCALE_DOWN_OVERLAY = "scale-down"


class Ads:
    """Facts a component advertises to the components that depend on it.

    A plain string-to-string map. Keys are not namespaced: when two
    components advertise the same key, whoever merges them decides.
    Not safe for concurrent mutation.
    """

    def __init__(self, data: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(data or {})

    def put(self, key: str, val: str) -> None:
        """Advertise val at key, overwriting any previous value."""
        self._data[key] = val

    def get(self, key: str) -> str:
        """Return the value at key, or an empty string if never advertised."""
        return self._data.get(key, "")

    def delete(self, key: str) -> None:
        """Drop key if present."""
        self._data.pop(key, None)

    def contains(self, *keys: str) -> None:
        """Raise MissingAdvertisementError naming every absent key."""
        missing = [k for k in keys if k not in self._data]
        if missing:
            raise MissingAdvertisementError(missing)

    def update(self, other: "Ads") -> None:
        """Copy every key of other into this map (other wins on collision)."""
        self._data.update(other._data)

    def to_dict(self) -> dict[str, str]:
        return dict(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self):
        return iter(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Ads):
            return NotImplemented
        return self._data == other._data

    def __repr__(self) -> str:
        return f"Ads({sorted(self._data)})"


@dataclass(frozen=True)
class OwnerRef:
    """A single edge in the ownership graph: the child points at (uid, kind)."""
    uid: str
    kind: str


@dataclass
class Condition:
    """Generic condition shape every platform condition is translated into."""
    type: str
    status: str
    reason: str = ""
    message: str = ""
    last_transition_time: str = ""


@dataclass
class Status:
    """Readiness verdict for a component at its current overlay."""
    ready: bool
    message: str
    conditions: list[Condition] = field(default_factory=list)


class MicroController(Protocol):
    """Operation set every deployable component exposes."""

    def apply(self, overlay: str, ads: Ads) -> None: ...

    def advertise(self) -> Ads: ...

    def status(self) -> Status: ...

    def current_overlay(self) -> str: ...
