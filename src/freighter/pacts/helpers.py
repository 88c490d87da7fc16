"""Public helper functions available to components."""

import base64
import binascii
import json

from freighter.pacts.types import Condition

# Platform condition field → generic Condition field
_CONDITION_FIELDS = {
    "type": "type",
    "status": "status",
    "reason": "reason",
    "message": "message",
    "lastTransitionTime": "last_transition_time",
}


def secret_value(secret: dict, key: str) -> str | None:
    """Return one decoded entry of a Secret manifest, or None if it holds no usable value.

    The API server only ever returns base64 ``data``; ``stringData`` appears
    on records built locally and not yet submitted. A ``data`` entry that is
    not valid base64-encoded UTF-8 counts as absent.
    """
    encoded = (secret.get("data") or {}).get(key)
    if encoded is None:
        return (secret.get("stringData") or {}).get(key)
    try:
        return base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None


def to_condition(raw) -> Condition:
    """Re-encode any condition-like structure into a Condition.

    Goes through a JSON round trip, so anything JSON-serialisable with at
    least ``type`` and ``status`` keys is accepted. Raises ValueError
    otherwise. Provides little assurance beyond that.
    """
    try:
        decoded = json.loads(json.dumps(raw, default=str))
    except (TypeError, ValueError) as err:
        raise ValueError(f"condition is not serialisable: {err}") from err
    if not isinstance(decoded, dict):
        raise ValueError(f"condition is not a mapping: {decoded!r}")
    missing = [k for k in ("type", "status") if not decoded.get(k)]
    if missing:
        raise ValueError(f"condition lacks {', '.join(missing)}")
    kwargs = {}
    for src, dst in _CONDITION_FIELDS.items():
        val = decoded.get(src)
        if val is None:
            continue
        if not isinstance(val, (str, int, float, bool)):
            raise ValueError(f"condition field '{src}' is not a scalar")
        kwargs[dst] = str(val)
    return Condition(**kwargs)
