"""Generated credential records — random secrets created once, then reused."""

import logging
import uuid

from freighter.core.resource import Secret
from freighter.core.store import ObjectExists, ObjectNotFound, ObjectStore, StoreError
from freighter.pacts.errors import CredentialPersistenceError

logger = logging.getLogger(__name__)


def _read(secret: Secret, keys: tuple[str, ...]) -> dict[str, str]:
    values = {key: secret.value(key) for key in keys}
    missing = [k for k, v in values.items() if v is None]
    if missing:
        raise CredentialPersistenceError(
            f"credential record {secret.namespace}/{secret.name} lacks {', '.join(missing)}"
        )
    return values


def ensure_credentials(store: ObjectStore, namespace: str, name: str,
                       keys: tuple[str, ...] = ("pass", "rootpass"),
                       owner_ref: dict | None = None) -> dict[str, str]:
    """Return the credentials stored at namespace/name, generating them first if absent.

    The existence check and the create are two calls, but create refuses to
    overwrite, so when two first-time callers race the loser re-reads the
    winner's record instead of returning values nobody stored.
    """
    try:
        found = store.get(Secret.api_version, Secret.kind, namespace, name)
    except ObjectNotFound:
        found = None
    except StoreError as err:
        raise CredentialPersistenceError(f"error reading credential record: {err}") from err
    if found is not None:
        logger.debug("reusing credential record %s/%s", namespace, name)
        return _read(found, keys)

    values = {key: str(uuid.uuid4()) for key in keys}
    secret = Secret({"metadata": {"name": name, "namespace": namespace},
                     "stringData": dict(values)})
    if owner_ref is not None:
        secret.owner_references = [owner_ref]
    try:
        store.create(secret)
    except ObjectExists:
        logger.info("credential record %s/%s created concurrently, re-reading", namespace, name)
        try:
            return _read(store.get(Secret.api_version, Secret.kind, namespace, name), keys)
        except StoreError as err:
            raise CredentialPersistenceError(f"error reading credential record: {err}") from err
    except StoreError as err:
        raise CredentialPersistenceError(f"error creating credential record: {err}") from err
    logger.info("created credential record %s/%s", namespace, name)
    return values
