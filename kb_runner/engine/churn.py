"""Create/update/delete churn on ephemeral ConfigMap records."""

from __future__ import annotations

import base64
import logging
import random
import uuid

from kb_runner.kube.client import ClusterClient


logger = logging.getLogger(__name__)

RECORD_PREFIX = "ab-"
DATA_KEY = "k"
PAYLOAD_BYTES = 256
UPDATES_PER_CHURN = 2


def new_record_name() -> str:
    return RECORD_PREFIX + uuid.uuid4().hex[:8]


def random_payload(size: int = PAYLOAD_BYTES) -> str:
    """Return ``size`` random bytes, base64-encoded."""
    return base64.b64encode(random.randbytes(size)).decode("ascii")


def churn_once(client: ClusterClient, namespace: str) -> str:
    """
    Run one full lifecycle on a freshly named record.

    Create and update failures propagate to the caller; a failed delete is
    only logged because the cleanup sweep removes leftovers by prefix.
    Returns the record name.
    """
    name = new_record_name()
    client.create_record(namespace, name, {DATA_KEY: random_payload()})
    for _ in range(UPDATES_PER_CHURN):
        client.update_record(namespace, name, {DATA_KEY: random_payload()})
    try:
        client.delete_record(namespace, name)
    except Exception as exc:
        logger.debug("Deleting %s/%s failed: %s", namespace, name, exc)
    return name


def sweep_records(client: ClusterClient, namespace: str, prefix: str = RECORD_PREFIX) -> int:
    """
    Delete every record in ``namespace`` whose name starts with ``prefix``.

    Matching is by name only, so records created outside the harness with
    the same prefix are removed too. Returns the number of deletions.
    """
    try:
        names = client.list_record_names(namespace)
    except Exception as exc:
        logger.warning("Listing records in %s for cleanup failed: %s", namespace, exc)
        return 0

    deleted = 0
    for name in names:
        if not name.startswith(prefix):
            continue
        try:
            client.delete_record(namespace, name)
            deleted += 1
        except Exception as exc:
            logger.warning("Cleanup of %s/%s failed: %s", namespace, name, exc)
    if deleted:
        logger.info("Swept %s leftover records from %s", deleted, namespace)
    return deleted
