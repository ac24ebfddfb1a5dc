"""Unmeasured warmup that primes connection pools before the first run."""

from __future__ import annotations

import logging
import time
from typing import Callable

from kb_runner.engine.churn import churn_once
from kb_runner.kube.client import ClusterClient


logger = logging.getLogger(__name__)

WARMUP_PAUSE_SECONDS = 0.2


def run_warmup(
    client: ClusterClient,
    namespace: str,
    seconds: float,
    *,
    pause_seconds: float = WARMUP_PAUSE_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> int:
    """List pods and churn one record per iteration until ``seconds`` elapse.

    Returns the number of iterations that completed without error.
    """
    if seconds <= 0:
        return 0
    logger.info("Warmup for %s seconds...", seconds)
    deadline = clock() + seconds
    succeeded = 0
    while clock() < deadline:
        try:
            client.list_namespace_pods(namespace)
            churn_once(client, namespace)
            succeeded += 1
        except Exception as exc:
            logger.debug("Warmup iteration failed: %s", exc)
        sleep(pause_seconds)
    logger.info("Warmup finished: %s successful iterations", succeeded)
    return succeeded
