"""
Concurrent workload engine.

A fixed pool of workers runs churn and listing loops against the cluster
until a shared deadline. The caller gets back a single-completion future
and keeps working while the pool runs.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Callable, List, Optional

from kb_common.errors import WorkloadError
from kb_runner.engine.churn import churn_once
from kb_runner.engine.pagination import walk_pods, walk_services
from kb_runner.engine.retry import LoopStats, run_until
from kb_runner.kube.client import ClusterClient
from kb_runner.models.config import RunConfig


logger = logging.getLogger(__name__)

MIN_WORKERS = 3
SHUTDOWN_GRACE_SECONDS = 30.0

# Completes once with None, or with the first infrastructure failure.
WorkloadHandle = Future


class TaskKind(str, Enum):
    CHURN = "churn"
    LIST_PODS = "list-pods"
    LIST_SERVICES = "list-services"


@dataclass(frozen=True)
class WorkloadTask:
    """One worker slot: a loop body retried until the run deadline."""

    slot: int
    kind: TaskKind
    operation: Callable[[], object]

    @property
    def name(self) -> str:
        return f"{self.kind.value}-{self.slot}"


def plan_tasks(client: ClusterClient, namespace: str, worker_count: int) -> List[WorkloadTask]:
    """Return the task mix for ``worker_count`` workers (at least three)."""
    churn = partial(churn_once, client, namespace)
    kinds = [TaskKind.CHURN, TaskKind.LIST_PODS, TaskKind.LIST_SERVICES]
    kinds.extend([TaskKind.CHURN] * max(0, worker_count - len(kinds)))
    operations = {
        TaskKind.CHURN: churn,
        TaskKind.LIST_PODS: partial(walk_pods, client),
        TaskKind.LIST_SERVICES: partial(walk_services, client),
    }
    return [WorkloadTask(slot=i, kind=kind, operation=operations[kind]) for i, kind in enumerate(kinds)]


def start_workload(
    client: ClusterClient,
    namespace: str,
    config: RunConfig,
    *,
    shutdown_grace_seconds: float = SHUTDOWN_GRACE_SECONDS,
    clock: Callable[[], float] = time.monotonic,
) -> WorkloadHandle:
    """
    Start every worker now and return without blocking.

    All workers share one absolute deadline of now + ``duration_seconds``.
    Raises WorkloadError when the supervisor thread cannot be started.
    """
    if config.worker_count < MIN_WORKERS:
        logger.warning(
            "worker_count=%s is below the minimum task mix; using %s workers",
            config.worker_count,
            MIN_WORKERS,
        )
    tasks = plan_tasks(client, namespace, config.worker_count)
    deadline = clock() + config.duration_seconds

    handle: WorkloadHandle = Future()
    handle.set_running_or_notify_cancel()

    executor = ThreadPoolExecutor(max_workers=len(tasks), thread_name_prefix="kb-workload")
    supervisor = threading.Thread(
        target=_supervise,
        args=(executor, tasks, deadline, handle, shutdown_grace_seconds, clock),
        name="kb-workload-supervisor",
        daemon=True,
    )
    try:
        supervisor.start()
    except RuntimeError as exc:
        executor.shutdown(wait=False, cancel_futures=True)
        raise WorkloadError("Workload supervisor could not be started", cause=exc) from exc
    logger.info(
        "Workload started: %s workers (%s) for %.1fs",
        len(tasks),
        ", ".join(task.name for task in tasks),
        config.duration_seconds,
    )
    return handle


def _supervise(
    executor: ThreadPoolExecutor,
    tasks: List[WorkloadTask],
    deadline: float,
    handle: WorkloadHandle,
    shutdown_grace_seconds: float,
    clock: Callable[[], float],
) -> None:
    futures: List[Future] = []
    failure: Optional[BaseException] = None
    try:
        try:
            for task in tasks:
                futures.append(
                    executor.submit(run_until, deadline, task.operation, name=task.name, clock=clock)
                )
        except Exception as exc:
            failure = WorkloadError(
                "Workload pool rejected a task",
                context={"submitted": len(futures), "planned": len(tasks)},
                cause=exc,
            )
            logger.error("Workload submission failed after %s/%s tasks: %s", len(futures), len(tasks), exc)
        else:
            wait(futures)
            failure = _first_worker_failure(tasks, futures)
    except Exception as exc:
        failure = WorkloadError("Workload supervisor failed", cause=exc)
    finally:
        _shutdown(executor, futures, shutdown_grace_seconds)

    if failure is None:
        handle.set_result(None)
    else:
        handle.set_exception(failure)


def _first_worker_failure(tasks: List[WorkloadTask], futures: List[Future]) -> Optional[BaseException]:
    failure: Optional[BaseException] = None
    for task, future in zip(tasks, futures):
        exc = future.exception()
        if exc is not None:
            logger.error("Worker %s stopped with an error: %s", task.name, exc)
            if failure is None:
                failure = WorkloadError(
                    f"Worker {task.name} escaped its retry loop",
                    context={"worker": task.name},
                    cause=exc if isinstance(exc, Exception) else None,
                )
            continue
        stats: LoopStats = future.result()
        logger.info(
            "Worker %s finished: %s iterations, %s failed",
            task.name,
            stats.iterations,
            stats.failures,
        )
    return failure


def _shutdown(executor: ThreadPoolExecutor, futures: List[Future], grace_seconds: float) -> None:
    executor.shutdown(wait=False, cancel_futures=True)
    if not futures:
        return
    _, pending = wait(futures, timeout=grace_seconds)
    if pending:
        logger.warning("%s workload workers still running after %.0fs grace", len(pending), grace_seconds)
