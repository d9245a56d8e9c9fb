"""
Worker pool — a fixed number of threads processing enrollment jobs.

Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                    WorkerPool                            │
    │                                                         │
    │  Dispatcher Thread                                      │
    │  ┌───────────────────────┐                              │
    │  │ wait for a free slot  │  ← semaphore, N permits      │
    │  │ lease() from Redis    │                              │
    │  └──────────┬────────────┘                              │
    │             │ submit()                                   │
    │             ▼                                            │
    │  ┌──────────────────────────────────────────┐           │
    │  │ ThreadPoolExecutor (5 threads)            │           │
    │  │  ┌────────┐ ┌────────┐ ┌────────┐ ┌────────┐       │
    │  │  │Thread 1│ │Thread 2│ │Thread 3│ │  ...   │       │
    │  │  │execute │ │execute │ │execute │ │        │       │
    │  │  └────────┘ └────────┘ └────────┘ └────────┘       │
    │  └──────────────────────────────────────────┘           │
    └─────────────────────────────────────────────────────────┘

The dispatcher only leases a job after a slot frees up. A leased job is
ACTIVE immediately, so leasing ahead of capacity would leave jobs ACTIVE
without anyone working on them (and the stalled-job reaper would take them
back). With the semaphore, at most N enrollment attempts hit the database
at any time: that is the pool's backpressure.

When the queue is empty the dispatcher sleeps WORKER_POLL_INTERVAL between
leases instead of spinning.
"""

import logging
import os
import socket
import threading
from concurrent.futures import ThreadPoolExecutor, Future
from typing import Optional

from config.settings import settings
from jobstore.store import RedisJobStore
from worker.executor import JobExecutor

logger = logging.getLogger(__name__)


def generate_worker_id() -> str:
    """Generate a unique worker ID: hostname:pid."""
    return f"{socket.gethostname()}:{os.getpid()}"


class WorkerPool:

    def __init__(
        self,
        store: RedisJobStore,
        db_session_factory,
        pool_size: int = settings.WORKER_POOL_SIZE,
        poll_interval: float = settings.WORKER_POLL_INTERVAL,
        worker_id: Optional[str] = None,
    ):
        self._store = store
        self._pool_size = pool_size
        self._poll_interval = poll_interval
        self._worker_id = worker_id or generate_worker_id()
        self._executor = ThreadPoolExecutor(
            max_workers=pool_size,
            thread_name_prefix="enroll-worker",
        )
        self._slots = threading.BoundedSemaphore(pool_size)
        self._job_executor = JobExecutor(store, db_session_factory)
        self._stop_event = threading.Event()
        self._dispatcher: Optional[threading.Thread] = None

    @property
    def worker_id(self) -> str:
        return self._worker_id

    def start(self) -> None:
        """Start the dispatcher thread that feeds jobs to the thread pool."""
        self._stop_event.clear()
        self._dispatcher = threading.Thread(
            target=self._dispatch_loop, name="enroll-dispatcher", daemon=True
        )
        self._dispatcher.start()
        logger.info(f"Worker pool {self._worker_id} started with {self._pool_size} threads")

    def stop(self) -> None:
        """
        Stop leasing new jobs, then wait for in-flight jobs to resolve.

        Jobs already leased run to completion; nothing is interrupted.
        """
        self._stop_event.set()
        if self._dispatcher is not None:
            self._dispatcher.join()
        self._executor.shutdown(wait=True)
        logger.info("Worker pool stopped")

    def _dispatch_loop(self) -> None:
        while not self._stop_event.is_set():
            # Timeout so we notice stop() even while every slot is busy
            if not self._slots.acquire(timeout=self._poll_interval):
                continue

            try:
                job = self._store.lease(worker=self._worker_id)
            except Exception as e:
                self._slots.release()
                logger.error(f"Lease error: {e}", exc_info=True)
                self._stop_event.wait(self._poll_interval)
                continue

            if job is None:
                self._slots.release()
                self._stop_event.wait(self._poll_interval)
                continue

            logger.debug(f"Dispatching job {job.id} to thread pool")
            future: Future = self._executor.submit(self._job_executor.execute, job)
            future.add_done_callback(self._on_job_done)

    def _on_job_done(self, future: Future) -> None:
        """
        Callback fired when a worker thread finishes executing a job.

        Frees the slot, and logs anything execute() could not handle itself
        (e.g. Redis down while resolving; the stalled-job reaper recovers
        such a job later).
        """
        self._slots.release()
        try:
            exc = future.exception()
            if exc:
                logger.error(f"Unhandled worker exception: {exc}")
        except Exception as e:
            logger.error(f"Callback error: {e}")
