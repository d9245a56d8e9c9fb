"""
Housekeeper — the queue's maintenance loop.

This runs in a daemon thread inside the worker process.
Every WORKER_POLL_INTERVAL seconds it executes:

    1. promote_delayed() → jobs whose backoff (or requested delay) has
       elapsed go back to WAITING, where the pool can lease them
    2. every STALLED_INTERVAL seconds: reap_stalled() → ACTIVE jobs that
       stopped sending heartbeats are retried or failed

           Redis                                 Redis
    ┌──────────────┐   promote_delayed   ┌──────────────┐
    │   delayed    │────────────────────>│   waiting    │
    └──────────────┘                     └──────────────┘
    ┌──────────────┐   reap_stalled           ^
    │    active    │──────────────────────────┘ (or failed)
    └──────────────┘

Several worker processes may run a housekeeper against the same queue.
Both operations claim each job atomically, so they never double-move one.
"""

import time
import logging
import threading
from typing import Optional

from config.settings import settings
from jobstore.store import RedisJobStore

logger = logging.getLogger(__name__)


class Housekeeper:

    def __init__(
        self,
        store: RedisJobStore,
        poll_interval: float = settings.WORKER_POLL_INTERVAL,
        stall_interval: float = settings.STALLED_INTERVAL,
    ):
        self._store = store
        self._poll_interval = poll_interval
        self._stall_interval = stall_interval
        self._last_stall_check = 0.0
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the maintenance loop in a daemon thread."""
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="queue-housekeeper", daemon=True)
        self._thread.start()
        logger.info(
            f"Housekeeper started (poll {self._poll_interval}s, stall check {self._stall_interval}s)"
        )

    def stop(self) -> None:
        """Signal the loop to stop and wait for the current tick to finish."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join()

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Housekeeping error: {e}", exc_info=True)
            self._stop_event.wait(self._poll_interval)

    def tick(self) -> None:
        """One maintenance pass. Public so tests can drive it without a thread."""
        self._store.promote_delayed()

        now = time.monotonic()
        if now - self._last_stall_check >= self._stall_interval:
            self._last_stall_check = now
            reaped = self._store.reap_stalled(self._stall_interval)
            if reaped:
                logger.warning(f"Recovered {len(reaped)} stalled jobs: {reaped}")
