"""
Worker process entry point.

This is a SEPARATE process from the FastAPI API server.
It runs two components in the same process:

    1. WorkerPool  — leases enrollment jobs from Redis and executes them
       in a fixed-size thread pool
    2. Housekeeper — promotes delayed jobs and recovers stalled ones

Both run as daemon threads. The main thread just waits for Ctrl+C (SIGINT)
or a kill signal (SIGTERM) and then shuts down in order:

    housekeeper → pool (drains in-flight jobs) → Redis connection

To run:
    python -m worker.main

Run as many worker processes as you like against the same Redis; leases
are atomic, so each job goes to exactly one of them.
"""

import logging
import signal
import threading

from redis import Redis

from config.settings import settings
from jobstore.store import RedisJobStore
from models.base import Base, sync_engine, SyncSessionLocal
from models import course, user  # noqa: F401  (register tables on Base.metadata)
from worker.housekeeping import Housekeeper
from worker.pool import WorkerPool

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def main():
    # Ensure tables exist before the first job touches them.
    # A no-op if the API already created them.
    logger.info("Ensuring database tables exist...")
    Base.metadata.create_all(sync_engine)

    redis_client = Redis.from_url(settings.redis_url, decode_responses=True)
    store = RedisJobStore(redis_client)

    housekeeper = Housekeeper(store)
    housekeeper.start()

    pool = WorkerPool(store, SyncSessionLocal)
    pool.start()

    # ── Graceful shutdown on Ctrl+C or SIGTERM ──────────────────
    shutdown_event = threading.Event()

    def shutdown(signum, frame):
        logger.info("Shutdown signal received, stopping...")
        shutdown_event.set()

    signal.signal(signal.SIGTERM, shutdown)
    signal.signal(signal.SIGINT, shutdown)

    logger.info(f"Worker process running on queue '{store.queue_name}'. Press Ctrl+C to stop.")

    # Block the main thread until shutdown signal
    # (using Event.wait() instead of signal.pause() for Windows compatibility)
    shutdown_event.wait()

    housekeeper.stop()
    pool.stop()
    redis_client.close()
    sync_engine.dispose()

    logger.info("Worker process exited")


if __name__ == "__main__":
    main()
