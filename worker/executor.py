"""
Job executor — runs a single leased enrollment job inside a worker thread.

Each worker thread calls executor.execute(job), and this method handles the
rest of the job's lifecycle:

    1. Find the handler for the job name
    2. Call handler.run(payload, session, report_progress, attempts)
       (progress updates are best-effort: a Redis error there is logged)
    3. On success: resolve COMPLETED with the handler's result
    4. On EnrollmentError: resolve COMPLETED with success=false (no retry)
    5. On any other exception: resolve as retryable; the store decides
       between another attempt and FAILED

Nothing raised by a job escapes execute(), so one bad job cannot take a
worker slot down or leak into the next job.

Thread safety:
- Each execute() call gets its OWN database session (created and closed within)
- Job handlers are stateless (no shared mutable state)
- The only shared resources are Redis and the courses table, both changed
  only through atomic operations
"""

import logging
import time

from redis.exceptions import RedisError

from jobs.registry import get_job_handler
from jobstore.job import EnrollmentJob
from jobstore.store import RedisJobStore
from enrollment.errors import EnrollmentError

logger = logging.getLogger(__name__)


class JobExecutor:

    def __init__(self, store: RedisJobStore, db_session_factory):
        self._store = store
        self._db_session_factory = db_session_factory

    def execute(self, job: EnrollmentJob) -> dict:
        """
        Execute a single job. Called by WorkerPool from a thread.

        Returns:
            dict with execution status (for logging/debugging, not stored)
        """
        try:
            handler = get_job_handler(job.name)
        except ValueError as e:
            logger.error(f"Job {job.id}: {e}")
            self._store.resolve(job.id, error=str(e), retryable=False)
            return {"status": "failed", "job_id": job.id, "error": str(e)}

        session = self._db_session_factory()
        start_time = time.monotonic()
        try:
            result = handler.run(
                job.data,
                session,
                lambda percent: self._report_progress(job, percent),
                attempts=job.attempts,
            )
            outcome = {"result": result}
            status = "completed"

        except EnrollmentError as e:
            # Business rule said no. Retrying the same request changes nothing.
            session.rollback()
            outcome = {"result": {"success": False, "error": str(e)}}
            status = "rejected"
            logger.info(f"Job {job.id} [{job.name}] rejected: {e}")

        except Exception as e:
            session.rollback()
            outcome = {"error": str(e) or type(e).__name__, "retryable": True}
            status = "failed"
            logger.error(f"Job {job.id} [{job.name}] failed: {e}")

        finally:
            # Always close the session
            session.close()

        # Redis errors from resolve() propagate to the pool callback
        self._store.resolve(job.id, **outcome)
        if status == "completed":
            elapsed = time.monotonic() - start_time
            logger.info(f"Job {job.id} [{job.name}] completed in {elapsed:.3f}s")
        return {"status": status, "job_id": job.id}

    def _report_progress(self, job: EnrollmentJob, percent: int) -> None:
        """Progress is informational; a Redis hiccup here must not change the job's outcome."""
        try:
            self._store.report_progress(job.id, percent)
        except RedisError as e:
            logger.warning(f"Job {job.id}: progress {percent}% not recorded: {e}")
