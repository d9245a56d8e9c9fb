"""
Read side of the enrollment queue: job status, statistics, cancellation.

The store client is synchronous (the worker threads share it), so each call
is pushed to the threadpool instead of blocking the event loop.
"""

from typing import Optional

from starlette.concurrency import run_in_threadpool

from api.schemas.queue import JobStatusView, QueueStats
from jobstore.store import RedisJobStore
from models.enums import JobState


class QueueStatusService:

    def __init__(self, store: RedisJobStore):
        self._store = store

    async def get_status(self, job_id: str) -> Optional[JobStatusView]:
        job = await run_in_threadpool(self._store.get, job_id)
        if job is None:
            return None
        return JobStatusView.from_job(job)

    async def get_stats(self) -> QueueStats:
        return QueueStats(**await run_in_threadpool(self._store.stats))

    async def cancel(self, job_id: str) -> bool:
        """
        Best-effort cancel. False when the job already started, finished,
        or never existed; callers should not treat that as an error.
        """
        return await run_in_threadpool(self._store.remove, job_id)

    async def list_jobs(self, state: JobState, limit: int = 50) -> list[JobStatusView]:
        jobs = await run_in_threadpool(self._store.list_jobs, state, limit)
        return [JobStatusView.from_job(job) for job in jobs]
