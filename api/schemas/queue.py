"""
Pydantic schemas for the /queue endpoints.

JobStatusView is the public shape of a job record:

    { id, status, progress?, result?, error?, attempts,
      createdAt, processedAt?, finishedAt? }
"""

from datetime import datetime, timezone
from typing import Optional

from api.schemas.base import CamelModel
from jobstore.job import EnrollmentJob


def _to_datetime(timestamp: Optional[float]) -> Optional[datetime]:
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


class JobStatusView(CamelModel):
    id: str
    status: str
    progress: Optional[int] = None
    result: Optional[dict] = None
    error: Optional[str] = None
    attempts: int = 0
    created_at: datetime
    processed_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @classmethod
    def from_job(cls, job: EnrollmentJob) -> "JobStatusView":
        return cls(
            id=job.id,
            status=job.state.value,
            progress=job.progress,
            result=job.result,
            error=job.error,
            attempts=job.attempts,
            created_at=_to_datetime(job.created_at),
            processed_at=_to_datetime(job.processed_at),
            finished_at=_to_datetime(job.finished_at),
        )


class QueueStats(CamelModel):
    waiting: int
    active: int
    completed: int
    failed: int
    delayed: int = 0
    total: int


class CancelResponse(CamelModel):
    job_id: str
    message: str = "Job cancelled successfully"
