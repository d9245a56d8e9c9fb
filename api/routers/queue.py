"""
Enrollment queue endpoints.

GET    /queue/job/{job_id}  → job status (any authenticated user)
DELETE /queue/job/{job_id}  → cancel a job that has not started yet
GET    /queue/stats         → counts per state (instructor/admin)
GET    /queue/failed        → recently failed jobs (instructor/admin)

Failed jobs stay in Redis for JOB_RETENTION_SECONDS so someone can
review them and resubmit the enrollment once the root cause is fixed.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_current_user, get_queue_status, require_roles
from api.schemas.queue import CancelResponse, JobStatusView, QueueStats
from jobstore.errors import QueueUnavailable
from models.enums import JobState, UserRole
from services.queue_status import QueueStatusService

router = APIRouter(
    prefix="/queue",
    tags=["queue"],
    dependencies=[Depends(get_current_user)],
)

staff_only = require_roles(UserRole.INSTRUCTOR, UserRole.ADMIN)


def _unavailable(e: QueueUnavailable) -> HTTPException:
    return HTTPException(status_code=503, detail=str(e))


@router.get("/stats", response_model=QueueStats, dependencies=[Depends(staff_only)])
async def get_queue_stats(
    service: QueueStatusService = Depends(get_queue_status),
) -> QueueStats:
    try:
        return await service.get_stats()
    except QueueUnavailable as e:
        raise _unavailable(e)


@router.get("/failed", response_model=list[JobStatusView], dependencies=[Depends(staff_only)])
async def list_failed_jobs(
    limit: int = Query(50, ge=1, le=500),
    service: QueueStatusService = Depends(get_queue_status),
) -> list[JobStatusView]:
    try:
        return await service.list_jobs(JobState.FAILED, limit)
    except QueueUnavailable as e:
        raise _unavailable(e)


@router.get("/job/{job_id}", response_model=JobStatusView)
async def get_job_status(
    job_id: str,
    service: QueueStatusService = Depends(get_queue_status),
) -> JobStatusView:
    try:
        view = await service.get_status(job_id)
    except QueueUnavailable as e:
        raise _unavailable(e)
    if view is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return view


@router.delete("/job/{job_id}", response_model=CancelResponse)
async def cancel_job(
    job_id: str,
    service: QueueStatusService = Depends(get_queue_status),
) -> CancelResponse:
    """
    Cancel a job.

    Only WAITING jobs can be cancelled — once a worker has leased it,
    the enrollment runs to completion.
    """
    try:
        cancelled = await service.cancel(job_id)
    except QueueUnavailable as e:
        raise _unavailable(e)
    if not cancelled:
        raise HTTPException(status_code=404, detail="Job not found or cannot be cancelled")
    return CancelResponse(job_id=job_id)
