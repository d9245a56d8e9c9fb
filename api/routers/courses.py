"""
Course enrollment endpoint.

POST /courses/{course_id}/enroll → queue an enrollment for the caller

The endpoint answers 202 as soon as the job is stored. The enrollment itself
happens in the worker process; clients poll GET /queue/job/{jobId}.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_current_user, get_db, get_job_store
from api.schemas.enrollment import EnrollmentQueued, EnrollmentRequest
from enrollment.errors import EnrollmentError
from jobstore.errors import QueueUnavailable
from jobstore.store import RedisJobStore
from models.user import User
from services.admission import request_enrollment

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/courses", tags=["courses"])


@router.post("/{course_id}/enroll", response_model=EnrollmentQueued, status_code=202)
async def enroll_in_course(
    course_id: UUID,
    body: Optional[EnrollmentRequest] = Body(default=None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: RedisJobStore = Depends(get_job_store),
) -> EnrollmentQueued:
    request = body or EnrollmentRequest()
    try:
        return await request_enrollment(db, store, course_id, user.id, request.priority)
    except EnrollmentError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except QueueUnavailable as e:
        logger.error(f"Enrollment for course {course_id} not queued: {e}")
        raise HTTPException(status_code=503, detail="Enrollment is temporarily unavailable")
