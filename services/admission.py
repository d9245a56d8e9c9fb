"""
Admission — the synchronous front door of the enrollment pipeline.

request_enrollment() runs cheap precondition reads and, if they pass,
enqueues a job and returns its id right away. It never waits for the
enrollment itself.

The checks here are a fast path for obvious rejections, not the authority:
two requests for the same seat can both pass them. The worker re-checks
everything and the capacity-bounded writer settles any race.
"""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from api.schemas.enrollment import EnrollmentQueued
from enrollment.errors import (
    AlreadyEnrolled, CourseNotFound, CourseNotPublished,
    InvalidEnrollmentRequest, NotAStudent,
)
from enrollment.queries import course_by_id, enrollment_for, user_by_id
from jobstore.job import ENROLL_STUDENT
from jobstore.store import RedisJobStore
from models.enums import JobPriority

logger = logging.getLogger(__name__)


async def request_enrollment(
    db: AsyncSession,
    store: RedisJobStore,
    course_id: uuid.UUID,
    student_id: uuid.UUID,
    priority: int = JobPriority.NORMAL,
) -> EnrollmentQueued:
    """
    Validate and enqueue an enrollment request.

    Raises:
        EnrollmentError subclass: a precondition failed (nothing enqueued)
        QueueUnavailable: the broker refused the job (nothing enqueued)
    """
    if course_id is None or student_id is None:
        raise InvalidEnrollmentRequest()

    student = (await db.execute(user_by_id(student_id))).scalar_one_or_none()
    if student is None or not student.is_student:
        raise NotAStudent()

    course = (await db.execute(course_by_id(course_id))).scalar_one_or_none()
    if course is None:
        raise CourseNotFound()
    if not course.is_published:
        raise CourseNotPublished()

    existing = (await db.execute(enrollment_for(course_id, student_id))).scalar_one_or_none()
    if existing is not None:
        raise AlreadyEnrolled()

    payload = {
        "courseId": str(course_id),
        "studentId": str(student_id),
        "priority": int(priority),
    }
    job_id = await run_in_threadpool(store.enqueue, payload, int(priority), ENROLL_STUDENT)

    logger.info(f"Student {student_id} queued for course {course_id} as job {job_id}")
    return EnrollmentQueued(
        job_id=job_id,
        message="Enrollment request queued. Poll the job status for the result.",
    )
