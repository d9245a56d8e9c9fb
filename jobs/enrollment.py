"""
Enroll-student job — the worker side of a queued enrollment request.

The API already checked these conditions when it admitted the request, but
time has passed since then, so every check runs again here against the
current data:

    10%  student exists and has the student role
    30%  course exists and is published
    50%  student is not enrolled yet (a retry finding its own earlier
         write completes with that enrollment instead)
    70%  capacity-bounded write (enrollment/writer.py)
    90%  enrollment committed
   100%  result built

Example payload:
    {"courseId": "6f1c...", "studentId": "0b9e...", "priority": 5}

Example result:
    {"success": true, "enrollmentId": "c4d2...", "message": "Successfully enrolled in course"}
"""

import uuid

from sqlalchemy.orm import Session

from enrollment.errors import (
    AlreadyEnrolled, CourseNotFound, CourseNotPublished,
    InvalidEnrollmentRequest, NotAStudent,
)
from enrollment.queries import course_by_id, enrollment_for, user_by_id
from enrollment.writer import try_enroll
from jobs.base import AbstractJobHandler, ProgressReporter
from jobstore.job import ENROLL_STUDENT


def _parse_id(payload: dict, key: str) -> uuid.UUID:
    raw = payload.get(key)
    if not raw:
        raise InvalidEnrollmentRequest()
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        raise InvalidEnrollmentRequest(f"Invalid {key}: {raw!r}")


def _enrolled(enrollment_id: uuid.UUID) -> dict:
    return {
        "success": True,
        "enrollmentId": str(enrollment_id),
        "message": "Successfully enrolled in course",
    }


class EnrollStudentJob(AbstractJobHandler):

    def run(
        self,
        payload: dict,
        session: Session,
        report_progress: ProgressReporter,
        attempts: int = 0,
    ) -> dict:
        course_id = _parse_id(payload, "courseId")
        student_id = _parse_id(payload, "studentId")

        report_progress(10)
        student = session.execute(user_by_id(student_id)).scalar_one_or_none()
        if student is None or not student.is_student:
            raise NotAStudent()

        report_progress(30)
        course = session.execute(course_by_id(course_id)).scalar_one_or_none()
        if course is None:
            raise CourseNotFound()
        if not course.is_published:
            raise CourseNotPublished()

        report_progress(50)
        existing = session.execute(enrollment_for(course_id, student_id)).scalar_one_or_none()
        if existing is not None:
            if attempts > 0:
                # an earlier attempt committed, then failed before resolving
                report_progress(100)
                return _enrolled(existing.id)
            raise AlreadyEnrolled()

        report_progress(70)
        record = try_enroll(session, course_id, student_id, student.username)

        report_progress(90)
        result = _enrolled(record.enrollment_id)
        report_progress(100)
        return result

    @property
    def job_name(self) -> str:
        return ENROLL_STUDENT
