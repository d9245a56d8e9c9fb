"""
Capacity-bounded enrollment writer.

try_enroll() is the only code that adds a student to a course. It runs one
transaction with two writes:

    1. INSERT the enrollment row
         → UNIQUE(course_id, student_id) rejects a second enrollment
    2. UPDATE courses SET enrolled_count = enrolled_count + 1
       WHERE id = :course_id
         AND (max_students IS NULL OR enrolled_count < max_students)
         → the capacity predicate and the increment are one statement

If the UPDATE matches no row the whole transaction is rolled back, so the
enrollment row from step 1 disappears with it.

Why this is race-free across worker threads and processes:
- The database evaluates the WHERE clause and applies the increment under
  the course row's write lock. A second writer blocks on that lock and then
  re-checks the predicate against the committed count (PostgreSQL
  READ COMMITTED re-evaluation; SQLite serializes writers outright).
- Concurrent inserts of the same (course, student) pair block on the unique
  index; the loser gets an IntegrityError once the winner commits.
Nothing is decided from values read earlier in application memory.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from enrollment.errors import AlreadyEnrolled, CapacityExceeded, CourseNotFound
from enrollment.queries import course_by_id, enrollment_for
from models.course import Course, CourseEnrollment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnrollmentRecord:
    enrollment_id: uuid.UUID
    course_id: uuid.UUID
    student_id: uuid.UUID
    student_name: str
    enrolled_at: datetime


def try_enroll(
    session: Session,
    course_id: uuid.UUID,
    student_id: uuid.UUID,
    student_name: str,
) -> EnrollmentRecord:
    """
    Enroll a student if a seat is free and they are not enrolled yet.

    Commits on success. On rejection the transaction is rolled back and one
    of AlreadyEnrolled, CapacityExceeded or CourseNotFound is raised. Any
    other database error propagates unchanged (the worker retries those).
    """
    enrollment = CourseEnrollment(
        id=uuid.uuid4(),
        course_id=course_id,
        student_id=student_id,
        student_name=student_name,
        enrolled_at=datetime.now(timezone.utc),
        progress=0,
        completed_lessons=[],
    )

    try:
        session.add(enrollment)
        session.flush()
    except IntegrityError:
        session.rollback()
        if session.execute(enrollment_for(course_id, student_id)).scalar_one_or_none() is not None:
            raise AlreadyEnrolled()
        if session.execute(course_by_id(course_id)).scalar_one_or_none() is None:
            raise CourseNotFound()
        raise

    seat = session.execute(
        update(Course)
        .where(
            Course.id == course_id,
            or_(
                Course.max_students.is_(None),
                Course.enrolled_count < Course.max_students,
            ),
        )
        .values(enrolled_count=Course.enrolled_count + 1)
        .execution_options(synchronize_session=False)
    )
    if seat.rowcount != 1:
        session.rollback()
        if session.execute(course_by_id(course_id)).scalar_one_or_none() is None:
            raise CourseNotFound()
        logger.info(f"Course {course_id} is full, rejected student {student_id}")
        raise CapacityExceeded()

    record = EnrollmentRecord(
        enrollment_id=enrollment.id,
        course_id=course_id,
        student_id=student_id,
        student_name=student_name,
        enrolled_at=enrollment.enrolled_at,
    )
    session.commit()
    return record
