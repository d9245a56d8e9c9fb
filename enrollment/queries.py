"""
Lookup statements shared by the API (async session) and the worker
(sync session).

Each function only builds a SELECT; the caller executes it with whatever
session it holds:

    worker:  session.execute(course_by_id(cid)).scalar_one_or_none()
    API:     (await db.execute(course_by_id(cid))).scalar_one_or_none()
"""

import uuid

from sqlalchemy import Select, select

from models.course import Course, CourseEnrollment
from models.user import User


def user_by_id(user_id: uuid.UUID) -> Select:
    return select(User).where(User.id == user_id)


def course_by_id(course_id: uuid.UUID) -> Select:
    return select(Course).where(Course.id == course_id)


def enrollment_for(course_id: uuid.UUID, student_id: uuid.UUID) -> Select:
    return select(CourseEnrollment).where(
        CourseEnrollment.course_id == course_id,
        CourseEnrollment.student_id == student_id,
    )
