"""
Business-rule and validation failures for course enrollment.

Every EnrollmentError is final: retrying the same request cannot change the
outcome. The worker turns these into a completed job with
result.success = false; the API turns them into a 400. Anything that is not
an EnrollmentError is treated as an infrastructure failure and retried.
"""

from typing import Optional


class EnrollmentError(Exception):
    """Base class for non-retryable enrollment rejections."""

    message = "Enrollment rejected"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)


class InvalidEnrollmentRequest(EnrollmentError):
    message = "Course ID and Student ID are required"


class NotAStudent(EnrollmentError):
    message = "Only students can enroll in courses"


class CourseNotFound(EnrollmentError):
    message = "Course not found"


class CourseNotPublished(EnrollmentError):
    message = "Course is not published"


class AlreadyEnrolled(EnrollmentError):
    message = "Student is already enrolled in this course"


class CapacityExceeded(EnrollmentError):
    message = "Course is full"
