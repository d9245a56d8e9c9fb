"""Pydantic schemas for POST /courses/{course_id}/enroll."""

from pydantic import Field

from api.schemas.base import CamelModel
from models.enums import JobPriority


class EnrollmentRequest(CamelModel):
    """Optional request body. Any integer is accepted as an ordering key."""

    priority: int = Field(
        default=JobPriority.NORMAL.value,
        description="Higher is processed first. Named tiers: 1 low, 5 normal, 10 high, 15 critical",
    )


class EnrollmentQueued(CamelModel):
    """202 response: the request was accepted, poll /queue/job/{jobId} for the outcome."""

    job_id: str
    status: str = "queued"
    message: str = "Enrollment request queued"
