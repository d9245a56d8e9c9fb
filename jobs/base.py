"""
Abstract base class for job handlers.

The worker looks up a handler by the job's name ("enroll-student") and calls
handler.run(...) without knowing which type it is.

Contract for implementations:
- Raise an EnrollmentError for business-rule rejections. The job completes
  with result.success = false and is never retried.
- Let every other exception propagate. The worker treats it as transient
  and retries the job with backoff.
"""

from abc import ABC, abstractmethod
from typing import Callable

from sqlalchemy.orm import Session

ProgressReporter = Callable[[int], None]


class AbstractJobHandler(ABC):

    @abstractmethod
    def run(
        self,
        payload: dict,
        session: Session,
        report_progress: ProgressReporter,
        attempts: int = 0,
    ) -> dict:
        """
        Execute the job.

        Args:
            payload: the job's data, as stored at enqueue time.
            session: a sync DB session owned by the caller (closed after run).
            report_progress: callback taking a 0-100 percentage.
            attempts: failed attempts before this one. Non-zero means an
                earlier attempt may have written before it failed.

        Returns:
            dict stored as the job's result.
        """
        ...

    @property
    @abstractmethod
    def job_name(self) -> str:
        """Name the job was enqueued under (e.g., 'enroll-student')."""
        ...
