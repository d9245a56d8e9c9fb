"""Errors raised by the Redis-backed job store."""


class JobStoreError(Exception):
    """Base class for job store failures."""


class QueueUnavailable(JobStoreError):
    """The broker could not be reached; the request was not accepted."""

    def __init__(self, operation: str, cause: Exception):
        super().__init__(f"Enrollment queue unavailable during {operation}: {cause}")
        self.operation = operation
        self.cause = cause
