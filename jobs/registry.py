"""
Job handler registry — maps job names to handler instances.

When a worker leases a job it knows the job name ("enroll-student") but
needs the handler that executes it. This registry does that lookup.
"""

from jobs.base import AbstractJobHandler
from jobs.enrollment import EnrollStudentJob

# Each handler is instantiated once and reused (they're stateless)
_REGISTRY: dict[str, AbstractJobHandler] = {}


def _register_defaults() -> None:
    for handler_cls in [EnrollStudentJob]:
        handler = handler_cls()
        _REGISTRY[handler.job_name] = handler


_register_defaults()


def get_job_handler(job_name: str) -> AbstractJobHandler:
    """Look up a handler by job name. Raises ValueError if unknown."""
    handler = _REGISTRY.get(job_name)
    if handler is None:
        raise ValueError(
            f"Unknown job type: '{job_name}'. Available: {list(_REGISTRY.keys())}"
        )
    return handler
