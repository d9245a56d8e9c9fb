"""
Retry policy — decides what happens when an enrollment attempt hits an
infrastructure error.

Two outcomes:
1. attempts < max_attempts  → back to the queue after an exponential backoff
2. attempts >= max_attempts → FAILED, kept in the failed set for review

`attempts` counts failed attempts, so with max_attempts=3 a job gets three
tries in total:

    try 1 fails → attempts=1 → retry after base * 2^0
    try 2 fails → attempts=2 → retry after base * 2^1
    try 3 fails → attempts=3 → FAILED

Business-rule rejections (course full, already enrolled, ...) never reach
this policy; retrying them cannot change the outcome.
"""

from dataclasses import dataclass

from config.settings import settings


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = settings.JOB_MAX_ATTEMPTS
    backoff_base: float = settings.JOB_BACKOFF_BASE

    def should_retry(self, attempts: int) -> bool:
        """`attempts` is the failure count including the one just recorded."""
        return attempts < self.max_attempts

    def backoff_delay(self, previous_attempts: int) -> float:
        """Delay before the next try, exponential in the failures seen before this one."""
        return self.backoff_base * (2 ** previous_attempts)
