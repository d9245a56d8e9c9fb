"""
EnrollmentJob — the record the job store keeps for every enrollment attempt.

The store persists jobs as flat Redis hashes (strings only), so this module
owns the conversion in both directions. Everything above the store works
with the dataclass and never sees raw hash fields.

Timestamps are epoch seconds (float) inside the store; the API layer turns
them into datetimes.
"""

import json
from dataclasses import dataclass
from typing import Optional

from models.enums import JobState

ENROLL_STUDENT = "enroll-student"


@dataclass
class EnrollmentJob:
    id: str
    name: str
    data: dict
    priority: int
    state: JobState
    created_at: float
    seq: int = 0                        # enqueue order, FIFO tiebreak within a priority
    progress: Optional[int] = None
    attempts: int = 0                   # failed attempts so far
    processed_at: Optional[float] = None
    finished_at: Optional[float] = None
    result: Optional[dict] = None
    error: Optional[str] = None         # set only once the job has failed
    last_error: Optional[str] = None    # most recent retryable failure
    worker: Optional[str] = None

    @property
    def course_id(self) -> Optional[str]:
        return self.data.get("courseId")

    @property
    def student_id(self) -> Optional[str]:
        return self.data.get("studentId")

    @property
    def is_terminal(self) -> bool:
        return self.state in (JobState.COMPLETED, JobState.FAILED)

    def to_hash(self) -> dict[str, str]:
        """Flatten into Redis hash fields. Unset optionals are left out."""
        fields = {
            "id": self.id,
            "name": self.name,
            "data": json.dumps(self.data),
            "priority": str(self.priority),
            "state": self.state.value,
            "created_at": repr(self.created_at),
            "seq": str(self.seq),
            "attempts": str(self.attempts),
        }
        if self.progress is not None:
            fields["progress"] = str(self.progress)
        if self.processed_at is not None:
            fields["processed_at"] = repr(self.processed_at)
        if self.finished_at is not None:
            fields["finished_at"] = repr(self.finished_at)
        if self.result is not None:
            fields["result"] = json.dumps(self.result)
        if self.last_error is not None:
            fields["last_error"] = self.last_error
        if self.error is not None:
            fields["error"] = self.error
        if self.worker is not None:
            fields["worker"] = self.worker
        return fields

    @classmethod
    def from_hash(cls, raw: dict[str, str]) -> "EnrollmentJob":
        def _float(key: str) -> Optional[float]:
            value = raw.get(key)
            return float(value) if value is not None else None

        def _int(key: str) -> Optional[int]:
            value = raw.get(key)
            return int(value) if value is not None else None

        result = raw.get("result")
        return cls(
            id=raw["id"],
            name=raw.get("name", ENROLL_STUDENT),
            data=json.loads(raw.get("data", "{}")),
            priority=int(raw.get("priority", 0)),
            state=JobState(raw["state"]),
            created_at=float(raw["created_at"]),
            seq=int(raw.get("seq", 0)),
            progress=_int("progress"),
            attempts=int(raw.get("attempts", 0)),
            processed_at=_float("processed_at"),
            finished_at=_float("finished_at"),
            result=json.loads(result) if result is not None else None,
            error=raw.get("error"),
            last_error=raw.get("last_error"),
            worker=raw.get("worker"),
        )
