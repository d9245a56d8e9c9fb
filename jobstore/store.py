"""
Redis-backed job store for enrollment jobs.

Every job is a hash plus a membership in exactly one state set:

    <queue>:id          INCR counter → job ids and enqueue sequence
    <queue>:job:<id>    hash with the EnrollmentJob fields
    <queue>:waiting     ZSET, score = -priority * PRIORITY_SPAN + seq
    <queue>:delayed     ZSET, score = epoch time the job becomes due
    <queue>:active      ZSET, score = last heartbeat (lease or progress report)
    <queue>:completed   ZSET, score = finished time
    <queue>:failed      ZSET, score = finished time

The waiting score makes ZRANGE 0 0 return the highest priority job, and
among equal priorities the one enqueued first.

State transitions:

    enqueue ──> WAITING ──lease──> ACTIVE ──resolve──> COMPLETED
       │           ^                 │  └──resolve──> FAILED
       │           │                 │ (retryable, attempts left)
       └──> DELAYED┴─promote_delayed─┘

Concurrency:
- lease() and every move out of ACTIVE run inside a WATCH/MULTI/EXEC
  transaction, so two workers can never leave with the same job, and a job
  is never outside every state set if Redis fails halfway.
- remove() claims a job by ZREM from the waiting set. ZREM is atomic, so a
  cancel racing a lease has exactly one winner.
"""

import json
import logging
import time
from typing import Callable, Optional

from redis import Redis
from redis.exceptions import RedisError

from config.settings import settings
from jobstore.errors import QueueUnavailable
from jobstore.job import EnrollmentJob, ENROLL_STUDENT
from jobstore.retry import RetryPolicy
from models.enums import JobState, JobPriority

logger = logging.getLogger(__name__)

PRIORITY_SPAN = 2 ** 32
PRIORITY_LIMIT = 2 ** 20

_FINISHED = (JobState.COMPLETED, JobState.FAILED)


def waiting_score(priority: int, seq: int) -> float:
    """
    Sorted-set scores are doubles. Priorities beyond ±PRIORITY_LIMIT sort
    as the limit, which keeps every score below 2**53 and exact, so FIFO
    within a priority holds for any priority value.
    """
    priority = max(-PRIORITY_LIMIT, min(PRIORITY_LIMIT, priority))
    return -priority * PRIORITY_SPAN + seq


class RedisJobStore:
    """
    The client must be created with decode_responses=True; the store reads
    hash fields back as str.
    """

    def __init__(
        self,
        redis_client: Redis,
        queue_name: str = settings.QUEUE_NAME,
        retry_policy: Optional[RetryPolicy] = None,
        retention: Optional[float] = settings.JOB_RETENTION_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._redis = redis_client
        self._queue_name = queue_name
        self._retry_policy = retry_policy or RetryPolicy()
        self._retention = retention
        self._clock = clock

    @property
    def queue_name(self) -> str:
        return self._queue_name

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    # ── Keys ────────────────────────────────────────────────────

    def _state_key(self, state: JobState) -> str:
        return f"{self._queue_name}:{state.value}"

    def _job_key(self, job_id: str) -> str:
        return f"{self._queue_name}:job:{job_id}"

    # ── Producer side ───────────────────────────────────────────

    def enqueue(
        self,
        payload: dict,
        priority: int = JobPriority.NORMAL,
        name: str = ENROLL_STUDENT,
        delay: float = 0.0,
    ) -> str:
        """
        Persist a new job and return its id.

        The hash and the state-set entry are written in one MULTI/EXEC, so
        the id is only returned once the job is fully stored.
        """
        try:
            seq = self._redis.incr(f"{self._queue_name}:id")
            now = self._clock()
            job = EnrollmentJob(
                id=str(seq),
                name=name,
                data=payload,
                priority=int(priority),
                state=JobState.DELAYED if delay > 0 else JobState.WAITING,
                created_at=now,
                seq=seq,
            )
            pipe = self._redis.pipeline(transaction=True)
            pipe.hset(self._job_key(job.id), mapping=job.to_hash())
            if delay > 0:
                pipe.zadd(self._state_key(JobState.DELAYED), {job.id: now + delay})
            else:
                pipe.zadd(self._state_key(JobState.WAITING), {job.id: waiting_score(job.priority, seq)})
            pipe.execute()
        except RedisError as e:
            raise QueueUnavailable("enqueue", e) from e

        logger.info(f"Job {job.id} [{name}] enqueued with priority {job.priority}")
        return job.id

    # ── Worker side ─────────────────────────────────────────────

    def lease(self, worker: Optional[str] = None) -> Optional[EnrollmentJob]:
        """Claim the next waiting job and mark it ACTIVE. None if nothing is waiting."""
        waiting_key = self._state_key(JobState.WAITING)
        active_key = self._state_key(JobState.ACTIVE)
        now = self._clock()

        def claim(pipe) -> Optional[str]:
            head = pipe.zrange(waiting_key, 0, 0)
            if not head:
                return None
            job_id = head[0]
            fields = {"state": JobState.ACTIVE.value, "processed_at": repr(now)}
            if worker:
                fields["worker"] = worker
            pipe.multi()
            pipe.zrem(waiting_key, job_id)
            pipe.zadd(active_key, {job_id: now})
            pipe.hset(self._job_key(job_id), mapping=fields)
            # each attempt reports progress from zero
            pipe.hdel(self._job_key(job_id), "progress")
            return job_id

        job_id = self._redis.transaction(claim, waiting_key, value_from_callable=True)
        if job_id is None:
            return None
        logger.debug(f"Job {job_id} leased by {worker or 'anonymous worker'}")
        return self._load(job_id)

    def report_progress(self, job_id: str, percent: int) -> bool:
        """Record progress and refresh the heartbeat. No-op unless the job is ACTIVE."""
        active_key = self._state_key(JobState.ACTIVE)
        percent = max(0, min(100, int(percent)))
        now = self._clock()

        def record(pipe) -> bool:
            if pipe.zscore(active_key, job_id) is None:
                return False
            pipe.multi()
            pipe.hset(self._job_key(job_id), "progress", str(percent))
            pipe.zadd(active_key, {job_id: now}, xx=True)
            return True

        return self._redis.transaction(record, self._job_key(job_id), value_from_callable=True)

    def resolve(
        self,
        job_id: str,
        result: Optional[dict] = None,
        error: Optional[str] = None,
        retryable: bool = False,
    ) -> Optional[JobState]:
        """
        Move an ACTIVE job to its next state and return that state.

        - no error            → COMPLETED with `result`
        - retryable error     → DELAYED/WAITING if attempts remain, else FAILED
        - non-retryable error → FAILED

        Returns None if the job is no longer ACTIVE (reaped as stalled or
        removed); the caller's outcome is dropped in that case.
        """
        next_state = self._transition(job_id, result=result, error=error, retryable=retryable)
        if next_state is None:
            logger.warning(f"Job {job_id} is no longer active, dropping its outcome")
        return next_state

    def _transition(
        self,
        job_id: str,
        result: Optional[dict] = None,
        error: Optional[str] = None,
        retryable: bool = False,
        stalled_before: Optional[float] = None,
    ) -> Optional[JobState]:
        """
        Take a job out of ACTIVE and into its next state in one transaction.

        With `stalled_before`, the move only happens if the job's last
        heartbeat is still at or before that time.
        """
        active_key = self._state_key(JobState.ACTIVE)
        job_key = self._job_key(job_id)
        now = self._clock()

        def move(pipe):
            heartbeat = pipe.zscore(active_key, job_id)
            if heartbeat is None:
                return None
            if stalled_before is not None and heartbeat > stalled_before:
                return None
            previous, priority, seq = pipe.hmget(job_key, "attempts", "priority", "seq")
            previous = int(previous or 0)
            attempts, delay = previous, 0.0

            fields = {}
            if error is None:
                next_state, score = JobState.COMPLETED, now
                fields["result"] = json.dumps(result or {})
            elif not retryable:
                next_state, score = JobState.FAILED, now
                fields["error"] = error
            else:
                attempts = previous + 1
                fields.update(attempts=str(attempts), last_error=error)
                if not self._retry_policy.should_retry(attempts):
                    next_state, score = JobState.FAILED, now
                    fields["error"] = error
                else:
                    delay = self._retry_policy.backoff_delay(previous)
                    if delay > 0:
                        next_state, score = JobState.DELAYED, now + delay
                    else:
                        next_state = JobState.WAITING
                        score = waiting_score(int(priority or 0), int(seq or 0))

            fields["state"] = next_state.value
            if next_state in _FINISHED:
                fields["finished_at"] = repr(now)

            pipe.multi()
            pipe.zrem(active_key, job_id)
            pipe.zadd(self._state_key(next_state), {job_id: score})
            pipe.hset(job_key, mapping=fields)
            if next_state not in _FINISHED:
                pipe.hdel(job_key, "progress")
            return next_state, attempts, delay

        outcome = self._redis.transaction(move, job_key, value_from_callable=True)
        if outcome is None:
            return None

        next_state, attempts, delay = outcome
        if next_state in (JobState.WAITING, JobState.DELAYED):
            logger.info(
                f"Job {job_id} will be retried in {delay:.1f}s "
                f"({attempts}/{self._retry_policy.max_attempts}): {error}"
            )
        elif next_state == JobState.FAILED:
            if retryable:
                logger.warning(f"Job {job_id} failed after {attempts} attempts: {error}")
            else:
                logger.warning(f"Job {job_id} failed: {error}")
        if next_state in _FINISHED:
            self._trim(next_state)
        return next_state

    # ── Housekeeping ────────────────────────────────────────────

    def promote_delayed(self) -> int:
        """Move every due DELAYED job back to WAITING. Returns how many moved."""
        delayed_key = self._state_key(JobState.DELAYED)
        waiting_key = self._state_key(JobState.WAITING)
        due = self._redis.zrangebyscore(delayed_key, "-inf", self._clock())

        promoted = 0
        for job_id in due:
            job_key = self._job_key(job_id)

            def promote(pipe) -> bool:
                if pipe.zscore(delayed_key, job_id) is None:
                    return False
                priority, seq = pipe.hmget(job_key, "priority", "seq")
                pipe.multi()
                pipe.zrem(delayed_key, job_id)
                pipe.zadd(waiting_key, {job_id: waiting_score(int(priority or 0), int(seq or 0))})
                pipe.hset(job_key, "state", JobState.WAITING.value)
                return True

            if self._redis.transaction(promote, delayed_key, value_from_callable=True):
                promoted += 1

        if promoted:
            logger.debug(f"Promoted {promoted} delayed jobs")
        return promoted

    def reap_stalled(self, stall_interval: float) -> list[str]:
        """
        Recover ACTIVE jobs whose heartbeat is older than `stall_interval`.

        A stall counts as a failed attempt: the job is retried while attempts
        remain and FAILED after that.
        """
        active_key = self._state_key(JobState.ACTIVE)
        cutoff = self._clock() - stall_interval
        reaped = []
        for job_id in self._redis.zrangebyscore(active_key, "-inf", cutoff):
            state = self._transition(
                job_id, error="job stalled", retryable=True, stalled_before=cutoff
            )
            if state is None:
                continue  # resolved or heartbeat refreshed since the scan
            logger.warning(f"Job {job_id} stalled (no heartbeat for {stall_interval}s)")
            reaped.append(job_id)
        return reaped

    def _trim(self, state: JobState) -> None:
        """Delete finished jobs of `state` older than the retention window."""
        if self._retention is None:
            return
        state_key = self._state_key(state)
        expired = self._redis.zrangebyscore(state_key, "-inf", self._clock() - self._retention)
        if not expired:
            return
        pipe = self._redis.pipeline(transaction=True)
        pipe.delete(*[self._job_key(job_id) for job_id in expired])
        pipe.zrem(state_key, *expired)
        pipe.execute()
        logger.debug(f"Dropped {len(expired)} {state.value} jobs past retention")

    # ── Read side / cancellation ────────────────────────────────

    def get(self, job_id: str) -> Optional[EnrollmentJob]:
        try:
            return self._load(job_id)
        except RedisError as e:
            raise QueueUnavailable("get", e) from e

    def _load(self, job_id: str) -> Optional[EnrollmentJob]:
        raw = self._redis.hgetall(self._job_key(job_id))
        if not raw or "state" not in raw:
            return None
        return EnrollmentJob.from_hash(raw)

    def remove(self, job_id: str) -> bool:
        """Delete a WAITING job. False if it is in any other state or unknown."""
        try:
            if not self._redis.zrem(self._state_key(JobState.WAITING), job_id):
                return False
            self._redis.delete(self._job_key(job_id))
        except RedisError as e:
            raise QueueUnavailable("remove", e) from e
        logger.info(f"Job {job_id} removed from the queue")
        return True

    def stats(self) -> dict[str, int]:
        """Point-in-time counts per state. Not a transactional snapshot."""
        states = [
            JobState.WAITING, JobState.ACTIVE, JobState.COMPLETED,
            JobState.FAILED, JobState.DELAYED,
        ]
        try:
            pipe = self._redis.pipeline(transaction=False)
            for state in states:
                pipe.zcard(self._state_key(state))
            counts = pipe.execute()
        except RedisError as e:
            raise QueueUnavailable("stats", e) from e

        stats = {state.value: int(count) for state, count in zip(states, counts)}
        stats["total"] = sum(stats.values())
        return stats

    def list_jobs(self, state: JobState, limit: int = 50) -> list[EnrollmentJob]:
        """
        Jobs currently in `state`. Terminal states are listed newest first,
        the others in the order they will be processed.
        """
        state_key = self._state_key(state)
        try:
            if state in (JobState.COMPLETED, JobState.FAILED):
                job_ids = self._redis.zrevrange(state_key, 0, limit - 1)
            else:
                job_ids = self._redis.zrange(state_key, 0, limit - 1)
            pipe = self._redis.pipeline(transaction=False)
            for job_id in job_ids:
                pipe.hgetall(self._job_key(job_id))
            rows = pipe.execute()
        except RedisError as e:
            raise QueueUnavailable("list", e) from e
        return [EnrollmentJob.from_hash(raw) for raw in rows if raw and "state" in raw]

    def ping(self) -> bool:
        return bool(self._redis.ping())

