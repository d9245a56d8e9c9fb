"""
Tests for RedisJobStore against fakeredis.

The store fixture uses a fake clock and no backoff; tests that care about
delays build their own store.
"""

from collections import Counter

import fakeredis
import pytest
import redis.client
from redis.exceptions import ConnectionError as RedisConnectionError

from jobstore.errors import QueueUnavailable
from jobstore.retry import RetryPolicy
from jobstore.store import PRIORITY_LIMIT, RedisJobStore, waiting_score
from models.enums import JobPriority, JobState


def _payload(student="s1", course="c1") -> dict:
    return {"courseId": course, "studentId": student}


# ── Enqueue / status ────────────────────────────────────────────

def test_enqueue_stores_waiting_job(store, clock):
    job_id = store.enqueue(_payload(), priority=JobPriority.HIGH)

    job = store.get(job_id)
    assert job.state == JobState.WAITING
    assert job.priority == 10
    assert job.data == _payload()
    assert job.attempts == 0
    assert job.progress is None
    assert job.created_at == clock.now
    assert job.result is None and job.error is None


def test_enqueue_ids_are_unique(store):
    ids = {store.enqueue(_payload(student=f"s{i}")) for i in range(20)}
    assert len(ids) == 20


def test_get_unknown_job(store):
    assert store.get("404") is None


def test_enqueue_with_delay(store, clock):
    job_id = store.enqueue(_payload(), delay=10)

    assert store.get(job_id).state == JobState.DELAYED
    assert store.lease() is None

    clock.advance(11)
    assert store.promote_delayed() == 1
    assert store.lease().id == job_id


def test_enqueue_when_redis_is_down():
    server = fakeredis.FakeServer()
    server.connected = False
    down = RedisJobStore(fakeredis.FakeRedis(server=server, decode_responses=True))

    with pytest.raises(QueueUnavailable):
        down.enqueue(_payload())
    with pytest.raises(QueueUnavailable):
        down.stats()


# ── Lease ordering ──────────────────────────────────────────────

def test_lease_empty_queue(store):
    assert store.lease() is None


def test_lease_highest_priority_first(store):
    low = store.enqueue(_payload("a"), priority=JobPriority.LOW)
    critical = store.enqueue(_payload("b"), priority=JobPriority.CRITICAL)
    normal = store.enqueue(_payload("c"), priority=JobPriority.NORMAL)

    assert [store.lease().id for _ in range(3)] == [critical, normal, low]


def test_lease_fifo_within_priority(store):
    ids = [store.enqueue(_payload(f"s{i}")) for i in range(5)]
    assert [store.lease().id for _ in range(5)] == ids


def test_lease_marks_active(store, clock):
    job_id = store.enqueue(_payload())
    clock.advance(3)

    job = store.lease(worker="host:1")

    assert job.id == job_id
    assert job.state == JobState.ACTIVE
    assert job.processed_at == clock.now
    assert job.worker == "host:1"
    assert store.lease() is None


def test_arbitrary_priority_values_order(store):
    """Priorities outside the named tiers still work as an ordering key."""
    a = store.enqueue(_payload("a"), priority=3)
    b = store.enqueue(_payload("b"), priority=100)
    c = store.enqueue(_payload("c"), priority=-2)

    assert [store.lease().id for _ in range(3)] == [b, a, c]


def test_fifo_holds_for_very_large_priorities(store):
    ids = [store.enqueue(_payload(f"s{i}"), priority=10_000_000) for i in range(12)]
    normal = store.enqueue(_payload("normal"))
    lowest = store.enqueue(_payload("lowest"), priority=-10_000_000)

    assert [store.lease().id for _ in range(14)] == ids + [normal, lowest]


def test_waiting_scores_stay_distinct_past_the_priority_limit():
    scores = {waiting_score(2 ** 40, seq) for seq in range(1, 6)}

    assert len(scores) == 5
    assert waiting_score(2 ** 40, 1) == waiting_score(PRIORITY_LIMIT, 1)


# ── Progress ────────────────────────────────────────────────────

def test_progress_only_while_active(store):
    job_id = store.enqueue(_payload())

    assert store.report_progress(job_id, 50) is False
    assert store.get(job_id).progress is None

    store.lease()
    assert store.report_progress(job_id, 50) is True
    assert store.get(job_id).progress == 50


def test_progress_is_clamped(store):
    job_id = store.enqueue(_payload())
    store.lease()

    store.report_progress(job_id, 150)
    assert store.get(job_id).progress == 100


def test_progress_after_completion_is_ignored(store):
    job_id = store.enqueue(_payload())
    store.lease()
    store.report_progress(job_id, 100)
    store.resolve(job_id, result={"success": True})

    assert store.report_progress(job_id, 10) is False
    assert store.get(job_id).progress == 100


def test_retried_job_reports_progress_from_zero(store):
    job_id = store.enqueue(_payload())
    store.lease()
    store.report_progress(job_id, 70)
    store.resolve(job_id, error="timeout", retryable=True)

    assert store.get(job_id).progress is None
    store.lease()
    assert store.get(job_id).progress is None

    store.report_progress(job_id, 10)
    assert store.get(job_id).progress == 10


# ── Resolve ─────────────────────────────────────────────────────

def test_resolve_success(store, clock):
    job_id = store.enqueue(_payload())
    store.lease()
    clock.advance(2)

    assert store.resolve(job_id, result={"success": True}) == JobState.COMPLETED

    job = store.get(job_id)
    assert job.state == JobState.COMPLETED
    assert job.result == {"success": True}
    assert job.finished_at == clock.now
    assert job.error is None


def test_resolve_business_rejection_is_completed(store):
    job_id = store.enqueue(_payload())
    store.lease()

    store.resolve(job_id, result={"success": False, "error": "Course is full"})

    job = store.get(job_id)
    assert job.state == JobState.COMPLETED
    assert job.attempts == 0


def test_resolve_inactive_job_is_dropped(store):
    job_id = store.enqueue(_payload())
    assert store.resolve(job_id, result={"success": True}) is None
    assert store.get(job_id).state == JobState.WAITING


@pytest.mark.parametrize("outcome", [
    {"result": {"success": True}},
    {"error": "timeout", "retryable": True},
])
def test_failed_resolve_leaves_job_active(monkeypatch, store, clock, outcome):
    """A Redis error while resolving must not leave the job outside every state set."""
    job_id = store.enqueue(_payload())
    store.lease()

    def broken_execute(self, raise_on_error=True):
        raise RedisConnectionError("connection lost")

    monkeypatch.setattr(redis.client.Pipeline, "execute", broken_execute)
    with pytest.raises(RedisConnectionError):
        store.resolve(job_id, **outcome)
    monkeypatch.undo()

    assert store.get(job_id).state == JobState.ACTIVE
    assert store.stats()["active"] == 1
    assert store.stats()["total"] == 1

    clock.advance(60)
    assert store.reap_stalled(30) == [job_id]
    assert store.get(job_id).state == JobState.WAITING


def test_retryable_error_requeues_until_exhausted(store):
    job_id = store.enqueue(_payload())

    for attempt in (1, 2):
        store.lease()
        assert store.resolve(job_id, error="db timeout", retryable=True) == JobState.WAITING
        job = store.get(job_id)
        assert job.attempts == attempt
        assert job.last_error == "db timeout"
        assert job.error is None

    store.lease()
    assert store.resolve(job_id, error="db timeout", retryable=True) == JobState.FAILED

    job = store.get(job_id)
    assert job.state == JobState.FAILED
    assert job.attempts == 3
    assert job.error == "db timeout"
    assert job.finished_at is not None


def test_non_retryable_error_fails_immediately(store):
    job_id = store.enqueue(_payload())
    store.lease()

    assert store.resolve(job_id, error="unknown job type", retryable=False) == JobState.FAILED
    assert store.get(job_id).attempts == 0


def test_retry_keeps_priority_position(store):
    """A retried job goes back ahead of lower-priority work."""
    high = store.enqueue(_payload("a"), priority=JobPriority.HIGH)
    low = store.enqueue(_payload("b"), priority=JobPriority.LOW)

    store.lease()
    store.resolve(high, error="boom", retryable=True)

    assert store.lease().id == high
    assert store.lease().id == low


def test_retry_backoff_delays_job(fake_redis, clock):
    store = RedisJobStore(
        fake_redis,
        queue_name="backoff",
        retry_policy=RetryPolicy(max_attempts=3, backoff_base=2.0),
        clock=clock,
    )
    job_id = store.enqueue(_payload())

    store.lease()
    assert store.resolve(job_id, error="boom", retryable=True) == JobState.DELAYED
    clock.advance(1.9)
    assert store.promote_delayed() == 0

    clock.advance(0.2)
    assert store.promote_delayed() == 1
    store.lease()

    # Second failure waits twice as long
    store.resolve(job_id, error="boom", retryable=True)
    clock.advance(3.9)
    assert store.promote_delayed() == 0
    clock.advance(0.2)
    assert store.promote_delayed() == 1
    assert store.get(job_id).state == JobState.WAITING


# ── Cancellation ────────────────────────────────────────────────

def test_remove_waiting_job(store):
    job_id = store.enqueue(_payload())

    assert store.remove(job_id) is True
    assert store.get(job_id) is None
    assert store.lease() is None


def test_remove_is_refused_once_leased(store):
    job_id = store.enqueue(_payload())
    store.lease()

    assert store.remove(job_id) is False
    assert store.get(job_id).state == JobState.ACTIVE


def test_remove_finished_or_unknown_job(store):
    job_id = store.enqueue(_payload())
    store.lease()
    store.resolve(job_id, result={"success": True})

    assert store.remove(job_id) is False
    assert store.remove("12345") is False


# ── Stats / listing / retention ─────────────────────────────────

def test_stats_counts_every_state(store):
    ids = [store.enqueue(_payload(f"s{i}")) for i in range(5)]
    store.enqueue(_payload("later"), delay=60)
    store.lease()
    store.resolve(ids[0], result={"success": True})
    store.lease()
    store.resolve(ids[1], error="boom", retryable=False)
    store.lease()

    stats = store.stats()

    assert stats == {
        "waiting": 2, "active": 1, "completed": 1, "failed": 1, "delayed": 1, "total": 6,
    }


def test_stats_total_matches_job_states(store):
    ids = [store.enqueue(_payload(f"s{i}")) for i in range(8)]
    ids.append(store.enqueue(_payload("later"), delay=60))
    store.resolve(store.lease().id, result={"success": True})
    store.resolve(store.lease().id, error="boom", retryable=False)
    store.resolve(store.lease().id, error="timeout", retryable=True)
    store.lease()
    store.lease()

    tally = Counter(store.get(job_id).state.value for job_id in ids)
    stats = store.stats()

    assert stats["total"] == len(ids)
    assert {state: stats[state] for state in tally} == dict(tally)
    assert sum(tally.values()) == stats["total"]


def test_finished_jobs_stay_readable(store):
    """A client polling after completion must still find its job."""
    ids = [store.enqueue(_payload(f"s{i}")) for i in range(12)]
    for job_id in ids:
        store.lease()
        store.resolve(job_id, result={"success": True})

    assert store.stats()["completed"] == 12
    assert all(store.get(job_id).state == JobState.COMPLETED for job_id in ids)


def test_finished_jobs_expire_after_retention(fake_redis, clock):
    store = RedisJobStore(fake_redis, queue_name="trim", retention=60, clock=clock)

    def finish(student: str) -> str:
        job_id = store.enqueue(_payload(student))
        store.lease()
        store.resolve(job_id, result={"success": True})
        return job_id

    old = finish("old")
    clock.advance(30)
    recent = finish("recent")
    assert store.get(old).state == JobState.COMPLETED

    clock.advance(45)
    finish("newest")

    assert store.get(old) is None
    assert store.get(recent).state == JobState.COMPLETED
    assert store.stats()["completed"] == 2


def test_no_retention_keeps_finished_jobs(fake_redis, clock):
    store = RedisJobStore(fake_redis, queue_name="keep", retention=None, clock=clock)
    job_id = store.enqueue(_payload())
    store.lease()
    store.resolve(job_id, error="boom")

    clock.advance(365 * 24 * 3600)
    other = store.enqueue(_payload("s2"))
    store.lease()
    store.resolve(other, error="boom")

    assert store.get(job_id).state == JobState.FAILED


def test_list_failed_newest_first(store, clock):
    ids = [store.enqueue(_payload(f"s{i}")) for i in range(3)]
    for job_id in ids:
        store.lease()
        clock.advance(1)
        store.resolve(job_id, error="boom", retryable=False)

    assert [job.id for job in store.list_jobs(JobState.FAILED)] == list(reversed(ids))
    assert len(store.list_jobs(JobState.FAILED, limit=2)) == 2


def test_list_waiting_in_lease_order(store):
    low = store.enqueue(_payload("a"), priority=JobPriority.LOW)
    high = store.enqueue(_payload("b"), priority=JobPriority.HIGH)

    assert [job.id for job in store.list_jobs(JobState.WAITING)] == [high, low]


# ── Stalled jobs ────────────────────────────────────────────────

def test_reap_stalled_job(store, clock):
    job_id = store.enqueue(_payload())
    store.lease()

    clock.advance(10)
    assert store.reap_stalled(30) == []

    clock.advance(25)
    assert store.reap_stalled(30) == [job_id]

    job = store.get(job_id)
    assert job.state == JobState.WAITING
    assert job.attempts == 1
    assert job.last_error == "job stalled"


def test_heartbeat_keeps_job_alive(store, clock):
    job_id = store.enqueue(_payload())
    store.lease()

    clock.advance(20)
    store.report_progress(job_id, 30)
    clock.advance(20)

    assert store.reap_stalled(30) == []
    assert store.get(job_id).state == JobState.ACTIVE


def test_late_resolve_after_reap_is_dropped(store, clock):
    """The original worker finishing after its job was reaped must not overwrite it."""
    job_id = store.enqueue(_payload())
    store.lease()
    clock.advance(60)
    store.reap_stalled(30)

    assert store.resolve(job_id, result={"success": True}) is None
    assert store.get(job_id).state == JobState.WAITING


def test_stalled_job_fails_after_last_attempt(store, clock):
    job_id = store.enqueue(_payload())
    for _ in range(3):
        store.lease()
        clock.advance(60)
        store.reap_stalled(30)

    job = store.get(job_id)
    assert job.state == JobState.FAILED
    assert job.error == "job stalled"
