"""Tests for the Housekeeper maintenance loop."""

import time

from models.enums import JobState
from worker.housekeeping import Housekeeper


def test_tick_promotes_due_jobs(store, clock):
    job_id = store.enqueue({"tag": "later"}, delay=5)
    housekeeper = Housekeeper(store, poll_interval=0.01, stall_interval=30)

    housekeeper.tick()
    assert store.get(job_id).state == JobState.DELAYED

    clock.advance(6)
    housekeeper.tick()
    assert store.get(job_id).state == JobState.WAITING


def test_tick_reaps_stalled_jobs(store, clock):
    job_id = store.enqueue({"tag": "stuck"})
    store.lease()
    clock.advance(120)

    # stall_interval=0 checks on every tick
    Housekeeper(store, poll_interval=0.01, stall_interval=0).tick()

    job = store.get(job_id)
    assert job.state == JobState.WAITING
    assert job.last_error == "job stalled"


def test_background_thread(store, clock):
    job_id = store.enqueue({"tag": "later"}, delay=1)
    clock.advance(2)

    housekeeper = Housekeeper(store, poll_interval=0.01, stall_interval=30)
    housekeeper.start()
    try:
        deadline = time.monotonic() + 5
        while store.get(job_id).state != JobState.WAITING and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        housekeeper.stop()

    assert store.get(job_id).state == JobState.WAITING
