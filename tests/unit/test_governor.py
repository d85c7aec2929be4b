from __future__ import annotations

import threading
import time

import pytest

from csv2sql.db.batch_insert import BatchMetrics
from csv2sql.db.statement import Statement
from csv2sql.models.batch_job import BatchJob
from csv2sql.services.governor import Completion, ConnectionGovernor


def _job(batch_id: int, rows: int = 1) -> BatchJob:
    st = Statement(sql="INSERT IGNORE INTO t (a) VALUES (?)", args=("1",) * rows, row_count=rows)
    return BatchJob(batch_id=batch_id, statement=st, first_record=batch_id, last_record=batch_id)


def _completion(batch_id: int, error: str | None = None, fatal: BaseException | None = None) -> Completion:
    now = time.time()
    return Completion(
        job=_job(batch_id),
        metrics=BatchMetrics(batch_size=1, elapsed_seconds=0.0, start_time=now, end_time=now),
        error=error,
        fatal=fatal,
    )


def test_invalid_concurrency():
    with pytest.raises(ValueError):
        ConnectionGovernor(0)


def test_held_never_exceeds_concurrency():
    concurrency = 3
    workers = 20
    governor = ConnectionGovernor(concurrency)
    governor.start()

    lock = threading.Lock()
    active = 0
    max_active = 0
    held_samples: list[int] = []

    def worker(batch_id: int) -> None:
        nonlocal active, max_active
        with lock:
            active += 1
            max_active = max(max_active, active)
        held_samples.append(governor.snapshot().held)
        time.sleep(0.01)
        with lock:
            active -= 1
        governor.complete(_completion(batch_id))

    threads = []
    for i in range(1, workers + 1):
        governor.acquire()
        t = threading.Thread(target=worker, args=(i,))
        t.start()
        threads.append(t)

    governor.drain()
    for t in threads:
        t.join()
    governor.stop()

    counters = governor.snapshot()
    assert max_active <= concurrency
    assert governor.max_held <= concurrency
    assert max(held_samples) <= concurrency
    assert counters.completed == workers
    assert counters.held == 0
    assert counters.failed == 0


def test_completion_callback_runs_on_accounting_thread():
    seen: list[tuple[int, str]] = []

    def on_completion(c: Completion) -> None:
        seen.append((c.job.batch_id, threading.current_thread().name))

    governor = ConnectionGovernor(2, on_completion=on_completion)
    governor.start()
    for i in (1, 2, 3):
        governor.acquire()
        governor.complete(_completion(i))
    governor.drain()
    governor.stop()

    assert [b for b, _ in seen] == [1, 2, 3]
    assert {name for _, name in seen} == {"csv2sql-accounting"}


def test_failed_and_fatal_completions_are_recorded():
    governor = ConnectionGovernor(1)
    governor.start()
    boom = RuntimeError("prepare failed")

    governor.acquire()
    governor.complete(_completion(1, error="duplicate"))
    governor.acquire()
    governor.complete(_completion(2, fatal=boom))
    governor.acquire()
    governor.complete(_completion(3, fatal=RuntimeError("second")))
    governor.drain()
    governor.stop()

    counters = governor.snapshot()
    assert counters.completed == 3
    assert counters.failed == 1
    assert governor.fatal_error is boom


def test_slot_released_even_if_callback_raises():
    def broken(_: Completion) -> None:
        raise ValueError("callback bug")

    governor = ConnectionGovernor(1, on_completion=broken)
    governor.start()
    governor.acquire()
    governor.complete(_completion(1))
    governor.drain()  # would block forever if the permit were lost
    governor.stop()
    assert isinstance(governor.fatal_error, ValueError)


def test_drain_with_nothing_in_flight_returns_immediately():
    governor = ConnectionGovernor(4)
    governor.start()
    governor.drain()
    governor.stop()
    assert governor.snapshot().completed == 0
