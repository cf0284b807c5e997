import threading
import time

import pytest

from remproxy.kcp.timedsched import TimedSched


def test_runs_in_deadline_order():
    order = []
    done = threading.Event()
    with TimedSched(1) as sched:
        now = time.monotonic()
        sched.put(lambda: order.append("late"), now + 0.15)
        sched.put(lambda: (order.append("last"), done.set()), now + 0.25)
        sched.put(lambda: order.append("early"), now + 0.05)
        assert done.wait(2)
    assert order == ["early", "late", "last"]


def test_past_deadline_runs_immediately():
    done = threading.Event()
    with TimedSched(2) as sched:
        start = time.monotonic()
        sched.put(done.set, start - 1)
        assert done.wait(1)
        assert time.monotonic() - start < 0.5


def test_does_not_run_before_deadline():
    ran_at = []
    done = threading.Event()
    with TimedSched(1) as sched:
        deadline = time.monotonic() + 0.1
        sched.put(lambda: (ran_at.append(time.monotonic()), done.set()), deadline)
        assert done.wait(2)
    assert ran_at[0] >= deadline


def test_close_drops_pending_tasks():
    ran = threading.Event()
    sched = TimedSched(1)
    sched.put(ran.set, time.monotonic() + 0.1)
    sched.close()
    sched.put(ran.set, time.monotonic() - 1)
    assert not ran.wait(0.3)


def test_failing_task_does_not_stop_worker():
    done = threading.Event()

    def boom():
        raise RuntimeError("boom")

    with TimedSched(1) as sched:
        now = time.monotonic()
        sched.put(boom, now)
        sched.put(done.set, now + 0.05)
        assert done.wait(2)


def test_invalid_parallel():
    with pytest.raises(ValueError):
        TimedSched(0)