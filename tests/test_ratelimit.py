"""
Unit Tests for RateLimiter
"""

import threading
import time

import pytest

from vidai._ratelimit import RateLimiter
from vidai.exceptions import OperationCancelled


def test_negative_interval_rejected():
    with pytest.raises(ValueError):
        RateLimiter(-1)


def test_grants_are_spaced_under_concurrency():
    """Concurrent callers never get permits closer than the interval."""
    limiter = RateLimiter(0.05)
    grants = []
    lock = threading.Lock()

    def worker():
        with limiter.permit():
            with lock:
                grants.append(limiter._last_grant)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    grants.sort()
    assert len(grants) == 4
    gaps = [b - a for a, b in zip(grants, grants[1:])]
    assert all(gap >= 0.05 - 1e-9 for gap in gaps), gaps


def test_single_permit_outstanding():
    limiter = RateLimiter(0)
    release = limiter.acquire()
    granted = threading.Event()

    def worker():
        with limiter.permit():
            granted.set()

    t = threading.Thread(target=worker)
    t.start()
    assert not granted.wait(0.3)

    release()
    assert granted.wait(2)
    t.join(timeout=2)


def test_release_is_idempotent():
    limiter = RateLimiter(0)
    release = limiter.acquire()
    release()
    release()

    # a double release must not let two permits out at once
    second = limiter.acquire()
    granted = threading.Event()
    t = threading.Thread(target=lambda: (limiter.acquire()(), granted.set()))
    t.start()
    assert not granted.wait(0.2)
    second()
    assert granted.wait(2)
    t.join(timeout=2)


def test_cancel_while_queued_issues_no_permit():
    limiter = RateLimiter(0)
    release = limiter.acquire()
    cancel = threading.Event()
    errors = []

    def worker():
        try:
            limiter.acquire(cancel)
        except OperationCancelled as exc:
            errors.append(exc)

    t = threading.Thread(target=worker)
    t.start()
    time.sleep(0.05)
    cancel.set()
    t.join(timeout=2)

    assert len(errors) == 1
    release()
    # the cancelled waiter left the queue, so the next caller is served
    limiter.acquire()()


def test_cancel_already_set():
    limiter = RateLimiter(0)
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(OperationCancelled):
        limiter.acquire(cancel)


def test_waiters_served_in_arrival_order():
    limiter = RateLimiter(0)
    release = limiter.acquire()
    order = []

    def worker(n):
        with limiter.permit():
            order.append(n)

    threads = []
    for n in range(3):
        t = threading.Thread(target=worker, args=(n,))
        t.start()
        threads.append(t)
        time.sleep(0.05)

    release()
    for t in threads:
        t.join(timeout=2)

    assert order == [0, 1, 2]
