import threading
import time

import pytest

from throttlekit.concurrency import ConcurrencyConfig, ConcurrencyLimiter
from throttlekit.errors import ValidationError, WaitCancelled


def _run_wait(limiter, **kwargs):
    """Start limiter.wait in a thread; return (thread, result list)."""
    result = []

    def target():
        try:
            limiter.wait(**kwargs)
            result.append(None)
        except Exception as exc:  # noqa: BLE001
            result.append(exc)

    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    return thread, result


@pytest.mark.parametrize("capacity", [10, 1])
def test_new_valid(capacity):
    limiter = ConcurrencyLimiter(capacity)
    assert limiter.capacity == capacity
    assert limiter.available == capacity
    assert limiter.in_use == 0


@pytest.mark.parametrize("capacity", [0, -1])
def test_new_invalid(capacity):
    with pytest.raises(ValidationError) as info:
        ConcurrencyLimiter(capacity)
    assert info.value.field == "capacity"
    assert info.value.component == "concurrency"


@pytest.mark.parametrize(
    "config, capacity, available",
    [
        (ConcurrencyConfig(capacity=10, initial_available=-1), 10, 10),
        (ConcurrencyConfig(capacity=10, initial_available=5), 10, 5),
        (ConcurrencyConfig(capacity=5, initial_available=10), 5, 5),
        (ConcurrencyConfig(capacity=10, initial_available=0), 10, 0),
        (ConcurrencyConfig(capacity=10), 10, 10),
    ],
)
def test_from_config(config, capacity, available):
    limiter = ConcurrencyLimiter.from_config(config)
    assert limiter.capacity == capacity
    assert limiter.available == available
    assert limiter.in_use == capacity - available


def test_from_config_invalid_capacity():
    with pytest.raises(ValidationError):
        ConcurrencyLimiter.from_config(ConcurrencyConfig(capacity=0))


def test_basic_acquire_release():
    limiter = ConcurrencyLimiter(3)
    for expected_available, expected_in_use in [(2, 1), (1, 2), (0, 3)]:
        assert limiter.acquire() is True
        assert limiter.available == expected_available
        assert limiter.in_use == expected_in_use

    assert limiter.acquire() is False
    assert limiter.available == 0
    assert limiter.in_use == 3

    limiter.release()
    assert limiter.available == 1
    assert limiter.in_use == 2

    assert limiter.acquire() is True
    assert limiter.available == 0
    assert limiter.in_use == 3


def test_acquire_release_n():
    limiter = ConcurrencyLimiter(10)
    assert limiter.acquire(3) is True
    assert (limiter.available, limiter.in_use) == (7, 3)
    assert limiter.acquire(5) is True
    assert (limiter.available, limiter.in_use) == (2, 8)
    assert limiter.acquire(3) is False
    assert (limiter.available, limiter.in_use) == (2, 8)
    assert limiter.acquire(2) is True
    assert (limiter.available, limiter.in_use) == (0, 10)
    limiter.release(4)
    assert (limiter.available, limiter.in_use) == (4, 6)
    assert limiter.acquire(0) is True
    assert limiter.available == 4


def test_wait_cancel_and_timeout():
    limiter = ConcurrencyLimiter(1)
    limiter.wait()
    assert limiter.available == 0

    cancelled = threading.Event()
    cancelled.set()
    with pytest.raises(WaitCancelled):
        limiter.wait(cancel=cancelled)

    with pytest.raises(TimeoutError):
        limiter.wait(timeout=0.01)
    assert limiter.available == 0
    assert limiter.in_use == 1


def test_wait_woken_by_release():
    limiter = ConcurrencyLimiter(1)
    assert limiter.acquire() is True
    thread, result = _run_wait(limiter)
    time.sleep(0.01)
    limiter.release()
    thread.join(timeout=1.0)
    assert result == [None]
    assert limiter.available == 0
    assert limiter.in_use == 1


def test_wait_n():
    limiter = ConcurrencyLimiter(5)
    limiter.wait(3)
    assert limiter.available == 2
    limiter.wait(0)
    assert limiter.available == 2

    thread, result = _run_wait(limiter, n=4)
    time.sleep(0.01)
    assert result == []

    limiter.release(3)
    thread.join(timeout=1.0)
    assert result == [None]
    assert limiter.available == 1


def test_set_capacity():
    limiter = ConcurrencyLimiter(5)
    limiter.acquire(3)
    assert (limiter.available, limiter.in_use) == (2, 3)

    limiter.capacity = 8
    assert limiter.capacity == 8
    assert (limiter.available, limiter.in_use) == (5, 3)

    limiter.capacity = 6
    assert limiter.capacity == 6
    assert (limiter.available, limiter.in_use) == (3, 3)

    limiter.acquire(3)
    assert limiter.in_use == 6
    limiter.capacity = 4
    assert limiter.capacity == 4
    assert limiter.available == 0
    assert limiter.in_use == 6

    with pytest.raises(ValidationError):
        limiter.capacity = 0
    assert limiter.capacity == 4


def test_capacity_increase_wakes_waiter():
    limiter = ConcurrencyLimiter(1)
    limiter.acquire()
    thread, result = _run_wait(limiter, n=2, timeout=1.0)
    time.sleep(0.01)
    limiter.capacity = 3
    thread.join(timeout=1.0)
    assert result == [None]
    assert limiter.in_use == 3
    assert limiter.available == 0


def test_release_more_than_acquired():
    limiter = ConcurrencyLimiter(2)
    with pytest.raises(ValueError):
        limiter.release(3)
    assert limiter.available == 2
    assert limiter.in_use == 0


def test_concurrent_access():
    limiter = ConcurrencyLimiter(10)
    errors = []

    def worker():
        for _ in range(50):
            try:
                limiter.wait(timeout=0.5)
            except TimeoutError as exc:
                errors.append(exc)
                return
            time.sleep(0.000001)
            limiter.release()

    threads = [threading.Thread(target=worker) for _ in range(20)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10.0)

    assert all(isinstance(err, TimeoutError) for err in errors)
    assert limiter.available == 10
    assert limiter.in_use == 0


def test_multiple_waiters():
    limiter = ConcurrencyLimiter(1)
    limiter.acquire()
    results = []
    lock = threading.Lock()

    def worker():
        try:
            limiter.wait(timeout=2.0)
        except TimeoutError as exc:
            with lock:
                results.append(exc)
            return
        with lock:
            results.append(None)
        limiter.release()

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for thread in threads:
        thread.start()
    time.sleep(0.01)
    limiter.release()
    for thread in threads:
        thread.join(timeout=3.0)

    assert results == [None] * 5
    assert limiter.available == 1
    assert limiter.in_use == 0


def test_cancel_while_waiting():
    limiter = ConcurrencyLimiter(1)
    limiter.acquire()
    cancel = threading.Event()
    thread, result = _run_wait(limiter, cancel=cancel)
    time.sleep(0.01)
    cancel.set()
    thread.join(timeout=1.0)

    assert len(result) == 1
    assert isinstance(result[0], WaitCancelled)
    assert limiter.available == 0
    assert limiter.in_use == 1


def test_cancelled_waiter_not_granted_later():
    limiter = ConcurrencyLimiter(1)
    limiter.acquire()
    cancel = threading.Event()
    thread, result = _run_wait(limiter, cancel=cancel)
    time.sleep(0.01)
    cancel.set()
    thread.join(timeout=1.0)
    limiter.release()
    assert isinstance(result[0], WaitCancelled)
    assert limiter.available == 1
    assert limiter.in_use == 0


def test_example_basic():
    limiter = ConcurrencyLimiter(3)
    assert limiter.acquire() is True
    limiter.release()
    assert limiter.in_use == 0


def test_example_database_connections():
    limiter = ConcurrencyLimiter(3)
    assert limiter.capacity == 3
    assert limiter.available == 3
    outcomes = []
    for _ in range(4):
        outcomes.append((limiter.acquire(), limiter.available, limiter.in_use))
    assert outcomes == [(True, 2, 1), (True, 1, 2), (True, 0, 3), (False, 0, 3)]
    limiter.release()
    assert (limiter.available, limiter.in_use) == (1, 2)


def test_example_with_timeout():
    limiter = ConcurrencyLimiter(1)
    limiter.acquire()
    with pytest.raises(TimeoutError, match="deadline exceeded"):
        limiter.wait(timeout=0.05)


def test_example_multiple_permits():
    limiter = ConcurrencyLimiter(5)
    assert limiter.acquire(3) is True
    assert (limiter.available, limiter.in_use) == (2, 3)
    limiter.release(3)
    assert (limiter.available, limiter.in_use) == (5, 0)


def test_example_dynamic_capacity():
    limiter = ConcurrencyLimiter(3)
    limiter.acquire(2)
    assert (limiter.capacity, limiter.available, limiter.in_use) == (3, 1, 2)
    limiter.capacity = 5
    assert (limiter.capacity, limiter.available, limiter.in_use) == (5, 3, 2)
    limiter.capacity = 3
    assert (limiter.capacity, limiter.available, limiter.in_use) == (3, 1, 2)


def test_example_custom_configuration():
    limiter = ConcurrencyLimiter.from_config(ConcurrencyConfig(capacity=10, initial_available=5))
    assert (limiter.capacity, limiter.available, limiter.in_use) == (10, 5, 5)


def test_example_worker_pool():
    limiter = ConcurrencyLimiter(2)
    peak = []
    lock = threading.Lock()

    def task():
        limiter.wait()
        try:
            with lock:
                peak.append(limiter.in_use)
            time.sleep(0.02)
        finally:
            limiter.release()

    threads = [threading.Thread(target=task) for _ in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5.0)

    assert len(peak) == 5
    assert max(peak) <= 2
    assert (limiter.available, limiter.in_use) == (2, 0)


def test_example_graceful_shutdown():
    limiter = ConcurrencyLimiter(2)
    failures = []

    def worker():
        try:
            limiter.wait(timeout=0.5)
        except TimeoutError as exc:
            failures.append(exc)
            return
        try:
            time.sleep(0.05)
        finally:
            limiter.release()

    threads = [threading.Thread(target=worker) for _ in range(3)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5.0)

    assert failures == []
    assert (limiter.available, limiter.in_use) == (2, 0)


def test_example_http_server_limiting():
    limiter = ConcurrencyLimiter(100)
    denied = []

    def handle(request_id):
        if not limiter.acquire():
            denied.append(request_id)
            return
        try:
            time.sleep(0.01)
        finally:
            limiter.release()

    threads = [threading.Thread(target=handle, args=(i,)) for i in range(1, 4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5.0)

    assert denied == []
    assert (limiter.in_use, limiter.capacity) == (0, 100)