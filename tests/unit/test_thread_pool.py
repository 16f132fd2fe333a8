"""
Unit tests for the worker pool.
"""

import threading
import time

import pytest

from publicsite.core import ThreadPool


@pytest.fixture
def pool():
    pool = ThreadPool(min_workers=2, max_workers=4, queue_size=10)
    pool.start()
    yield pool
    pool.shutdown(wait=False)


class TestThreadPool:
    def test_runs_submitted_tasks(self, pool):
        done = threading.Event()
        results = []

        def task(value):
            results.append(value)
            done.set()

        assert pool.submit(task, args=(42,)) is True
        assert done.wait(timeout=2.0)
        assert results == [42]

    def test_kwargs_are_passed(self, pool):
        done = threading.Event()
        seen = {}

        def task(name=None):
            seen["name"] = name
            done.set()

        pool.submit(task, kwargs={"name": "index.html"})
        assert done.wait(timeout=2.0)
        assert seen == {"name": "index.html"}

    def test_failing_task_does_not_kill_worker(self):
        pool = ThreadPool(min_workers=1, max_workers=1, queue_size=4)
        pool.start()
        done = threading.Event()

        def boom():
            raise RuntimeError("boom")

        try:
            pool.submit(boom)
            pool.submit(done.set)

            assert done.wait(timeout=2.0)
            assert pool.stats["tasks"]["failed"] == 1
        finally:
            pool.shutdown(wait=True, timeout=2.0)

    def test_submit_returns_false_when_full(self):
        pool = ThreadPool(min_workers=1, max_workers=1, queue_size=1)
        pool.start()
        release = threading.Event()
        started = threading.Event()

        def blocker():
            started.set()
            release.wait(timeout=5.0)

        try:
            assert pool.submit(blocker)
            assert started.wait(timeout=2.0)
            assert pool.submit(blocker)       # fills the queue
            assert pool.submit(blocker) is False
        finally:
            release.set()
            pool.shutdown(wait=True, timeout=2.0)

    def test_submit_requires_running_pool(self):
        with pytest.raises(RuntimeError):
            ThreadPool().submit(print)

    def test_stats_shape(self, pool):
        stats = pool.stats
        assert stats["workers"]["total"] == 2
        assert set(stats["tasks"]) == {"queued", "completed", "failed"}


class TestShutdown:
    def test_waits_for_in_flight_work(self):
        pool = ThreadPool(min_workers=1, max_workers=1, queue_size=4)
        pool.start()
        finished = []

        def slow():
            time.sleep(0.2)
            finished.append(True)

        pool.submit(slow)
        pool.submit(slow)

        assert pool.shutdown(wait=True, timeout=5.0) is True
        assert finished == [True, True]
        assert not pool.is_running

    def test_grace_period_expires(self):
        pool = ThreadPool(min_workers=1, max_workers=1, queue_size=4)
        pool.start()
        release = threading.Event()
        pool.submit(release.wait, args=(5.0,))

        try:
            assert pool.shutdown(wait=True, timeout=0.2) is False
        finally:
            release.set()

    def test_shutdown_before_start_is_noop(self):
        assert ThreadPool().shutdown() is True

    def test_dropped_tasks_are_cancelled(self):
        pool = ThreadPool(min_workers=1, max_workers=1, queue_size=4)
        pool.start()
        release = threading.Event()
        started = threading.Event()
        cancelled = []

        def blocker():
            started.set()
            release.wait(timeout=5.0)

        pool.submit(blocker)
        assert started.wait(timeout=2.0)
        pool.submit(print, on_cancel=lambda: cancelled.append("conn-1"))

        try:
            assert pool.shutdown(wait=True, timeout=0.2) is False
        finally:
            release.set()

        assert cancelled == ["conn-1"]

    def test_failing_cancel_hook_does_not_block_shutdown(self):
        pool = ThreadPool(min_workers=1, max_workers=1, queue_size=4)
        pool.start()
        release = threading.Event()
        started = threading.Event()

        def blocker():
            started.set()
            release.wait(timeout=5.0)

        def bad_hook():
            raise OSError("already closed")

        pool.submit(blocker)
        assert started.wait(timeout=2.0)
        pool.submit(print, on_cancel=bad_hook)

        try:
            assert pool.shutdown(wait=True, timeout=0.2) is False
        finally:
            release.set()

        assert pool.queued == 0
