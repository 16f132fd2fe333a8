"""
=============================================================================
THREAD POOL
=============================================================================

Each accepted connection becomes one task; a worker thread runs it from
request read to response write. Workers are created up front
(min_workers) and added on demand up to max_workers when every worker is
busy and tasks are waiting.

    accept loop ──submit()──► [ bounded queue ] ──get()──► Worker-0
                                                  ──get()──► Worker-1
                                                  ──get()──► ...

A full queue makes submit() return False right away; the server answers
503 instead of letting connections pile up.

Shutdown sends one ``None`` (poison pill) per worker after the queue has
drained or the grace period has run out.

=============================================================================
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """
    A deferred call: ``func(*args, **kwargs)``.

    ``on_cancel`` runs instead if the pool shuts down before the task starts.
    """

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    on_cancel: Optional[Callable[[], Any]] = None
    submitted_at: float = field(default_factory=time.monotonic)


class Worker(threading.Thread):
    """Pulls tasks off the shared queue until it receives None."""

    def __init__(self, task_queue: queue.Queue, worker_id: int, idle_timeout: float = 1.0):
        super().__init__(name=f"publicsite-worker-{worker_id}", daemon=True)
        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout
        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()
        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while not self._shutdown.is_set():
            try:
                task = self.task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            try:
                if task is None:
                    break
                self._execute_task(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        self.state = WorkerState.BUSY
        start_time = time.monotonic()
        try:
            task.func(*task.args, **task.kwargs)
            self.tasks_completed += 1
        except Exception as e:
            elapsed = time.monotonic() - start_time
            logger.exception(f"Worker {self.worker_id} task failed after {elapsed:.3f}s: {e}")
            self.tasks_failed += 1
        finally:
            self.state = WorkerState.IDLE

    def shutdown(self):
        self._shutdown.set()


class ThreadPool:
    """
    Bounded pool of worker threads.

    Usage:
        pool = ThreadPool(min_workers=4, max_workers=16)
        pool.start()
        if not pool.submit(process, args=(conn,)):
            reject(conn)
        pool.shutdown(wait=True, timeout=5.0)
    """

    def __init__(self, min_workers: int = 4, max_workers: int = 16, queue_size: int = 100):
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.queue_size = queue_size

        self._task_queue: "queue.Queue[Optional[Task]]" = queue.Queue(maxsize=queue_size)
        self._workers: list = []
        self._lock = threading.Lock()
        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

    @property
    def is_running(self) -> bool:
        return self._started and not self._shutdown

    def start(self):
        if self._started:
            return

        logger.info(f"Starting thread pool with {self.min_workers} workers")
        self._shutdown = False
        with self._lock:
            for _ in range(self.min_workers):
                self._add_worker()
        self._started = True

    def _add_worker(self) -> Worker:
        # caller holds self._lock
        worker = Worker(task_queue=self._task_queue, worker_id=self._next_worker_id)
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        on_cancel: Optional[Callable[[], Any]] = None,
    ) -> bool:
        """
        Queue a task without blocking.

        ``on_cancel`` is called if the task is dropped at shutdown without
        having run.

        Returns:
            True if queued, False if the queue is full.

        Raises:
            RuntimeError: If the pool is not running.
        """
        if not self.is_running:
            raise RuntimeError("Thread pool is not running")

        try:
            self._task_queue.put_nowait(Task(func=func, args=args, kwargs=kwargs or {}, on_cancel=on_cancel))
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        with self._lock:
            busy = sum(1 for w in self._workers if w.state == WorkerState.BUSY)
            if busy == len(self._workers) and len(self._workers) < self.max_workers:
                if self._task_queue.qsize() > 0:
                    logger.debug(f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers")
                    self._add_worker()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> bool:
        """
        Stop accepting tasks and stop the workers.

        Args:
            wait: Let queued and running tasks finish first.
            timeout: Upper bound for that wait, in seconds.

        Returns:
            True if all work finished in time, False if the grace period
            ran out (remaining workers are daemon threads and are left to
            finish on their own).
        """
        if not self._started:
            return True

        logger.info("Shutting down thread pool...")
        self._shutdown = True
        drained = True

        if wait:
            deadline = None if timeout is None else time.monotonic() + timeout
            # unfinished_tasks counts queued plus in-flight tasks
            while self._task_queue.unfinished_tasks:
                if deadline is not None and time.monotonic() > deadline:
                    logger.warning("Shutdown grace period expired with work still running")
                    drained = False
                    break
                time.sleep(0.05)

        with self._lock:
            workers = list(self._workers)
            self._workers.clear()

        for worker in workers:
            worker.shutdown()
            try:
                self._task_queue.put_nowait(None)
            except queue.Full:
                pass  # the shutdown event stops the worker anyway

        for worker in workers:
            worker.join(timeout=0.5 if drained else 0.05)

        # Anything still queued was never started; cancel and drop it.
        while True:
            try:
                task = self._task_queue.get_nowait()
            except queue.Empty:
                break
            try:
                if task is not None and task.on_cancel is not None:
                    task.on_cancel()
            except Exception:
                logger.exception("Cancel hook failed for a dropped task")
            finally:
                self._task_queue.task_done()

        self._started = False
        logger.info("Thread pool shutdown complete")
        return drained

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def idle_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.IDLE)

    @property
    def queued(self) -> int:
        return self._task_queue.qsize()

    @property
    def stats(self) -> dict:
        return {
            "workers": {
                "total": len(self._workers),
                "busy": self.busy_workers,
                "idle": self.idle_workers,
            },
            "tasks": {
                "queued": self.queued,
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }
